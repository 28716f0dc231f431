import textwrap
from typing import Optional

import pytest

from mean_feeder.models import Entry


RSS_DOCUMENT = textwrap.dedent(
    """\
    <?xml version="1.0" encoding="UTF-8"?>
    <rss version="2.0"
         xmlns:content="http://purl.org/rss/1.0/modules/content/"
         xmlns:dc="http://purl.org/dc/elements/1.1/">
      <channel>
        <title>Example Feed</title>
        <link>https://example.com/</link>
        <image>
          <title>Logo title</title>
          <url>https://example.com/logo.png</url>
        </image>
        <item>
          <title>First post</title>
          <link>https://example.com/1</link>
          <guid>post-1</guid>
          <pubDate>Mon, 15 Jan 2024 10:30:00 +0200</pubDate>
          <description><![CDATA[<p>Hello <b>world</b></p>]]></description>
          <content:encoded>Full body that should be ignored</content:encoded>
        </item>
        <item>
          <title>Second post</title>
          <link>https://example.com/2</link>
          <dc:date>2024-01-16T08:00:00Z</dc:date>
          <description>Comments</description>
        </item>
      </channel>
    </rss>
    """
).encode("utf-8")


ATOM_DOCUMENT = textwrap.dedent(
    """\
    <?xml version="1.0" encoding="utf-8"?>
    <feed xmlns="http://www.w3.org/2005/Atom">
      <title>Atom Example</title>
      <subtitle>Not the title</subtitle>
      <entry>
        <title>Atom entry</title>
        <link rel="alternate" href="https://atom.example.com/a"/>
        <link rel="replies" href="https://atom.example.com/a#comments"/>
        <id>urn:uuid:1</id>
        <published>2024-01-15T10:30:00Z</published>
        <updated>2024-01-17T00:00:00Z</updated>
        <summary type="html">&lt;p&gt;Escaped &amp;amp; markup&lt;/p&gt;</summary>
      </entry>
    </feed>
    """
).encode("utf-8")


def rss_with_items(*items: str, title: str = "Feed") -> bytes:
    """Wrap raw <item> snippets in a minimal RSS document."""
    body = "".join(items)
    return (
        f'<?xml version="1.0"?><rss><channel><title>{title}</title>'
        f"{body}</channel></rss>"
    ).encode("utf-8")


def make_entry(
    entry_id: str,
    published: Optional[int] = None,
    title: str = "Title",
    summary: Optional[str] = None,
) -> Entry:
    return Entry(
        id=entry_id,
        title=title,
        link=f"https://example.com/{entry_id}",
        published=published,
        feed_title="Feed",
        summary=summary,
    )


@pytest.fixture
def rss_document() -> bytes:
    return RSS_DOCUMENT


@pytest.fixture
def atom_document() -> bytes:
    return ATOM_DOCUMENT
