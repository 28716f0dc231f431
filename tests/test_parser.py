from conftest import rss_with_items

from mean_feeder.parser import (
    CHUNK_SIZE,
    InputFilter,
    TagRole,
    local_name,
    parse_feed,
    tag_role,
)


def test_parse_rss_document(rss_document):
    parsed = parse_feed(rss_document)

    assert parsed.error is None
    assert parsed.title == "Example Feed"
    assert len(parsed.items) == 2

    first, second = parsed.items
    assert first.title == "First post"
    assert first.link == "https://example.com/1"
    assert first.id == "post-1"
    assert first.published == "Mon, 15 Jan 2024 10:30:00 +0200"
    assert first.summary == "<p>Hello <b>world</b></p>"

    assert second.id == ""
    assert second.published == "2024-01-16T08:00:00Z"
    assert second.summary == "Comments"


def test_parse_atom_document(atom_document):
    parsed = parse_feed(atom_document)

    assert parsed.title == "Atom Example"
    assert len(parsed.items) == 1
    entry = parsed.items[0]
    assert entry.link == "https://atom.example.com/a"
    assert entry.id == "urn:uuid:1"
    assert entry.published == "2024-01-15T10:30:00Z"
    assert entry.summary == "<p>Escaped &amp; markup</p>"


def test_items_are_returned_in_document_order():
    items = [
        f"<item><title>Post {i}</title><guid>{i}</guid></item>" for i in range(25)
    ]
    parsed = parse_feed(rss_with_items(*items))

    assert [item.id for item in parsed.items] == [str(i) for i in range(25)]


def test_document_larger_than_one_chunk():
    body = "x" * 500
    items = [
        f"<item><guid>{i}</guid><description>{body}</description></item>"
        for i in range(400)
    ]
    document = rss_with_items(*items)
    assert len(document) > CHUNK_SIZE

    parsed = parse_feed(document)

    assert parsed.error is None
    assert len(parsed.items) == 400
    assert parsed.items[-1].summary == body


def test_truncated_document_keeps_completed_items():
    document = (
        b"<rss><channel><title>T</title>"
        b"<item><title>a</title></item>"
        b"<item><title>b</title></item>"
        b"<item><title>never closed</title>"
    )

    parsed = parse_feed(document)

    assert [item.title for item in parsed.items] == ["a", "b"]
    assert parsed.error is not None
    assert parsed.title == "T"


def test_mismatched_tag_stops_at_fault():
    document = (
        b"<rss><channel>"
        b"<item><title>a</title></item>"
        b"<item><title>b</oops></item>"
        b"<item><title>c</title></item>"
        b"</channel></rss>"
    )

    parsed = parse_feed(document)

    assert [item.title for item in parsed.items] == ["a"]
    assert parsed.error


def test_garbage_input_reports_error_without_raising():
    parsed = parse_feed(b"this is not xml at all")

    assert parsed.items == []
    assert parsed.title == ""
    assert parsed.error


def test_undeclared_namespace_prefix_is_tolerated():
    document = rss_with_items(
        "<item><title>a</title><dc:date>2024-01-15T10:30:00Z</dc:date>"
        "<content:encoded><![CDATA[<p>body</p>]]></content:encoded></item>"
    )

    parsed = parse_feed(document)

    assert parsed.error is None
    assert parsed.items[0].published == "2024-01-15T10:30:00Z"
    assert parsed.items[0].summary == "<p>body</p>"


def test_first_value_wins_per_field():
    document = rss_with_items(
        "<item>"
        "<title>First title</title><title>Second title</title>"
        "<guid>g1</guid><id>g2</id>"
        "<updated>2024-01-01T00:00:00Z</updated>"
        "<pubDate>Mon, 15 Jan 2024 10:30:00 GMT</pubDate>"
        "<description></description>"
        "<summary>from summary</summary>"
        "<content>from content</content>"
        "</item>"
    )

    item = parse_feed(document).items[0]

    assert item.title == "First title"
    assert item.id == "g1"
    assert item.published == "2024-01-01T00:00:00Z"
    assert item.summary == "from summary"


def test_link_href_attribute_beats_text():
    document = rss_with_items(
        '<item><link href="https://href.example.com/x">'
        "https://text.example.com/x</link></item>",
        "<item><link>https://text.example.com/y</link>"
        '<atom:link href="https://href.example.com/y"/></item>',
    )

    first, second = parse_feed(document).items

    assert first.link == "https://href.example.com/x"
    assert second.link == "https://text.example.com/y"


def test_feed_title_only_from_shallow_title_outside_items():
    document = (
        b"<rss><channel>"
        b"<image><title>Too deep</title></image>"
        b"<item><title>Item title</title></item>"
        b"</channel></rss>"
    )

    parsed = parse_feed(document)

    assert parsed.title == ""
    assert parsed.items[0].title == "Item title"


def test_first_feed_title_wins():
    document = b"<feed><title>One</title><title>Two</title></feed>"

    assert parse_feed(document).title == "One"


def test_empty_first_feed_title_still_counts_as_first():
    document = b"<feed><title></title><title>Second</title></feed>"

    assert parse_feed(document).title == ""


def test_tag_roles_ignore_namespace_prefix():
    assert local_name("content:encoded") == "encoded"
    assert local_name("a:b:c") == "c"
    assert local_name("item") == "item"
    assert tag_role("content:encoded") is TagRole.SUMMARY
    assert tag_role("dc:date") is TagRole.PUBLISHED
    assert tag_role("atom:link") is TagRole.LINK
    assert tag_role("entry") is TagRole.ITEM
    assert tag_role("channel") is TagRole.OTHER


def test_html_entity_outside_cdata_does_not_stop_the_scan():
    document = (
        b"<rss><channel><title>T</title>"
        b"<item><guid>1</guid><title>A&nbsp;B</title></item>"
        b"<item><guid>2</guid><title>Caf&eacute; &copy;</title></item>"
        b"<item><guid>3</guid><title>&bogus; &amp; AT&T</title></item>"
        b"</channel></rss>"
    )

    parsed = parse_feed(document)

    assert parsed.error is None
    assert [item.id for item in parsed.items] == ["1", "2", "3"]
    assert parsed.items[0].title == "A\u00a0B"
    assert parsed.items[1].title == "Café ©"
    assert parsed.items[2].title == "&bogus; & AT&T"


def test_leading_whitespace_before_declaration_is_ignored():
    document = (
        b'\n  <?xml version="1.0" encoding="UTF-8"?>'
        b"<rss><channel><title>T</title><item><guid>1</guid></item></channel></rss>"
    )

    parsed = parse_feed(document)

    assert parsed.error is None
    assert parsed.title == "T"
    assert [item.id for item in parsed.items] == ["1"]


def test_byte_order_mark_followed_by_whitespace_is_ignored():
    document = (
        b'\xef\xbb\xbf\r\n<?xml version="1.0"?>'
        b"<feed><title>Atom</title><entry><id>e</id></entry></feed>"
    )

    parsed = parse_feed(document)

    assert parsed.error is None
    assert [item.id for item in parsed.items] == ["e"]


def test_cdata_content_is_left_untouched():
    document = rss_with_items(
        "<item><guid>1</guid>"
        "<description><![CDATA[<p>a &nbsp; b & c</p>]]></description></item>"
    )

    parsed = parse_feed(document)

    assert parsed.error is None
    assert parsed.items[0].summary == "<p>a &nbsp; b & c</p>"


def test_input_filter_holds_back_split_references_and_cdata():
    input_filter = InputFilter()
    pieces = [
        b"  <d>A&nb",
        b"sp;B<![CD",
        b"ATA[&nbsp;]",
        b"]></d>",
    ]

    output = b"".join(input_filter.feed(piece) for piece in pieces)
    output += input_filter.flush()

    assert output == b"<d>A&#160;B<![CDATA[&nbsp;]]></d>"


def test_entity_split_across_parser_chunks():
    prefix = b"<rss><channel><item><guid>1</guid><title>"
    padding = b"x" * (CHUNK_SIZE - len(prefix) - 3)
    document = prefix + padding + b"&nbsp;y</title></item></channel></rss>"

    parsed = parse_feed(document)

    assert parsed.error is None
    assert parsed.items[0].title == padding.decode() + "\u00a0y"
