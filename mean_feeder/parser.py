"""Streaming RSS/Atom parser.

The document is fed to an incremental SAX reader in chunks, through an
``InputFilter`` that repairs the entity and prolog sloppiness common in
the wild. Namespace processing is switched off, so ``dc:date`` and
``content:encoded`` arrive as raw qualified names and only the part after
the last colon decides what an element means. Items are emitted as soon as
their end tag is seen.
"""

from __future__ import annotations

import logging
import re
import xml.sax
from dataclasses import dataclass, field
from enum import Enum
from html.entities import name2codepoint
from typing import List, Optional
from xml.sax.handler import ContentHandler, feature_external_ges, feature_namespaces

from .models import RawItem

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

# Entity references longer than this are never held back across chunks.
MAX_REFERENCE_LENGTH = 32

XML_ENTITIES = frozenset({"amp", "lt", "gt", "quot", "apos"})

_UTF8_BOM = b"\xef\xbb\xbf"
_CDATA_OPEN = b"<![CDATA["
_CDATA_CLOSE = b"]]>"
_MARKUP = re.compile(rb"<!\[CDATA\[|&")
_REFERENCE = re.compile(rb"&(#[0-9]+|#[xX][0-9A-Fa-f]+|[A-Za-z_][A-Za-z0-9._-]*);")
_PARTIAL_REFERENCE = re.compile(rb"&#?[A-Za-z0-9._-]*")

# Root element is depth 1, so this covers <rss><channel><title> and <feed><title>.
FEED_TITLE_MAX_DEPTH = 3


class TagRole(Enum):
    ITEM = "item"
    TITLE = "title"
    LINK = "link"
    ID = "id"
    PUBLISHED = "published"
    SUMMARY = "summary"
    OTHER = "other"


_ROLES = {
    "item": TagRole.ITEM,
    "entry": TagRole.ITEM,
    "title": TagRole.TITLE,
    "link": TagRole.LINK,
    "id": TagRole.ID,
    "guid": TagRole.ID,
    "published": TagRole.PUBLISHED,
    "pubDate": TagRole.PUBLISHED,
    "updated": TagRole.PUBLISHED,
    "date": TagRole.PUBLISHED,
    "summary": TagRole.SUMMARY,
    "description": TagRole.SUMMARY,
    "content": TagRole.SUMMARY,
    "encoded": TagRole.SUMMARY,
}


def local_name(name: str) -> str:
    """Drop any namespace prefix from a qualified tag name."""
    return name.rsplit(":", 1)[-1]


def tag_role(name: str) -> TagRole:
    return _ROLES.get(local_name(name), TagRole.OTHER)


@dataclass
class ParsedFeed:
    """Result of parsing one feed document."""

    title: str
    items: List[RawItem]
    error: Optional[str] = None


@dataclass
class _ParserState:
    depth: int = 0
    item: Optional[RawItem] = None
    item_depth: int = 0
    feed_title: Optional[str] = None
    text_stack: List[List[str]] = field(default_factory=list)
    items: List[RawItem] = field(default_factory=list)


class FeedHandler(ContentHandler):
    """SAX handler that collects the feed title and raw items."""

    def __init__(self) -> None:
        super().__init__()
        self.state = _ParserState()

    def startElement(self, name, attrs):  # noqa: N802 - SAX API
        state = self.state
        state.depth += 1
        state.text_stack.append([])
        role = tag_role(name)

        if state.item is None:
            if role is TagRole.ITEM:
                state.item = RawItem()
                state.item_depth = state.depth
            return

        if role is TagRole.LINK:
            href = attrs.get("href")
            if href and not state.item.link:
                state.item.link = href

    def characters(self, content):
        if self.state.text_stack:
            self.state.text_stack[-1].append(content)

    def endElement(self, name):  # noqa: N802 - SAX API
        state = self.state
        text = "".join(state.text_stack.pop()).strip() if state.text_stack else ""
        role = tag_role(name)

        if state.item is not None:
            if role is TagRole.ITEM and state.depth == state.item_depth:
                state.items.append(state.item)
                state.item = None
            elif text:
                _assign_field(state.item, role, text)
        elif (
            role is TagRole.TITLE
            and state.depth <= FEED_TITLE_MAX_DEPTH
            and state.feed_title is None
        ):
            state.feed_title = text

        state.depth -= 1


def _assign_field(item: RawItem, role: TagRole, text: str) -> None:
    """Store ``text`` on the item unless the field already has a value."""
    if role is TagRole.TITLE and not item.title:
        item.title = text
    elif role is TagRole.LINK and not item.link:
        item.link = text
    elif role is TagRole.ID and not item.id:
        item.id = text
    elif role is TagRole.PUBLISHED and item.published is None:
        item.published = text
    elif role is TagRole.SUMMARY and item.summary is None:
        item.summary = text


def _rewrite_reference(name: bytes) -> bytes:
    text = name.decode("ascii")
    if text.startswith("#") or text in XML_ENTITIES:
        return b"&" + name + b";"
    codepoint = name2codepoint.get(text)
    if codepoint is not None:
        return b"&#%d;" % codepoint
    return b"&amp;" + name + b";"


def _markup_safe_end(buffer: bytes, pos: int) -> int:
    """End of the part of ``buffer`` that cannot start a CDATA opener."""
    start = buffer.rfind(b"<", pos)
    if start >= 0 and _CDATA_OPEN.startswith(buffer[start:]):
        return start
    return len(buffer)


class InputFilter:
    """Incremental byte rewrite that keeps expat going on sloppy feeds.

    Whitespace (and a UTF-8 byte order mark) before the first tag is
    dropped. Outside CDATA sections, entity references XML does not
    predefine become character references when HTML knows the name and
    literal text otherwise; a bare ``&`` becomes ``&amp;``. A reference or
    CDATA delimiter split across chunks is held back until the next one.
    """

    def __init__(self) -> None:
        self._pending = b""
        self._started = False
        self._in_cdata = False

    def feed(self, chunk: bytes) -> bytes:
        return self._rewrite(self._pending + chunk, final=False)

    def flush(self) -> bytes:
        return self._rewrite(self._pending, final=True)

    def _rewrite(self, buffer: bytes, final: bool) -> bytes:
        self._pending = b""
        if not self._started:
            if buffer.startswith(_UTF8_BOM):
                buffer = buffer[len(_UTF8_BOM) :]
            buffer = buffer.lstrip()
            if not buffer:
                return b""
            self._started = True

        out: List[bytes] = []
        pos, end = 0, len(buffer)
        while pos < end:
            if self._in_cdata:
                close = buffer.find(_CDATA_CLOSE, pos)
                if close < 0:
                    keep = end if final else max(pos, end - len(_CDATA_CLOSE) + 1)
                    out.append(buffer[pos:keep])
                    self._pending = buffer[keep:]
                    break
                close += len(_CDATA_CLOSE)
                out.append(buffer[pos:close])
                pos = close
                self._in_cdata = False
                continue

            match = _MARKUP.search(buffer, pos)
            if match is None:
                keep = end if final else _markup_safe_end(buffer, pos)
                out.append(buffer[pos:keep])
                self._pending = buffer[keep:]
                break

            out.append(buffer[pos : match.start()])
            if match.group() == _CDATA_OPEN:
                out.append(_CDATA_OPEN)
                pos = match.end()
                self._in_cdata = True
                continue

            reference = _REFERENCE.match(buffer, match.start())
            if reference is not None:
                out.append(_rewrite_reference(reference.group(1)))
                pos = reference.end()
                continue

            partial = _PARTIAL_REFERENCE.match(buffer, match.start())
            if (
                not final
                and partial.end() == end
                and end - match.start() < MAX_REFERENCE_LENGTH
            ):
                self._pending = buffer[match.start() :]
                break
            out.append(b"&amp;")
            pos = match.start() + 1

        return b"".join(out)


def _make_reader(handler: ContentHandler):
    reader = xml.sax.make_parser()
    reader.setFeature(feature_namespaces, False)
    reader.setFeature(feature_external_ges, False)
    reader.setContentHandler(handler)
    return reader


def parse_feed(data: bytes, source: str = "<feed>") -> ParsedFeed:
    """Parse a feed document into its title and raw items.

    A malformed or truncated document is not an error for the caller: the
    items closed before the fault are returned and the fault is reported in
    ``ParsedFeed.error``.
    """
    handler = FeedHandler()
    reader = _make_reader(handler)
    input_filter = InputFilter()
    error = None

    try:
        for start in range(0, len(data), CHUNK_SIZE):
            cleaned = input_filter.feed(data[start : start + CHUNK_SIZE])
            if cleaned:
                reader.feed(cleaned)
        tail = input_filter.flush()
        if tail:
            reader.feed(tail)
        reader.close()
    except xml.sax.SAXException as exc:
        error = str(exc)
        logger.warning(
            "XML parse error in %s after %d items: %s",
            source,
            len(handler.state.items),
            error,
        )

    return ParsedFeed(
        title=handler.state.feed_title or "",
        items=handler.state.items,
        error=error,
    )
