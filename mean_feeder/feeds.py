"""Feed fetching, entry normalization and merging."""

from __future__ import annotations

import logging
import re
from typing import Callable, Iterable, List, Optional

import requests

from .models import Entry, RawItem
from .parser import parse_feed
from .timestamps import parse_timestamp

logger = logging.getLogger(__name__)

FETCH_TIMEOUT = 30.0
USER_AGENT = "mean-feeder/0.1"

ID_SEPARATOR = "#"
UNTITLED = "(untitled)"
SUMMARY_MAX_LENGTH = 200
ELLIPSIS = "..."
# Some feeds put a bare comment-count link in the description.
NOISE_SUMMARIES = frozenset({"Comments"})

_ENTITIES = {
    "&amp;": "&",
    "&lt;": "<",
    "&gt;": ">",
    "&quot;": '"',
    "&#39;": "'",
    "&apos;": "'",
    "&#x27;": "'",
    "&nbsp;": " ",
}
_ENTITY_PATTERN = re.compile("|".join(re.escape(name) for name in _ENTITIES))

Fetcher = Callable[[str], Optional[bytes]]


def fetch_feed_bytes(url: str, timeout: float = FETCH_TIMEOUT) -> Optional[bytes]:
    """Download a feed document, returning ``None`` on any transport failure."""
    logger.debug("Fetching feed %s", url)
    try:
        response = requests.get(
            url, timeout=timeout, headers={"User-Agent": USER_AGENT}
        )
        response.raise_for_status()
    except requests.RequestException as exc:
        logger.warning("Failed to fetch %s: %s", url, exc)
        return None
    return response.content


def strip_markup(value: str) -> str:
    """Drop everything between ``<`` and the next ``>``."""
    chars = []
    in_tag = False
    for char in value:
        if char == "<":
            in_tag = True
        elif char == ">":
            in_tag = False
        elif not in_tag:
            chars.append(char)
    return "".join(chars)


def decode_entities(value: str) -> str:
    return _ENTITY_PATTERN.sub(lambda match: _ENTITIES[match.group(0)], value)


def truncate_text(value: str, limit: int = SUMMARY_MAX_LENGTH) -> str:
    """Cut ``value`` to ``limit`` characters, ellipsis included."""
    if len(value) <= limit:
        return value
    return value[: max(0, limit - len(ELLIPSIS))] + ELLIPSIS


def extract_summary(raw_summary: Optional[str]) -> Optional[str]:
    """Turn raw description/content markup into a short plain-text summary."""
    if raw_summary is None:
        return None

    text = decode_entities(strip_markup(raw_summary)).strip()
    lines = [line.rstrip("\r") for line in text.split("\n")]
    summary = truncate_text(" ".join(lines[:2]))

    if not summary or summary in NOISE_SUMMARIES:
        return None
    return summary


def normalize_item(raw: RawItem, feed_url: str, feed_title: str) -> Entry:
    """Build the canonical entry for one raw item of the feed at ``feed_url``."""
    item_key = raw.id or raw.link
    published = parse_timestamp(raw.published) if raw.published is not None else None

    return Entry(
        id=f"{feed_url}{ID_SEPARATOR}{item_key}",
        title=raw.title or UNTITLED,
        link=raw.link,
        published=published,
        feed_title=feed_title or feed_url,
        summary=extract_summary(raw.summary),
    )


def fetch_feed_entries(url: str, fetch: Fetcher = fetch_feed_bytes) -> List[Entry]:
    """Fetch, parse and normalize a single feed."""
    content = fetch(url)
    if content is None:
        return []

    parsed = parse_feed(content, source=url)
    feed_title = parsed.title or url
    entries = [normalize_item(raw, url, feed_title) for raw in parsed.items]

    logger.info("Fetched %d entries from %s", len(entries), url)
    return entries


def merge_entries(entries: Iterable[Entry]) -> List[Entry]:
    """Drop repeated ids and order newest first.

    The first entry seen for an id is kept. Entries without a timestamp go
    last and keep the order they were seen in.
    """
    seen_ids = set()
    unique_entries: List[Entry] = []
    for entry in entries:
        if entry.id in seen_ids:
            continue
        seen_ids.add(entry.id)
        unique_entries.append(entry)

    unique_entries.sort(
        key=lambda entry: (
            entry.published is None,
            -entry.published if entry.published is not None else 0,
        )
    )
    return unique_entries
