"""Tab-separated persistence for entry collections.

Each line holds one entry: id, title, link, published, feed_title, summary.
``published`` is a decimal timestamp or empty; ``summary`` is empty when
absent.
"""

from __future__ import annotations

import contextlib
import logging
import os
import re
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .models import Entry

logger = logging.getLogger(__name__)

DELIMITER = "\t"
FIELD_COUNT = 6

_TIMESTAMP = re.compile(r"[+-]?[0-9]+")

PathLike = Union[str, "os.PathLike[str]"]


def sanitize_field(value: str) -> str:
    """Replace characters that would break the record framing with spaces."""
    return value.replace(DELIMITER, " ").replace("\n", " ").replace("\r", " ")


def format_record(entry: Entry) -> str:
    fields = [
        sanitize_field(entry.id),
        sanitize_field(entry.title),
        sanitize_field(entry.link),
        str(entry.published) if entry.published is not None else "",
        sanitize_field(entry.feed_title),
        sanitize_field(entry.summary or ""),
    ]
    return DELIMITER.join(fields)


def _parse_published(value: str) -> Optional[int]:
    if not _TIMESTAMP.fullmatch(value):
        return None
    return int(value)


def parse_record(line: str) -> Optional[Entry]:
    fields = line.split(DELIMITER, FIELD_COUNT - 1)
    if len(fields) < FIELD_COUNT:
        return None
    entry_id, title, link, published, feed_title, summary = fields
    return Entry(
        id=entry_id,
        title=title,
        link=link,
        published=_parse_published(published),
        feed_title=feed_title,
        summary=summary or None,
    )


def load_entries(path: PathLike) -> List[Entry]:
    """Load entries from ``path``; a missing or unreadable file yields []."""
    location = Path(path)
    try:
        contents = location.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.info("No saved entries at %s", location)
        return []
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Could not read saved entries from %s: %s", location, exc)
        return []

    entries: List[Entry] = []
    for number, line in enumerate(contents.split("\n"), start=1):
        line = line.rstrip("\r")
        if not line:
            continue
        entry = parse_record(line)
        if entry is None:
            logger.debug("Skipping malformed record on line %d of %s", number, location)
            continue
        entries.append(entry)

    logger.info("Loaded %d entries from %s", len(entries), location)
    return entries


def save_entries(entries: Iterable[Entry], path: PathLike) -> None:
    """Write entries to ``path``. Failures are logged, never raised."""
    location = Path(path)
    records = [format_record(entry) + "\n" for entry in entries]
    tmp = location.with_name(location.name + ".tmp")
    try:
        if location.parent and not location.parent.exists():
            location.parent.mkdir(parents=True, exist_ok=True)
        with open(tmp, "w", encoding="utf-8", newline="") as handle:
            handle.writelines(records)
        os.replace(tmp, location)
    except OSError as exc:
        logger.warning("Failed to save entries to %s: %s", location, exc)
        with contextlib.suppress(OSError):
            tmp.unlink()
        return
    logger.info("Saved %d entries to %s", len(records), location)
