"""Date parsing for the two timestamp grammars found in feeds.

Feeds publish dates either as fixed-width ISO 8601 / RFC 3339 strings
(``2024-01-15T10:30:00Z``, Atom) or as free-form RFC 822 / RFC 2822 strings
(``Mon, 15 Jan 2024 10:30:00 +0000``, RSS). Both are converted to seconds
since the Unix epoch. Zone names are resolved through a fixed offset table;
there is no timezone database lookup and no daylight-saving logic.
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400

MONTHS = {
    "jan": 1,
    "feb": 2,
    "mar": 3,
    "apr": 4,
    "may": 5,
    "jun": 6,
    "jul": 7,
    "aug": 8,
    "sep": 9,
    "oct": 10,
    "nov": 11,
    "dec": 12,
}

ZONE_OFFSETS = {
    "GMT": 0,
    "UTC": 0,
    "UT": 0,
    "Z": 0,
    "EST": -5 * 3600,
    "EDT": -4 * 3600,
    "CST": -6 * 3600,
    "CDT": -5 * 3600,
    "MST": -7 * 3600,
    "MDT": -6 * 3600,
    "PST": -8 * 3600,
    "PDT": -7 * 3600,
}

_INTEGER = re.compile(r"[+-]?[0-9]+")
_NUMERIC_ZONE = re.compile(r"([+-])([0-9]{2})([0-9]{2})")
_FRACTION = re.compile(r"\.[0-9]*")


class DateGrammar(Enum):
    ISO8601 = "iso8601"
    RFC822 = "rfc822"


class TimestampError(ValueError):
    """Raised when a date string cannot be converted to a timestamp."""


def _to_int(value: str, field_name: str) -> int:
    if not _INTEGER.fullmatch(value):
        raise TimestampError(f"invalid {field_name}: {value!r}")
    return int(value)


def days_from_civil(year: int, month: int, day: int) -> int:
    """Return days since 1970-01-01 for a proleptic Gregorian date."""
    if month <= 2:
        year -= 1
        month += 9
    else:
        month -= 3
    era = year // 400
    yoe = year - era * 400
    doy = (153 * month + 2) // 5 + day - 1
    doe = yoe * 365 + yoe // 4 - yoe // 100 + doy
    return era * 146097 + doe - 719468


def _to_epoch(year: int, month: int, day: int, hour: int, minute: int, second: int) -> int:
    return (
        days_from_civil(year, month, day) * SECONDS_PER_DAY
        + hour * 3600
        + minute * 60
        + second
    )


def detect_grammar(value: str) -> DateGrammar:
    """Pick the grammar by looking at fixed character positions."""
    value = value.strip()
    if len(value) >= 19 and value[4] == "-" and value[10] == "T":
        return DateGrammar.ISO8601
    return DateGrammar.RFC822


def parse_iso8601(value: str) -> int:
    """Parse ``YYYY-MM-DDTHH:MM:SS`` with an optional ``Z`` or ``+HH:MM`` suffix."""
    value = value.strip()
    if len(value) < 19:
        raise TimestampError(f"too short for ISO 8601: {value!r}")

    timestamp = _to_epoch(
        _to_int(value[0:4], "year"),
        _to_int(value[5:7], "month"),
        _to_int(value[8:10], "day"),
        _to_int(value[11:13], "hour"),
        _to_int(value[14:16], "minute"),
        _to_int(value[17:19], "second"),
    )

    rest = value[19:]
    fraction = _FRACTION.match(rest)
    if fraction:
        rest = rest[fraction.end():]

    offset = 0
    if rest[:1] in ("Z", "z"):
        offset = 0
    elif len(rest) >= 6 and rest[0] in "+-":
        sign = -1 if rest[0] == "-" else 1
        hours = _to_int(rest[1:3], "zone hours")
        minutes = _to_int(rest[4:6], "zone minutes")
        offset = sign * (hours * 3600 + minutes * 60)

    return timestamp - offset


def zone_offset(token: str) -> int:
    """Resolve a zone token to an offset in seconds east of UTC.

    Unknown tokens resolve to UTC.
    """
    named = ZONE_OFFSETS.get(token.upper())
    if named is not None:
        return named
    match = _NUMERIC_ZONE.fullmatch(token)
    if match:
        sign = -1 if match.group(1) == "-" else 1
        return sign * (int(match.group(2)) * 3600 + int(match.group(3)) * 60)
    return 0


def parse_rfc822(value: str) -> int:
    """Parse ``[Day,] DD Mon YYYY HH:MM:SS [zone]``."""
    value = value.strip()
    if "," in value:
        value = value[value.index(",") + 1 :].strip()

    parts = value.split()
    if len(parts) < 4:
        raise TimestampError(f"too few fields: {value!r}")

    day = _to_int(parts[0], "day")
    month = MONTHS.get(parts[1].lower())
    if month is None:
        raise TimestampError(f"unknown month: {parts[1]!r}")
    year = _to_int(parts[2], "year")

    clock = parts[3].split(":")
    if len(clock) < 3:
        raise TimestampError(f"invalid clock: {parts[3]!r}")
    hour = _to_int(clock[0], "hour")
    minute = _to_int(clock[1], "minute")
    second = _to_int(clock[2], "second")

    offset = zone_offset(parts[4]) if len(parts) > 4 else 0
    return _to_epoch(year, month, day, hour, minute, second) - offset


def parse_timestamp(value: str) -> Optional[int]:
    """Return epoch seconds for a feed date string, or ``None`` if unparsable."""
    grammar = detect_grammar(value)
    try:
        if grammar is DateGrammar.ISO8601:
            return parse_iso8601(value)
        return parse_rfc822(value)
    except TimestampError as exc:
        logger.debug("Unparsable %s date %r: %s", grammar.value, value, exc)
        return None
