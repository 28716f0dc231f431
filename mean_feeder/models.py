"""Shared data models for mean_feeder."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Tuple


class Category(str, Enum):
    """The two independent entry collections."""

    MAIN = "main"
    NOISY = "noisy"


@dataclass
class RawItem:
    """Item fields as found in the feed document, before normalization."""

    id: str = ""
    title: str = ""
    link: str = ""
    published: Optional[str] = None
    summary: Optional[str] = None


@dataclass(frozen=True)
class Entry:
    """Canonical feed entry shared by the store, the merge and the readers."""

    id: str
    title: str
    link: str
    published: Optional[int]  # seconds since the epoch, UTC
    feed_title: str
    summary: Optional[str] = None

    @property
    def published_at(self) -> Optional[datetime]:
        if self.published is None:
            return None
        return datetime.fromtimestamp(self.published, tz=timezone.utc)


@dataclass(frozen=True)
class FeedState:
    """Snapshot of both published collections."""

    main: Tuple[Entry, ...] = field(default_factory=tuple)
    noisy: Tuple[Entry, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        # Callers hand over lists; keep the snapshot itself immutable.
        object.__setattr__(self, "main", tuple(self.main))
        object.__setattr__(self, "noisy", tuple(self.noisy))

    def entries(self, category: Category) -> Tuple[Entry, ...]:
        if category is Category.NOISY:
            return self.noisy
        return self.main
