"""Holder for the currently published feed snapshot."""

from __future__ import annotations

import logging
import threading
from typing import List, Sequence, TypeVar

from .models import FeedState

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SharedState:
    """Single-writer cell for the published ``FeedState``.

    Readers take the current reference without locking; the snapshot is
    immutable, so a reader either sees the old value or the new one. The
    writer lock only covers the reference swap.
    """

    def __init__(self, initial: FeedState | None = None) -> None:
        self._state = initial if initial is not None else FeedState()
        self._write_lock = threading.Lock()

    def current(self) -> FeedState:
        return self._state

    def publish(self, new_state: FeedState) -> FeedState:
        """Replace the snapshot and return the one it superseded."""
        with self._write_lock:
            previous = self._state
            self._state = new_state
        logger.info(
            "Published %d main + %d noisy entries",
            len(new_state.main),
            len(new_state.noisy),
        )
        return previous


def paginate(entries: Sequence[T], page_size: int) -> List[Sequence[T]]:
    """Split a collection into consecutive pages of ``page_size`` items."""
    if page_size <= 0:
        raise ValueError("page_size must be positive.")
    return [entries[i : i + page_size] for i in range(0, len(entries), page_size)]
