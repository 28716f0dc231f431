"""Refresh cycle and daily scheduling for mean_feeder."""

from __future__ import annotations

import concurrent.futures
import functools
import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence

from .config import DEFAULT_DATA_FILES, DEFAULT_FEEDS, AppConfig, load_feed_list
from .feeds import Fetcher, fetch_feed_bytes, fetch_feed_entries, merge_entries
from .models import Category, Entry, FeedState
from .state import SharedState
from .store import load_entries, save_entries

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400


@dataclass
class RunConfig:
    """Runtime options for the refresh cycle."""

    feeds: Dict[Category, List[str]]
    data_files: Dict[Category, str] = field(
        default_factory=lambda: dict(DEFAULT_DATA_FILES)
    )
    fetch_hour: int = 14
    fetch_timeout: float = 30.0
    concurrency: int = 10

    @classmethod
    def from_app_config(cls, app_config: AppConfig) -> "RunConfig":
        return cls(
            feeds={
                category: load_feed_list(
                    app_config.feeds_file_for(category), DEFAULT_FEEDS[category]
                )
                for category in Category
            },
            data_files={
                category: app_config.data_file_for(category) for category in Category
            },
            fetch_hour=app_config.fetch_hour,
            fetch_timeout=app_config.fetch_timeout,
            concurrency=app_config.concurrency,
        )


def refresh(
    feed_urls: Sequence[str],
    fetch: Fetcher = fetch_feed_bytes,
    concurrency: int = 10,
) -> List[Entry]:
    """Fetch every feed and merge the results into one ordered collection.

    Feeds are fetched in parallel but merged in list order, so the first feed
    listed wins when two feeds produce the same id.
    """
    if not feed_urls:
        return []

    def process_feed(url: str) -> List[Entry]:
        try:
            return fetch_feed_entries(url, fetch=fetch)
        except Exception:
            logger.exception("Failed to process feed %s", url)
            return []

    with concurrent.futures.ThreadPoolExecutor(
        max_workers=max(1, min(concurrency, len(feed_urls)))
    ) as executor:
        per_feed = list(executor.map(process_feed, feed_urls))

    all_entries = [entry for entries in per_feed for entry in entries]
    merged = merge_entries(all_entries)
    logger.info(
        "Merged %d entries from %d feeds into %d unique entries",
        len(all_entries),
        len(feed_urls),
        len(merged),
    )
    return merged


def load_state(config: RunConfig) -> FeedState:
    """Build the start-up snapshot from the persisted files."""
    main = load_entries(config.data_files[Category.MAIN])
    noisy = load_entries(config.data_files[Category.NOISY])
    logger.info("Loaded %d main + %d noisy existing entries", len(main), len(noisy))
    return FeedState(main=main, noisy=noisy)


def refresh_all(
    state: SharedState, config: RunConfig, fetch: Optional[Fetcher] = None
) -> FeedState:
    """Run one full cycle for both categories and publish the result."""
    if fetch is None:
        fetch = functools.partial(fetch_feed_bytes, timeout=config.fetch_timeout)

    collections: Dict[Category, List[Entry]] = {}
    for category in Category:
        entries = refresh(
            config.feeds.get(category, []), fetch=fetch, concurrency=config.concurrency
        )
        save_entries(entries, config.data_files[category])
        collections[category] = entries

    new_state = FeedState(
        main=collections[Category.MAIN], noisy=collections[Category.NOISY]
    )
    state.publish(new_state)
    return new_state


def seconds_until_fetch(hour: int, now: Optional[datetime] = None) -> int:
    """Seconds from ``now`` until the next ``hour``:00 UTC.

    At or past the hour the wait wraps to the following day.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    now = now.astimezone(timezone.utc)
    today_secs = now.hour * 3600 + now.minute * 60 + now.second
    target = hour * 3600
    if today_secs < target:
        return target - today_secs
    return SECONDS_PER_DAY - today_secs + target


class RefreshScheduler:
    """Background thread that refreshes once at start, then daily."""

    def __init__(
        self,
        state: SharedState,
        config: RunConfig,
        fetch: Optional[Fetcher] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.state = state
        self.config = config
        self.fetch = fetch
        self.clock = clock
        self.cycles = 0
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError("Scheduler already started.")
        self._thread = threading.Thread(
            target=self.run, name="mean-feeder-refresh", daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        """Stop waiting for the next cycle; a running cycle still completes."""
        self._stop.set()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def run_cycle(self) -> None:
        try:
            refresh_all(self.state, self.config, fetch=self.fetch)
        except Exception:
            logger.exception("Refresh cycle failed")
        self.cycles += 1

    def run(self) -> None:
        self.run_cycle()
        while not self._stop.is_set():
            wait = seconds_until_fetch(self.config.fetch_hour, self.clock())
            logger.info(
                "Next fetch in %ds (at %02d:00 UTC)", wait, self.config.fetch_hour
            )
            if self._stop.wait(wait):
                break
            logger.info("Refreshing feeds...")
            self.run_cycle()
