"""Configuration loading for mean_feeder."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence
from xml.etree import ElementTree as ET

from .models import Category

logger = logging.getLogger(__name__)

DEFAULT_FEEDS = {
    Category.MAIN: ("https://lobste.rs/rss",),
    Category.NOISY: ("https://hnrss.org/frontpage",),
}

DEFAULT_DATA_FILES = {
    Category.MAIN: "entries.tsv",
    Category.NOISY: "noisy-entries.tsv",
}


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: Optional[str] = None


@dataclass
class AppConfig:
    feeds_file: Optional[str] = None
    noisy_feeds_file: Optional[str] = None
    data_file: str = DEFAULT_DATA_FILES[Category.MAIN]
    noisy_data_file: str = DEFAULT_DATA_FILES[Category.NOISY]
    fetch_hour: int = 14
    fetch_timeout: float = 30.0
    concurrency: int = 10
    page_size: int = 10
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def feeds_file_for(self, category: Category) -> Optional[str]:
        if category is Category.NOISY:
            return self.noisy_feeds_file
        return self.feeds_file

    def data_file_for(self, category: Category) -> str:
        if category is Category.NOISY:
            return self.noisy_data_file
        return self.data_file


def validate_fetch_hour(hour: int) -> int:
    if not 0 <= hour <= 23:
        raise ValueError(f"fetch hour must be between 0 and 23, got {hour}")
    return hour


def load_feed_list(path: Optional[str], defaults: Sequence[str]) -> List[str]:
    """Read newline-separated feed URLs, falling back to ``defaults``.

    The defaults are used when the path is unset, unreadable or lists no
    feeds.
    """
    if path:
        try:
            contents = Path(path).read_text(encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not read feed list %s: %s", path, exc)
        else:
            feeds = [line.strip() for line in contents.splitlines() if line.strip()]
            if feeds:
                logger.info("Loaded %d feeds from %s", len(feeds), path)
                return feeds
            logger.warning("Feed list %s is empty", path)

    logger.info("Using %d default feeds", len(defaults))
    return list(defaults)


def _resolve_path(base_path: Path, target_path: str) -> str:
    """Resolve a path relative to the base config file if it's not absolute."""
    target = Path(target_path)
    if target.is_absolute():
        return str(target)
    return str((base_path.parent / target).resolve())


def _optional_path(root: ET.Element, tag: str, config_path: Path) -> Optional[str]:
    value = root.findtext(tag)
    if value is None or not value.strip():
        return None
    return _resolve_path(config_path, value.strip())


def parse_app_config(path: str) -> AppConfig:
    """Parse the main application configuration XML."""
    config_path = Path(path).resolve()
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    logger.info("Loading application configuration from %s", config_path)
    tree = ET.parse(config_path)
    root = tree.getroot()

    config = AppConfig(
        feeds_file=_optional_path(root, "feeds", config_path),
        noisy_feeds_file=_optional_path(root, "noisy-feeds", config_path),
    )

    data_file = _optional_path(root, "data-file", config_path)
    if data_file:
        config.data_file = data_file
    noisy_data_file = _optional_path(root, "noisy-data-file", config_path)
    if noisy_data_file:
        config.noisy_data_file = noisy_data_file

    try:
        config.fetch_hour = validate_fetch_hour(int(root.findtext("fetch-hour", "14")))
        config.fetch_timeout = float(root.findtext("fetch-timeout", "30"))
        config.concurrency = int(root.findtext("concurrency", "10"))
        config.page_size = int(root.findtext("page-size", "10"))
    except ValueError as exc:
        raise ValueError(f"Invalid value in {config_path}: {exc}") from exc

    if config.concurrency < 1:
        raise ValueError("concurrency must be at least 1.")
    if config.page_size < 1:
        raise ValueError("page-size must be at least 1.")

    # Logging
    log_node = root.find("logging")
    if log_node is not None:
        config.logging.level = log_node.findtext("level", "INFO")
        log_file = log_node.findtext("file")
        if log_file:
            config.logging.file = _resolve_path(config_path, log_file)

    return config
