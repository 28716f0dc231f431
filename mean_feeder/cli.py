"""Command-line interface for the mean_feeder application."""

from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import pprint
from pathlib import Path
from typing import List, Optional, Sequence

from .config import AppConfig, parse_app_config, validate_fetch_hour
from .models import Entry, FeedState
from .runner import RefreshScheduler, RunConfig, load_state, refresh_all
from .state import SharedState, paginate

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(
        description="Aggregate RSS/Atom feeds and refresh them once a day."
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to the configuration XML file. Built-in defaults when omitted.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (e.g. DEBUG, INFO, WARNING). Overrides config.",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Optional path to a log file. Overrides config.",
    )
    parser.add_argument(
        "--fetch-hour",
        type=int,
        default=None,
        help="UTC hour (0-23) of the daily refresh. Overrides config.",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single refresh cycle, print the entries as JSON and exit.",
    )
    parser.add_argument(
        "--page",
        type=int,
        default=None,
        help="With --once, print only this 1-based page of each collection.",
    )
    return parser


def configure_logging(level_name: str, log_file: Optional[str] = None) -> None:
    """Initialise logging according to options."""
    log_level = getattr(logging, level_name.upper(), None)
    if not isinstance(log_level, int):
        raise ValueError(f"Unsupported log level: {level_name}")

    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    root_logger.setLevel(log_level)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    root_logger.addHandler(stream_handler)

    if log_file:
        log_path = Path(log_file)
        if log_path.parent and not log_path.parent.exists():
            log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)
        logger.debug(
            "Logger initialised with level %s and file output to %s",
            level_name.upper(),
            log_path,
        )
    else:
        logger.debug(
            "Logger initialised with console output at level %s", level_name.upper()
        )


def select_page(
    entries: Sequence[Entry], page_size: int, page: Optional[int] = None
) -> Sequence[Entry]:
    """Return one page of entries, or all of them when no page is given."""
    if page is None:
        return entries
    pages = paginate(entries, page_size)
    if 1 <= page <= len(pages):
        return pages[page - 1]
    return ()


def snapshot_to_json(
    snapshot: FeedState, page_size: int = 10, page: Optional[int] = None
) -> str:
    payload = {
        "main": [
            dataclasses.asdict(entry)
            for entry in select_page(snapshot.main, page_size, page)
        ],
        "noisy": [
            dataclasses.asdict(entry)
            for entry in select_page(snapshot.noisy, page_size, page)
        ],
    }
    return json.dumps(payload, indent=2, ensure_ascii=False)


def serve(scheduler: RefreshScheduler) -> None:
    """Run the scheduler until interrupted."""
    scheduler.start()
    try:
        scheduler.join()
    except KeyboardInterrupt:
        logger.info("Interrupted; stopping scheduler.")
        scheduler.stop()


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        app_config = parse_app_config(args.config) if args.config else AppConfig()

        log_level = args.log_level or app_config.logging.level
        log_file = args.log_file or app_config.logging.file
        configure_logging(log_level, log_file)

        if args.fetch_hour is not None:
            app_config.fetch_hour = validate_fetch_hour(args.fetch_hour)

        config = RunConfig.from_app_config(app_config)
        logger.info(
            "Active Configuration:\n%s", pprint.pformat(dataclasses.asdict(config))
        )

        state = SharedState(load_state(config))

        if args.once:
            refresh_all(state, config)
            print(
                snapshot_to_json(
                    state.current(), page_size=app_config.page_size, page=args.page
                )
            )
            return 0

        serve(RefreshScheduler(state, config))
    except ValueError as exc:
        parser.error(str(exc))
    except (RuntimeError, FileNotFoundError) as exc:
        logger.error("%s", exc)
        return 1
    except Exception:  # noqa: BLE001
        logger.exception("Unexpected error during execution.")
        return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
