"""
Quiescent Mover - process entry point

Watches a directory for write activity and moves each top-level entry
(a file or first-level subdirectory) into a destination directory once it
has gone quiet for the configured number of seconds.
"""

from __future__ import annotations

import argparse
import signal
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from app.utils.config import load_settings, validate_roots
from app.utils.errors import FATAL_ERRORS
from app.utils.log_config import configure_logging
from domains.relocation.dispatch import EventDispatcher
from domains.relocation.registry import DebounceRegistry
from domains.relocation.relocator import Relocator
from domains.relocation.source import WatchdogEventSource


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse CLI arguments."""

    parser = argparse.ArgumentParser(
        description="Move files and directories once they have stopped being written to.",
    )
    parser.add_argument("--src", type=Path, default=None, help="Source path")
    parser.add_argument("--dst", type=Path, default=None, help="Destination path")
    parser.add_argument(
        "--wait",
        type=float,
        default=None,
        help="Number of seconds to wait for more events before moving files (default: 120).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        default=None,
        help="Verbose logging",
    )
    parser.add_argument("--log-level", default=None, help="Minimum log level (default: INFO).")

    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None, source_factory=WatchdogEventSource) -> int:
    """Entry point for the CLI."""

    args = parse_args(argv)

    source = None
    previous_handlers = {}
    try:
        settings = load_settings(
            watch_root=args.src,
            destination_root=args.dst,
            wait_seconds=args.wait,
            verbose=args.verbose,
            log_level=args.log_level,
        )
        configure_logging(settings.log_level, settings.verbose)

        watch_root, destination_root = validate_roots(settings)
        logger.info(f"Watching directory {watch_root} and moving to {destination_root}")

        registry = DebounceRegistry(
            watch_root,
            destination_root,
            settings.wait_seconds,
            Relocator(),
        )
        source = source_factory(watch_root)
        source.start()

        def _signal_handler(signum, frame):  # noqa: D401
            logger.info(f"Received signal {signum}, shutting down.")
            source.close()

        for signum in (signal.SIGINT, signal.SIGTERM):
            previous_handlers[signum] = signal.signal(signum, _signal_handler)

        EventDispatcher(source, registry, watch_root).run()

    except FATAL_ERRORS as e:
        logger.critical(f"Error: {e}")
        return 1

    finally:
        for signum, handler in previous_handlers.items():
            signal.signal(signum, handler)
        if source is not None:
            source.close()

    logger.info("Quiescent mover stopped.")
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI bridge
    sys.exit(main())
