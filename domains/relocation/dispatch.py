"""
Event dispatch: drains the event source into the debounce registry.

Notifications are handled strictly one at a time in arrival order. Only
content modifications and close-after-write events for paths under the
watched root reach the registry; everything else is dropped.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from loguru import logger

from app.models.schemas import QUALIFYING_KINDS, WatchKey
from app.utils.errors import PathResolutionError
from domains.relocation.classifier import classify, is_within
from domains.relocation.registry import DebounceRegistry
from domains.relocation.source import END_OF_STREAM


class EventDispatcher:
    """Binds an event source to a debounce registry."""

    def __init__(self, source, registry: DebounceRegistry, watch_root: Path):
        """
        Initialize dispatcher.

        Args:
            source: Anything with a blocking ``get_next_event()``
            registry: Registry that receives qualifying watch keys
            watch_root: Root that notifications must lie under
        """
        self.source = source
        self.registry = registry
        self.watch_root = Path(watch_root)
        self.handled = 0

    def run(self) -> int:
        """
        Drain the source until it reports end of stream.

        Errors raised by the source itself propagate; a broken subscription
        is not recovered here.

        Returns:
            Number of notifications handled
        """
        while True:
            notification = self.source.get_next_event()
            if notification is END_OF_STREAM:
                logger.info("Event stream closed")
                return self.handled
            if notification is None:
                continue
            self.handle(notification)

    def handle(self, notification) -> Optional[WatchKey]:
        """
        Route one notification, releasing it afterwards.

        Returns:
            The watch key passed to the registry, or None if dropped
        """
        self.handled += 1
        try:
            return self._route(notification)
        finally:
            notification.release()

    def _route(self, notification) -> Optional[WatchKey]:
        try:
            path = notification.resolve_path()
        except PathResolutionError as e:
            logger.warning(f"Error getting path for event: {e}")
            return None

        # Filter out events not related to our source path
        if not is_within(path, self.watch_root):
            return None

        logger.debug(f"Received an event for {path}")

        if not any(notification.matches_kind(kind) for kind in QUALIFYING_KINDS):
            return None

        key = classify(path, self.watch_root)
        self.registry.on_event(key)
        return key
