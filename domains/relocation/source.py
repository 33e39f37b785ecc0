"""
Watchdog-backed event source.

Subscribes recursively to the watched root and exposes the observer's
events as a blocking, unbounded stream of notifications that a single
drain loop consumes one at a time.
"""

from __future__ import annotations

import os
import queue
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Union

from loguru import logger
from watchdog.events import (
    EVENT_TYPE_CLOSED,
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    EVENT_TYPE_OPENED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from app.models.schemas import EventKind
from app.utils.errors import PathResolutionError, StreamFatalError, SubscriptionError

# Seconds between liveness checks while the queue is empty.
POLL_INTERVAL = 0.5

_FILE_KINDS: Dict[str, EventKind] = {
    EVENT_TYPE_MODIFIED: EventKind.CONTENT_MODIFIED,
    EVENT_TYPE_CLOSED: EventKind.CLOSE_AFTER_WRITE,
    EVENT_TYPE_CREATED: EventKind.CREATED,
    EVENT_TYPE_DELETED: EventKind.DELETED,
    EVENT_TYPE_MOVED: EventKind.MOVED,
    EVENT_TYPE_OPENED: EventKind.OPENED,
    "closed_no_write": EventKind.CLOSED_NO_WRITE,
}


class _EndOfStream:
    def __repr__(self) -> str:
        return "END_OF_STREAM"


END_OF_STREAM = _EndOfStream()


@dataclass
class Notification:
    """A single raw change notification."""

    raw_path: Union[str, bytes]
    kind: EventKind
    is_directory: bool = False
    released: bool = field(default=False, init=False)

    def resolve_path(self) -> Path:
        """
        Return the absolute changed path.

        Raises:
            PathResolutionError: If the raw path cannot be decoded, is not
                absolute, or no longer names anything on disk
        """
        try:
            decoded = os.fsdecode(self.raw_path)
        except (TypeError, UnicodeDecodeError) as e:
            raise PathResolutionError(f"Cannot decode path {self.raw_path!r}: {e}") from e

        if not decoded or "\x00" in decoded or not os.path.isabs(decoded):
            raise PathResolutionError(f"Not an absolute path: {decoded!r}")

        path = os.path.normpath(decoded)
        # Watches on a moved directory keep reporting its old location.
        if not os.path.lexists(path):
            raise PathResolutionError(f"Path no longer exists: {path}")

        return Path(path)

    def matches_kind(self, kind: EventKind) -> bool:
        return self.kind is kind

    def release(self) -> None:
        """Release the notification. Must be called exactly once."""
        if self.released:
            raise RuntimeError(f"Notification for {self.raw_path!r} released twice")
        self.released = True


def kind_for(event: FileSystemEvent) -> EventKind:
    """Map a watchdog event onto an EventKind."""
    if event.is_directory and event.event_type == EVENT_TYPE_MODIFIED:
        # Parent directories report a modification for every child write.
        return EventKind.DIRECTORY_MODIFIED
    return _FILE_KINDS.get(event.event_type, EventKind.OTHER)


class _QueueingHandler(FileSystemEventHandler):
    """Watchdog handler that forwards every event onto a queue."""

    def __init__(self, events: "queue.Queue[object]"):
        super().__init__()
        self.events = events

    def on_any_event(self, event: FileSystemEvent) -> None:
        self.events.put(
            Notification(
                raw_path=event.src_path,
                kind=kind_for(event),
                is_directory=event.is_directory,
            )
        )


class WatchdogEventSource:
    """Blocking notification stream over a watchdog observer."""

    def __init__(self, root: Path, observer_factory=Observer):
        """
        Initialize event source.

        Args:
            root: Directory to watch recursively
            observer_factory: Builds the watchdog observer
        """
        self.root = Path(root)
        self._events: "queue.Queue[object]" = queue.Queue()
        self._observer_factory = observer_factory
        self._observer = None
        self._closed = threading.Event()

    def start(self) -> None:
        """
        Subscribe to the watched root.

        Raises:
            SubscriptionError: If the observer cannot be scheduled or started
        """
        try:
            observer = self._observer_factory()
            observer.schedule(_QueueingHandler(self._events), str(self.root), recursive=True)
            observer.daemon = True
            observer.start()
        except Exception as e:
            raise SubscriptionError(f"Failed to watch {self.root}: {e}") from e

        self._observer = observer
        logger.success(f"Started watching: {self.root}")

    def get_next_event(self, poll_interval: float = POLL_INTERVAL):
        """
        Block until the next notification arrives.

        Returns:
            A Notification, or END_OF_STREAM once the source is closed

        Raises:
            StreamFatalError: If the observer died without being closed
        """
        while True:
            try:
                item = self._events.get(timeout=poll_interval)
            except queue.Empty:
                if self._closed.is_set():
                    return END_OF_STREAM
                self._check_alive()
                continue

            if item is END_OF_STREAM:
                return END_OF_STREAM
            if self._closed.is_set():
                item.release()
                return END_OF_STREAM
            return item

    def close(self, timeout: Optional[float] = None) -> None:
        """Stop and join the observer, then wake any blocked reader."""
        if self._closed.is_set():
            return
        self._closed.set()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout)
            logger.info("File system observer stopped")
        self._events.put(END_OF_STREAM)

    def _check_alive(self) -> None:
        observer = self._observer
        if observer is None:
            raise StreamFatalError("Event source was never started")
        if not observer.is_alive():
            raise StreamFatalError("File system observer stopped unexpectedly")
        for emitter in getattr(observer, "emitters", ()):
            if not emitter.is_alive():
                raise StreamFatalError(f"Event emitter for {emitter.watch.path} died")
