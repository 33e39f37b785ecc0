"""
Error kinds for Quiescent Mover.

Fatal kinds stop the process before or during watching; the rest are
reported per notification or per relocation and processing continues.
"""

from pathlib import Path
from typing import Optional


class MoverError(Exception):
    """Base class for all mover errors."""


class StartupConfigError(MoverError):
    """Roots are missing or invalid. Fatal."""


class SubscriptionError(MoverError):
    """The event source could not be set up on the watched root. Fatal."""


class StreamFatalError(MoverError):
    """The event source failed mid-stream. Fatal, no reconnect."""


class PathResolutionError(MoverError):
    """A single notification's path could not be resolved."""


class RelocationError(MoverError):
    """Moving a watch key from source to destination failed."""

    def __init__(
        self,
        key: str,
        source: Path,
        destination: Path,
        cause: Optional[BaseException] = None,
    ):
        self.key = key
        self.source = source
        self.destination = destination
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Error moving {source} to {destination}{detail}")


FATAL_ERRORS = (StartupConfigError, SubscriptionError, StreamFatalError)
