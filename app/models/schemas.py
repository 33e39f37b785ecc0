"""
Shared data models for Quiescent Mover.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field


# A bare filename under the watched root, or the name of a first-level
# subdirectory.
WatchKey = str


# =====================================================
# Event Models
# =====================================================

class EventKind(str, Enum):
    """Kinds of change a notification can carry."""
    CONTENT_MODIFIED = "content_modified"
    CLOSE_AFTER_WRITE = "close_after_write"
    CREATED = "created"
    DELETED = "deleted"
    MOVED = "moved"
    OPENED = "opened"
    CLOSED_NO_WRITE = "closed_no_write"
    DIRECTORY_MODIFIED = "directory_modified"
    OTHER = "other"


QUALIFYING_KINDS = frozenset({EventKind.CONTENT_MODIFIED, EventKind.CLOSE_AFTER_WRITE})


# =====================================================
# Relocation Models
# =====================================================

@dataclass(frozen=True, slots=True)
class ExpiryBundle:
    """Everything a relocation needs, fixed when the timer is created."""

    key: WatchKey
    source_root: Path
    destination_root: Path


class RelocationOutcome(BaseModel):
    """Result of a single relocation attempt."""
    key: str
    source: Path
    destination: Path
    success: bool
    error: Optional[str] = None
    finished_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
