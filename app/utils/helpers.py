"""
Helper utilities for Quiescent Mover.

Common path functions used across domains.
"""

from pathlib import Path


def normalise_path(path: Path) -> Path:
    """Return a resolved version of ``path`` without forcing existence."""

    try:
        return path.expanduser().resolve()
    except FileNotFoundError:
        return path.expanduser().absolute()


def is_existing_dir(path: Path) -> bool:
    """Check that ``path`` exists and is a directory."""
    try:
        return path.is_dir()
    except OSError:
        return False
