"""Map changed paths onto the top-level entry they belong to."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Union

from app.models.schemas import WatchKey

PathLike = Union[str, Path]


def classify(changed_path: PathLike, watched_root: PathLike) -> WatchKey:
    """
    Return the watch key for ``changed_path``.

    A path directly under ``watched_root`` maps to its own filename; anything
    deeper maps to the name of the first-level subdirectory it lives in.
    ``changed_path`` must lie within ``watched_root``.
    """
    directory, name = os.path.split(os.fspath(changed_path))
    relative = os.path.relpath(directory, os.fspath(watched_root))

    if relative == os.curdir:
        return name
    return relative.split(os.sep)[0]


def is_within(path: PathLike, watched_root: PathLike) -> bool:
    """True if ``path`` lies strictly below ``watched_root``."""

    try:
        relative = Path(path).relative_to(Path(watched_root))
    except ValueError:
        return False
    return relative != Path(os.curdir) and os.pardir not in relative.parts
