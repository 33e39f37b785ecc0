"""Atomic move of a quiescent entry into the destination tree."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, Optional

from loguru import logger

from app.models.schemas import RelocationOutcome, WatchKey
from app.utils.errors import RelocationError


class Relocator:
    """Renames ``source_root/key`` to ``destination_root/key``."""

    def __init__(
        self,
        on_relocated: Optional[Callable[[RelocationOutcome], None]] = None,
        rename: Callable[[Path, Path], None] = os.rename,
    ) -> None:
        self.on_relocated = on_relocated
        self._rename = rename

    def relocate(
        self,
        key: WatchKey,
        source_root: Path,
        destination_root: Path,
    ) -> RelocationOutcome:
        """
        Move one watch key.

        Failures are logged and returned as an unsuccessful outcome, never
        raised, so other keys keep moving.
        """
        source = Path(source_root) / key
        destination = Path(destination_root) / key

        logger.info(f"Timer expired, moving file or directory: {key}")

        try:
            self._rename(source, destination)
        except OSError as e:
            error = RelocationError(key, source, destination, cause=e)
            logger.error(str(error))
            outcome = RelocationOutcome(
                key=key,
                source=source,
                destination=destination,
                success=False,
                error=str(error),
            )
        else:
            logger.success(f"Moved {source} -> {destination}")
            outcome = RelocationOutcome(
                key=key,
                source=source,
                destination=destination,
                success=True,
            )

        if self.on_relocated is not None:
            self.on_relocated(outcome)
        return outcome
