"""
Debounce registry: one quiescence timer per watch key.

Every qualifying write event arms or resets the timer for its key. When a
timer's deadline passes with no further events, the key is retired from the
registry and handed to the relocator. Retirement happens before the move
starts, so a write that lands mid-move begins a new, independent cycle.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional

from loguru import logger

from app.models.schemas import ExpiryBundle, RelocationOutcome, WatchKey
from domains.relocation.relocator import Relocator


@dataclass(slots=True)
class QuiescenceTimer:
    """Registry-owned countdown for a single watch key."""

    key: WatchKey
    deadline: float
    bundle: ExpiryBundle
    armed: bool = True
    resets: int = 0


def _spawn_daemon(target: Callable[[], None], name: str) -> None:
    thread = threading.Thread(target=target, name=name, daemon=True)
    thread.start()


class DebounceRegistry:
    """Keyed set of quiescence timers guarded by a single lock."""

    def __init__(
        self,
        source_root: Path,
        destination_root: Path,
        wait_for: float,
        relocator: Optional[Relocator] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        spawn: Callable[[Callable[[], None], str], None] = _spawn_daemon,
    ):
        """
        Initialize registry.

        Args:
            source_root: Watched root that keys are relative to
            destination_root: Root that expired keys are moved into
            wait_for: Quiescence duration in seconds
            relocator: Performs the move on expiry
            clock: Monotonic time source
            sleep: Blocking sleep used by countdown tasks
            spawn: Starts a countdown task; receives the callable and a name
        """
        self.source_root = Path(source_root)
        self.destination_root = Path(destination_root)
        self.wait_for = float(wait_for)
        self.relocator = relocator or Relocator()

        self._clock = clock
        self._sleep = sleep
        self._spawn = spawn
        self._timers: Dict[WatchKey, QuiescenceTimer] = {}
        self._lock = threading.Lock()

    def on_event(self, key: WatchKey) -> QuiescenceTimer:
        """Arm a timer for ``key`` or push its deadline out by ``wait_for``."""
        with self._lock:
            deadline = self._clock() + self.wait_for
            timer = self._timers.get(key)

            if timer is None:
                timer = QuiescenceTimer(
                    key=key,
                    deadline=deadline,
                    bundle=ExpiryBundle(key, self.source_root, self.destination_root),
                )
                self._timers[key] = timer
                created = True
            else:
                timer.deadline = deadline
                timer.resets += 1
                created = False

        if created:
            logger.info(f"New content detected, watching: {key}")
            try:
                self._spawn(lambda: self._countdown(timer), f"quiescence-{key}")
            except Exception:
                # No countdown means the key would never move; forget it so
                # the next event can try again.
                with self._lock:
                    if self._timers.get(key) is timer:
                        self._retire(timer)
                raise
        else:
            logger.debug(f"Received an event, so resetting the timer for {key}")
        return timer

    def expire(self, key: WatchKey) -> Optional[RelocationOutcome]:
        """
        Retire ``key`` if its deadline has passed and relocate it.

        Returns:
            The relocation outcome, or None if no due timer exists for ``key``
        """
        with self._lock:
            timer = self._timers.get(key)
            if timer is None or self._remaining(timer) > 0:
                return None
            self._retire(timer)

        return self._hand_off(timer.bundle)

    def _countdown(self, timer: QuiescenceTimer) -> None:
        while True:
            with self._lock:
                if self._timers.get(timer.key) is not timer:
                    return
                remaining = self._remaining(timer)
                if remaining <= 0:
                    self._retire(timer)
                    break
            self._sleep(remaining)

        self._hand_off(timer.bundle)

    def _remaining(self, timer: QuiescenceTimer) -> float:
        return timer.deadline - self._clock()

    def _retire(self, timer: QuiescenceTimer) -> None:
        # Caller holds the lock.
        timer.armed = False
        del self._timers[timer.key]

    def _hand_off(self, bundle: ExpiryBundle) -> Optional[RelocationOutcome]:
        try:
            return self.relocator.relocate(
                bundle.key, bundle.source_root, bundle.destination_root
            )
        except Exception:
            logger.exception(f"Relocation handler failed for: {bundle.key}")
            return None

    # Introspection -----------------------------------------------------------------

    def __len__(self) -> int:
        with self._lock:
            return len(self._timers)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._timers

    def pending_keys(self) -> List[WatchKey]:
        """Return the keys that currently have an armed timer."""
        with self._lock:
            return sorted(self._timers)

    def deadline_for(self, key: WatchKey) -> Optional[float]:
        """Return the current deadline for ``key`` on the registry clock."""
        with self._lock:
            timer = self._timers.get(key)
            return timer.deadline if timer is not None else None
