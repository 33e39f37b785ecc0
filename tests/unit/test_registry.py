import threading
import time
from pathlib import Path

import pytest

from app.models.schemas import RelocationOutcome
from domains.relocation.registry import DebounceRegistry

SRC = Path("/src")
DST = Path("/dst")


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingRelocator:
    """Stands in for Relocator and records when each key was moved."""

    def __init__(self, clock=None, on_relocate=None, fail=False):
        self.clock = clock
        self.on_relocate = on_relocate
        self.fail = fail
        self.calls = []

    def relocate(self, key, source_root, destination_root):
        self.calls.append((key, source_root, destination_root, self.clock() if self.clock else None))
        if self.on_relocate is not None:
            self.on_relocate(key)
        return RelocationOutcome(
            key=key,
            source=source_root / key,
            destination=destination_root / key,
            success=not self.fail,
            error="boom" if self.fail else None,
        )


class ManualSpawn:
    """Collects countdown tasks instead of starting threads."""

    def __init__(self):
        self.tasks = []

    def __call__(self, target, name):
        self.tasks.append((name, target))


def make_registry(wait_for=2.0, **relocator_kwargs):
    clock = FakeClock()
    spawn = ManualSpawn()
    relocator = RecordingRelocator(clock=clock, **relocator_kwargs)
    registry = DebounceRegistry(
        SRC,
        DST,
        wait_for,
        relocator,
        clock=clock,
        sleep=clock.advance,
        spawn=spawn,
    )
    return registry, clock, spawn, relocator


def test_first_event_arms_timer_at_now_plus_wait():
    registry, clock, spawn, _ = make_registry()
    clock.now = 10.0

    timer = registry.on_event("a.txt")

    assert timer.armed
    assert registry.deadline_for("a.txt") == 12.0
    assert registry.pending_keys() == ["a.txt"]
    assert [name for name, _ in spawn.tasks] == ["quiescence-a.txt"]


def test_repeated_events_reset_single_entry():
    registry, clock, spawn, _ = make_registry()

    for _ in range(5):
        registry.on_event("batch")
        clock.advance(0.5)

    assert len(registry) == 1
    assert len(spawn.tasks) == 1
    assert registry.deadline_for("batch") == 2.0 + 2.0
    assert registry.on_event("batch").resets == 5


def test_expire_before_deadline_does_nothing():
    registry, clock, _, relocator = make_registry()
    registry.on_event("a.txt")

    clock.advance(1.999)

    assert registry.expire("a.txt") is None
    assert "a.txt" in registry
    assert relocator.calls == []


def test_expire_unknown_key_returns_none():
    registry, _, _, relocator = make_registry()
    assert registry.expire("missing") is None
    assert relocator.calls == []


def test_events_at_zero_and_one_move_at_three():
    registry, clock, _, relocator = make_registry(wait_for=2.0)

    registry.on_event("a.txt")
    clock.advance(1)
    registry.on_event("a.txt")

    clock.now = 2.0
    assert registry.expire("a.txt") is None

    clock.now = 3.0
    outcome = registry.expire("a.txt")

    assert outcome is not None and outcome.success
    assert outcome.source == SRC / "a.txt"
    assert outcome.destination == DST / "a.txt"
    assert relocator.calls == [("a.txt", SRC, DST, 3.0)]
    assert "a.txt" not in registry


def test_countdown_follows_resets_to_latest_deadline():
    registry, clock, spawn, relocator = make_registry(wait_for=2.0)

    registry.on_event("a.txt")
    clock.advance(1)
    registry.on_event("a.txt")

    _, countdown = spawn.tasks[0]
    countdown()

    assert relocator.calls == [("a.txt", SRC, DST, 3.0)]
    assert len(registry) == 0


def test_reset_during_countdown_sleep_extends_wait():
    registry, clock, spawn, relocator = make_registry(wait_for=2.0)
    registry.on_event("a.txt")
    sleeps = []

    def sleep(seconds):
        sleeps.append(seconds)
        if len(sleeps) == 1:
            clock.advance(1.5)
            registry.on_event("a.txt")
            clock.advance(seconds - 1.5)
        else:
            clock.advance(seconds)

    registry._sleep = sleep
    _, countdown = spawn.tasks[0]
    countdown()

    assert sleeps == [2.0, 1.5]
    assert relocator.calls == [("a.txt", SRC, DST, 3.5)]


def test_reset_that_wins_the_race_prevents_fire():
    registry, clock, _, relocator = make_registry()
    registry.on_event("a.txt")

    # Deadline reached, but the next event takes the lock before expiry does.
    clock.advance(2.0)
    registry.on_event("a.txt")

    assert registry.expire("a.txt") is None
    assert relocator.calls == []
    assert registry.deadline_for("a.txt") == 4.0


def test_stale_countdown_does_not_retire_a_newer_timer():
    registry, clock, spawn, relocator = make_registry()
    registry.on_event("a.txt")
    clock.advance(2.0)
    registry.expire("a.txt")

    registry.on_event("a.txt")
    _, stale = spawn.tasks[0]
    stale()

    assert "a.txt" in registry
    assert len(relocator.calls) == 1


def test_event_during_relocation_starts_fresh_cycle():
    registry, clock, spawn, _ = make_registry()
    seen_during_move = []

    def rewrite(key):
        seen_during_move.append(key in registry)
        registry.on_event(key)

    registry.relocator.on_relocate = rewrite
    registry.on_event("batch")
    clock.advance(2.0)
    registry.expire("batch")

    assert seen_during_move == [False]
    assert "batch" in registry
    assert registry.deadline_for("batch") == 4.0
    assert len(spawn.tasks) == 2


def test_failed_relocation_is_not_retried():
    registry, clock, spawn, relocator = make_registry(fail=True)
    registry.on_event("a.txt")
    clock.advance(2.0)

    outcome = registry.expire("a.txt")

    assert outcome is not None and not outcome.success
    assert len(registry) == 0
    assert len(spawn.tasks) == 1
    assert len(relocator.calls) == 1


def test_relocator_exception_still_retires_key():
    registry, clock, _, _ = make_registry()

    class Exploding:
        def relocate(self, key, source_root, destination_root):
            raise RuntimeError("boom")

    registry.relocator = Exploding()
    registry.on_event("a.txt")
    clock.advance(2.0)

    assert registry.expire("a.txt") is None
    assert "a.txt" not in registry


def test_timers_carry_their_own_roots():
    registry, clock, _, relocator = make_registry()
    timer = registry.on_event("a.txt")

    registry.source_root = Path("/elsewhere")
    clock.advance(2.0)
    registry.expire("a.txt")

    assert timer.bundle.source_root == SRC
    assert relocator.calls[0][1] == SRC


def test_burst_with_real_threads_moves_once_after_last_event():
    moved = []
    done = threading.Event()

    class Relocator:
        def relocate(self, key, source_root, destination_root):
            moved.append((key, time.monotonic()))
            done.set()

    wait_for = 0.3
    registry = DebounceRegistry(SRC, DST, wait_for, Relocator())

    for _ in range(6):
        last_event = time.monotonic()
        registry.on_event("a.txt")
        time.sleep(0.05)

    assert done.wait(5)
    time.sleep(wait_for)

    assert len(moved) == 1
    assert moved[0][1] >= last_event + wait_for
    assert len(registry) == 0


def test_distinct_keys_from_many_threads_each_move_once():
    moved = []
    lock = threading.Lock()

    class Relocator:
        def relocate(self, key, source_root, destination_root):
            with lock:
                moved.append(key)

    registry = DebounceRegistry(SRC, DST, 0.1, Relocator())
    keys = [f"file-{i}" for i in range(20)]

    def hammer(key):
        for _ in range(10):
            registry.on_event(key)

    threads = [threading.Thread(target=hammer, args=(key,)) for key in keys]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    deadline = time.monotonic() + 5
    while len(registry) and time.monotonic() < deadline:
        time.sleep(0.05)
    time.sleep(0.2)

    assert sorted(moved) == sorted(keys)


def test_key_is_forgotten_when_countdown_cannot_start():
    registry, clock, spawn, _ = make_registry()

    def refuse(target, name):
        raise RuntimeError("can't start new thread")

    registry._spawn = refuse
    with pytest.raises(RuntimeError):
        registry.on_event("a.txt")

    assert "a.txt" not in registry

    registry._spawn = spawn
    registry.on_event("a.txt")

    assert "a.txt" in registry
    assert len(spawn.tasks) == 1
