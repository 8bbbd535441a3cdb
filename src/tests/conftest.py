"""Shared test fixtures and configuration."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from shelf.core.counts import note_id
from shelf.core.notify import NotificationBus
from shelf.core.service import CollectionService
from shelf.core.store import CollectionStore
from shelf.storage.files import FileAdapter, WriteResult


class ManualTimer:
    """Timer handle driven by ManualScheduler."""

    def __init__(self, delay: float, callback: Callable[[], object]):
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Controllable scheduler for deterministic debounce tests."""

    def __init__(self):
        self.timers: list[ManualTimer] = []

    def __call__(self, delay: float, callback: Callable[[], object]) -> ManualTimer:
        timer = ManualTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[ManualTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def fire_all(self) -> int:
        """Run every pending timer; returns how many fired."""
        fired = 0
        for timer in self.pending:
            timer.fired = True
            timer.callback()
            fired += 1
        return fired


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime | None = None):
        self.current = start or datetime(2024, 5, 1, 9, 30, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


class FailingAdapter(FileAdapter):
    """FileAdapter whose reads or writes can be made to fail."""

    def __init__(self, fail_read: bool = False, fail_write: bool = False):
        super().__init__()
        self.fail_read = fail_read
        self.fail_write = fail_write
        self.writes = 0

    def read(self, location):
        if self.fail_read:
            raise PermissionError("read denied")
        return super().read(location)

    def write(self, blob, location) -> WriteResult:
        if self.fail_write:
            raise OSError("disk full")
        self.writes += 1
        return super().write(blob, location)


@dataclass
class Note:
    """Minimal note object as handed over by the note store."""

    id: str
    title: str = ""


@pytest.fixture
def make_notes():
    """Build Note objects from ids."""

    def _make(*ids: str) -> list[Note]:
        return [Note(id=note_id, title=f"Note {note_id}") for note_id in ids]

    return _make


@pytest.fixture
def save_dir(tmp_path) -> Path:
    """Provide a temporary save location."""
    return tmp_path / "notes"


@pytest.fixture
def collections_file(save_dir) -> Path:
    """Path of the persisted collections file."""
    return save_dir / "collections.json"


@pytest.fixture
def clock():
    """Provide a controllable clock."""
    return FixedClock()


@pytest.fixture
def scheduler():
    """Provide a manual scheduler."""
    return ManualScheduler()


@pytest.fixture
def adapter():
    """Provide a file adapter that can be told to fail."""
    return FailingAdapter()


@pytest.fixture
def store(adapter, clock):
    """Provide a store backed by the temp directory."""
    return CollectionStore(adapter, clock=clock)


@pytest.fixture
def service(store, save_dir, scheduler, clock):
    """Provide a collection service with a manual scheduler."""
    svc = CollectionService(
        store,
        location_provider=lambda: save_dir,
        debounce_seconds=0.3,
        scheduler=scheduler,
        clock=clock,
    )
    yield svc
    svc.cleanup()


@pytest.fixture
def recorder():
    """Collect listener payloads."""

    class Recorder:
        def __init__(self):
            self.calls: list[list] = []

        def __call__(self, collections) -> None:
            self.calls.append(collections)

        @property
        def last(self):
            return self.calls[-1]

    return Recorder()


@pytest.fixture
def bus_factory(scheduler):
    """Create buses with a static compute function and manual scheduler."""

    def _make(compute=None, **kwargs) -> NotificationBus:
        return NotificationBus(
            compute or (lambda notes: [note_id(note) for note in notes]),
            debounce_seconds=kwargs.pop("debounce_seconds", 0.3),
            scheduler=kwargs.pop("scheduler", scheduler),
        )

    return _make
