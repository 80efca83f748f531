"""Shared fixtures for wheel tests."""

import os
import tempfile
from dataclasses import replace
from datetime import date
from typing import Generator, Optional

import pytest

from src.wheel.exceptions import PersistenceError
from src.wheel.models import MinStrikeSnapshot, WheelEvent
from src.wheel.state import EventType
from src.wheel.store import EventStore


class InMemoryStore(EventStore):
    """Event store kept in a list, with write counting and failure injection."""

    def __init__(self) -> None:
        self.events: list[WheelEvent] = []
        self.snapshots: dict[tuple[str, date], MinStrikeSnapshot] = {}
        self.write_calls = 0
        self.fail_writes = False

    def append_events(self, events: list[WheelEvent]) -> list[WheelEvent]:
        self.write_calls += 1
        if self.fail_writes:
            raise PersistenceError("simulated write failure")
        stored = []
        for event in events:
            event_id = len(self.events) + len(stored) + 1
            sequence = event.sequence if event.sequence is not None else event_id
            stored.append(replace(event, id=event_id, sequence=sequence))
        self.events.extend(stored)
        return stored

    def get_events(
        self, symbol: Optional[str] = None, include_inactive: bool = False
    ) -> list[WheelEvent]:
        found = [
            e
            for e in self.events
            if (symbol is None or e.symbol == symbol.upper())
            and (include_inactive or e.is_active)
        ]
        return sorted(found, key=lambda e: (e.event_date, e.sequence, e.id))

    def upsert_snapshot(self, snapshot: MinStrikeSnapshot) -> MinStrikeSnapshot:
        self.write_calls += 1
        if self.fail_writes:
            raise PersistenceError("simulated write failure")
        key = (snapshot.symbol, snapshot.snapshot_date)
        existing = self.snapshots.get(key)
        stored = replace(snapshot, id=existing.id if existing else len(self.snapshots) + 1)
        self.snapshots[key] = stored
        return stored

    def delete_snapshot(self, symbol: str, snapshot_date: date) -> bool:
        self.write_calls += 1
        if self.fail_writes:
            raise PersistenceError("simulated write failure")
        return self.snapshots.pop((symbol.upper(), snapshot_date), None) is not None


@pytest.fixture
def memory_store() -> InMemoryStore:
    """Empty in-memory event store."""
    return InMemoryStore()


@pytest.fixture
def temp_db() -> Generator[str, None, None]:
    """Create a temporary database path for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield os.path.join(tmpdir, "test.db")


@pytest.fixture
def make_event():
    """Factory for events on AAPL with sensible option defaults."""

    def _make(event_type: EventType, event_date: date, **kwargs) -> WheelEvent:
        kwargs.setdefault("symbol", "AAPL")
        return WheelEvent(event_type=event_type, event_date=event_date, **kwargs)

    return _make
