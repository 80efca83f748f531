"""Interface the wheel engines use to read and append event history."""

from abc import ABC, abstractmethod
from datetime import date
from typing import Optional

from .models import MinStrikeSnapshot, WheelEvent


class EventStore(ABC):
    """
    Append-only event history plus the min-strike snapshot table.

    Every write call blocks until the data is committed. A failed write
    raises PersistenceError and leaves nothing behind.
    """

    @abstractmethod
    def append_events(self, events: list[WheelEvent]) -> list[WheelEvent]:
        """
        Append events in one transaction: all are stored or none are.

        Returns:
            The stored events with ids assigned.
        """

    def append_event(self, event: WheelEvent) -> WheelEvent:
        """Append a single event."""
        return self.append_events([event])[0]

    @abstractmethod
    def get_events(
        self, symbol: Optional[str] = None, include_inactive: bool = False
    ) -> list[WheelEvent]:
        """Events for one symbol (or all), oldest first."""

    @abstractmethod
    def upsert_snapshot(self, snapshot: MinStrikeSnapshot) -> MinStrikeSnapshot:
        """Insert the snapshot, or overwrite the row for the same (symbol, date)."""

    @abstractmethod
    def delete_snapshot(self, symbol: str, snapshot_date: date) -> bool:
        """Remove the snapshot for (symbol, date). Returns False if there was none."""
