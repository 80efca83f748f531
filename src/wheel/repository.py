"""SQLite persistence layer for wheel event history and snapshots."""

import logging
import os
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime
from typing import Iterator, Optional

from .exceptions import EventNotFoundError, PersistenceError, ValidationError
from .models import EntryMeta, MinStrikeSnapshot, WheelEvent
from .state import EventStatus, EventType
from .store import EventStore

logger = logging.getLogger(__name__)

_EVENT_COLUMNS = (
    "symbol, event_type, event_date, amount, strike, expiration, premium_per_share, "
    "contracts, shares, price, fees, description, meta, roll_group, status, "
    "superseded_by, status_reason, created_at, sequence"
)


class WheelRepository(EventStore):
    """SQLite persistence for wheel events and min-strike snapshots."""

    def __init__(self, db_path: str = "~/.wheel_tracker/wheel.db"):
        """
        Initialize the repository.

        Args:
            db_path: Path to SQLite database file. Supports ~ expansion.
        """
        self.db_path = os.path.expanduser(db_path)
        self._ensure_directory()
        self._init_database()

    def _ensure_directory(self) -> None:
        """Create database directory if it doesn't exist."""
        db_dir = os.path.dirname(self.db_path)
        if db_dir and not os.path.exists(db_dir):
            os.makedirs(db_dir, exist_ok=True)
            logger.info(f"Created database directory: {db_dir}")

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """
        Context manager for a database transaction.

        Commits on success and rolls back on any error. SQLite errors are
        raised as PersistenceError.
        """
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise PersistenceError(f"Cannot open database {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error(f"Database operation failed, rolled back: {e}")
            raise PersistenceError(f"Database operation failed: {e}") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_database(self) -> None:
        """Create tables if they don't exist."""
        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS wheel_events (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    symbol TEXT NOT NULL,
                    event_type TEXT NOT NULL,
                    event_date TEXT NOT NULL,
                    amount REAL NOT NULL DEFAULT 0,
                    strike REAL,
                    expiration TEXT,
                    premium_per_share REAL,
                    contracts INTEGER NOT NULL DEFAULT 1,
                    shares INTEGER NOT NULL DEFAULT 0,
                    price REAL,
                    fees REAL NOT NULL DEFAULT 0,
                    description TEXT NOT NULL DEFAULT '',
                    meta TEXT,
                    roll_group TEXT,
                    status TEXT NOT NULL DEFAULT 'active',
                    superseded_by INTEGER,
                    status_reason TEXT,
                    created_at TEXT NOT NULL,
                    sequence INTEGER,
                    FOREIGN KEY (superseded_by) REFERENCES wheel_events(id)
                );

                CREATE TABLE IF NOT EXISTS min_strike_snapshots (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    symbol TEXT NOT NULL,
                    snapshot_date TEXT NOT NULL,
                    average_cost REAL NOT NULL,
                    premium_received REAL NOT NULL,
                    min_strike REAL NOT NULL,
                    shares_owned INTEGER NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    UNIQUE (symbol, snapshot_date)
                );

                CREATE INDEX IF NOT EXISTS idx_events_symbol
                    ON wheel_events(symbol);
                CREATE INDEX IF NOT EXISTS idx_events_status
                    ON wheel_events(status);
                CREATE INDEX IF NOT EXISTS idx_events_roll_group
                    ON wheel_events(roll_group);
                CREATE INDEX IF NOT EXISTS idx_snapshots_symbol
                    ON min_strike_snapshots(symbol);
            """
            )
            self._migrate_sequence(conn)
        logger.debug(f"Database initialized at {self.db_path}")

    def _migrate_sequence(self, conn: sqlite3.Connection) -> None:
        """Add the booking sequence column to databases created without it."""
        columns = {row["name"] for row in conn.execute("PRAGMA table_info(wheel_events)")}
        if "sequence" in columns:
            return
        conn.execute("ALTER TABLE wheel_events ADD COLUMN sequence INTEGER")
        conn.execute("UPDATE wheel_events SET sequence = id WHERE sequence IS NULL")
        logger.info("Added booking sequence column to wheel_events")

    # Event operations

    def _insert_event(self, conn: sqlite3.Connection, event: WheelEvent) -> WheelEvent:
        cursor = conn.execute(
            f"""
            INSERT INTO wheel_events ({_EVENT_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                event.symbol,
                event.event_type.value,
                event.event_date.isoformat(),
                event.amount,
                event.strike,
                event.expiration.isoformat() if event.expiration else None,
                event.premium_per_share,
                event.contracts,
                event.shares,
                event.price,
                event.fees,
                event.description,
                event.meta.model_dump_json(exclude_none=True) if event.meta else None,
                event.roll_group,
                event.status.value,
                event.superseded_by,
                event.status_reason,
                event.created_at.isoformat(),
                event.sequence,
            ),
        )
        event.id = cursor.lastrowid
        if event.sequence is None:
            conn.execute(
                "UPDATE wheel_events SET sequence = id WHERE id = ?", (event.id,)
            )
            event.sequence = event.id
        return event

    def append_events(self, events: list[WheelEvent]) -> list[WheelEvent]:
        """
        Append events in a single transaction.

        Args:
            events: Events to store (ids will be set)

        Returns:
            The same events with assigned ids.

        Raises:
            PersistenceError: If the write fails; no event is stored.
        """
        with self._connect() as conn:
            stored = [self._insert_event(conn, event) for event in events]
        for event in stored:
            logger.info(
                f"Appended {event.event_type.value} #{event.id} for {event.symbol} "
                f"on {event.event_date} (amount {event.amount:+.2f})"
            )
        return stored

    def get_events(
        self, symbol: Optional[str] = None, include_inactive: bool = False
    ) -> list[WheelEvent]:
        """
        Get events, oldest first.

        Args:
            symbol: Restrict to one symbol (default: all)
            include_inactive: Also return superseded and voided events

        Returns:
            Events ordered by date, then booking order.
        """
        query = "SELECT * FROM wheel_events WHERE 1=1"
        params: list = []
        if symbol:
            query += " AND symbol = ?"
            params.append(symbol.upper())
        if not include_inactive:
            query += " AND status = ?"
            params.append(EventStatus.ACTIVE.value)
        query += " ORDER BY event_date, sequence, id"

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_event(row) for row in rows]

    def get_event(self, event_id: int) -> Optional[WheelEvent]:
        """Get an event by id, whatever its status."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM wheel_events WHERE id = ?", (event_id,)
            ).fetchone()
        return self._row_to_event(row) if row else None

    def list_symbols(self) -> list[str]:
        """Symbols with at least one active event."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT DISTINCT symbol FROM wheel_events WHERE status = ? ORDER BY symbol",
                (EventStatus.ACTIVE.value,),
            ).fetchall()
        return [row["symbol"] for row in rows]

    def _require_active(self, conn: sqlite3.Connection, event_id: int) -> sqlite3.Row:
        row = conn.execute(
            "SELECT status, sequence FROM wheel_events WHERE id = ?", (event_id,)
        ).fetchone()
        if row is None:
            raise EventNotFoundError(f"Event {event_id} not found")
        if row["status"] != EventStatus.ACTIVE.value:
            raise EventNotFoundError(f"Event {event_id} is already {row['status']}")
        return row

    def supersede_event(self, old_id: int, new_event: WheelEvent, reason: str) -> WheelEvent:
        """
        Replace an event with an edited copy, keeping the original for audit.

        The new event is inserted and the old one marked superseded in the
        same transaction. The new event takes over the booking sequence of
        the old one.

        Args:
            old_id: Id of the active event being edited
            new_event: Edited event to store
            reason: Audit reason (required)

        Returns:
            The stored replacement event.

        Raises:
            ValidationError: If no reason is given.
            EventNotFoundError: If the old event is missing or not active.
            PersistenceError: If the write fails.
        """
        if not reason or not reason.strip():
            raise ValidationError("An audit reason is required to edit an event")

        with self._connect() as conn:
            old_row = self._require_active(conn, old_id)
            new_event.status = EventStatus.ACTIVE
            new_event.sequence = old_row["sequence"]
            stored = self._insert_event(conn, new_event)
            conn.execute(
                """
                UPDATE wheel_events
                SET status = ?, superseded_by = ?, status_reason = ?
                WHERE id = ?
                """,
                (EventStatus.SUPERSEDED.value, stored.id, reason.strip(), old_id),
            )
        logger.info(f"Event #{old_id} superseded by #{stored.id}: {reason.strip()}")
        return stored

    def void_event(self, event_id: int, reason: str) -> WheelEvent:
        """
        Soft-delete an event. The row is kept with status 'voided'.

        Raises:
            ValidationError: If no reason is given.
            EventNotFoundError: If the event is missing or not active.
            PersistenceError: If the write fails.
        """
        if not reason or not reason.strip():
            raise ValidationError("An audit reason is required to void an event")

        with self._connect() as conn:
            self._require_active(conn, event_id)
            conn.execute(
                "UPDATE wheel_events SET status = ?, status_reason = ? WHERE id = ?",
                (EventStatus.VOIDED.value, reason.strip(), event_id),
            )
            row = conn.execute(
                "SELECT * FROM wheel_events WHERE id = ?", (event_id,)
            ).fetchone()
        logger.info(f"Event #{event_id} voided: {reason.strip()}")
        return self._row_to_event(row)

    def _row_to_event(self, row: sqlite3.Row) -> WheelEvent:
        """Convert database row to WheelEvent."""
        return WheelEvent(
            id=row["id"],
            sequence=row["sequence"],
            symbol=row["symbol"],
            event_type=EventType(row["event_type"]),
            event_date=date.fromisoformat(row["event_date"]),
            amount=row["amount"],
            strike=row["strike"],
            expiration=date.fromisoformat(row["expiration"]) if row["expiration"] else None,
            premium_per_share=row["premium_per_share"],
            contracts=row["contracts"],
            shares=row["shares"],
            price=row["price"],
            fees=row["fees"],
            description=row["description"],
            meta=EntryMeta.model_validate_json(row["meta"]) if row["meta"] else None,
            roll_group=row["roll_group"],
            status=EventStatus(row["status"]),
            superseded_by=row["superseded_by"],
            status_reason=row["status_reason"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    # Snapshot operations

    def upsert_snapshot(self, snapshot: MinStrikeSnapshot) -> MinStrikeSnapshot:
        """
        Insert a snapshot or overwrite the existing row for (symbol, date).

        Returns:
            Snapshot with the row id set.
        """
        now = datetime.now().isoformat()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO min_strike_snapshots
                (symbol, snapshot_date, average_cost, premium_received, min_strike,
                 shares_owned, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (symbol, snapshot_date) DO UPDATE SET
                    average_cost = excluded.average_cost,
                    premium_received = excluded.premium_received,
                    min_strike = excluded.min_strike,
                    shares_owned = excluded.shares_owned,
                    updated_at = excluded.updated_at
                """,
                (
                    snapshot.symbol.upper(),
                    snapshot.snapshot_date.isoformat(),
                    snapshot.average_cost,
                    snapshot.premium_received,
                    snapshot.min_strike,
                    snapshot.shares_owned,
                    now,
                    now,
                ),
            )
            row = conn.execute(
                "SELECT id FROM min_strike_snapshots WHERE symbol = ? AND snapshot_date = ?",
                (snapshot.symbol.upper(), snapshot.snapshot_date.isoformat()),
            ).fetchone()
        snapshot.id = row["id"]
        logger.debug(f"Upserted min-strike snapshot #{snapshot.id} for {snapshot.symbol}")
        return snapshot

    def delete_snapshot(self, symbol: str, snapshot_date: date) -> bool:
        """
        Delete the snapshot row for (symbol, date).

        Returns:
            True if a row was removed.
        """
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM min_strike_snapshots WHERE symbol = ? AND snapshot_date = ?",
                (symbol.upper(), snapshot_date.isoformat()),
            )
            deleted = cursor.rowcount > 0
        if deleted:
            logger.info(f"Deleted min-strike snapshot for {symbol.upper()} on {snapshot_date}")
        return deleted

    def get_snapshots(self, symbol: Optional[str] = None) -> list[MinStrikeSnapshot]:
        """
        Get min-strike snapshots ordered by date.

        Args:
            symbol: Restrict to one symbol (default: all symbols)
        """
        query = "SELECT * FROM min_strike_snapshots"
        params: tuple = ()
        if symbol:
            query += " WHERE symbol = ?"
            params = (symbol.upper(),)
        query += " ORDER BY snapshot_date, symbol"

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_snapshot(row) for row in rows]

    def _row_to_snapshot(self, row: sqlite3.Row) -> MinStrikeSnapshot:
        """Convert database row to MinStrikeSnapshot."""
        return MinStrikeSnapshot(
            id=row["id"],
            symbol=row["symbol"],
            snapshot_date=date.fromisoformat(row["snapshot_date"]),
            average_cost=row["average_cost"],
            premium_received=row["premium_received"],
            min_strike=row["min_strike"],
            shares_owned=row["shares_owned"],
        )
