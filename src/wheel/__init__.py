"""
Wheel Tracker - Track options wheel strategy positions.

This package books wheel trades as an append-only event history and
derives each ticker's phase, open legs, share lots and wheel cycles by
replaying it.

Public API:
    WheelManager: Main orchestrator for wheel operations
    WheelEvent: Immutable event record
    WheelState: State machine phases
    EventType: Event record kinds
    derive_phase: Fold events into a phase
    replay_events: Full derived position for one ticker
    plan_roll / execute_roll: Roll engine
    record_assignment: Assignment engine
    record_min_strike_snapshot: Min-strike snapshots
    summarize_cycles: Portfolio performance across cycles
"""

from .assignment import assignment_offered, record_assignment
from .exceptions import (
    ConfigurationError,
    EventNotFoundError,
    PersistenceError,
    RollValidationError,
    ValidationError,
    WheelError,
)
from .lifecycle import PositionReplay, derive_phase, replay_events
from .models import (
    Anomaly,
    EntryMeta,
    MinStrikeSnapshot,
    OptionType,
    PortfolioAnalytics,
    PositionLeg,
    ShareLot,
    WheelCycle,
    WheelEvent,
)
from .performance import summarize_cycles
from .roll import RollInputs, RollPlan, execute_roll, plan_roll
from .snapshots import record_min_strike_snapshot
from .state import (
    VALID_TRANSITIONS,
    EventStatus,
    EventType,
    WheelState,
    can_transition,
    get_next_state,
    get_valid_actions,
)
from .store import EventStore

__all__ = [
    # Core classes
    "WheelEvent",
    "PositionLeg",
    "ShareLot",
    "WheelCycle",
    "MinStrikeSnapshot",
    "Anomaly",
    "EntryMeta",
    "OptionType",
    "PositionReplay",
    "PortfolioAnalytics",
    "EventStore",
    # State machine
    "WheelState",
    "EventType",
    "EventStatus",
    "VALID_TRANSITIONS",
    "can_transition",
    "get_next_state",
    "get_valid_actions",
    "derive_phase",
    "replay_events",
    # Engines
    "RollInputs",
    "RollPlan",
    "plan_roll",
    "execute_roll",
    "assignment_offered",
    "record_assignment",
    "record_min_strike_snapshot",
    "summarize_cycles",
    # Exceptions
    "WheelError",
    "ValidationError",
    "RollValidationError",
    "PersistenceError",
    "EventNotFoundError",
    "ConfigurationError",
]


# Deferred imports to avoid circular dependencies
def __getattr__(name: str):
    """Lazy import for WheelManager and WheelRepository."""
    if name == "WheelManager":
        from .manager import WheelManager
        return WheelManager
    if name == "WheelRepository":
        from .repository import WheelRepository
        return WheelRepository
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
