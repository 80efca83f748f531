"""State machine enums and transition rules for wheel positions."""

from dataclasses import dataclass
from enum import Enum


class WheelState(Enum):
    """
    Phase of a ticker's wheel, derived by replaying its event history.

    The wheel alternates between two fundamental postures:
    - Holding cash and selling puts (hoping NOT to be assigned)
    - Holding shares and selling calls (hoping NOT to be called away)
    """

    NONE = "none"  # Nothing open, cycle reusable
    CSP_OPEN = "csp_open"  # Sold put, awaiting expiration
    CSP_ASSIGNED = "csp_assigned"  # Holding shares, can sell calls
    CC_OPEN = "cc_open"  # Sold call against shares
    CC_ASSIGNED = "cc_assigned"  # Shares called away
    CLOSED = "closed"  # Position closed out


class EventType(Enum):
    """Kinds of immutable wheel event records."""

    CSP_SOLD = "CSP_SOLD"
    CSP_ASSIGNED = "CSP_ASSIGNED"
    CSP_EXPIRED = "CSP_EXPIRED"
    CSP_CLOSED = "CSP_CLOSED"
    CC_SOLD = "CC_SOLD"
    CC_CLOSED = "CC_CLOSED"
    CC_ASSIGNED = "CC_ASSIGNED"
    CC_EXPIRED = "CC_EXPIRED"
    SHARES_BOUGHT = "SHARES_BOUGHT"
    SHARES_SOLD = "SHARES_SOLD"
    POSITION_CLOSED = "POSITION_CLOSED"


class EventStatus(Enum):
    """Audit status of an event record."""

    ACTIVE = "active"
    SUPERSEDED = "superseded"  # Replaced by an edited copy
    VOIDED = "voided"  # Soft-deleted


PUT_EVENTS = frozenset(
    {EventType.CSP_SOLD, EventType.CSP_ASSIGNED, EventType.CSP_EXPIRED, EventType.CSP_CLOSED}
)
CALL_EVENTS = frozenset(
    {EventType.CC_SOLD, EventType.CC_ASSIGNED, EventType.CC_EXPIRED, EventType.CC_CLOSED}
)
OPENING_EVENTS = frozenset({EventType.CSP_SOLD, EventType.CC_SOLD})
LEG_CLOSING_EVENTS = frozenset(
    {
        EventType.CSP_ASSIGNED,
        EventType.CSP_EXPIRED,
        EventType.CSP_CLOSED,
        EventType.CC_ASSIGNED,
        EventType.CC_EXPIRED,
        EventType.CC_CLOSED,
    }
)
SHARE_EVENTS = frozenset({EventType.SHARES_BOUGHT, EventType.SHARES_SOLD})


PHASE_DESCRIPTIONS: dict[WheelState, tuple[str, str]] = {
    WheelState.NONE: ("Idle", "No open options or shares; ready to sell a put"),
    WheelState.CSP_OPEN: ("Put Open", "Cash-secured put sold, awaiting expiration"),
    WheelState.CSP_ASSIGNED: ("Holding Shares", "Shares held; ready to sell a covered call"),
    WheelState.CC_OPEN: ("Call Open", "Covered call sold against shares"),
    WheelState.CC_ASSIGNED: ("Called Away", "Shares called away; cycle can be closed"),
    WheelState.CLOSED: ("Closed", "Position closed out"),
}


# Valid state transitions for the wheel state machine.
# POSITION_CLOSED is accepted from every state and handled in transition().
VALID_TRANSITIONS: dict[WheelState, dict[EventType, WheelState]] = {
    WheelState.NONE: {
        EventType.CSP_SOLD: WheelState.CSP_OPEN,
    },
    WheelState.CSP_OPEN: {
        EventType.CSP_EXPIRED: WheelState.NONE,
        EventType.CSP_CLOSED: WheelState.NONE,
        EventType.CSP_ASSIGNED: WheelState.CSP_ASSIGNED,
    },
    WheelState.CSP_ASSIGNED: {
        EventType.CC_SOLD: WheelState.CC_OPEN,
    },
    WheelState.CC_OPEN: {
        EventType.CC_ASSIGNED: WheelState.CC_ASSIGNED,
        EventType.CC_EXPIRED: WheelState.CSP_ASSIGNED,
        EventType.CC_CLOSED: WheelState.CSP_ASSIGNED,
    },
    WheelState.CC_ASSIGNED: {
        EventType.CC_SOLD: WheelState.CC_OPEN,
        EventType.CSP_SOLD: WheelState.CSP_OPEN,
    },
    WheelState.CLOSED: {
        EventType.CSP_SOLD: WheelState.CSP_OPEN,
    },
}


@dataclass
class PositionFacts:
    """
    What a ticker holds after an event has been applied.

    Attributes:
        open_puts: Short put contracts still open
        open_calls: Short call contracts still open
        shares: Shares currently held
    """

    open_puts: int = 0
    open_calls: int = 0
    shares: int = 0

    @property
    def is_flat(self) -> bool:
        """True if nothing is open and no shares are held."""
        return self.open_puts == 0 and self.open_calls == 0 and self.shares == 0


def get_valid_actions(state: WheelState) -> list[EventType]:
    """Get list of event types with a defined transition from a state."""
    return list(VALID_TRANSITIONS.get(state, {}).keys()) + [EventType.POSITION_CLOSED]


def can_transition(from_state: WheelState, event_type: EventType) -> bool:
    """Check if a transition is valid from the current state."""
    if event_type == EventType.POSITION_CLOSED:
        return True
    return event_type in VALID_TRANSITIONS.get(from_state, {})


def get_next_state(from_state: WheelState, event_type: EventType) -> WheelState:
    """
    Get the next state after an event.

    Raises:
        ValueError: If the transition is not valid.
    """
    if event_type == EventType.POSITION_CLOSED:
        return WheelState.CLOSED
    transitions = VALID_TRANSITIONS.get(from_state, {})
    if event_type not in transitions:
        valid = [e.value for e in get_valid_actions(from_state)]
        raise ValueError(
            f"Invalid event '{event_type.value}' from state '{from_state.value}'. "
            f"Valid events: {valid}"
        )
    return transitions[event_type]


def resolve_from_facts(facts: PositionFacts) -> WheelState:
    """Phase implied by holdings alone, most advanced open state first."""
    if facts.open_calls > 0:
        return WheelState.CC_OPEN
    if facts.shares > 0:
        return WheelState.CSP_ASSIGNED
    if facts.open_puts > 0:
        return WheelState.CSP_OPEN
    return WheelState.NONE


def _settle(state: WheelState, facts: PositionFacts) -> WheelState:
    # Partial closes leave other contracts of the same kind open
    if state == WheelState.NONE and facts.open_puts > 0:
        return WheelState.CSP_OPEN
    if state in (WheelState.CSP_ASSIGNED, WheelState.CC_ASSIGNED) and facts.open_calls > 0:
        return WheelState.CC_OPEN
    return state


def transition(
    state: WheelState, event_type: EventType, facts: PositionFacts
) -> tuple[WheelState, bool]:
    """
    Apply one event to a phase.

    Never fails: an event with no defined transition resolves the phase
    from the holdings it left behind.

    Args:
        state: Phase before the event
        event_type: Event being applied
        facts: Holdings after the event has been applied

    Returns:
        (next phase, whether the event had a defined transition)
    """
    if event_type == EventType.POSITION_CLOSED:
        return WheelState.CLOSED, True

    if event_type in SHARE_EVENTS:
        resolved = resolve_from_facts(facts)
        if resolved == WheelState.NONE and state in (
            WheelState.CSP_ASSIGNED,
            WheelState.CC_ASSIGNED,
            WheelState.CLOSED,
        ):
            # Last shares sold
            return WheelState.CLOSED, True
        return resolved, True

    if event_type == EventType.CC_SOLD and state == WheelState.CC_ASSIGNED and facts.shares == 0:
        return WheelState.CC_OPEN, False

    if can_transition(state, event_type):
        return _settle(get_next_state(state, event_type), facts), True

    resolved = resolve_from_facts(facts)
    if resolved == WheelState.NONE and state in (WheelState.CC_ASSIGNED, WheelState.CLOSED):
        resolved = state
    return resolved, False


def describe_phase(state: WheelState) -> tuple[str, str]:
    """Human-readable (label, description) for a phase."""
    return PHASE_DESCRIPTIONS[state]
