"""Tests for the wheel state machine."""

import pytest

from src.wheel.state import (
    VALID_TRANSITIONS,
    EventType,
    PositionFacts,
    WheelState,
    can_transition,
    describe_phase,
    get_next_state,
    get_valid_actions,
    resolve_from_facts,
    transition,
)


class TestWheelState:
    """Tests for state and event enums."""

    def test_wheel_states_exist(self) -> None:
        """All expected phases should exist."""
        assert WheelState.NONE.value == "none"
        assert WheelState.CSP_OPEN.value == "csp_open"
        assert WheelState.CSP_ASSIGNED.value == "csp_assigned"
        assert WheelState.CC_OPEN.value == "cc_open"
        assert WheelState.CC_ASSIGNED.value == "cc_assigned"
        assert WheelState.CLOSED.value == "closed"

    def test_event_type_values_match_names(self) -> None:
        """Event types are stored by name."""
        for event_type in EventType:
            assert event_type.value == event_type.name

    def test_every_phase_has_description(self) -> None:
        """Each phase has a label and description for display."""
        for state in WheelState:
            label, description = describe_phase(state)
            assert label
            assert description


class TestStateTransitions:
    """Tests for the transition table."""

    def test_valid_actions_from_none(self) -> None:
        """NONE allows selling a put or closing out."""
        assert get_valid_actions(WheelState.NONE) == [
            EventType.CSP_SOLD,
            EventType.POSITION_CLOSED,
        ]

    def test_valid_actions_from_cc_open(self) -> None:
        """CC_OPEN allows every call outcome."""
        actions = get_valid_actions(WheelState.CC_OPEN)
        assert EventType.CC_ASSIGNED in actions
        assert EventType.CC_EXPIRED in actions
        assert EventType.CC_CLOSED in actions
        assert EventType.CSP_SOLD not in actions

    @pytest.mark.parametrize(
        "from_state,event_type,expected",
        [
            (WheelState.NONE, EventType.CSP_SOLD, WheelState.CSP_OPEN),
            (WheelState.CSP_OPEN, EventType.CSP_EXPIRED, WheelState.NONE),
            (WheelState.CSP_OPEN, EventType.CSP_CLOSED, WheelState.NONE),
            (WheelState.CSP_OPEN, EventType.CSP_ASSIGNED, WheelState.CSP_ASSIGNED),
            (WheelState.CSP_ASSIGNED, EventType.CC_SOLD, WheelState.CC_OPEN),
            (WheelState.CC_OPEN, EventType.CC_ASSIGNED, WheelState.CC_ASSIGNED),
            (WheelState.CC_OPEN, EventType.CC_EXPIRED, WheelState.CSP_ASSIGNED),
            (WheelState.CC_OPEN, EventType.CC_CLOSED, WheelState.CSP_ASSIGNED),
            (WheelState.CC_ASSIGNED, EventType.CC_SOLD, WheelState.CC_OPEN),
            (WheelState.CC_ASSIGNED, EventType.CSP_SOLD, WheelState.CSP_OPEN),
            (WheelState.CLOSED, EventType.CSP_SOLD, WheelState.CSP_OPEN),
        ],
    )
    def test_defined_transitions(self, from_state, event_type, expected) -> None:
        """Every entry of the transition table."""
        assert can_transition(from_state, event_type)
        assert get_next_state(from_state, event_type) == expected

    def test_position_closed_from_any_state(self) -> None:
        """POSITION_CLOSED is valid everywhere and leads to CLOSED."""
        for state in WheelState:
            assert can_transition(state, EventType.POSITION_CLOSED)
            assert get_next_state(state, EventType.POSITION_CLOSED) == WheelState.CLOSED

    def test_invalid_transition_raises(self) -> None:
        """Table lookups outside the table raise with the valid events."""
        assert not can_transition(WheelState.NONE, EventType.CC_ASSIGNED)
        with pytest.raises(ValueError, match="Invalid event"):
            get_next_state(WheelState.NONE, EventType.CC_ASSIGNED)

    def test_table_targets_are_states(self) -> None:
        """Every transition lands on a defined phase."""
        for transitions in VALID_TRANSITIONS.values():
            for target in transitions.values():
                assert isinstance(target, WheelState)


class TestResolveFromFacts:
    """Tests for phase resolution from holdings."""

    def test_priority_order(self) -> None:
        """Calls outrank shares, which outrank puts."""
        assert resolve_from_facts(PositionFacts(1, 1, 100)) == WheelState.CC_OPEN
        assert resolve_from_facts(PositionFacts(1, 0, 100)) == WheelState.CSP_ASSIGNED
        assert resolve_from_facts(PositionFacts(1, 0, 0)) == WheelState.CSP_OPEN
        assert resolve_from_facts(PositionFacts()) == WheelState.NONE

    def test_is_flat(self) -> None:
        """Flat means no legs and no shares."""
        assert PositionFacts().is_flat
        assert not PositionFacts(shares=1).is_flat


class TestTransition:
    """Tests for the total transition function used by replay."""

    def test_defined_transition_is_applicable(self) -> None:
        """A table transition reports applicable."""
        state, applicable = transition(WheelState.NONE, EventType.CSP_SOLD, PositionFacts(1, 0, 0))
        assert state == WheelState.CSP_OPEN
        assert applicable

    def test_partial_close_stays_open(self) -> None:
        """Closing one of two puts leaves the phase at CSP_OPEN."""
        state, applicable = transition(
            WheelState.CSP_OPEN, EventType.CSP_CLOSED, PositionFacts(1, 0, 0)
        )
        assert state == WheelState.CSP_OPEN
        assert applicable

    def test_undefined_transition_resolves_from_facts(self) -> None:
        """An event outside the table never leaves the phase undefined."""
        state, applicable = transition(
            WheelState.CSP_ASSIGNED, EventType.CSP_SOLD, PositionFacts(1, 0, 100)
        )
        assert state == WheelState.CSP_ASSIGNED
        assert not applicable

    def test_call_sold_after_called_away_without_shares(self) -> None:
        """A call sold with no shares after assignment opens a call anyway."""
        state, applicable = transition(
            WheelState.CC_ASSIGNED, EventType.CC_SOLD, PositionFacts(0, 1, 0)
        )
        assert state == WheelState.CC_OPEN
        assert not applicable

    def test_share_purchase_from_none(self) -> None:
        """Buying shares outright moves to holding shares."""
        state, applicable = transition(
            WheelState.NONE, EventType.SHARES_BOUGHT, PositionFacts(0, 0, 100)
        )
        assert state == WheelState.CSP_ASSIGNED
        assert applicable

    def test_selling_last_shares_closes(self) -> None:
        """Selling the last shares closes the position."""
        state, _ = transition(WheelState.CSP_ASSIGNED, EventType.SHARES_SOLD, PositionFacts())
        assert state == WheelState.CLOSED

    def test_position_closed(self) -> None:
        """Close-out is always applicable."""
        assert transition(WheelState.CC_OPEN, EventType.POSITION_CLOSED, PositionFacts()) == (
            WheelState.CLOSED,
            True,
        )

    def test_every_state_and_event_yields_a_phase(self) -> None:
        """The transition function is total."""
        for state in WheelState:
            for event_type in EventType:
                for facts in (PositionFacts(), PositionFacts(1, 1, 100), PositionFacts(0, 1, 0)):
                    result, _ = transition(state, event_type, facts)
                    assert isinstance(result, WheelState)
