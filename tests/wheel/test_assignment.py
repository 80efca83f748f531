"""Tests for the assignment engine."""

from datetime import date

import pytest

from src.wheel.assignment import (
    assignment_cash_flow,
    assignment_event,
    assignment_offered,
    record_assignment,
)
from src.wheel.exceptions import ValidationError
from src.wheel.lifecycle import replay_events
from src.wheel.models import OptionType, PositionLeg, WheelEvent
from src.wheel.state import EventType, WheelState


def put_sale(strike: float, sold_on: date, expiration: date) -> WheelEvent:
    return WheelEvent(
        "AAPL",
        EventType.CSP_SOLD,
        sold_on,
        amount=200.0,
        strike=strike,
        expiration=expiration,
        premium_per_share=2.0,
    )


class TestAssignmentOffered:
    """Tests for the assignment prompt window."""

    def test_window(self) -> None:
        """Offered at three days or fewer, including after expiry."""
        today = date(2026, 10, 17)
        assert assignment_offered(date(2026, 10, 20), today)
        assert not assignment_offered(date(2026, 10, 21), today)
        assert assignment_offered(date(2026, 10, 17), today)
        assert assignment_offered(date(2026, 10, 10), today)

    def test_custom_window(self) -> None:
        """The window is configurable."""
        assert assignment_offered(date(2026, 10, 27), date(2026, 10, 17), window_days=10)


class TestAssignmentCashFlow:
    """Tests for assignment cash flows."""

    def test_put_pays_call_receives(self) -> None:
        """A put assignment is an outflow, a call assignment an inflow."""
        assert assignment_cash_flow(EventType.CSP_ASSIGNED, 50.0, 2) == pytest.approx(-10000.0)
        assert assignment_cash_flow(EventType.CC_ASSIGNED, 55.0, 1) == pytest.approx(5500.0)

    def test_event_from_leg(self) -> None:
        """The assignment event mirrors the leg."""
        leg = PositionLeg(
            symbol="AAPL",
            option_type=OptionType.CALL,
            strike=55.0,
            premium_per_share=1.0,
            contracts=1,
            open_date=date(2026, 10, 1),
            expiration=date(2026, 10, 30),
        )
        event = assignment_event(leg, date(2026, 10, 30))
        assert event.event_type == EventType.CC_ASSIGNED
        assert event.amount == pytest.approx(5500.0)
        assert event.expiration == date(2026, 10, 30)


class TestRecordAssignment:
    """Tests for record_assignment."""

    def test_put_assignment_returns_lot(self, memory_store) -> None:
        """Put assignment adds 100 shares at the strike."""
        memory_store.append_event(put_sale(50.0, date(2026, 1, 2), date(2026, 1, 30)))

        lot = record_assignment(
            memory_store,
            WheelEvent("AAPL", EventType.CSP_ASSIGNED, date(2026, 1, 30), strike=50.0),
        )

        assert lot.quantity == 100
        assert lot.average_cost == pytest.approx(50.0)
        stored = memory_store.events[-1]
        assert stored.amount == pytest.approx(-5000.0)
        assert replay_events(memory_store.get_events("AAPL")).phase == WheelState.CSP_ASSIGNED

    def test_second_assignment_averages_cost(self, memory_store) -> None:
        """Average cost is the quantity-weighted mean across assignments."""
        memory_store.append_event(put_sale(50.0, date(2026, 1, 2), date(2026, 1, 30)))
        record_assignment(
            memory_store,
            WheelEvent("AAPL", EventType.CSP_ASSIGNED, date(2026, 1, 30), strike=50.0),
        )
        memory_store.append_event(put_sale(40.0, date(2026, 2, 2), date(2026, 2, 27)))

        lot = record_assignment(
            memory_store,
            WheelEvent("AAPL", EventType.CSP_ASSIGNED, date(2026, 2, 27), strike=40.0),
        )

        assert lot.quantity == 200
        assert lot.average_cost == pytest.approx(45.0)

    def test_call_assignment_removes_oldest_lot(self, memory_store) -> None:
        """Call assignment sells the oldest shares first."""
        memory_store.append_events(
            [
                WheelEvent("AAPL", EventType.SHARES_BOUGHT, date(2026, 1, 2), shares=100, price=50.0),
                WheelEvent("AAPL", EventType.SHARES_BOUGHT, date(2026, 2, 2), shares=100, price=40.0),
                WheelEvent(
                    "AAPL",
                    EventType.CC_SOLD,
                    date(2026, 2, 3),
                    strike=55.0,
                    expiration=date(2026, 2, 27),
                    amount=100.0,
                ),
            ]
        )

        lot = record_assignment(
            memory_store,
            WheelEvent("AAPL", EventType.CC_ASSIGNED, date(2026, 2, 27), strike=55.0),
        )

        assert lot.quantity == 100
        assert lot.average_cost == pytest.approx(40.0)

    def test_all_shares_called_away(self, memory_store) -> None:
        """An empty lot is returned when no shares remain."""
        memory_store.append_events(
            [
                WheelEvent("AAPL", EventType.SHARES_BOUGHT, date(2026, 1, 2), shares=100, price=50.0),
                WheelEvent("AAPL", EventType.CC_SOLD, date(2026, 1, 5), strike=55.0),
            ]
        )
        lot = record_assignment(
            memory_store,
            WheelEvent("AAPL", EventType.CC_ASSIGNED, date(2026, 1, 30), strike=55.0),
        )
        assert lot.quantity == 0
        assert lot.symbol == "AAPL"

    def test_accepted_at_any_dte(self, memory_store) -> None:
        """Early assignment far from expiry is still recorded."""
        memory_store.append_event(put_sale(50.0, date(2026, 1, 2), date(2026, 6, 19)))
        lot = record_assignment(
            memory_store,
            WheelEvent("AAPL", EventType.CSP_ASSIGNED, date(2026, 1, 5), strike=50.0),
        )
        assert lot.quantity == 100

    def test_rejects_non_assignment(self, memory_store) -> None:
        """Only assignment events are accepted; nothing is written."""
        with pytest.raises(ValidationError):
            record_assignment(
                memory_store,
                WheelEvent("AAPL", EventType.CSP_EXPIRED, date(2026, 1, 30), strike=50.0),
            )
        assert memory_store.write_calls == 0

    def test_rejects_missing_strike(self, memory_store) -> None:
        """A strike is required."""
        with pytest.raises(ValidationError, match="strike"):
            record_assignment(
                memory_store, WheelEvent("AAPL", EventType.CSP_ASSIGNED, date(2026, 1, 30))
            )
        assert memory_store.write_calls == 0
