"""Tests for lifecycle replay: phases, legs, lots, cycles and anomalies."""

from datetime import date

import pytest

from src.wheel.lifecycle import (
    derive_phase,
    group_by_symbol,
    make_lifecycle_id,
    order_events,
    replay_events,
    shares_needed_by_symbol,
)
from src.wheel.lots import aggregate_lots, remove_fifo
from src.wheel.models import OptionType, ShareLot, WheelEvent
from src.wheel.state import EventStatus, EventType, WheelState


@pytest.fixture
def full_wheel(make_event):
    """Put sold, assigned, two calls, called away."""
    return [
        make_event(
            EventType.CSP_SOLD,
            date(2026, 1, 2),
            strike=50.0,
            expiration=date(2026, 1, 30),
            premium_per_share=2.0,
            amount=200.0,
            id=1,
        ),
        make_event(
            EventType.CSP_ASSIGNED, date(2026, 1, 30), strike=50.0, amount=-5000.0, id=2
        ),
        make_event(
            EventType.CC_SOLD,
            date(2026, 2, 2),
            strike=52.0,
            expiration=date(2026, 2, 27),
            premium_per_share=1.0,
            amount=100.0,
            id=3,
        ),
        make_event(EventType.CC_EXPIRED, date(2026, 2, 27), strike=52.0, id=4),
        make_event(
            EventType.CC_SOLD,
            date(2026, 3, 2),
            strike=52.0,
            expiration=date(2026, 3, 27),
            premium_per_share=1.5,
            amount=150.0,
            id=5,
        ),
        make_event(EventType.CC_ASSIGNED, date(2026, 3, 27), strike=52.0, amount=5200.0, id=6),
    ]


class TestDerivePhase:
    """Tests for phase derivation."""

    def test_empty_history_is_none(self) -> None:
        """No events means no position."""
        assert derive_phase([]) == WheelState.NONE

    def test_full_wheel_sequence(self, full_wheel) -> None:
        """Each prefix of a full wheel lands on the expected phase."""
        expected = [
            WheelState.CSP_OPEN,
            WheelState.CSP_ASSIGNED,
            WheelState.CC_OPEN,
            WheelState.CSP_ASSIGNED,
            WheelState.CC_OPEN,
            WheelState.CC_ASSIGNED,
        ]
        phases = [derive_phase(full_wheel[: n + 1]) for n in range(len(full_wheel))]
        assert phases == expected

    def test_minimal_events_reach_called_away(self, make_event) -> None:
        """Events with only type and date still replay to a defined phase."""
        types = [
            EventType.CSP_SOLD,
            EventType.CSP_ASSIGNED,
            EventType.CC_SOLD,
            EventType.CC_EXPIRED,
            EventType.CC_SOLD,
            EventType.CC_ASSIGNED,
        ]
        events = [make_event(t, date(2026, 1, n + 1)) for n, t in enumerate(types)]

        for n in range(len(events)):
            assert isinstance(derive_phase(events[: n + 1]), WheelState)
        assert derive_phase(events) == WheelState.CC_ASSIGNED

    def test_order_independent(self, full_wheel) -> None:
        """Replay sorts by date, so input order does not matter."""
        assert derive_phase(list(reversed(full_wheel))) == derive_phase(full_wheel)

    def test_same_day_events_keep_booking_order(self, make_event) -> None:
        """Same-day events are ordered by id."""
        sold = make_event(EventType.CSP_SOLD, date(2026, 1, 2), strike=50.0, id=1)
        expired = make_event(EventType.CSP_EXPIRED, date(2026, 1, 2), strike=50.0, id=2)
        assert derive_phase([expired, sold]) == WheelState.NONE

    def test_edited_event_keeps_its_sequence_slot(self, make_event) -> None:
        """A replacement with a higher id still replays where the original was booked."""
        sold = make_event(EventType.CSP_SOLD, date(2026, 1, 2), strike=50.0, id=1, sequence=1)
        expired = make_event(
            EventType.CSP_EXPIRED, date(2026, 1, 2), strike=50.0, id=2, sequence=2
        )
        resold = make_event(EventType.CSP_SOLD, date(2026, 1, 2), strike=48.0, id=3, sequence=3)
        edited_expiry = make_event(
            EventType.CSP_EXPIRED, date(2026, 1, 2), strike=50.0, fees=1.0, id=4, sequence=2
        )

        assert [e.id for e in order_events([edited_expiry, resold, sold])] == [1, 4, 3]
        assert derive_phase([sold, edited_expiry, resold]) == WheelState.CSP_OPEN
        assert derive_phase([sold, expired, resold]) == WheelState.CSP_OPEN

    def test_inactive_events_are_ignored(self, make_event) -> None:
        """Voided and superseded events do not count."""
        sold = make_event(EventType.CSP_SOLD, date(2026, 1, 2), strike=50.0, id=1)
        voided = make_event(
            EventType.CSP_ASSIGNED,
            date(2026, 1, 30),
            strike=50.0,
            id=2,
            status=EventStatus.VOIDED,
        )
        assert derive_phase([sold, voided]) == WheelState.CSP_OPEN

    def test_multiple_symbols_rejected(self, make_event) -> None:
        """A replay covers exactly one symbol."""
        events = [
            make_event(EventType.CSP_SOLD, date(2026, 1, 2)),
            make_event(EventType.CSP_SOLD, date(2026, 1, 2), symbol="MSFT"),
        ]
        with pytest.raises(ValueError, match="multiple symbols"):
            replay_events(events)

    def test_position_closed_then_new_put(self, make_event) -> None:
        """Closing out clears legs; the next put starts a new cycle."""
        events = [
            make_event(EventType.SHARES_BOUGHT, date(2026, 1, 2), shares=100, price=50.0, id=1),
            make_event(EventType.CC_SOLD, date(2026, 1, 5), strike=55.0, id=2),
            make_event(EventType.POSITION_CLOSED, date(2026, 1, 9), price=51.0, id=3),
            make_event(EventType.CSP_SOLD, date(2026, 2, 2), strike=48.0, id=4),
        ]
        replay = replay_events(events[:3])
        assert replay.phase == WheelState.CLOSED
        assert replay.open_legs == []
        assert replay.shares == 0

        replay = replay_events(events)
        assert replay.phase == WheelState.CSP_OPEN
        assert [c.lifecycle_id for c in replay.cycles] == [
            "AAPL_2026-01-02_001",
            "AAPL_2026-02-02_002",
        ]


class TestOpenLegsAndLots:
    """Tests for derived legs and share lots."""

    def test_assignment_creates_lot_at_strike(self, full_wheel) -> None:
        """A put assignment buys 100 shares at the strike."""
        replay = replay_events(full_wheel[:2])
        assert replay.shares == 100
        assert replay.share_lot.average_cost == pytest.approx(50.0)
        assert replay.open_legs == []

    def test_open_call_leg(self, full_wheel) -> None:
        """An open call is listed with its premium per share."""
        replay = replay_events(full_wheel[:3])
        assert len(replay.open_legs) == 1
        leg = replay.open_legs[0]
        assert leg.option_type == OptionType.CALL
        assert leg.strike == 52.0
        assert leg.premium_per_share == pytest.approx(1.0)

    def test_premium_per_share_from_amount(self, make_event) -> None:
        """Without a per-share premium the leg derives it from the amount."""
        event = make_event(
            EventType.CSP_SOLD, date(2026, 1, 2), strike=50.0, amount=300.0, contracts=2
        )
        assert replay_events([event]).open_legs[0].premium_per_share == pytest.approx(1.5)

    def test_close_matches_exact_strike_first(self, make_event) -> None:
        """A close with a strike removes that leg, not the oldest one."""
        events = [
            make_event(EventType.CSP_SOLD, date(2026, 1, 2), strike=50.0, id=1),
            make_event(EventType.CSP_SOLD, date(2026, 1, 3), strike=45.0, id=2),
            make_event(EventType.CSP_CLOSED, date(2026, 1, 9), strike=45.0, id=3),
        ]
        replay = replay_events(events)
        assert [leg.strike for leg in replay.open_legs] == [50.0]
        assert replay.phase == WheelState.CSP_OPEN

    def test_share_lots_fifo(self, make_event) -> None:
        """Sales remove the oldest shares first and realize the gain."""
        events = [
            make_event(EventType.SHARES_BOUGHT, date(2026, 1, 2), shares=100, price=50.0, id=1),
            make_event(EventType.SHARES_BOUGHT, date(2026, 2, 2), shares=100, price=60.0, id=2),
        ]
        assert replay_events(events).share_lot.average_cost == pytest.approx(55.0)

        events.append(
            make_event(EventType.SHARES_SOLD, date(2026, 3, 2), shares=150, price=70.0, id=3)
        )
        replay = replay_events(events)
        assert replay.shares == 50
        assert replay.share_lot.average_cost == pytest.approx(60.0)
        assert replay.phase == WheelState.CSP_ASSIGNED
        assert replay.cycles[0].realized_pnl == pytest.approx(2500.0)

        events.append(
            make_event(EventType.SHARES_SOLD, date(2026, 3, 3), shares=50, price=60.0, id=4)
        )
        assert derive_phase(events) == WheelState.CLOSED


class TestLots:
    """Tests for lot helpers."""

    def test_remove_fifo_shortfall(self) -> None:
        """Removing more than held reports the shortfall."""
        lots = [ShareLot("AAPL", 100, 50.0, date(2026, 1, 2))]
        remaining, removed, shortfall = remove_fifo(lots, 150)
        assert remaining == []
        assert removed == [(100, 50.0)]
        assert shortfall == 50

    def test_aggregate_lots(self) -> None:
        """Aggregation weights cost by quantity and keeps the oldest date."""
        lots = [
            ShareLot("AAPL", 100, 40.0, date(2026, 2, 2)),
            ShareLot("AAPL", 300, 60.0, date(2026, 1, 2)),
        ]
        lot = aggregate_lots(lots)
        assert lot.quantity == 400
        assert lot.average_cost == pytest.approx(55.0)
        assert lot.acquired_date == date(2026, 1, 2)
        assert aggregate_lots([]) is None


class TestAnomalies:
    """Tests for events accepted with an anomaly."""

    def test_naked_call(self, make_event) -> None:
        """A call sold without shares is kept and reported."""
        replay = replay_events([make_event(EventType.CC_SOLD, date(2026, 1, 2), strike=55.0)])

        assert replay.phase == WheelState.CC_OPEN
        assert replay.shares_needed == 100
        assert [a.kind for a in replay.anomalies] == ["naked_call"]

    def test_unmatched_close(self, make_event) -> None:
        """Expiring a put that was never sold is reported."""
        replay = replay_events([make_event(EventType.CSP_EXPIRED, date(2026, 1, 2))])

        assert replay.phase == WheelState.NONE
        assert [a.kind for a in replay.anomalies] == ["unmatched_close"]

    def test_over_assignment(self, make_event) -> None:
        """Calling away more shares than held is reported."""
        events = [
            make_event(EventType.SHARES_BOUGHT, date(2026, 1, 2), shares=100, price=50.0, id=1),
            make_event(EventType.CC_SOLD, date(2026, 1, 5), strike=55.0, contracts=2, id=2),
            make_event(EventType.CC_ASSIGNED, date(2026, 1, 30), strike=55.0, contracts=2, id=3),
        ]
        replay = replay_events(events)

        kinds = [a.kind for a in replay.anomalies]
        assert "naked_call" in kinds
        assert "over_assignment" in kinds
        assert replay.shares == 0
        assert replay.phase == WheelState.CC_ASSIGNED

    def test_inapplicable_event(self, make_event) -> None:
        """Selling a put while holding shares resolves from holdings."""
        events = [
            make_event(EventType.SHARES_BOUGHT, date(2026, 1, 2), shares=100, price=50.0, id=1),
            make_event(EventType.CSP_SOLD, date(2026, 1, 5), strike=45.0, id=2),
        ]
        replay = replay_events(events)

        assert replay.phase == WheelState.CSP_ASSIGNED
        assert [a.kind for a in replay.anomalies] == ["inapplicable_event"]
        assert replay.steps[-1].applicable is False
        assert replay.anomalies[0].event_id == 2

    def test_display_phase_prefers_latest_leg(self, make_event) -> None:
        """With a put and a call open, the latest opened leg is shown."""
        events = [
            make_event(EventType.SHARES_BOUGHT, date(2026, 1, 2), shares=100, price=50.0, id=1),
            make_event(EventType.CC_SOLD, date(2026, 1, 5), strike=55.0, id=2),
            make_event(EventType.CSP_SOLD, date(2026, 1, 6), strike=45.0, id=3),
        ]
        replay = replay_events(events)

        assert replay.phase == WheelState.CC_OPEN
        assert replay.display_phase() == WheelState.CSP_OPEN

    def test_incomplete_roll(self, make_event) -> None:
        """A roll group with a close but no open is reported."""
        events = [
            make_event(EventType.SHARES_BOUGHT, date(2026, 1, 2), shares=100, price=50.0, id=1),
            make_event(EventType.CC_SOLD, date(2026, 1, 5), strike=55.0, id=2),
            make_event(EventType.CC_CLOSED, date(2026, 1, 20), strike=55.0, roll_group="r1", id=3),
        ]
        assert [a.kind for a in replay_events(events).anomalies] == ["incomplete_roll"]

    def test_complete_roll_is_clean(self, make_event) -> None:
        """A roll group with one close and one open is not reported."""
        events = [
            make_event(EventType.SHARES_BOUGHT, date(2026, 1, 2), shares=100, price=50.0, id=1),
            make_event(EventType.CC_SOLD, date(2026, 1, 5), strike=55.0, id=2),
            make_event(EventType.CC_CLOSED, date(2026, 1, 20), strike=55.0, roll_group="r1", id=3),
            make_event(EventType.CC_SOLD, date(2026, 1, 20), strike=57.0, roll_group="r1", id=4),
        ]
        replay = replay_events(events)
        assert replay.anomalies == []
        assert [leg.strike for leg in replay.open_legs] == [57.0]


class TestCycles:
    """Tests for wheel cycle grouping and metrics."""

    def test_lifecycle_id_format(self) -> None:
        """Cycle ids combine symbol, start date and sequence."""
        assert make_lifecycle_id("AAPL", date(2026, 1, 15), 1) == "AAPL_2026-01-15_001"

    def test_full_cycle_metrics(self, full_wheel) -> None:
        """Premium, realized P&L and returns over one cycle."""
        replay = replay_events(full_wheel, as_of=date(2026, 3, 27))
        assert len(replay.cycles) == 1
        cycle = replay.cycles[0]

        assert cycle.lifecycle_id == "AAPL_2026-01-02_001"
        assert cycle.status == WheelState.CC_ASSIGNED
        assert cycle.total_premium_collected == pytest.approx(450.0)
        assert cycle.realized_pnl == pytest.approx(650.0)
        assert cycle.capital_at_risk == pytest.approx(5000.0)
        assert cycle.days_active == 84
        assert cycle.return_on_outlay == pytest.approx(13.0)
        assert cycle.annualized_return == pytest.approx(13.0 * 365 / 84)
        assert len(cycle.events) == 6

    def test_new_cycle_after_called_away(self, full_wheel, make_event) -> None:
        """Selling a put after being called away starts a new cycle."""
        events = full_wheel + [
            make_event(EventType.CSP_SOLD, date(2026, 4, 1), strike=50.0, amount=180.0, id=7)
        ]
        replay = replay_events(events, as_of=date(2026, 4, 10))

        assert [c.lifecycle_id for c in replay.cycles] == [
            "AAPL_2026-01-02_001",
            "AAPL_2026-04-01_002",
        ]
        assert replay.cycles[0].end_date == date(2026, 3, 27)
        assert replay.cycles[1].is_open
        assert replay.cycles[1].days_active == 9

    def test_unrealized_pnl_for_open_cycle(self, full_wheel) -> None:
        """Unrealized P&L uses the current price against average cost."""
        replay = replay_events(full_wheel[:3], as_of=date(2026, 2, 10), current_price=53.0)
        assert replay.current_cycle.unrealized_pnl == pytest.approx(300.0)

    def test_fees_reduce_realized(self, make_event) -> None:
        """Fees on premium events reduce both premium and realized P&L."""
        event = make_event(
            EventType.CSP_SOLD, date(2026, 1, 2), strike=50.0, amount=200.0, fees=1.3
        )
        cycle = replay_events([event]).cycles[0]
        assert cycle.total_premium_collected == pytest.approx(198.7)
        assert cycle.realized_pnl == pytest.approx(198.7)


class TestPortfolioHelpers:
    """Tests for multi-symbol helpers."""

    def test_group_by_symbol(self, make_event) -> None:
        """Events split by ticker."""
        events = [
            make_event(EventType.CSP_SOLD, date(2026, 1, 2)),
            make_event(EventType.CSP_SOLD, date(2026, 1, 2), symbol="msft"),
        ]
        assert set(group_by_symbol(events)) == {"AAPL", "MSFT"}

    def test_shares_needed_across_symbols(self, make_event) -> None:
        """Two uncovered calls need 200 shares in total."""
        events = [
            make_event(EventType.CC_SOLD, date(2026, 1, 2), strike=200.0),
            make_event(EventType.CC_SOLD, date(2026, 1, 2), strike=400.0, symbol="MSFT"),
            make_event(EventType.SHARES_BOUGHT, date(2026, 1, 2), symbol="KO", shares=100, price=60.0),
        ]
        replays = [replay_events(group) for group in group_by_symbol(events).values()]
        needed = shares_needed_by_symbol(replays)

        assert needed == {"AAPL": 100, "MSFT": 100}
        assert sum(needed.values()) == 200
