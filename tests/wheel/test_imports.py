"""Tests for import record validation."""

import json
from datetime import date

import pytest

from src.wheel.imports import normalize_row, read_records, validate_records
from src.wheel.state import EventType


def put_row(**overrides) -> dict:
    row = {
        "symbol": "aapl",
        "event_type": "csp_sold",
        "event_date": "2026-01-02",
        "strike": "50",
        "expiration": "2026-01-30",
        "premium_per_share": "2.00",
        "contracts": "1",
    }
    row.update(overrides)
    return row


class TestNormalizeRow:
    """Tests for normalize_row."""

    def test_blank_cells_dropped(self) -> None:
        """Empty strings mean the column is absent."""
        row = normalize_row({"symbol": " AAPL ", "strike": "", "fees": None})
        assert row == {"symbol": "AAPL"}

    def test_meta_columns_nested(self) -> None:
        """Flat delta/IV columns move under meta."""
        row = normalize_row({"symbol": "AAPL", "delta": "-0.30", "iv_rank": "40"})
        assert row == {"symbol": "AAPL", "meta": {"delta": "-0.30", "iv_rank": "40"}}


class TestValidateRecords:
    """Tests for validate_records."""

    def test_valid_put_sale(self) -> None:
        """A complete row converts to an event with a derived amount."""
        events, errors = validate_records([put_row()])

        assert errors == []
        event = events[0]
        assert event.symbol == "AAPL"
        assert event.event_type == EventType.CSP_SOLD
        assert event.event_date == date(2026, 1, 2)
        assert event.amount == pytest.approx(200.0)
        assert event.id is None

    def test_meta_is_range_checked(self) -> None:
        """Out-of-range entry metadata rejects the row."""
        events, errors = validate_records([put_row(delta="-1.5")])
        assert events == []
        assert "delta" in errors[0].message

    def test_missing_fields_per_type(self) -> None:
        """Sales need strike and expiration; share events need shares and price."""
        _, errors = validate_records(
            [
                put_row(expiration=""),
                {"symbol": "AAPL", "event_type": "SHARES_BOUGHT", "event_date": "2026-01-02"},
                {"symbol": "AAPL", "event_type": "CC_ASSIGNED", "event_date": "2026-01-02"},
            ]
        )
        assert [e.row for e in errors] == [1, 2, 3]
        assert "strike and expiration" in errors[0].message
        assert "shares and price" in errors[1].message
        assert "requires strike" in errors[2].message

    def test_domain_values(self) -> None:
        """Negative strikes, zero contracts and unknown types are rejected."""
        _, errors = validate_records(
            [put_row(strike="-5"), put_row(contracts="0"), put_row(event_type="PUT_SOLD")]
        )
        assert len(errors) == 3

    def test_mixed_rows_keep_valid_ones(self) -> None:
        """One bad row does not block the others; row numbers are 1-based."""
        rows = [
            put_row(),
            put_row(strike="abc"),
            {
                "symbol": "AAPL",
                "event_type": "SHARES_BOUGHT",
                "event_date": "2026-01-05",
                "shares": "100",
                "price": "49.50",
            },
        ]
        events, errors = validate_records(rows)

        assert len(events) == 2
        assert events[1].amount == pytest.approx(-4950.0)
        assert [e.row for e in errors] == [2]

    def test_explicit_amount_wins(self) -> None:
        """A given amount is kept as-is."""
        events, _ = validate_records([put_row(amount="195.5")])
        assert events[0].amount == pytest.approx(195.5)


class TestReadRecords:
    """Tests for reading import files."""

    def test_json(self, tmp_path) -> None:
        """JSON files hold a list of records."""
        path = tmp_path / "trades.json"
        path.write_text(json.dumps([put_row()]))
        assert read_records(str(path))[0]["symbol"] == "aapl"

    def test_json_must_be_list(self, tmp_path) -> None:
        """A JSON object is rejected."""
        path = tmp_path / "trades.json"
        path.write_text(json.dumps(put_row()))
        with pytest.raises(ValueError, match="list"):
            read_records(str(path))

    def test_csv(self, tmp_path) -> None:
        """CSV rows become dicts keyed by header."""
        path = tmp_path / "trades.csv"
        path.write_text(
            "symbol,event_type,event_date,strike,expiration,premium_per_share,delta\n"
            "AAPL,CSP_SOLD,2026-01-02,50,2026-01-30,2.00,\n"
        )
        rows = read_records(str(path))
        events, errors = validate_records(rows)

        assert errors == []
        assert events[0].meta is None

    def test_unsupported_type(self, tmp_path) -> None:
        """Other file types are rejected."""
        path = tmp_path / "trades.xlsx"
        path.write_text("")
        with pytest.raises(ValueError, match="Unsupported"):
            read_records(str(path))
