"""Tests for the cash-secured put calculator."""

import logging
from datetime import date, timedelta

import pytest

from src.calc import CashSecuredPut, CashSecuredPutInputs, RiskCategory, RiskSeverity

TODAY = date(2026, 10, 17)


def make_inputs(**overrides) -> CashSecuredPutInputs:
    values = dict(
        strike=50.0,
        premium=200.0,
        expiration=TODAY + timedelta(days=30),
    )
    values.update(overrides)
    return CashSecuredPutInputs(**values)


class TestCashSecuredPutMetrics:
    """Tests for cash-secured put metric calculations."""

    def test_standard_put(self) -> None:
        """Test the 50 strike put with a 200 premium and 30 DTE."""
        metrics = CashSecuredPut(make_inputs(), today=TODAY).get_all_metrics()

        assert metrics.valid
        assert metrics.breakeven == pytest.approx(48.0)
        assert metrics.max_profit == pytest.approx(200.0)
        assert metrics.return_on_outlay == pytest.approx(4.0)
        assert metrics.annualized_roo == pytest.approx(48.67, abs=0.01)

    def test_effective_basis_equals_breakeven(self) -> None:
        """Test the effective basis if assigned equals the breakeven."""
        metrics = CashSecuredPut(make_inputs(), today=TODAY).get_all_metrics()
        assert metrics.effective_basis == metrics.breakeven

    def test_cash_secured_defaults_to_strike_times_100(self) -> None:
        """Test collateral defaults to strike x 100 x contracts."""
        calc = CashSecuredPut(make_inputs(contracts=2, premium=400.0), today=TODAY)

        assert calc.inputs.cash_secured == pytest.approx(10000.0)
        assert calc.get_all_metrics().breakeven == pytest.approx(48.0)

    def test_max_loss_if_stock_goes_to_zero(self) -> None:
        """Test max loss is strike x 100 less premium."""
        metrics = CashSecuredPut(make_inputs(), today=TODAY).get_all_metrics()
        assert metrics.max_loss == pytest.approx(4800.0)

    def test_fees_reduce_max_profit(self) -> None:
        """Test fees are deducted from the kept premium."""
        metrics = CashSecuredPut(make_inputs(fees=10.0), today=TODAY).get_all_metrics()
        assert metrics.max_profit == pytest.approx(190.0)

    def test_zero_days_to_expiration(self) -> None:
        """Test DTE 0 annualizes to 0 rather than dividing by zero."""
        metrics = CashSecuredPut(make_inputs(expiration=TODAY), today=TODAY).get_all_metrics()
        assert metrics.days_to_expiration == 0
        assert metrics.annualized_roo == 0.0

    def test_put_delta_is_negative(self) -> None:
        """Test put delta is signed negative and small when far OTM."""
        metrics = CashSecuredPut(make_inputs(current_price=60.0), today=TODAY).get_all_metrics()
        assert -0.5 < metrics.current_delta < 0

    def test_expiration_pnl(self) -> None:
        """Test payoff at expiration above and below the strike."""
        calc = CashSecuredPut(make_inputs(), today=TODAY)
        assert calc.expiration_pnl(55.0) == pytest.approx(200.0)
        assert calc.expiration_pnl(48.0) == pytest.approx(0.0)
        assert calc.expiration_pnl(40.0) == pytest.approx(-800.0)


class TestCashSecuredPutValidation:
    """Tests for invalid and questionable inputs."""

    def test_zero_strike_is_invalid(self) -> None:
        """Test a zero strike yields one critical flag."""
        calc = CashSecuredPut(make_inputs(strike=0.0), today=TODAY)
        risks = calc.analyze_risks()

        assert calc.get_all_metrics().valid is False
        assert len(risks) == 1
        assert risks[0].severity == RiskSeverity.CRITICAL

    def test_zero_contracts_is_invalid(self) -> None:
        """Test zero contracts is rejected."""
        assert not CashSecuredPut(make_inputs(contracts=0), today=TODAY).is_valid

    def test_missing_expiration_is_invalid(self) -> None:
        """Test a record without an expiration yields one critical flag."""
        calc = CashSecuredPut(make_inputs(expiration=None), today=TODAY)

        assert calc.get_all_metrics().valid is False
        assert [f.severity for f in calc.analyze_risks()] == [RiskSeverity.CRITICAL]

    def test_defaults_leave_caller_inputs_unchanged(self) -> None:
        """Test collateral and price defaults are applied to a copy."""
        inputs = make_inputs()
        calc = CashSecuredPut(inputs, today=TODAY)

        assert calc.inputs.cash_secured == pytest.approx(5000.0)
        assert calc.inputs.current_price == pytest.approx(50.0)
        assert inputs.cash_secured is None
        assert inputs.current_price is None

    def test_insufficient_cash_warns_but_stays_valid(self, caplog) -> None:
        """Test under-collateralized puts log a warning only."""
        with caplog.at_level(logging.WARNING):
            calc = CashSecuredPut(make_inputs(cash_secured=1000.0), today=TODAY)

        assert calc.is_valid
        assert "may be insufficient" in caplog.text


class TestCashSecuredPutRisks:
    """Tests for cash-secured put risk flags."""

    def test_at_the_money_by_default(self) -> None:
        """Test current price defaults to the strike, which is near the money."""
        calc = CashSecuredPut(make_inputs(), today=TODAY)
        categories = [f.category for f in calc.analyze_risks()]
        assert RiskCategory.ASSIGNMENT in categories

    def test_far_otm_put_has_no_assignment_flag(self) -> None:
        """Test a put well below the market is not near the money."""
        calc = CashSecuredPut(make_inputs(current_price=60.0), today=TODAY)
        assert calc.analyze_risks() == []

    def test_short_dated_rich_premium(self) -> None:
        """Test 3 DTE with a 4% return flags both return and time."""
        calc = CashSecuredPut(
            make_inputs(current_price=60.0, expiration=TODAY + timedelta(days=3)),
            today=TODAY,
        )
        risks = calc.analyze_risks()

        assert [f.severity for f in risks] == [RiskSeverity.MEDIUM, RiskSeverity.LOW]
        assert risks[0].category == RiskCategory.RETURN
        assert risks[1].category == RiskCategory.TIME
