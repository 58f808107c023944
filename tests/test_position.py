"""Tests for Position lifecycle, chase steps, derived metrics and JSON shape."""

import pytest

from conftest import make_position
from sizing_core.account import Account
from sizing_core.contracts import PositionStatus, Side
from sizing_core.errors import InvalidTransition
from sizing_core.position import Position
from sizing_core.setup_plan import Setup
from sizing_core.sizing_engine import recalculate


class TestLifecycle:
    def test_first_fill_opens(self, two_step_setup: Setup) -> None:
        p = make_position(two_step_setup, [120, 100])
        assert p.status == PositionStatus.PLANNING
        p.set_filled(1, True)
        assert p.status == PositionStatus.OPENED

    def test_unfill_does_not_revert_status(self, two_step_setup: Setup) -> None:
        p = make_position(two_step_setup, [120, 100])
        p.set_filled(0, True)
        p.set_filled(0, False)
        assert p.status == PositionStatus.OPENED

    def test_unfill_clears_closed(self, two_step_setup: Setup) -> None:
        p = make_position(two_step_setup, [120, 100])
        p.set_filled(0, True)
        p.close_step(0)
        assert p.steps[0].is_closed
        p.set_filled(0, False)
        assert not p.steps[0].is_closed

    def test_close_unfilled_step_rejected(self, two_step_setup: Setup) -> None:
        p = make_position(two_step_setup, [120, 100])
        with pytest.raises(InvalidTransition):
            p.close_step(0)

    def test_close_requires_opened(self, two_step_setup: Setup) -> None:
        p = make_position(two_step_setup, [120, 100])
        with pytest.raises(InvalidTransition):
            p.close()
        p.set_filled(0, True)
        p.close(closed_at=1234)
        assert p.status == PositionStatus.CLOSED
        assert p.closed_at == 1234

    def test_closed_position_rejects_fills(self, two_step_setup: Setup) -> None:
        p = make_position(two_step_setup, [120, 100])
        p.set_filled(0, True)
        p.close()
        with pytest.raises(InvalidTransition):
            p.set_filled(1, True)

    def test_step_index_out_of_range(self, two_step_setup: Setup) -> None:
        p = make_position(two_step_setup, [120, 100])
        with pytest.raises(IndexError):
            p.step_at(5)
        with pytest.raises(IndexError):
            p.step_at(0, chase=True)


class TestChaseSteps:
    def test_add_set_remove(self, two_step_setup: Setup) -> None:
        p = make_position(two_step_setup, [120, 100])
        p.add_chase_step()
        p.set_chase_entry(0, price=105, size=2)
        assert p.chase_steps[0].cost == pytest.approx(210.0)
        p.set_chase_entry(0, size=3)
        assert p.chase_steps[0].price == 105
        assert p.chase_steps[0].cost == pytest.approx(315.0)
        p.remove_chase_step(0)
        assert p.chase_steps == []


class TestDerivedMetrics:
    def test_totals_skip_closed_steps(self, two_step_setup: Setup) -> None:
        p = make_position(two_step_setup, [120, 100], stop=95)
        p.steps[0].size = 1
        p.steps[1].size = 2
        assert p.total_size == 3
        assert p.total_cost == pytest.approx(320.0)
        assert p.planned_risk == pytest.approx(25 + 10)
        p.set_filled(0, True)
        p.close_step(0)
        assert p.total_size == 2
        assert p.planned_risk == pytest.approx(10.0)

    def test_margin_usage_pct(self, two_step_setup: Setup) -> None:
        p = make_position(two_step_setup, [100, 100], leverage=2)
        p.steps[0].size = 1
        p.steps[1].size = 1
        assert p.margin_estimate() == pytest.approx(100.0)
        assert p.margin_usage_pct(1000) == pytest.approx(10.0)
        assert p.margin_usage_pct(0) == 0.0


class TestSerialization:
    def test_round_trip(self, two_step_setup: Setup) -> None:
        p = make_position(two_step_setup, [120, 100], side=Side.LONG, stop=95)
        recalculate(p, two_step_setup)
        p.add_chase_step()
        p.set_chase_entry(0, price=99, size=1)
        p.pnl = 12.5
        d = p.to_dict()
        assert d["stopLossPrice"] == 95
        assert d["steps"][0]["orderType"] == "taker"
        assert "predictedBE" in d and "currentBE" in d
        assert Position.from_dict(d) == p

    def test_zero_risk_and_leverage_take_defaults(self) -> None:
        p = Position.from_dict({"id": "p1", "riskAmount": 0, "leverage": 0})
        assert p.risk_amount == 100.0
        assert p.leverage == 1.0
        assert p.status == PositionStatus.PLANNING


class TestAccount:
    def test_current_balance_defaults_to_initial(self) -> None:
        assert Account(initial_balance=5000).current_balance == 5000

    def test_realized_stats(self, one_step_setup: Setup) -> None:
        acc = Account(id="acc-1", initial_balance=1000)
        closed = make_position(one_step_setup, [100], stop=90)
        closed.set_filled(0, True)
        closed.fee_total = 1.5
        closed.pnl = 40.0
        closed.close()
        still_open = make_position(one_step_setup, [100], stop=90)
        still_open.pnl = 999.0
        stats = acc.realized_stats([closed, still_open])
        assert stats == {"realized_pnl": 40.0, "total_fees": 1.5, "current_balance": 1040.0}
        assert acc.current_balance == 1040.0

    def test_fee_schedule(self) -> None:
        fees = Account(maker_fee=0.001, taker_fee=0.002).fees
        assert fees.rate_for("maker") == 0.001
        assert fees.rate_for("taker") == 0.002
