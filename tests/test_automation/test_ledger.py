"""
Tests for the trade ledger lifecycle.
"""
import pandas as pd
import pytest

from orb.automation.ledger import TradeLedger, exit_reason_for, is_winning_return
from orb.automation.state import OrbStateStore
from orb.setups.catalog import SETUP_REGISTRY
from orb.shared.types import ExitReason, SetupSide


TRADING_DAYS = [d.strftime('%Y-%m-%d') for d in pd.bdate_range('2024-03-01', periods=80)]


@pytest.fixture
def store(tmp_path):
    return OrbStateStore(tmp_path / "state")


@pytest.fixture
def ledger(store):
    return TradeLedger(store)


@pytest.fixture
def day(make_snapshot):
    """Snapshot for the i-th trading day at a given close."""
    def _day(i, close=100.0):
        return make_snapshot(date=TRADING_DAYS[i], close=close)
    return _day


class TestHelpers:
    def test_winning_return(self):
        assert is_winning_return(SetupSide.BUY, 1.5)
        assert not is_winning_return(SetupSide.BUY, 0.0)
        assert is_winning_return(SetupSide.AVOID, -0.1)
        assert not is_winning_return(SetupSide.AVOID, 2.0)

    def test_exit_reason(self):
        assert exit_reason_for("Target reached: SMI hit 31.0 (>=+30)") == ExitReason.TARGET_REACHED
        assert exit_reason_for("RSI: 50.0") == ExitReason.CONDITIONS_LOST
        assert exit_reason_for("") == ExitReason.CONDITIONS_LOST


class TestStandardLifecycle:
    def test_open_mark_close(self, ledger, store, day):
        definition = SETUP_REGISTRY["goldilocks"]

        trade = ledger.on_activation(definition, day(0, 100.0))
        assert trade.trade_id == f"goldilocks:{TRADING_DAYS[0]}"
        assert trade.entry_price == 100.0
        assert trade.days_active == 1

        ledger.on_still_active(definition, day(1, 110.0))
        ledger.on_still_active(definition, day(2, 95.0))
        trade = store.get_open_trade("goldilocks")
        assert trade.days_active == 3
        assert trade.current_return_pct == pytest.approx(-5.0)
        assert trade.max_return_pct == pytest.approx(10.0)
        assert trade.max_drawdown_pct == pytest.approx(-5.0)

        closed = ledger.on_deactivation(definition, "RSI: 70.0", day(3, 104.0))
        assert closed.status == "closed"
        assert closed.exit_reason == "conditions_lost"
        assert closed.final_return_pct == pytest.approx(4.0)
        assert closed.is_win is True
        assert store.get_open_trade("goldilocks") is None

    def test_mark_is_idempotent_per_date(self, ledger, store, day):
        definition = SETUP_REGISTRY["goldilocks"]
        ledger.on_activation(definition, day(0))
        ledger.on_still_active(definition, day(1))
        ledger.on_still_active(definition, day(1))
        assert store.get_open_trade("goldilocks").days_active == 2

    def test_one_open_trade_per_setup(self, ledger, store, day):
        definition = SETUP_REGISTRY["goldilocks"]
        first = ledger.on_activation(definition, day(0))
        again = ledger.on_activation(definition, day(1))
        assert again.trade_id == first.trade_id
        assert len(store.get_trades("goldilocks")) == 1

    def test_deactivation_without_trade(self, ledger, day):
        assert ledger.on_deactivation(SETUP_REGISTRY["goldilocks"], "gone", day(0)) is None
        assert ledger.on_still_active(SETUP_REGISTRY["goldilocks"], day(0)) is None

    def test_avoid_trade_wins_on_decline(self, ledger, day):
        definition = SETUP_REGISTRY["dual-ll"]
        ledger.on_activation(definition, day(0, 100.0))
        closed = ledger.on_deactivation(definition, "Daily: HL", day(1, 90.0))
        assert closed.final_return_pct == pytest.approx(-10.0)
        assert closed.is_win is True


class TestFlicker:
    def test_reopen_within_window(self, ledger, store, make_snapshot):
        definition = SETUP_REGISTRY["goldilocks"]
        ledger.on_activation(definition, make_snapshot(date="2024-03-01", close=100.0))
        closed = ledger.on_deactivation(definition, "lost", make_snapshot(date="2024-03-04", close=101.0))
        trade_id = closed.trade_id

        reopened = ledger.on_activation(definition, make_snapshot(date="2024-03-07", close=103.0))

        assert reopened.trade_id == trade_id
        assert reopened.is_open
        assert reopened.exit_date is None
        assert reopened.final_return_pct is None
        assert reopened.days_active == 3
        assert len(store.get_trades("goldilocks")) == 1

    def test_window_is_inclusive(self, ledger, store, make_snapshot):
        definition = SETUP_REGISTRY["goldilocks"]
        ledger.on_activation(definition, make_snapshot(date="2024-03-01"))
        ledger.on_deactivation(definition, "lost", make_snapshot(date="2024-03-04"))

        reopened = ledger.on_activation(definition, make_snapshot(date="2024-03-11"))
        assert reopened.trade_id == "goldilocks:2024-03-01"

    def test_new_trade_after_window(self, ledger, store, make_snapshot):
        definition = SETUP_REGISTRY["goldilocks"]
        ledger.on_activation(definition, make_snapshot(date="2024-03-01"))
        ledger.on_deactivation(definition, "lost", make_snapshot(date="2024-03-04"))

        fresh = ledger.on_activation(definition, make_snapshot(date="2024-03-25", close=120.0))

        assert fresh.trade_id == "goldilocks:2024-03-25"
        assert fresh.entry_price == 120.0
        trades = store.get_trades("goldilocks")
        assert len(trades) == 2
        assert sum(t.is_open for t in trades) == 1


class TestFixedHorizon:
    def test_held_until_horizon(self, ledger, store, day):
        definition = SETUP_REGISTRY["momentum-flip"]
        ledger.on_activation(definition, day(0, 100.0))
        for i in range(1, 5):
            ledger.on_still_active(definition, day(i, 100.0 + i))

        held = ledger.on_deactivation(definition, "BX: LH", day(5, 104.0))
        assert held.is_open
        assert held.exit_reason == "tracking_horizon"
        assert held.days_active == 6

        closed = []
        for i in range(6, 20):
            closed.extend(ledger.sweep_tracking_horizon(day(i, 100.0 + i), SETUP_REGISTRY))
            if i < 19:
                assert closed == []

        assert len(closed) == 1
        trade = closed[0]
        assert trade.days_active == 20
        assert trade.exit_reason == "horizon_reached"
        assert trade.exit_date == TRADING_DAYS[19]
        assert trade.exit_price == 119.0
        assert trade.final_return_pct == pytest.approx(19.0)

    def test_sweep_skips_trades_marked_today(self, ledger, store, day):
        definition = SETUP_REGISTRY["momentum-flip"]
        ledger.on_activation(definition, day(0))
        ledger.on_deactivation(definition, "BX: LH", day(1))

        assert ledger.sweep_tracking_horizon(day(1), SETUP_REGISTRY) == []
        assert store.get_open_trade("momentum-flip").days_active == 2

    def test_reactivation_resumes_held_trade(self, ledger, store, day):
        definition = SETUP_REGISTRY["momentum-flip"]
        first = ledger.on_activation(definition, day(0))
        ledger.on_deactivation(definition, "BX: LH", day(1))

        resumed = ledger.on_activation(definition, day(2))

        assert resumed.trade_id == first.trade_id
        assert resumed.exit_reason is None
        assert resumed.days_active == 3
        assert ledger.sweep_tracking_horizon(day(3), SETUP_REGISTRY) == []

    def test_deactivation_past_horizon_closes(self, ledger, day):
        definition = SETUP_REGISTRY["momentum-flip"]
        ledger.on_activation(definition, day(0))
        for i in range(1, 20):
            ledger.on_still_active(definition, day(i))

        closed = ledger.on_deactivation(definition, "BX: LH", day(20))
        assert not closed.is_open
        assert closed.exit_reason == "conditions_lost"


class TestGauge:
    def test_target_reached(self, ledger, day):
        definition = SETUP_REGISTRY["smi-oversold-gauge"]
        ledger.on_activation(definition, day(0, 100.0))
        closed = ledger.on_deactivation(definition, "Target reached: SMI hit 31.2 (>=+30)", day(1, 108.0))
        assert closed.exit_reason == "target_reached"
        assert closed.is_win

    def test_timeout(self, ledger, store, day):
        definition = SETUP_REGISTRY["smi-oversold-gauge"]
        ledger.on_activation(definition, day(0))
        for i in range(1, 59):
            trade = ledger.on_still_active(definition, day(i))
            assert trade.is_open

        timed_out = ledger.on_still_active(definition, day(59, 90.0))

        assert timed_out.days_active == 60
        assert timed_out.exit_reason == "timeout"
        assert timed_out.is_win is False
        assert store.get_open_trade("smi-oversold-gauge") is None
