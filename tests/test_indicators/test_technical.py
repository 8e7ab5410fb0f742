"""
Tests for the Orb indicator functions and IndicatorEngine snapshots.
"""
import numpy as np
import pandas as pd
import pytest

from orb.indicators.technical import (
    IndicatorEngine,
    IndicatorSnapshot,
    aggregate_weekly,
    bx_trender,
    classify_series,
    classify_state,
    ema,
    rsi,
    sma,
    smi,
    trailing_streak,
)
from orb.shared.errors import InsufficientHistoryError


class TestClassifyState:
    """Test the four-way BX state classification."""

    @pytest.mark.parametrize("curr, prev, expected", [
        (5, 3, "HH"),
        (5, 6, "LH"),
        (-1, -3, "HL"),
        (-3, -1, "LL"),
        (0, -1, "HL"),
        (0, 0, "LL"),
        (5, 5, "LH"),
    ])
    def test_table(self, curr, prev, expected):
        assert classify_state(curr, prev) == expected

    def test_non_positive_and_not_rising_is_ll(self):
        """Any curr <= 0 with curr <= prev is LL."""
        for curr in (-10.0, -0.5, 0.0):
            for prev in (curr, curr + 0.1, 3.0):
                assert classify_state(curr, prev) == "LL"

    def test_series_matches_scalar(self):
        bx = pd.Series([-3.0, -1.0, 2.0, 4.0, 3.0, -2.0, -4.0])
        states = classify_series(bx)
        expected = ["LL"] + [classify_state(bx[i], bx[i - 1]) for i in range(1, len(bx))]
        assert list(states) == expected


class TestMovingAverages:
    """Test EMA and SMA."""

    def test_ema_constant_series(self):
        """EMA of a constant series equals the constant for any span."""
        series = pd.Series([10.0, 10.0, 10.0, 10.0])
        for span in (1, 2, 3, 9, 50):
            assert np.allclose(ema(series, span), 10.0)

    def test_ema_seeded_with_first_value(self):
        series = pd.Series([10.0, 20.0])
        result = ema(series, 3)  # k = 0.5
        assert result.iloc[0] == 10.0
        assert result.iloc[1] == pytest.approx(15.0)

    def test_sma_nan_until_full_window(self):
        series = pd.Series([1.0, 2.0, 3.0, 4.0])
        result = sma(series, 3)
        assert result.iloc[:2].isna().all()
        assert result.iloc[2] == pytest.approx(2.0)
        assert result.iloc[3] == pytest.approx(3.0)


class TestRSI:
    """Test RSI calculation."""

    def test_rsi_range(self, daily_bars):
        values = rsi(daily_bars['Close'], 14)
        assert values.min() >= 0
        assert values.max() <= 100
        assert len(values) == len(daily_bars)

    def test_rsi_only_gains_is_100(self):
        series = pd.Series(np.arange(1.0, 30.0))
        assert rsi(series, 14).iloc[-1] == 100.0

    def test_rsi_only_losses_is_0(self):
        series = pd.Series(np.arange(30.0, 1.0, -1.0))
        assert rsi(series, 14).iloc[-1] == pytest.approx(0.0)


class TestSMI:
    """Test Stochastic Momentum Index."""

    def test_flat_range_is_zero(self):
        flat = pd.Series([50.0] * 20)
        values, signal = smi(flat, flat, flat)
        assert (values == 0).all()
        assert (signal == 0).all()

    def test_close_at_highs_is_positive(self):
        n = 40
        close = pd.Series(np.linspace(100, 140, n))
        high = close + 0.1
        low = close - 5
        values, _ = smi(close, high, low)
        assert values.iloc[-1] > 50

    def test_bounded(self, daily_bars):
        values, _ = smi(daily_bars['Close'], daily_bars['High'], daily_bars['Low'])
        assert values.abs().max() <= 100


class TestBxTrender:
    def test_centered_range(self, daily_bars):
        bx = bx_trender(daily_bars['Close'])
        assert bx.min() >= -50
        assert bx.max() <= 50

    def test_uptrend_positive(self):
        close = pd.Series(100 * 1.01 ** np.arange(60))
        assert bx_trender(close).iloc[-1] > 0


class TestAggregateWeekly:
    """Test calendar-week aggregation."""

    def test_two_full_weeks(self):
        dates = pd.bdate_range('2024-01-01', periods=10)  # Mon 1st .. Fri 12th
        bars = pd.DataFrame({
            'Open': np.arange(10, dtype=float),
            'High': np.arange(10, dtype=float) + 10,
            'Low': np.arange(10, dtype=float) - 10,
            'Close': np.arange(10, dtype=float) + 0.5,
            'Volume': np.ones(10),
        }, index=dates)

        weekly = aggregate_weekly(bars)

        assert len(weekly) == 2
        assert list(weekly.index) == [pd.Timestamp('2024-01-05'), pd.Timestamp('2024-01-12')]
        first = weekly.iloc[0]
        assert first['Open'] == 0
        assert first['High'] == 14
        assert first['Low'] == -10
        assert first['Close'] == 4.5
        assert first['Volume'] == 5

    def test_partial_week_kept(self):
        dates = pd.bdate_range('2024-01-01', periods=7)  # ends Tue 9th
        bars = pd.DataFrame({c: np.arange(7, dtype=float) for c in ['Open', 'High', 'Low', 'Close']}, index=dates)

        weekly = aggregate_weekly(bars)

        assert len(weekly) == 2
        assert weekly.index[-1] == pd.Timestamp('2024-01-09')
        assert weekly['Close'].iloc[-1] == 6

    def test_holiday_monday_does_not_split_week(self):
        dates = pd.DatetimeIndex(['2024-01-10', '2024-01-11', '2024-01-12', '2024-01-16', '2024-01-17'])
        bars = pd.DataFrame({c: np.arange(5, dtype=float) for c in ['Open', 'High', 'Low', 'Close']}, index=dates)
        assert len(aggregate_weekly(bars)) == 2


class TestTrailingStreak:
    def test_counts_tail_only(self):
        assert trailing_streak(pd.Series([True, False, True, True])) == 2
        assert trailing_streak(pd.Series([True, True, False])) == 0
        assert trailing_streak(pd.Series([], dtype=bool)) == 0


class TestIndicatorEngine:
    """Test snapshot computation."""

    def test_insufficient_history(self, daily_bars):
        engine = IndicatorEngine()
        with pytest.raises(InsufficientHistoryError):
            engine.compute_snapshot(daily_bars.iloc[:219])

    def test_null_rows_do_not_count(self, daily_bars):
        bars = daily_bars.iloc[:225].copy()
        bars.iloc[:10, bars.columns.get_loc('Close')] = np.nan
        with pytest.raises(InsufficientHistoryError):
            IndicatorEngine().compute_snapshot(bars)

    def test_snapshot_for_last_bar(self, daily_bars):
        snapshot = IndicatorEngine().compute_snapshot(daily_bars)

        assert snapshot.date == daily_bars.index[-1].strftime('%Y-%m-%d')
        assert snapshot.close == pytest.approx(daily_bars['Close'].iloc[-1])
        assert snapshot.bx_daily_state in {"HH", "LH", "HL", "LL"}
        assert snapshot.bx_weekly_state in {"HH", "LH", "HL", "LL"}
        assert snapshot.bx_daily_state == classify_state(snapshot.bx_daily, snapshot.bx_daily_prev)
        assert 0 <= snapshot.rsi <= 100

    def test_comparatives(self, daily_bars):
        engine = IndicatorEngine()
        snapshot = engine.compute_snapshot(daily_bars)
        daily = engine.calculate_all(daily_bars)

        assert snapshot.rsi_prev == pytest.approx(daily['rsi'].iloc[-2])
        assert snapshot.rsi_change_3d == pytest.approx(daily['rsi'].iloc[-1] - daily['rsi'].iloc[-4])
        assert snapshot.smi_change_3d == pytest.approx(daily['smi'].iloc[-1] - daily['smi'].iloc[-4])
        assert snapshot.sma200 == pytest.approx(daily_bars['Close'].iloc[-200:].mean())
        expected_dist = (snapshot.close - snapshot.sma200) / snapshot.sma200 * 100
        assert snapshot.sma200_dist == pytest.approx(expected_dist)

    def test_weekly_transition_label(self, daily_bars):
        snapshot = IndicatorEngine().compute_snapshot(daily_bars)
        if snapshot.bx_weekly_state == snapshot.bx_weekly_state_prev:
            assert snapshot.bx_weekly_transition is None
        else:
            assert snapshot.bx_weekly_transition == (
                f"{snapshot.bx_weekly_state_prev}_to_{snapshot.bx_weekly_state}"
            )

    def test_streaks(self, daily_bars):
        bars = daily_bars.iloc[:300].copy()
        # Force four straight lower closes at the end
        closes = bars['Close'].to_numpy().copy()
        for k in range(4, 0, -1):
            closes[-k] = closes[-k - 1] * 0.98
        bars['Close'] = closes
        bars['High'] = np.maximum(bars['High'], bars['Close'])
        bars['Low'] = np.minimum(bars['Low'], bars['Close'])

        snapshot = IndicatorEngine().compute_snapshot(bars)

        assert snapshot.consecutive_down >= 4
        assert snapshot.consecutive_up == 0

    def test_snapshot_round_trips_through_dict(self, daily_bars):
        snapshot = IndicatorEngine().compute_snapshot(daily_bars)
        data = snapshot.to_dict()
        data['unknown_field'] = 1
        assert IndicatorSnapshot.from_dict(data) == snapshot

    def test_causal(self, daily_bars):
        """A snapshot never depends on bars after its date."""
        engine = IndicatorEngine()
        truncated = engine.compute_snapshot(daily_bars.iloc[:300])
        again = engine.compute_snapshot(daily_bars.iloc[:300].copy())
        assert truncated == again
        assert truncated.date == daily_bars.index[299].strftime('%Y-%m-%d')
