"""
Shared fixtures: synthetic daily bars and IndicatorSnapshot factories.
"""
import numpy as np
import pandas as pd
import pytest

from orb.indicators.technical import IndicatorSnapshot


NEUTRAL_SNAPSHOT = dict(
    date="2024-03-01",
    close=100.0,
    bx_daily=-5.0,
    bx_daily_prev=-5.0,
    bx_daily_state="LL",
    bx_daily_state_prev="LL",
    bx_weekly=5.0,
    bx_weekly_prev=5.0,
    bx_weekly_state="LH",
    bx_weekly_state_prev="LH",
    bx_weekly_transition=None,
    rsi=50.0,
    rsi_prev=50.0,
    rsi_change_3d=0.0,
    smi=-10.0,
    smi_signal=-10.0,
    smi_prev=-10.0,
    smi_signal_prev=-10.0,
    smi_change_3d=0.0,
    smi_bull_cross=False,
    smi_bear_cross=False,
    ema9=100.0,
    ema21=100.0,
    sma200=100.0,
    sma200_dist=0.0,
    price_vs_ema9=0.0,
    price_vs_ema21=0.0,
    consecutive_down=0,
    consecutive_up=0,
    stabilization_days=0,
    daily_hh_streak=0,
    weekly_ema9=100.0,
    weekly_ema13=100.0,
    weekly_ema21=100.0,
    weekly_emas_stacked=False,
    price_above_weekly_all=False,
    price_above_weekly_13=False,
    price_above_weekly_21=True,
)


@pytest.fixture
def make_snapshot():
    """Factory for snapshots with neutral defaults; keyword arguments override fields."""
    def _make(**overrides):
        values = dict(NEUTRAL_SNAPSHOT)
        values.update(overrides)
        return IndicatorSnapshot(**values)
    return _make


def random_walk_bars(periods: int = 400, start: str = "2022-01-03", seed: int = 42) -> pd.DataFrame:
    """Business-day OHLCV bars following a seeded random walk."""
    rng = np.random.default_rng(seed)
    dates = pd.bdate_range(start, periods=periods)
    close = 200 * np.exp(np.cumsum(rng.normal(0, 0.02, periods)))
    open_ = close * (1 + rng.normal(0, 0.005, periods))
    high = np.maximum(open_, close) * (1 + np.abs(rng.normal(0, 0.01, periods)))
    low = np.minimum(open_, close) * (1 - np.abs(rng.normal(0, 0.01, periods)))
    volume = rng.integers(50_000_000, 150_000_000, periods).astype(float)

    return pd.DataFrame({
        'Open': open_,
        'High': high,
        'Low': low,
        'Close': close,
        'Volume': volume,
    }, index=dates)


@pytest.fixture
def daily_bars():
    """400 business days of synthetic OHLCV data."""
    return random_walk_bars()
