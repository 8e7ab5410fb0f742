"""
Technical indicators for the Orb engine.

Provides BX-Trender, RSI, SMI, EMA/SMA and weekly aggregation, and
folds them into one immutable IndicatorSnapshot for the latest bar.

All smoothing is seeded with the first value (``adjust=False``) so the
live run and the bar-by-bar backtest produce identical numbers.
"""
import logging
from dataclasses import dataclass, asdict, fields
from typing import Any, Dict, Optional, Tuple

import numpy as np
import pandas as pd

from ..shared.defaults import (
    BX_SHORT_PERIOD, BX_LONG_PERIOD, BX_RSI_PERIOD,
    RSI_PERIOD,
    SMI_K_LENGTH, SMI_D_LENGTH, SMI_SMOOTH,
    EMA_SHORT_PERIOD, EMA_LONG_PERIOD, SMA_LONG_PERIOD,
    WEEKLY_EMA_PERIODS, CHANGE_LOOKBACK, MIN_BARS,
)
from ..shared.errors import InsufficientHistoryError
from ..shared.types import BxState


logger = logging.getLogger(__name__)

OHLC_COLUMNS = ['Open', 'High', 'Low', 'Close']


def usable_bars(bars: pd.DataFrame) -> pd.DataFrame:
    """Drop bars with any null OHLC value, oldest first."""
    return bars.dropna(subset=OHLC_COLUMNS).sort_index()


def ema(series: pd.Series, span: int) -> pd.Series:
    """Exponential moving average seeded with the first value (k = 2 / (span + 1))."""
    return series.ewm(span=span, adjust=False).mean()


def sma(series: pd.Series, period: int) -> pd.Series:
    """Trailing simple moving average, NaN until a full window exists."""
    return series.rolling(window=period, min_periods=period).mean()


def rsi(series: pd.Series, period: int = RSI_PERIOD) -> pd.Series:
    """
    Calculate Relative Strength Index with EMA-smoothed gains and losses.

    RSI = 100 - (100 / (1 + RS)), RS = Average Gain / Average Loss.
    The first delta is treated as 0. Where the average loss is zero the
    RSI is pinned at 100.
    """
    delta = series.diff().fillna(0.0)
    gain = delta.clip(lower=0.0)
    loss = (-delta).clip(lower=0.0)

    avg_gain = ema(gain, period)
    avg_loss = ema(loss, period)

    with np.errstate(divide='ignore', invalid='ignore'):
        rs = avg_gain / avg_loss
        values = 100 - (100 / (1 + rs))

    return pd.Series(np.where(avg_loss == 0, 100.0, values), index=series.index)


def smi(
    close: pd.Series,
    high: pd.Series,
    low: pd.Series,
    k_length: int = SMI_K_LENGTH,
    d_length: int = SMI_D_LENGTH,
    smooth: int = SMI_SMOOTH,
) -> Tuple[pd.Series, pd.Series]:
    """
    Calculate the Stochastic Momentum Index.

    Args:
        close: Close prices
        high: High prices
        low: Low prices
        k_length: Rolling high/low window (partial at the start of the series)
        d_length: First smoothing span
        smooth: Second smoothing span, also used for the signal line

    Returns:
        Tuple of (SMI, signal line)
    """
    lowest = low.rolling(window=k_length, min_periods=1).min()
    highest = high.rolling(window=k_length, min_periods=1).max()

    rel_diff = close - (highest + lowest) / 2
    rel_range = highest - lowest

    diff_smoothed = ema(ema(rel_diff, d_length), smooth)
    range_smoothed = ema(ema(rel_range, d_length), smooth)

    with np.errstate(divide='ignore', invalid='ignore'):
        raw = 100 * diff_smoothed / (range_smoothed / 2)
    smi_values = pd.Series(np.where(range_smoothed != 0, raw, 0.0), index=close.index)
    signal = ema(smi_values, smooth)

    return smi_values, signal


def bx_trender(
    close: pd.Series,
    short_period: int = BX_SHORT_PERIOD,
    long_period: int = BX_LONG_PERIOD,
    rsi_period: int = BX_RSI_PERIOD,
) -> pd.Series:
    """BX-Trender: RSI of the fast/slow EMA gap, centered at 0."""
    gap = ema(close, short_period) - ema(close, long_period)
    return rsi(gap, rsi_period) - 50


def classify_state(curr: float, prev: float) -> str:
    """
    Classify a BX-Trender reading against the prior one.

    Returns:
        "HH" (positive, rising), "LH" (positive, not rising),
        "HL" (non-positive, rising) or "LL" (non-positive, not rising)
    """
    if curr > 0 and curr > prev:
        return BxState.HH.value
    if curr > 0:
        return BxState.LH.value
    if curr > prev:
        return BxState.HL.value
    return BxState.LL.value


def classify_series(bx: pd.Series) -> pd.Series:
    """Vectorized classify_state; the first bar is compared with itself."""
    prev = bx.shift(1).fillna(bx)
    conditions = [
        (bx > 0) & (bx > prev),
        bx > 0,
        bx > prev,
    ]
    choices = [BxState.HH.value, BxState.LH.value, BxState.HL.value]
    return pd.Series(np.select(conditions, choices, default=BxState.LL.value), index=bx.index)


def aggregate_weekly(bars: pd.DataFrame) -> pd.DataFrame:
    """
    Aggregate daily bars into calendar-week bars.

    A new week starts whenever the day of week decreases versus the prior
    bar. The trailing in-progress week is kept as its own partial bar.

    Returns:
        DataFrame indexed by each week's last trading date with
        Open (first), High (max), Low (min), Close (last), Volume (sum)
    """
    if bars.empty:
        return bars.copy()

    dow = pd.Series(bars.index.dayofweek, index=bars.index)
    week_id = (dow.diff() < 0).cumsum()

    agg = {'Open': 'first', 'High': 'max', 'Low': 'min', 'Close': 'last'}
    if 'Volume' in bars.columns:
        agg['Volume'] = 'sum'

    weekly = bars.groupby(week_id).agg(agg)
    weekly.index = bars.index.to_series().groupby(week_id).last().values
    weekly.index.name = bars.index.name
    return weekly


def trailing_streak(mask: pd.Series) -> int:
    """Count consecutive True values at the end of a boolean series."""
    count = 0
    for value in reversed(mask.to_numpy()):
        if not value:
            break
        count += 1
    return count


@dataclass(frozen=True)
class IndicatorSnapshot:
    """All derived indicator values for one trading day."""
    date: str  # YYYY-MM-DD
    close: float

    # BX-Trender
    bx_daily: float
    bx_daily_prev: float
    bx_daily_state: str
    bx_daily_state_prev: str
    bx_weekly: float
    bx_weekly_prev: float
    bx_weekly_state: str
    bx_weekly_state_prev: str
    bx_weekly_transition: Optional[str]  # e.g. "LL_to_HL", None if unchanged

    # RSI
    rsi: float
    rsi_prev: float
    rsi_change_3d: float

    # SMI
    smi: float
    smi_signal: float
    smi_prev: float
    smi_signal_prev: float
    smi_change_3d: float
    smi_bull_cross: bool
    smi_bear_cross: bool

    # Daily moving averages
    ema9: float
    ema21: float
    sma200: float
    sma200_dist: float  # % distance of close from SMA 200
    price_vs_ema9: float
    price_vs_ema21: float

    # Streaks
    consecutive_down: int
    consecutive_up: int
    stabilization_days: int  # consecutive days with low >= prior low
    daily_hh_streak: int  # consecutive days with daily BX state HH

    # Weekly moving averages
    weekly_ema9: float
    weekly_ema13: float
    weekly_ema21: float
    weekly_emas_stacked: bool
    price_above_weekly_all: bool
    price_above_weekly_13: bool
    price_above_weekly_21: bool

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IndicatorSnapshot":
        """Create from dictionary, ignoring unknown keys."""
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in names})


class IndicatorEngine:
    """Calculates Orb indicators from daily OHLCV bars."""

    def __init__(
        self,
        bx_short_period: int = BX_SHORT_PERIOD,
        bx_long_period: int = BX_LONG_PERIOD,
        bx_rsi_period: int = BX_RSI_PERIOD,
        rsi_period: int = RSI_PERIOD,
        smi_k_length: int = SMI_K_LENGTH,
        smi_d_length: int = SMI_D_LENGTH,
        smi_smooth: int = SMI_SMOOTH,
        ema_short_period: int = EMA_SHORT_PERIOD,
        ema_long_period: int = EMA_LONG_PERIOD,
        sma_long_period: int = SMA_LONG_PERIOD,
        weekly_ema_periods: Tuple[int, int, int] = WEEKLY_EMA_PERIODS,
        min_bars: int = MIN_BARS,
    ):
        """
        Initialize indicator calculator.

        Args:
            bx_short_period: Fast EMA span of the BX-Trender
            bx_long_period: Slow EMA span of the BX-Trender
            bx_rsi_period: RSI period applied to the EMA gap
            rsi_period: Period for the price RSI
            smi_k_length: SMI rolling high/low window
            smi_d_length: SMI first smoothing span
            smi_smooth: SMI second smoothing span and signal span
            ema_short_period: Short daily EMA period
            ema_long_period: Long daily EMA period
            sma_long_period: Long daily SMA period
            weekly_ema_periods: Fast, mid and slow weekly EMA periods
            min_bars: Usable bars required by compute_snapshot
        """
        self.bx_short_period = bx_short_period
        self.bx_long_period = bx_long_period
        self.bx_rsi_period = bx_rsi_period
        self.rsi_period = rsi_period
        self.smi_k_length = smi_k_length
        self.smi_d_length = smi_d_length
        self.smi_smooth = smi_smooth
        self.ema_short_period = ema_short_period
        self.ema_long_period = ema_long_period
        self.sma_long_period = sma_long_period
        self.weekly_ema_periods = weekly_ema_periods
        self.min_bars = min_bars

    def calculate_bx(self, close: pd.Series) -> pd.Series:
        return bx_trender(close, self.bx_short_period, self.bx_long_period, self.bx_rsi_period)

    def calculate_all(self, bars: pd.DataFrame) -> pd.DataFrame:
        """
        Calculate all daily indicators for every bar.

        Args:
            bars: DataFrame with OHLC columns

        Returns:
            DataFrame with columns: bx, bx_state, rsi, smi, smi_signal,
            ema_short, ema_long, sma_long
        """
        close = bars['Close']
        bx = self.calculate_bx(close)
        smi_values, smi_signal = smi(
            close, bars['High'], bars['Low'],
            self.smi_k_length, self.smi_d_length, self.smi_smooth,
        )

        return pd.DataFrame({
            'bx': bx,
            'bx_state': classify_series(bx),
            'rsi': rsi(close, self.rsi_period),
            'smi': smi_values,
            'smi_signal': smi_signal,
            'ema_short': ema(close, self.ema_short_period),
            'ema_long': ema(close, self.ema_long_period),
            'sma_long': sma(close, self.sma_long_period),
        }, index=bars.index)

    def calculate_weekly(self, bars: pd.DataFrame) -> pd.DataFrame:
        """Calculate weekly BX-Trender and EMAs on aggregated weekly bars."""
        weekly = aggregate_weekly(bars)
        close = weekly['Close']
        fast, mid, slow = self.weekly_ema_periods

        return pd.DataFrame({
            'close': close,
            'bx': self.calculate_bx(close),
            'ema_fast': ema(close, fast),
            'ema_mid': ema(close, mid),
            'ema_slow': ema(close, slow),
        }, index=weekly.index)

    def compute_snapshot(self, bars: pd.DataFrame) -> IndicatorSnapshot:
        """
        Compute the IndicatorSnapshot for the last bar.

        Args:
            bars: Daily OHLCV bars, oldest first

        Returns:
            IndicatorSnapshot for the final bar

        Raises:
            InsufficientHistoryError: If fewer than min_bars usable bars remain
        """
        bars = usable_bars(bars)
        if len(bars) < self.min_bars:
            raise InsufficientHistoryError(
                f"Need at least {self.min_bars} bars with complete OHLC, got {len(bars)}"
            )

        daily = self.calculate_all(bars)
        weekly = self.calculate_weekly(bars)

        n = len(bars)
        i = n - 1
        prev = n - 2
        prev3 = max(0, n - 1 - CHANGE_LOOKBACK)

        closes = bars['Close']
        lows = bars['Low']
        close = float(closes.iloc[i])

        bx = daily['bx']
        bx_state = daily['bx_state']
        rsi_values = daily['rsi']
        smi_values = daily['smi']
        smi_signal = daily['smi_signal']

        # Weekly state of the previous week needs two weeks behind it
        w_last = len(weekly) - 1
        w_prev = max(0, w_last - 1)
        w_bx = weekly['bx']
        w_state = classify_state(w_bx.iloc[w_last], w_bx.iloc[w_prev])
        if w_prev > 0:
            w_state_prev = classify_state(w_bx.iloc[w_prev], w_bx.iloc[w_prev - 1])
        else:
            w_state_prev = BxState.LL.value
        w_transition = f"{w_state_prev}_to_{w_state}" if w_state_prev != w_state else None

        ema_short = float(daily['ema_short'].iloc[i])
        ema_long = float(daily['ema_long'].iloc[i])
        sma_long = float(daily['sma_long'].iloc[i])

        w_fast = float(weekly['ema_fast'].iloc[w_last])
        w_mid = float(weekly['ema_mid'].iloc[w_last])
        w_slow = float(weekly['ema_slow'].iloc[w_last])

        smi_now = float(smi_values.iloc[i])
        smi_before = float(smi_values.iloc[prev])
        sig_now = float(smi_signal.iloc[i])
        sig_before = float(smi_signal.iloc[prev])

        snapshot = IndicatorSnapshot(
            date=bars.index[i].strftime('%Y-%m-%d'),
            close=close,

            bx_daily=float(bx.iloc[i]),
            bx_daily_prev=float(bx.iloc[prev]),
            bx_daily_state=str(bx_state.iloc[i]),
            bx_daily_state_prev=str(bx_state.iloc[prev]),
            bx_weekly=float(w_bx.iloc[w_last]),
            bx_weekly_prev=float(w_bx.iloc[w_prev]),
            bx_weekly_state=w_state,
            bx_weekly_state_prev=w_state_prev,
            bx_weekly_transition=w_transition,

            rsi=float(rsi_values.iloc[i]),
            rsi_prev=float(rsi_values.iloc[prev]),
            rsi_change_3d=float(rsi_values.iloc[i] - rsi_values.iloc[prev3]),

            smi=smi_now,
            smi_signal=sig_now,
            smi_prev=smi_before,
            smi_signal_prev=sig_before,
            smi_change_3d=float(smi_now - smi_values.iloc[prev3]),
            smi_bull_cross=bool(smi_before <= sig_before and smi_now > sig_now),
            smi_bear_cross=bool(smi_before >= sig_before and smi_now < sig_now),

            ema9=ema_short,
            ema21=ema_long,
            sma200=sma_long,
            sma200_dist=(close - sma_long) / sma_long * 100,
            price_vs_ema9=(close - ema_short) / ema_short * 100,
            price_vs_ema21=(close - ema_long) / ema_long * 100,

            consecutive_down=trailing_streak(closes < closes.shift(1)),
            consecutive_up=trailing_streak(closes > closes.shift(1)),
            stabilization_days=trailing_streak(lows >= lows.shift(1)),
            daily_hh_streak=trailing_streak(bx_state.iloc[1:] == BxState.HH.value),

            weekly_ema9=w_fast,
            weekly_ema13=w_mid,
            weekly_ema21=w_slow,
            weekly_emas_stacked=bool(w_fast > w_mid > w_slow),
            price_above_weekly_all=bool(close > w_fast and close > w_mid and close > w_slow),
            price_above_weekly_13=bool(close > w_mid),
            price_above_weekly_21=bool(close > w_slow),
        )

        logger.debug(
            f"Snapshot {snapshot.date}: close={close:.2f} "
            f"BX D={snapshot.bx_daily_state} W={snapshot.bx_weekly_state} "
            f"RSI={snapshot.rsi:.1f} SMI={snapshot.smi:.1f}"
        )
        return snapshot
