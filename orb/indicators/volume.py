"""
Volume analytics for the daily indicator record.

Relative volume against the trailing average and a simple price/volume
alignment classification.
"""
import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional

import pandas as pd

from ..shared.defaults import VOLUME_AVG_WINDOW, PRICE_DEADBAND


logger = logging.getLogger(__name__)

# (minimum relative volume %, signal), checked top-down
VOLUME_SIGNAL_BUCKETS = [
    (200.0, "climactic"),
    (130.0, "above_avg"),
    (70.0, "normal"),
    (40.0, "below_avg"),
]


@dataclass
class VolumeMetrics:
    """Volume context for one trading day."""
    volume: float
    volume_20d_avg: float
    relative_volume_pct: float
    volume_price_alignment: str  # confirmed | divergent | neutral
    volume_signal: str  # climactic | above_avg | normal | below_avg | dry

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


def classify_alignment(open_price: float, close: float, volume: float, prev_volume: float) -> str:
    """
    Classify whether volume backs the day's price move.

    A move smaller than the deadband is neutral. A move on rising volume is
    confirmed, on falling volume divergent.
    """
    price_change = close - open_price
    volume_change = volume - prev_volume

    if open_price == 0 or abs(price_change / open_price) < PRICE_DEADBAND:
        return "neutral"
    if volume_change > 0:
        return "confirmed"
    if volume_change < 0:
        return "divergent"
    return "neutral"


def classify_volume_signal(relative_volume_pct: float) -> str:
    """Bucket relative volume into a five-level signal."""
    for minimum, signal in VOLUME_SIGNAL_BUCKETS:
        if relative_volume_pct >= minimum:
            return signal
    return "dry"


def compute_volume_metrics(bars: pd.DataFrame, window: int = VOLUME_AVG_WINDOW) -> Optional[VolumeMetrics]:
    """
    Compute volume metrics for the last bar.

    The average covers the ``window`` sessions before today, excluding today.

    Args:
        bars: Daily OHLCV bars, oldest first
        window: Number of prior sessions in the average

    Returns:
        VolumeMetrics, or None if there is no usable volume history
    """
    if 'Volume' not in bars.columns or len(bars) < 2:
        return None

    volumes = bars['Volume'].astype(float)
    prior = volumes.iloc[-(window + 1):-1]
    avg_volume = float(prior.mean())
    if pd.isna(avg_volume) or avg_volume <= 0:
        logger.debug("No prior volume available, skipping volume metrics")
        return None

    today = bars.iloc[-1]
    today_volume = float(today['Volume'])
    relative_pct = today_volume / avg_volume * 100

    return VolumeMetrics(
        volume=today_volume,
        volume_20d_avg=round(avg_volume),
        relative_volume_pct=round(relative_pct, 1),
        volume_price_alignment=classify_alignment(
            float(today['Open']), float(today['Close']), today_volume, float(volumes.iloc[-2])
        ),
        volume_signal=classify_volume_signal(relative_pct),
    )
