"""
Indicators module.

Provides:
- BX-Trender, RSI, SMI and moving averages
- Weekly aggregation and the daily IndicatorSnapshot
- Volume analytics
"""
from .technical import (
    IndicatorEngine,
    IndicatorSnapshot,
    aggregate_weekly,
    bx_trender,
    classify_state,
    ema,
    rsi,
    sma,
    smi,
)
from .volume import VolumeMetrics, compute_volume_metrics

__all__ = [
    'IndicatorEngine',
    'IndicatorSnapshot',
    'aggregate_weekly',
    'bx_trender',
    'classify_state',
    'ema',
    'rsi',
    'sma',
    'smi',
    'VolumeMetrics',
    'compute_volume_metrics',
]
