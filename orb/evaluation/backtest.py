"""
Setup backtest: replay the setup catalog bar by bar over history.

Each step sees only the bars up to and including that day, so weekly
indicators use the partial current week exactly as the live batch does.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from ..indicators.technical import IndicatorEngine, usable_bars
from ..scoring.score import ZONE_RANK, assign_zone, compute_orb_score
from ..setups.catalog import SETUP_REGISTRY, evaluate_all_setups
from ..setups.types import PreviousState
from ..shared.defaults import BACKTEST_HORIZONS, BACKTEST_START_INDEX
from ..shared.types import SetupSide, SetupStatus


logger = logging.getLogger(__name__)


@dataclass
class SetupInstance:
    """One activation of a setup with its forward returns."""
    setup_id: str
    side: str
    signal_date: str
    signal_price: float
    bar_index: int
    returns: Dict[int, Optional[float]] = field(default_factory=dict)
    wins: Dict[int, Optional[bool]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "setup_id": self.setup_id,
            "side": self.side,
            "signal_date": self.signal_date,
            "signal_price": self.signal_price,
        }
        for h in sorted(self.returns):
            out[f"ret_{h}d"] = self.returns[h]
            out[f"is_win_{h}d"] = self.wins.get(h)
        return out


@dataclass
class BacktestReplay:
    """Output of a replay: activations plus the daily status grid."""
    instances: List[SetupInstance]
    statuses: pd.DataFrame  # index = date, columns = setup ids
    closes: pd.Series
    final_states: Dict[str, PreviousState]


def forward_return(closes: np.ndarray, index: int, horizon: int) -> Optional[float]:
    """Percent return from closes[index] to closes[index + horizon], None past the end."""
    if index + horizon >= len(closes):
        return None
    return float((closes[index + horizon] - closes[index]) / closes[index] * 100)


def run_setup_backtest(
    bars: pd.DataFrame,
    start_index: int = BACKTEST_START_INDEX,
    horizons: Sequence[int] = BACKTEST_HORIZONS,
    previous_states: Optional[Mapping[str, PreviousState]] = None,
    engine: Optional[IndicatorEngine] = None,
) -> BacktestReplay:
    """
    Replay every setup over daily bars.

    Args:
        bars: Daily OHLCV bars, oldest first
        start_index: First bar evaluated (earlier bars only warm up indicators)
        horizons: Forward horizons in trading days
        previous_states: Injected state map for the first evaluated day
        engine: Indicator engine (default: IndicatorEngine())

    Returns:
        BacktestReplay

    Raises:
        ValueError: If there are not enough bars to start the replay
    """
    engine = engine or IndicatorEngine()
    bars = usable_bars(bars)
    if len(bars) <= start_index:
        raise ValueError(f"Need more than {start_index} bars for a backtest, got {len(bars)}")

    states: Dict[str, PreviousState] = dict(previous_states or {})
    instances: List[SetupInstance] = []
    rows = []
    dates = []

    for i in range(start_index, len(bars)):
        snapshot = engine.compute_snapshot(bars.iloc[:i + 1])
        results = evaluate_all_setups(snapshot, states)

        day_statuses = {}
        for result in results:
            setup_id = result.setup_id
            before = states.get(setup_id)
            was_active = before is not None and before.is_active
            status = result.status

            if status == SetupStatus.ACTIVE and not was_active:
                instances.append(SetupInstance(
                    setup_id=setup_id,
                    side=SETUP_REGISTRY[setup_id].side.value,
                    signal_date=snapshot.date,
                    signal_price=snapshot.close,
                    bar_index=i,
                ))

            if status == SetupStatus.ACTIVE:
                states[setup_id] = PreviousState(
                    setup_id=setup_id,
                    status=status.value,
                    gauge_entry_value=result.gauge_entry_value,
                    entry_price=before.entry_price if was_active else snapshot.close,
                    active_since=before.active_since if was_active else snapshot.date,
                )
            else:
                states[setup_id] = PreviousState(setup_id=setup_id, status=status.value)
            day_statuses[setup_id] = status.value

        rows.append(day_statuses)
        dates.append(bars.index[i])

    closes = bars['Close'].to_numpy(dtype=float)
    for inst in instances:
        sell_side = inst.side == SetupSide.AVOID.value
        for h in horizons:
            ret = forward_return(closes, inst.bar_index, h)
            inst.returns[h] = ret
            if ret is None:
                inst.wins[h] = None
            else:
                inst.wins[h] = ret < 0 if sell_side else ret > 0

    statuses = pd.DataFrame(rows, index=pd.DatetimeIndex(dates), columns=list(SETUP_REGISTRY))
    logger.info(
        f"Backtest replayed {len(statuses)} days "
        f"({statuses.index[0].date()} to {statuses.index[-1].date()}), "
        f"{len(instances)} activations"
    )
    return BacktestReplay(
        instances=instances,
        statuses=statuses,
        closes=bars['Close'].astype(float),
        final_states=states,
    )


def summarize_instances(
    instances: List[SetupInstance],
    horizons: Sequence[int] = BACKTEST_HORIZONS,
) -> pd.DataFrame:
    """
    Aggregate activations per setup.

    Returns:
        DataFrame indexed by setup_id with count, avg_ret_{h}d and
        win_rate_{h}d (percent, direction-aware) per horizon
    """
    records = []
    for setup_id in SETUP_REGISTRY:
        subset = [inst for inst in instances if inst.setup_id == setup_id]
        record: Dict[str, Any] = {"setup_id": setup_id, "count": len(subset)}
        for h in horizons:
            rets = [inst.returns[h] for inst in subset if inst.returns.get(h) is not None]
            wins = [inst.wins[h] for inst in subset if inst.wins.get(h) is not None]
            record[f"avg_ret_{h}d"] = float(np.mean(rets)) if rets else np.nan
            record[f"win_rate_{h}d"] = (sum(wins) / len(wins) * 100) if wins else np.nan
        records.append(record)
    return pd.DataFrame(records).set_index("setup_id")


def score_history(replay: BacktestReplay) -> pd.DataFrame:
    """
    Daily Orb score and zone from a replay's statuses.

    Returns:
        DataFrame indexed by date with score, zone and close
    """
    scores = [compute_orb_score(row.to_dict()) for _, row in replay.statuses.iterrows()]
    history = pd.DataFrame(index=replay.statuses.index)
    history["score"] = scores
    history["zone"] = [assign_zone(s).value for s in scores]
    history["close"] = replay.closes.reindex(history.index)
    return history


def summarize_zones(
    history: pd.DataFrame,
    horizons: Sequence[int] = BACKTEST_HORIZONS,
) -> pd.DataFrame:
    """
    Forward returns grouped by zone.

    Horizons are counted in rows of ``history`` (trading days).

    Returns:
        DataFrame indexed by zone (most bullish first) with days,
        avg_ret_{h}d and win_rate_{h}d (share of positive returns, percent)
    """
    closes = history["close"].to_numpy(dtype=float)
    out = pd.DataFrame(index=[z.value for z in sorted(ZONE_RANK, key=ZONE_RANK.get, reverse=True)])
    out.index.name = "zone"
    out["days"] = history["zone"].value_counts().reindex(out.index).fillna(0).astype(int)

    for h in horizons:
        fwd = pd.Series(
            [forward_return(closes, i, h) for i in range(len(closes))],
            index=history.index,
            dtype=float,
        )
        grouped = fwd.groupby(history["zone"])
        out[f"avg_ret_{h}d"] = grouped.mean().reindex(out.index)
        out[f"win_rate_{h}d"] = grouped.apply(
            lambda s: (s.dropna() > 0).mean() * 100 if s.notna().any() else np.nan
        ).reindex(out.index)
    return out
