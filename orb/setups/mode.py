"""
Mode suggestion from the weekly/daily regime and active avoid setups.

Rules are checked top-down and the first match wins, so the order of
MODE_RULES is part of the trading logic.
"""
from typing import Callable, Iterable, List, NamedTuple, Set

from ..indicators.technical import IndicatorSnapshot
from ..shared.types import BxState
from .types import ModeSuggestion


class ModeRule(NamedTuple):
    name: str
    applies: Callable[[IndicatorSnapshot, Set[str]], bool]
    conclude: Callable[[IndicatorSnapshot, Set[str]], ModeSuggestion]


def _full_bull(ind: IndicatorSnapshot, active: Set[str]) -> ModeSuggestion:
    if "overextended" in active:
        return ModeSuggestion(
            "GREEN (Extended)", "medium",
            ["Weekly HH + stacked EMAs, but overextended", "Trim territory despite bullish structure"],
        )
    return ModeSuggestion(
        "GREEN", "high",
        ["Weekly HH + EMAs stacked + price above all - full bullish alignment"],
    )


MODE_RULES: List[ModeRule] = [
    ModeRule(
        "dual_ll",
        lambda ind, active: "dual-ll" in active,
        lambda ind, active: ModeSuggestion(
            "RED", "high", ["Dual LL active (Daily + Weekly BX in LL)"]),
    ),
    ModeRule(
        "below_weekly_21",
        lambda ind, active: not ind.price_above_weekly_21,
        lambda ind, active: ModeSuggestion(
            "RED / EJECTED", "high", ["Price below Weekly 21 EMA - master eject territory"]),
    ),
    ModeRule(
        "weekly_ll_daily_ll",
        lambda ind, active: ind.bx_weekly_state == BxState.LL.value and ind.bx_daily_state == BxState.LL.value,
        lambda ind, active: ModeSuggestion(
            "ORANGE", "high", ["Weekly LL + Daily LL - no recovery signal yet"]),
    ),
    ModeRule(
        "weekly_ll_daily_recovering",
        lambda ind, active: (
            ind.bx_weekly_state == BxState.LL.value
            and ind.bx_daily_state in (BxState.HL.value, BxState.HH.value)
        ),
        lambda ind, active: ModeSuggestion(
            "ORANGE (Improving)", "medium",
            ["Weekly still LL but Daily leading recovery", f"Daily BX: {ind.bx_daily_state}"]),
    ),
    ModeRule(
        "weekly_hl",
        lambda ind, active: ind.bx_weekly_state == BxState.HL.value,
        lambda ind, active: ModeSuggestion(
            "YELLOW", "medium", ["Weekly BX HL - correction exhausting, not yet confirmed"]),
    ),
    ModeRule(
        "weekly_lh",
        lambda ind, active: ind.bx_weekly_state == BxState.LH.value,
        lambda ind, active: ModeSuggestion(
            "YELLOW", "medium", ["Weekly BX LH - momentum fading from prior strength"]),
    ),
    ModeRule(
        "weekly_hh_aligned",
        lambda ind, active: (
            ind.bx_weekly_state == BxState.HH.value
            and ind.weekly_emas_stacked
            and ind.price_above_weekly_all
        ),
        _full_bull,
    ),
    ModeRule(
        "weekly_hh",
        lambda ind, active: ind.bx_weekly_state == BxState.HH.value,
        lambda ind, active: ModeSuggestion(
            "YELLOW (Improving)", "medium", ["Weekly HH but EMAs not fully stacked yet"]),
    ),
]

FALLBACK_MODE = ModeSuggestion("YELLOW", "low", ["Mixed signals - requires manual assessment"])


def suggest_mode(snapshot: IndicatorSnapshot, active_setup_ids: Iterable[str]) -> ModeSuggestion:
    """
    Suggest the day's posture.

    Args:
        snapshot: Today's indicators
        active_setup_ids: Ids of setups active today

    Returns:
        ModeSuggestion from the first matching rule
    """
    active = set(active_setup_ids)
    for rule in MODE_RULES:
        if rule.applies(snapshot, active):
            return rule.conclude(snapshot, active)
    return ModeSuggestion(FALLBACK_MODE.suggestion, FALLBACK_MODE.confidence, list(FALLBACK_MODE.reasoning))
