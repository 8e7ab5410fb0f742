"""
The Orb setup catalog.

Fifteen independent state machines evaluated against the daily
IndicatorSnapshot. Each evaluator is a pure function of the snapshot,
the setup's own previous state and the results already computed in the
same pass. Two setups exclude themselves while a peer is active
(deep-value vs oversold-extreme, trend-ride vs trend-continuation); the
registry lists the peer first.
"""
import logging
from collections import OrderedDict
from typing import Dict, List, Mapping, Optional

from ..indicators.technical import IndicatorSnapshot
from ..shared.types import BxState, SetupCategory, SetupSide
from .types import PreviousState, SetupDefinition, SetupResult


logger = logging.getLogger(__name__)

HH = BxState.HH.value
LH = BxState.LH.value
HL = BxState.HL.value
LL = BxState.LL.value

# Gauge thresholds
OVERSOLD_TRIGGER = -60.0
OVERSOLD_WATCH = -40.0
OVERSOLD_TARGET = 30.0
OVERBOUGHT_TRIGGER = 75.0
OVERBOUGHT_WATCH = 60.0
OVERBOUGHT_TARGET = -30.0


def _yn(flag: bool) -> str:
    return "Y" if flag else "N"


def _peer_active(
    setup_id: str,
    snapshot: IndicatorSnapshot,
    peers: Mapping[str, SetupResult],
) -> bool:
    """Whether a stateless peer setup is active, evaluating it if not yet computed."""
    result = peers.get(setup_id)
    if result is None:
        result = SETUP_REGISTRY[setup_id].evaluate(snapshot, None, peers)
    return result.is_active


# =============================================================================
# Gauges
# =============================================================================

def evaluate_smi_oversold_gauge(
    ind: IndicatorSnapshot,
    prev: Optional[PreviousState],
    peers: Mapping[str, SetupResult],
) -> SetupResult:
    """Arms when SMI crosses down through -60, disarms when SMI recovers to +30."""
    setup_id = "smi-oversold-gauge"
    was_active = prev is not None and prev.is_active

    if was_active:
        entry = prev.gauge_entry_value
        if ind.smi >= OVERSOLD_TARGET:
            return SetupResult(
                setup_id=setup_id,
                is_active=False,
                is_watching=False,
                conditions_met={"target_reached": True},
                reason=f"Target reached: SMI hit {ind.smi:.1f} (>=+30)",
                gauge_entry_value=entry,
                gauge_current_value=ind.smi,
                gauge_target_value=OVERSOLD_TARGET,
            )
        return SetupResult(
            setup_id=setup_id,
            is_active=True,
            is_watching=False,
            conditions_met={"armed": True, "target_not_reached": True},
            reason=f"Active - SMI at {ind.smi:.1f}, tracking to +30",
            gauge_entry_value=entry,
            gauge_current_value=ind.smi,
            gauge_target_value=OVERSOLD_TARGET,
        )

    if ind.smi_prev > OVERSOLD_TRIGGER and ind.smi <= OVERSOLD_TRIGGER:
        return SetupResult(
            setup_id=setup_id,
            is_active=True,
            is_watching=False,
            conditions_met={"smi_crossed_below_neg60": True},
            reason=f"NEW - SMI crossed below -60 ({ind.smi:.1f})",
            gauge_entry_value=ind.smi,
            gauge_current_value=ind.smi,
            gauge_target_value=OVERSOLD_TARGET,
        )

    watching = OVERSOLD_TRIGGER < ind.smi < OVERSOLD_WATCH
    return SetupResult(
        setup_id=setup_id,
        is_active=False,
        is_watching=watching,
        conditions_met={"smi_approaching": watching},
        reason=(
            f"SMI at {ind.smi:.1f} - approaching -60 entry" if watching
            else f"SMI at {ind.smi:.1f} - far from -60 trigger"
        ),
    )


def evaluate_smi_overbought_gauge(
    ind: IndicatorSnapshot,
    prev: Optional[PreviousState],
    peers: Mapping[str, SetupResult],
) -> SetupResult:
    """Arms when SMI crosses up through +75, disarms when SMI falls to -30."""
    setup_id = "smi-overbought"
    was_active = prev is not None and prev.is_active

    if was_active:
        entry = prev.gauge_entry_value
        if ind.smi <= OVERBOUGHT_TARGET:
            return SetupResult(
                setup_id=setup_id,
                is_active=False,
                is_watching=False,
                conditions_met={"target_reached": True},
                reason=f"Target reached: SMI reset to {ind.smi:.1f} (<=-30)",
                gauge_entry_value=entry,
                gauge_current_value=ind.smi,
                gauge_target_value=OVERBOUGHT_TARGET,
            )
        return SetupResult(
            setup_id=setup_id,
            is_active=True,
            is_watching=False,
            conditions_met={"armed": True, "target_not_reached": True},
            reason=f"AVOID ACTIVE - SMI at {ind.smi:.1f}, waiting for reset to -30",
            gauge_entry_value=entry,
            gauge_current_value=ind.smi,
            gauge_target_value=OVERBOUGHT_TARGET,
        )

    if ind.smi_prev < OVERBOUGHT_TRIGGER and ind.smi >= OVERBOUGHT_TRIGGER:
        return SetupResult(
            setup_id=setup_id,
            is_active=True,
            is_watching=False,
            conditions_met={"smi_crossed_above_75": True},
            reason=f"NEW AVOID - SMI crossed above +75 ({ind.smi:.1f})",
            gauge_entry_value=ind.smi,
            gauge_current_value=ind.smi,
            gauge_target_value=OVERBOUGHT_TARGET,
        )

    watching = ind.smi > OVERBOUGHT_WATCH
    return SetupResult(
        setup_id=setup_id,
        is_active=False,
        is_watching=watching,
        conditions_met={"smi_approaching": watching},
        reason=(
            f"SMI at {ind.smi:.1f} - approaching +75 avoid level" if watching
            else f"SMI at {ind.smi:.1f}"
        ),
    )


# =============================================================================
# Buy setups
# =============================================================================

def evaluate_oversold_extreme(ind, prev, peers) -> SetupResult:
    below = ind.sma200_dist < -40
    stabilized = ind.stabilization_days >= 2
    active = below and stabilized
    watching = below and not stabilized

    if active:
        reason = f"Price {ind.sma200_dist:.1f}% from 200 SMA + {ind.stabilization_days}d stabilized - GENERATIONAL"
    elif watching:
        reason = f"Price {ind.sma200_dist:.1f}% from 200 SMA - waiting for stabilization ({ind.stabilization_days}d)"
    else:
        reason = f"Price {ind.sma200_dist:.1f}% from 200 SMA"

    return SetupResult(
        setup_id="oversold-extreme",
        is_active=active,
        is_watching=watching,
        conditions_met={"below_neg40_sma200": below, "stabilization": stabilized},
        reason=reason,
    )


def evaluate_regime_shift(ind, prev, peers) -> SetupResult:
    transition = ind.bx_weekly_transition == f"{LL}_to_{HL}"
    above_w13 = ind.price_above_weekly_13
    hh_streak = ind.daily_hh_streak >= 3
    active = transition and above_w13 and hh_streak
    watching = not active and (
        (ind.bx_weekly_state == LL and ind.bx_daily_state == HL)
        or transition
    )

    if active:
        reason = f"Weekly BX LL->HL + above W13 + {ind.daily_hh_streak}d HH streak - REGIME SHIFT"
    elif watching:
        reason = f"Weekly BX approaching transition (HH streak: {ind.daily_hh_streak}d)"
    else:
        reason = f"Weekly BX: {ind.bx_weekly_state} - needs LL->HL + above W13 + 3d HH"

    return SetupResult(
        setup_id="regime-shift",
        is_active=active,
        is_watching=watching,
        conditions_met={
            "weekly_ll_to_hl": transition,
            "above_weekly_13": above_w13,
            "daily_hh_streak_3": hh_streak,
        },
        reason=reason,
    )


def evaluate_deep_value(ind, prev, peers) -> SetupResult:
    in_zone = -30 < ind.sma200_dist < -20
    bx_hl = ind.bx_daily_state == HL
    not_generational = not _peer_active("oversold-extreme", ind, peers)
    active = in_zone and bx_hl and not_generational
    watching = not active and (
        (in_zone and ind.bx_daily_state == LL)
        or (-35 < ind.sma200_dist < -20 and bx_hl)
    )

    if active:
        reason = f"200 SMA at {ind.sma200_dist:.1f}% + BX HL - DEEP VALUE"
    else:
        reason = f"200 SMA at {ind.sma200_dist:.1f}%, BX: {ind.bx_daily_state}"

    return SetupResult(
        setup_id="deep-value",
        is_active=active,
        is_watching=watching,
        conditions_met={
            "sma200_neg30_to_neg20": in_zone,
            "bx_hl": bx_hl,
            "not_generational": not_generational,
        },
        reason=reason,
    )


def evaluate_green_shoots(ind, prev, peers) -> SetupResult:
    flip = ind.bx_daily_state == HL and ind.bx_daily_state_prev == LL
    rsi_low = ind.rsi < 35
    smi_cross_low = ind.smi_bull_cross and ind.smi < -40
    oversold = rsi_low or smi_cross_low
    active = flip and oversold
    watching = not active and ind.bx_daily_state == LL and (rsi_low or ind.smi < -40)

    if active:
        reason = f"BX flipped LL->HL with RSI {ind.rsi:.1f}, SMI {ind.smi:.1f} - GREEN SHOOTS"
    elif watching:
        reason = f"BX in LL, RSI {ind.rsi:.1f}, SMI {ind.smi:.1f} - watching for flip"
    else:
        reason = f"BX: {ind.bx_daily_state}, RSI: {ind.rsi:.1f}, SMI: {ind.smi:.1f}"

    return SetupResult(
        setup_id="green-shoots",
        is_active=active,
        is_watching=watching,
        conditions_met={
            "ll_to_hl": flip,
            "rsi_below_35": rsi_low,
            "smi_bull_cross_below_neg40": smi_cross_low,
        },
        reason=reason,
    )


def evaluate_momentum_flip(ind, prev, peers) -> SetupResult:
    flip = ind.bx_daily_state == HH and ind.bx_daily_state_prev == HL
    watching = ind.bx_daily_state == HL

    if flip:
        reason = f"BX flipped HL->HH (RSI {ind.rsi:.1f})"
    elif watching:
        reason = f"BX in HL (RSI {ind.rsi:.1f}) - one flip from trigger"
    else:
        reason = f"BX: {ind.bx_daily_state}, RSI: {ind.rsi:.1f}"

    return SetupResult(
        setup_id="momentum-flip",
        is_active=flip,
        is_watching=watching,
        conditions_met={"hl_to_hh": flip},
        reason=reason,
    )


def evaluate_trend_confirm(ind, prev, peers) -> SetupResult:
    bull_cross = ind.smi_bull_cross
    bx_hh = ind.bx_daily_state == HH
    active = bull_cross and bx_hh
    watching = bx_hh and ind.smi > ind.smi_signal and not bull_cross

    return SetupResult(
        setup_id="trend-confirm",
        is_active=active,
        is_watching=watching,
        conditions_met={"smi_bull_cross": bull_cross, "bx_hh": bx_hh},
        reason=(
            "SMI bull cross + BX HH - TREND CONFIRMED" if active
            else f"SMI cross: {_yn(bull_cross)}, BX: {ind.bx_daily_state}"
        ),
    )


def evaluate_trend_continuation(ind, prev, peers) -> SetupResult:
    stacked = ind.weekly_emas_stacked
    above_all = ind.price_above_weekly_all
    bx_hh = ind.bx_daily_state == HH
    active = stacked and above_all and bx_hh

    return SetupResult(
        setup_id="trend-continuation",
        is_active=active,
        is_watching=stacked and bx_hh and not above_all,
        conditions_met={"weekly_stacked": stacked, "above_all_weekly": above_all, "bx_hh": bx_hh},
        reason=(
            "Weekly stacked + above all + BX HH - CONTINUATION" if active
            else f"Stacked: {_yn(stacked)}, Above: {_yn(above_all)}, BX: {ind.bx_daily_state}"
        ),
    )


def evaluate_trend_ride(ind, prev, peers) -> SetupResult:
    bx_hh = ind.bx_daily_state == HH
    d9_above_d21 = ind.ema9 > ind.ema21
    above_d21 = ind.close > ind.ema21
    above_w21 = ind.price_above_weekly_21
    not_continuation = not _peer_active("trend-continuation", ind, peers)
    active = bx_hh and d9_above_d21 and above_d21 and above_w21 and not_continuation
    watching = bx_hh and above_d21 and above_w21 and not d9_above_d21

    return SetupResult(
        setup_id="trend-ride",
        is_active=active,
        is_watching=watching,
        conditions_met={
            "bx_hh": bx_hh,
            "d9_above_d21": d9_above_d21,
            "above_d21": above_d21,
            "above_w21": above_w21,
            "not_trend_continuation": not_continuation,
        },
        reason=(
            "BX HH + D9>D21 + above D21 + above W21 - TREND RIDE" if active
            else (
                f"BX: {ind.bx_daily_state}, D9>D21: {_yn(d9_above_d21)}, "
                f"D21: {_yn(above_d21)}, W21: {_yn(above_w21)}"
            )
        ),
    )


def evaluate_goldilocks(ind, prev, peers) -> SetupResult:
    rsi_in_range = 45 <= ind.rsi <= 65
    smi_in_range = 0 <= ind.smi <= 40
    bx_hh = ind.bx_daily_state == HH
    met = sum([rsi_in_range, smi_in_range, bx_hh])
    active = met == 3
    watching = met == 2

    if active:
        reason = f"GOLDILOCKS - RSI {ind.rsi:.1f}, SMI {ind.smi:.1f}, BX HH"
    elif watching:
        reason = f"{met}/3 conditions met"
    else:
        reason = f"RSI: {ind.rsi:.1f}, SMI: {ind.smi:.1f}, BX: {ind.bx_daily_state}"

    return SetupResult(
        setup_id="goldilocks",
        is_active=active,
        is_watching=watching,
        conditions_met={"rsi_45_65": rsi_in_range, "smi_0_40": smi_in_range, "bx_hh": bx_hh},
        reason=reason,
    )


def evaluate_capitulation(ind, prev, peers) -> SetupResult:
    four_down = ind.consecutive_down >= 4
    rsi_low = ind.rsi < 40
    active = four_down and rsi_low
    watching = not active and (
        (ind.consecutive_down >= 2 and rsi_low) or (four_down and ind.rsi < 45)
    )

    if active:
        reason = f"{ind.consecutive_down} straight down days + RSI {ind.rsi:.1f} - CAPITULATION"
    elif watching:
        reason = f"{ind.consecutive_down} down days, RSI {ind.rsi:.1f} - developing"
    else:
        reason = f"Down streak: {ind.consecutive_down}, RSI: {ind.rsi:.1f}"

    return SetupResult(
        setup_id="capitulation",
        is_active=active,
        is_watching=watching,
        conditions_met={"four_plus_down": four_down, "rsi_below_40": rsi_low},
        reason=reason,
    )


# =============================================================================
# Avoid setups
# =============================================================================

def evaluate_dual_ll(ind, prev, peers) -> SetupResult:
    daily_ll = ind.bx_daily_state == LL
    weekly_ll = ind.bx_weekly_state == LL
    active = daily_ll and weekly_ll
    watching = daily_ll != weekly_ll

    if active:
        reason = "AVOID - Both Daily and Weekly BX in LL (dual downtrend)"
    elif watching:
        reason = f"Daily: {ind.bx_daily_state}, Weekly: {ind.bx_weekly_state} - one in LL"
    else:
        reason = f"Daily: {ind.bx_daily_state}, Weekly: {ind.bx_weekly_state}"

    return SetupResult(
        setup_id="dual-ll",
        is_active=active,
        is_watching=watching,
        conditions_met={"daily_ll": daily_ll, "weekly_ll": weekly_ll},
        reason=reason,
    )


def evaluate_overextended(ind, prev, peers) -> SetupResult:
    bx_lh = ind.bx_daily_state == LH
    rsi_hot = ind.rsi > 70
    far_above = ind.sma200_dist > 25
    met = sum([bx_lh, rsi_hot, far_above])
    active = met >= 2
    watching = met == 1 and ind.sma200_dist > 20

    if active:
        reason = (
            f"AVOID - {met}/3 exhaustion signs (BX {ind.bx_daily_state}, "
            f"RSI {ind.rsi:.1f}, {ind.sma200_dist:.1f}% above 200 SMA)"
        )
    else:
        reason = f"200 SMA distance: {ind.sma200_dist:.1f}%, RSI: {ind.rsi:.1f}, BX: {ind.bx_daily_state}"

    return SetupResult(
        setup_id="overextended",
        is_active=active,
        is_watching=watching,
        conditions_met={"bx_lh": bx_lh, "rsi_above_70": rsi_hot, "above_25pct_200sma": far_above},
        reason=reason,
    )


def evaluate_momentum_crack(ind, prev, peers) -> SetupResult:
    # SMI three sessions ago is today's value minus the 3-day change
    smi_3d_ago = ind.smi - ind.smi_change_3d
    was_high = smi_3d_ago > 50
    dropped = ind.smi_change_3d < -10
    active = was_high and dropped
    watching = not active and ind.smi > 50 and ind.smi_change_3d < -5

    if active:
        reason = f"AVOID - SMI was {smi_3d_ago:.1f}, dropped {ind.smi_change_3d:.1f} pts in 3d"
    elif watching:
        reason = f"SMI at {ind.smi:.1f}, falling ({ind.smi_change_3d:.1f} in 3d)"
    else:
        reason = f"SMI: {ind.smi:.1f}, 3d change: {ind.smi_change_3d:.1f}"

    return SetupResult(
        setup_id="momentum-crack",
        is_active=active,
        is_watching=watching,
        conditions_met={"smi_was_above_50": was_high, "smi_dropped_10_plus": dropped},
        reason=reason,
    )


# =============================================================================
# Registry
# =============================================================================

def _definition(setup_id, side, category, weight, evaluate, description):
    return setup_id, SetupDefinition(
        setup_id=setup_id,
        side=side,
        category=category,
        weight=weight,
        evaluate=evaluate,
        description=description,
    )


BUY = SetupSide.BUY
AVOID = SetupSide.AVOID
STANDARD = SetupCategory.STANDARD
GAUGE = SetupCategory.GAUGE
FIXED = SetupCategory.FIXED_HORIZON

# Evaluation order; peers referenced by an exclusion come first
SETUP_REGISTRY: "OrderedDict[str, SetupDefinition]" = OrderedDict([
    _definition("smi-oversold-gauge", BUY, GAUGE, 0.47, evaluate_smi_oversold_gauge,
                "SMI crosses below -60, held until +30"),
    _definition("oversold-extreme", BUY, STANDARD, 0.60, evaluate_oversold_extreme,
                "More than 40% below the 200 SMA with lows stabilizing"),
    _definition("regime-shift", BUY, FIXED, 0.28, evaluate_regime_shift,
                "Weekly BX LL->HL with price above W13 and a daily HH streak"),
    _definition("deep-value", BUY, STANDARD, 0.47, evaluate_deep_value,
                "20-30% below the 200 SMA with daily BX HL"),
    _definition("green-shoots", BUY, FIXED, 0.32, evaluate_green_shoots,
                "Daily BX LL->HL while oversold"),
    _definition("momentum-flip", BUY, FIXED, 0.33, evaluate_momentum_flip,
                "Daily BX HL->HH"),
    _definition("trend-confirm", BUY, FIXED, 0.43, evaluate_trend_confirm,
                "SMI bull cross with daily BX HH"),
    _definition("trend-continuation", BUY, STANDARD, 0.47, evaluate_trend_continuation,
                "Weekly EMAs stacked, price above all, daily BX HH"),
    _definition("trend-ride", BUY, STANDARD, 0.35, evaluate_trend_ride,
                "Daily HH with D9 > D21 and price above D21 and W21"),
    _definition("goldilocks", BUY, STANDARD, 0.44, evaluate_goldilocks,
                "RSI 45-65, SMI 0-40, daily BX HH"),
    _definition("capitulation", BUY, FIXED, 0.51, evaluate_capitulation,
                "Four or more down days with RSI below 40"),
    _definition("smi-overbought", AVOID, GAUGE, 0.44, evaluate_smi_overbought_gauge,
                "SMI crosses above +75, held until -30"),
    _definition("dual-ll", AVOID, STANDARD, 0.39, evaluate_dual_ll,
                "Daily and weekly BX both LL"),
    _definition("overextended", AVOID, STANDARD, 0.49, evaluate_overextended,
                "Two of: daily BX LH, RSI > 70, more than 25% above the 200 SMA"),
    _definition("momentum-crack", AVOID, STANDARD, 0.22, evaluate_momentum_crack,
                "SMI above 50 three days ago and down more than 10 since"),
])

BUY_SETUP_IDS = [sid for sid, d in SETUP_REGISTRY.items() if d.side == BUY]
AVOID_SETUP_IDS = [sid for sid, d in SETUP_REGISTRY.items() if d.side == AVOID]


def get_setup(setup_id: str) -> SetupDefinition:
    """
    Look up a setup definition.

    Raises:
        KeyError: If the setup id is unknown
    """
    if setup_id not in SETUP_REGISTRY:
        raise KeyError(f"Unknown setup: {setup_id}")
    return SETUP_REGISTRY[setup_id]


def evaluate_setup(
    setup_id: str,
    snapshot: IndicatorSnapshot,
    previous_states: Optional[Mapping[str, PreviousState]] = None,
    peers: Optional[Mapping[str, SetupResult]] = None,
) -> SetupResult:
    """
    Evaluate a single setup.

    Args:
        setup_id: Registry key
        snapshot: Today's indicators
        previous_states: Persisted state per setup id (missing means inactive)
        peers: Results already computed in this pass

    Returns:
        SetupResult for the setup
    """
    definition = get_setup(setup_id)
    previous = (previous_states or {}).get(setup_id)
    return definition.evaluate(snapshot, previous, peers or {})


def evaluate_all_setups(
    snapshot: IndicatorSnapshot,
    previous_states: Optional[Mapping[str, PreviousState]] = None,
) -> List[SetupResult]:
    """
    Evaluate every setup in registry order.

    Pure with respect to its inputs: the same snapshot and previous states
    always produce the same results.
    """
    results: Dict[str, SetupResult] = {}
    for setup_id in SETUP_REGISTRY:
        results[setup_id] = evaluate_setup(setup_id, snapshot, previous_states, results)
    return list(results.values())
