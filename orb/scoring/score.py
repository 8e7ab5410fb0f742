"""
Composite Orb score and zone assignment.

The score is a weighted sum over the setup catalog: buy setups push it
up, avoid setups push it down. Active setups count in full, watching
setups at a fraction of their weight.
"""
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from ..setups.catalog import SETUP_REGISTRY
from ..shared.defaults import WATCHING_FACTOR, ZONE_BUFFER
from ..shared.types import SetupStatus, Zone


# Lower bound (inclusive) of each zone, checked top-down
ZONE_THRESHOLDS = [
    (0.686, Zone.FULL_SEND),
    (-0.117, Zone.NEUTRAL),
    (-0.729, Zone.CAUTION),
]

# Higher rank is more aggressive
ZONE_RANK: Dict[Zone, int] = {
    Zone.FULL_SEND: 3,
    Zone.NEUTRAL: 2,
    Zone.CAUTION: 1,
    Zone.DEFENSIVE: 0,
}

ZONE_LABELS: Dict[Zone, str] = {
    Zone.FULL_SEND: "FULL SEND",
    Zone.NEUTRAL: "NEUTRAL",
    Zone.CAUTION: "CAUTION",
    Zone.DEFENSIVE: "DEFENSIVE",
}

TRANSITION_MESSAGES: Dict[str, str] = {
    "NEUTRAL->FULL_SEND": (
        "Orb moved up to FULL SEND. Buy setups are lining up with no avoid signals in the way. "
        "This is the environment for deploying size."
    ),
    "FULL_SEND->NEUTRAL": (
        "Orb eased from FULL SEND to NEUTRAL. This is not a sell signal: conditions are still "
        "constructive, the exceptional window has just closed. Hold positions."
    ),
    "NEUTRAL->CAUTION": (
        "Orb slipped to CAUTION. Avoid signals are building. Consider taking partial profits "
        "and reducing leverage, and wait for NEUTRAL before adding back."
    ),
    "CAUTION->NEUTRAL": (
        "Orb recovered to NEUTRAL. Conditions are normalizing, but this means the bleeding has "
        "stopped, not that it is time to reload. Wait for FULL SEND to add meaningfully."
    ),
    "CAUTION->DEFENSIVE": (
        "Orb dropped to DEFENSIVE. Cut leverage, raise cash and protect capital. "
        "Do not try to pick the bottom here."
    ),
    "DEFENSIVE->CAUTION": (
        "Orb ticked up from DEFENSIVE to CAUTION. The worst is not necessarily over. "
        "Stay patient and wait for NEUTRAL before re-entering."
    ),
    "DEFENSIVE->NEUTRAL": (
        "Orb jumped from DEFENSIVE to NEUTRAL. The hostile phase has cleared; "
        "begin rebuilding positions."
    ),
    "FULL_SEND->CAUTION": (
        "Orb fell sharply from FULL SEND to CAUTION. Conditions flipped quickly; "
        "take profits on leveraged positions."
    ),
}


@dataclass
class ZoneDisplay:
    """Zone with an optional proximity qualifier for display."""
    zone: Zone
    label: str
    qualifier: Optional[str] = None


def _to_zone(zone) -> Zone:
    return zone if isinstance(zone, Zone) else Zone(zone)


def compute_orb_score(setup_statuses: Mapping[str, str]) -> float:
    """
    Compute the composite score.

    Args:
        setup_statuses: setup_id -> status ("active", "watching", "inactive").
            Unknown setup ids are ignored.

    Returns:
        Score rounded to 3 decimals
    """
    score = 0.0
    for setup_id, status in setup_statuses.items():
        definition = SETUP_REGISTRY.get(setup_id)
        if definition is None:
            continue
        status = status.value if isinstance(status, SetupStatus) else status

        if status == SetupStatus.ACTIVE.value:
            score += definition.direction * definition.weight
        elif status == SetupStatus.WATCHING.value:
            score += definition.direction * definition.weight * WATCHING_FACTOR

    return round(score, 3)


def assign_zone(score: float) -> Zone:
    """Map a score to its zone."""
    for lower_bound, zone in ZONE_THRESHOLDS:
        if score >= lower_bound:
            return zone
    return Zone.DEFENSIVE


def get_zone_display(score: float) -> ZoneDisplay:
    """
    Zone plus a qualifier when the score sits near a boundary.

    FULL_SEND just above its floor is "Emerging", NEUTRAL just above its
    floor is "Fading", CAUTION just below NEUTRAL is "Emerging" and CAUTION
    just above DEFENSIVE is "Deteriorating".
    """
    full_send, neutral, caution = (bound for bound, _ in ZONE_THRESHOLDS)
    zone = assign_zone(score)
    label = ZONE_LABELS[zone]

    qualifier = None
    if zone == Zone.FULL_SEND and score < full_send + ZONE_BUFFER:
        qualifier = "Emerging"
    elif zone == Zone.NEUTRAL and score < neutral + ZONE_BUFFER:
        qualifier = "Fading"
    elif zone == Zone.CAUTION and score >= neutral - ZONE_BUFFER:
        qualifier = "Emerging"
    elif zone == Zone.CAUTION and score < caution + ZONE_BUFFER:
        qualifier = "Deteriorating"

    if qualifier:
        label = f"{label} ({qualifier})"
    return ZoneDisplay(zone=zone, label=label, qualifier=qualifier)


def is_downside_transition(prev_zone, new_zone) -> bool:
    """True iff the new zone is more defensive than the previous one."""
    return ZONE_RANK[_to_zone(new_zone)] < ZONE_RANK[_to_zone(prev_zone)]


def transition_message(prev_zone, new_zone) -> str:
    """Human-readable description of a zone change."""
    prev_zone, new_zone = _to_zone(prev_zone), _to_zone(new_zone)
    key = f"{prev_zone.value}->{new_zone.value}"
    if key in TRANSITION_MESSAGES:
        return TRANSITION_MESSAGES[key]
    return f"Orb shifted from {ZONE_LABELS[prev_zone]} to {ZONE_LABELS[new_zone]}."
