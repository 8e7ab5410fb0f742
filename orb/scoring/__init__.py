"""
Composite scoring: Orb score, zones and zone transitions.
"""
from .score import (
    ZONE_RANK,
    ZoneDisplay,
    compute_orb_score,
    assign_zone,
    get_zone_display,
    is_downside_transition,
    transition_message,
)

__all__ = [
    'ZONE_RANK',
    'ZoneDisplay',
    'compute_orb_score',
    'assign_zone',
    'get_zone_display',
    'is_downside_transition',
    'transition_message',
]
