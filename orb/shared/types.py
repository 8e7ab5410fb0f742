"""
Shared enums for the Orb engine.

Records persist the ``.value`` strings so JSON state stays readable.
"""
from enum import Enum


class BxState(Enum):
    """Four-way BX-Trender regime classification."""
    HH = "HH"  # Positive and rising
    LH = "LH"  # Positive and falling
    HL = "HL"  # Non-positive and rising
    LL = "LL"  # Non-positive and falling


class SetupStatus(Enum):
    """Status of a setup state machine."""
    INACTIVE = "inactive"
    WATCHING = "watching"
    ACTIVE = "active"


class SetupSide(Enum):
    """Whether a setup argues for buying or for standing aside."""
    BUY = "buy"
    AVOID = "avoid"


class SetupCategory(Enum):
    """Lifecycle category that decides how a setup's trade is closed."""
    STANDARD = "standard"
    GAUGE = "gauge"
    FIXED_HORIZON = "fixed_horizon"


class Zone(Enum):
    """Composite regime zone, ordered from most to least aggressive."""
    FULL_SEND = "FULL_SEND"
    NEUTRAL = "NEUTRAL"
    CAUTION = "CAUTION"
    DEFENSIVE = "DEFENSIVE"


class TradeStatus(Enum):
    """Trade lifecycle status."""
    OPEN = "open"
    CLOSED = "closed"


class ExitReason(Enum):
    """Why a trade was closed (or is being held past deactivation)."""
    TARGET_REACHED = "target_reached"
    CONDITIONS_LOST = "conditions_lost"
    TRACKING_HORIZON = "tracking_horizon"
    HORIZON_REACHED = "horizon_reached"
    TIMEOUT = "timeout"


class EventType(Enum):
    """Signal log event types."""
    ACTIVATED = "activated"
    DEACTIVATED = "deactivated"
    WATCHING_STARTED = "watching_started"
    WATCHING_ENDED = "watching_ended"
    ZONE_TRANSITION = "zone_transition"
