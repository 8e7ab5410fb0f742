"""
Types shared by the setup catalog and its callers.
"""
from dataclasses import dataclass, field, asdict
from typing import Any, Callable, Dict, Mapping, Optional

from ..indicators.technical import IndicatorSnapshot
from ..shared.types import SetupCategory, SetupSide, SetupStatus


@dataclass
class PreviousState:
    """The persisted state of a setup as of the prior run."""
    setup_id: str
    status: str = SetupStatus.INACTIVE.value
    gauge_entry_value: Optional[float] = None
    entry_price: Optional[float] = None
    active_since: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == SetupStatus.ACTIVE.value


@dataclass
class SetupResult:
    """Outcome of evaluating one setup against one snapshot."""
    setup_id: str
    is_active: bool
    is_watching: bool
    conditions_met: Dict[str, bool] = field(default_factory=dict)
    reason: str = ""

    # Gauge setups only
    gauge_entry_value: Optional[float] = None
    gauge_current_value: Optional[float] = None
    gauge_target_value: Optional[float] = None

    @property
    def status(self) -> SetupStatus:
        """Resolved status: active beats watching beats inactive."""
        if self.is_active:
            return SetupStatus.ACTIVE
        if self.is_watching:
            return SetupStatus.WATCHING
        return SetupStatus.INACTIVE

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


# (snapshot, previous state of this setup, results already computed this pass)
SetupEvaluator = Callable[
    [IndicatorSnapshot, Optional[PreviousState], Mapping[str, SetupResult]],
    SetupResult,
]


@dataclass(frozen=True)
class SetupDefinition:
    """Registry entry for one setup."""
    setup_id: str
    side: SetupSide
    category: SetupCategory
    weight: float
    evaluate: SetupEvaluator
    description: str = ""

    @property
    def direction(self) -> int:
        """+1 for buy setups, -1 for avoid setups."""
        return 1 if self.side == SetupSide.BUY else -1


@dataclass
class ModeSuggestion:
    """Suggested posture for the day."""
    suggestion: str
    confidence: str  # high | medium | low
    reasoning: list = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)
