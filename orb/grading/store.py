"""
Scorecard persistence.

One ScorecardRow per forecast date, stored in a single JSON file. Rows are
created by the forecast publisher, enriched with context later and graded
exactly once.
"""
import logging
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..automation.state import atomic_write_json, read_json
from ..shared.errors import StateStoreError


logger = logging.getLogger(__name__)

# Context fields that enrichment may set. Grade fields are never enrichable.
ENRICHABLE_FIELDS = (
    's1_level', 's2_level',
    't1_level', 't2_level', 't3_level', 't4_level',
    'slow_zone', 'kill_leverage',
    'sg_call_wall', 'sg_put_wall', 'sg_key_gamma_strike', 'sg_hedge_wall',
    'sg_gamma_regime', 'sg_iv_rank',
    'hiro_value', 'hiro_30d_low', 'hiro_30d_high', 'hiro_capture_time',
    'hiro_stale', 'hiro_flow_quality', 'hiro_flow_alert_fired',
    'primary_scenario', 'report_link',
)

GRADE_FIELDS = (
    'open_next', 'high_next', 'low_next', 'close_next',
    'mode_grade', 'buy_levels_grade', 'trim_levels_grade', 'risk_grade',
    'scenario_grade', 'outcome_grade', 'total_grade',
    'grade_notes', 'scenario_played_out',
)


@dataclass
class ScorecardRow:
    """A published daily forecast and, once available, its grade."""
    date: str  # YYYY-MM-DD
    mode: str
    orb_zone: str
    close_price: float

    # Declared levels
    s1_level: Optional[float] = None
    s2_level: Optional[float] = None
    t1_level: Optional[float] = None
    t2_level: Optional[float] = None
    t3_level: Optional[float] = None
    t4_level: Optional[float] = None
    slow_zone: Optional[float] = None
    kill_leverage: Optional[float] = None

    # Options-flow context
    sg_call_wall: Optional[float] = None
    sg_put_wall: Optional[float] = None
    sg_key_gamma_strike: Optional[float] = None
    sg_hedge_wall: Optional[float] = None
    sg_gamma_regime: Optional[str] = None  # positive / negative
    sg_iv_rank: Optional[float] = None
    hiro_value: Optional[float] = None
    hiro_30d_low: Optional[float] = None
    hiro_30d_high: Optional[float] = None
    hiro_capture_time: Optional[str] = None  # HH:MM
    hiro_stale: Optional[bool] = None
    hiro_flow_quality: Optional[str] = None
    hiro_flow_alert_fired: Optional[bool] = None

    primary_scenario: Optional[str] = None
    report_link: Optional[str] = None

    # Grades (null until graded, immutable afterwards)
    open_next: Optional[float] = None
    high_next: Optional[float] = None
    low_next: Optional[float] = None
    close_next: Optional[float] = None
    mode_grade: Optional[int] = None
    buy_levels_grade: Optional[int] = None
    trim_levels_grade: Optional[int] = None
    risk_grade: Optional[int] = None
    scenario_grade: Optional[int] = None
    outcome_grade: Optional[int] = None
    total_grade: Optional[int] = None
    grade_notes: Optional[str] = None
    scenario_played_out: Optional[str] = None

    updated_at: Optional[str] = None

    @property
    def is_graded(self) -> bool:
        return self.total_grade is not None

    @property
    def missing_context(self) -> List[str]:
        """Context groups not yet enriched."""
        missing = []
        if self.s1_level is None:
            missing.append("levels")
        if self.sg_key_gamma_strike is None:
            missing.append("options")
        if self.hiro_value is None:
            missing.append("flow")
        return missing

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScorecardRow":
        """Create from dictionary."""
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in names})


class ScorecardStore:
    """JSON-file store of scorecard rows keyed by date."""

    FILENAME = "scorecards.json"

    def __init__(self, state_dir: Path):
        self.path = Path(state_dir) / self.FILENAME
        self.rows: Dict[str, ScorecardRow] = {
            d: ScorecardRow.from_dict(r) for d, r in read_json(self.path, {}).items()
        }

    def _save(self) -> None:
        atomic_write_json(self.path, {d: r.to_dict() for d, r in sorted(self.rows.items())})

    def get(self, date: str) -> Optional[ScorecardRow]:
        return self.rows.get(date)

    def insert(self, row: ScorecardRow) -> None:
        """
        Insert a new forecast row.

        Raises:
            StateStoreError: If a row for the date already exists
        """
        if row.date in self.rows:
            raise StateStoreError(f"Scorecard for {row.date} already exists")
        self.rows[row.date] = row
        self._save()
        logger.info(f"Inserted scorecard for {row.date} ({row.mode}, {row.orb_zone})")

    def update_fields(self, date: str, values: Dict[str, Any]) -> ScorecardRow:
        """
        Set fields on an existing row.

        Grade fields can only be written while the row is ungraded.

        Raises:
            KeyError: If no row exists for the date
            StateStoreError: If a field is unknown, the row is already graded, or the write fails
        """
        row = self.rows.get(date)
        if row is None:
            raise KeyError(date)

        names = {f.name for f in fields(ScorecardRow)}
        unknown = [k for k in values if k not in names or k == 'date']
        if unknown:
            raise StateStoreError(f"Unknown scorecard fields: {unknown}")
        if row.is_graded and any(k in GRADE_FIELDS for k in values):
            raise StateStoreError(f"Scorecard for {date} is already graded")

        previous = row.to_dict()
        for key, value in values.items():
            setattr(row, key, value)
        try:
            self._save()
        except StateStoreError:
            self.rows[date] = ScorecardRow.from_dict(previous)
            raise
        return self.rows[date]

    def list_ungraded(self, limit: Optional[int] = None) -> List[str]:
        """Ungraded dates, newest first."""
        dates = sorted((d for d, r in self.rows.items() if not r.is_graded), reverse=True)
        return dates[:limit] if limit is not None else dates

    def list_unenriched(self, limit: Optional[int] = None) -> List[ScorecardRow]:
        """Rows missing enrichment context, newest first."""
        rows = sorted(
            (r for r in self.rows.values() if r.missing_context),
            key=lambda r: r.date,
            reverse=True,
        )
        return rows[:limit] if limit is not None else rows
