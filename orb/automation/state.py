"""
State store for setup states, the signal log, daily snapshots, trades
and daily indicator records.

Persists each collection to its own JSON file in a state directory.
Writes go through a temp file and an atomic rename so a crash never
leaves a half-written file behind.
"""
import json
import logging
from dataclasses import dataclass, asdict, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..setups.types import PreviousState
from ..shared.errors import StateStoreError
from ..shared.types import SetupStatus, TradeStatus, EventType


logger = logging.getLogger(__name__)


def _from_dict(cls, data: Dict[str, Any]):
    names = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in data.items() if k in names})


@dataclass
class SetupState:
    """Current state of one setup, upserted by every daily run."""
    setup_id: str
    status: str = SetupStatus.INACTIVE.value
    active_since: Optional[str] = None  # YYYY-MM-DD
    active_day: int = 0
    entry_price: Optional[float] = None
    entry_indicator_values: Optional[Dict[str, Any]] = None

    # Gauge setups only
    gauge_entry_value: Optional[float] = None
    gauge_target_value: Optional[float] = None
    gauge_current_value: Optional[float] = None
    gauge_progress_pct: Optional[float] = None

    current_price: Optional[float] = None
    conditions_met: Dict[str, bool] = field(default_factory=dict)
    reason: str = ""
    watching_reason: Optional[str] = None
    inactive_reason: Optional[str] = None
    updated_at: Optional[str] = None  # ISO format timestamp
    state_date: Optional[str] = None  # snapshot date this state reflects

    def to_previous(self) -> PreviousState:
        return PreviousState(
            setup_id=self.setup_id,
            status=self.status,
            gauge_entry_value=self.gauge_entry_value,
            entry_price=self.entry_price,
            active_since=self.active_since,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SetupState":
        """Create from dictionary."""
        return _from_dict(cls, data)


@dataclass
class SignalLogEntry:
    """Append-only record of a status change or zone transition."""
    setup_id: str
    event_type: str
    event_date: str
    event_price: float
    previous_status: Optional[str]
    new_status: str
    indicator_snapshot: Optional[Dict[str, Any]] = None
    notes: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SignalLogEntry":
        """Create from dictionary."""
        return _from_dict(cls, data)


@dataclass
class DailySnapshot:
    """Append-only per-(date, setup) status row."""
    date: str
    setup_id: str
    status: str
    active_day: int
    entry_price: Optional[float]
    close_price: float
    gauge_current_value: Optional[float] = None
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DailySnapshot":
        """Create from dictionary."""
        return _from_dict(cls, data)


@dataclass
class Trade:
    """Lifecycle of one setup activation."""
    trade_id: str
    setup_id: str
    entry_date: str
    entry_price: float
    entry_indicators: Optional[Dict[str, Any]] = None
    exit_date: Optional[str] = None
    exit_price: Optional[float] = None
    exit_reason: Optional[str] = None
    exit_indicators: Optional[Dict[str, Any]] = None
    final_return_pct: Optional[float] = None
    is_win: Optional[bool] = None
    current_return_pct: float = 0.0
    max_return_pct: float = 0.0
    max_drawdown_pct: float = 0.0
    days_active: int = 1
    last_marked_date: Optional[str] = None
    status: str = TradeStatus.OPEN.value

    @property
    def is_open(self) -> bool:
        return self.status == TradeStatus.OPEN.value

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Trade":
        """Create from dictionary."""
        return _from_dict(cls, data)


@dataclass
class DailyIndicatorRecord:
    """One row per date: snapshot, score, zone and mode."""
    date: str
    indicators: Dict[str, Any]
    orb_score: float
    orb_zone: str
    orb_zone_prev: Optional[str] = None
    zone_label: str = ""
    suggested_mode: str = ""
    mode_confidence: str = ""
    mode_reasoning: List[str] = field(default_factory=list)
    volume: Optional[Dict[str, Any]] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DailyIndicatorRecord":
        """Create from dictionary."""
        return _from_dict(cls, data)


def atomic_write_json(path: Path, data: Any) -> None:
    """
    Write JSON atomically using a temp file and rename.

    Raises:
        StateStoreError: If the file cannot be written
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_suffix('.tmp')
    try:
        with open(temp_path, 'w') as f:
            json.dump(data, f, indent=2, default=str)
        temp_path.replace(path)
    except OSError as e:
        raise StateStoreError(f"Failed to write {path}: {e}") from e
    finally:
        if temp_path.exists():
            temp_path.unlink()


def read_json(path: Path, default: Any) -> Any:
    """
    Read a JSON file, returning ``default`` if it does not exist.

    Raises:
        StateStoreError: If the file exists but cannot be parsed
    """
    if not path.exists():
        logger.info(f"State file {path} does not exist, starting fresh")
        return default
    try:
        with open(path, 'r') as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        raise StateStoreError(f"Failed to load state from {path}: {e}") from e


class OrbStateStore:
    """
    JSON-file persistence for the daily batch.

    Responsibilities:
    - Keep exactly one current SetupState per setup
    - Append signal log entries and daily snapshots, never rewrite them
    - Enforce at most one open Trade per setup
    - Upsert one DailyIndicatorRecord per date
    """

    SETUP_STATES_FILE = "setup_states.json"
    SIGNAL_LOG_FILE = "signal_log.json"
    DAILY_SNAPSHOTS_FILE = "daily_snapshots.json"
    TRADES_FILE = "trades.json"
    DAILY_INDICATORS_FILE = "daily_indicators.json"

    def __init__(self, state_dir: Path):
        """
        Initialize state store.

        Args:
            state_dir: Directory holding the JSON files

        Raises:
            StateStoreError: If an existing file is corrupt
        """
        self.state_dir = Path(state_dir)
        self.setup_states: Dict[str, SetupState] = {
            sid: SetupState.from_dict(s)
            for sid, s in read_json(self._path(self.SETUP_STATES_FILE), {}).items()
        }
        self.signal_log: List[SignalLogEntry] = [
            SignalLogEntry.from_dict(e) for e in read_json(self._path(self.SIGNAL_LOG_FILE), [])
        ]
        self.daily_snapshots: List[DailySnapshot] = [
            DailySnapshot.from_dict(s) for s in read_json(self._path(self.DAILY_SNAPSHOTS_FILE), [])
        ]
        self.trades: List[Trade] = [
            Trade.from_dict(t) for t in read_json(self._path(self.TRADES_FILE), [])
        ]
        self.daily_indicators: Dict[str, DailyIndicatorRecord] = {
            d: DailyIndicatorRecord.from_dict(r)
            for d, r in read_json(self._path(self.DAILY_INDICATORS_FILE), {}).items()
        }
        logger.debug(
            f"Loaded state from {self.state_dir}: {len(self.setup_states)} setups, "
            f"{len(self.trades)} trades, {len(self.daily_indicators)} daily records"
        )

    def _path(self, name: str) -> Path:
        return self.state_dir / name

    # ------------------------------------------------------------------
    # Setup states
    # ------------------------------------------------------------------

    def get_setup_state(self, setup_id: str) -> Optional[SetupState]:
        return self.setup_states.get(setup_id)

    def get_previous_states(self) -> Dict[str, PreviousState]:
        """Persisted states in the form the setup evaluators consume."""
        return {sid: s.to_previous() for sid, s in self.setup_states.items()}

    def upsert_setup_state(self, state: SetupState) -> None:
        self.setup_states[state.setup_id] = state
        atomic_write_json(
            self._path(self.SETUP_STATES_FILE),
            {sid: s.to_dict() for sid, s in self.setup_states.items()},
        )

    # ------------------------------------------------------------------
    # Signal log
    # ------------------------------------------------------------------

    def append_signal_log(self, entry: SignalLogEntry) -> None:
        self.signal_log.append(entry)
        atomic_write_json(self._path(self.SIGNAL_LOG_FILE), [e.to_dict() for e in self.signal_log])
        logger.info(f"Signal log: {entry.setup_id} {entry.event_type} on {entry.event_date}")

    def get_signal_log(
        self,
        setup_id: Optional[str] = None,
        event_type: Optional[EventType] = None,
    ) -> List[SignalLogEntry]:
        entries = self.signal_log
        if setup_id is not None:
            entries = [e for e in entries if e.setup_id == setup_id]
        if event_type is not None:
            entries = [e for e in entries if e.event_type == event_type.value]
        return list(entries)

    # ------------------------------------------------------------------
    # Daily snapshots
    # ------------------------------------------------------------------

    def has_daily_snapshots(self, date: str) -> bool:
        return any(s.date == date for s in self.daily_snapshots)

    def get_daily_snapshots(self, date: Optional[str] = None) -> List[DailySnapshot]:
        if date is None:
            return list(self.daily_snapshots)
        return [s for s in self.daily_snapshots if s.date == date]

    def append_daily_snapshot(self, snapshot: DailySnapshot) -> None:
        """
        Append a daily snapshot.

        Raises:
            StateStoreError: If a snapshot for (date, setup_id) already exists
        """
        for existing in self.daily_snapshots:
            if existing.date == snapshot.date and existing.setup_id == snapshot.setup_id:
                raise StateStoreError(
                    f"Daily snapshot already exists for {snapshot.setup_id} on {snapshot.date}"
                )
        self.daily_snapshots.append(snapshot)
        atomic_write_json(
            self._path(self.DAILY_SNAPSHOTS_FILE),
            [s.to_dict() for s in self.daily_snapshots],
        )

    def remove_daily_snapshots(self, date: str) -> int:
        """Drop all snapshots for a date (forced re-runs only). Returns the count removed."""
        before = len(self.daily_snapshots)
        self.daily_snapshots = [s for s in self.daily_snapshots if s.date != date]
        removed = before - len(self.daily_snapshots)
        if removed:
            atomic_write_json(
                self._path(self.DAILY_SNAPSHOTS_FILE),
                [s.to_dict() for s in self.daily_snapshots],
            )
            logger.warning(f"Removed {removed} daily snapshots for {date}")
        return removed

    # ------------------------------------------------------------------
    # Trades
    # ------------------------------------------------------------------

    def _save_trades(self) -> None:
        atomic_write_json(self._path(self.TRADES_FILE), [t.to_dict() for t in self.trades])

    def get_trades(self, setup_id: Optional[str] = None) -> List[Trade]:
        if setup_id is None:
            return list(self.trades)
        return [t for t in self.trades if t.setup_id == setup_id]

    def get_open_trade(self, setup_id: str) -> Optional[Trade]:
        for trade in self.trades:
            if trade.setup_id == setup_id and trade.is_open:
                return trade
        return None

    def get_open_trades(self) -> List[Trade]:
        return [t for t in self.trades if t.is_open]

    def get_latest_closed_trade(self, setup_id: str) -> Optional[Trade]:
        closed = [t for t in self.trades if t.setup_id == setup_id and not t.is_open and t.exit_date]
        if not closed:
            return None
        return max(closed, key=lambda t: t.exit_date)

    def insert_trade(self, trade: Trade) -> None:
        """
        Insert a new trade.

        Raises:
            StateStoreError: If the setup already has an open trade
        """
        if trade.is_open and self.get_open_trade(trade.setup_id) is not None:
            raise StateStoreError(f"Setup {trade.setup_id} already has an open trade")
        self.trades.append(trade)
        self._save_trades()

    def update_trade(self, trade: Trade) -> None:
        """
        Persist changes to an existing trade.

        Raises:
            StateStoreError: If the trade is unknown or a second open trade would exist
        """
        for i, existing in enumerate(self.trades):
            if existing.trade_id == trade.trade_id:
                if trade.is_open and any(
                    t.setup_id == trade.setup_id and t.is_open and t.trade_id != trade.trade_id
                    for t in self.trades
                ):
                    raise StateStoreError(f"Setup {trade.setup_id} already has an open trade")
                self.trades[i] = trade
                self._save_trades()
                return
        raise StateStoreError(f"Trade {trade.trade_id} not found")

    # ------------------------------------------------------------------
    # Daily indicator records
    # ------------------------------------------------------------------

    def upsert_daily_indicators(self, record: DailyIndicatorRecord) -> None:
        self.daily_indicators[record.date] = record
        atomic_write_json(
            self._path(self.DAILY_INDICATORS_FILE),
            {d: r.to_dict() for d, r in sorted(self.daily_indicators.items())},
        )

    def get_daily_indicators(self, date: str) -> Optional[DailyIndicatorRecord]:
        return self.daily_indicators.get(date)

    def get_latest_zone_before(self, date: str) -> Optional[str]:
        """Zone of the most recent record strictly before ``date``."""
        earlier = [d for d in self.daily_indicators if d < date]
        if not earlier:
            return None
        return self.daily_indicators[max(earlier)].orb_zone
