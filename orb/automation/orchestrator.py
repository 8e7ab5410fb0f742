"""
Daily orchestrator: one idempotent pass per trading day.

Pulls bars, computes the snapshot, evaluates every setup against the
persisted previous state, reconciles the trade ledger, writes history,
scores the regime and fires alerts.
"""
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

import pandas as pd

from ..data.download import PriceSource
from ..indicators.technical import IndicatorEngine, IndicatorSnapshot, usable_bars
from ..indicators.volume import compute_volume_metrics
from ..scoring.score import (
    compute_orb_score, get_zone_display, is_downside_transition, transition_message,
)
from ..setups.catalog import SETUP_REGISTRY, evaluate_all_setups, evaluate_setup
from ..setups.mode import suggest_mode
from ..setups.types import PreviousState, SetupResult
from ..shared.defaults import (
    DEFAULT_SYMBOL, LOOKBACK_DAYS, FETCH_RETRY_DELAY_SECONDS,
)
from ..shared.errors import InsufficientHistoryError, PriceFetchError
from ..shared.types import EventType, SetupStatus
from .alerts import AlertSink, LoggingAlertSink, LoggingOperatorSink, OperatorAlertSink
from .ledger import TradeLedger
from .state import (
    DailyIndicatorRecord, DailySnapshot, OrbStateStore, SetupState, SignalLogEntry,
)


logger = logging.getLogger(__name__)

ZONE_SETUP_ID = "orb-zone"


@dataclass
class RunResult:
    """Summary of one daily pass."""
    date: Optional[str]
    skipped: bool = False
    orb_score: Optional[float] = None
    orb_zone: Optional[str] = None
    orb_zone_prev: Optional[str] = None
    zone_changed: bool = False
    suggested_mode: Optional[str] = None
    statuses: Dict[str, str] = field(default_factory=dict)
    activated: List[str] = field(default_factory=list)
    deactivated: List[str] = field(default_factory=list)
    closed_trades: List[str] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)


def event_type_for(previous_status: str, new_status: str) -> EventType:
    """Classify a status change for the signal log."""
    if new_status == SetupStatus.ACTIVE.value:
        return EventType.ACTIVATED
    if previous_status == SetupStatus.ACTIVE.value:
        return EventType.DEACTIVATED
    if new_status == SetupStatus.WATCHING.value:
        return EventType.WATCHING_STARTED
    return EventType.WATCHING_ENDED


def next_setup_state(
    previous: SetupState,
    result: SetupResult,
    snapshot: IndicatorSnapshot,
    updated_at: str,
) -> SetupState:
    """
    Derive today's SetupState from yesterday's and today's evaluation.

    Entry fields are stamped on activation and frozen while active; they
    are cleared whenever the setup is not active. Re-running a date that
    the previous state already reflects does not advance active_day.
    """
    status = result.status.value
    was_active = previous.status == SetupStatus.ACTIVE.value
    same_date = previous.state_date == snapshot.date

    state = SetupState(
        setup_id=result.setup_id,
        status=status,
        current_price=snapshot.close,
        conditions_met=dict(result.conditions_met),
        reason=result.reason,
        gauge_current_value=result.gauge_current_value,
        updated_at=updated_at,
        state_date=snapshot.date,
    )

    if status == SetupStatus.ACTIVE.value:
        if was_active:
            state.active_since = previous.active_since
            state.active_day = previous.active_day if same_date else previous.active_day + 1
            state.entry_price = previous.entry_price
            state.entry_indicator_values = previous.entry_indicator_values
            state.gauge_entry_value = previous.gauge_entry_value
        else:
            state.active_since = snapshot.date
            state.active_day = 1
            state.entry_price = snapshot.close
            state.entry_indicator_values = snapshot.to_dict()
            state.gauge_entry_value = result.gauge_entry_value
        state.gauge_target_value = result.gauge_target_value

        entry, target, current = state.gauge_entry_value, state.gauge_target_value, state.gauge_current_value
        if entry is not None and target is not None and current is not None and target != entry:
            state.gauge_progress_pct = round((current - entry) / (target - entry) * 100, 1)
    elif status == SetupStatus.WATCHING.value:
        state.watching_reason = result.reason
    else:
        state.inactive_reason = result.reason

    return state


class DailyOrchestrator:
    """
    Runs the daily batch.

    Responsibilities:
    - Fetch bars with one retry, abort before any write on fatal errors
    - Evaluate all setups with per-setup isolation
    - Persist setup state, signal log, daily snapshots and trades
    - Score the regime, log zone transitions and send alerts
    """

    def __init__(
        self,
        price_source: PriceSource,
        store: OrbStateStore,
        alert_sink: Optional[AlertSink] = None,
        operator_sink: Optional[OperatorAlertSink] = None,
        symbol: str = DEFAULT_SYMBOL,
        lookback_days: int = LOOKBACK_DAYS,
        retry_delay_seconds: float = FETCH_RETRY_DELAY_SECONDS,
        engine: Optional[IndicatorEngine] = None,
        ledger: Optional[TradeLedger] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Initialize the orchestrator.

        Args:
            price_source: Source of daily bars
            store: State store
            alert_sink: Outbound alert sink (default: logging)
            operator_sink: Operator alert sink (default: logging)
            symbol: Instrument symbol
            lookback_days: Calendar days of history to request
            retry_delay_seconds: Delay before the single fetch retry
            engine: Indicator engine (default: IndicatorEngine())
            ledger: Trade ledger (default: TradeLedger(store))
            sleep: Sleep function, injectable for tests
            clock: Wall clock, injectable for tests
        """
        self.price_source = price_source
        self.store = store
        self.alert_sink = alert_sink or LoggingAlertSink()
        self.operator_sink = operator_sink or LoggingOperatorSink()
        self.symbol = symbol
        self.lookback_days = lookback_days
        self.retry_delay_seconds = retry_delay_seconds
        self.engine = engine or IndicatorEngine()
        self.ledger = ledger or TradeLedger(store)
        self.sleep = sleep
        self.clock = clock

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def fetch_bars(self, as_of: Optional[datetime] = None) -> pd.DataFrame:
        """
        Fetch bars, retrying once after a fixed delay.

        Raises:
            PriceFetchError: If both attempts fail
        """
        end = pd.Timestamp(as_of or self.clock()).normalize()
        start = end - timedelta(days=self.lookback_days)

        last_error: Optional[Exception] = None
        for attempt in (1, 2):
            try:
                bars = self.price_source.fetch_daily_bars(self.symbol, start, end)
                if bars is None or bars.empty:
                    raise ValueError(f"No bars returned for {self.symbol}")
                return bars
            except Exception as e:
                last_error = e
                if attempt == 1:
                    logger.warning(
                        f"Price fetch failed ({e}), retrying in {self.retry_delay_seconds:.0f}s"
                    )
                    self.sleep(self.retry_delay_seconds)

        raise PriceFetchError(f"Price fetch for {self.symbol} failed after retry: {last_error}") from last_error

    def load_snapshot(self, as_of: Optional[datetime] = None):
        """
        Fetch bars and compute today's snapshot, alerting the operator on failure.

        Returns:
            Tuple of (bars with complete OHLC, snapshot)
        """
        try:
            bars = usable_bars(self.fetch_bars(as_of))
            snapshot = self.engine.compute_snapshot(bars)
        except (PriceFetchError, InsufficientHistoryError) as e:
            logger.error(f"Daily run aborted: {e}")
            self.operator_sink.send_failure(type(e).__name__, str(e))
            raise
        return bars, snapshot

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def preview(self, as_of: Optional[datetime] = None) -> RunResult:
        """Evaluate today's setups and score without writing anything."""
        bars, snapshot = self.load_snapshot(as_of)
        results = evaluate_all_setups(snapshot, self.store.get_previous_states())
        statuses = {r.setup_id: r.status.value for r in results}
        score = compute_orb_score(statuses)
        active = [sid for sid, s in statuses.items() if s == SetupStatus.ACTIVE.value]

        return RunResult(
            date=snapshot.date,
            orb_score=score,
            orb_zone=get_zone_display(score).zone.value,
            suggested_mode=suggest_mode(snapshot, active).suggestion,
            statuses=statuses,
        )

    def run(self, as_of: Optional[datetime] = None, force: bool = False) -> RunResult:
        """
        Run the daily pass.

        Args:
            as_of: Evaluate as of this date (default: today)
            force: Re-run even if the snapshot date was already processed

        Returns:
            RunResult

        Raises:
            PriceFetchError: If the price source fails after the retry
            InsufficientHistoryError: If too little history is available

        Any other error escaping the pass is sent to the operator sink and
        re-raised.
        """
        bars, snapshot = self.load_snapshot(as_of)
        try:
            return self._run_pass(bars, snapshot, force)
        except Exception as e:
            logger.exception(f"Daily run for {snapshot.date} failed: {e}")
            self.operator_sink.send_failure(type(e).__name__, str(e))
            raise

    def _run_pass(self, bars: pd.DataFrame, snapshot: IndicatorSnapshot, force: bool) -> RunResult:
        date = snapshot.date

        if self.store.has_daily_snapshots(date):
            if not force:
                logger.warning(f"Daily run for {date} already completed, skipping")
                return RunResult(date=date, skipped=True)
            self.store.remove_daily_snapshots(date)

        logger.info(f"Running daily pass for {self.symbol} on {date} (close {snapshot.close:.2f})")
        updated_at = self.clock().isoformat()
        result = RunResult(date=date)

        previous_states: Dict[str, PreviousState] = self.store.get_previous_states()
        peers: Dict[str, SetupResult] = {}

        for setup_id, definition in SETUP_REGISTRY.items():
            previous = self.store.get_setup_state(setup_id) or SetupState(setup_id=setup_id)
            try:
                setup_result = evaluate_setup(setup_id, snapshot, previous_states, peers)
                peers[setup_id] = setup_result
                self._apply_setup_result(definition, previous, setup_result, snapshot, updated_at, result)
            except Exception as e:
                logger.exception(f"Setup {setup_id} failed on {date}: {e}")
                result.errors[setup_id] = str(e)
                result.statuses[setup_id] = previous.status
                # Peers see the failed setup at its previous status
                peers.setdefault(setup_id, SetupResult(
                    setup_id=setup_id,
                    is_active=previous.status == SetupStatus.ACTIVE.value,
                    is_watching=previous.status == SetupStatus.WATCHING.value,
                    reason=f"Evaluation failed: {e}",
                ))

        for trade in self.ledger.sweep_tracking_horizon(snapshot, SETUP_REGISTRY):
            result.closed_trades.append(trade.trade_id)

        self._record_regime(bars, snapshot, result, updated_at)

        logger.info(
            f"Daily pass {date} complete: score {result.orb_score:+.3f} ({result.orb_zone}), "
            f"mode {result.suggested_mode}, {len(result.activated)} activated, "
            f"{len(result.deactivated)} deactivated, {len(result.errors)} errors"
        )
        return result

    def _apply_setup_result(self, definition, previous, setup_result, snapshot, updated_at, result):
        setup_id = definition.setup_id
        prev_status = previous.status
        new_status = setup_result.status.value

        state = next_setup_state(previous, setup_result, snapshot, updated_at)
        self.store.upsert_setup_state(state)
        result.statuses[setup_id] = new_status

        if new_status != prev_status:
            event = event_type_for(prev_status, new_status)
            entry = SignalLogEntry(
                setup_id=setup_id,
                event_type=event.value,
                event_date=snapshot.date,
                event_price=snapshot.close,
                previous_status=prev_status,
                new_status=new_status,
                indicator_snapshot=snapshot.to_dict(),
                notes=setup_result.reason,
            )
            self.store.append_signal_log(entry)
            if event in (EventType.ACTIVATED, EventType.DEACTIVATED):
                self._send_setup_alert(entry, definition)

        was_active = prev_status == SetupStatus.ACTIVE.value
        is_active = new_status == SetupStatus.ACTIVE.value

        if is_active and not was_active:
            self.ledger.on_activation(definition, snapshot)
            result.activated.append(setup_id)
        elif is_active:
            trade = self.ledger.on_still_active(definition, snapshot)
            if trade is not None and not trade.is_open:
                result.closed_trades.append(trade.trade_id)
        elif was_active:
            trade = self.ledger.on_deactivation(definition, setup_result.reason, snapshot)
            if trade is not None and not trade.is_open:
                result.closed_trades.append(trade.trade_id)
            result.deactivated.append(setup_id)

        self.store.append_daily_snapshot(DailySnapshot(
            date=snapshot.date,
            setup_id=setup_id,
            status=new_status,
            active_day=state.active_day,
            entry_price=state.entry_price,
            close_price=snapshot.close,
            gauge_current_value=setup_result.gauge_current_value,
            reason=setup_result.reason,
        ))

    def _record_regime(self, bars, snapshot, result, updated_at):
        score = compute_orb_score(result.statuses)
        display = get_zone_display(score)
        zone = display.zone.value
        prev_zone = self.store.get_latest_zone_before(snapshot.date)

        result.orb_score = score
        result.orb_zone = zone
        result.orb_zone_prev = prev_zone

        if prev_zone is not None and prev_zone != zone:
            result.zone_changed = True
            message = transition_message(prev_zone, zone)
            logger.info(f"Zone transition {prev_zone} -> {zone} on {snapshot.date} (score {score:+.3f})")
            self.store.append_signal_log(SignalLogEntry(
                setup_id=ZONE_SETUP_ID,
                event_type=EventType.ZONE_TRANSITION.value,
                event_date=snapshot.date,
                event_price=snapshot.close,
                previous_status=prev_zone,
                new_status=zone,
                indicator_snapshot=snapshot.to_dict(),
                notes=message,
            ))
            if is_downside_transition(prev_zone, zone):
                self._send_zone_alert(snapshot.date, prev_zone, zone, score, message)

        active = [sid for sid, s in result.statuses.items() if s == SetupStatus.ACTIVE.value]
        mode = suggest_mode(snapshot, active)
        result.suggested_mode = mode.suggestion

        volume = compute_volume_metrics(bars)
        self.store.upsert_daily_indicators(DailyIndicatorRecord(
            date=snapshot.date,
            indicators=snapshot.to_dict(),
            orb_score=score,
            orb_zone=zone,
            orb_zone_prev=prev_zone,
            zone_label=display.label,
            suggested_mode=mode.suggestion,
            mode_confidence=mode.confidence,
            mode_reasoning=list(mode.reasoning),
            volume=volume.to_dict() if volume is not None else None,
            updated_at=updated_at,
        ))

    def _send_setup_alert(self, entry, definition):
        try:
            self.alert_sink.send_setup_alert(entry, definition)
        except Exception as e:
            logger.error(f"Alert for {entry.setup_id} failed: {e}")

    def _send_zone_alert(self, date, prev_zone, zone, score, message):
        try:
            self.alert_sink.send_zone_alert(date, prev_zone, zone, score, message)
        except Exception as e:
            logger.error(f"Zone alert failed: {e}")
