"""
Trade ledger: one trade per setup activation.

Handles flicker protection (reopening a recently closed trade instead of
opening a duplicate), the minimum holding period of fixed-horizon setups
and the timeout of gauge trades.
"""
import logging
from datetime import date as date_cls
from typing import List, Optional

from ..indicators.technical import IndicatorSnapshot
from ..setups.types import SetupDefinition
from ..shared.defaults import FLICKER_REOPEN_DAYS, FIXED_HORIZON_DAYS, GAUGE_TIMEOUT_DAYS
from ..shared.types import ExitReason, SetupCategory, SetupSide, TradeStatus
from .state import OrbStateStore, Trade


logger = logging.getLogger(__name__)


def _days_between(start: str, end: str) -> int:
    return (date_cls.fromisoformat(end) - date_cls.fromisoformat(start)).days


def is_winning_return(side: SetupSide, return_pct: float) -> bool:
    """Buy setups win on a positive return, avoid setups on a negative one."""
    if side == SetupSide.AVOID:
        return return_pct < 0
    return return_pct > 0


def exit_reason_for(reason: str) -> ExitReason:
    """Classify a deactivation reason."""
    if "target" in (reason or "").lower():
        return ExitReason.TARGET_REACHED
    return ExitReason.CONDITIONS_LOST


class TradeLedger:
    """
    Reconciles trades with daily setup transitions.

    All methods take the day's snapshot; the snapshot date (not the wall
    clock) drives every date comparison so replays are deterministic.
    """

    def __init__(
        self,
        store: OrbStateStore,
        flicker_reopen_days: int = FLICKER_REOPEN_DAYS,
        fixed_horizon_days: int = FIXED_HORIZON_DAYS,
        gauge_timeout_days: int = GAUGE_TIMEOUT_DAYS,
    ):
        """
        Initialize trade ledger.

        Args:
            store: State store holding the trades
            flicker_reopen_days: Calendar days within which a closed trade is reopened
            fixed_horizon_days: Minimum trading days held by fixed-horizon setups
            gauge_timeout_days: Days after which gauge trades are force-closed
        """
        self.store = store
        self.flicker_reopen_days = flicker_reopen_days
        self.fixed_horizon_days = fixed_horizon_days
        self.gauge_timeout_days = gauge_timeout_days

    # ------------------------------------------------------------------
    # Building blocks
    # ------------------------------------------------------------------

    def mark_to_market(self, trade: Trade, snapshot: IndicatorSnapshot) -> bool:
        """
        Advance an open trade by one day.

        Returns:
            False if the trade was already marked for this date
        """
        if trade.last_marked_date == snapshot.date:
            return False

        ret = (snapshot.close / trade.entry_price - 1) * 100
        trade.current_return_pct = round(ret, 4)
        trade.max_return_pct = round(max(trade.max_return_pct, ret), 4)
        trade.max_drawdown_pct = round(min(trade.max_drawdown_pct, ret), 4)
        trade.days_active += 1
        trade.last_marked_date = snapshot.date
        return True

    def close_trade(
        self,
        trade: Trade,
        definition: SetupDefinition,
        snapshot: IndicatorSnapshot,
        reason: ExitReason,
    ) -> Trade:
        """Close a trade at the snapshot's close."""
        final = round((snapshot.close / trade.entry_price - 1) * 100, 4)
        trade.exit_date = snapshot.date
        trade.exit_price = snapshot.close
        trade.exit_reason = reason.value
        trade.exit_indicators = snapshot.to_dict()
        trade.final_return_pct = final
        trade.current_return_pct = final
        trade.is_win = is_winning_return(definition.side, final)
        trade.status = TradeStatus.CLOSED.value
        self.store.update_trade(trade)

        logger.info(
            f"Closed {trade.setup_id} trade {trade.trade_id}: {reason.value}, "
            f"return {final:+.2f}% after {trade.days_active}d ({'win' if trade.is_win else 'loss'})"
        )
        return trade

    def _reopen(self, trade: Trade, snapshot: IndicatorSnapshot) -> Trade:
        trade.exit_date = None
        trade.exit_price = None
        trade.exit_reason = None
        trade.exit_indicators = None
        trade.final_return_pct = None
        trade.is_win = None
        trade.status = TradeStatus.OPEN.value
        self.mark_to_market(trade, snapshot)
        self.store.update_trade(trade)
        logger.info(f"Reopened {trade.setup_id} trade {trade.trade_id} (flicker within {self.flicker_reopen_days}d)")
        return trade

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def on_activation(self, definition: SetupDefinition, snapshot: IndicatorSnapshot) -> Trade:
        """
        Open, resume or reopen the setup's trade.

        An open trade (held past a deactivation for its horizon) is resumed.
        A trade closed within the flicker window is reopened. Otherwise a
        fresh trade is opened at today's close.
        """
        setup_id = definition.setup_id

        open_trade = self.store.get_open_trade(setup_id)
        if open_trade is not None:
            open_trade.exit_reason = None
            self.mark_to_market(open_trade, snapshot)
            self.store.update_trade(open_trade)
            logger.info(f"Resumed open {setup_id} trade {open_trade.trade_id}")
            return open_trade

        last_closed = self.store.get_latest_closed_trade(setup_id)
        if last_closed is not None:
            gap = _days_between(last_closed.exit_date, snapshot.date)
            if 0 <= gap <= self.flicker_reopen_days:
                return self._reopen(last_closed, snapshot)

        trade = Trade(
            trade_id=f"{setup_id}:{snapshot.date}",
            setup_id=setup_id,
            entry_date=snapshot.date,
            entry_price=snapshot.close,
            entry_indicators=snapshot.to_dict(),
            days_active=1,
            last_marked_date=snapshot.date,
        )
        self.store.insert_trade(trade)
        logger.info(f"Opened {setup_id} trade at {snapshot.close:.2f} on {snapshot.date}")
        return trade

    def on_still_active(self, definition: SetupDefinition, snapshot: IndicatorSnapshot) -> Optional[Trade]:
        """Mark the open trade of a setup that stayed active; time out gauges."""
        trade = self.store.get_open_trade(definition.setup_id)
        if trade is None:
            return None

        self.mark_to_market(trade, snapshot)
        if definition.category == SetupCategory.GAUGE and trade.days_active >= self.gauge_timeout_days:
            return self.close_trade(trade, definition, snapshot, ExitReason.TIMEOUT)

        self.store.update_trade(trade)
        return trade

    def on_deactivation(
        self,
        definition: SetupDefinition,
        reason: str,
        snapshot: IndicatorSnapshot,
    ) -> Optional[Trade]:
        """
        Close the setup's trade, or hold it open for its horizon.

        Fixed-horizon setups that deactivate before the horizon keep their
        trade open with exit_reason "tracking_horizon".
        """
        trade = self.store.get_open_trade(definition.setup_id)
        if trade is None:
            return None

        self.mark_to_market(trade, snapshot)

        if definition.category == SetupCategory.FIXED_HORIZON and trade.days_active < self.fixed_horizon_days:
            trade.exit_reason = ExitReason.TRACKING_HORIZON.value
            self.store.update_trade(trade)
            logger.info(
                f"Holding {trade.setup_id} trade for horizon "
                f"(day {trade.days_active}/{self.fixed_horizon_days})"
            )
            return trade

        return self.close_trade(trade, definition, snapshot, exit_reason_for(reason))

    def sweep_tracking_horizon(self, snapshot: IndicatorSnapshot, registry) -> List[Trade]:
        """
        Advance trades held past deactivation and close those at the horizon.

        Trades already marked today (e.g. resumed by a reactivation) are skipped.

        Args:
            snapshot: Today's snapshot
            registry: Mapping of setup_id to SetupDefinition

        Returns:
            Trades closed by this sweep
        """
        closed = []
        for trade in self.store.get_open_trades():
            if trade.exit_reason != ExitReason.TRACKING_HORIZON.value:
                continue
            if not self.mark_to_market(trade, snapshot):
                continue

            if trade.days_active >= self.fixed_horizon_days:
                definition = registry[trade.setup_id]
                closed.append(self.close_trade(trade, definition, snapshot, ExitReason.HORIZON_REACHED))
            else:
                self.store.update_trade(trade)
        return closed
