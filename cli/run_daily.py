#!/usr/bin/env python3
"""
Daily Orb batch.

Fetches bars, evaluates the setup catalog, updates the trade ledger and
history, scores the regime and sends alerts. Safe to invoke once per
trading day; a second invocation for the same date is a no-op.

Usage:
    python -m cli.run_daily [--config CONFIG] [--force] [--dry-run]
    python -m cli.run_daily --wait          # wait for close + buffer, run once
    python -m cli.run_daily --loop          # long-running daily service
"""
import argparse
import logging
import signal
import sys
from datetime import datetime
from pathlib import Path

from orb.automation.alerts import build_alert_sinks
from orb.automation.orchestrator import DailyOrchestrator, RunResult
from orb.automation.state import OrbStateStore
from orb.indicators.technical import IndicatorEngine
from orb.shared.errors import OrbError

from .common import (
    DEFAULT_CONFIG_PATH, build_price_source, build_scheduler, load_config, setup_logging,
)


# Global flag for graceful shutdown
shutdown_requested = False


def signal_handler(signum, frame):
    """Handle shutdown signals (SIGTERM, SIGINT)."""
    global shutdown_requested
    logger = logging.getLogger(__name__)
    logger.info(f"Received signal {signum}, initiating graceful shutdown...")
    shutdown_requested = True


def log_result(logger: logging.Logger, result: RunResult, dry_run: bool = False):
    logger.info("=" * 80)
    if result.skipped:
        logger.info(f"Run for {result.date}: skipped (already processed)")
        logger.info("=" * 80)
        return

    logger.info(f"{'DRY RUN ' if dry_run else ''}Result for {result.date}")
    logger.info(f"Orb score: {result.orb_score:+.3f} ({result.orb_zone})")
    if result.zone_changed:
        logger.info(f"Zone changed from {result.orb_zone_prev}")
    logger.info(f"Suggested mode: {result.suggested_mode}")

    for setup_id, status in result.statuses.items():
        logger.info(f"  {setup_id:<22} {status}")
    if result.activated:
        logger.info(f"Activated: {', '.join(result.activated)}")
    if result.deactivated:
        logger.info(f"Deactivated: {', '.join(result.deactivated)}")
    if result.closed_trades:
        logger.info(f"Closed trades: {', '.join(result.closed_trades)}")
    for setup_id, error in result.errors.items():
        logger.error(f"Setup {setup_id} failed: {error}")
    logger.info("=" * 80)


def main():
    """Run the daily batch."""
    parser = argparse.ArgumentParser(description="Orb daily batch")
    parser.add_argument(
        "--config",
        type=str,
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to config file (default: {DEFAULT_CONFIG_PATH})"
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Re-run even if the date was already processed or is not a trading day"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Evaluate and print results without writing state or sending alerts"
    )
    parser.add_argument(
        "--as-of",
        type=str,
        help="Evaluate as of this date (YYYY-MM-DD) instead of today"
    )
    parser.add_argument(
        "--wait",
        action="store_true",
        help="Wait for market close + buffer before running"
    )
    parser.add_argument(
        "--loop",
        action="store_true",
        help="Keep running, once per trading day"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging (DEBUG level)"
    )
    args = parser.parse_args()

    config = load_config(args.config)
    if config is None:
        return 1

    setup_logging(Path(config.log_path) if config.log_path else None, args.verbose)
    logger = logging.getLogger(__name__)

    as_of = None
    if args.as_of:
        try:
            as_of = datetime.strptime(args.as_of, '%Y-%m-%d')
        except ValueError:
            logger.error(f"Invalid --as-of date: {args.as_of}")
            return 1

    logger.info("=" * 80)
    logger.info("Orb Daily Batch")
    logger.info("=" * 80)
    logger.info(f"Config: {args.config}")
    logger.info(f"Symbol: {config.symbol}")
    logger.info(f"State dir: {config.state_dir}")
    logger.info(f"Dry run: {args.dry_run}")

    try:
        store = OrbStateStore(Path(config.state_dir))
        alert_sink, operator_sink = build_alert_sinks(
            config.discord_webhook_url,
            config.telegram_bot_token,
            config.telegram_chat_id,
        )
        orchestrator = DailyOrchestrator(
            price_source=build_price_source(config),
            store=store,
            alert_sink=alert_sink,
            operator_sink=operator_sink,
            symbol=config.symbol,
            lookback_days=config.lookback_days,
            retry_delay_seconds=config.fetch_retry_delay_seconds,
            engine=IndicatorEngine(min_bars=config.min_bars),
        )
        scheduler = build_scheduler(config)
    except OrbError as e:
        logger.error(f"Failed to initialize components: {e}")
        return 1

    def run_once() -> int:
        if args.dry_run:
            result = orchestrator.preview(as_of)
        else:
            result = orchestrator.run(as_of=as_of, force=args.force)
        log_result(logger, result, args.dry_run)
        return 0

    if not args.loop:
        if args.wait:
            scheduler.wait_for_market_close()
        elif as_of is None and not args.force and not scheduler.is_trading_day():
            logger.info("Not a trading day, nothing to do (use --force to run anyway)")
            return 0
        try:
            return run_once()
        except OrbError as e:
            logger.error(f"Daily batch failed: {e}")
            return 1
        except Exception as e:
            logger.exception(f"Daily batch failed unexpectedly: {e}")
            return 1

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    logger.info("Entering main service loop...")
    while not shutdown_requested:
        logger.info("-" * 80)
        scheduler.wait_for_market_close()
        if shutdown_requested:
            break

        try:
            run_once()
        except OrbError as e:
            logger.error(f"Daily batch failed, skipping this cycle: {e}")
        except Exception as e:
            logger.exception(f"Daily batch failed unexpectedly, skipping this cycle: {e}")
        scheduler.mark_processed()

    logger.info("Service stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
