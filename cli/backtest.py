#!/usr/bin/env python3
"""
Setup backtest CLI.

Replays the setup catalog over history and prints per-setup forward
returns and per-zone forward returns.

Usage:
    python -m cli.backtest --symbol TSLA --start 2018-01-01
    python -m cli.backtest --csv data/TSLA.csv --output results/backtest
"""
import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path

import pandas as pd

from orb.data.download import CsvPriceSource, YahooPriceSource
from orb.evaluation.backtest import (
    run_setup_backtest, score_history, summarize_instances, summarize_zones,
)
from orb.shared.defaults import BACKTEST_HORIZONS, BACKTEST_START_INDEX, DEFAULT_SYMBOL

from .common import setup_logging


def main():
    parser = argparse.ArgumentParser(description="Replay the setup catalog over history")
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--csv", type=str, help="CSV file with daily OHLCV bars")
    source.add_argument("--symbol", type=str, default=DEFAULT_SYMBOL,
                        help=f"Ticker to download from Yahoo Finance (default: {DEFAULT_SYMBOL})")
    parser.add_argument("--start", type=str, default="2015-01-01", help="First date of history (default: 2015-01-01)")
    parser.add_argument("--end", type=str, help="Last date of history (default: latest)")
    parser.add_argument("--start-index", type=int, default=BACKTEST_START_INDEX,
                        help=f"Warm-up bars before the first evaluation (default: {BACKTEST_START_INDEX})")
    parser.add_argument("--horizons", type=int, nargs="+", default=list(BACKTEST_HORIZONS),
                        help="Forward horizons in trading days")
    parser.add_argument("--output", type=str, help="Directory to write CSV results")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging (DEBUG level)")
    args = parser.parse_args()

    setup_logging(None, args.verbose)
    logger = logging.getLogger(__name__)

    try:
        start = datetime.strptime(args.start, '%Y-%m-%d')
        end = datetime.strptime(args.end, '%Y-%m-%d') if args.end else None
    except ValueError as e:
        logger.error(f"Invalid date: {e}")
        return 1

    if args.csv:
        price_source = CsvPriceSource(args.csv)
        label = Path(args.csv).stem
    else:
        price_source = YahooPriceSource()
        label = args.symbol

    try:
        bars = price_source.fetch_daily_bars(args.symbol, start, end)
        replay = run_setup_backtest(bars, start_index=args.start_index, horizons=args.horizons)
    except (OSError, ValueError) as e:
        logger.error(f"Backtest failed: {e}")
        return 1

    by_setup = summarize_instances(replay.instances, args.horizons)
    history = score_history(replay)
    by_zone = summarize_zones(history, args.horizons)

    with pd.option_context('display.width', 160, 'display.max_columns', None, 'display.float_format', '{:.2f}'.format):
        print(f"\nSetup activations ({label}, {len(replay.statuses)} days)")
        print("=" * 80)
        print(by_setup.to_string())
        print("\nForward returns by zone")
        print("=" * 80)
        print(by_zone.to_string())

    if args.output:
        output_dir = Path(args.output)
        output_dir.mkdir(parents=True, exist_ok=True)
        pd.DataFrame([inst.to_dict() for inst in replay.instances]).to_csv(output_dir / "instances.csv", index=False)
        by_setup.to_csv(output_dir / "setup_summary.csv")
        history.to_csv(output_dir / "score_history.csv")
        by_zone.to_csv(output_dir / "zone_summary.csv")
        logger.info(f"Results written to {output_dir}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
