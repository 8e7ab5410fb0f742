#!/usr/bin/env python3
"""
Scorecard grading CLI.

Usage:
    python -m cli.grade grade 2026-02-11        # grade one date
    python -m cli.grade grade                   # grade all ungraded dates
    python -m cli.grade list-ungraded
    python -m cli.grade list-unenriched
    python -m cli.grade enrich 2026-02-12 --field s1_level=420.5 --field primary_scenario="Bull: break 445"
"""
import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List

import yaml

from orb.grading.scorecard import ScorecardGrader, enrich_scorecard
from orb.grading.store import ENRICHABLE_FIELDS, ScorecardStore
from orb.shared.errors import OrbError

from .common import (
    DEFAULT_CONFIG_PATH, build_price_source, build_scheduler, load_config, setup_logging,
)


def parse_fields(pairs: List[str]) -> Dict[str, Any]:
    """
    Parse key=value pairs; values are read as YAML scalars (numbers, booleans, strings).

    Anything that doesn't parse to a scalar (e.g. "Bull: break 445") is kept as text.

    Raises:
        ValueError: If a pair has no '='
    """
    values = {}
    for pair in pairs:
        if '=' not in pair:
            raise ValueError(f"Expected key=value, got {pair!r}")
        key, raw = pair.split('=', 1)
        if not raw.strip():
            values[key.strip()] = None
            continue
        try:
            parsed = yaml.safe_load(raw)
        except yaml.YAMLError:
            parsed = raw
        values[key.strip()] = parsed if isinstance(parsed, (str, int, float, bool)) else raw
    return values


def main():
    parser = argparse.ArgumentParser(description="Grade and enrich daily scorecards")
    parser.add_argument(
        "--config",
        type=str,
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to config file (default: {DEFAULT_CONFIG_PATH})"
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging (DEBUG level)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    grade_parser = subparsers.add_parser("grade", help="Grade one date, or all ungraded dates")
    grade_parser.add_argument("date", nargs="?", help="Forecast date (YYYY-MM-DD)")
    grade_parser.add_argument("--limit", type=int, default=50, help="Max dates when grading all (default: 50)")

    list_parser = subparsers.add_parser("list-ungraded", help="List dates that need grading")
    list_parser.add_argument("--limit", type=int, default=20)

    unenriched_parser = subparsers.add_parser("list-unenriched", help="List dates missing context")
    unenriched_parser.add_argument("--limit", type=int, default=20)

    enrich_parser = subparsers.add_parser("enrich", help="Set context fields on a date")
    enrich_parser.add_argument("date", help="Forecast date (YYYY-MM-DD)")
    enrich_parser.add_argument(
        "--field",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help=f"Field to set (repeatable). Allowed: {', '.join(ENRICHABLE_FIELDS)}"
    )

    args = parser.parse_args()

    config = load_config(args.config)
    if config is None:
        return 1
    setup_logging(Path(config.log_path) if config.log_path else None, args.verbose)
    logger = logging.getLogger(__name__)

    try:
        store = ScorecardStore(Path(config.state_dir))
    except OrbError as e:
        logger.error(f"Failed to load scorecards: {e}")
        return 1

    if args.command == "grade":
        grader = ScorecardGrader(
            store,
            build_price_source(config),
            symbol=config.symbol,
            scheduler=build_scheduler(config),
        )
        if args.date:
            try:
                result = grader.grade(args.date)
            except OrbError as e:
                logger.error(f"Grading failed: {e}")
                return 1
            if not result.success:
                logger.error(f"Grading failed: {result.error}")
                return 1
            print(f"{result.date}: {result.total_grade}/100{' (already graded)' if result.skipped else ''}")
            return 0

        results = grader.grade_all(args.limit)
        for r in results:
            print(f"{r.date}: {f'{r.total_grade}/100' if r.success else r.error}")
        return 0 if all(r.success for r in results) else 1

    if args.command == "list-ungraded":
        dates = store.list_ungraded(args.limit)
        if not dates:
            print("All scorecards are graded")
            return 0
        print(f"Found {len(dates)} scorecards to grade:")
        for date in dates:
            print(f"  - {date}")
        return 0

    if args.command == "list-unenriched":
        rows = store.list_unenriched(args.limit)
        if not rows:
            print("All scorecards are enriched")
            return 0
        print(f"Found {len(rows)} scorecards missing context:")
        for row in rows:
            print(f"  {row.date}: missing {', '.join(row.missing_context)}")
        return 0

    if args.command == "enrich":
        try:
            values = parse_fields(args.field)
        except ValueError as e:
            logger.error(str(e))
            return 1
        if not values:
            logger.error("No fields given, use --field KEY=VALUE")
            return 1

        result = enrich_scorecard(store, args.date, values)
        if not result.success:
            logger.error(f"Enrichment failed: {result.error}")
            return 1
        print(f"Enriched {result.date}: {', '.join(result.updated_fields)}")
        return 0

    return 1


if __name__ == "__main__":
    sys.exit(main())
