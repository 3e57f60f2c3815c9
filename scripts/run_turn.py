#!/usr/bin/env python3
"""
Run the scripts contained in a saved model response against a CSV file.

Examples:
    # Run a transcript against in-memory rows
    uv run python scripts/run_turn.py --csv data/matches.csv --transcript turn.md

    # Register the CSV in DuckDB so scripts use query() instead
    uv run python scripts/run_turn.py --csv data/matches.csv --transcript turn.md --duckdb

    # Apply a filter to every query
    uv run python scripts/run_turn.py --csv data/matches.csv --transcript turn.md \\
        --duckdb --filter team=Home
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv
load_dotenv()

import pandas as pd

from analyst_sandbox.config import SandboxConfig
from analyst_sandbox.query.registry import DuckDBRegistry
from analyst_sandbox.sandbox.engine import CodeExecutor
from analyst_sandbox.state.store import ExecutionContext

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


def parse_filters(pairs: list[str]) -> dict[str, list[str]]:
    """Parse repeated column=value options into a filter mapping."""
    filters: dict[str, list[str]] = {}
    for pair in pairs:
        column, _, value = pair.partition("=")
        if not column or not value:
            raise ValueError(f"Invalid filter {pair!r}, expected column=value")
        filters.setdefault(column, []).append(value)
    return filters


def main():
    parser = argparse.ArgumentParser(
        description="Execute the script blocks of a model response"
    )
    parser.add_argument("--csv", required=True, type=Path, help="CSV file with the data")
    parser.add_argument(
        "--transcript", required=True, type=Path, help="Text file with the model response"
    )
    parser.add_argument(
        "--duckdb",
        action="store_true",
        help="Register the CSV in DuckDB instead of binding rows in memory",
    )
    parser.add_argument(
        "--filter", action="append", default=[], help="Filter as column=value (repeatable)"
    )
    parser.add_argument("--sql", action="store_true", help="Allow bare SQL blocks")
    args = parser.parse_args()

    config = SandboxConfig.from_env()
    df = pd.read_csv(args.csv)
    text = args.transcript.read_text(encoding="utf-8")
    filters = parse_filters(args.filter) or None

    if args.duckdb:
        registry = DuckDBRegistry()
        handle = args.csv.stem
        table = registry.register_frame(handle, df)
        logger.info(f"Registered {args.csv} as {table} ({len(df)} rows)")
        executor = CodeExecutor(
            registry=registry,
            source_handles=[handle],
            filters=filters,
            allow_sql=args.sql,
            config=config,
        )
    else:
        executor = CodeExecutor(data=df, filters=filters, allow_sql=args.sql, config=config)

    context = ExecutionContext()
    outcomes = executor.run_turn(text, context)
    if not outcomes:
        print("No executable blocks found.")
        return

    for i, outcome in enumerate(outcomes, 1):
        print(f"\n{'=' * 60}")
        print(f"Block {i} ({outcome.block.delimiter_kind.value}, offset {outcome.block.start_offset})")
        print("-" * 60)
        print(outcome.block.raw_code)
        print("-" * 60)
        if outcome.result is not None:
            print(executor.format_result(outcome.result))
        elif outcome.needs_completion:
            print(f"Needs completion: {outcome.skipped_reason}")
        else:
            print(f"Skipped: {outcome.skipped_reason}")

    print(f"\nFinal state keys: {list(executor.get_execution_state(context).keys())}")
    context.complete()


if __name__ == "__main__":
    main()
