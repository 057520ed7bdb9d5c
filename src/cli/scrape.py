"""CLI for running and inspecting incremental episode scrapes.

Usage::

    # Scrape the next batch (resumes from the stored cursor)
    python -m src.cli.scrape run

    # Bigger batch, keep failing ids in front of the cursor
    python -m src.cli.scrape run --batch-size 50 --policy advance_on_success

    # Force a restart point (ids below it are skipped for good)
    python -m src.cli.scrape run --start-id 1200

    # Show cursor, item count and recent runs
    python -m src.cli.scrape status

    # Show one stored item and every attempt made for it
    python -m src.cli.scrape show-item 42

    # Move the cursor by hand
    python -m src.cli.scrape set-cursor 1000

Exit codes: 0 success, 1 run aborted / not found, 2 configuration error.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from src.config.loader import load_config
from src.models.scrape import AdvancementPolicy, ItemOutcome, OutcomeStatus
from src.utils.errors import ConfigurationError, PersistenceError
from src.utils.logging import configure_logging

_DEFAULT_CONFIG_PATH = "config/config.yaml"

_STATUS_MARKS = {
    OutcomeStatus.OK: "OK",
    OutcomeStatus.NOT_FOUND: "--",
    OutcomeStatus.PARSE_ERROR: "??",
    OutcomeStatus.ERROR: "!!",
}


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


def _print_outcome(outcome: ItemOutcome) -> None:
    mark = _STATUS_MARKS[outcome.status]
    retries = f" (attempts={outcome.attempts})" if outcome.attempts > 1 else ""
    print(f"  [{mark}] {outcome.item_id:>7}  {outcome.message}{retries}")


async def _handle_run(args: argparse.Namespace) -> int:
    """Run one batch and print a per-item report."""
    from src.main import run_batch

    try:
        result = await run_batch(
            config_path=args.config,
            on_progress=_print_outcome,
            batch_size=args.batch_size,
            delay_ms=args.delay_ms,
            delay_jitter_ms=args.delay_jitter_ms,
            override_start_id=args.start_id,
            advancement_policy=args.policy,
            retry_count=args.retries,
            retry_delay_ms=args.retry_delay_ms,
            run_timeout_seconds=args.timeout,
        )
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    print()
    if result.start_id is not None:
        print(f"Range:   {result.start_id}-{result.end_id} (run {result.run_id})")
    counts = result.count_by_status()
    print("Results: " + ", ".join(f"{k}={v}" for k, v in counts.items()))
    print(f"Cursor:  {result.cursor_before} -> {result.cursor_after}")

    if result.status != "ok":
        print(f"Run aborted: {result.error}", file=sys.stderr)
        return 1
    print("Batch complete.")
    return 0


async def _handle_status(args: argparse.Namespace) -> int:
    """Show the cursor, stored item count and recent runs."""
    store = _open_store(args.config)
    async with store:
        cursor = await store.get_cursor()
        items = await store.count_items()
        runs = await store.get_recent_runs(limit=args.limit)

    print("Scrape Progress")
    print("=" * 72)
    print(f"Cursor (last attempted id): {cursor}")
    print(f"Stored items:               {items:,}")
    print()
    print(f"{'Run':>5} {'Range':>15} {'Status':<8} {'Started':<25} Message")
    print("-" * 72)
    for run in runs:
        id_range = f"{run.start_id}-{run.end_id}"
        print(
            f"{run.run_id:>5} {id_range:>15} {run.status.value:<8} "
            f"{run.started_at:<25} {run.message or ''}"
        )
    if not runs:
        print("  (no runs yet)")
    return 0


async def _handle_show_item(args: argparse.Namespace) -> int:
    """Print one stored item and its outcome history."""
    store = _open_store(args.config)
    async with store:
        item = await store.get_item(args.item_id)
        outcomes = await store.get_outcomes(args.item_id)

    if item is None:
        print(f"Item {args.item_id}: not stored")
    else:
        print(json.dumps(item, indent=2, ensure_ascii=False))

    if outcomes:
        print()
        print("Attempts:")
        for row in outcomes:
            run = row["run_id"] if row["run_id"] is not None else "-"
            print(
                f"  {row['created_at']}  run={run}  {row['status']:<11} "
                f"attempts={row['attempts']}  {row['message'] or ''}"
            )
    return 0 if item is not None or outcomes else 1


async def _handle_set_cursor(args: argparse.Namespace) -> int:
    """Overwrite the cursor (operator override)."""
    if args.value < 0:
        print("Error: cursor must be >= 0", file=sys.stderr)
        return 2
    store = _open_store(args.config)
    async with store:
        previous = await store.get_cursor()
        await store.set_cursor(args.value)
    print(f"Cursor: {previous} -> {args.value}")
    return 0


def _open_store(config_path: str):  # noqa: ANN202
    from src.providers.store.sqlite_scrape_store import SQLiteScrapeStore

    config = load_config(config_path)
    return SQLiteScrapeStore(db_path=config["storage"]["scrape_db_path"])


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the scrape CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m src.cli.scrape",
        description="Incrementally scrape numbered episode pages into SQLite.",
    )
    parser.add_argument(
        "--config",
        default=_DEFAULT_CONFIG_PATH,
        help=f"YAML config file (default: {_DEFAULT_CONFIG_PATH})",
    )
    subparsers = parser.add_subparsers(dest="command", help="Scrape commands")

    # -- run --
    run_parser = subparsers.add_parser("run", help="Scrape the next batch of ids")
    run_parser.add_argument("--batch-size", type=int, default=None, help="Ids per run (default: 10)")
    run_parser.add_argument(
        "--delay-ms", type=int, default=None, help="Pause between items in ms (default: 3000)"
    )
    run_parser.add_argument(
        "--delay-jitter-ms",
        type=int,
        default=None,
        help="Random +/- spread around --delay-ms (default: 1000, 0 = fixed)",
    )
    run_parser.add_argument(
        "--start-id",
        type=int,
        default=None,
        help="Lowest id to start from; never moves below cursor + 1",
    )
    run_parser.add_argument(
        "--policy",
        choices=[p.value for p in AdvancementPolicy],
        default=None,
        help="Cursor advancement policy (default: advance_attempted)",
    )
    run_parser.add_argument(
        "--retries", type=int, default=None, help="Extra fetch attempts per id (default: 2)"
    )
    run_parser.add_argument(
        "--retry-delay-ms", type=int, default=None, help="Pause between fetch attempts (default: 3000)"
    )
    run_parser.add_argument(
        "--timeout", type=float, default=None, help="Abort the run after this many seconds"
    )

    # -- status --
    status_parser = subparsers.add_parser("status", help="Show cursor and recent runs")
    status_parser.add_argument("--limit", type=int, default=10, help="Runs to list (default: 10)")

    # -- show-item --
    item_parser = subparsers.add_parser("show-item", help="Show a stored item and its attempts")
    item_parser.add_argument("item_id", type=int, help="Item id")

    # -- set-cursor --
    cursor_parser = subparsers.add_parser("set-cursor", help="Overwrite the stored cursor")
    cursor_parser.add_argument("value", type=int, help="New last attempted id")

    return parser


_HANDLERS = {
    "run": _handle_run,
    "status": _handle_status,
    "show-item": _handle_show_item,
    "set-cursor": _handle_set_cursor,
}


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the scrape tool."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    config = load_config(args.config)
    configure_logging(log_level=config["logging"]["level"])

    handler = _HANDLERS[args.command]
    try:
        exit_code = asyncio.run(handler(args))
    except PersistenceError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
