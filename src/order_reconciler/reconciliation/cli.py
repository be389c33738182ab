#!/usr/bin/env python3
"""Command-line interface for reconciliation tools.

This CLI runs reconciliation sweeps, corrects single orders, and can
run the periodic scheduler in the foreground.

Usage:
    python -m order_reconciler.reconciliation.cli sweep --days 2 --limit 25
    python -m order_reconciler.reconciliation.cli sweep --format text --output sweep.txt
    python -m order_reconciler.reconciliation.cli reconcile-order 1234
    python -m order_reconciler.reconciliation.cli schedule --interval 3600
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from ..config import ReconciliationSettings, get_schedule_interval
from ..database import DatabaseManager
from .engine import ReconciliationEngine
from .provider import load_provider_client
from .report import ReportGenerator
from .scheduler import SweepScheduler

logger = logging.getLogger(__name__)


def build_settings(
    days: Optional[int] = None,
    limit: Optional[int] = None,
    no_logging: bool = False,
) -> ReconciliationSettings:
    """Build run settings from the environment with CLI overrides applied."""
    settings = ReconciliationSettings.from_env()
    overrides = {}
    if days is not None:
        overrides["lookback_days"] = days
    if limit is not None:
        overrides["max_orders"] = limit
    if no_logging:
        overrides["logging_enabled"] = False
    if not overrides:
        return settings
    return ReconciliationSettings(**{**settings.model_dump(), **overrides})


def resolve_interval(interval: Optional[int] = None) -> int:
    """Seconds between scheduled sweeps, at least one."""
    if interval is None:
        return get_schedule_interval()
    return max(1, interval)


def render_summary(summary, output_format: str = "json") -> str:
    """Render a sweep summary in the requested format.

    Args:
        summary: SweepSummary to render.
        output_format: 'json', 'text' or 'csv'.

    Returns:
        Formatted report string.
    """
    generator = ReportGenerator(summary)

    if output_format == "json":
        return generator.to_json(include_details=True)
    elif output_format == "text":
        return generator.to_summary_text()
    elif output_format == "csv":
        return generator.to_csv()
    else:
        raise ValueError(f"Unsupported report format: {output_format}")


async def run_sweep_async(
    settings: ReconciliationSettings,
    output_file: Optional[str] = None,
    output_format: str = "json",
    database_url: Optional[str] = None,
) -> int:
    """Run a sweep asynchronously.

    Returns:
        Exit code (0 when the sweep ran, 2 when it was aborted).
    """
    db_manager = DatabaseManager(database_url)
    await db_manager.initialize()

    try:
        engine = ReconciliationEngine(
            db_manager.session_factory,
            provider_client=load_provider_client(),
        )
        summary = await engine.run_sweep(settings)

        output = render_summary(summary, output_format)
        if output_file:
            with open(output_file, 'w') as f:
                f.write(output)
            logger.info(f"Report written to {output_file}")
        else:
            print(output)

        if summary.aborted:
            logger.error(f"Reconciliation aborted: {summary.error_message}")
            return 2
        return 0

    finally:
        await db_manager.shutdown()


async def reconcile_order_async(
    order_id: str,
    database_url: Optional[str] = None,
) -> int:
    """Reconcile a single order asynchronously.

    Returns:
        Exit code (0 on success, 1 on failure).
    """
    db_manager = DatabaseManager(database_url)
    await db_manager.initialize()

    try:
        engine = ReconciliationEngine(
            db_manager.session_factory,
            provider_client=load_provider_client(),
        )
        # Operators at the command line are trusted to manage orders
        result = await engine.reconcile_one(
            order_id,
            authorized=True,
            settings=ReconciliationSettings.from_env(),
        )
        if result.success:
            print(result.message)
            return 0
        logger.error(f"Order {order_id}: {result.message} ({result.failure_kind.value})")
        return 1

    finally:
        await db_manager.shutdown()


async def run_scheduler_async(
    interval_seconds: int,
    run_on_start: bool = False,
    database_url: Optional[str] = None,
) -> int:
    """Run the periodic scheduler until interrupted."""
    db_manager = DatabaseManager(database_url)
    await db_manager.initialize()

    scheduler: Optional[SweepScheduler] = None
    try:
        engine = ReconciliationEngine(
            db_manager.session_factory,
            provider_client=load_provider_client(),
        )
        scheduler = SweepScheduler(
            engine=engine,
            interval_seconds=interval_seconds,
            run_on_start=run_on_start,
        )
        task = await scheduler.start()
        if task is not None:
            await task
        return 0

    finally:
        if scheduler is not None:
            await scheduler.stop()
        await db_manager.shutdown()


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI.

    Returns:
        Configured ArgumentParser.
    """
    parser = argparse.ArgumentParser(
        prog="order-reconciler",
        description="Reconcile unpaid orders against the payment provider.",
    )
    parser.add_argument(
        "--database-url",
        help="Database URL (default: DATABASE_URL environment variable)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Sweep command
    sweep_parser = subparsers.add_parser(
        "sweep",
        help="Run a reconciliation sweep now",
    )
    sweep_parser.add_argument(
        "--days", "-d",
        type=int,
        help="Days of past orders to check (1-30, default: RECONCILIATION_DAYS or 2)",
    )
    sweep_parser.add_argument(
        "--limit", "-l",
        type=int,
        help="Maximum orders to check (5-100, default: RECONCILIATION_LIMIT or 25)",
    )
    sweep_parser.add_argument(
        "--no-logging",
        action="store_true",
        help="Disable the activity log for this run",
    )
    sweep_parser.add_argument(
        "--output", "-o",
        help="Output file path (default: stdout)",
    )
    sweep_parser.add_argument(
        "--format", "-f",
        choices=["json", "text", "csv"],
        default="json",
        help="Output format (default: json)",
    )

    # Reconcile-order command
    order_parser = subparsers.add_parser(
        "reconcile-order",
        help="Reconcile a single order",
    )
    order_parser.add_argument("order_id", help="ID of the order to reconcile")

    # Schedule command
    schedule_parser = subparsers.add_parser(
        "schedule",
        help="Run sweeps periodically until interrupted",
    )
    schedule_parser.add_argument(
        "--interval", "-i",
        type=int,
        help="Seconds between sweeps (default: RECONCILIATION_INTERVAL_SECONDS or 3600)",
    )
    schedule_parser.add_argument(
        "--run-on-start",
        action="store_true",
        help="Run a sweep immediately instead of waiting one interval",
    )

    return parser


def main(args: Optional[list] = None) -> int:
    """Main entry point for the CLI.

    Args:
        args: Optional list of command-line arguments (for testing).

    Returns:
        Exit code.
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if not parsed_args.command:
        parser.print_help()
        return 1

    if parsed_args.command == "sweep":
        settings = build_settings(
            days=parsed_args.days,
            limit=parsed_args.limit,
            no_logging=parsed_args.no_logging,
        )
        return asyncio.run(run_sweep_async(
            settings=settings,
            output_file=parsed_args.output,
            output_format=parsed_args.format,
            database_url=parsed_args.database_url,
        ))

    if parsed_args.command == "reconcile-order":
        return asyncio.run(reconcile_order_async(
            parsed_args.order_id,
            database_url=parsed_args.database_url,
        ))

    if parsed_args.command == "schedule":
        interval = resolve_interval(parsed_args.interval)
        try:
            return asyncio.run(run_scheduler_async(
                interval_seconds=interval,
                run_on_start=parsed_args.run_on_start,
                database_url=parsed_args.database_url,
            ))
        except KeyboardInterrupt:
            logger.info("Scheduler interrupted")
            return 0

    return 0


if __name__ == "__main__":
    sys.exit(main())
