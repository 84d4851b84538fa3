#!/usr/bin/env python
"""
Operator CLI for the enrollq job queue.

Usage:
    enrollq worker
    enrollq enqueue <type> [--payload JSON] [--priority N] [--delay SECONDS]
    enrollq stats
    enrollq purge
    enrollq schedule-recurring
    enrollq init-db

Examples:
    # Run the processor without the HTTP service
    enrollq worker

    # Promote the waitlist of one class right away
    enrollq enqueue process_waitlist --payload '{"class_id": "..."}' --priority 2

    # Seed the next cleanup/stats/reminder runs (e.g. from hourly cron)
    enrollq schedule-recurring
"""

import argparse
import asyncio
import json
import signal
import sys
from datetime import datetime, timedelta, timezone

import structlog

from enrollq.config import get_settings
from enrollq.core.database import apply_schema, create_pool
from enrollq.core.errors import PersistenceError, RegistryValidationError
from enrollq.jobs.types import JobType

# Configure logging for CLI
structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(colors=True),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.PrintLoggerFactory(),
)

logger = structlog.get_logger(__name__)


async def _open_pool():
    pool = await create_pool(get_settings())
    if pool is None:
        logger.error("Database unavailable", hint="check DATABASE_URL")
    return pool


async def cmd_worker(args: argparse.Namespace) -> int:
    """Run the job processor until SIGINT/SIGTERM."""
    import enrollq.jobs.handlers  # noqa: F401
    from enrollq.core.sentry import init_sentry
    from enrollq.jobs.processor import JobProcessor

    settings = get_settings()
    init_sentry(settings)

    pool = await _open_pool()
    if pool is None:
        return 1

    try:
        processor = JobProcessor(pool, settings=settings)
    except RegistryValidationError as e:
        logger.error("Handler registry invalid", error=str(e))
        await pool.close()
        return 1

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    await processor.start()
    await stop_event.wait()
    await processor.stop()
    await pool.close()
    return 0


async def cmd_enqueue(args: argparse.Namespace) -> int:
    """Enqueue a single job."""
    from enrollq.repositories.jobs import JobRepository

    try:
        job_type = JobType(args.type)
    except ValueError:
        logger.error("Unknown job type", type=args.type, valid=[t.value for t in JobType])
        return 1

    try:
        payload = json.loads(args.payload)
    except json.JSONDecodeError as e:
        logger.error("Invalid payload JSON", error=str(e))
        return 1
    if not isinstance(payload, dict):
        logger.error("Payload must be a JSON object")
        return 1

    scheduled_at = None
    if args.delay:
        scheduled_at = datetime.now(timezone.utc) + timedelta(seconds=args.delay)

    pool = await _open_pool()
    if pool is None:
        return 1

    try:
        job_id = await JobRepository(pool).enqueue(
            job_type,
            payload,
            priority=args.priority,
            scheduled_at=scheduled_at,
            max_attempts=args.max_attempts or get_settings().job_default_max_attempts,
        )
    except PersistenceError as e:
        logger.error("Enqueue failed", error=str(e))
        return 1
    finally:
        await pool.close()

    print(job_id)
    return 0


async def cmd_stats(args: argparse.Namespace) -> int:
    """Print per-status queue counts."""
    from enrollq.repositories.jobs import JobRepository

    pool = await _open_pool()
    if pool is None:
        return 1
    try:
        stats = await JobRepository(pool).queue_stats()
    except PersistenceError as e:
        logger.error("Stats query failed", error=str(e))
        return 1
    finally:
        await pool.close()

    print("\n" + "=" * 60)
    print("JOB QUEUE")
    print("=" * 60)
    print(f"{'Status':<12} {'Count':>8}  {'Oldest':<20} {'Newest':<20}")
    print("-" * 60)
    for row in stats:
        oldest = row["oldest_job"].strftime("%Y-%m-%d %H:%M:%S") if row["oldest_job"] else "-"
        newest = row["newest_job"].strftime("%Y-%m-%d %H:%M:%S") if row["newest_job"] else "-"
        print(f"{row['status']:<12} {row['count']:>8}  {oldest:<20} {newest:<20}")
    print("=" * 60)
    return 0


async def cmd_purge(args: argparse.Namespace) -> int:
    """Delete completed/failed jobs past retention."""
    from enrollq.repositories.jobs import JobRepository

    settings = get_settings()
    pool = await _open_pool()
    if pool is None:
        return 1
    try:
        deleted = await JobRepository(pool).purge_old(
            completed_days=args.completed_days or settings.job_retention_completed_days,
            failed_days=args.failed_days or settings.job_retention_failed_days,
        )
    except PersistenceError as e:
        logger.error("Purge failed", error=str(e))
        return 1
    finally:
        await pool.close()

    print(f"Deleted {deleted} jobs")
    return 0


async def cmd_schedule_recurring(args: argparse.Namespace) -> int:
    """Seed the next occurrence of each recurring job."""
    from enrollq.jobs.recurring import schedule_recurring_jobs
    from enrollq.repositories.jobs import JobRepository

    pool = await _open_pool()
    if pool is None:
        return 1
    try:
        scheduled = await schedule_recurring_jobs(JobRepository(pool))
    except PersistenceError as e:
        logger.error("Scheduling failed", error=str(e))
        return 1
    finally:
        await pool.close()

    for job_type, job_id in scheduled.items():
        print(f"{job_type:<28} {job_id or 'already pending'}")
    return 0


async def cmd_init_db(args: argparse.Namespace) -> int:
    """Create tables and indexes."""
    pool = await _open_pool()
    if pool is None:
        return 1
    try:
        await apply_schema(pool)
    finally:
        await pool.close()
    return 0


COMMANDS = {
    "worker": cmd_worker,
    "enqueue": cmd_enqueue,
    "stats": cmd_stats,
    "purge": cmd_purge,
    "schedule-recurring": cmd_schedule_recurring,
    "init-db": cmd_init_db,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="enrollq",
        description="enrollq job queue CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("worker", help="Run the job processor")

    enqueue_parser = subparsers.add_parser("enqueue", help="Enqueue a job")
    enqueue_parser.add_argument(
        "type",
        help=f"Job type ({', '.join(t.value for t in JobType)})",
    )
    enqueue_parser.add_argument(
        "--payload",
        "-p",
        default="{}",
        help="Job payload as a JSON object",
    )
    enqueue_parser.add_argument(
        "--priority",
        type=int,
        default=0,
        help="Higher runs sooner (default: 0)",
    )
    enqueue_parser.add_argument(
        "--delay",
        type=int,
        default=0,
        help="Seconds before the job becomes due",
    )
    enqueue_parser.add_argument(
        "--max-attempts",
        type=int,
        help="Attempt budget (default: JOB_DEFAULT_MAX_ATTEMPTS)",
    )

    subparsers.add_parser("stats", help="Show queue counts by status")

    purge_parser = subparsers.add_parser("purge", help="Delete old finished jobs")
    purge_parser.add_argument("--completed-days", type=int, help="Retention for completed jobs")
    purge_parser.add_argument("--failed-days", type=int, help="Retention for failed jobs")

    subparsers.add_parser(
        "schedule-recurring", help="Seed cleanup/stats/reminder jobs"
    )
    subparsers.add_parser("init-db", help="Create database schema")

    return parser


def main():
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args()

    command = COMMANDS.get(args.command)
    if command is None:
        parser.print_help()
        sys.exit(1)

    sys.exit(asyncio.run(command(args)))


if __name__ == "__main__":
    main()
