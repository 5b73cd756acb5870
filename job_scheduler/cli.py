import argparse
import asyncio
import sys
from datetime import datetime
from itertools import islice
from typing import Iterable, List, Optional

from loguru import logger

from job_scheduler.config import get_settings
from job_scheduler.errors import SchedulerError, SignalSetupError
from job_scheduler.jobs import JOB_CLASSES, Job, load_jobs
from job_scheduler.scheduler import (
    Scheduler,
    parse_cron,
    resolve_timezone,
    timezone_or_default,
)


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


def register_jobs(scheduler: Scheduler, jobs: Iterable[Job]) -> int:
    """註冊任務，單一任務設定錯誤不影響其他任務"""
    registered = 0
    for job in jobs:
        try:
            scheduler.register(job)
        except SchedulerError as e:
            logger.error(f"Skipping {job.name}: {e}")
            continue
        registered += 1
    return registered


def run_scheduler() -> int:
    """啟動排程器直到收到 SIGINT / SIGTERM"""
    logger.info("Starting job scheduler")
    scheduler = Scheduler.from_settings()
    if register_jobs(scheduler, load_jobs()) == 0:
        logger.warning("No jobs registered, the scheduler will idle until stopped")

    try:
        asyncio.run(scheduler.start_and_wait())
    except SignalSetupError as e:
        logger.error(f"Cannot install shutdown handlers: {e}")
        return 1
    except SchedulerError as e:
        logger.error(f"Scheduler failed: {e}")
        return 1
    return 0


def list_jobs(count: int) -> int:
    """列出已設定的任務與接下來的觸發時間"""
    tz = timezone_or_default(get_settings().tz)
    jobs = load_jobs()
    if not jobs:
        print("No jobs configured.")
        return 0

    now = datetime.now(tz)
    for job in jobs:
        print(f"{job.name}  (cron: {job.cron_expr}, tz: {tz})")
        try:
            schedule = parse_cron(job.cron_expr)
        except SchedulerError as e:
            print(f"  invalid schedule: {e}")
            continue
        for fire_time in islice(schedule.iter_fire_times(tz, now), count):
            print(f"  {fire_time.isoformat()}")
    return 0


def preview_schedule(
    expression: str, tz_name: Optional[str], count: int, after: Optional[str]
) -> int:
    try:
        schedule = parse_cron(expression)
        tz = resolve_timezone(tz_name or get_settings().tz)
    except SchedulerError as e:
        logger.error(str(e))
        return 1

    if after:
        try:
            start = datetime.fromisoformat(after)
        except ValueError:
            logger.error(f"Invalid --after value: {after}")
            return 1
    else:
        start = datetime.now(tz)

    for fire_time in islice(schedule.iter_fire_times(tz, start), count):
        print(fire_time.isoformat())
    return 0


def run_once(name: str) -> int:
    """立即執行單一任務（含通知）"""
    if name not in JOB_CLASSES:
        logger.error(f"Unknown job: {name}. Available: {list(JOB_CLASSES.keys())}")
        return 1

    job = JOB_CLASSES[name].from_env()
    if job is None:
        logger.error(f"Missing configuration for {name}")
        return 1

    scheduler = Scheduler.from_settings()
    try:
        scheduler.register(job)
    except SchedulerError as e:
        logger.error(f"Cannot run {name}: {e}")
        return 1

    succeeded = asyncio.run(scheduler.trigger(name))
    return 0 if succeeded else 1


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Cron job scheduler")
    parser.add_argument("--log-level", help="Override LOG_LEVEL (e.g. DEBUG)")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # run command
    subparsers.add_parser("run", help="Run the scheduler until SIGINT/SIGTERM")

    # jobs command
    jobs_parser = subparsers.add_parser("jobs", help="List configured jobs")
    jobs_parser.add_argument(
        "--count", "-n", type=int, default=3, help="Fire times to show per job"
    )

    # next command
    next_parser = subparsers.add_parser("next", help="Preview a cron expression")
    next_parser.add_argument("expression", help='Six-field cron, e.g. "0 0 8 * * *"')
    next_parser.add_argument("--tz", help="IANA timezone (default: TZ setting)")
    next_parser.add_argument("--count", "-n", type=int, default=5)
    next_parser.add_argument("--after", help="ISO 8601 reference instant")

    # once command
    once_parser = subparsers.add_parser("once", help="Run one job immediately")
    once_parser.add_argument("name", help="Job name (e.g. bugutv_checkin)")

    args = parser.parse_args(argv)
    configure_logging(args.log_level or get_settings().log_level)

    if args.command == "run":
        return run_scheduler()
    elif args.command == "jobs":
        return list_jobs(args.count)
    elif args.command == "next":
        return preview_schedule(args.expression, args.tz, args.count, args.after)
    elif args.command == "once":
        return run_once(args.name)
    else:
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())
