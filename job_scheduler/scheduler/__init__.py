"""Scheduling engine: cron evaluation, the timer loop and shutdown handling.

Typical startup::

    scheduler = Scheduler.from_settings()
    for job in load_jobs():
        scheduler.register(job)
    await scheduler.start_and_wait()
"""
from job_scheduler.scheduler.cancellation import CancellationToken
from job_scheduler.scheduler.runner import Registration, Scheduler, SchedulerState
from job_scheduler.scheduler.signals import SignalBridge
from job_scheduler.scheduler.trigger import (
    CronSchedule,
    next_fire_time,
    parse_cron,
    resolve_timezone,
    timezone_or_default,
)

__all__ = [
    "CancellationToken",
    "CronSchedule",
    "Registration",
    "Scheduler",
    "SchedulerState",
    "SignalBridge",
    "next_fire_time",
    "parse_cron",
    "resolve_timezone",
    "timezone_or_default",
]
