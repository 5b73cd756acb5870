from __future__ import annotations

import asyncio
import enum
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Set, Union
from zoneinfo import ZoneInfo

from loguru import logger

from job_scheduler.config import get_settings
from job_scheduler.errors import (
    DuplicateJobError,
    RegistrationClosedError,
    SchedulerAlreadyRunningError,
    UnknownJobError,
)
from job_scheduler.jobs.base import Job
from job_scheduler.notifications.base import Notifier
from job_scheduler.notifications.dispatcher import build_notifier
from job_scheduler.scheduler.cancellation import CancellationToken
from job_scheduler.scheduler.signals import SignalBridge
from job_scheduler.scheduler.trigger import (
    CronSchedule,
    parse_cron,
    timezone_or_default,
)


class SchedulerState(enum.Enum):
    constructed = "constructed"
    accepting = "accepting"
    running = "running"
    shutting_down = "shutting_down"
    stopped = "stopped"


@dataclass
class Registration:
    job: Job
    schedule: CronSchedule
    timezone: ZoneInfo
    next_fire: datetime

    @property
    def name(self) -> str:
        return self.job.name

    def advance(self, now: datetime) -> datetime:
        self.next_fire = self.schedule.next_after(self.timezone, now)
        return self.next_fire


class Scheduler:
    """Runs registered jobs on their cron schedules until cancelled.

    Jobs are registered before ``start``. The timer loop fires each due job
    as its own asyncio task, wrapped with start / success / failure
    notifications, and never waits for a job to finish. Cancelling the token
    stops new dispatches; jobs already running are left to complete.
    """

    def __init__(
        self,
        timezone: Union[ZoneInfo, str, None] = None,
        notifier: Optional[Notifier] = None,
        tick_interval: Optional[float] = None,
        token: Optional[CancellationToken] = None,
    ):
        settings = get_settings()
        if timezone is None:
            timezone = settings.tz
        if isinstance(timezone, str):
            timezone = timezone_or_default(timezone)

        self.timezone: ZoneInfo = timezone
        self.notifier = notifier
        self.tick_interval = (
            settings.tick_interval if tick_interval is None else tick_interval
        )
        self.token = token or CancellationToken()

        self._lock = threading.Lock()
        self._registrations: Dict[str, Registration] = {}
        self._in_flight: Set[asyncio.Task] = set()
        self._loop_task: Optional[asyncio.Task] = None

        logger.info(f"Scheduler timezone: {self.timezone}")

    @classmethod
    def from_settings(cls) -> "Scheduler":
        """排程器：時區與通知設定皆從環境變數讀取"""
        return cls(notifier=build_notifier())

    @property
    def state(self) -> SchedulerState:
        if self._loop_task is None:
            if self.token.is_cancelled:
                return SchedulerState.stopped
            if self._registrations:
                return SchedulerState.accepting
            return SchedulerState.constructed
        if not self._loop_task.done():
            if self.token.is_cancelled:
                return SchedulerState.shutting_down
            return SchedulerState.running
        if self._in_flight:
            return SchedulerState.shutting_down
        return SchedulerState.stopped

    @property
    def registrations(self) -> List[Registration]:
        with self._lock:
            return list(self._registrations.values())

    def get_registration(self, name: str) -> Optional[Registration]:
        with self._lock:
            return self._registrations.get(name)

    def next_fire_times(self) -> Dict[str, datetime]:
        with self._lock:
            return {name: reg.next_fire for name, reg in self._registrations.items()}

    @property
    def running_jobs(self) -> int:
        return len(self._in_flight)

    def _now(self) -> datetime:
        return datetime.now(self.timezone)

    def register(self, job: Job) -> Registration:
        """Register ``job`` and compute its first fire time.

        Raises:
            InvalidScheduleError: if the job's cron expression is invalid.
            DuplicateJobError: if a job with the same name is registered.
            RegistrationClosedError: if the scheduler has already started.
        """
        schedule = parse_cron(job.cron_expr)

        with self._lock:
            if self._loop_task is not None:
                raise RegistrationClosedError(job.name)
            if job.name in self._registrations:
                raise DuplicateJobError(job.name)

            registration = Registration(
                job=job,
                schedule=schedule,
                timezone=self.timezone,
                next_fire=schedule.next_after(self.timezone, self._now()),
            )
            self._registrations[job.name] = registration

        logger.info(
            f"Registered job {job.name} (cron: {schedule.expression}, "
            f"tz: {self.timezone}), next run at {registration.next_fire.isoformat()}"
        )
        return registration

    def start(self) -> asyncio.Task:
        """Start the timer loop on the running event loop.

        Raises:
            SchedulerAlreadyRunningError: if called more than once.
        """
        with self._lock:
            if self._loop_task is not None:
                raise SchedulerAlreadyRunningError()
            self._loop_task = asyncio.get_running_loop().create_task(
                self._timer_loop(), name="scheduler-timer"
            )

        logger.info(f"Scheduler started with {len(self._registrations)} job(s)")
        return self._loop_task

    async def run(self) -> None:
        """Run the timer loop until the token is cancelled."""
        if self._loop_task is None:
            self.start()
        await self._loop_task

    async def trigger(self, name: str) -> bool:
        """Run a registered job right away, outside its schedule.

        Goes through the same notification wrapper as scheduled runs and
        leaves the next fire time untouched. Returns True on success.

        Raises:
            UnknownJobError: if no job with that name is registered.
        """
        registration = self.get_registration(name)
        if registration is None:
            raise UnknownJobError(name)
        return await self._execute(registration.job, self._now())

    def request_shutdown(self, reason: str = "scheduler shutdown") -> bool:
        return self.token.cancel(reason)

    async def wait_for_jobs(self) -> None:
        """Wait for every job execution that is still running."""
        while self._in_flight:
            pending = list(self._in_flight)
            logger.info(f"Waiting for {len(pending)} running job(s) to finish")
            await asyncio.gather(*pending, return_exceptions=True)

    async def start_and_wait(self) -> None:
        """Run until SIGINT / SIGTERM, then let running jobs finish.

        Raises:
            SignalSetupError: if the signal handlers cannot be installed.
        """
        bridge = SignalBridge(self.token)
        bridge.install()
        try:
            self.start()
            logger.info("Scheduler running, press Ctrl+C or send SIGTERM to exit")
            try:
                await self.run()
            finally:
                await self.wait_for_jobs()
        finally:
            bridge.remove()

        logger.info("Scheduler stopped")

    async def _timer_loop(self) -> None:
        try:
            while not self.token.is_cancelled:
                self._dispatch_due(self._now())
                if await self.token.wait_for(self._time_to_next_tick()):
                    break
        except Exception:
            logger.exception("Timer loop failed")
            self.token.cancel("timer loop failed")
            raise

        logger.info(f"Timer loop stopped ({self.token.reason})")

    def _time_to_next_tick(self) -> float:
        delay = self.tick_interval
        with self._lock:
            if self._registrations:
                # 以絕對時間比較，同時區的 datetime 相減只看牆上時間
                earliest = min(
                    reg.next_fire.timestamp() for reg in self._registrations.values()
                )
                delay = min(delay, earliest - self._now().timestamp())
        return max(delay, 0.0)

    def _dispatch_due(self, now: datetime) -> None:
        due = []
        with self._lock:
            if self.token.is_cancelled:
                return
            for registration in self._registrations.values():
                if registration.next_fire.timestamp() <= now.timestamp():
                    fire_time = registration.next_fire
                    # 先更新下次觸發時間，執行中的任務不會阻擋排程
                    registration.advance(now)
                    due.append((registration.job, fire_time))

        for job, fire_time in due:
            self._spawn(job, fire_time)

    def _spawn(self, job: Job, fire_time: datetime) -> None:
        task = asyncio.get_running_loop().create_task(
            self._execute(job, fire_time), name=f"job:{job.name}"
        )
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)

    async def _execute(self, job: Job, fire_time: datetime) -> bool:
        local_fire_time = fire_time.astimezone(self.timezone).isoformat()
        logger.info(f"[{job.name}] Triggered (scheduled for {local_fire_time})")
        await self._notify("notify_start", job.name)

        try:
            detail = await job.run()
        except Exception as e:
            error = str(e) or type(e).__name__
            logger.opt(exception=e).error(f"[{job.name}] Job failed: {error}")
            await self._notify("notify_failure", job.name, error)
            return False

        logger.info(f"[{job.name}] Job completed")
        await self._notify("notify_success", job.name, detail)
        return True

    async def _notify(self, method: str, *args) -> None:
        if self.notifier is None:
            return
        try:
            await getattr(self.notifier, method)(*args)
        except Exception as e:
            logger.error(f"Notifier {method} failed for {args[0]}: {e}")
