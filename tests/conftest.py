import asyncio
from typing import Any, Dict, List, Optional

import pytest
from loguru import logger

from job_scheduler.jobs.base import Job
from job_scheduler.notifications.base import Notifier


class FakeJob(Job):
    """In-memory job that counts its runs."""

    def __init__(
        self,
        name: str = "fake_job",
        cron_expr: str = "* * * * * *",
        result: Optional[str] = None,
        error: Optional[Exception] = None,
        duration: float = 0.0,
    ):
        self.name = name
        self._cron_expr = cron_expr
        self.result = result
        self.error = error
        self.duration = duration
        self.calls = 0
        self.finished = 0

    @property
    def cron_expr(self) -> str:
        return self._cron_expr

    async def run(self) -> Optional[str]:
        self.calls += 1
        if self.duration:
            await asyncio.sleep(self.duration)
        self.finished += 1
        if self.error is not None:
            raise self.error
        return self.result


class RecordingNotifier(Notifier):
    channel = "recording"

    def __init__(self):
        self.events: List[tuple] = []

    async def deliver(self, message: Dict[str, Any]) -> bool:
        return True

    async def notify_start(self, job_name: str) -> bool:
        self.events.append(("start", job_name, None))
        return True

    async def notify_success(self, job_name: str, detail: Optional[str] = None) -> bool:
        self.events.append(("success", job_name, detail))
        return True

    async def notify_failure(self, job_name: str, error: str) -> bool:
        self.events.append(("failure", job_name, error))
        return True


async def wait_until(predicate, timeout: float = 3.0, interval: float = 0.01) -> bool:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        if predicate():
            return True
        await asyncio.sleep(interval)
    return predicate()


@pytest.fixture
def log_messages():
    """Collect loguru messages emitted during the test."""
    messages: List[str] = []
    handler_id = logger.add(lambda msg: messages.append(msg.record["message"]), level="DEBUG")
    yield messages
    logger.remove(handler_id)
