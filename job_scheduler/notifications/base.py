from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from loguru import logger

from job_scheduler.notifications.formatter import format_job_event


class JobPhase(enum.Enum):
    start = "start"
    success = "success"
    failure = "failure"


class Notifier(ABC):
    """Sink for job lifecycle events.

    ``notify_*`` never raise: a delivery failure is logged and the caller
    carries on as if the message had been sent.
    """

    channel: str = ""

    @abstractmethod
    async def deliver(self, message: Dict[str, Any]) -> bool:
        """Send a formatted message. Returns True if it was delivered."""
        ...

    async def notify(
        self, job_name: str, phase: JobPhase, detail: Optional[str] = None
    ) -> bool:
        message = format_job_event(job_name, phase.value, detail)
        try:
            delivered = await self.deliver(message)
        except Exception as e:
            logger.error(
                f"{self.channel or type(self).__name__}: error sending "
                f"{phase.value} notification for {job_name}: {e}"
            )
            return False

        if not delivered:
            logger.error(
                f"{self.channel or type(self).__name__}: failed to send "
                f"{phase.value} notification for {job_name}"
            )
        return delivered

    async def notify_start(self, job_name: str) -> bool:
        return await self.notify(job_name, JobPhase.start)

    async def notify_success(self, job_name: str, detail: Optional[str] = None) -> bool:
        return await self.notify(job_name, JobPhase.success, detail)

    async def notify_failure(self, job_name: str, error: str) -> bool:
        return await self.notify(job_name, JobPhase.failure, error)
