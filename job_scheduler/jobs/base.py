from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional


class Job(ABC):
    """A recurring unit of work driven by the scheduler.

    The scheduler treats ``run`` as a single opaque attempt: returning means
    success, raising means failure. Retrying is up to the job.
    """

    name: str

    @property
    @abstractmethod
    def cron_expr(self) -> str:
        """Six-field cron expression, fixed once the job is registered."""
        ...

    @abstractmethod
    async def run(self) -> Optional[str]:
        """執行任務，成功時可回傳摘要文字"""
        ...

    @classmethod
    def from_env(cls) -> Optional["Job"]:
        """從設定建立任務，設定不完整時回傳 None"""
        return None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name} cron={self.cron_expr!r}>"
