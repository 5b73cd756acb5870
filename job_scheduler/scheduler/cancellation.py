from __future__ import annotations

import asyncio
import threading
from typing import Optional

from loguru import logger


class CancellationToken:
    """One-way shutdown signal shared by the timer loop and its waiters.

    The token moves from active to cancelled exactly once. Only the first
    ``cancel`` call is logged as the shutdown transition; later calls are
    ignored.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._event = asyncio.Event()
        self._reason: Optional[str] = None

    @property
    def is_cancelled(self) -> bool:
        return self._reason is not None

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: str = "requested") -> bool:
        """Cancel the token. Returns True only for the call that cancelled it."""
        with self._lock:
            if self._reason is not None:
                logger.debug(f"Shutdown already in progress, ignoring {reason}")
                return False
            self._reason = reason

        logger.warning(f"Shutdown requested ({reason})")
        self._event.set()
        return True

    async def wait(self) -> None:
        await self._event.wait()

    async def wait_for(self, timeout: float) -> bool:
        """Wait up to ``timeout`` seconds. Returns True if cancelled."""
        if self.is_cancelled:
            return True
        try:
            await asyncio.wait_for(self._event.wait(), timeout=max(timeout, 0))
        except asyncio.TimeoutError:
            return False
        return True
