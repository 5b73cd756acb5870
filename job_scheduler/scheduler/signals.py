from __future__ import annotations

import asyncio
import signal
from typing import Iterable, List, Optional

from loguru import logger

from job_scheduler.errors import SignalSetupError
from job_scheduler.scheduler.cancellation import CancellationToken

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class SignalBridge:
    """Turn OS termination signals into a cancellation of ``token``."""

    def __init__(
        self,
        token: CancellationToken,
        signals: Iterable[signal.Signals] = SHUTDOWN_SIGNALS,
    ):
        self.token = token
        self.signals = tuple(signals)
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._installed: List[signal.Signals] = []

    def install(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """Register handlers on ``loop`` (the running loop by default).

        Raises:
            SignalSetupError: if a handler cannot be installed.
        """
        if loop is None:
            loop = asyncio.get_running_loop()
        self._loop = loop

        for sig in self.signals:
            try:
                loop.add_signal_handler(sig, self._on_signal, sig)
            except (NotImplementedError, RuntimeError, ValueError) as e:
                self.remove()
                raise SignalSetupError(
                    f"Cannot install handler for {sig.name}: {e}"
                ) from e
            self._installed.append(sig)

        names = ", ".join(sig.name for sig in self._installed)
        logger.debug(f"Listening for shutdown signals: {names}")

    def remove(self) -> None:
        if self._loop is None:
            return
        for sig in self._installed:
            self._loop.remove_signal_handler(sig)
        self._installed.clear()

    def _on_signal(self, sig: signal.Signals) -> None:
        logger.info(f"Received {sig.name}")
        self.token.cancel(sig.name)

    def __enter__(self) -> "SignalBridge":
        self.install()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.remove()
