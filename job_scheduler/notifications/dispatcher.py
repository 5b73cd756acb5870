from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

from loguru import logger

from job_scheduler.config import get_settings
from job_scheduler.notifications.base import Notifier
from job_scheduler.notifications.discord import DiscordNotifier
from job_scheduler.notifications.telegram import TelegramNotifier


class NotificationDispatcher(Notifier):
    """Dispatches each message to all configured channels concurrently."""

    channel = "dispatcher"

    def __init__(self, channels: List[Notifier]):
        self.channels = list(channels)

    async def _deliver_to(self, channel: Notifier, message: Dict[str, Any]) -> bool:
        try:
            delivered = await channel.deliver(message)
        except Exception as e:
            logger.error(f"{channel.channel}: error sending notification: {e}")
            return False
        if not delivered:
            logger.error(f"{channel.channel}: notification not delivered")
        return delivered

    async def deliver(self, message: Dict[str, Any]) -> bool:
        """Deliver to every channel. Returns True only if all of them succeeded."""
        if not self.channels:
            return True
        results = await asyncio.gather(
            *(self._deliver_to(channel, message) for channel in self.channels)
        )
        return all(results)


def build_notifier() -> Optional[Notifier]:
    """Build a notifier from settings, or None when notifications are off."""
    settings = get_settings()
    if not settings.notification_enabled:
        logger.info("Notifications are disabled")
        return None

    channels: List[Notifier] = []
    if TelegramNotifier.is_configured():
        channels.append(TelegramNotifier())
    if DiscordNotifier.is_configured():
        channels.append(DiscordNotifier())

    if not channels:
        logger.debug("No notification channel configured")
        return None

    logger.info(
        f"Notifications enabled: {', '.join(channel.channel for channel in channels)}"
    )
    if len(channels) == 1:
        return channels[0]
    return NotificationDispatcher(channels)
