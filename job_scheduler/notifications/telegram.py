from __future__ import annotations

from typing import Any, Dict

import httpx
from loguru import logger

from job_scheduler.config import get_settings
from job_scheduler.notifications.base import Notifier

TELEGRAM_API_BASE = "https://api.telegram.org"
SEND_MESSAGE_TIMEOUT = 10  # seconds


class TelegramNotifier(Notifier):
    """Send messages via Telegram Bot API."""

    channel = "telegram"

    def __init__(self):
        settings = get_settings()
        self.bot_token = settings.telegram_bot_token
        self.chat_id = settings.telegram_chat_id

    @classmethod
    def is_configured(cls) -> bool:
        """Check if Telegram credentials are set."""
        settings = get_settings()
        return bool(settings.telegram_bot_token and settings.telegram_chat_id)

    async def deliver(self, message: Dict[str, Any]) -> bool:
        return await self.send(message["telegram"])

    async def send(self, text: str) -> bool:
        """Send a message to the configured Telegram chat.

        Args:
            text: Message text in HTML format.

        Returns:
            True if sent successfully, False otherwise.
        """
        url = f"{TELEGRAM_API_BASE}/bot{self.bot_token}/sendMessage"
        payload = {
            "chat_id": self.chat_id,
            "text": text,
            "parse_mode": "HTML",
        }

        try:
            async with httpx.AsyncClient(timeout=SEND_MESSAGE_TIMEOUT) as client:
                response = await client.post(url, json=payload)
                response.raise_for_status()

            logger.debug(f"Telegram message sent to chat {self.chat_id}")
            return True
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Telegram API error: {e.response.status_code} - {e.response.text}"
            )
            return False
        except httpx.RequestError as e:
            logger.error(f"Telegram request failed: {e}")
            return False
