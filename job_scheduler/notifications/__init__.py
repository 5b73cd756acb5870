from job_scheduler.notifications.base import JobPhase, Notifier
from job_scheduler.notifications.discord import DiscordNotifier
from job_scheduler.notifications.dispatcher import NotificationDispatcher, build_notifier
from job_scheduler.notifications.telegram import TelegramNotifier

__all__ = [
    "DiscordNotifier",
    "JobPhase",
    "NotificationDispatcher",
    "Notifier",
    "TelegramNotifier",
    "build_notifier",
]
