"""Cron job scheduler with lifecycle notifications."""

__version__ = "0.1.0"
