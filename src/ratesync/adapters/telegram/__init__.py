# src/ratesync/adapters/telegram/__init__.py
"""
Telegram Adapters - Operator Bot

This package contains the operator bot:
- Command handlers
- Scheduled jobs (automation trigger)
"""

from ratesync.adapters.telegram.handlers import build_handlers
from ratesync.adapters.telegram.jobs import automation_job, startup_notification

__all__ = [
    "build_handlers",
    "automation_job",
    "startup_notification",
]
