# src/ratesync/adapters/telegram/jobs.py
"""
Telegram Jobs - Automation Trigger and Notices

This module holds the scheduled callbacks registered on the bot's job queue:
- automation_job: polls the sync scheduler (the external clock of the relay)
- startup_notification: tells the admin chat the relay is up

The relay itself is synchronous, so each pass runs in a worker thread to keep
the bot responsive while sources and the transport are contacted.

Files that USE this module:
- ratesync.app (registers the jobs)

Files that this module USES:
- ratesync.application.runtime (RelayRuntime from bot_data)
- ratesync.adapters.formatting.formatter (format_report, format_status)
- ratesync.config (admin chat id)
"""
from __future__ import annotations

import asyncio
import logging

from telegram.error import RetryAfter, TelegramError, TimedOut
from telegram.ext import ContextTypes

from ratesync.adapters.formatting.formatter import format_report, format_status
from ratesync.application.runtime import RelayRuntime
from ratesync.config import settings

logger = logging.getLogger(__name__)

# Re-entrancy protection: a slow pass must not overlap the next poll
_automation_lock = asyncio.Lock()


async def _notify_admin(context: ContextTypes.DEFAULT_TYPE, text: str) -> None:
    """Send ``text`` to ADMIN_CHAT_ID, if configured. Never raises."""
    if not settings.admin_chat_id:
        return
    try:
        await context.bot.send_message(chat_id=settings.admin_chat_id, text=text)
    except RetryAfter as e:
        logger.warning("Telegram rate limit (429): retry after %s seconds", e.retry_after)
        await asyncio.sleep(float(e.retry_after) + 1)
        try:
            await context.bot.send_message(chat_id=settings.admin_chat_id, text=text)
        except TelegramError as e2:
            logger.error("Admin notice failed after retry: %s", e2)
    except TimedOut:
        logger.warning("Admin notice timed out")
    except TelegramError as e:
        logger.error("Admin notice failed: %s", e)


async def automation_job(context: ContextTypes.DEFAULT_TYPE) -> None:
    """
    Poll the scheduler once; report failed feeds to the admin chat.

    Errors are logged and swallowed so the job queue keeps polling.
    """
    runtime: RelayRuntime = context.application.bot_data["runtime"]

    if _automation_lock.locked():
        logger.warning("automation_job: Skipping concurrent execution (previous pass still running)")
        return

    async with _automation_lock:
        try:
            report = await asyncio.to_thread(runtime.tick)
        except Exception as e:
            logger.exception("Automation pass failed: %s", e)
            await _notify_admin(context, f"⚠️ Automation pass failed: {type(e).__name__}: {e}")
            return

        if report is not None and report.failures:
            await _notify_admin(context, format_report(report))


async def startup_notification(context: ContextTypes.DEFAULT_TYPE) -> None:
    """Send the relay status to the admin chat once the bot is up."""
    runtime: RelayRuntime = context.application.bot_data["runtime"]
    status = format_status(
        feeds=len(runtime.registry),
        fee_balance=runtime.sender.fee_balance,
        last_run_at=runtime.scheduler.last_run_at,
        next_due_at=runtime.scheduler.next_due_at(),
        today=runtime.stats.get_today_summary(),
    )
    await _notify_admin(context, "🟢 Relay started\n\n" + status)
