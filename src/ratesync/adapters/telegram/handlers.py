# src/ratesync/adapters/telegram/handlers.py
"""
Telegram Handlers - Operator Commands

Admin-only commands for watching and nudging the relay:
- /status: fee balance, last/next sync, today's counters
- /feeds: registered feeds
- /rate <feed>: value held by a locally hosted provider
- /sync: run sync_all now, bypassing the scheduler window
- /balance: current fee balance

Files that USE this module:
- ratesync.app (build_handlers function creates handler instances)

Files that this module USES:
- ratesync.application.runtime (RelayRuntime from bot_data)
- ratesync.adapters.formatting.formatter (all replies)
- ratesync.config (admin username)
"""
from __future__ import annotations

import asyncio
import logging

from telegram import Update
from telegram.ext import CommandHandler, ContextTypes

from ratesync.adapters.formatting.formatter import (
    format_feeds,
    format_rate,
    format_report,
    format_status,
)
from ratesync.application.runtime import RelayRuntime
from ratesync.config import settings

logger = logging.getLogger(__name__)

NOT_ADMIN = "⚠️ This command is only available to the admin."


def _is_admin(update: Update) -> bool:
    """
    Check if the user sending the update is an admin.

    Returns:
        True if username matches ADMIN_USERNAME, False otherwise (also when unset)
    """
    admin = (settings.admin_username or "").lstrip("@").lower()
    if not admin:
        return False
    user = update.effective_user
    uname = (user.username or "").lstrip("@") if user else ""
    return uname.lower() == admin


def _runtime(context: ContextTypes.DEFAULT_TYPE) -> RelayRuntime:
    return context.application.bot_data["runtime"]


async def status_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /status - relay status summary (admin only)."""
    if not _is_admin(update):
        await update.message.reply_text(NOT_ADMIN)
        return

    runtime = _runtime(context)
    await update.message.reply_text(format_status(
        feeds=len(runtime.registry),
        fee_balance=runtime.sender.fee_balance,
        last_run_at=runtime.scheduler.last_run_at,
        next_due_at=runtime.scheduler.next_due_at(),
        today=runtime.stats.get_today_summary(),
    ))


async def feeds_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /feeds - list registered feeds (admin only)."""
    if not _is_admin(update):
        await update.message.reply_text(NOT_ADMIN)
        return

    registry = _runtime(context).registry
    entries = [registry.lookup(name) for name in registry.list()]
    await update.message.reply_text(format_feeds(entries))


async def rate_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /rate <feed> - show a locally hosted provider's value (admin only)."""
    if not _is_admin(update):
        await update.message.reply_text(NOT_ADMIN)
        return

    runtime = _runtime(context)
    if not context.args:
        await update.message.reply_text("Usage: /rate <feed>")
        return

    name = context.args[0]
    destination = runtime.destinations.get(name)
    if destination is None:
        await update.message.reply_text(f"No local provider for feed {name}.")
        return
    await update.message.reply_text(format_rate(name, destination.provider.record()))


async def sync_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """
    Handle /sync - relay every feed now (admin only).

    Bypasses the scheduler's window; the next scheduled pass is unaffected.
    """
    if not _is_admin(update):
        await update.message.reply_text(NOT_ADMIN)
        return

    runtime = _runtime(context)
    logger.info("Manual sync requested by @%s", update.effective_user.username)
    try:
        report = await asyncio.to_thread(runtime.sync_now)
    except Exception as e:
        logger.exception("Manual sync failed")
        await update.message.reply_text(f"Sync failed: {e}")
        return
    await update.message.reply_text(format_report(report))


async def balance_cmd(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /balance - current fee balance (admin only)."""
    if not _is_admin(update):
        await update.message.reply_text(NOT_ADMIN)
        return
    await update.message.reply_text(f"Fee balance: {_runtime(context).sender.fee_balance}")


def build_handlers():
    """
    Build and return list of Telegram bot handlers.

    Returns:
        List of handler instances for registration with bot
    """
    return [
        CommandHandler("status", status_cmd),
        CommandHandler("feeds", feeds_cmd),
        CommandHandler("rate", rate_cmd),
        CommandHandler("sync", sync_cmd),
        CommandHandler("balance", balance_cmd),
    ]
