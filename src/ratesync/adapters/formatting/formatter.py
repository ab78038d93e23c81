# src/ratesync/adapters/formatting/formatter.py
"""
Message Formatter - Plain-Text Relay Reports

This module renders relay state for operators: the feed list, a provider's
value and age, the outcome of a sync pass and the overall status. Output is
plain text so it reads the same in a terminal and in a Telegram chat.

Files that USE this module:
- ratesync.adapters.telegram.handlers (command replies)
- ratesync.adapters.telegram.jobs (failure notices)
- ratesync.app (single-pass mode output)
- tests.test_formatter (unit tests)

Files that this module USES:
- ratesync.domain.models (FeedEntry, RateRecord)
- ratesync.application.sender (SyncReport)
"""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Iterable, Optional

from ratesync.application.sender import SyncReport
from ratesync.domain.models import FeedEntry, RateRecord


def fmt_value(value: Optional[Decimal]) -> str:
    """Render a fixed-point value without trailing zeros ('1.05', '2')."""
    if value is None:
        return "N/A"
    text = format(value.normalize(), "f")
    return text


def _fmt_elapsed(seconds: int) -> str:
    """
    Format elapsed time as 'Xh:YYmin' or 'Ymin'.

    Args:
        seconds: Elapsed time in seconds (will be clamped to >= 0)

    Returns:
        Formatted string like '2h:42min' or '5min'
    """
    if seconds < 0:
        seconds = 0
    minutes = seconds // 60
    hours = minutes // 60
    mins_only = minutes % 60
    if hours > 0:
        return f"{hours}h:{mins_only:02d}min"
    return f"{mins_only}min"


def _fmt_ts(ts: Optional[datetime]) -> str:
    if ts is None:
        return "never"
    return ts.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def format_feeds(entries: Iterable[FeedEntry]) -> str:
    """One line per feed: name, category, destination and endpoints."""
    lines = [
        f"— {e.name} [{e.category.value}] {e.source_ref} → {e.destination_id} "
        f"(receiver {e.destination_receiver}, provider {e.destination_provider})"
        for e in entries
    ]
    if not lines:
        return "No feeds registered."
    return "Feeds:\n" + "\n".join(lines)


def format_rate(name: str, record: RateRecord, now: Optional[datetime] = None) -> str:
    """
    Format a provider's record with its age.

    Args:
        name: Feed or provider name for the title
        record: Provider record
        now: Reference time (defaults to current UTC time)
    """
    now = now or datetime.now(timezone.utc)
    elapsed = int((now - record.last_updated_at).total_seconds())
    return (
        f"{name}: {fmt_value(record.current_value)}\n"
        f"— updated: {_fmt_ts(record.last_updated_at)} ({_fmt_elapsed(elapsed)} ago)\n"
        f"— produced: {_fmt_ts(record.produced_at)}"
    )


def format_report(report: Optional[SyncReport]) -> str:
    """Summarize a sync pass (None means the pass was not due)."""
    if report is None:
        return "Sync not due."
    lines = [f"Sync: {len(report.attempts)} relayed, {len(report.failures)} failed"]
    for name, attempt in report.attempts.items():
        lines.append(f"✅ {name}: {fmt_value(attempt.value)} (fee {attempt.fee}, msg {attempt.message_id})")
    for name, error in report.failures.items():
        lines.append(f"❌ {name}: {type(error).__name__}: {error}")
    return "\n".join(lines)


def format_status(
    feeds: int,
    fee_balance: int,
    last_run_at: Optional[float],
    next_due_at: Optional[float],
    today: Dict,
) -> str:
    """
    Format the operator status message.

    Args:
        feeds: Number of registered feeds
        fee_balance: Current fee balance
        last_run_at: Unix time of the last scheduled sync
        next_due_at: Unix time the next sync is due (None if due now)
        today: StatsTracker.get_today_summary()
    """
    last = datetime.fromtimestamp(last_run_at, tz=timezone.utc) if last_run_at is not None else None
    nxt = (
        _fmt_ts(datetime.fromtimestamp(next_due_at, tz=timezone.utc))
        if next_due_at is not None else "now"
    )
    lines = [
        "📡 Relay status",
        f"— feeds: {feeds}",
        f"— fee balance: {fee_balance}",
        f"— last sync: {_fmt_ts(last)}",
        f"— next sync: {nxt}",
        f"— today: {today.get('successes', 0)} relayed, {today.get('failures', 0)} failed, "
        f"{today.get('deliveries', 0)} delivered, fees {today.get('fees_spent', 0)}",
    ]
    if today.get("last_error"):
        lines.append(f"— last error: {today['last_error']}")
    return "\n".join(lines)
