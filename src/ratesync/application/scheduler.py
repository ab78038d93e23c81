# src/ratesync/application/scheduler.py
"""
Sync Scheduler - Automation Gate

An external clock (the bot's job queue, cron, or several redundant
automation nodes) polls run(). A sync happens at most once per due window:
the caller that wins the compare-and-set on last_run_at performs sync_all,
every other caller in the same window sees "not due" and does nothing.

Files that USE this module:
- ratesync.adapters.telegram.jobs (automation_job)
- ratesync.app (single-pass mode)
- tests.test_scheduler (unit tests)

Files that this module USES:
- ratesync.application.sender (RelaySender.sync_all)
- ratesync.adapters.persistence.file_store (compare_and_set_last_run)
"""
from __future__ import annotations

import logging
import math
import time
from decimal import Decimal
from typing import Callable, Optional

from ratesync.adapters.persistence.file_store import StateStore
from ratesync.application.sender import RelaySender, SyncReport
from ratesync.domain.errors import ConfigurationError

logger = logging.getLogger(__name__)


def _valid_number(x) -> bool:
    if isinstance(x, bool) or not isinstance(x, (int, float, Decimal)):
        return False
    try:
        return math.isfinite(x) and x >= 0
    except (TypeError, ValueError, ArithmeticError):
        return False


def is_due(last_run_at, interval, now) -> bool:
    """
    Return True when ``now - last_run_at >= interval``.

    ``last_run_at`` of None means the sync never ran, which is always due.
    Any malformed argument (non-numeric, NaN, infinite or negative) yields
    False instead of raising, so a continuously polling caller never halts.

    Args:
        last_run_at: Unix time of the last run, or None
        interval: Minimum seconds between runs
        now: Current Unix time
    """
    if not _valid_number(interval) or not _valid_number(now):
        return False
    if last_run_at is None:
        return True
    if not _valid_number(last_run_at):
        return False
    try:
        return now - last_run_at >= interval
    except TypeError:
        # Decimal mixed with float
        return False


class SyncScheduler:
    """Runs RelaySender.sync_all at most once per interval."""

    def __init__(
        self,
        sender: RelaySender,
        store: StateStore,
        interval: float,
        clock: Callable[[], float] = time.time,
    ):
        if not _valid_number(interval) or interval <= 0:
            raise ConfigurationError(f"Sync interval must be a positive number: {interval!r}")
        self.sender = sender
        self.store = store
        self.interval = interval
        self.clock = clock

    @property
    def last_run_at(self) -> Optional[float]:
        return self.store.last_run_at

    def check(self) -> bool:
        """Whether a sync is due right now."""
        return is_due(self.store.last_run_at, self.interval, self.clock())

    def next_due_at(self) -> Optional[float]:
        """Unix time the next sync becomes due (None if it is due already)."""
        last = self.store.last_run_at
        if last is None:
            return None
        due_at = last + self.interval
        return due_at if due_at > self.clock() else None

    def run(self) -> Optional[SyncReport]:
        """
        Perform sync_all if due and this caller wins the window.

        Returns:
            SyncReport if this call performed the sync, None otherwise
        """
        now = self.clock()
        last = self.store.last_run_at
        if not is_due(last, self.interval, now):
            logger.debug("Sync not due (last run %s, interval %s)", last, self.interval)
            return None
        if not self.store.compare_and_set_last_run(last, now):
            logger.info("Sync window already claimed by another trigger")
            return None

        logger.info("Sync due, running sync_all (last run %s)", last)
        return self.sender.sync_all()
