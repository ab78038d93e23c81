# src/ratesync/application/stats.py
"""
Statistics Tracker - Relay Activity Records

This module records every relay attempt (successful or not) and every
delivery applied on the destination side, bucketed per day:
- Relay attempts, successes and failures
- Per-feed usage and failure counts
- Fees spent
- Last attempt / last error time

Files that USE this module:
- ratesync.application.sender (record_attempt)
- ratesync.application.receiver (record_delivery)
- ratesync.adapters.telegram.handlers (/status summary)
- ratesync.app (creates the tracker from settings)

Files that this module USES:
- pathlib (file management)
- json (persistence)
- datetime (track timestamps)
"""
from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional, Union

logger = logging.getLogger(__name__)


@dataclass
class DailyStats:
    """Statistics for a single day."""
    date: str  # ISO date string (YYYY-MM-DD)
    attempts: int = 0
    successes: int = 0
    failures: int = 0
    deliveries: int = 0
    fees_spent: int = 0
    feed_usage: Dict[str, int] = field(default_factory=dict)  # feed -> successful relays
    feed_failures: Dict[str, int] = field(default_factory=dict)  # feed -> failed relays
    last_attempt_time: Optional[str] = None  # ISO datetime string
    last_error_time: Optional[str] = None  # ISO datetime string
    last_error: Optional[str] = None


@dataclass
class RelayStats:
    """Overall relay statistics."""
    start_time: str  # ISO datetime string
    total_attempts: int = 0
    total_failures: int = 0
    total_deliveries: int = 0
    daily_stats: Dict[str, DailyStats] = field(default_factory=dict)  # date -> DailyStats


class StatsTracker:
    """Track and persist relay statistics."""

    def __init__(self, stats_file: Optional[Union[str, Path]] = None):
        """
        Initialize stats tracker.

        Args:
            stats_file: Path to JSON file for persisting stats (None keeps them in memory)
        """
        self.stats_file = Path(stats_file) if stats_file else None
        self._lock = threading.Lock()
        self._stats = RelayStats(start_time=datetime.now(timezone.utc).isoformat())
        self._load_stats()

    def _load_stats(self) -> None:
        """Load statistics from disk."""
        if self.stats_file is None or not self.stats_file.exists():
            logger.info("Initialized new stats tracker")
            return

        try:
            with self.stats_file.open("r", encoding="utf-8") as f:
                data = json.load(f)
            self._stats = RelayStats(
                start_time=data.get("start_time", self._stats.start_time),
                total_attempts=data.get("total_attempts", 0),
                total_failures=data.get("total_failures", 0),
                total_deliveries=data.get("total_deliveries", 0),
                daily_stats={
                    date: DailyStats(**daily) for date, daily in data.get("daily_stats", {}).items()
                },
            )
            logger.debug("Loaded stats from disk")
        except (OSError, ValueError, TypeError) as e:
            # Stats are diagnostics only; a bad file must not stop the relay
            logger.error("Failed to load stats, starting fresh: %s", e)

    def _save_stats(self) -> None:
        """Save statistics to disk."""
        if self.stats_file is None:
            return

        try:
            self.stats_file.parent.mkdir(parents=True, exist_ok=True)
            with self.stats_file.open("w", encoding="utf-8") as f:
                json.dump(asdict(self._stats), f, indent=2, ensure_ascii=False)
        except OSError as e:
            logger.error("Failed to save stats: %s", e)

    def _get_today_stats(self) -> DailyStats:
        """Get or create today's statistics."""
        today = datetime.now(timezone.utc).date().isoformat()

        if today not in self._stats.daily_stats:
            self._stats.daily_stats[today] = DailyStats(date=today)

        return self._stats.daily_stats[today]

    def record_attempt(self, feed: str, ok: bool, fee: int = 0, error: Optional[str] = None) -> None:
        """
        Record a relay attempt.

        Args:
            feed: Feed name
            ok: True if the message was dispatched
            fee: Fee debited for the dispatch
            error: Error message for failed attempts
        """
        now = datetime.now(timezone.utc).isoformat()
        with self._lock:
            self._stats.total_attempts += 1
            today = self._get_today_stats()
            today.attempts += 1
            today.last_attempt_time = now
            if ok:
                today.successes += 1
                today.fees_spent += fee
                today.feed_usage[feed] = today.feed_usage.get(feed, 0) + 1
            else:
                self._stats.total_failures += 1
                today.failures += 1
                today.feed_failures[feed] = today.feed_failures.get(feed, 0) + 1
                today.last_error_time = now
                today.last_error = error
            self._save_stats()

    def record_delivery(self, receiver: str) -> None:
        """Record a delivery applied by a receiver."""
        with self._lock:
            self._stats.total_deliveries += 1
            self._get_today_stats().deliveries += 1
            self._save_stats()
        logger.debug("Recorded delivery at %s", receiver)

    def get_today_summary(self) -> Dict:
        """
        Get summary of today's activity.

        Returns:
            Dictionary with today's statistics
        """
        with self._lock:
            today = self._get_today_stats()
            return {
                "attempts": today.attempts,
                "successes": today.successes,
                "failures": today.failures,
                "deliveries": today.deliveries,
                "fees_spent": today.fees_spent,
                "feed_usage": dict(today.feed_usage),
                "feed_failures": dict(today.feed_failures),
                "last_attempt_time": today.last_attempt_time,
                "last_error_time": today.last_error_time,
                "last_error": today.last_error,
            }

    def get_totals(self) -> Dict:
        with self._lock:
            return {
                "start_time": self._stats.start_time,
                "total_attempts": self._stats.total_attempts,
                "total_failures": self._stats.total_failures,
                "total_deliveries": self._stats.total_deliveries,
            }
