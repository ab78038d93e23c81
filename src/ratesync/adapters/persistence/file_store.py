# src/ratesync/adapters/persistence/file_store.py
"""
File Store - Durable Relay State

This module holds the relay's durable state: registered feeds, the fee
balance, the scheduler's last run, rate records and receiver trust
configurations. Components keep no durable state of their own, so any of
them can be re-created (upgraded) over the same store without losing data.

State is persisted as a JSON document with a layout version. Fields are only
ever appended: a missing field takes its default, unknown fields are carried
through on save, and a newer layout version refuses to load.

Files that USE this module:
- ratesync.application.registry (feeds)
- ratesync.application.sender (fee balance)
- ratesync.application.scheduler (last run compare-and-set)
- ratesync.application.provider (rate records)
- ratesync.application.receiver (trust configuration)
- ratesync.app (creates the store from settings)

Files that this module USES:
- ratesync.domain.models (FeedEntry, RateRecord, TrustConfig)
- ratesync.domain.errors (StateLayoutError)
"""
from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Union

from ratesync.domain.errors import StateLayoutError
from ratesync.domain.models import FeedEntry, RateRecord, TrustConfig

log = logging.getLogger(__name__)

LAYOUT_VERSION = 1

_KNOWN_KEYS = {
    "layout_version",
    "feeds",
    "fee_balance",
    "last_run_at",
    "rate_records",
    "trust",
}


class StateStore:
    """
    State arena shared by the relay components.

    Callers mutate the public containers inside ``transaction()``, which
    holds ``lock``, saves on exit and rolls memory back if the save fails.
    ``lock`` is re-entrant so a component may open a transaction while it
    already holds the lock.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        """
        Initialize the store and load persisted state if available.

        Args:
            path: JSON file to persist to; None keeps state in memory only
        """
        self.path = Path(path) if path else None
        self.lock = threading.RLock()
        self.feeds: Dict[str, FeedEntry] = {}
        self.fee_balance: int = 0
        self.last_run_at: Optional[float] = None
        self.rate_records: Dict[str, RateRecord] = {}
        self.trust: Dict[str, TrustConfig] = {}
        self._extra: Dict[str, Any] = {}
        if self.path is not None:
            self._load()

    # --- scheduler ---

    def compare_and_set_last_run(self, expected: Optional[float], new: float) -> bool:
        """
        Set last_run_at to ``new`` only if it still equals ``expected``.

        A failed save leaves last_run_at unchanged, so the window stays open.

        Returns:
            True if this caller won the swap
        """
        with self.lock:
            if self.last_run_at != expected:
                return False
            with self.transaction():
                self.last_run_at = new
            return True

    # --- persistence ---

    @contextmanager
    def transaction(self) -> Iterator["StateStore"]:
        """
        Hold the lock for one mutation and save it when the block ends.

        If the block or the save raises, in-memory state is restored to what
        it was on entry and the error propagates, so memory never runs ahead
        of the file.
        """
        with self.lock:
            snapshot = self.to_json()
            try:
                yield self
                self.save()
            except Exception:
                self.load_json(snapshot)
                raise

    def to_json(self) -> dict:
        data = dict(self._extra)
        data.update({
            "layout_version": LAYOUT_VERSION,
            # list keeps registration order explicit in the file
            "feeds": [entry.to_json() for entry in self.feeds.values()],
            "fee_balance": self.fee_balance,
            "last_run_at": self.last_run_at,
            "rate_records": {h: r.to_json() for h, r in self.rate_records.items()},
            "trust": {h: t.to_json() for h, t in self.trust.items()},
        })
        return data

    def load_json(self, data: dict) -> None:
        """
        Replace in-memory state with a decoded JSON document.

        Raises:
            StateLayoutError: If the document has a newer or invalid layout
        """
        version = data.get("layout_version", 1)
        if not isinstance(version, int) or version < 1:
            raise StateLayoutError(f"Invalid state layout version: {version!r}")
        if version > LAYOUT_VERSION:
            raise StateLayoutError(
                f"State layout version {version} is newer than supported {LAYOUT_VERSION}"
            )

        with self.lock:
            self.feeds = {}
            for raw in data.get("feeds", []):
                entry = FeedEntry.from_json(raw)
                self.feeds[entry.name] = entry
            self.fee_balance = int(data.get("fee_balance", 0))
            last = data.get("last_run_at")
            self.last_run_at = float(last) if last is not None else None
            self.rate_records = {
                h: RateRecord.from_json(r) for h, r in data.get("rate_records", {}).items()
            }
            self.trust = {h: TrustConfig.from_json(t) for h, t in data.get("trust", {}).items()}
            self._extra = {k: v for k, v in data.items() if k not in _KNOWN_KEYS}

    def save(self) -> None:
        """
        Persist state using an atomic write (temp file + rename).

        No-op for in-memory stores.
        """
        if self.path is None:
            return

        with self.lock:
            payload = self.to_json()
            self.path.parent.mkdir(parents=True, exist_ok=True)
            temp_fd, temp_path = tempfile.mkstemp(
                suffix=".json.tmp",
                dir=str(self.path.parent),
                text=True,
            )
            try:
                with os.fdopen(temp_fd, "w", encoding="utf-8") as f:
                    json.dump(payload, f, ensure_ascii=False, indent=2)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(temp_path, str(self.path))
            except Exception as e:
                try:
                    os.unlink(temp_path)
                except OSError:
                    pass
                raise RuntimeError(f"Failed to save state file: {e}") from e

    def _load(self) -> None:
        """
        Load state from ``self.path``.

        A corrupt JSON file is backed up to ``*.corrupt`` and the store starts
        empty. A layout error propagates: starting empty over state this
        version does not understand would lose it on the next save.
        """
        p = self.path
        if not p.exists():
            log.info("No state file at %s, starting empty", p)
            return

        with p.open("r", encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                backup_path = p.with_suffix(".json.corrupt")
                shutil.copy2(p, backup_path)
                log.warning("State file corrupted (JSON decode error), backed up to %s: %s",
                            backup_path, e)
                return

        if not isinstance(data, dict):
            raise StateLayoutError(f"State file {p} does not hold a JSON object")
        self.load_json(data)
        log.info(
            "Loaded state from %s: %d feeds, %d rate records, fee balance %d",
            p, len(self.feeds), len(self.rate_records), self.fee_balance,
        )
