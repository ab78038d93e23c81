# src/ratesync/application/sender.py
"""
Relay Sender - Reads Sources and Dispatches Sync Messages

This module contains the source-side relay logic. For a feed it:
1. Looks the feed up in the registry
2. Reads the current value from the feed's source according to its category
3. Builds and encodes a SyncMessage stamped with the current time
4. Pays the transport's quoted fee from the funded balance and dispatches

Debit-then-send happens under the store lock, so concurrent fan-out cannot
spend the same balance twice, and a send the transport rejects is refunded.
Every attempt, successful or not, is logged and recorded in the stats tracker.

Files that USE this module:
- ratesync.application.scheduler (sync_all)
- ratesync.adapters.telegram.handlers (/sync, /balance)
- ratesync.app (composition root)
- tests.test_sender (unit tests)

Files that this module USES:
- ratesync.application.registry (RateRegistry)
- ratesync.application.stats (StatsTracker)
- ratesync.adapters.sources.base (ValueSource, read_value)
- ratesync.adapters.transport.base (Transport)
- ratesync.domain.codec (encode)
"""
from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Deque, Dict, List, Mapping, Optional

from ratesync.adapters.persistence.file_store import StateStore
from ratesync.adapters.sources.base import ValueSource, read_value
from ratesync.adapters.transport.base import Transport
from ratesync.application.access import require_admin
from ratesync.application.registry import RateRegistry
from ratesync.application.stats import StatsTracker
from ratesync.domain.codec import encode
from ratesync.domain.errors import (
    ConfigurationError,
    InsufficientFeeError,
    NotFoundError,
)
from ratesync.domain.models import SyncMessage, normalize_handle

logger = logging.getLogger(__name__)

HISTORY_SIZE = 100


@dataclass(frozen=True)
class RelayAttempt:
    """
    Record of one sync_one call.

    Attributes:
        feed: Feed name
        ok: True if the message was handed to the transport
        attempted_at: When the attempt was made (UTC)
        destination_id: Destination of the feed (None if the feed was unknown)
        value: Value read from the source (None if the read failed)
        fee: Fee debited (0 unless ok)
        message_id: Transport delivery handle (None unless ok)
        error: Error message (None if ok)
    """
    feed: str
    ok: bool
    attempted_at: datetime
    destination_id: Optional[int] = None
    value: Optional[Decimal] = None
    fee: int = 0
    message_id: Optional[str] = None
    error: Optional[str] = None


@dataclass
class SyncReport:
    """Outcome of sync_all: successful attempts and failures, both by feed."""
    attempts: Dict[str, RelayAttempt] = field(default_factory=dict)
    failures: Dict[str, Exception] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures


class RelaySender:
    """Source-side relay: registry entries in, transport dispatches out."""

    def __init__(
        self,
        registry: RateRegistry,
        transport: Transport,
        sources: Mapping[str, ValueSource],
        store: StateStore,
        admin: str,
        identity: str,
        clock: Callable[[], float] = time.time,
        stats: Optional[StatsTracker] = None,
    ):
        """
        Args:
            registry: Feed registry to read from
            transport: Transport messages are dispatched through
            sources: Value sources by handle
            store: State arena holding the fee balance
            admin: Administrator handle (fund / withdraw)
            identity: Sender handle presented to receivers as the logical sender
            clock: Returns the current Unix time
            stats: Optional tracker for relay-attempted records
        """
        self.registry = registry
        self.transport = transport
        self.sources: Dict[str, ValueSource] = {s: src for s, src in sources.items()}
        self.store = store
        self.admin = normalize_handle(admin, "admin handle")
        self.identity = normalize_handle(identity, "sender handle")
        self.clock = clock
        self.stats = stats
        self._history: Deque[RelayAttempt] = deque(maxlen=HISTORY_SIZE)

    # --- fee balance ---

    @property
    def fee_balance(self) -> int:
        return self.store.fee_balance

    def fund(self, caller: str, amount: int) -> int:
        """
        Add ``amount`` to the fee balance.

        Returns:
            New balance
        """
        require_admin(caller, self.admin, "fund")
        _check_amount(amount)
        with self.store.transaction():
            self.store.fee_balance += amount
            balance = self.store.fee_balance
        logger.info("Fee balance funded with %d, now %d", amount, balance)
        return balance

    def withdraw(self, caller: str, amount: int) -> int:
        """
        Take ``amount`` out of the fee balance.

        Returns:
            New balance

        Raises:
            InsufficientFeeError: If the balance is lower than amount
        """
        require_admin(caller, self.admin, "withdraw")
        _check_amount(amount)
        with self.store.transaction():
            if amount > self.store.fee_balance:
                raise InsufficientFeeError(
                    f"Cannot withdraw {amount}, balance is {self.store.fee_balance}"
                )
            self.store.fee_balance -= amount
            balance = self.store.fee_balance
        logger.info("Withdrew %d from fee balance, now %d", amount, balance)
        return balance

    # --- sources ---

    def add_source(self, source: ValueSource) -> None:
        self.sources[source.handle] = source

    # --- relay ---

    def sync_one(self, name: str) -> RelayAttempt:
        """
        Read the feed's source and dispatch its value.

        Args:
            name: Feed name

        Returns:
            RelayAttempt for the successful dispatch

        Raises:
            NotFoundError: Unknown feed or source
            SourceUnavailableError: The source read failed
            InsufficientFeeError: The balance cannot cover the quoted fee
            TransportRejectedError: The transport declined the send
        """
        now = self.clock()
        attempted_at = datetime.fromtimestamp(now, tz=timezone.utc)
        entry = None
        value = None
        try:
            entry = self.registry.lookup(name)
            source = self.sources.get(entry.source_ref)
            if source is None:
                raise NotFoundError(f"Unknown source {entry.source_ref} for feed {name}")

            value = read_value(source, entry.category)
            message = SyncMessage(value=value, produced_at=attempted_at)
            payload = encode(message)

            with self.store.lock:
                fee = self.transport.quote_fee(entry.destination_id, entry.destination_receiver, payload)
                if fee > self.store.fee_balance:
                    raise InsufficientFeeError(
                        f"Fee {fee} exceeds balance {self.store.fee_balance} for feed {name}"
                    )
                self.store.fee_balance -= fee
                try:
                    message_id = self.transport.send(
                        entry.destination_id, entry.destination_receiver, payload, self.identity
                    )
                except Exception:
                    self.store.fee_balance += fee
                    raise
                # The message is in flight, so the debit stands even if this save fails
                self.store.save()
        except Exception as e:
            attempt = RelayAttempt(
                feed=name,
                ok=False,
                attempted_at=attempted_at,
                destination_id=entry.destination_id if entry else None,
                value=value,
                error=f"{type(e).__name__}: {e}",
            )
            self._record(attempt)
            raise

        attempt = RelayAttempt(
            feed=name,
            ok=True,
            attempted_at=attempted_at,
            destination_id=entry.destination_id,
            value=message.value,
            fee=fee,
            message_id=message_id,
        )
        self._record(attempt)
        return attempt

    def sync_all(self) -> SyncReport:
        """
        Run sync_one for every registered feed.

        A failing feed does not stop the others; failures are collected by
        feed name in the report.
        """
        report = SyncReport()
        for name in self.registry.list():
            try:
                report.attempts[name] = self.sync_one(name)
            except Exception as e:
                report.failures[name] = e
        logger.info(
            "sync_all finished: %d relayed, %d failed%s",
            len(report.attempts),
            len(report.failures),
            f" ({', '.join(report.failures)})" if report.failures else "",
        )
        return report

    @property
    def recent_attempts(self) -> List[RelayAttempt]:
        return list(self._history)

    def _record(self, attempt: RelayAttempt) -> None:
        self._history.append(attempt)
        if attempt.ok:
            logger.info(
                "Relay attempted: feed=%s destination=%s value=%s fee=%d message=%s",
                attempt.feed, attempt.destination_id, attempt.value, attempt.fee, attempt.message_id,
            )
        else:
            logger.warning(
                "Relay attempted: feed=%s destination=%s failed: %s",
                attempt.feed, attempt.destination_id, attempt.error,
            )
        if self.stats is not None:
            self.stats.record_attempt(attempt.feed, attempt.ok, fee=attempt.fee, error=attempt.error)


def _check_amount(amount) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ConfigurationError(f"Amount must be a positive integer: {amount!r}")
