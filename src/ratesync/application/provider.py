# src/ratesync/application/provider.py
"""
Rate Provider - Destination-Side Value Store

This module exposes the latest synchronized value of one feed on a
destination, together with when it was applied. Only the paired relay
receiver may update it.

The transport does not order deliveries, so by default the provider applies
whatever was delivered last and keeps the message's produced_at only as
provenance (LAST_DELIVERED_WINS). Deployments that prefer to drop deliveries
older than the stored message can switch to MONOTONIC_PRODUCED_AT.

Files that USE this module:
- ratesync.application.receiver (update)
- ratesync.adapters.telegram.handlers (/rate)
- ratesync.app (composition root)
- tests.test_provider (unit tests)

Files that this module USES:
- ratesync.adapters.persistence.file_store (StateStore, durable rate records)
- ratesync.domain.models (RateRecord, fixed-point conversion)
"""
from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Callable, Optional, Tuple

from ratesync.adapters.persistence.file_store import StateStore
from ratesync.application.access import same_handle
from ratesync.domain.errors import AuthorizationError, ConfigurationError
from ratesync.domain.models import Number, RateRecord, normalize_handle, to_fixed, utc

logger = logging.getLogger(__name__)


class UpdatePolicy(str, Enum):
    LAST_DELIVERED_WINS = "last_delivered_wins"
    MONOTONIC_PRODUCED_AT = "monotonic_produced_at"

    @classmethod
    def parse(cls, token) -> "UpdatePolicy":
        if isinstance(token, cls):
            return token
        try:
            return cls(str(token).strip().lower())
        except ValueError as e:
            raise ConfigurationError(f"Unknown update policy: {token!r}") from e


class RateProvider:
    """Latest synchronized value for one feed on a destination."""

    def __init__(
        self,
        store: StateStore,
        handle: str,
        receiver: str,
        initial_value: Number,
        clock: Callable[[], float] = time.time,
        policy=UpdatePolicy.LAST_DELIVERED_WINS,
    ):
        """
        Create the provider, seeding its record unless the store already has one.

        An existing record is kept as is, so re-creating the provider over the
        same store (a logic upgrade) never resets the value.

        Args:
            store: State arena holding rate records
            handle: This provider's handle (key of its record)
            receiver: Handle of the only receiver allowed to update
            initial_value: Seed value for a fresh deployment
            clock: Returns the current Unix time
            policy: UpdatePolicy or its string token
        """
        self.store = store
        self.handle = normalize_handle(handle, "provider handle")
        self.receiver = normalize_handle(receiver, "receiver handle")
        self.clock = clock
        self.policy = UpdatePolicy.parse(policy)

        with self.store.lock:
            if self.handle not in self.store.rate_records:
                with self.store.transaction():
                    self.store.rate_records[self.handle] = RateRecord(
                        current_value=to_fixed(initial_value),
                        last_updated_at=self._now(),
                    )
                logger.info("Seeded provider %s with %s", self.handle, initial_value)

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self.clock(), tz=timezone.utc)

    def update(self, caller: str, value: Number, produced_at: datetime) -> RateRecord:
        """
        Apply a delivered value.

        Args:
            caller: Handle of the caller (must be the paired receiver)
            value: Delivered value
            produced_at: Source-side timestamp of the message

        Returns:
            The record after the update (unchanged if the policy dropped it)

        Raises:
            AuthorizationError: If caller is not the paired receiver
        """
        if not same_handle(caller, self.receiver):
            logger.warning("Provider %s rejected update from %r", self.handle, caller)
            raise AuthorizationError(
                f"Only receiver {self.receiver} may update provider {self.handle}",
                reason="not_receiver",
            )

        value = to_fixed(value)
        produced_at = utc(produced_at)
        with self.store.lock:
            current = self.store.rate_records[self.handle]
            if (
                self.policy is UpdatePolicy.MONOTONIC_PRODUCED_AT
                and current.produced_at is not None
                and produced_at < current.produced_at
            ):
                logger.info(
                    "Provider %s dropped stale delivery: produced_at %s older than %s",
                    self.handle, produced_at.isoformat(), current.produced_at.isoformat(),
                )
                return current

            record = RateRecord(
                current_value=value,
                last_updated_at=self._now(),
                produced_at=produced_at,
            )
            with self.store.transaction():
                self.store.rate_records[self.handle] = record

        logger.info(
            "Provider %s updated to %s (produced at %s)",
            self.handle, value, produced_at.isoformat(),
        )
        return record

    def read(self) -> Tuple[Decimal, datetime]:
        """Return (current_value, last_updated_at)."""
        record = self.record()
        return record.current_value, record.last_updated_at

    def record(self) -> RateRecord:
        return self.store.rate_records[self.handle]

    def age(self, now: Optional[float] = None) -> float:
        """Seconds since the value was last applied."""
        now = self.clock() if now is None else now
        return max(0.0, now - self.record().last_updated_at.timestamp())

    def is_stale(self, max_age: float, now: Optional[float] = None) -> bool:
        return self.age(now) > max_age
