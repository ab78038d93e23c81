# src/ratesync/application/receiver.py
"""
Relay Receiver - Destination-Side Trust Gate

The receiver is the only entry point the transport may invoke on a
destination. Each delivery is checked against a flat two-field allowlist:
the calling transport and the logical sender must both match. Only then is
the payload decoded and forwarded to the paired rate provider.

Deliveries are independent: there is no per-message state, so a duplicate
delivery simply re-applies the same value.

Files that USE this module:
- ratesync.adapters.transport.loopback (delivers to attached receivers)
- ratesync.app (composition root)
- tests.test_receiver (unit tests)

Files that this module USES:
- ratesync.application.provider (RateProvider.update)
- ratesync.adapters.persistence.file_store (StateStore, durable trust config)
- ratesync.domain.codec (decode)
"""
from __future__ import annotations

import logging
from typing import Optional

from ratesync.adapters.persistence.file_store import StateStore
from ratesync.application.access import require_admin, same_handle
from ratesync.application.provider import RateProvider
from ratesync.application.stats import StatsTracker
from ratesync.domain.codec import Payload, decode
from ratesync.domain.errors import AuthorizationError
from ratesync.domain.models import RateRecord, TrustConfig, normalize_handle

logger = logging.getLogger(__name__)


class RelayReceiver:
    """Authenticates transport deliveries and forwards them to one provider."""

    def __init__(
        self,
        store: StateStore,
        handle: str,
        trust: TrustConfig,
        provider: RateProvider,
        admin: str,
        stats: Optional[StatsTracker] = None,
    ):
        """
        Args:
            store: State arena holding the trust configuration
            handle: This receiver's handle (the provider's paired receiver)
            trust: Initial allowlist; a stored one takes precedence
            provider: Provider updates are forwarded to
            admin: Administrator handle (rotate_trust)
            stats: Optional tracker for applied deliveries
        """
        self.store = store
        self.handle = normalize_handle(handle, "receiver handle")
        self.provider = provider
        self.admin = normalize_handle(admin, "admin handle")
        self.stats = stats

        with self.store.lock:
            if self.handle not in self.store.trust:
                with self.store.transaction():
                    self.store.trust[self.handle] = TrustConfig(
                        allowed_transport=normalize_handle(trust.allowed_transport, "allowed transport"),
                        allowed_sender=normalize_handle(trust.allowed_sender, "allowed sender"),
                    )

    @property
    def trust(self) -> TrustConfig:
        return self.store.trust[self.handle]

    def deliver(self, caller_transport: str, caller_sender: str, payload: Payload) -> RateRecord:
        """
        Authenticate a delivery and forward its value.

        Args:
            caller_transport: Identity of the invoking transport
            caller_sender: Logical sender the transport reports for the message
            payload: Encoded SyncMessage

        Returns:
            The provider's record after the update

        Raises:
            AuthorizationError: If either identity is not allowlisted
            DecodeError: If the payload does not parse
        """
        trust = self.trust
        if not same_handle(caller_transport, trust.allowed_transport):
            logger.warning("Receiver %s rejected delivery from untrusted transport %r",
                           self.handle, caller_transport)
            raise AuthorizationError(
                f"Untrusted transport: {caller_transport!r}", reason="untrusted_transport"
            )
        if not same_handle(caller_sender, trust.allowed_sender):
            logger.warning("Receiver %s rejected delivery from untrusted sender %r",
                           self.handle, caller_sender)
            raise AuthorizationError(
                f"Untrusted sender: {caller_sender!r}", reason="untrusted_sender"
            )

        message = decode(payload)
        record = self.provider.update(self.handle, message.value, message.produced_at)
        logger.info("Receiver %s delivered %s produced at %s",
                    self.handle, message.value, message.produced_at.isoformat())
        if self.stats is not None:
            self.stats.record_delivery(self.handle)
        return record

    def rotate_trust(
        self,
        caller: str,
        allowed_transport: Optional[str] = None,
        allowed_sender: Optional[str] = None,
    ) -> TrustConfig:
        """
        Replace one or both allowlisted identities (administrator only).

        Returns:
            The new TrustConfig
        """
        require_admin(caller, self.admin, "rotate_trust")
        with self.store.lock:
            current = self.trust
            rotated = TrustConfig(
                allowed_transport=normalize_handle(allowed_transport, "allowed transport")
                if allowed_transport is not None else current.allowed_transport,
                allowed_sender=normalize_handle(allowed_sender, "allowed sender")
                if allowed_sender is not None else current.allowed_sender,
            )
            with self.store.transaction():
                self.store.trust[self.handle] = rotated
        logger.info("Receiver %s trust rotated: transport=%s sender=%s",
                    self.handle, rotated.allowed_transport, rotated.allowed_sender)
        return rotated
