# src/ratesync/adapters/transport/loopback.py
"""
Loopback Transport - In-Process Delivery

A transport that queues messages in memory and hands them to receivers
attached in the same process. It is used for local runs and tests, and it can
reproduce the delivery hazards of a real cross-domain transport: messages can
be delivered in reverse or random order, and delivered twice.

Files that USE this module:
- ratesync.app (default transport when TRANSPORT_URL is empty)
- tests.* (end-to-end relay tests)

Files that this module USES:
- ratesync.adapters.transport.base (Transport interface)
- ratesync.domain.errors (TransportRejectedError, RelayError)
"""
from __future__ import annotations

import logging
import random
import threading
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Tuple

from ratesync.adapters.transport.base import Transport
from ratesync.domain.errors import ConfigurationError, RelayError, TransportRejectedError
from ratesync.domain.models import normalize_handle

log = logging.getLogger(__name__)

DELIVERY_ORDERS = ("fifo", "lifo", "shuffle")


class Deliverable(Protocol):
    """Anything the transport can deliver to (a RelayReceiver)."""
    handle: str

    def deliver(self, caller_transport: str, caller_sender: str, payload: bytes):
        ...


@dataclass(frozen=True)
class Envelope:
    """A message in flight."""
    message_id: str
    destination_id: int
    receiver: str
    sender: str
    payload: bytes


@dataclass
class DeliveryResult:
    """Outcome of one deliver_pending() pass."""
    delivered: List[str]
    failed: Dict[str, Exception]


class LoopbackTransport(Transport):
    def __init__(self, handle: str, fee: int = 0, seed: Optional[int] = None):
        """
        Initialize loopback transport.

        Args:
            handle: Transport identity presented to receivers
            fee: Flat fee quoted per message
            seed: Optional seed for "shuffle" delivery order
        """
        super().__init__(handle)
        if fee < 0:
            raise ConfigurationError(f"Transport fee must be non-negative: {fee}")
        self.fee = fee
        self._lock = threading.Lock()
        self._receivers: Dict[Tuple[int, str], Deliverable] = {}
        self._queue: List[Envelope] = []
        self._random = random.Random(seed)

    def attach(self, destination_id: int, receiver: Deliverable) -> None:
        """Make ``receiver`` reachable at ``destination_id``."""
        key = (int(destination_id), receiver.handle)
        with self._lock:
            self._receivers[key] = receiver
        log.info("Loopback attached receiver %s on destination %s", receiver.handle, destination_id)

    def supports(self, destination_id: int) -> bool:
        with self._lock:
            return any(dest == destination_id for dest, _ in self._receivers)

    def quote_fee(self, destination_id: int, receiver: str, payload: bytes) -> int:
        return self.fee

    def send(self, destination_id: int, receiver: str, payload: bytes, sender: str) -> str:
        receiver = normalize_handle(receiver, "receiver handle")
        if not self.supports(destination_id):
            raise TransportRejectedError(f"Unsupported destination: {destination_id}")

        envelope = Envelope(
            message_id=uuid.uuid4().hex,
            destination_id=destination_id,
            receiver=receiver,
            sender=sender,
            payload=bytes(payload),
        )
        with self._lock:
            self._queue.append(envelope)
        log.debug("Loopback queued %s for %s on %s", envelope.message_id, receiver, destination_id)
        return envelope.message_id

    @property
    def pending(self) -> List[Envelope]:
        with self._lock:
            return list(self._queue)

    def deliver_pending(self, order: str = "fifo", duplicate: bool = False) -> DeliveryResult:
        """
        Deliver every queued message once (twice with ``duplicate``).

        Rejected deliveries (RelayError) are logged and reported, not retried.
        Any other error is reported too and the message stays queued for the
        next pass. No failure stops the rest of the batch.

        Args:
            order: "fifo", "lifo" or "shuffle"
            duplicate: Deliver each message a second time after the first pass

        Returns:
            DeliveryResult with delivered message ids and failures by message id
        """
        if order not in DELIVERY_ORDERS:
            raise ConfigurationError(f"Unknown delivery order: {order!r}")

        with self._lock:
            batch, self._queue = self._queue, []

        if order == "lifo":
            batch.reverse()
        elif order == "shuffle":
            self._random.shuffle(batch)
        if duplicate:
            batch = batch + batch

        result = DeliveryResult(delivered=[], failed={})
        requeue: Dict[str, Envelope] = {}
        for envelope in batch:
            with self._lock:
                target = self._receivers.get((envelope.destination_id, envelope.receiver))
            if target is None:
                log.warning("Loopback has no receiver %s on %s, dropping %s",
                            envelope.receiver, envelope.destination_id, envelope.message_id)
                result.failed[envelope.message_id] = TransportRejectedError(
                    f"No receiver {envelope.receiver} on {envelope.destination_id}"
                )
                continue
            try:
                target.deliver(self.handle, envelope.sender, envelope.payload)
                result.delivered.append(envelope.message_id)
            except RelayError as e:
                log.warning("Loopback delivery %s to %s failed: %s",
                            envelope.message_id, envelope.receiver, e)
                result.failed[envelope.message_id] = e
            except Exception as e:
                # Not a verdict on the message: keep it queued for the next pass
                log.error("Loopback delivery %s to %s crashed, re-queued: %s",
                          envelope.message_id, envelope.receiver, e, exc_info=True)
                result.failed[envelope.message_id] = e
                requeue.setdefault(envelope.message_id, envelope)
        if requeue:
            with self._lock:
                self._queue[:0] = requeue.values()
        return result
