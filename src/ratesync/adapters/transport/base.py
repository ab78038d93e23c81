# src/ratesync/adapters/transport/base.py
"""
Base Transport Interface

The transport carries encoded sync messages to a receiver on a destination
domain. Delivery is asynchronous, at-least-once and unordered; once send()
returns, the sender has no further control over the message.

Files that USE this module:
- ratesync.adapters.transport.loopback (LoopbackTransport)
- ratesync.adapters.transport.http_gateway (HttpGatewayTransport)
- ratesync.application.sender (quote_fee, send)
"""
from abc import ABC, abstractmethod

from ratesync.domain.models import normalize_handle


class Transport(ABC):
    def __init__(self, handle: str):
        # The identity receivers check as allowed_transport
        self.handle = normalize_handle(handle, "transport handle")

    @abstractmethod
    def quote_fee(self, destination_id: int, receiver: str, payload: bytes) -> int:
        """Return the fee (in fee units) for sending ``payload``."""
        raise NotImplementedError

    @abstractmethod
    def send(self, destination_id: int, receiver: str, payload: bytes, sender: str) -> str:
        """
        Dispatch ``payload`` to ``receiver`` on ``destination_id``.

        Returns:
            Delivery handle (message id)

        Raises:
            TransportRejectedError: If the transport declines the send
        """
        raise NotImplementedError
