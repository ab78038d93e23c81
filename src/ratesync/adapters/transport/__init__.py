# src/ratesync/adapters/transport/__init__.py
"""
Transport Adapters - Cross-Domain Delivery

This package contains the transports sync messages are dispatched through.
"""

from ratesync.adapters.transport.base import Transport
from ratesync.adapters.transport.loopback import DeliveryResult, Envelope, LoopbackTransport
from ratesync.adapters.transport.http_gateway import HttpGatewayTransport

__all__ = [
    "Transport",
    "LoopbackTransport",
    "Envelope",
    "DeliveryResult",
    "HttpGatewayTransport",
]
