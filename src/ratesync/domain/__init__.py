# src/ratesync/domain/__init__.py
"""
Domain Layer - Relay Records, Errors and Wire Codec

This package contains the relay's records, its error taxonomy and the
message codec. No dependencies on infrastructure or external systems.
"""

from ratesync.domain.models import (
    Category,
    FeedEntry,
    RateRecord,
    SyncMessage,
    TrustConfig,
)
from ratesync.domain.errors import (
    AuthorizationError,
    ConfigurationError,
    DecodeError,
    DuplicateRegistrationError,
    InsufficientFeeError,
    NotFoundError,
    RelayError,
    SourceUnavailableError,
    StateLayoutError,
    TransportRejectedError,
)
from ratesync.domain.codec import decode, encode

__all__ = [
    "Category",
    "FeedEntry",
    "RateRecord",
    "SyncMessage",
    "TrustConfig",
    "RelayError",
    "ConfigurationError",
    "StateLayoutError",
    "AuthorizationError",
    "DuplicateRegistrationError",
    "NotFoundError",
    "InsufficientFeeError",
    "TransportRejectedError",
    "DecodeError",
    "SourceUnavailableError",
    "encode",
    "decode",
]
