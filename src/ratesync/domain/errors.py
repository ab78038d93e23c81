# src/ratesync/domain/errors.py
"""
Domain Errors - Relay Exceptions

This module defines the exceptions raised by the relay components.
Every validation failure is surfaced to the caller immediately; nothing
is retried or defaulted silently.

Files that USE this module:
- ratesync.domain.models (validation of values, categories and handles)
- ratesync.domain.codec (DecodeError)
- ratesync.application.* (all relay components)
- ratesync.adapters.* (sources, transports and persistence)
"""


class RelayError(Exception):
    """Base exception for relay errors."""
    pass


class ConfigurationError(RelayError):
    """Raised for a bad or zero handle, an unknown category or an invalid amount."""
    pass


class StateLayoutError(ConfigurationError):
    """Raised when a persisted state file uses a layout this version cannot read."""
    pass


class AuthorizationError(RelayError):
    """
    Raised when a caller is not allowed to perform an operation.

    Attributes:
        reason: Machine-readable reason ("untrusted_transport", "untrusted_sender",
                "not_admin" or "not_receiver")
    """

    def __init__(self, message: str, reason: str = "unauthorized"):
        super().__init__(message)
        self.reason = reason


class DuplicateRegistrationError(RelayError):
    """Raised when a feed name is registered twice."""
    pass


class NotFoundError(RelayError):
    """Raised when a feed name (or a source handle) is unknown."""
    pass


class InsufficientFeeError(RelayError):
    """Raised when the fee balance cannot cover a dispatch or a withdrawal."""
    pass


class TransportRejectedError(RelayError):
    """Raised when the transport declines a send."""
    pass


class DecodeError(RelayError):
    """Raised when an inbound payload does not parse as a sync message."""
    pass


class SourceUnavailableError(RelayError):
    """Raised when a value source cannot produce a value."""
    pass
