# src/ratesync/domain/models.py
"""
Domain Models - Relay Records and Fixed-Point Values

This module contains the records that flow through the relay:
- FeedEntry: a registry record (feed name, source, category, routing triple)
- SyncMessage: the immutable payload that crosses domains
- TrustConfig: the receiver-side allowlist (transport + sender)
- RateRecord: the destination-side value and its provenance

Values are Decimal quantities with 18 fractional digits. Timestamps are
timezone-aware UTC datetimes.

Files that USE this module:
- ratesync.domain.codec (SyncMessage wire encoding)
- ratesync.application.* (all relay components)
- ratesync.adapters.persistence.file_store (JSON conversion)
- tests.* (test data)

Files that this module USES:
- ratesync.domain.errors (ConfigurationError)
- ratesync.shared.validators (handle and destination id predicates)
"""

from __future__ import annotations  # Enable postponed evaluation of annotations

from dataclasses import dataclass  # Decorator for creating data classes
from datetime import datetime, timezone  # Date/time utilities for timestamps
from decimal import Context, Decimal, InvalidOperation, ROUND_DOWN  # Exact fixed-point arithmetic
from enum import Enum  # Feed categories
from typing import Any, Optional, Union  # Type hints

from ratesync.domain.errors import ConfigurationError
from ratesync.shared.validators import validate_destination_id, validate_handle

DECIMALS = 18
WAD = 10 ** DECIMALS
_QUANTUM = Decimal(1).scaleb(-DECIMALS)
# Wide enough for a full uint256 in 1e-18 units
_CTX = Context(prec=96)

Number = Union[Decimal, int, float, str]


def to_fixed(value: Number) -> Decimal:
    """
    Convert a number to an 18-digit fixed-point Decimal.

    Floats go through their shortest string form so 1.1 stays 1.1.
    Extra digits are truncated, never rounded up.

    Raises:
        ConfigurationError: If the value is not a finite, non-negative number
    """
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid fixed-point value: {value!r}")
    try:
        dec = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as e:
        raise ConfigurationError(f"Invalid fixed-point value: {value!r}") from e
    if not dec.is_finite():
        raise ConfigurationError(f"Fixed-point value must be finite: {value!r}")
    if dec < 0:
        raise ConfigurationError(f"Fixed-point value must be non-negative: {value!r}")
    return dec.quantize(_QUANTUM, rounding=ROUND_DOWN, context=_CTX)


def to_wire_units(value: Number) -> int:
    """Scale a value to integer 1e-18 units."""
    return int(to_fixed(value).scaleb(DECIMALS, context=_CTX))


def from_wire_units(units: int) -> Decimal:
    """Inverse of to_wire_units."""
    return to_fixed(Decimal(units).scaleb(-DECIMALS, context=_CTX))


def utc(ts: datetime) -> datetime:
    """Return ts as an aware UTC datetime (naive values are taken as UTC)."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def normalize_handle(handle: Any, what: str = "handle") -> str:
    """
    Validate a handle and return its canonical (lower-case) form.

    Raises:
        ConfigurationError: If the handle is empty, malformed or the zero address
    """
    if not isinstance(handle, str) or not validate_handle(handle):
        raise ConfigurationError(f"Invalid {what}: {handle!r}")
    return handle.strip().lower()


def parse_destination_id(destination_id: Any) -> int:
    """
    Validate a destination identifier and return it as int.

    Raises:
        ConfigurationError: If it is not a positive 64-bit integer
    """
    if not validate_destination_id(destination_id):
        raise ConfigurationError(f"Invalid destination id: {destination_id!r}")
    return int(destination_id)


class Category(str, Enum):
    """How a feed's value is read from its source."""
    RATE = "RATE"
    EXCHANGE_RATE = "EXCHANGE_RATE"

    @classmethod
    def parse(cls, token: Any) -> "Category":
        """
        Parse a category token. Only the two known tokens, matched exactly, are accepted.

        Raises:
            ConfigurationError: For any other value (never defaults)
        """
        if isinstance(token, cls):
            return token
        if isinstance(token, str):
            try:
                return cls(token)
            except ValueError:
                pass
        raise ConfigurationError(
            f"Invalid category {token!r}, expected one of: "
            + ", ".join(c.value for c in cls)
        )


@dataclass(frozen=True)
class FeedEntry:
    """
    Registry record for one feed.

    Attributes:
        name: Unique feed name
        source_ref: Handle of the ValueSource the value is read from
        category: RATE (read verbatim) or EXCHANGE_RATE (derived read)
        destination_id: Transport routing key of the target domain
        destination_receiver: Handle of the RelayReceiver on the destination
        destination_provider: Handle of the RateProvider fed by that receiver
    """
    name: str
    source_ref: str
    category: Category
    destination_id: int
    destination_receiver: str
    destination_provider: str

    def to_json(self) -> dict:
        return {
            "name": self.name,
            "source_ref": self.source_ref,
            "category": self.category.value,
            "destination_id": self.destination_id,
            "destination_receiver": self.destination_receiver,
            "destination_provider": self.destination_provider,
        }

    @staticmethod
    def from_json(data: dict) -> "FeedEntry":
        return FeedEntry(
            name=str(data["name"]),
            source_ref=str(data["source_ref"]),
            category=Category.parse(data["category"]),
            destination_id=int(data["destination_id"]),
            destination_receiver=str(data["destination_receiver"]),
            destination_provider=str(data["destination_provider"]),
        )


@dataclass(frozen=True)
class SyncMessage:
    """
    Wire payload carried from the sender to a receiver.

    Carries no feed name: routing is by receiver/provider address.

    Attributes:
        value: Non-negative 18-digit fixed-point value
        produced_at: When the sender read the value (UTC, whole seconds on the wire)
    """
    value: Decimal
    produced_at: datetime

    def __post_init__(self):
        object.__setattr__(self, "value", to_fixed(self.value))
        object.__setattr__(self, "produced_at", utc(self.produced_at))


@dataclass(frozen=True)
class TrustConfig:
    """Receiver allowlist: both identities must match on every delivery."""
    allowed_transport: str
    allowed_sender: str

    def to_json(self) -> dict:
        return {
            "allowed_transport": self.allowed_transport,
            "allowed_sender": self.allowed_sender,
        }

    @staticmethod
    def from_json(data: dict) -> "TrustConfig":
        return TrustConfig(
            allowed_transport=str(data["allowed_transport"]),
            allowed_sender=str(data["allowed_sender"]),
        )


@dataclass(frozen=True)
class RateRecord:
    """
    Destination-side state of one provider.

    Attributes:
        current_value: Latest applied value
        last_updated_at: When the value was applied (seed time until the first delivery)
        produced_at: Source-side timestamp of the applied message (None while seeded)
    """
    current_value: Decimal
    last_updated_at: datetime
    produced_at: Optional[datetime] = None

    def to_json(self) -> dict:
        return {
            "current_value": str(self.current_value),
            "last_updated_at": self.last_updated_at.isoformat(),
            "produced_at": self.produced_at.isoformat() if self.produced_at else None,
        }

    @staticmethod
    def from_json(data: dict) -> "RateRecord":
        produced_raw = data.get("produced_at")
        return RateRecord(
            current_value=to_fixed(data["current_value"]),
            last_updated_at=_parse_ts(data["last_updated_at"]),
            produced_at=_parse_ts(produced_raw) if produced_raw else None,
        )


def _parse_ts(raw: str) -> datetime:
    # Accept both "...Z" and "+00:00"
    return utc(datetime.fromisoformat(raw.replace("Z", "+00:00")))
