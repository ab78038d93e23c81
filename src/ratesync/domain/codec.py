# src/ratesync/domain/codec.py
"""
Message Codec - SyncMessage Wire Format

A SyncMessage travels as 64 bytes: two big-endian unsigned 256-bit words,
the value in 1e-18 units followed by produced_at in Unix seconds. This is
the abi.encode(uint256, uint256) layout receivers on EVM domains expect.

Files that USE this module:
- ratesync.application.sender (encode before dispatch)
- ratesync.application.receiver (decode on delivery)
- ratesync.adapters.transport.http_gateway (hex payloads)

Files that this module USES:
- ratesync.domain.models (SyncMessage, wire unit conversion)
- ratesync.domain.errors (DecodeError)
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Union

from ratesync.domain.errors import ConfigurationError, DecodeError
from ratesync.domain.models import SyncMessage, from_wire_units, to_wire_units

WORD_SIZE = 32
MESSAGE_SIZE = 2 * WORD_SIZE
MAX_UINT256 = 2 ** 256 - 1

Payload = Union[bytes, bytearray, memoryview, str]


def encode(message: SyncMessage) -> bytes:
    """
    Encode a SyncMessage to its 64-byte wire form.

    Args:
        message: Message to encode

    Returns:
        Encoded payload
    """
    units = to_wire_units(message.value)
    seconds = int(message.produced_at.timestamp())
    if units > MAX_UINT256:
        raise ConfigurationError(f"Value does not fit in uint256: {message.value}")
    if seconds < 0:
        raise ConfigurationError(f"produced_at before the epoch: {message.produced_at}")
    return units.to_bytes(WORD_SIZE, "big") + seconds.to_bytes(WORD_SIZE, "big")


def decode(payload: Payload) -> SyncMessage:
    """
    Decode a wire payload into a SyncMessage.

    Args:
        payload: Raw bytes, or a 0x-prefixed hex string as carried by HTTP gateways

    Returns:
        Decoded SyncMessage

    Raises:
        DecodeError: If the payload has the wrong type, length or content
    """
    raw = _as_bytes(payload)
    if len(raw) != MESSAGE_SIZE:
        raise DecodeError(f"Expected {MESSAGE_SIZE} bytes, got {len(raw)}")

    units = int.from_bytes(raw[:WORD_SIZE], "big")
    seconds = int.from_bytes(raw[WORD_SIZE:], "big")
    try:
        produced_at = datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as e:
        raise DecodeError(f"Unrepresentable timestamp: {seconds}") from e
    return SyncMessage(value=from_wire_units(units), produced_at=produced_at)


def to_hex(payload: bytes) -> str:
    return "0x" + bytes(payload).hex()


def _as_bytes(payload: Payload) -> bytes:
    if isinstance(payload, (bytes, bytearray, memoryview)):
        return bytes(payload)
    if isinstance(payload, str):
        text = payload.strip()
        if text.lower().startswith("0x"):
            text = text[2:]
        try:
            return bytes.fromhex(text)
        except ValueError as e:
            raise DecodeError(f"Payload is not valid hex: {e}") from e
    raise DecodeError(f"Unsupported payload type: {type(payload).__name__}")
