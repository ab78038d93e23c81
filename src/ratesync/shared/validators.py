# src/ratesync/shared/validators.py
"""
Input Validation Utilities - Handles, Identifiers and Settings

This module provides the validation predicates used for configuration and for
every handle that enters the relay (feed routing, trust configuration, admin
identities). The predicates return booleans; callers decide which error to raise.

Files that USE this module:
- ratesync.config.settings (Settings field validators)
- ratesync.domain.models (normalize_handle, parse_destination_id)

Files that this module USES:
- None (pure utility functions)
"""
import re
from typing import Optional

_ADDRESS_RE = re.compile(r'^0x[0-9a-fA-F]{40}$')
_HANDLE_RE = re.compile(r'^[A-Za-z0-9_.:/@-]+$')
_ZERO_RE = re.compile(r'^(0x)?0+$', re.IGNORECASE)

# Destination identifiers are 64-bit chain selectors
MAX_DESTINATION_ID = 2 ** 64 - 1


def validate_handle(handle: Optional[str]) -> bool:
    """
    Validate a component handle (address).

    Handles are opaque strings. A handle that looks like an address ("0x"
    prefix) must be 20 bytes of hex. A handle made only of zeros, with or
    without the prefix, is a null handle and is rejected.

    Args:
        handle: Handle to validate

    Returns:
        True if valid, False otherwise
    """
    if not handle or not isinstance(handle, str):
        return False

    handle = handle.strip()
    if _ZERO_RE.match(handle):
        return False
    if handle.lower().startswith("0x"):
        return bool(_ADDRESS_RE.match(handle))
    return bool(_HANDLE_RE.match(handle))


def validate_destination_id(destination_id) -> bool:
    """
    Validate a destination identifier (positive 64-bit integer or its decimal string).

    Args:
        destination_id: Identifier to validate

    Returns:
        True if valid, False otherwise
    """
    if isinstance(destination_id, bool):
        return False
    if isinstance(destination_id, str):
        if not re.match(r'^\d+$', destination_id.strip()):
            return False
        destination_id = int(destination_id.strip())
    if not isinstance(destination_id, int):
        return False
    return 0 < destination_id <= MAX_DESTINATION_ID


def validate_bot_token(token: str) -> bool:
    """
    Validate Telegram bot token format.

    Args:
        token: Bot token to validate

    Returns:
        True if valid, False otherwise
    """
    if not token:
        return False

    # Bot tokens should be in format: 123456789:ABCDEFghijklmnopQRSTUVwxyz
    pattern = r'^\d{8,10}:[A-Za-z0-9_-]{35}$'
    return bool(re.match(pattern, token))


def validate_url(url: str) -> bool:
    """Validate that a URL is http(s)."""
    if not url:
        return False
    return bool(re.match(r'^https?://[^\s/$.?#].[^\s]*$', url))
