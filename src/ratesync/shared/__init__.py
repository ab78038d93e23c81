# src/ratesync/shared/__init__.py
"""
Shared Utilities - Cross-cutting Concerns

This package contains shared utilities used across all layers:
- Validation
- Logging configuration
"""

from ratesync.shared.validators import (
    validate_bot_token,
    validate_destination_id,
    validate_handle,
    validate_url,
)

__all__ = [
    "validate_handle",
    "validate_destination_id",
    "validate_bot_token",
    "validate_url",
]
