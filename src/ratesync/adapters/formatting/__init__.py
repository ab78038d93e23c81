# src/ratesync/adapters/formatting/__init__.py
"""
Formatting Adapters - Operator Output

This package renders relay state as plain text.
"""

from ratesync.adapters.formatting.formatter import (
    fmt_value,
    format_feeds,
    format_rate,
    format_report,
    format_status,
)

__all__ = [
    "fmt_value",
    "format_feeds",
    "format_rate",
    "format_report",
    "format_status",
]
