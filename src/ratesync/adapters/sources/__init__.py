# src/ratesync/adapters/sources/__init__.py
"""
Value Source Adapters

This package contains the sources a feed's value is read from.
"""

from ratesync.adapters.sources.base import ValueSource, read_value
from ratesync.adapters.sources.static import StaticSource
from ratesync.adapters.sources.http_json import HttpJsonSource

__all__ = [
    "ValueSource",
    "read_value",
    "StaticSource",
    "HttpJsonSource",
]
