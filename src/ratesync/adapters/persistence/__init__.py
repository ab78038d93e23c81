# src/ratesync/adapters/persistence/__init__.py
"""
Persistence Adapters - Durable State

This package contains the JSON-backed state store shared by all relay components.
"""

from ratesync.adapters.persistence.file_store import LAYOUT_VERSION, StateStore

__all__ = [
    "StateStore",
    "LAYOUT_VERSION",
]
