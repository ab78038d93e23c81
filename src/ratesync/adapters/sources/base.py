# src/ratesync/adapters/sources/base.py
"""
Base Value Source Interface

This module defines the contract every value source implements. A source
exposes two reads: the plain rate (RATE feeds, relayed verbatim) and the
exchange rate (EXCHANGE_RATE feeds, whose derivation is source-specific).

Files that USE this module:
- ratesync.adapters.sources.static (StaticSource)
- ratesync.adapters.sources.http_json (HttpJsonSource)
- ratesync.application.sender (read_value)
- ratesync.application.topology (builds sources)

Files that this module USES:
- ratesync.domain.models (Category)
"""
from abc import ABC, abstractmethod
from decimal import Decimal

from ratesync.domain.models import Category, normalize_handle


class ValueSource(ABC):
    def __init__(self, handle: str):
        self.handle = normalize_handle(handle, "source handle")

    @abstractmethod
    def get_rate(self) -> Decimal:
        """Return the current rate, read verbatim."""
        raise NotImplementedError

    @abstractmethod
    def get_exchange_rate(self) -> Decimal:
        """Return the current exchange rate (source-specific derivation)."""
        raise NotImplementedError


def read_value(source: ValueSource, category: Category) -> Decimal:
    """Read ``source`` the way ``category`` says to."""
    if category is Category.EXCHANGE_RATE:
        return source.get_exchange_rate()
    return source.get_rate()
