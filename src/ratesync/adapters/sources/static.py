# src/ratesync/adapters/sources/static.py
"""
Static Value Source

A source holding a value set by an operator, the equivalent of the mock
rToken used for test deployments. Both reads return the stored value.

Files that USE this module:
- ratesync.application.topology ("static" sources)
- tests.* (deterministic sources)
"""
from __future__ import annotations

import logging
import threading
from decimal import Decimal

from ratesync.adapters.sources.base import ValueSource
from ratesync.domain.models import Number, to_fixed

log = logging.getLogger(__name__)


class StaticSource(ValueSource):
    def __init__(self, handle: str, rate: Number):
        super().__init__(handle)
        self._lock = threading.Lock()
        self._rate = to_fixed(rate)

    def set_rate(self, rate: Number) -> None:
        value = to_fixed(rate)
        with self._lock:
            self._rate = value
        log.info("Static source %s set to %s", self.handle, value)

    def get_rate(self) -> Decimal:
        with self._lock:
            return self._rate

    def get_exchange_rate(self) -> Decimal:
        return self.get_rate()
