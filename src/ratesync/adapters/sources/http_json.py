# src/ratesync/adapters/sources/http_json.py
"""
HTTP JSON Value Source

This module reads a rate from a JSON HTTP endpoint. The value is located with
a dotted field path (e.g. "results.EUR" or "data.0.price"). For EXCHANGE_RATE
feeds the quote can be inverted: an API quoting EUR per USD yields USD per EUR.
Responses are cached for a short TTL so a sync_all fan-out over several feeds
sharing a URL makes one request.

Files that USE this module:
- ratesync.application.topology ("http" sources)
- tests.test_sources (unit tests)

Files that this module USES:
- ratesync.adapters.sources.base (ValueSource interface)
- ratesync.config (HTTP timeout)
"""
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Optional

import requests

from ratesync.adapters.sources.base import ValueSource
from ratesync.config import settings
from ratesync.domain.errors import ConfigurationError, SourceUnavailableError
from ratesync.domain.models import to_fixed

log = logging.getLogger(__name__)


class HttpJsonSource(ValueSource):
    def __init__(
        self,
        handle: str,
        url: str,
        field: str,
        invert: bool = False,
        timeout: Optional[int] = None,
        cache_seconds: int = 30,
    ):
        """
        Initialize HTTP JSON source.

        Args:
            handle: Source handle referenced by feeds
            url: Endpoint returning a JSON document
            field: Dotted path to the numeric value
            invert: Whether get_exchange_rate returns 1/value
            timeout: Optional HTTP timeout in seconds (defaults to settings.http_timeout_seconds)
            cache_seconds: How long a fetched value is reused
        """
        super().__init__(handle)
        if not url:
            raise ConfigurationError(f"Source {handle} has no URL")
        if not field:
            raise ConfigurationError(f"Source {handle} has no field path")
        self.url = url
        self.field = field
        self.invert = invert
        self.timeout = timeout or settings.http_timeout_seconds
        self.ttl = timedelta(seconds=cache_seconds)
        self._cache_value: Optional[Decimal] = None
        self._cache_ts: Optional[datetime] = None

    def _cache_valid(self) -> bool:
        if self._cache_value is None or self._cache_ts is None:
            return False
        return datetime.now(timezone.utc) - self._cache_ts < self.ttl

    def get_rate(self) -> Decimal:
        """
        Get the quoted value.

        Raises:
            SourceUnavailableError: If the request fails or the value is missing or invalid
        """
        if self._cache_valid():
            log.debug("Using cached value for %s: %s", self.handle, self._cache_value)
            return self._cache_value  # type: ignore[return-value]

        try:
            log.info("Fetching value for %s from %s", self.handle, self.url)
            resp = requests.get(self.url, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except requests.exceptions.Timeout as e:
            log.warning("Source %s timeout after %d seconds", self.handle, self.timeout)
            raise SourceUnavailableError(f"{self.handle}: timeout after {self.timeout}s") from e
        except requests.exceptions.HTTPError as e:
            log.error("Source %s HTTP error: %s", self.handle, e)
            raise SourceUnavailableError(f"{self.handle}: HTTP error: {e}") from e
        except requests.exceptions.RequestException as e:
            log.warning("Source %s request failed: %s", self.handle, e)
            raise SourceUnavailableError(f"{self.handle}: request failed: {e}") from e
        except ValueError as e:
            log.error("Source %s returned invalid JSON: %s", self.handle, e)
            raise SourceUnavailableError(f"{self.handle}: invalid JSON: {e}") from e

        raw = _extract(data, self.field)
        try:
            value = to_fixed(raw)
        except ConfigurationError as e:
            log.error("Source %s returned unusable value at %s: %r", self.handle, self.field, raw)
            raise SourceUnavailableError(f"{self.handle}: unusable value {raw!r}") from e

        self._cache_value = value
        self._cache_ts = datetime.now(timezone.utc)
        log.info("Source %s updated: %s=%s", self.handle, self.field, value)
        return value

    def get_exchange_rate(self) -> Decimal:
        value = self.get_rate()
        if not self.invert:
            return value
        if value <= 0:
            raise SourceUnavailableError(f"{self.handle}: cannot invert non-positive value {value}")
        return to_fixed(Decimal(1) / value)


def _extract(data: Any, path: str) -> Any:
    """Follow a dotted path through dicts and lists."""
    current = data
    for step in path.split("."):
        if isinstance(current, dict) and step in current:
            current = current[step]
        elif isinstance(current, list) and step.isdigit() and int(step) < len(current):
            current = current[int(step)]
        else:
            raise SourceUnavailableError(f"Field {path!r} missing in response")
    return current
