# tests/test_sources.py
"""
Source Tests - Static and HTTP JSON Value Sources

Files that USE this module:
- pytest (test runner executes these tests)

Files that this module USES:
- ratesync.adapters.sources (StaticSource, HttpJsonSource, read_value)
- unittest.mock (Mock for HTTP responses)
- requests (exception types for mocking)
"""
from decimal import Decimal
from unittest.mock import Mock, patch

import pytest
import requests

from ratesync.adapters.sources.base import read_value
from ratesync.adapters.sources.http_json import HttpJsonSource
from ratesync.adapters.sources.static import StaticSource
from ratesync.domain.errors import ConfigurationError, SourceUnavailableError
from ratesync.domain.models import Category


def _response(payload):
    resp = Mock()
    resp.json.return_value = payload
    resp.raise_for_status.return_value = None
    return resp


class TestStaticSource:
    def test_reads(self):
        source = StaticSource("Mock-rETH", "1.05")
        assert source.handle == "mock-reth"
        assert source.get_rate() == Decimal("1.05")
        assert source.get_exchange_rate() == Decimal("1.05")

    def test_set_rate(self):
        source = StaticSource("mock", 1)
        source.set_rate("2.5")
        assert source.get_rate() == Decimal("2.5")

    def test_invalid_rate(self):
        with pytest.raises(ConfigurationError):
            StaticSource("mock", "-1")


class TestReadValue:
    def test_dispatch_by_category(self):
        source = Mock()
        source.get_rate.return_value = Decimal("1")
        source.get_exchange_rate.return_value = Decimal("2")

        assert read_value(source, Category.RATE) == Decimal("1")
        assert read_value(source, Category.EXCHANGE_RATE) == Decimal("2")


class TestHttpJsonSource:
    def test_init(self):
        source = HttpJsonSource("fx", url="https://api.example/fx", field="rates.EUR", timeout=5)
        assert source.timeout == 5
        assert source.ttl.total_seconds() == 30

    def test_missing_url_or_field(self):
        with pytest.raises(ConfigurationError):
            HttpJsonSource("fx", url="", field="rates.EUR")
        with pytest.raises(ConfigurationError):
            HttpJsonSource("fx", url="https://api.example/fx", field="")

    @patch('ratesync.adapters.sources.http_json.requests.get')
    def test_get_rate_and_cache(self, mock_get):
        mock_get.return_value = _response({"rates": {"EUR": "0.92"}})
        source = HttpJsonSource("fx", url="https://api.example/fx", field="rates.EUR", timeout=5)

        assert source.get_rate() == Decimal("0.92")
        assert source.get_rate() == Decimal("0.92")
        mock_get.assert_called_once_with("https://api.example/fx", timeout=5)

    @patch('ratesync.adapters.sources.http_json.requests.get')
    def test_zero_ttl_refetches(self, mock_get):
        mock_get.return_value = _response({"v": 1})
        source = HttpJsonSource("fx", url="https://api.example/fx", field="v", cache_seconds=0)
        source.get_rate()
        source.get_rate()
        assert mock_get.call_count == 2

    @patch('ratesync.adapters.sources.http_json.requests.get')
    def test_list_path(self, mock_get):
        mock_get.return_value = _response({"data": [{"price": 1.5}]})
        source = HttpJsonSource("fx", url="https://api.example/fx", field="data.0.price")
        assert source.get_rate() == Decimal("1.5")

    @patch('ratesync.adapters.sources.http_json.requests.get')
    def test_exchange_rate_inverted(self, mock_get):
        mock_get.return_value = _response({"rate": "1.25"})
        source = HttpJsonSource("fx", url="https://api.example/fx", field="rate", invert=True)

        assert source.get_rate() == Decimal("1.25")
        assert source.get_exchange_rate() == Decimal("0.8")

    @patch('ratesync.adapters.sources.http_json.requests.get')
    def test_invert_zero(self, mock_get):
        mock_get.return_value = _response({"rate": "0"})
        source = HttpJsonSource("fx", url="https://api.example/fx", field="rate", invert=True)
        with pytest.raises(SourceUnavailableError):
            source.get_exchange_rate()

    @patch('ratesync.adapters.sources.http_json.requests.get')
    def test_missing_field(self, mock_get):
        mock_get.return_value = _response({"rates": {}})
        source = HttpJsonSource("fx", url="https://api.example/fx", field="rates.EUR")
        with pytest.raises(SourceUnavailableError):
            source.get_rate()

    @patch('ratesync.adapters.sources.http_json.requests.get')
    def test_unusable_value(self, mock_get):
        mock_get.return_value = _response({"rate": "-3"})
        source = HttpJsonSource("fx", url="https://api.example/fx", field="rate")
        with pytest.raises(SourceUnavailableError):
            source.get_rate()

    @pytest.mark.parametrize("error", [
        requests.exceptions.Timeout(),
        requests.exceptions.ConnectionError("refused"),
        requests.exceptions.HTTPError("503 Service Unavailable"),
    ])
    @patch('ratesync.adapters.sources.http_json.requests.get')
    def test_request_errors(self, mock_get, error):
        mock_get.side_effect = error
        source = HttpJsonSource("fx", url="https://api.example/fx", field="rate")
        with pytest.raises(SourceUnavailableError):
            source.get_rate()

    @patch('ratesync.adapters.sources.http_json.requests.get')
    def test_invalid_json(self, mock_get):
        resp = _response(None)
        resp.json.side_effect = ValueError("Expecting value")
        mock_get.return_value = resp
        source = HttpJsonSource("fx", url="https://api.example/fx", field="rate")
        with pytest.raises(SourceUnavailableError):
            source.get_rate()
