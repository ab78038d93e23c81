# tests/test_sender.py
"""
Sender Tests - Source Reads, Fee Handling and Dispatch

Files that USE this module:
- pytest (test runner executes these tests)

Files that this module USES:
- ratesync.application.sender (RelaySender)
- ratesync.application.stats (StatsTracker)
- unittest.mock (Mock transport and sources)
"""
from decimal import Decimal
from unittest.mock import Mock, patch

import pytest

from ratesync.adapters.sources.static import StaticSource
from ratesync.application.sender import RelaySender
from ratesync.application.stats import StatsTracker
from ratesync.domain.codec import decode
from ratesync.domain.errors import (
    AuthorizationError,
    ConfigurationError,
    InsufficientFeeError,
    NotFoundError,
    SourceUnavailableError,
    TransportRejectedError,
)
from tests.conftest import ADMIN, DEST, PROVIDER, RECEIVER, SENDER, ts


def _transport(fee=10):
    transport = Mock()
    transport.quote_fee.return_value = fee
    transport.send.return_value = "msg-1"
    return transport


def _sender(store, registry, clock, transport, sources=None, stats=None):
    if sources is None:
        source = StaticSource("src-a", "1.25")
        sources = {source.handle: source}
    return RelaySender(registry, transport, sources, store, ADMIN, SENDER, clock=clock, stats=stats)


class TestSyncOne:
    def test_dispatches_and_debits_fee(self, store, registry, clock):
        transport = _transport(fee=10)
        sender = _sender(store, registry, clock, transport)
        registry.register(ADMIN, "X", "src-a", "RATE", DEST, RECEIVER, PROVIDER)
        sender.fund(ADMIN, 100)

        attempt = sender.sync_one("X")

        assert attempt.ok
        assert attempt.fee == 10
        assert attempt.message_id == "msg-1"
        assert attempt.value == Decimal("1.25")
        assert sender.fee_balance == 90

        args = transport.send.call_args[0]
        assert args[0] == DEST
        assert args[1] == RECEIVER
        assert args[3] == SENDER
        message = decode(args[2])
        assert message.value == Decimal("1.25")
        assert message.produced_at == ts(clock.now)

    def test_exchange_rate_feed_uses_derived_read(self, store, registry, clock):
        source = Mock()
        source.get_exchange_rate.return_value = Decimal("0.8")
        sender = _sender(store, registry, clock, _transport(fee=0), sources={"src-m": source})
        registry.register(ADMIN, "X", "src-m", "EXCHANGE_RATE", DEST, RECEIVER, PROVIDER)

        attempt = sender.sync_one("X")

        assert attempt.value == Decimal("0.8")
        source.get_exchange_rate.assert_called_once()
        source.get_rate.assert_not_called()

    def test_insufficient_fee(self, store, registry, clock):
        transport = _transport(fee=10)
        sender = _sender(store, registry, clock, transport)
        registry.register(ADMIN, "X", "src-a", "RATE", DEST, RECEIVER, PROVIDER)
        sender.fund(ADMIN, 5)

        with pytest.raises(InsufficientFeeError):
            sender.sync_one("X")

        transport.send.assert_not_called()
        assert sender.fee_balance == 5

    def test_rejected_send_is_refunded(self, store, registry, clock):
        transport = _transport(fee=10)
        transport.send.side_effect = TransportRejectedError("unsupported destination")
        sender = _sender(store, registry, clock, transport)
        registry.register(ADMIN, "X", "src-a", "RATE", DEST, RECEIVER, PROVIDER)
        sender.fund(ADMIN, 100)

        with pytest.raises(TransportRejectedError):
            sender.sync_one("X")
        assert sender.fee_balance == 100

    def test_failed_save_after_send_keeps_debit(self, store, registry, clock):
        transport = _transport(fee=10)
        sender = _sender(store, registry, clock, transport)
        registry.register(ADMIN, "X", "src-a", "RATE", DEST, RECEIVER, PROVIDER)
        sender.fund(ADMIN, 100)

        with patch.object(store, "save", side_effect=RuntimeError("Failed to save state file: disk full")):
            with pytest.raises(RuntimeError):
                sender.sync_one("X")

        # The message left, so its fee is spent
        transport.send.assert_called_once()
        assert sender.fee_balance == 90

    def test_unknown_feed(self, store, registry, clock):
        sender = _sender(store, registry, clock, _transport())
        with pytest.raises(NotFoundError):
            sender.sync_one("nope")

        failed = sender.recent_attempts[-1]
        assert not failed.ok
        assert failed.destination_id is None

    def test_unknown_source(self, store, registry, clock):
        transport = _transport()
        sender = _sender(store, registry, clock, transport)
        registry.register(ADMIN, "X", "src-missing", "RATE", DEST, RECEIVER, PROVIDER)

        with pytest.raises(NotFoundError):
            sender.sync_one("X")
        transport.quote_fee.assert_not_called()

    def test_source_failure_propagates(self, store, registry, clock):
        source = Mock()
        source.get_rate.side_effect = SourceUnavailableError("down")
        transport = _transport()
        sender = _sender(store, registry, clock, transport, sources={"src-m": source})
        registry.register(ADMIN, "X", "src-m", "RATE", DEST, RECEIVER, PROVIDER)

        with pytest.raises(SourceUnavailableError):
            sender.sync_one("X")
        transport.send.assert_not_called()

    def test_attempts_recorded_in_stats(self, store, registry, clock):
        stats = StatsTracker()
        sender = _sender(store, registry, clock, _transport(fee=10), stats=stats)
        registry.register(ADMIN, "X", "src-a", "RATE", DEST, RECEIVER, PROVIDER)
        sender.fund(ADMIN, 15)

        sender.sync_one("X")
        with pytest.raises(InsufficientFeeError):
            sender.sync_one("X")

        today = stats.get_today_summary()
        assert today["attempts"] == 2
        assert today["successes"] == 1
        assert today["failures"] == 1
        assert today["fees_spent"] == 10
        assert "InsufficientFeeError" in today["last_error"]


class TestSyncAll:
    def test_failure_does_not_stop_other_feeds(self, store, registry, clock):
        sender = _sender(store, registry, clock, _transport(fee=0))
        registry.register(ADMIN, "broken", "src-missing", "RATE", DEST, RECEIVER, PROVIDER)
        registry.register(ADMIN, "X", "src-a", "RATE", DEST, RECEIVER, PROVIDER)

        report = sender.sync_all()

        assert list(report.attempts) == ["X"]
        assert isinstance(report.failures["broken"], NotFoundError)
        assert not report.ok

    def test_empty_registry(self, store, registry, clock):
        report = _sender(store, registry, clock, _transport()).sync_all()
        assert report.ok
        assert report.attempts == {}


class TestFeeBalance:
    def test_fund_and_withdraw(self, store, registry, clock):
        sender = _sender(store, registry, clock, _transport())
        assert sender.fund(ADMIN, 50) == 50
        assert sender.withdraw(ADMIN, 20) == 30
        assert store.fee_balance == 30

    def test_withdraw_more_than_balance(self, store, registry, clock):
        sender = _sender(store, registry, clock, _transport())
        sender.fund(ADMIN, 10)
        with pytest.raises(InsufficientFeeError):
            sender.withdraw(ADMIN, 11)
        assert sender.fee_balance == 10

    def test_admin_only(self, store, registry, clock):
        sender = _sender(store, registry, clock, _transport())
        with pytest.raises(AuthorizationError):
            sender.fund("mallory", 10)
        with pytest.raises(AuthorizationError):
            sender.withdraw("mallory", 10)

    @pytest.mark.parametrize("amount", [0, -1, True, 1.5, "10"])
    def test_invalid_amounts(self, store, registry, clock, amount):
        sender = _sender(store, registry, clock, _transport())
        with pytest.raises(ConfigurationError):
            sender.fund(ADMIN, amount)
