# tests/test_persistence.py
"""
Persistence Tests - State File Layout, Upgrades and Recovery

Files that USE this module:
- pytest (test runner executes these tests)

Files that this module USES:
- ratesync.adapters.persistence.file_store (StateStore)
- ratesync.application.* (components re-created over persisted state)
"""
import json
from decimal import Decimal
from unittest.mock import patch

import pytest

from ratesync.adapters.persistence.file_store import LAYOUT_VERSION, StateStore
from ratesync.adapters.sources.static import StaticSource
from ratesync.adapters.transport.loopback import LoopbackTransport
from ratesync.application.provider import RateProvider
from ratesync.application.receiver import RelayReceiver
from ratesync.application.registry import RateRegistry
from ratesync.application.sender import RelaySender
from ratesync.domain.errors import StateLayoutError
from ratesync.domain.models import TrustConfig
from tests.conftest import ADMIN, DEST, PROVIDER, RECEIVER, SENDER, TRANSPORT, FakeClock, ts


def _wire(store, clock, initial="1"):
    """Build every component over ``store``, the way a (re)deployment does."""
    registry = RateRegistry(store, ADMIN)
    transport = LoopbackTransport(TRANSPORT, fee=1)
    source = StaticSource("src-a", "1.25")
    sender = RelaySender(registry, transport, {source.handle: source}, store, ADMIN, SENDER, clock=clock)
    provider = RateProvider(store, PROVIDER, RECEIVER, initial, clock=clock)
    receiver = RelayReceiver(store, RECEIVER, TrustConfig(TRANSPORT, SENDER), provider, ADMIN)
    transport.attach(DEST, receiver)
    return registry, transport, sender, provider, receiver


class TestStateFile:
    def test_in_memory_store_writes_nothing(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        store = StateStore()
        store.fee_balance = 5
        store.save()
        assert list(tmp_path.iterdir()) == []

    def test_layout(self, tmp_path):
        path = tmp_path / "state.json"
        store = StateStore(path)
        registry, transport, sender, _, _ = _wire(store, FakeClock(1000))
        registry.register(ADMIN, "X", "src-a", "RATE", DEST, RECEIVER, PROVIDER)
        sender.fund(ADMIN, 10)

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["layout_version"] == LAYOUT_VERSION
        assert data["fee_balance"] == 10
        assert [f["name"] for f in data["feeds"]] == ["X"]
        assert data["rate_records"][PROVIDER]["current_value"] == "1.000000000000000000"
        assert data["trust"][RECEIVER] == {"allowed_transport": TRANSPORT, "allowed_sender": SENDER}

    def test_upgrade_keeps_state(self, tmp_path):
        path = tmp_path / "state.json"
        clock = FakeClock(1000)
        registry, transport, sender, provider, _ = _wire(StateStore(path), clock)
        for name in ("b", "a"):
            registry.register(ADMIN, name, "src-a", "RATE", DEST, RECEIVER, PROVIDER)
        sender.fund(ADMIN, 10)
        sender.sync_one("a")
        clock.now = 1100
        transport.deliver_pending()
        sender.store.compare_and_set_last_run(None, 1100)
        before = provider.read()

        # New logic over the same state: a different seed must not reset the provider
        store = StateStore(path)
        registry2, _, sender2, provider2, receiver2 = _wire(store, clock, initial="99")

        assert registry2.list() == ["b", "a"]
        assert sender2.fee_balance == 9
        assert store.last_run_at == 1100
        assert provider2.read() == before == (Decimal("1.25"), ts(1100))
        assert receiver2.trust == TrustConfig(TRANSPORT, SENDER)

    def test_unknown_fields_are_preserved(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"layout_version": 1, "pause": {"X": True}}), encoding="utf-8")

        store = StateStore(path)
        store.fee_balance = 3
        store.save()

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["pause"] == {"X": True}
        assert data["fee_balance"] == 3

    def test_missing_fields_take_defaults(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"layout_version": 1}), encoding="utf-8")

        store = StateStore(path)
        assert store.feeds == {}
        assert store.fee_balance == 0
        assert store.last_run_at is None

    def test_newer_layout_refused(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"layout_version": LAYOUT_VERSION + 1}), encoding="utf-8")
        with pytest.raises(StateLayoutError):
            StateStore(path)

    def test_non_object_refused(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(StateLayoutError):
            StateStore(path)

    def test_corrupt_file_is_backed_up(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{not json", encoding="utf-8")

        store = StateStore(path)

        assert store.feeds == {}
        assert (tmp_path / "state.json.corrupt").read_text(encoding="utf-8") == "{not json"


class TestCompareAndSet:
    def test_swap_only_from_expected(self):
        store = StateStore()
        assert store.compare_and_set_last_run(None, 100)
        assert not store.compare_and_set_last_run(None, 200)
        assert store.compare_and_set_last_run(100, 200)
        assert store.last_run_at == 200

    def test_failed_save_leaves_last_run_unchanged(self):
        store = StateStore()
        with patch.object(store, "save", side_effect=RuntimeError("disk full")):
            with pytest.raises(RuntimeError):
                store.compare_and_set_last_run(None, 100)
        assert store.last_run_at is None
        assert store.compare_and_set_last_run(None, 100)


class TestTransaction:
    def test_failed_save_rolls_back(self, tmp_path):
        path = tmp_path / "state.json"
        store = StateStore(path)
        registry, _, sender, provider, _ = _wire(store, FakeClock(1000))
        sender.fund(ADMIN, 10)

        with patch.object(store, "save", side_effect=RuntimeError("disk full")):
            with pytest.raises(RuntimeError):
                sender.fund(ADMIN, 5)
            with pytest.raises(RuntimeError):
                registry.register(ADMIN, "X", "src-a", "RATE", DEST, RECEIVER, PROVIDER)
            with pytest.raises(RuntimeError):
                provider.update(RECEIVER, "2", ts(1000))

        assert sender.fee_balance == 10
        assert registry.list() == []
        assert provider.read()[0] == Decimal("1")
        assert json.loads(path.read_text(encoding="utf-8"))["fee_balance"] == 10

    def test_error_inside_block_rolls_back(self):
        store = StateStore()
        with pytest.raises(ValueError):
            with store.transaction():
                store.fee_balance = 7
                raise ValueError("abort")
        assert store.fee_balance == 0
