# tests/conftest.py
"""
Shared Test Fixtures - Identities, Clock and Wired Components

Files that USE this module:
- pytest (fixtures are injected into every test module)

Files that this module USES:
- ratesync.adapters.persistence.file_store (in-memory StateStore)
- ratesync.application (registry, sender, receiver, provider)
- ratesync.adapters.transport.loopback (LoopbackTransport)
"""
from datetime import datetime, timezone

import pytest

from ratesync.adapters.persistence.file_store import StateStore
from ratesync.adapters.sources.static import StaticSource
from ratesync.adapters.transport.loopback import LoopbackTransport
from ratesync.application.provider import RateProvider
from ratesync.application.receiver import RelayReceiver
from ratesync.application.registry import RateRegistry
from ratesync.application.sender import RelaySender
from ratesync.domain.models import TrustConfig

ADMIN = "relay-admin"
SENDER = "relay-sender"
TRANSPORT = "loopback"
RECEIVER = "0x" + "1" * 40
PROVIDER = "0x" + "2" * 40
DEST = 5009297550715157269


def ts(seconds: float) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


class FakeClock:
    """Settable Unix clock."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return StateStore()


@pytest.fixture
def registry(store):
    return RateRegistry(store, ADMIN)


@pytest.fixture
def relay(store, registry, clock):
    """
    A feed "X" read from a static source at 1.0, relayed over a loopback
    transport to a receiver/provider pair hosted in the same store.
    """
    transport = LoopbackTransport(TRANSPORT, fee=10)
    source = StaticSource("mock-x", "1.000000000000000000")
    sender = RelaySender(
        registry, transport, {source.handle: source}, store, ADMIN, SENDER, clock=clock
    )
    provider = RateProvider(store, PROVIDER, RECEIVER, "0.5", clock=clock)
    receiver = RelayReceiver(store, RECEIVER, TrustConfig(TRANSPORT, SENDER), provider, ADMIN)
    transport.attach(DEST, receiver)
    registry.register(ADMIN, "X", "mock-x", "RATE", DEST, RECEIVER, PROVIDER)
    sender.fund(ADMIN, 100)
    return {
        "transport": transport,
        "source": source,
        "sender": sender,
        "provider": provider,
        "receiver": receiver,
    }
