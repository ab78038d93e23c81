# src/ratesync/application/topology.py
"""
Topology Loader - Feeds File

This module reads the feeds file that describes what the relay tracks: one
entry per feed with its value source, category and destination routing
triple, plus the seed value of the destination provider. Applying the
topology registers feeds that are not registered yet, so it is safe to run
on every start.

Example (config/feeds.example.json):

    {"feeds": [{"name": "rETH",
                "source": {"type": "static", "rate": "1.05"},
                "category": "EXCHANGE_RATE",
                "destination_id": 16015286601757825753,
                "destination_receiver": "0x...",
                "destination_provider": "0x...",
                "initial_rate": "1"}]}

Files that USE this module:
- ratesync.app (composition root)
- tests.test_topology (unit tests)

Files that this module USES:
- ratesync.adapters.sources (StaticSource, HttpJsonSource)
- ratesync.adapters.transport.loopback (local destinations)
- ratesync.application.registry / sender / receiver / provider
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from ratesync.adapters.persistence.file_store import StateStore
from ratesync.adapters.sources.base import ValueSource
from ratesync.adapters.sources.http_json import HttpJsonSource
from ratesync.adapters.sources.static import StaticSource
from ratesync.adapters.transport.loopback import LoopbackTransport
from ratesync.application.provider import RateProvider
from ratesync.application.receiver import RelayReceiver
from ratesync.application.registry import RateRegistry
from ratesync.application.sender import RelaySender
from ratesync.application.stats import StatsTracker
from ratesync.domain.errors import ConfigurationError
from ratesync.domain.models import TrustConfig, parse_destination_id

logger = logging.getLogger(__name__)


class StaticSourceSpec(BaseModel):
    type: Literal["static"]
    handle: Optional[str] = None
    rate: str


class HttpSourceSpec(BaseModel):
    type: Literal["http"]
    handle: Optional[str] = None
    url: str
    field: str
    invert: bool = False
    cache_seconds: int = Field(default=30, ge=0)


class FeedSpec(BaseModel):
    name: str
    source: Union[StaticSourceSpec, HttpSourceSpec] = Field(discriminator="type")
    # Plain strings: the registry decides what is valid
    category: str
    destination_id: Union[int, str]
    destination_receiver: str
    destination_provider: str
    initial_rate: str = "1"

    @property
    def source_handle(self) -> str:
        return self.source.handle or f"{self.source.type}:{self.name}"


class Topology(BaseModel):
    feeds: List[FeedSpec] = Field(default_factory=list)


@dataclass
class Destination:
    """A locally hosted destination endpoint."""
    receiver: RelayReceiver
    provider: RateProvider


def load_topology(path: Union[str, Path]) -> Topology:
    """
    Read and validate a feeds file.

    Raises:
        ConfigurationError: If the file is missing, not JSON, or does not match the schema
    """
    p = Path(path)
    try:
        with p.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigurationError(f"Cannot read feeds file {p}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Feeds file {p} is not valid JSON: {e}") from e

    try:
        topology = Topology.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Feeds file {p} is invalid: {e}") from e
    logger.info("Loaded %d feeds from %s", len(topology.feeds), p)
    return topology


def build_source(feed: FeedSpec) -> ValueSource:
    spec = feed.source
    if isinstance(spec, StaticSourceSpec):
        return StaticSource(feed.source_handle, spec.rate)
    return HttpJsonSource(
        feed.source_handle,
        url=spec.url,
        field=spec.field,
        invert=spec.invert,
        cache_seconds=spec.cache_seconds,
    )


def apply_topology(
    topology: Topology,
    registry: RateRegistry,
    sender: RelaySender,
    admin: str,
) -> List[str]:
    """
    Attach every feed's source to the sender and register missing feeds.

    Feeds already in the registry are left untouched, even if the file now
    says something different: changing a registered feed is an explicit
    deregister + register by the administrator.

    Returns:
        Names of the feeds registered by this call
    """
    registered = []
    for feed in topology.feeds:
        sender.add_source(build_source(feed))
        if feed.name in registry:
            existing = registry.lookup(feed.name)
            if existing.source_ref != feed.source_handle.lower():
                logger.warning("Feed %s is registered with source %s, file says %s; keeping registry",
                               feed.name, existing.source_ref, feed.source_handle)
            continue
        registry.register(
            admin,
            feed.name,
            feed.source_handle,
            feed.category,
            feed.destination_id,
            feed.destination_receiver,
            feed.destination_provider,
        )
        registered.append(feed.name)
    return registered


def build_local_destinations(
    topology: Topology,
    store: StateStore,
    transport: LoopbackTransport,
    admin: str,
    sender_identity: str,
    clock: Callable[[], float],
    policy,
    stats: Optional[StatsTracker] = None,
) -> Dict[str, Destination]:
    """
    Host every feed's receiver and provider in-process behind a loopback transport.

    Returns:
        Destinations by feed name
    """
    destinations = {}
    for feed in topology.feeds:
        provider = RateProvider(
            store,
            handle=feed.destination_provider,
            receiver=feed.destination_receiver,
            initial_value=feed.initial_rate,
            clock=clock,
            policy=policy,
        )
        receiver = RelayReceiver(
            store,
            handle=feed.destination_receiver,
            trust=TrustConfig(allowed_transport=transport.handle, allowed_sender=sender_identity),
            provider=provider,
            admin=admin,
            stats=stats,
        )
        transport.attach(parse_destination_id(feed.destination_id), receiver)
        destinations[feed.name] = Destination(receiver=receiver, provider=provider)
    return destinations
