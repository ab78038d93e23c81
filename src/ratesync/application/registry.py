# src/ratesync/application/registry.py
"""
Rate Registry - Tracked Feeds on the Source Side

This module maps feed names to their source and destination routing triple
(destination id, receiver, provider). Only the administrator mutates the
registry; the relay sender reads it.

Files that USE this module:
- ratesync.application.sender (lookup, list)
- ratesync.application.topology (register feeds from the topology file)
- ratesync.adapters.telegram.handlers (/feeds)
- tests.test_registry (unit tests)

Files that this module USES:
- ratesync.adapters.persistence.file_store (StateStore, durable feed entries)
- ratesync.application.access (require_admin)
- ratesync.domain.models (FeedEntry, Category, handle validation)
"""
from __future__ import annotations

import logging
from typing import List

from ratesync.adapters.persistence.file_store import StateStore
from ratesync.application.access import require_admin
from ratesync.domain.errors import ConfigurationError, DuplicateRegistrationError, NotFoundError
from ratesync.domain.models import Category, FeedEntry, normalize_handle, parse_destination_id

logger = logging.getLogger(__name__)


class RateRegistry:
    """Registry of tracked feeds, stored in the shared state arena."""

    def __init__(self, store: StateStore, admin: str):
        """
        Args:
            store: State arena holding the feed entries
            admin: Administrator handle
        """
        self.store = store
        self.admin = normalize_handle(admin, "admin handle")

    def register(
        self,
        caller: str,
        name: str,
        source_ref: str,
        category,
        destination_id,
        destination_receiver: str,
        destination_provider: str,
    ) -> FeedEntry:
        """
        Register a new feed.

        Every argument is validated before anything is written, so a failed
        registration leaves the registry unchanged.

        Args:
            caller: Handle of the caller (must be the administrator)
            name: Unique feed name
            source_ref: Handle of the value source
            category: "RATE" or "EXCHANGE_RATE" (or a Category)
            destination_id: Transport routing key of the destination
            destination_receiver: Receiver handle on the destination
            destination_provider: Provider handle on the destination

        Returns:
            The stored FeedEntry

        Raises:
            AuthorizationError: If caller is not the administrator
            ConfigurationError: For an empty or padded name, unknown category or invalid handle
            DuplicateRegistrationError: If the name is already registered
        """
        require_admin(caller, self.admin, "register")
        # Names are matched exactly by lookup and deregister
        if not isinstance(name, str) or not name.strip() or name != name.strip():
            raise ConfigurationError(f"Invalid feed name: {name!r}")

        entry = FeedEntry(
            name=name,
            source_ref=normalize_handle(source_ref, "source handle"),
            category=Category.parse(category),
            destination_id=parse_destination_id(destination_id),
            destination_receiver=normalize_handle(destination_receiver, "receiver handle"),
            destination_provider=normalize_handle(destination_provider, "provider handle"),
        )

        with self.store.lock:
            if name in self.store.feeds:
                raise DuplicateRegistrationError(f"Feed already registered: {name}")
            with self.store.transaction():
                self.store.feeds[name] = entry

        logger.info(
            "Registered feed %s: %s from %s -> destination %s receiver %s provider %s",
            name, entry.category.value, entry.source_ref, entry.destination_id,
            entry.destination_receiver, entry.destination_provider,
        )
        return entry

    def deregister(self, caller: str, name: str) -> FeedEntry:
        """
        Remove a feed.

        Raises:
            AuthorizationError: If caller is not the administrator
            NotFoundError: If the feed is unknown
        """
        require_admin(caller, self.admin, "deregister")
        with self.store.transaction():
            entry = self.store.feeds.pop(name, None)
            if entry is None:
                raise NotFoundError(f"Unknown feed: {name}")
        logger.info("Deregistered feed %s", name)
        return entry

    def lookup(self, name: str) -> FeedEntry:
        """
        Return the entry for ``name``.

        Raises:
            NotFoundError: If the feed is unknown
        """
        entry = self.store.feeds.get(name)
        if entry is None:
            raise NotFoundError(f"Unknown feed: {name}")
        return entry

    def list(self) -> List[str]:
        """Feed names in registration order (a fresh list on every call)."""
        with self.store.lock:
            return list(self.store.feeds)

    def __len__(self) -> int:
        return len(self.store.feeds)

    def __contains__(self, name: object) -> bool:
        return name in self.store.feeds
