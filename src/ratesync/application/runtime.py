# src/ratesync/application/runtime.py
"""
Relay Runtime - Wired Components

Holds the components the composition root builds so the operator bot and
the single-pass mode share one set of objects. Replacing any component with
a new build over the same store is how logic is upgraded in place.

Files that USE this module:
- ratesync.app (builds the runtime)
- ratesync.adapters.telegram.handlers / jobs (bot_data["runtime"])
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from ratesync.adapters.persistence.file_store import StateStore
from ratesync.adapters.transport.base import Transport
from ratesync.adapters.transport.loopback import LoopbackTransport
from ratesync.application.registry import RateRegistry
from ratesync.application.scheduler import SyncScheduler
from ratesync.application.sender import RelaySender, SyncReport
from ratesync.application.stats import StatsTracker
from ratesync.application.topology import Destination

logger = logging.getLogger(__name__)


@dataclass
class RelayRuntime:
    store: StateStore
    registry: RateRegistry
    transport: Transport
    sender: RelaySender
    scheduler: SyncScheduler
    stats: StatsTracker
    destinations: Dict[str, Destination] = field(default_factory=dict)

    def tick(self) -> Optional[SyncReport]:
        """
        One automation pass: run the scheduler, then flush a loopback transport.

        Returns:
            SyncReport if a sync ran, None if it was not due
        """
        report = self.scheduler.run()
        self.flush()
        return report

    def sync_now(self) -> SyncReport:
        """Relay every feed regardless of the scheduler window, then flush."""
        report = self.sender.sync_all()
        self.flush()
        return report

    def flush(self) -> int:
        """Deliver messages queued on a loopback transport. Returns the delivered count."""
        if not isinstance(self.transport, LoopbackTransport) or not self.transport.pending:
            return 0
        result = self.transport.deliver_pending()
        logger.info("Loopback delivered %d messages, %d failed",
                    len(result.delivered), len(result.failed))
        return len(result.delivered)
