# src/ratesync/application/__init__.py
"""
Application Layer - Relay Components

This package contains the relay components that operate on the shared
state store: registry, sender, receiver, provider and scheduler.
"""

from ratesync.application.registry import RateRegistry
from ratesync.application.sender import RelayAttempt, RelaySender, SyncReport
from ratesync.application.provider import RateProvider, UpdatePolicy
from ratesync.application.receiver import RelayReceiver
from ratesync.application.scheduler import SyncScheduler, is_due
from ratesync.application.stats import StatsTracker

__all__ = [
    "RateRegistry",
    "RelaySender",
    "RelayAttempt",
    "SyncReport",
    "RateProvider",
    "UpdatePolicy",
    "RelayReceiver",
    "SyncScheduler",
    "is_due",
    "StatsTracker",
]
