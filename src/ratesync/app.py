# src/ratesync/app.py
"""
Application Entry Point - Relay Wiring and Startup

This module serves as the composition root for the rate synchronization
relay. It wires the state store, registry, transport, sender, destinations
and scheduler, then either starts the operator bot (whose job queue acts as
the automation trigger) or runs a single automation pass.

Files that USE this module:
- python -m ratesync (module entry point)
- ratesync console script

Files that this module USES:
- ratesync.shared.logging_conf (setup_logging for logging configuration)
- ratesync.config (settings for configuration management)
- ratesync.application.* (relay components)
- ratesync.adapters.* (store, transport, telegram bot)
"""

from __future__ import annotations

import atexit
import logging
import os
import sys
import time
from datetime import timedelta
from pathlib import Path
from typing import Callable

from telegram.ext import Application
from telegram.error import Conflict, NetworkError, TimedOut

from ratesync.adapters.formatting.formatter import format_report
from ratesync.adapters.persistence.file_store import StateStore
from ratesync.adapters.transport.base import Transport
from ratesync.adapters.transport.http_gateway import HttpGatewayTransport
from ratesync.adapters.transport.loopback import LoopbackTransport
from ratesync.application.provider import UpdatePolicy
from ratesync.application.registry import RateRegistry
from ratesync.application.runtime import RelayRuntime
from ratesync.application.scheduler import SyncScheduler
from ratesync.application.sender import RelaySender
from ratesync.application.stats import StatsTracker
from ratesync.application.topology import (
    apply_topology,
    build_local_destinations,
    load_topology,
)
from ratesync.config import Settings
from ratesync.shared.logging_conf import setup_logging

logger = logging.getLogger(__name__)


# PID file path for preventing multiple instances
# Can be overridden via RATESYNC_PID_FILE environment variable
def _get_pid_file() -> Path:
    """Get PID file path from environment or next to the state file."""
    pid_file = os.environ.get("RATESYNC_PID_FILE")
    if pid_file:
        return Path(pid_file)
    from ratesync.config import settings
    return settings.state_file.parent / "relay.pid"


def _check_existing_instance() -> None:
    """
    Check if another relay instance is already running.

    Raises RuntimeError if PID file exists and process is still running.
    """
    pid_file = _get_pid_file()
    if not pid_file.exists():
        return
    try:
        old_pid = int(pid_file.read_text().strip())
    except (ValueError, OSError):
        pid_file.unlink(missing_ok=True)
        return

    try:
        os.kill(old_pid, 0)  # signal 0 only checks existence
    except ProcessLookupError:
        pid_file.unlink(missing_ok=True)
        return
    raise RuntimeError(
        f"Another relay instance is already running (PID: {old_pid}).\n"
        f"Please stop it first with: kill {old_pid}"
    )


def _create_pid_file() -> None:
    pid_file = _get_pid_file()
    pid_file.parent.mkdir(parents=True, exist_ok=True)
    pid_file.write_text(str(os.getpid()))


def _remove_pid_file() -> None:
    try:
        _get_pid_file().unlink(missing_ok=True)
    except OSError as e:
        logger.warning("Could not remove PID file: %s", e)


def _build_transport(cfg: Settings) -> Transport:
    if cfg.transport_url:
        return HttpGatewayTransport(
            cfg.transport_address,
            cfg.transport_url,
            timeout=cfg.http_timeout_seconds,
        )
    return LoopbackTransport(cfg.transport_address, fee=cfg.loopback_fee)


def build_runtime(cfg: Settings, clock: Callable[[], float] = time.time) -> RelayRuntime:
    """
    Wire every relay component from settings.

    A state file that does not exist yet marks a fresh deployment: it is
    funded with INITIAL_FEE_BALANCE. Existing state is reused as is, so
    restarting (or upgrading the code) keeps feeds, balance, schedule and
    provider records.

    Args:
        cfg: Settings to build from
        clock: Returns the current Unix time

    Returns:
        RelayRuntime holding the wired components

    Raises:
        ConfigurationError: If the feeds file is invalid
        StateLayoutError: If the state file was written by a newer layout
    """
    fresh = not Path(cfg.state_file).exists()
    store = StateStore(cfg.state_file)
    stats = StatsTracker(cfg.stats_file)
    registry = RateRegistry(store, cfg.admin_address)
    transport = _build_transport(cfg)
    sender = RelaySender(
        registry,
        transport,
        sources={},
        store=store,
        admin=cfg.admin_address,
        identity=cfg.sender_address,
        clock=clock,
        stats=stats,
    )

    if fresh and cfg.initial_fee_balance > 0:
        sender.fund(cfg.admin_address, cfg.initial_fee_balance)

    destinations = {}
    if Path(cfg.feeds_file).exists():
        topology = load_topology(cfg.feeds_file)
        added = apply_topology(topology, registry, sender, cfg.admin_address)
        if added:
            logger.info("Registered feeds: %s", ", ".join(added))
        if isinstance(transport, LoopbackTransport):
            destinations = build_local_destinations(
                topology,
                store,
                transport,
                admin=cfg.admin_address,
                sender_identity=cfg.sender_address,
                clock=clock,
                policy=UpdatePolicy.parse(cfg.update_policy),
                stats=stats,
            )
    else:
        logger.warning("Feeds file %s not found; relaying registered feeds only", cfg.feeds_file)

    scheduler = SyncScheduler(sender, store, cfg.sync_interval_seconds, clock=clock)
    return RelayRuntime(
        store=store,
        registry=registry,
        transport=transport,
        sender=sender,
        scheduler=scheduler,
        stats=stats,
        destinations=destinations,
    )


def _run_bot(cfg: Settings, runtime: RelayRuntime) -> None:
    from ratesync.adapters.telegram.handlers import build_handlers
    from ratesync.adapters.telegram.jobs import automation_job, startup_notification

    app = Application.builder().token(cfg.bot_token).build()
    app.bot_data["runtime"] = runtime

    for h in build_handlers():
        app.add_handler(h)

    # Automation trigger: polls the scheduler, which decides whether a sync is due
    app.job_queue.run_repeating(
        callback=automation_job,
        interval=timedelta(seconds=cfg.automation_poll_seconds),
        first=0,
        name="relay_automation",
    )
    app.job_queue.run_once(
        callback=startup_notification,
        when=5,
        name="startup_notification",
    )

    logger.info(
        "Starting bot polling… sync interval=%ds, automation poll=%ds",
        cfg.sync_interval_seconds,
        cfg.automation_poll_seconds,
    )

    try:
        app.run_polling(
            close_loop=False,
            stop_signals=None,  # let the supervisor handle signals
            allowed_updates=None,
            drop_pending_updates=False,
        )
    except Conflict as e:
        logger.error("Telegram Conflict error: %s", e, exc_info=True)
        logger.error("Another process is polling with this BOT_TOKEN; stop it and restart")
        raise
    except (TimedOut, NetworkError) as e:
        logger.error(
            "Network error during bot operation: %s (type: %s)",
            e,
            type(e).__name__,
            exc_info=True,
        )
        raise


def run_once(runtime: RelayRuntime) -> int:
    """
    Single automation pass for cron-style triggers.

    Returns:
        Process exit code: 0 if nothing failed, 1 otherwise
    """
    report = runtime.tick()
    print(format_report(report))
    if report is not None and report.failures:
        return 1
    return 0


def main() -> None:
    """
    Initialize and start the relay.

    This function:
    1. Sets up logging from settings
    2. Acquires the single-instance PID lock
    3. Wires the relay components
    4. Starts the operator bot, or runs one automation pass without BOT_TOKEN
    """
    from ratesync.config import settings

    setup_logging(
        level=logging.INFO,
        log_file=settings.log_file,
        log_dir=settings.log_dir,
        max_bytes=settings.log_max_bytes,
        backup_count=settings.log_backup_count,
        log_stdout=settings.log_stdout,
    )
    logger.info("Working directory: %s", os.getcwd())

    try:
        _check_existing_instance()
        _create_pid_file()
        atexit.register(_remove_pid_file)
        logger.info("Relay instance lock acquired (PID: %d)", os.getpid())
    except RuntimeError as e:
        logger.error(str(e))
        sys.exit(1)

    runtime = build_runtime(settings)
    logger.info(
        "Relay ready: %d feeds, fee balance %d, transport %s",
        len(runtime.registry),
        runtime.sender.fee_balance,
        runtime.transport.handle,
    )

    if not settings.bot_enabled:
        logger.info("BOT_TOKEN not set; running a single automation pass")
        sys.exit(run_once(runtime))

    try:
        _run_bot(settings, runtime)
    except KeyboardInterrupt:
        logger.info("Relay stopped by user (KeyboardInterrupt)")
    except Exception as e:
        logger.exception("Unexpected error during bot operation: %s", e)
        raise


if __name__ == "__main__":
    main()
