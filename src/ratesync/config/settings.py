# src/ratesync/config/settings.py
"""
Settings - Pydantic-based Configuration Management

Provides centralized configuration management using Pydantic Settings.
Values come from environment variables or a local .env file. Every field
has a default so the relay can be imported (and tested) without any
environment at all; the operator bot is disabled while BOT_TOKEN is empty.

Files that USE this module:
- ratesync.app (composition root)
- ratesync.adapters.sources.http_json (HTTP timeout)
- ratesync.adapters.transport.http_gateway (HTTP timeout)
- ratesync.adapters.telegram.* (admin identity and chat)

Files that this module USES:
- ratesync.shared.validators (validation functions for settings)
"""

from __future__ import annotations  # Enable postponed evaluation of annotations

from pathlib import Path  # Object-oriented filesystem paths
from typing import Optional  # Type hints for optional values

from pydantic import Field, field_validator  # Data validation and field configuration
from pydantic_settings import BaseSettings, SettingsConfigDict  # Settings management with Pydantic

from ratesync.shared.validators import (
    validate_bot_token,  # Validate Telegram bot token format
    validate_handle,  # Validate component handles (addresses)
    validate_url,  # Validate gateway URL
)

UPDATE_POLICIES = ("last_delivered_wins", "monotonic_produced_at")


class Settings(BaseSettings):
    """Relay settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Telegram (operator bot) ---
    bot_token: str = Field(default="", alias="BOT_TOKEN")
    admin_username: str = Field(default="", alias="ADMIN_USERNAME")
    admin_chat_id: str = Field(default="", alias="ADMIN_CHAT_ID")

    # --- Identities ---
    admin_address: str = Field(default="ratesync-admin", alias="ADMIN_ADDRESS")
    sender_address: str = Field(default="ratesync-sender", alias="SENDER_ADDRESS")
    transport_address: str = Field(default="ratesync-loopback", alias="TRANSPORT_ADDRESS")

    # --- Transport ---
    # Empty: use the in-process loopback transport
    transport_url: str = Field(default="", alias="TRANSPORT_URL")
    loopback_fee: int = Field(default=0, alias="LOOPBACK_FEE", ge=0)
    initial_fee_balance: int = Field(default=0, alias="INITIAL_FEE_BALANCE", ge=0)

    # --- HTTP Settings ---
    http_timeout_seconds: int = Field(default=10, alias="HTTP_TIMEOUT_SECONDS", ge=1, le=60)

    # --- Scheduling ---
    sync_interval_seconds: int = Field(default=3600, alias="SYNC_INTERVAL_SECONDS", ge=1)
    automation_poll_seconds: int = Field(default=60, alias="AUTOMATION_POLL_SECONDS", ge=1, le=86400)

    # --- Destination policy ---
    update_policy: str = Field(default="last_delivered_wins", alias="RATESYNC_UPDATE_POLICY")

    # --- Persistence ---
    feeds_file: Path = Field(default=Path("./config/feeds.json"), alias="FEEDS_FILE")
    state_file: Path = Field(default=Path("./data/state.json"), alias="STATE_FILE")
    stats_file: Path = Field(default=Path("./data/stats.json"), alias="STATS_FILE")

    # --- Logging (for server deployment) ---
    log_file: Optional[str] = Field(default=None, alias="LOG_FILE")
    log_dir: Optional[str] = Field(default=None, alias="LOG_DIR")
    log_stdout: bool = Field(default=True, alias="RATESYNC_LOG_STDOUT")
    log_max_bytes: int = Field(default=10 * 1024 * 1024, alias="LOG_MAX_BYTES")  # 10MB
    log_backup_count: int = Field(default=5, alias="LOG_BACKUP_COUNT")

    @property
    def bot_enabled(self) -> bool:
        return bool(self.bot_token)

    @field_validator("bot_token")
    @classmethod
    def validate_bot_token(cls, v: str) -> str:
        """Validate bot token format (empty disables the bot)."""
        if v and not validate_bot_token(v):
            raise ValueError("Invalid BOT_TOKEN format")
        return v

    @field_validator("admin_address", "sender_address", "transport_address")
    @classmethod
    def validate_address(cls, v: str) -> str:
        """Validate identity handles."""
        if not validate_handle(v):
            raise ValueError(f"Invalid address: {v!r}")
        return v.strip().lower()

    @field_validator("transport_url")
    @classmethod
    def validate_transport_url(cls, v: str) -> str:
        if v and not validate_url(v):
            raise ValueError("TRANSPORT_URL must be an http(s) URL")
        return v.rstrip("/")

    @field_validator("update_policy")
    @classmethod
    def validate_update_policy(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in UPDATE_POLICIES:
            raise ValueError(f"RATESYNC_UPDATE_POLICY must be one of {UPDATE_POLICIES}")
        return v


# Global settings instance
settings = Settings()


# ============================================================================
# Deployment Instructions
# ============================================================================
#
# 1. Describe the feeds in FEEDS_FILE (see config/feeds.example.json).
#
# 2. Run the relay with the operator bot:
#    BOT_TOKEN=... ADMIN_USERNAME=... nohup python -m ratesync > relay.log 2>&1 &
#
#    Without BOT_TOKEN the relay runs a single automation pass and exits,
#    which suits an external cron trigger.
#
# 3. Stop the relay:
#    pkill -f "python -m ratesync"
#
# ============================================================================
