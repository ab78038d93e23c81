# src/ratesync/config/__init__.py
"""
Configuration Module

Provides centralized configuration management using Pydantic Settings.
"""

from ratesync.config.settings import Settings, settings

__all__ = ["Settings", "settings"]
