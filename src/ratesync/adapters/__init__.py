# src/ratesync/adapters/__init__.py
"""
Adapters Layer - External Interfaces

This package contains all adapters for external systems:
- Sources (value reads)
- Transport (cross-domain delivery)
- Persistence (state store)
- Formatting (operator output)
- Telegram (operator bot)
"""

__all__ = []
