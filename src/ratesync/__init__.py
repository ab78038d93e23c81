# src/ratesync/__init__.py
"""
RateSync - Cross-Domain Rate Synchronization Relay

Relays exchange rates and rate-like quantities from a source domain to one
or more destination domains through an authenticated one-way message
transport, with a scheduler deciding when a fresh sync is due and an
operator bot for administration.
"""

__version__ = "0.3.0"
