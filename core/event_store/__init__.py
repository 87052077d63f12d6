"""
Kiosk Event Store
=================
Append-only event log. Projections are derived from it and can be
rebuilt from it at any time.
"""

from core.event_store.memory import InMemoryEventStore, StoredEvent

__all__ = ["InMemoryEventStore", "StoredEvent"]
