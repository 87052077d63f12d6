"""
Kiosk Event Store — In-Memory Append-Only Log
=============================================
Single source of truth for everything the kiosk has accepted.

Rules:
- Append-only. No update, no delete.
- Sequence numbers start at 1 and increase by exactly 1.
- Events are returned in append order, which is replay order.
- Projections (registry, ledger, analytics) are rebuildable from here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from threading import Lock
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

logger = logging.getLogger("kiosk.events")


@dataclass(frozen=True)
class StoredEvent:
    sequence: int
    event_type: str
    payload: Dict[str, Any]
    occurred_at: datetime


def _validate_event(event_type: str, payload: Any) -> None:
    if not event_type or len(event_type.split(".")) < 3:
        raise ValueError(
            f"Event type '{event_type}' does not follow "
            f"engine.domain.action format."
        )
    if not isinstance(payload, dict):
        raise TypeError("payload must be a dict.")


class InMemoryEventStore:
    """Thread-safe append-only event log."""

    def __init__(self) -> None:
        self._events: List[StoredEvent] = []
        self._lock = Lock()

    def append(
        self,
        event_type: str,
        payload: Dict[str, Any],
        occurred_at: datetime,
    ) -> StoredEvent:
        return self.append_batch([(event_type, payload)], occurred_at)[0]

    def append_batch(
        self,
        events: Sequence[Tuple[str, Dict[str, Any]]],
        occurred_at: datetime,
    ) -> List[StoredEvent]:
        """Append several events contiguously; all are validated first."""
        for event_type, payload in events:
            _validate_event(event_type, payload)

        stored = []
        with self._lock:
            for event_type, payload in events:
                event = StoredEvent(
                    sequence=len(self._events) + 1,
                    event_type=event_type,
                    payload=dict(payload),
                    occurred_at=occurred_at,
                )
                self._events.append(event)
                stored.append(event)

        for event in stored:
            logger.debug(f"Event #{event.sequence} appended: {event.event_type}")
        return stored

    def events(self, event_type: Optional[str] = None) -> List[StoredEvent]:
        with self._lock:
            if event_type is None:
                return list(self._events)
            return [e for e in self._events if e.event_type == event_type]

    def replay(self, handler: Callable[[str, Dict[str, Any]], None]) -> int:
        """Feed every event, in order, to `handler(event_type, payload)`."""
        events = self.events()
        for event in events:
            handler(event.event_type, event.payload)
        return len(events)

    def __iter__(self) -> Iterator[StoredEvent]:
        return iter(self.events())

    @property
    def event_count(self) -> int:
        with self._lock:
            return len(self._events)
