"""
Kiosk Command Layer — Command Base Contract
===========================================
Every state change at the kiosk begins as a Command.

A Command is a frozen declaration of intent: who/what is asked for and
when. It carries no business logic and never touches state.

Rules:
- Immutable once created (frozen dataclass)
- command_type must end with '.request'
- command_type follows engine.domain.action.request format
- issued_at is timezone-aware; it is the "now" the engine decides against
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class Command:
    """
    Canonical kiosk Command.

    Fields:
        command_id:     Unique identifier (UUID).
        command_type:   Namespaced type ending in '.request'
                        (e.g. 'kiosk.water.purchase.request').
        payload:        Already-coerced primitive values (dict).
        issued_at:      Decision time, timezone-aware.
        source_engine:  Engine namespace; first segment of command_type.
        correlation_id: Optional grouping id for related commands.
    """

    command_id: uuid.UUID
    command_type: str
    payload: dict
    issued_at: datetime
    source_engine: str
    correlation_id: Optional[uuid.UUID] = None

    def __post_init__(self):
        if not isinstance(self.command_id, uuid.UUID):
            raise ValueError(
                f"command_id must be UUID, got {type(self.command_id).__name__}"
            )

        if not self.command_type or not isinstance(self.command_type, str):
            raise ValueError("command_type must be a non-empty string.")

        if not self.command_type.endswith(".request"):
            raise ValueError(
                f"command_type '{self.command_type}' must end with "
                f"'.request' (e.g. 'kiosk.water.purchase.request')."
            )

        parts = self.command_type.split(".")
        if len(parts) < 4:
            raise ValueError(
                f"command_type '{self.command_type}' must follow "
                f"engine.domain.action.request format (minimum 4 segments)."
            )

        if parts[0] != self.source_engine:
            raise ValueError(
                f"command_type namespace '{parts[0]}' does not match "
                f"source_engine '{self.source_engine}'."
            )

        if not isinstance(self.issued_at, datetime):
            raise ValueError("issued_at must be a datetime.")
        if self.issued_at.tzinfo is None:
            raise ValueError("issued_at must be timezone-aware.")

        if not isinstance(self.payload, dict):
            raise TypeError("payload must be a dict.")

        if self.correlation_id is not None and not isinstance(
            self.correlation_id, uuid.UUID
        ):
            raise ValueError("correlation_id must be UUID when provided.")


def derive_source_engine(command_type: str) -> str:
    """'kiosk.water.purchase.request' → 'kiosk'."""
    return command_type.split(".")[0]
