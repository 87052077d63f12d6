"""
Kiosk Command Layer — Command Outcome Contract
==============================================
Every Command produces exactly one Outcome.

ACCEPTED → the command ran; `result` holds its receipt.
REJECTED → nothing changed; `reason` says why.

Rules:
- Outcome is immutable (frozen dataclass)
- REJECTED must contain reason and no result
- ACCEPTED must NOT contain reason
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from core.commands.rejection import RejectionReason


class CommandStatus(Enum):
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"


@dataclass(frozen=True)
class CommandOutcome:
    """
    Result of running one command.

    Fields:
        command_id:  The command this outcome belongs to.
        status:      ACCEPTED or REJECTED.
        reason:      RejectionReason (mandatory if REJECTED).
        occurred_at: Decision time.
        result:      Receipt or other payload (ACCEPTED only).
    """

    command_id: uuid.UUID
    status: CommandStatus
    reason: Optional[RejectionReason]
    occurred_at: datetime
    result: Any = None

    def __post_init__(self):
        if not isinstance(self.command_id, uuid.UUID):
            raise ValueError("command_id must be UUID.")

        if not isinstance(self.status, CommandStatus):
            raise ValueError(
                f"status must be CommandStatus, got {type(self.status).__name__}."
            )

        if self.status == CommandStatus.REJECTED:
            if self.reason is None:
                raise ValueError(
                    "REJECTED outcome must include a RejectionReason."
                )
            if self.result is not None:
                raise ValueError("REJECTED outcome must not carry a result.")

        if self.status == CommandStatus.ACCEPTED and self.reason is not None:
            raise ValueError(
                "ACCEPTED outcome must NOT include a RejectionReason."
            )

        if not isinstance(self.occurred_at, datetime):
            raise ValueError("occurred_at must be a datetime.")

    @classmethod
    def accepted(cls, command, result: Any = None) -> "CommandOutcome":
        return cls(
            command_id=command.command_id,
            status=CommandStatus.ACCEPTED,
            reason=None,
            occurred_at=command.issued_at,
            result=result,
        )

    @classmethod
    def rejected(cls, command, reason: RejectionReason) -> "CommandOutcome":
        return cls(
            command_id=command.command_id,
            status=CommandStatus.REJECTED,
            reason=reason,
            occurred_at=command.issued_at,
        )

    @property
    def is_accepted(self) -> bool:
        return self.status == CommandStatus.ACCEPTED

    @property
    def is_rejected(self) -> bool:
        return self.status == CommandStatus.REJECTED

    @property
    def reason_code(self) -> Optional[str]:
        return self.reason.code if self.reason else None
