"""
Kiosk Command Layer
===================
Every state change begins as a Command and ends as exactly one Outcome.
Rejections are values carried by the Outcome, never exceptions.
"""

from core.commands.base import Command, derive_source_engine
from core.commands.dispatcher import CommandDispatcher, PolicyEvaluator
from core.commands.outcomes import CommandOutcome, CommandStatus
from core.commands.rejection import ReasonCode, RejectionReason

__all__ = [
    "Command",
    "derive_source_engine",
    "CommandDispatcher",
    "PolicyEvaluator",
    "CommandOutcome",
    "CommandStatus",
    "ReasonCode",
    "RejectionReason",
]
