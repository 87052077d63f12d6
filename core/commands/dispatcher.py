"""
Kiosk Command Layer — Command Dispatcher
========================================
Evaluate a command against the policies registered for its type.

The Dispatcher decides, it does not act. It never mutates state,
never appends events and never prices anything.

Policies are callables `(Command) -> Optional[RejectionReason]`.
They run in registration order; the first rejection wins and the
remaining policies are skipped.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional

from core.commands.base import Command
from core.commands.outcomes import CommandOutcome
from core.commands.rejection import RejectionReason

logger = logging.getLogger("kiosk.commands")


PolicyEvaluator = Callable[[Command], Optional[RejectionReason]]


class CommandDispatcher:
    """
    Per-command-type policy chains.

    Usage:
        dispatcher = CommandDispatcher()
        dispatcher.register_policy("kiosk.wallet.top_up.request", amount_policy)
        rejection = dispatcher.evaluate(command)
    """

    def __init__(self):
        self._policies: Dict[str, List[PolicyEvaluator]] = {}

    def register_policy(self, command_type: str, policy: PolicyEvaluator) -> None:
        if not callable(policy):
            raise TypeError(
                f"Policy must be callable, got {type(policy).__name__}."
            )
        self._policies.setdefault(command_type, []).append(policy)

        policy_name = getattr(policy, "__qualname__", None) or getattr(
            getattr(policy, "func", None), "__qualname__", str(policy)
        )
        logger.debug(f"Policy registered: {policy_name} → {command_type}")

    def evaluate(self, command: Command) -> Optional[RejectionReason]:
        """Run the chain for command.command_type; return the first rejection."""
        for policy in self._policies.get(command.command_type, []):
            rejection = policy(command)
            if rejection is None:
                continue
            if not isinstance(rejection, RejectionReason):
                raise TypeError(
                    f"Policy must return RejectionReason or None, "
                    f"got {type(rejection).__name__}."
                )
            logger.info(
                f"Command {command.command_id} rejected by "
                f"policy '{rejection.policy_name}': "
                f"[{rejection.code}] {rejection.message}"
            )
            return rejection
        return None

    def dispatch(self, command: Command) -> CommandOutcome:
        """Evaluate and wrap the decision in a CommandOutcome (no result)."""
        rejection = self.evaluate(command)
        if rejection is not None:
            return CommandOutcome.rejected(command, rejection)
        return CommandOutcome.accepted(command)
