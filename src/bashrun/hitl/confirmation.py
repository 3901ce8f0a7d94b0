"""Confirmation tracking for commands that need user approval.

When the classifier returns an "ask" decision the command is parked in a
per-session slot and the agent is told to get the user's go-ahead. Once the
user confirms, re-issuing the exact same command runs it.

State per session:

    UNCLASSIFIED -> DENIED
    UNCLASSIFIED -> PENDING_CONFIRMATION -> APPROVED -> EXECUTED
"""

import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Protocol, runtime_checkable

from bashrun.logging import Loggers

logger = Loggers.hitl()

DEFAULT_SESSION_ID = "default"


class ConfirmationState(Enum):
    """Where a session's command stands in the confirmation cycle."""

    UNCLASSIFIED = "unclassified"
    DENIED = "denied"
    PENDING_CONFIRMATION = "pending_confirmation"
    APPROVED = "approved"
    EXECUTED = "executed"


@dataclass
class PendingConfirmation:
    """A command waiting for the user's answer."""

    command: str
    reason: str | None = None
    description: str | None = None
    state: ConfirmationState = ConfirmationState.PENDING_CONFIRMATION
    created_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, str | None]:
        return {
            "command": self.command,
            "reason": self.reason,
            "description": self.description,
            "state": self.state.value,
        }


@runtime_checkable
class ConfirmationGate(Protocol):
    """What the tool layer needs from whoever tracks user approvals."""

    def set_pending(self, session_id: str, pending: PendingConfirmation) -> None:
        ...

    def is_confirmed(self, session_id: str, command: str) -> bool:
        ...

    def clear_pending(self, session_id: str) -> None:
        ...

    def record_denied(self, session_id: str, command: str, reason: str | None) -> None:
        ...


class ConfirmationStore:
    """In-memory ConfirmationGate with one pending slot per session.

    Example:
        store = ConfirmationStore()
        tool = BashTool(gate=store)

        tool.run("sudo make install", session_id="chat-1")  # requires_confirmation
        store.confirm("chat-1")  # the user said yes
        tool.run("sudo make install", session_id="chat-1")  # executes
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pending: dict[str, PendingConfirmation] = {}
        self._states: dict[str, ConfirmationState] = {}

    def state(self, session_id: str) -> ConfirmationState:
        """Current state of a session."""
        with self._lock:
            pending = self._pending.get(session_id)
            if pending is not None:
                return pending.state
            return self._states.get(session_id, ConfirmationState.UNCLASSIFIED)

    def get_pending(self, session_id: str) -> PendingConfirmation | None:
        with self._lock:
            return self._pending.get(session_id)

    def set_pending(self, session_id: str, pending: PendingConfirmation) -> None:
        """Park a command, replacing whatever the session had pending."""
        pending.state = ConfirmationState.PENDING_CONFIRMATION
        with self._lock:
            replaced = self._pending.get(session_id)
            self._pending[session_id] = pending
        logger.info(
            "confirmation_pending",
            session_id=session_id,
            command=pending.command,
            reason=pending.reason,
            replaced=replaced.command if replaced else None,
        )

    def confirm(self, session_id: str) -> PendingConfirmation | None:
        """Record that the user approved the pending command.

        Returns:
            The approved confirmation, or None if nothing was pending.
        """
        with self._lock:
            pending = self._pending.get(session_id)
            if pending is None:
                return None
            pending.state = ConfirmationState.APPROVED
        logger.info("confirmation_approved", session_id=session_id, command=pending.command)
        return pending

    def reject(self, session_id: str) -> PendingConfirmation | None:
        """Drop the pending command after the user declined it."""
        with self._lock:
            pending = self._pending.pop(session_id, None)
            self._states[session_id] = ConfirmationState.UNCLASSIFIED
        if pending is not None:
            logger.info(
                "confirmation_rejected", session_id=session_id, command=pending.command
            )
        return pending

    def is_confirmed(self, session_id: str, command: str) -> bool:
        """True only for the exact command the user approved."""
        with self._lock:
            pending = self._pending.get(session_id)
            return (
                pending is not None
                and pending.state is ConfirmationState.APPROVED
                and pending.command == command
            )

    def clear_pending(self, session_id: str) -> None:
        """Empty the slot. A consumed approval counts as executed."""
        with self._lock:
            pending = self._pending.pop(session_id, None)
            if pending is not None and pending.state is ConfirmationState.APPROVED:
                self._states[session_id] = ConfirmationState.EXECUTED
            else:
                self._states[session_id] = ConfirmationState.UNCLASSIFIED

    def mark_executed(self, session_id: str) -> None:
        """Close the cycle after the approved command ran."""
        with self._lock:
            self._pending.pop(session_id, None)
            self._states[session_id] = ConfirmationState.EXECUTED

    def record_denied(self, session_id: str, command: str, reason: str | None) -> None:
        """Note a command the classifier refused. Any pending slot is kept."""
        with self._lock:
            self._states[session_id] = ConfirmationState.DENIED
        logger.info("command_denied", session_id=session_id, command=command, reason=reason)
