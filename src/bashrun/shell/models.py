"""Data models for the shell pipeline.

Provides dataclasses for interactivity checks, security decisions,
execution options and execution results.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class Decision(str, Enum):
    """Classifier verdict for a command."""

    ALLOW = "allow"  # Run immediately
    ASK = "ask"  # Run only after the user confirms
    DENY = "deny"  # Never run


@dataclass(frozen=True)
class Suggestion:
    """A structured tool that does the job better than the raw command."""

    tool: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"tool": self.tool, "message": self.message}


@dataclass(frozen=True)
class SecurityDecision:
    """Result of classifying a command."""

    allowed: bool
    decision: Decision
    reason: str | None = None
    warning: str | None = None
    suggestion: Suggestion | None = None

    @property
    def is_denied(self) -> bool:
        return self.decision is Decision.DENY

    @property
    def needs_confirmation(self) -> bool:
        return self.decision is Decision.ASK

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, omitting unset optional fields."""
        result: dict[str, Any] = {
            "allowed": self.allowed,
            "decision": self.decision.value,
        }
        if self.reason is not None:
            result["reason"] = self.reason
        if self.warning is not None:
            result["warning"] = self.warning
        if self.suggestion is not None:
            result["suggestion"] = self.suggestion.to_dict()
        return result


@dataclass(frozen=True)
class InteractivityCheck:
    """Result of checking whether a command needs a live terminal."""

    interactive: bool
    reason: str | None = None


@dataclass
class ExecutionOptions:
    """Per-call execution options.

    Attributes:
        timeout_ms: Requested timeout; clamped to the configured maximum.
        working_dir: Directory to run in instead of the session directory.
        env: Extra environment variables merged over the process environment.
    """

    timeout_ms: int | None = None
    working_dir: str | None = None
    env: dict[str, str] = field(default_factory=dict)


@dataclass
class ExecutionResult:
    """Outcome of running one command.

    Attributes:
        stdout: Standard output (possibly truncated, right-trimmed).
        stderr: Standard error (possibly truncated, right-trimmed).
        exit_code: Exit status, or the signal sentinel if killed by a signal.
        duration_ms: Wall-clock duration in milliseconds.
        signal: Name of the terminating signal, if any.
        timed_out: Whether the timeout fired.
        truncated: Whether either stream was cut.
        spawn_error: Why the shell could not be started, if it could not.
        working_dir: Directory the command ran in.
    """

    stdout: str
    stderr: str
    exit_code: int
    duration_ms: int
    signal: str | None = None
    timed_out: bool = False
    truncated: bool = False
    spawn_error: str | None = None
    working_dir: str | None = None

    @property
    def success(self) -> bool:
        return self.exit_code == 0 and not self.timed_out and self.spawn_error is None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "stdout": self.stdout,
            "stderr": self.stderr,
            "exit_code": self.exit_code,
            "signal": self.signal,
            "timed_out": self.timed_out,
            "truncated": self.truncated,
            "duration_ms": self.duration_ms,
            "spawn_error": self.spawn_error,
        }
