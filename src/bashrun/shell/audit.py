"""Audit trail for attempted shell commands.

Every command that reaches the classifier is recorded, whether it was
denied, paused for confirmation or executed. Entries are written as JSONL
with one file per day.
"""

import json
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterator

from bashrun.constants import CONTENT_PREVIEW_LENGTH
from bashrun.logging import Loggers
from bashrun.shell.models import Decision

if TYPE_CHECKING:
    from bashrun.config import BashrunSettings

logger = Loggers.shell()

LOG_FILE_PREFIX = "shell_audit_"


@dataclass
class AuditEntry:
    """A single audit log entry for a shell command.

    Attributes:
        timestamp: When the command was attempted (ISO format).
        session_id: Session that issued the command.
        command: The command string.
        decision: Classifier decision (allow, ask or deny).
        executed: Whether a process was spawned.
        prefix: Permission prefix of the command (e.g. "git commit").
        reason: Reason attached to an ask or deny decision.
        exit_code: Exit code if executed.
        duration_ms: Execution duration in milliseconds.
        timed_out: Whether the command hit its timeout.
        stdout_preview: First N chars of stdout.
        stderr_preview: First N chars of stderr.
        working_dir: Directory the command ran in.
        blocked_reason: Why the command was rejected before spawning.
    """

    timestamp: str
    session_id: str
    command: str
    decision: str
    executed: bool

    # Optional fields
    prefix: str | None = None
    reason: str | None = None
    exit_code: int | None = None
    duration_ms: int | None = None
    timed_out: bool = False
    stdout_preview: str = ""
    stderr_preview: str = ""
    working_dir: str | None = None
    blocked_reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {k: v for k, v in asdict(self).items() if v is not None and v != ""}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AuditEntry":
        """Create from dictionary."""
        return cls(
            timestamp=data.get("timestamp", ""),
            session_id=data.get("session_id", ""),
            command=data.get("command", ""),
            decision=data.get("decision", Decision.ALLOW.value),
            executed=data.get("executed", False),
            prefix=data.get("prefix"),
            reason=data.get("reason"),
            exit_code=data.get("exit_code"),
            duration_ms=data.get("duration_ms"),
            timed_out=data.get("timed_out", False),
            stdout_preview=data.get("stdout_preview", ""),
            stderr_preview=data.get("stderr_preview", ""),
            working_dir=data.get("working_dir"),
            blocked_reason=data.get("blocked_reason"),
        )


@dataclass
class AuditConfig:
    """Configuration for audit logging.

    Attributes:
        enabled: Whether audit logging is enabled.
        log_dir: Directory for audit logs.
        retention_days: How long to keep logs.
        max_preview_length: Maximum length for stdout/stderr previews.
    """

    enabled: bool = False
    log_dir: str = "~/.local/share/bashrun/audit"
    retention_days: int = 30
    max_preview_length: int = CONTENT_PREVIEW_LENGTH

    @classmethod
    def from_settings(cls, settings: "BashrunSettings") -> "AuditConfig":
        return cls(
            enabled=settings.audit_enabled,
            log_dir=str(settings.audit_dir),
            retention_days=settings.audit_retention_days,
        )

    def get_log_dir(self) -> Path:
        """Get resolved log directory path."""
        return Path(self.log_dir).expanduser()


class AuditLogger:
    """Writes audit entries in JSONL format with daily rotation."""

    def __init__(
        self,
        config: AuditConfig | None = None,
        session_id: str | None = None,
    ):
        """Initialize the audit logger.

        Args:
            config: Audit configuration.
            session_id: Session identifier for grouping entries.
        """
        self.config = config or AuditConfig()
        self.session_id = session_id or str(uuid.uuid4())[:8]

    def _get_log_file(self, date: datetime | None = None) -> Path:
        """Get the log file path for a given date."""
        if date is None:
            date = datetime.now()
        filename = f"{LOG_FILE_PREFIX}{date.strftime('%Y-%m-%d')}.jsonl"
        return self.config.get_log_dir() / filename

    def log(self, entry: AuditEntry) -> None:
        """Append an entry to today's log file.

        Write failures are reported through the shell logger and never
        reach the caller.
        """
        if not self.config.enabled:
            return

        log_file = self._get_log_file()
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            with open(log_file, "a") as f:
                f.write(json.dumps(entry.to_dict()) + "\n")
        except OSError as e:
            logger.warning("audit_write_failed", path=str(log_file), error=str(e))

    def log_command(
        self,
        command: str,
        decision: Decision,
        executed: bool,
        prefix: str | None = None,
        reason: str | None = None,
        working_dir: str | Path | None = None,
        exit_code: int | None = None,
        duration_ms: int | None = None,
        timed_out: bool = False,
        stdout: str | None = None,
        stderr: str | None = None,
        blocked_reason: str | None = None,
    ) -> AuditEntry:
        """Create and write an AuditEntry.

        Args:
            command: The command string.
            decision: Classifier decision.
            executed: Whether the command was executed.
            prefix: Permission prefix of the command.
            reason: Reason attached to the decision.
            working_dir: Working directory.
            exit_code: Exit code if executed.
            duration_ms: Duration in milliseconds.
            timed_out: Whether the timeout fired.
            stdout: Standard output (will be truncated).
            stderr: Standard error (will be truncated).
            blocked_reason: Reason if rejected before spawning.

        Returns:
            The created AuditEntry.
        """
        max_len = self.config.max_preview_length

        entry = AuditEntry(
            timestamp=datetime.now().isoformat(),
            session_id=self.session_id,
            command=command,
            decision=decision.value,
            executed=executed,
            prefix=prefix,
            reason=reason,
            exit_code=exit_code,
            duration_ms=duration_ms,
            timed_out=timed_out,
            stdout_preview=stdout[:max_len] if stdout else "",
            stderr_preview=stderr[:max_len] if stderr else "",
            working_dir=str(working_dir) if working_dir else None,
            blocked_reason=blocked_reason,
        )

        self.log(entry)
        return entry

    def query(
        self,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        command_pattern: str | None = None,
        decision: Decision | None = None,
        executed_only: bool = False,
        blocked_only: bool = False,
        session_id: str | None = None,
        limit: int = 100,
    ) -> Iterator[AuditEntry]:
        """Query audit log entries.

        Args:
            start_date: Start of date range (default: a week before end).
            end_date: End of date range (default: now).
            command_pattern: Substring to match in commands.
            decision: Filter by classifier decision.
            executed_only: Only return executed commands.
            blocked_only: Only return commands rejected before spawning.
            session_id: Filter by session ID.
            limit: Maximum entries to return.

        Yields:
            Matching AuditEntry objects.
        """
        if not self.config.enabled:
            return

        log_dir = self.config.get_log_dir()
        if not log_dir.exists():
            return

        if end_date is None:
            end_date = datetime.now()
        if start_date is None:
            start_date = end_date - timedelta(days=7)

        current = start_date
        count = 0

        while current.date() <= end_date.date() and count < limit:
            log_file = self._get_log_file(current)
            current += timedelta(days=1)

            if not log_file.exists():
                continue

            try:
                with open(log_file) as f:
                    lines = f.readlines()
            except OSError as e:
                logger.warning("audit_read_failed", path=str(log_file), error=str(e))
                continue

            for line in lines:
                if count >= limit:
                    return
                try:
                    entry = AuditEntry.from_dict(json.loads(line))
                except json.JSONDecodeError:
                    continue  # Skip malformed lines

                if command_pattern and command_pattern not in entry.command:
                    continue
                if decision and entry.decision != decision.value:
                    continue
                if executed_only and not entry.executed:
                    continue
                if blocked_only and entry.blocked_reason is None:
                    continue
                if session_id and entry.session_id != session_id:
                    continue

                yield entry
                count += 1

    def cleanup_old_logs(self) -> int:
        """Remove logs older than the retention period.

        Returns:
            Number of files removed.
        """
        if not self.config.enabled:
            return 0

        log_dir = self.config.get_log_dir()
        if not log_dir.exists():
            return 0

        cutoff = datetime.now() - timedelta(days=self.config.retention_days)
        removed = 0

        for log_file in log_dir.glob(f"{LOG_FILE_PREFIX}*.jsonl"):
            date_str = log_file.stem.replace(LOG_FILE_PREFIX, "")
            try:
                file_date = datetime.strptime(date_str, "%Y-%m-%d")
            except ValueError:
                continue  # Not one of ours

            if file_date < cutoff:
                log_file.unlink(missing_ok=True)
                removed += 1

        if removed:
            logger.info("audit_logs_cleaned", removed=removed)
        return removed

    def get_session_summary(self, session_id: str | None = None) -> dict[str, Any]:
        """Get summary statistics for a session.

        Args:
            session_id: Session to summarize (default: current session).

        Returns:
            Dictionary with summary statistics.
        """
        session_id = session_id or self.session_id
        entries = list(self.query(session_id=session_id, limit=10000))

        if not entries:
            return {
                "session_id": session_id,
                "total_commands": 0,
            }

        executed = [e for e in entries if e.executed]
        blocked = [e for e in entries if e.blocked_reason]

        decision_counts: dict[str, int] = {}
        for entry in entries:
            decision_counts[entry.decision] = decision_counts.get(entry.decision, 0) + 1

        return {
            "session_id": session_id,
            "total_commands": len(entries),
            "executed": len(executed),
            "blocked": len(blocked),
            "pending": len(entries) - len(executed) - len(blocked),
            "timed_out": sum(1 for e in executed if e.timed_out),
            "decision_distribution": decision_counts,
            "first_command": entries[0].timestamp,
            "last_command": entries[-1].timestamp,
        }
