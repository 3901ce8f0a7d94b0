"""Agent-facing shell tools: ``bash_run``, ``bash_pwd`` and ``bash_cd``.

``BashTool`` wires the pipeline together for every ``bash_run`` call:

    validate -> interactivity check -> classify -> confirm -> execute -> audit

Each session gets its own CommandExecutor (and so its own working
directory) and its own audit logger. Confirmation state lives in the
ConfirmationGate supplied by the caller.
"""

import os
import threading
from dataclasses import dataclass
from typing import Any

from bashrun.config import BashrunSettings, get_settings
from bashrun.errors import ErrorCode, ToolError
from bashrun.hitl import (
    DEFAULT_SESSION_ID,
    ConfirmationGate,
    ConfirmationStore,
    PendingConfirmation,
)
from bashrun.logging import Loggers, bind_context, unbind_context
from bashrun.shell.audit import AuditConfig, AuditLogger
from bashrun.shell.classifier import RuleSet, SecurityClassifier
from bashrun.shell.config import ShellRulesConfig
from bashrun.shell.executor import CommandExecutor, resolve_directory
from bashrun.shell.interactive import InteractivityDetector
from bashrun.shell.models import Decision, ExecutionOptions, ExecutionResult
from bashrun.shell.permissions import get_command_prefix

logger = Loggers.shell()

INTERACTIVE_SUGGESTION = "Use non-interactive alternatives or dedicated tools"

TOOL_DEFINITIONS: list[dict[str, Any]] = [
    {
        "name": "bash_run",
        "description": (
            "Execute a shell command on the user's machine. Use this for build "
            "commands (npm, make, cargo), git operations, system commands (ls, "
            "which), package management and running scripts.\n\n"
            "To read file contents prefer the file_read tool. Commands run in a "
            "persistent working directory. Interactive programs (vim, less, top) "
            "are NOT supported. Risky commands may require user confirmation; "
            "dangerous ones are blocked."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "command": {
                    "type": "string",
                    "description": "The shell command to execute",
                },
                "description": {
                    "type": "string",
                    "description": "Brief description of what this command does (for logging)",
                },
                "timeout": {
                    "type": "number",
                    "description": "Timeout in milliseconds (default: 120000, max: 600000)",
                },
                "working_dir": {
                    "type": "string",
                    "description": "Override working directory for this command",
                },
            },
            "required": ["command"],
        },
    },
    {
        "name": "bash_pwd",
        "description": "Get the current working directory for bash commands.",
        "parameters": {"type": "object", "properties": {}},
    },
    {
        "name": "bash_cd",
        "description": "Change the working directory for subsequent bash commands.",
        "parameters": {
            "type": "object",
            "properties": {
                "path": {
                    "type": "string",
                    "description": "The directory path to change to",
                },
            },
            "required": ["path"],
        },
    },
]


def format_result(result: ExecutionResult, working_directory: str) -> dict[str, Any]:
    """Shape an ExecutionResult for the agent.

    Empty streams are left out; ``message`` explains timeouts and
    truncation.
    """
    formatted: dict[str, Any] = {
        "success": result.exit_code == 0 and not result.timed_out,
        "exit_code": result.exit_code,
        "duration": f"{result.duration_ms}ms",
        "working_directory": working_directory,
    }

    if result.stdout:
        formatted["stdout"] = result.stdout
    if result.stderr:
        formatted["stderr"] = result.stderr

    messages = []
    if result.timed_out:
        formatted["timed_out"] = True
        messages.append("Command timed out and was terminated")
    if result.truncated:
        formatted["truncated"] = True
        messages.append("Output was truncated due to length")
    if messages:
        formatted["message"] = ". ".join(messages)

    if result.signal:
        formatted["signal"] = result.signal
    if result.spawn_error:
        formatted["error"] = result.spawn_error

    return formatted


@dataclass
class _Session:
    executor: CommandExecutor
    audit: AuditLogger


class BashTool:
    """Shell tool facade serving one or more agent sessions.

    Example:
        tool = BashTool()
        tool.run("git status", session_id="chat-1")
        tool.cd("src", session_id="chat-1")
        tool.dispatch("bash_pwd", {}, session_id="chat-1")
    """

    def __init__(
        self,
        settings: BashrunSettings | None = None,
        gate: ConfirmationGate | None = None,
        classifier: SecurityClassifier | None = None,
        detector: InteractivityDetector | None = None,
        working_dir: str | None = None,
    ):
        """Initialize the tool.

        Args:
            settings: Settings to use (defaults to get_settings()).
            gate: Confirmation tracker (defaults to an in-memory store).
            classifier: Classifier (defaults to built-in rules plus the
                configured rules file).
            detector: Interactivity detector.
            working_dir: Starting directory for new sessions.
        """
        self.settings = settings or get_settings()
        self.gate: ConfirmationGate = gate if gate is not None else ConfirmationStore()
        self.classifier = classifier or self._build_classifier(self.settings)
        self.detector = detector or InteractivityDetector()
        self._working_dir = working_dir
        self._sessions: dict[str, _Session] = {}
        self._sessions_lock = threading.Lock()

    @staticmethod
    def _build_classifier(settings: BashrunSettings) -> SecurityClassifier:
        if settings.rules_file is None:
            return SecurityClassifier()
        rules = ShellRulesConfig.from_yaml(settings.rules_file).apply(RuleSet())
        return SecurityClassifier(rules)

    def _session(self, session_id: str) -> _Session:
        with self._sessions_lock:
            session = self._sessions.get(session_id)
            if session is None:
                session = _Session(
                    executor=CommandExecutor(self.settings, working_dir=self._working_dir),
                    audit=AuditLogger(AuditConfig.from_settings(self.settings), session_id),
                )
                self._sessions[session_id] = session
            return session

    def executor(self, session_id: str | None = None) -> CommandExecutor:
        """The CommandExecutor owning a session's working directory."""
        return self._session(session_id or DEFAULT_SESSION_ID).executor

    # ------------------------------------------------------------------
    # bash_run
    # ------------------------------------------------------------------

    def run(
        self,
        command: Any,
        description: str | None = None,
        timeout: Any = None,
        working_dir: Any = None,
        env: Any = None,
        session_id: str | None = None,
        approved: bool = False,
    ) -> dict[str, Any]:
        """Run a command through the full safety pipeline.

        Args:
            command: The shell command.
            description: What the command is for (logging only).
            timeout: Timeout in milliseconds.
            working_dir: Directory to run in instead of the session directory.
            env: Extra environment variables.
            session_id: Session issuing the command.
            approved: The caller already holds the user's approval.

        Returns:
            Formatted execution result, or a rejection/confirmation response.
        """
        session_id = session_id or DEFAULT_SESSION_ID
        session = self._session(session_id)

        try:
            options = self._validate_run(command, timeout, working_dir, env, session)
        except ToolError as e:
            e.tool_name = "bash_run"
            logger.info("invalid_request", session_id=session_id, error=e.message)
            return e.to_dict()

        bind_context(session_id=session_id)
        try:
            return self._run(command, description, options, session_id, session, approved)
        finally:
            unbind_context("session_id")

    def _run(
        self,
        command: str,
        description: str | None,
        options: ExecutionOptions,
        session_id: str,
        session: _Session,
        approved: bool,
    ) -> dict[str, Any]:
        interactive = self.detector.check(command)
        if interactive.interactive:
            logger.info("command_interactive", command=command, reason=interactive.reason)
            session.audit.log_command(
                command=command,
                decision=Decision.DENY,
                executed=False,
                prefix=get_command_prefix(command),
                working_dir=options.working_dir or session.executor.working_directory,
                blocked_reason=interactive.reason,
            )
            return {
                "success": False,
                "interactive": True,
                "error": f"Cannot execute interactive command: {interactive.reason}",
                "suggestion": INTERACTIVE_SUGGESTION,
            }

        decision = self.classifier.classify(command)
        prefix = get_command_prefix(command)

        if decision.is_denied:
            logger.warning("command_blocked", command=command, reason=decision.reason)
            self.gate.record_denied(session_id, command, decision.reason)
            session.audit.log_command(
                command=command,
                decision=decision.decision,
                executed=False,
                prefix=prefix,
                reason=decision.reason,
                working_dir=options.working_dir or session.executor.working_directory,
                blocked_reason=decision.reason,
            )
            return {
                "success": False,
                "blocked": True,
                "error": f"Command blocked: {decision.reason}",
            }

        if decision.needs_confirmation and self.settings.bash_mode == "ask":
            confirmed = self.gate.is_confirmed(session_id, command)
            if approved or confirmed:
                # Only a gate approval of this command consumes the pending slot
                if confirmed:
                    self.gate.clear_pending(session_id)
                logger.info("confirmation_consumed", command=command)
            else:
                self.gate.set_pending(
                    session_id,
                    PendingConfirmation(
                        command=command,
                        reason=decision.reason,
                        description=description,
                    ),
                )
                session.audit.log_command(
                    command=command,
                    decision=decision.decision,
                    executed=False,
                    prefix=prefix,
                    reason=decision.reason,
                    working_dir=options.working_dir or session.executor.working_directory,
                )
                return {
                    "success": False,
                    "requires_confirmation": True,
                    "reason": decision.reason,
                    "command": command,
                    "message": (
                        f"This command requires confirmation: {decision.reason}. "
                        "Please confirm you want to proceed."
                    ),
                }

        logger.info(
            "command_started",
            command=command,
            prefix=prefix,
            description=description,
            decision=decision.decision.value,
        )
        result = session.executor.execute(command, options)
        formatted = format_result(result, session.executor.working_directory)

        if decision.warning:
            formatted["warning"] = decision.warning
        if decision.suggestion:
            formatted["suggestion"] = decision.suggestion.to_dict()

        session.audit.log_command(
            command=command,
            decision=decision.decision,
            executed=result.spawn_error is None,
            prefix=prefix,
            reason=decision.reason,
            working_dir=result.working_dir,
            exit_code=result.exit_code,
            duration_ms=result.duration_ms,
            timed_out=result.timed_out,
            stdout=result.stdout,
            stderr=result.stderr,
        )
        return formatted

    def _validate_run(
        self,
        command: Any,
        timeout: Any,
        working_dir: Any,
        env: Any,
        session: _Session,
    ) -> ExecutionOptions:
        if command is None:
            raise ToolError(
                "Command is required", ErrorCode.MISSING_REQUIRED, recoverable=True
            )
        if not isinstance(command, str) or not command.strip():
            raise ToolError(
                "Command must be a non-empty string",
                ErrorCode.INVALID_INPUT,
                recoverable=True,
            )

        if timeout is not None and (
            isinstance(timeout, bool) or not isinstance(timeout, (int, float))
        ):
            raise ToolError(
                f"Timeout must be a number of milliseconds, got {timeout!r}",
                ErrorCode.INVALID_INPUT,
                recoverable=True,
            )

        resolved_dir = None
        if working_dir is not None:
            if not isinstance(working_dir, str) or not working_dir.strip():
                raise ToolError(
                    "working_dir must be a non-empty string",
                    ErrorCode.INVALID_INPUT,
                    recoverable=True,
                )
            resolved_dir = self._existing_directory(
                working_dir, session.executor.working_directory
            )

        if env is not None and not isinstance(env, dict):
            raise ToolError(
                "env must be a mapping of variable names to values",
                ErrorCode.INVALID_INPUT,
                recoverable=True,
            )

        return ExecutionOptions(
            timeout_ms=timeout,
            working_dir=resolved_dir,
            env={str(k): str(v) for k, v in (env or {}).items()},
        )

    @staticmethod
    def _existing_directory(path: str, base: str) -> str:
        resolved = resolve_directory(path, base)
        if not os.path.exists(resolved):
            raise ToolError(
                f"Directory does not exist: {resolved}",
                ErrorCode.NOT_FOUND,
                recoverable=True,
                details={"path": resolved},
            )
        if not os.path.isdir(resolved):
            raise ToolError(
                f"Not a directory: {resolved}",
                ErrorCode.NOT_A_DIRECTORY,
                recoverable=True,
                details={"path": resolved},
            )
        return resolved

    # ------------------------------------------------------------------
    # bash_pwd / bash_cd
    # ------------------------------------------------------------------

    def pwd(self, session_id: str | None = None) -> dict[str, Any]:
        """Current working directory of a session."""
        return {"working_directory": self.executor(session_id).working_directory}

    def cd(self, path: Any, session_id: str | None = None) -> dict[str, Any]:
        """Change a session's working directory after checking the target."""
        executor = self.executor(session_id)
        try:
            if not isinstance(path, str) or not path.strip():
                raise ToolError(
                    "Path is required", ErrorCode.MISSING_REQUIRED, recoverable=True
                )
            resolved = self._existing_directory(path.strip(), executor.working_directory)
        except ToolError as e:
            e.tool_name = "bash_cd"
            return e.to_dict()

        executor.set_working_directory(resolved)
        logger.info("working_directory_changed", session_id=session_id, working_dir=resolved)
        return {"success": True, "working_directory": resolved}

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def dispatch(
        self,
        tool_name: str,
        params: dict[str, Any] | None = None,
        session_id: str | None = None,
    ) -> dict[str, Any]:
        """Route a named tool call.

        Unknown tools and unexpected failures come back as error dicts.
        """
        params = params or {}
        try:
            if tool_name == "bash_run":
                return self.run(
                    params.get("command"),
                    description=params.get("description"),
                    timeout=params.get("timeout"),
                    working_dir=params.get("working_dir"),
                    env=params.get("env"),
                    session_id=session_id,
                )
            if tool_name == "bash_pwd":
                return self.pwd(session_id)
            if tool_name == "bash_cd":
                return self.cd(params.get("path"), session_id)
            raise ToolError(
                f"Unknown bash tool: {tool_name}",
                ErrorCode.UNKNOWN_TOOL,
                tool_name=tool_name,
            )
        except ToolError as e:
            return e.to_dict()
        except Exception as e:
            logger.exception("tool_dispatch_failed", tool=tool_name)
            return ToolError(
                str(e), ErrorCode.INTERNAL_ERROR, tool_name=tool_name
            ).to_dict()
