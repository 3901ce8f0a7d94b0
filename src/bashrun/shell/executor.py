"""Command execution with timeout, output limits and a persistent cwd.

Each ``CommandExecutor`` represents one session: it owns the working
directory that ``cd`` commands update and that later commands run in.
"""

import os
import shlex
import signal
import subprocess
import threading
import time
from pathlib import Path

from bashrun.config import BashrunSettings, get_settings
from bashrun.constants import (
    DEFAULT_SHELL,
    NON_INTERACTIVE_ENV,
    SHELL_OVERRIDE_ENV,
    SIGNAL_EXIT_CODE,
    SUPPORTED_LOGIN_SHELLS,
    truncation_notice,
)
from bashrun.logging import Loggers
from bashrun.shell.models import ExecutionOptions, ExecutionResult
from bashrun.shell.termination import EscalatingTermination

logger = Loggers.shell()

_OPERATOR_CHARS = ";&|"
# Operators after which a directory change still applies
_CHAIN_OPERATORS = (None, "&&", ";")


def resolve_shell(override: str | None = None) -> str:
    """Pick the shell binary used to run commands.

    Order: explicit override, the BASHRUN_SHELL environment variable,
    the login shell when it is bash or zsh, then /bin/bash.
    """
    if override:
        return override

    env_override = os.environ.get(SHELL_OVERRIDE_ENV)
    if env_override:
        return env_override

    login_shell = os.environ.get("SHELL", "")
    if login_shell.endswith(SUPPORTED_LOGIN_SHELLS):
        return login_shell

    return DEFAULT_SHELL


def build_environment(overrides: dict[str, str] | None = None) -> dict[str, str]:
    """Process environment plus caller overrides, with pagers disabled."""
    return {**os.environ, **(overrides or {}), **NON_INTERACTIVE_ENV}


def truncate_output(text: str, max_length: int) -> tuple[str, bool]:
    """Cut a stream to ``max_length`` characters and right-trim it.

    Returns:
        Tuple of (text, truncated_flag).
    """
    truncated = False
    if len(text) > max_length:
        text = text[:max_length] + truncation_notice(max_length)
        truncated = True
    return text.rstrip(), truncated


def effective_timeout_ms(requested: int | float | None, settings: BashrunSettings) -> int:
    """Requested timeout, defaulted and clamped to the configured maximum."""
    if requested is None or requested <= 0:
        requested = settings.default_timeout_ms
    return int(min(requested, settings.max_timeout_ms))


def resolve_directory(path: str, base: str) -> str:
    """Resolve a ``cd`` argument to a normalised absolute path.

    ``~`` and ``~/...`` are home-relative, absolute paths are kept and
    anything else is taken relative to ``base``.
    """
    if path.startswith("~"):
        path = os.path.expanduser(path)
    if not os.path.isabs(path):
        path = os.path.join(base, path)
    return os.path.normpath(os.path.abspath(path))


def _split_segments(command: str) -> list[tuple[list[str], bool]]:
    """Split a command on unquoted operators into word lists.

    Each segment is flagged as chained when every neighbouring operator
    is ``&&`` or ``;``; pipelines and background jobs run in a subshell.

    Raises:
        ValueError: If the command has unbalanced quotes.
    """
    segments: list[tuple[list[str], bool]] = []
    start = 0
    before: str | None = None
    quote: str | None = None
    i = 0
    while i < len(command):
        char = command[i]
        if quote:
            if char == quote:
                quote = None
            elif char == "\\" and quote == '"':
                i += 1
        elif char == "\\":
            i += 1
        elif char in "'\"":
            quote = char
        elif char in _OPERATOR_CHARS:
            end = i
            while i + 1 < len(command) and command[i + 1] in _OPERATOR_CHARS:
                i += 1
            operator = command[end : i + 1]
            chained = before in _CHAIN_OPERATORS and operator in _CHAIN_OPERATORS
            segments.append((shlex.split(command[start:end]), chained))
            start, before = i + 1, operator
        i += 1
    if quote:
        raise ValueError("No closing quotation")
    segments.append((shlex.split(command[start:]), before in _CHAIN_OPERATORS))
    return segments


def find_cd_target(command: str, base: str) -> str | None:
    """Directory a command leaves the session in, if it changes it.

    Each chained segment of the form ``cd`` or ``cd <path>`` moves the
    target in order; later relative paths resolve from the previous one.
    ``cd -`` is ignored. Returns None when no segment is a ``cd`` or the
    command cannot be tokenised.
    """
    try:
        segments = _split_segments(command)
    except ValueError as e:
        logger.debug("cd_tracking_skipped", command=command, error=str(e))
        return None

    target: str | None = None
    current = base
    for words, chained in segments:
        if not chained or not words or words[0] != "cd" or len(words) > 2:
            continue
        if len(words) == 1:
            path = str(Path.home())
        elif words[1] == "-":
            continue
        else:
            path = words[1]
        current = resolve_directory(path, current)
        target = current
    return target


def _signal_name(signum: int) -> str:
    try:
        return signal.Signals(signum).name
    except ValueError:
        return f"SIG{signum}"


class CommandExecutor:
    """Runs shell commands for one session.

    Example:
        executor = CommandExecutor()
        result = executor.execute("cd /tmp")
        result = executor.execute("pwd")  # runs in /tmp
    """

    def __init__(
        self,
        settings: BashrunSettings | None = None,
        working_dir: str | Path | None = None,
    ):
        """Initialize the executor.

        Args:
            settings: Settings to use; falls back to get_settings() per call.
            working_dir: Starting directory (defaults to the process cwd).
        """
        self._settings = settings
        self._lock = threading.Lock()
        self._working_dir = os.path.normpath(os.path.abspath(working_dir or os.getcwd()))

    @property
    def settings(self) -> BashrunSettings:
        return self._settings or get_settings()

    @property
    def working_directory(self) -> str:
        with self._lock:
            return self._working_dir

    def set_working_directory(self, path: str | Path) -> str:
        """Set the session directory, resolving ``~`` and relative paths.

        Returns:
            The stored absolute path.
        """
        with self._lock:
            self._working_dir = resolve_directory(str(path), self._working_dir)
            return self._working_dir

    def reset_working_directory(self) -> str:
        """Move the session back to the home directory."""
        return self.set_working_directory(Path.home())

    def execute(
        self,
        command: str,
        options: ExecutionOptions | None = None,
    ) -> ExecutionResult:
        """Execute a command and collect its outcome.

        Never raises for runtime failures: a shell that cannot start,
        a timeout or a non-zero exit all come back as an ExecutionResult.

        Args:
            command: The shell command to run.
            options: Timeout, working directory and environment overrides.

        Returns:
            ExecutionResult describing the run.
        """
        options = options or ExecutionOptions()
        settings = self.settings
        timeout_ms = effective_timeout_ms(options.timeout_ms, settings)
        cwd = options.working_dir or self.working_directory
        shell = resolve_shell(settings.shell)
        env = build_environment(options.env)

        start_time = time.monotonic()
        try:
            process = self._spawn(shell, command, cwd, env)
        except OSError as e:
            duration_ms = int((time.monotonic() - start_time) * 1000)
            logger.warning(
                "command_spawn_failed",
                command=command,
                shell=shell,
                working_dir=cwd,
                error=str(e),
            )
            return ExecutionResult(
                stdout="",
                stderr=f"Failed to execute command: {e}",
                exit_code=1,
                duration_ms=duration_ms,
                spawn_error=str(e),
                working_dir=cwd,
            )

        termination = EscalatingTermination(
            process,
            timeout_seconds=timeout_ms / 1000,
            grace_seconds=settings.kill_grace_seconds,
        )
        termination.start()
        try:
            stdout_bytes, stderr_bytes = process.communicate()
        finally:
            termination.cancel()

        duration_ms = int((time.monotonic() - start_time) * 1000)

        exit_code = process.returncode
        signal_name = None
        if exit_code < 0:
            signal_name = _signal_name(-exit_code)
            exit_code = SIGNAL_EXIT_CODE

        stdout, stdout_truncated = truncate_output(
            stdout_bytes.decode("utf-8", errors="replace"), settings.max_output_length
        )
        stderr, stderr_truncated = truncate_output(
            stderr_bytes.decode("utf-8", errors="replace"), settings.max_output_length
        )

        self._update_working_dir_if_cd(command, cwd)

        logger.info(
            "command_executed",
            command=command,
            exit_code=exit_code,
            signal=signal_name,
            timed_out=termination.timed_out,
            duration_ms=duration_ms,
            working_dir=cwd,
        )

        return ExecutionResult(
            stdout=stdout,
            stderr=stderr,
            exit_code=exit_code,
            duration_ms=duration_ms,
            signal=signal_name,
            timed_out=termination.timed_out,
            truncated=stdout_truncated or stderr_truncated,
            working_dir=cwd,
        )

    def _spawn(
        self,
        shell: str,
        command: str,
        cwd: str,
        env: dict[str, str],
    ) -> subprocess.Popen:
        """Start ``shell -c command`` in its own process group with no stdin."""
        return subprocess.Popen(
            [shell, "-c", command],
            cwd=cwd,
            env=env,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            start_new_session=True,
        )

    def _update_working_dir_if_cd(self, command: str, ran_in: str) -> None:
        target = find_cd_target(command.strip(), ran_in)
        if target is None:
            return
        with self._lock:
            self._working_dir = target
        logger.debug("working_directory_changed", working_dir=target)
