"""Shared constants for bashrun."""

# Execution limits
DEFAULT_TIMEOUT_MS = 120_000  # 2 minutes
MAX_TIMEOUT_MS = 600_000  # 10 minutes
MAX_OUTPUT_LENGTH = 30_000  # characters per stream

# Grace period between SIGTERM and SIGKILL on timeout
KILL_GRACE_SECONDS = 5.0

# Exit code reported when the child died from a signal
SIGNAL_EXIT_CODE = 128

# Shell selection
SHELL_OVERRIDE_ENV = "BASHRUN_SHELL"
DEFAULT_SHELL = "/bin/bash"
SUPPORTED_LOGIN_SHELLS = ("bash", "zsh")

# Environment forced on every child so nothing waits on a terminal
NON_INTERACTIVE_ENV = {
    "TERM": "dumb",
    "PAGER": "cat",
    "GIT_PAGER": "cat",
}

# Audit previews
CONTENT_PREVIEW_LENGTH = 500


def truncation_notice(max_length: int = MAX_OUTPUT_LENGTH) -> str:
    """Marker appended to a stream cut at ``max_length`` characters."""
    return f"\n\n[Output truncated - exceeded {max_length} characters]"
