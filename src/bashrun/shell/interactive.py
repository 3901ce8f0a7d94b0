"""Detection of commands that need a live terminal.

Commands run with stdin closed and no TTY, so anything that waits for
keystrokes would hang until the timeout. These are rejected up front,
before classification or execution.
"""

import re
from dataclasses import dataclass

from bashrun.shell.models import InteractivityCheck


@dataclass(frozen=True)
class InteractiveMarker:
    """A pattern identifying a terminal-bound program or usage."""

    pattern: re.Pattern[str]
    reason: str


def _marker(pattern: str, reason: str) -> InteractiveMarker:
    return InteractiveMarker(re.compile(pattern), reason)


# Evaluated in order; the first match supplies the reason.
INTERACTIVE_MARKERS: tuple[InteractiveMarker, ...] = (
    # git operations that open an editor or prompt
    _marker(r"\bgit\s+rebase\s+-i", "Interactive rebase requires editor input"),
    _marker(r"\bgit\s+add\s+-i", "Interactive staging requires user input"),
    _marker(r"\bgit\s+add\s+--interactive", "Interactive staging requires user input"),
    # Full-screen editors
    _marker(r"\bvim?\b", "Vim requires interactive terminal"),
    _marker(r"\bnano\b", "Nano requires interactive terminal"),
    _marker(r"\bemacs\b", "Emacs requires interactive terminal"),
    # Pagers
    _marker(r"\bless\b", "Less pager requires interactive terminal"),
    _marker(r"\bmore\b", "More pager requires interactive terminal"),
    # System monitors
    _marker(r"\btop\b", "Top requires interactive terminal"),
    _marker(r"\bhtop\b", "Htop requires interactive terminal"),
    # Prompting
    _marker(r"\bread\s+-[^s]", "Read with prompts requires user input"),
    _marker(r"\bssh\b(?!-)(?!.*-[oT])", "SSH may require interactive input"),
    _marker(r"\bpasswd\b", "Passwd requires interactive input"),
    # Database shells without a one-shot query flag
    _marker(r"\bmysql\b(?!.*-e)", "MySQL interactive mode requires user input"),
    _marker(r"\bpsql\b(?!.*-c)", "PostgreSQL interactive mode requires user input"),
)


class InteractivityDetector:
    """Flags commands that require a real terminal."""

    def __init__(self, markers: tuple[InteractiveMarker, ...] = INTERACTIVE_MARKERS):
        self.markers = markers

    def check(self, command: str) -> InteractivityCheck:
        """Check a command against the interactive markers.

        Args:
            command: The shell command to check.

        Returns:
            InteractivityCheck with the reason of the first matching marker.
        """
        for marker in self.markers:
            if marker.pattern.search(command):
                return InteractivityCheck(interactive=True, reason=marker.reason)
        return InteractivityCheck(interactive=False)


_default_detector = InteractivityDetector()


def check_interactive(command: str) -> InteractivityCheck:
    """Check a command with the default markers."""
    return _default_detector.check(command)
