"""Security classification of shell commands.

Commands are checked against four ordered rule tiers:
- BLOCKED: irreversible damage, always denied
- ASK: risky but legitimate, needs user confirmation
- WARN: allowed, with a caution attached
- SUGGEST: allowed, with a pointer to a dedicated tool

Within a tier the first matching rule wins. A blocked or ask match ends
evaluation; warn and suggest only annotate an allow decision.
"""

import re
from dataclasses import dataclass, field
from typing import Iterable

from bashrun.shell.models import Decision, SecurityDecision, Suggestion


@dataclass(frozen=True)
class SecurityRule:
    """One entry of a rule tier.

    Attributes:
        pattern: Compiled regex searched anywhere in the trimmed command.
        message: Reason, warning or suggestion text reported on a match.
        tool: Suggested tool name (suggest tier only).
    """

    pattern: re.Pattern[str]
    message: str
    tool: str | None = None

    def matches(self, command: str) -> bool:
        return self.pattern.search(command) is not None


def rule(
    pattern: str,
    message: str,
    tool: str | None = None,
    ignore_case: bool = False,
) -> SecurityRule:
    """Build a SecurityRule from a regex string."""
    flags = re.IGNORECASE if ignore_case else 0
    return SecurityRule(re.compile(pattern, flags), message, tool)


# Start of the command or of any chained, piped, grouped or new-line segment
_SEGMENT_START = r"(?:^|[;&|(\n{`]\s*)"

BLOCKED_RULES: tuple[SecurityRule, ...] = (
    # Recursive delete of an absolute path from root
    rule(
        r"\brm\s+(?:-[a-zA-Z]+\s+)*-[a-zA-Z]*r[a-zA-Z]*\s+(?:-[a-zA-Z-]+\s+)*/(?:$|[^./])",
        "Recursive delete from root is blocked",
    ),
    rule(r"\brm\s+-rf\s+/(?:$|[^./])", "rm -rf from root is blocked"),
    rule(r"\brm\s+-fr\s+/(?:$|[^./])", "rm -fr from root is blocked"),
    rule(
        r"\brm\s+(?:-\S+\s+)*--recursive\s+(?:-\S+\s+)*/(?:$|[^./])",
        "Recursive delete from root is blocked",
    ),
    # Direct device writes
    rule(r"\bdd\s+.*of=/dev/", "Direct writes to devices are blocked"),
    rule(r">\s*/dev/sd[a-z]", "Direct writes to disk devices are blocked"),
    rule(r">\s*/dev/nvme", "Direct writes to NVMe devices are blocked"),
    # Filesystem destruction
    rule(r"\bmkfs\.", "Filesystem creation is blocked"),
    rule(r"\bmkswap\s+/dev/", "Swap creation on devices is blocked"),
    # Fork bombs
    rule(r":\(\)\{.*:\|:", "Fork bomb detected and blocked"),
    rule(r"\.\(\)\{.*\.\|\.\s*&\s*\}", "Fork bomb detected and blocked"),
    # Credential file overwrites
    rule(r">\s*/etc/passwd\b", "Overwriting /etc/passwd is blocked"),
    rule(r">\s*/etc/shadow\b", "Overwriting /etc/shadow is blocked"),
    rule(r">\s*/etc/sudoers\b", "Overwriting /etc/sudoers is blocked"),
    # Kernel manipulation
    rule(r"\binsmod\s+", "Kernel module loading is blocked"),
    rule(r"\brmmod\s+", "Kernel module removal is blocked"),
    rule(r"\bmodprobe\s+", "Kernel module manipulation is blocked"),
)

ASK_RULES: tuple[SecurityRule, ...] = (
    # Privilege escalation
    rule(_SEGMENT_START + r"sudo\s+", "Command requires elevated privileges (sudo)"),
    rule(_SEGMENT_START + r"su(?:\s+|$)", "Command switches user (su)"),
    rule(_SEGMENT_START + r"doas\s+", "Command requires elevated privileges (doas)"),
    # Recursive deletes not rooted at /
    rule(r"\brm\s+(?:-[a-zA-Z]+\s+)*-[a-zA-Z]*r", "Recursive delete - verify the path is correct"),
    rule(r"\brm\s+(?:-\S+\s+)*--recursive", "Recursive delete - verify the path is correct"),
    # World-writable permissions
    rule(r"\bchmod\s+777", "Setting world-writable permissions (777)"),
    rule(r"\bchmod\s+-R\s+777", "Recursively setting world-writable permissions"),
    rule(r"\bchmod\s+666", "Setting world-writable file permissions (666)"),
    # Destructive git operations
    rule(r"\bgit\s+push\s+.*--force", "Force push can overwrite remote history"),
    rule(r"\bgit\s+push\s+(?:.*\s)?-f\b", "Force push can overwrite remote history"),
    rule(r"\bgit\s+reset\s+--hard", "Hard reset will discard all local changes"),
    rule(r"\bgit\s+clean\s+-[a-zA-Z]*f", "Git clean will permanently delete untracked files"),
    rule(r"\bgit\s+checkout\s+(?:--\s+)?\.(?:\s|$)", "This will discard all unstaged changes"),
    rule(r"\bgit\s+restore\s+\.(?:\s|$)", "This will discard all unstaged changes"),
    # Remote scripts piped into a shell
    rule(
        r"\bcurl\s+.*\|\s*(?:ba|z)?sh\b",
        "Piping curl to a shell is risky - review the script first",
    ),
    rule(
        r"\bwget\s+.*\|\s*(?:ba|z)?sh\b",
        "Piping wget to a shell is risky - review the script first",
    ),
    # Service control
    rule(r"\bsystemctl\s+(?:stop|disable|mask)\b", "Stopping/disabling system services"),
    rule(r"\blaunchctl\s+(?:unload|remove)\b", "Unloading macOS services"),
    # Package installation
    rule(r"\bbrew\s+install\b", "Installing packages with Homebrew"),
    rule(r"\bapt-get\s+install\b", "Installing packages with apt-get"),
    rule(r"\bapt\s+install\b", "Installing packages with apt"),
    rule(r"\bnpm\s+(?:install|i)\s+-g\b", "Installing global npm packages"),
    rule(r"\bpip3?\s+install\b", "Installing Python packages"),
    rule(r"\bgem\s+install\b", "Installing Ruby gems"),
    rule(r"\bcargo\s+install\b", "Installing Rust packages"),
    # Package removal
    rule(r"\bapt-get\s+(?:remove|purge)\b", "Removing packages from the system"),
    rule(r"\bapt\s+(?:remove|purge)\b", "Removing packages from the system"),
    rule(r"\bbrew\s+uninstall\b", "Uninstalling packages"),
    rule(r"\bnpm\s+uninstall\s+-g\b", "Uninstalling global npm packages"),
    # Disk partitioning
    rule(r"\bfdisk\s+", "Disk partitioning tool"),
    rule(r"\bparted\s+", "Disk partitioning tool"),
    rule(r"\bdiskutil\s+(?:erase|partition)", "Disk utility operation"),
)

WARN_RULES: tuple[SecurityRule, ...] = (
    # Slow scans
    rule(r"\bfind\s+/\s+", "Searching from root directory may be slow"),
    rule(r"\bdu\s+-[a-zA-Z]*h?\s+/[^/]", "Disk usage scan may take a while"),
    # Hidden config files in home
    rule(r">\s*~/\.\w+", "Writing to hidden config file in home directory"),
    # Downloads
    rule(r"\bcurl\s+.*-O", "Downloading file from internet"),
    rule(r"\bwget\s+", "Downloading file from internet"),
    # Environment changes
    rule(r"\bexport\s+PATH=", "Modifying PATH environment variable"),
    rule(r"\bsource\s+", "Sourcing external script"),
    rule(_SEGMENT_START + r"\.\s+/", "Sourcing external script"),
)

SUGGEST_RULES: tuple[SecurityRule, ...] = (
    rule(r"^cat\s+", "Consider using file_read tool instead of cat", tool="file_read"),
    rule(
        r"^head\s+",
        "Consider using file_read tool with limit instead of head",
        tool="file_read",
    ),
    rule(
        r"^tail\s+",
        "Consider using file_read tool with offset instead of tail",
        tool="file_read",
    ),
    rule(
        r"^echo\s+.*>",
        "Consider using file_write tool instead of echo redirect",
        tool="file_write",
    ),
    rule(r"^sed\s+-i", "Consider using file_edit tool instead of sed -i", tool="file_edit"),
    rule(
        r"^find\s+.*-name",
        "Consider using file_list tool with pattern instead of find",
        tool="file_list",
    ),
    rule(r"^grep\s+", "Consider using file_search tool instead of grep", tool="file_search"),
)


@dataclass(frozen=True)
class RuleSet:
    """The four ordered rule tiers."""

    blocked: tuple[SecurityRule, ...] = BLOCKED_RULES
    ask: tuple[SecurityRule, ...] = ASK_RULES
    warn: tuple[SecurityRule, ...] = WARN_RULES
    suggest: tuple[SecurityRule, ...] = SUGGEST_RULES

    def extend(
        self,
        blocked: Iterable[SecurityRule] = (),
        ask: Iterable[SecurityRule] = (),
        warn: Iterable[SecurityRule] = (),
        suggest: Iterable[SecurityRule] = (),
    ) -> "RuleSet":
        """Return a new RuleSet with extra rules appended to each tier."""
        return RuleSet(
            blocked=self.blocked + tuple(blocked),
            ask=self.ask + tuple(ask),
            warn=self.warn + tuple(warn),
            suggest=self.suggest + tuple(suggest),
        )


def _first_match(rules: tuple[SecurityRule, ...], command: str) -> SecurityRule | None:
    for candidate in rules:
        if candidate.matches(command):
            return candidate
    return None


@dataclass(frozen=True)
class SecurityClassifier:
    """Evaluates the rule tiers for a command.

    Stateless: the same command always yields the same decision.
    """

    rules: RuleSet = field(default_factory=RuleSet)

    def classify(self, command: str) -> SecurityDecision:
        """Classify a command.

        Args:
            command: The raw shell command.

        Returns:
            SecurityDecision with the verdict and any warning/suggestion.
        """
        if not isinstance(command, str) or not command.strip():
            return SecurityDecision(
                allowed=False,
                decision=Decision.DENY,
                reason="Command must be a non-empty string",
            )

        trimmed = command.strip()

        blocked = _first_match(self.rules.blocked, trimmed)
        if blocked:
            return SecurityDecision(
                allowed=False, decision=Decision.DENY, reason=blocked.message
            )

        ask = _first_match(self.rules.ask, trimmed)
        if ask:
            return SecurityDecision(allowed=True, decision=Decision.ASK, reason=ask.message)

        warn = _first_match(self.rules.warn, trimmed)
        suggest = _first_match(self.rules.suggest, trimmed)

        return SecurityDecision(
            allowed=True,
            decision=Decision.ALLOW,
            warning=warn.message if warn else None,
            suggestion=(
                Suggestion(tool=suggest.tool or "", message=suggest.message)
                if suggest
                else None
            ),
        )


_default_classifier = SecurityClassifier()


def classify(command: str) -> SecurityDecision:
    """Classify a command with the built-in rules."""
    return _default_classifier.classify(command)
