"""Permission pattern matching and command prefix extraction.

These helpers back an allow-list kept by the calling layer (for example
"always allow ``git:*``"). They do not gate execution on their own.
"""

import re

# Tools whose second word is a subcommand worth keying permissions on
SUBCOMMAND_TOOLS = frozenset(
    {
        "git",
        "npm",
        "yarn",
        "pnpm",
        "pip",
        "pip3",
        "cargo",
        "docker",
        "podman",
        "kubectl",
        "helm",
        "brew",
        "apt",
        "apt-get",
        "systemctl",
        "launchctl",
    }
)

_WRAPPER = re.compile(r"^\w+\((.*)\)$")
_ENV_ASSIGNMENTS = re.compile(r"^(\s*\w+=\S+\s+)+")
_SEGMENT_SEPARATOR = re.compile(r"[|;&]")
_SHORT_FLAG = re.compile(r"^-[A-Za-z]$")
_LONG_FLAG = re.compile(r"^--\w+$")


def _pattern_to_regex(pattern: str) -> re.Pattern[str]:
    # '*' is any substring, ':' is a run of whitespace, the rest is literal
    parts = []
    for char in pattern:
        if char == "*":
            parts.append(".*")
        elif char == ":":
            parts.append(r"\s+")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), re.IGNORECASE)


def matches_pattern(command: str, pattern: str | None) -> bool:
    """Check whether a command matches a permission pattern.

    Examples:
        >>> matches_pattern('git commit -m "x"', "git:*")
        True
        >>> matches_pattern("npm test", "Bash(git:*)")
        False

    Args:
        command: The command to test.
        pattern: Pattern such as ``git:*``, ``npm *`` or ``Bash(git:*)``.
            Empty or ``*`` matches everything.

    Returns:
        True if the pattern matches at the start of the trimmed command.
    """
    if not pattern or pattern == "*":
        return True

    wrapped = _WRAPPER.match(pattern)
    if wrapped:
        pattern = wrapped.group(1)

    return _pattern_to_regex(pattern).match(command.strip()) is not None


def extract_primary_command(command: str | None) -> str:
    """Return the program name of the first segment of a command.

    Leading ``NAME=value`` assignments are skipped and the command is cut
    at the first pipe, semicolon or ampersand.
    """
    if not command:
        return ""

    stripped = _ENV_ASSIGNMENTS.sub("", command).strip()
    first_segment = _SEGMENT_SEPARATOR.split(stripped, maxsplit=1)[0].strip()
    words = first_segment.split()
    return words[0] if words else ""


def get_command_prefix(command: str | None) -> str:
    """Get the command prefix used as a permission key.

    For tools with subcommands, leading flags are skipped (together with
    the argument of flags shaped ``-X`` or ``--word``) and the result is
    ``"<tool> <subcommand>"``:

        >>> get_command_prefix("git -C /path commit -m x")
        'git commit'

    Otherwise the first token is returned.
    """
    if not command:
        return ""

    parts = command.strip().split()
    if not parts:
        return ""
    primary = parts[0]

    if primary in SUBCOMMAND_TOOLS:
        i = 1
        while i < len(parts):
            part = parts[i]
            if part.startswith("-"):
                i += 1
                takes_argument = _SHORT_FLAG.match(part) or _LONG_FLAG.match(part)
                if takes_argument and i < len(parts) and not parts[i].startswith("-"):
                    i += 1
                continue
            return f"{primary} {part}"

    return primary
