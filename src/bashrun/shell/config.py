"""Operator-supplied rule extensions for the security classifier.

A YAML rules file can append patterns to the deny, ask and warn tiers:

    deny_patterns:
      - pattern: 'terraform\\s+destroy'
        message: Destroying infrastructure is blocked
    ask_patterns:
      - pattern: 'kubectl\\s+delete'
        message: Deleting cluster resources
        ignore_case: true
    warn_patterns:
      - pattern: 'docker\\s+system\\s+prune'
        message: Prunes unused Docker data
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from bashrun.config import SettingsValidationError
from bashrun.logging import Loggers
from bashrun.shell.classifier import RuleSet, SecurityRule, rule

logger = Loggers.config()


@dataclass
class RulePattern:
    """One configured pattern.

    Attributes:
        pattern: Regular expression searched in the trimmed command.
        message: Reason or warning reported on a match.
        ignore_case: Compile the pattern case-insensitively.
    """

    pattern: str
    message: str
    ignore_case: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any], tier: str) -> "RulePattern":
        if not isinstance(data, dict):
            raise SettingsValidationError(
                f"{tier}: each entry must be a mapping, got {type(data).__name__}"
            )
        pattern = data.get("pattern")
        if not isinstance(pattern, str) or not pattern:
            raise SettingsValidationError(f"{tier}: entry is missing 'pattern'")
        message = data.get("message") or f"Matched configured pattern: {pattern}"
        return cls(
            pattern=pattern,
            message=str(message),
            ignore_case=bool(data.get("ignore_case", False)),
        )

    def to_rule(self) -> SecurityRule:
        try:
            return rule(self.pattern, self.message, ignore_case=self.ignore_case)
        except re.error as e:
            raise SettingsValidationError(
                f"Invalid pattern {self.pattern!r}: {e}"
            ) from e

    def to_dict(self) -> dict[str, Any]:
        return {
            "pattern": self.pattern,
            "message": self.message,
            "ignore_case": self.ignore_case,
        }


@dataclass
class ShellRulesConfig:
    """Additional patterns for the deny, ask and warn tiers."""

    deny_patterns: list[RulePattern] = field(default_factory=list)
    ask_patterns: list[RulePattern] = field(default_factory=list)
    warn_patterns: list[RulePattern] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ShellRulesConfig":
        """Create config from dictionary.

        Args:
            data: Configuration dictionary.

        Returns:
            ShellRulesConfig instance.

        Raises:
            SettingsValidationError: If an entry is malformed.
        """
        if not isinstance(data, dict):
            raise SettingsValidationError("Rules config must be a mapping")

        def parse(tier: str) -> list[RulePattern]:
            entries = data.get(tier) or []
            if not isinstance(entries, list):
                raise SettingsValidationError(f"{tier} must be a list")
            return [RulePattern.from_dict(entry, tier) for entry in entries]

        return cls(
            deny_patterns=parse("deny_patterns"),
            ask_patterns=parse("ask_patterns"),
            warn_patterns=parse("warn_patterns"),
        )

    @classmethod
    def from_yaml(cls, path: Path | str) -> "ShellRulesConfig":
        """Load config from YAML file.

        A missing file yields an empty config.

        Args:
            path: Path to YAML rules file.

        Returns:
            ShellRulesConfig instance.

        Raises:
            SettingsValidationError: If the file is not valid YAML or
                contains malformed entries.
        """
        path = Path(path).expanduser()
        if not path.exists():
            logger.debug("rules_file_missing", path=str(path))
            return cls()

        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise SettingsValidationError(f"Failed to parse {path}: {e}") from e

        config = cls.from_dict(data)
        logger.info(
            "rules_file_loaded",
            path=str(path),
            deny=len(config.deny_patterns),
            ask=len(config.ask_patterns),
            warn=len(config.warn_patterns),
        )
        return config

    def apply(self, rules: RuleSet | None = None) -> RuleSet:
        """Append the configured patterns after the built-in tiers.

        Args:
            rules: Base rule set (defaults to the built-in rules).

        Returns:
            Extended RuleSet.
        """
        base = rules or RuleSet()
        return base.extend(
            blocked=[p.to_rule() for p in self.deny_patterns],
            ask=[p.to_rule() for p in self.ask_patterns],
            warn=[p.to_rule() for p in self.warn_patterns],
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary."""
        return {
            "deny_patterns": [p.to_dict() for p in self.deny_patterns],
            "ask_patterns": [p.to_dict() for p in self.ask_patterns],
            "warn_patterns": [p.to_dict() for p in self.warn_patterns],
        }
