"""Shell command pipeline for AI agents.

Every command passes through, in order:
- Interactivity detection (no editors, pagers or prompts)
- Security classification (deny / ask / allow, plus warnings and suggestions)
- Confirmation (ask decisions wait for the user via a ConfirmationGate)
- Execution (timeout with escalating kill, output limits, persistent cwd)
- Audit logging (optional JSONL trail)

Usage:
    from bashrun.shell import BashTool

    tool = BashTool()

    # Safe command - runs immediately
    result = tool.run("ls -la")

    # Risky command - returns requires_confirmation
    result = tool.run("rm -rf ./build")
    if result.get("requires_confirmation"):
        # Ask the user, then re-issue with approved=True
        result = tool.run("rm -rf ./build", approved=True)

    # Blocked command - never runs
    result = tool.run("rm -rf /")
    # result["blocked"] is True, result["error"] holds the reason
"""

from bashrun.shell.tool import BashTool, TOOL_DEFINITIONS, format_result
from bashrun.shell.classifier import (
    RuleSet,
    SecurityClassifier,
    SecurityRule,
    classify,
)
from bashrun.shell.config import RulePattern, ShellRulesConfig
from bashrun.shell.interactive import InteractivityDetector, check_interactive
from bashrun.shell.permissions import (
    extract_primary_command,
    get_command_prefix,
    matches_pattern,
)
from bashrun.shell.executor import CommandExecutor, resolve_shell, truncate_output
from bashrun.shell.termination import EscalatingTermination
from bashrun.shell.models import (
    Decision,
    ExecutionOptions,
    ExecutionResult,
    InteractivityCheck,
    SecurityDecision,
    Suggestion,
)
from bashrun.shell.audit import AuditConfig, AuditEntry, AuditLogger

__all__ = [
    # Tool facade
    "BashTool",
    "TOOL_DEFINITIONS",
    "format_result",
    # Classification
    "RuleSet",
    "SecurityClassifier",
    "SecurityRule",
    "classify",
    "RulePattern",
    "ShellRulesConfig",
    "InteractivityDetector",
    "check_interactive",
    # Permissions
    "extract_primary_command",
    "get_command_prefix",
    "matches_pattern",
    # Execution
    "CommandExecutor",
    "EscalatingTermination",
    "resolve_shell",
    "truncate_output",
    # Models
    "Decision",
    "ExecutionOptions",
    "ExecutionResult",
    "InteractivityCheck",
    "SecurityDecision",
    "Suggestion",
    # Audit
    "AuditConfig",
    "AuditEntry",
    "AuditLogger",
]
