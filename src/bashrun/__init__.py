"""bashrun - safe shell command execution for AI agents.

Lets an agent run arbitrary shell commands on the user's machine while
blocking irreversible damage, pausing risky commands for confirmation and
refusing anything that needs a live terminal.

Quick start:
    from bashrun import BashTool, configure_logging, get_settings

    configure_logging(get_settings())
    tool = BashTool()
    tool.dispatch("bash_run", {"command": "git status"}, session_id="chat-1")
"""

from bashrun.config import (
    BashrunSettings,
    SettingsContext,
    SettingsValidationError,
    get_context_settings,
    get_settings,
    reload_settings,
    set_context_settings,
    set_settings,
)
from bashrun.errors import ErrorCode, ToolError
from bashrun.hitl import ConfirmationGate, ConfirmationState, ConfirmationStore
from bashrun.logging import configure_logging
from bashrun.shell import TOOL_DEFINITIONS, BashTool, CommandExecutor, classify

__version__ = "0.1.0"

__all__ = [
    # Settings
    "BashrunSettings",
    "SettingsContext",
    "SettingsValidationError",
    "get_settings",
    "set_settings",
    "set_context_settings",
    "get_context_settings",
    "reload_settings",
    # Errors
    "ErrorCode",
    "ToolError",
    # Confirmation
    "ConfirmationGate",
    "ConfirmationState",
    "ConfirmationStore",
    # Tools
    "BashTool",
    "CommandExecutor",
    "TOOL_DEFINITIONS",
    "classify",
    # Logging
    "configure_logging",
]
