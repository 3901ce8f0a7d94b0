"""Error types for bashrun.

Provides:
- ToolError: Standard error class for request failures
- ErrorCode: Machine-readable error codes
"""

from typing import Any


class ToolError(Exception):
    """Standard error for shell tool failures.

    Provides structured error information that the calling agent can use
    to understand and potentially recover from a failed request.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code
        recoverable: Whether retrying with different input might succeed
        details: Additional error details
        tool_name: Name of the tool that failed
    """

    def __init__(
        self,
        message: str,
        error_code: str = "TOOL_ERROR",
        recoverable: bool = False,
        details: dict[str, Any] | None = None,
        tool_name: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.recoverable = recoverable
        self.details = details or {}
        self.tool_name = tool_name

    def to_dict(self) -> dict[str, Any]:
        """Convert to a flat response dictionary for the agent."""
        result: dict[str, Any] = {
            "success": False,
            "error": self.message,
            "error_code": self.error_code,
            "recoverable": self.recoverable,
        }
        if self.details:
            result["details"] = self.details
        if self.tool_name:
            result["tool_name"] = self.tool_name
        return result


class ErrorCode:
    """Standard error codes for tool failures."""

    # Input errors
    INVALID_INPUT = "INVALID_INPUT"
    MISSING_REQUIRED = "MISSING_REQUIRED"

    # Resource errors
    NOT_FOUND = "NOT_FOUND"
    NOT_A_DIRECTORY = "NOT_A_DIRECTORY"

    # Policy errors
    UNKNOWN_TOOL = "UNKNOWN_TOOL"

    # Internal errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
