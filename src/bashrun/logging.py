"""Structured logging for bashrun.

Events are snake_case names with key/value context, e.g.
``command_blocked``, ``command_executed``, ``confirmation_pending``.
Output goes to stderr so it never mixes with captured command output.
"""

import logging
import sys
from typing import TYPE_CHECKING

import structlog
from structlog.types import Processor

if TYPE_CHECKING:
    from bashrun.config import BashrunSettings


def configure_logging(settings: "BashrunSettings | None" = None) -> None:
    """Configure structlog from settings.

    Args:
        settings: Settings providing ``log_level`` and ``log_format``.
            Without settings, warnings and above are rendered for the console.
    """
    level_name = settings.log_level if settings is not None else "warning"
    log_format = settings.log_format if settings is not None else "console"

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if log_format == "json":
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, level_name.upper())
        ),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def bind_context(**kwargs: object) -> None:
    """Attach key/values (typically ``session_id``) to later log events."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    structlog.contextvars.unbind_contextvars(*keys)


class Loggers:
    """Named loggers for bashrun components."""

    @staticmethod
    def shell() -> structlog.stdlib.BoundLogger:
        """Classification, execution and audit."""
        return structlog.get_logger("bashrun.shell")

    @staticmethod
    def hitl() -> structlog.stdlib.BoundLogger:
        """Confirmation tracking."""
        return structlog.get_logger("bashrun.hitl")

    @staticmethod
    def config() -> structlog.stdlib.BoundLogger:
        """Settings and rules files."""
        return structlog.get_logger("bashrun.config")
