"""Settings for bashrun.

Settings Management:
    The module provides both global singleton and context-based settings:

    1. Global singleton (simple cases):
        set_settings(my_settings)
        settings = get_settings()

    2. Context-based (isolated sessions, tests):
        with SettingsContext(my_settings):
            settings = get_settings()  # Returns my_settings

Settings Loading Priority (highest to lowest):
    1. Constructor arguments
    2. Environment variables (BASHRUN_* prefix)
    3. Project config (./.bashrun/settings.json)
    4. User config (~/.bashrun/settings.json)
    5. .env file
    6. Default values
"""

from contextlib import contextmanager
from contextvars import ContextVar, Token
from pathlib import Path
from typing import Generator, Literal, Tuple, Type

from pydantic import Field, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    JsonConfigSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from bashrun.constants import (
    DEFAULT_TIMEOUT_MS,
    KILL_GRACE_SECONDS,
    MAX_OUTPUT_LENGTH,
    MAX_TIMEOUT_MS,
)

__all__ = [
    "APP_NAME",
    "BashrunSettings",
    "SettingsContext",
    "SettingsValidationError",
    "get_settings",
    "set_settings",
    "set_context_settings",
    "get_context_settings",
    "reload_settings",
]

APP_NAME = "bashrun"


def _get_json_config_source(
    settings_cls: Type[BaseSettings],
    json_file: Path,
) -> PydanticBaseSettingsSource | None:
    """Create a JSON config source if the file exists."""
    if not json_file.exists():
        return None
    return JsonConfigSettingsSource(settings_cls, json_file=json_file)


class BashrunSettings(BaseSettings):
    """Settings for the shell execution pipeline.

    Settings are loaded from (in order of precedence):
    1. Constructor arguments
    2. Environment variables (BASHRUN_ prefix)
    3. Project config (./.bashrun/settings.json)
    4. User config (~/.bashrun/settings.json)
    5. .env file
    6. Default values
    """

    model_config = SettingsConfigDict(
        env_prefix="BASHRUN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Confirmation behaviour
    bash_mode: Literal["ask", "auto"] = Field(
        default="ask",
        title="Bash Mode",
        description=(
            "'ask' pauses risky commands until the user confirms; "
            "'auto' runs them immediately (blocked commands stay blocked)"
        ),
    )

    # Execution limits
    default_timeout_ms: int = Field(
        default=DEFAULT_TIMEOUT_MS,
        gt=0,
        title="Default Timeout",
        description="Timeout applied when a request does not specify one (ms)",
    )
    max_timeout_ms: int = Field(
        default=MAX_TIMEOUT_MS,
        gt=0,
        title="Maximum Timeout",
        description="Upper bound for any requested timeout (ms)",
    )
    max_output_length: int = Field(
        default=MAX_OUTPUT_LENGTH,
        gt=0,
        title="Maximum Output Length",
        description="Characters kept per stream before truncation",
    )
    kill_grace_seconds: float = Field(
        default=KILL_GRACE_SECONDS,
        ge=0,
        title="Kill Grace Period",
        description="Seconds between SIGTERM and SIGKILL after a timeout",
    )
    shell: str | None = Field(
        default=None,
        title="Shell",
        description="Shell binary used to run commands (overrides $SHELL)",
    )

    # Policy extensions
    rules_file: Path | None = Field(
        default=None,
        title="Rules File",
        description="YAML file with additional deny/ask/warn patterns",
    )

    # Audit trail
    audit_enabled: bool = Field(
        default=False,
        title="Audit Enabled",
        description="Write every attempted command to a JSONL audit log",
    )
    audit_dir: Path = Field(
        default_factory=lambda: Path.home() / ".local" / "share" / APP_NAME / "audit",
        title="Audit Directory",
        description="Directory for audit log files",
    )
    audit_retention_days: int = Field(
        default=30,
        gt=0,
        title="Audit Retention",
        description="Days to keep audit log files",
    )

    # Logging configuration
    log_level: Literal["debug", "info", "warning", "error"] = Field(
        default="warning",
        title="Log Level",
        description="Logging verbosity level",
    )
    log_format: Literal["console", "json"] = Field(
        default="console",
        title="Log Format",
        description="Log output format (console for dev, json for production)",
    )

    @field_validator("audit_dir", "rules_file", mode="before")
    @classmethod
    def expand_path(cls, v: str | Path | None) -> Path | None:
        """Expand ~ in paths."""
        if isinstance(v, str):
            return Path(v).expanduser()
        if isinstance(v, Path):
            return v.expanduser()
        return v

    @model_validator(mode="after")
    def check_timeouts(self) -> "BashrunSettings":
        """The default timeout must fit under the maximum."""
        if self.default_timeout_ms > self.max_timeout_ms:
            raise ValueError(
                f"default_timeout_ms ({self.default_timeout_ms}) exceeds "
                f"max_timeout_ms ({self.max_timeout_ms})"
            )
        return self

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources for layered JSON configuration.

        Note: JSON sources are only included if the files exist.
        """
        sources: list[PydanticBaseSettingsSource] = [
            init_settings,
            env_settings,
        ]

        project_json = _get_json_config_source(
            settings_cls,
            Path.cwd() / f".{APP_NAME}" / "settings.json",
        )
        if project_json:
            sources.append(project_json)

        user_json = _get_json_config_source(
            settings_cls,
            Path.home() / f".{APP_NAME}" / "settings.json",
        )
        if user_json:
            sources.append(user_json)

        sources.append(dotenv_settings)

        return tuple(sources)


# Context variable for settings (takes precedence over global singleton)
_settings_context: ContextVar[BashrunSettings | None] = ContextVar(
    "settings_context", default=None
)

# Global settings instance holder (fallback when no context)
_settings_instance: BashrunSettings | None = None


def get_settings() -> BashrunSettings:
    """Get the current settings instance.

    Settings resolution order:
    1. Context variable (set via SettingsContext or set_context_settings)
    2. Global singleton (set via set_settings)
    3. Fresh BashrunSettings instance (created on first access)

    Returns:
        BashrunSettings instance for the current context
    """
    context_settings = _settings_context.get()
    if context_settings is not None:
        return context_settings

    global _settings_instance
    if _settings_instance is None:
        _settings_instance = BashrunSettings()
    return _settings_instance


def set_settings(settings: BashrunSettings) -> None:
    """Set the global settings instance.

    Args:
        settings: Settings instance to use globally
    """
    global _settings_instance
    _settings_instance = settings


def set_context_settings(settings: BashrunSettings | None) -> Token:
    """Set settings for the current context.

    Args:
        settings: Settings to use in current context, or None to clear

    Returns:
        Token that can be used to reset the context variable.
    """
    return _settings_context.set(settings)


def get_context_settings() -> BashrunSettings | None:
    """Get settings from current context (if any)."""
    return _settings_context.get()


@contextmanager
def SettingsContext(settings: BashrunSettings) -> Generator[BashrunSettings, None, None]:
    """Context manager for isolated settings.

    Example:
        with SettingsContext(test_settings) as s:
            tool = BashTool()  # Tool will use test_settings

    Args:
        settings: Settings to use within the context

    Yields:
        The settings instance
    """
    token = _settings_context.set(settings)
    try:
        yield settings
    finally:
        _settings_context.reset(token)


def reload_settings() -> BashrunSettings:
    """Reload settings (clears global singleton and context cache).

    Returns:
        Fresh BashrunSettings instance
    """
    global _settings_instance
    _settings_instance = None
    _settings_context.set(None)
    return get_settings()


class SettingsValidationError(Exception):
    """Raised when a settings or rules file cannot be used."""

    pass
