"""Shared test fixtures and utilities for bashrun tests.

Provides:
- MockContext for isolating tests from global state
- Temporary home and working directory fixtures
- Settings and tool fixtures
"""

import os
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from bashrun.config import (
    BashrunSettings,
    reload_settings,
    set_context_settings,
    set_settings,
)
from bashrun.hitl import ConfirmationStore
from bashrun.shell import BashTool, CommandExecutor


class MockContext:
    """Context manager for isolating tests from global state.

    Handles:
    - Clearing BASHRUN_* environment variables
    - Resetting the global settings singleton
    - Providing a temporary working directory and audit directory

    Usage:
        with MockContext(bash_mode="auto") as ctx:
            settings = ctx.settings
            workdir = ctx.work_dir
    """

    def __init__(self, **settings_kwargs):
        """Initialize mock context.

        Args:
            **settings_kwargs: Settings overrides
        """
        self._settings_kwargs = settings_kwargs
        self._temp_dir: tempfile.TemporaryDirectory | None = None
        self._settings: BashrunSettings | None = None
        self._original_env: dict[str, str | None] = {}

    def __enter__(self) -> "MockContext":
        """Enter the mock context."""
        self._temp_dir = tempfile.TemporaryDirectory()
        root = Path(self._temp_dir.name)
        (root / "work").mkdir()

        # Preserve and clear bashrun environment variables
        for var in [name for name in os.environ if name.startswith("BASHRUN_")]:
            self._original_env[var] = os.environ.pop(var)

        kwargs = {"audit_dir": root / "audit", **self._settings_kwargs}
        self._settings = BashrunSettings(**kwargs)
        set_settings(self._settings)

        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit the mock context and clean up."""
        set_context_settings(None)

        for var, value in self._original_env.items():
            if value is None:
                os.environ.pop(var, None)
            else:
                os.environ[var] = value

        reload_settings()

        if self._temp_dir:
            self._temp_dir.cleanup()

    @property
    def settings(self) -> BashrunSettings:
        """Get the test settings instance."""
        if self._settings is None:
            raise RuntimeError("MockContext not entered")
        return self._settings

    @property
    def work_dir(self) -> Path:
        """Get the temporary working directory."""
        if self._temp_dir is None:
            raise RuntimeError("MockContext not entered")
        return Path(self._temp_dir.name) / "work"


@pytest.fixture
def mock_context() -> Generator[MockContext, None, None]:
    """Fixture providing an isolated test context."""
    with MockContext() as ctx:
        yield ctx


@pytest.fixture
def fake_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point HOME at a temporary directory."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    return home


@pytest.fixture
def work_dir(tmp_path: Path) -> Path:
    """Fixture providing a temporary working directory."""
    workspace = tmp_path / "work"
    workspace.mkdir(parents=True)
    return workspace


@pytest.fixture
def settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> BashrunSettings:
    """Settings isolated from the environment, with a bash shell."""
    for name in list(os.environ):
        if name.startswith("BASHRUN_"):
            monkeypatch.delenv(name)
    return BashrunSettings(shell="/bin/bash", audit_dir=tmp_path / "audit")


@pytest.fixture
def executor(settings: BashrunSettings, work_dir: Path) -> CommandExecutor:
    """Executor starting in the temporary working directory."""
    return CommandExecutor(settings, working_dir=work_dir)


@pytest.fixture
def store() -> ConfirmationStore:
    """Fresh in-memory confirmation store."""
    return ConfirmationStore()


@pytest.fixture
def tool(settings: BashrunSettings, store: ConfirmationStore, work_dir: Path) -> BashTool:
    """BashTool in ask mode starting in the temporary working directory."""
    return BashTool(settings=settings, gate=store, working_dir=str(work_dir))
