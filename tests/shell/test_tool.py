"""Tests for the BashTool facade.

Blocked and interactive commands are verified by spying on the spawn
entry point - they never reach a shell.
"""

import os
from unittest.mock import patch

import pytest

from bashrun.config import BashrunSettings
from bashrun.errors import ErrorCode
from bashrun.hitl import ConfirmationState
from bashrun.shell import TOOL_DEFINITIONS, BashTool, ExecutionResult, format_result
from bashrun.shell.executor import CommandExecutor


def same_path(a, b) -> bool:
    return os.path.realpath(a) == os.path.realpath(b)


class TestRunPolicy:
    """Rejections happen before any process is spawned."""

    def test_blocked_command_never_spawns(self, tool):
        with patch.object(CommandExecutor, "_spawn") as spawn:
            result = tool.run("rm -rf /")

        spawn.assert_not_called()
        assert result["success"] is False
        assert result["blocked"] is True
        assert result["error"] == "Command blocked: Recursive delete from root is blocked"

    def test_interactive_command_never_spawns(self, tool):
        with patch.object(CommandExecutor, "_spawn") as spawn:
            result = tool.run("vim file.txt")

        spawn.assert_not_called()
        assert result["success"] is False
        assert result["interactive"] is True
        assert result["error"] == "Cannot execute interactive command: Vim requires interactive terminal"
        assert result["suggestion"]

    def test_interactive_checked_before_classification(self, tool):
        """An interactive command that is also risky is reported as interactive."""
        with patch.object(CommandExecutor, "_spawn") as spawn:
            result = tool.run("sudo vim /etc/hosts")

        spawn.assert_not_called()
        assert result["interactive"] is True

    def test_blocked_is_recorded_on_gate(self, tool, store):
        tool.run("mkfs.ext4 /dev/sda1", session_id="s1")

        assert store.state("s1") is ConfirmationState.DENIED


class TestConfirmationFlow:
    """Ask decisions wait for the user in ask mode."""

    def test_ask_returns_pending(self, tool, store):
        with patch.object(CommandExecutor, "_spawn") as spawn:
            result = tool.run("rm -r build", description="clean", session_id="s1")

        spawn.assert_not_called()
        assert result["success"] is False
        assert result["requires_confirmation"] is True
        assert result["command"] == "rm -r build"
        assert result["reason"] == "Recursive delete - verify the path is correct"
        assert "requires confirmation" in result["message"]

        pending = store.get_pending("s1")
        assert pending is not None
        assert pending.command == "rm -r build"
        assert pending.description == "clean"
        assert store.state("s1") is ConfirmationState.PENDING_CONFIRMATION

    def test_confirmed_command_executes(self, tool, store, work_dir):
        (work_dir / "build").mkdir()
        tool.run("rm -r build", session_id="s1")

        store.confirm("s1")
        result = tool.run("rm -r build", session_id="s1")

        assert result["success"] is True
        assert not (work_dir / "build").exists()
        assert store.state("s1") is ConfirmationState.EXECUTED
        assert store.get_pending("s1") is None

    def test_confirmation_is_for_exact_command(self, tool, store):
        tool.run("rm -r build", session_id="s1")
        store.confirm("s1")

        with patch.object(CommandExecutor, "_spawn") as spawn:
            result = tool.run("rm -r dist", session_id="s1")

        spawn.assert_not_called()
        assert result["requires_confirmation"] is True
        assert store.get_pending("s1").command == "rm -r dist"

    def test_confirmation_is_per_session(self, tool, store):
        tool.run("rm -r build", session_id="s1")
        store.confirm("s1")

        with patch.object(CommandExecutor, "_spawn") as spawn:
            result = tool.run("rm -r build", session_id="s2")

        spawn.assert_not_called()
        assert result["requires_confirmation"] is True

    def test_approved_flag_executes(self, tool, work_dir):
        (work_dir / "out").mkdir()

        result = tool.run("rm -r out", approved=True)

        assert result["success"] is True
        assert not (work_dir / "out").exists()

    def test_approved_flag_keeps_other_pending_command(self, tool, store, work_dir):
        """A caller approval for one command leaves another command's slot alone."""
        (work_dir / "a").mkdir()
        tool.run("rm -r b", session_id="s1")

        result = tool.run("rm -r a", session_id="s1", approved=True)

        assert result["success"] is True
        assert store.get_pending("s1").command == "rm -r b"
        assert store.state("s1") is ConfirmationState.PENDING_CONFIRMATION

    def test_auto_mode_skips_confirmation(self, tmp_path, work_dir):
        settings = BashrunSettings(bash_mode="auto", shell="/bin/bash", audit_dir=tmp_path / "audit")
        tool = BashTool(settings=settings, working_dir=str(work_dir))
        (work_dir / "tmpdir").mkdir()

        result = tool.run("rm -r tmpdir")

        assert result["success"] is True
        assert not (work_dir / "tmpdir").exists()

    def test_auto_mode_still_blocks(self, tmp_path, work_dir):
        settings = BashrunSettings(bash_mode="auto", shell="/bin/bash", audit_dir=tmp_path / "audit")
        tool = BashTool(settings=settings, working_dir=str(work_dir))

        with patch.object(CommandExecutor, "_spawn") as spawn:
            result = tool.run("rm -rf /")

        spawn.assert_not_called()
        assert result["blocked"] is True


class TestRunExecution:
    """Allowed commands run and are formatted."""

    def test_echo(self, tool, work_dir):
        result = tool.run("echo hello")

        assert result["success"] is True
        assert result["exit_code"] == 0
        assert result["stdout"] == "hello"
        assert "stderr" not in result
        assert result["duration"].endswith("ms")
        assert result["working_directory"] == str(work_dir)

    def test_warning_attached(self, tool):
        result = tool.run("export PATH=$PATH:/opt/bin")

        assert result["success"] is True
        assert result["warning"] == "Modifying PATH environment variable"

    def test_suggestion_attached(self, tool, work_dir):
        (work_dir / "notes.txt").write_text("hi\n")

        result = tool.run("cat notes.txt")

        assert result["stdout"] == "hi"
        assert result["suggestion"]["tool"] == "file_read"

    def test_cd_then_pwd(self, tool, tmp_path):
        target = tmp_path / "elsewhere"
        target.mkdir()

        tool.run(f"cd {target}")
        result = tool.run("pwd")

        assert result["working_directory"] == str(target)
        assert same_path(result["stdout"], target)

    def test_timeout_reported(self, tool):
        result = tool.run("sleep 5", timeout=300)

        assert result["success"] is False
        assert result["timed_out"] is True
        assert result["message"] == "Command timed out and was terminated"
        assert result["signal"] == "SIGTERM"

    def test_env_passed(self, tool):
        result = tool.run('printf %s "$NAME"', env={"NAME": "bashrun"})

        assert result["stdout"] == "bashrun"

    def test_working_dir_relative_to_session(self, tool, work_dir):
        (work_dir / "sub").mkdir()

        result = tool.run("pwd", working_dir="sub")

        assert same_path(result["stdout"], work_dir / "sub")

    def test_sessions_are_isolated(self, tool, tmp_path, work_dir):
        tool.run(f"cd {tmp_path}", session_id="a")

        assert tool.pwd("a")["working_directory"] == str(tmp_path)
        assert tool.pwd("b")["working_directory"] == str(work_dir)


class TestRunValidation:
    """Bad input never reaches the shell."""

    @pytest.mark.parametrize(
        "kwargs,code",
        [
            ({"command": None}, ErrorCode.MISSING_REQUIRED),
            ({"command": ""}, ErrorCode.INVALID_INPUT),
            ({"command": "   "}, ErrorCode.INVALID_INPUT),
            ({"command": 42}, ErrorCode.INVALID_INPUT),
            ({"command": "ls", "timeout": "soon"}, ErrorCode.INVALID_INPUT),
            ({"command": "ls", "timeout": True}, ErrorCode.INVALID_INPUT),
            ({"command": "ls", "working_dir": "does-not-exist"}, ErrorCode.NOT_FOUND),
            ({"command": "ls", "env": ["A=1"]}, ErrorCode.INVALID_INPUT),
        ],
    )
    def test_invalid_input(self, tool, kwargs, code):
        with patch.object(CommandExecutor, "_spawn") as spawn:
            result = tool.run(**kwargs)

        spawn.assert_not_called()
        assert result["success"] is False
        assert result["error_code"] == code
        assert result["recoverable"] is True
        assert result["error"]

    def test_working_dir_not_a_directory(self, tool, work_dir):
        (work_dir / "file.txt").write_text("x")

        result = tool.run("ls", working_dir="file.txt")

        assert result["error_code"] == ErrorCode.NOT_A_DIRECTORY


class TestPwdAndCd:
    """Tests for bash_pwd and bash_cd."""

    def test_pwd(self, tool, work_dir):
        assert tool.pwd() == {"working_directory": str(work_dir)}

    def test_cd_absolute(self, tool, tmp_path):
        result = tool.cd(str(tmp_path))

        assert result == {"success": True, "working_directory": str(tmp_path)}
        assert tool.pwd()["working_directory"] == str(tmp_path)

    def test_cd_relative(self, tool, work_dir):
        (work_dir / "src").mkdir()

        result = tool.cd("src")

        assert result["working_directory"] == str(work_dir / "src")

    def test_cd_home(self, tool, fake_home):
        assert tool.cd("~")["working_directory"] == str(fake_home)

    def test_cd_missing(self, tool, work_dir):
        result = tool.cd("nope")

        assert result["success"] is False
        assert result["error_code"] == ErrorCode.NOT_FOUND
        assert result["error"] == f"Directory does not exist: {work_dir / 'nope'}"
        assert tool.pwd()["working_directory"] == str(work_dir)

    def test_cd_not_a_directory(self, tool, work_dir):
        (work_dir / "file.txt").write_text("x")

        result = tool.cd("file.txt")

        assert result["error_code"] == ErrorCode.NOT_A_DIRECTORY
        assert result["error"].startswith("Not a directory: ")

    @pytest.mark.parametrize("path", [None, "", "  "])
    def test_cd_requires_path(self, tool, path):
        result = tool.cd(path)

        assert result["error_code"] == ErrorCode.MISSING_REQUIRED


class TestDispatch:
    """Tests for named tool routing."""

    def test_bash_run(self, tool):
        result = tool.dispatch("bash_run", {"command": "echo routed"})

        assert result["stdout"] == "routed"

    def test_bash_pwd(self, tool, work_dir):
        assert tool.dispatch("bash_pwd", {}) == {"working_directory": str(work_dir)}

    def test_bash_cd(self, tool, tmp_path):
        result = tool.dispatch("bash_cd", {"path": str(tmp_path)}, session_id="s1")

        assert result["working_directory"] == str(tmp_path)
        assert tool.pwd("s1")["working_directory"] == str(tmp_path)

    def test_unknown_tool(self, tool):
        result = tool.dispatch("bash_rm", {})

        assert result["success"] is False
        assert result["error_code"] == ErrorCode.UNKNOWN_TOOL
        assert "Unknown bash tool: bash_rm" in result["error"]

    def test_unexpected_exception(self, tool):
        with patch.object(BashTool, "run", side_effect=RuntimeError("boom")):
            result = tool.dispatch("bash_run", {"command": "ls"})

        assert result["success"] is False
        assert result["error"] == "boom"
        assert result["error_code"] == ErrorCode.INTERNAL_ERROR

    def test_tool_definitions(self):
        names = [definition["name"] for definition in TOOL_DEFINITIONS]

        assert names == ["bash_run", "bash_pwd", "bash_cd"]
        assert TOOL_DEFINITIONS[0]["parameters"]["required"] == ["command"]
        assert TOOL_DEFINITIONS[2]["parameters"]["required"] == ["path"]


class TestFormatResult:
    """Tests for format_result."""

    def test_minimal(self):
        result = ExecutionResult(stdout="", stderr="", exit_code=0, duration_ms=12)

        assert format_result(result, "/work") == {
            "success": True,
            "exit_code": 0,
            "duration": "12ms",
            "working_directory": "/work",
        }

    def test_timed_out_and_truncated(self):
        result = ExecutionResult(
            stdout="partial",
            stderr="",
            exit_code=128,
            duration_ms=500,
            signal="SIGTERM",
            timed_out=True,
            truncated=True,
        )

        formatted = format_result(result, "/work")

        assert formatted["success"] is False
        assert formatted["timed_out"] is True
        assert formatted["truncated"] is True
        assert formatted["signal"] == "SIGTERM"
        assert formatted["message"] == (
            "Command timed out and was terminated. Output was truncated due to length"
        )

    def test_spawn_error(self):
        result = ExecutionResult(
            stdout="",
            stderr="Failed to execute command: missing",
            exit_code=1,
            duration_ms=1,
            spawn_error="missing",
        )

        formatted = format_result(result, "/work")

        assert formatted["error"] == "missing"
        assert formatted["stderr"] == "Failed to execute command: missing"
