"""Tests for the agentboard command-line interface."""

from __future__ import annotations

import io
import json
from pathlib import Path

import pytest

from agentboard.blackboard import Blackboard
from agentboard.cli import (
    EXIT_CONFLICT,
    EXIT_CYCLE,
    EXIT_NOT_FOUND,
    EXIT_OK,
    EXIT_USAGE,
    create_parser,
    run_cli,
)


def run(root: Path, *args: str, stdin: str | None = None) -> int:
    return run_cli(
        ["--root", str(root), *args],
        stdin=io.StringIO(stdin) if stdin is not None else None,
    )


class TestParser:
    def test_claim_arguments(self) -> None:
        args = create_parser().parse_args(["claim", "a.py", "--holder", "agent-a", "--scope", "02"])
        assert args.command == "claim"
        assert args.path == "a.py"
        assert args.holder == "agent-a"
        assert args.scope == "02"

    def test_repeated_options(self) -> None:
        args = create_parser().parse_args(
            ["register", "api/users", "--depends", "models/user", "--depends", "auth", "--export", "list"]
        )
        assert args.dependencies == ["models/user", "auth"]
        assert args.exports == ["list"]

    def test_no_command_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert run_cli([]) == EXIT_USAGE
        assert "agentboard" in capsys.readouterr().out


class TestClaimCommands:
    def test_claim_and_conflict(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert run(tmp_path, "claim", "a.py", "--holder", "agent-a") == EXIT_OK
        assert run(tmp_path, "claim", "a.py", "--holder", "agent-b") == EXIT_CONFLICT
        assert "agent-a" in capsys.readouterr().out

    def test_release_and_list(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        run(tmp_path, "claim", "a.py", "--holder", "agent-a")
        assert run(tmp_path, "claims") == EXIT_OK
        assert "a.py" in capsys.readouterr().out

        assert run(tmp_path, "release", "a.py", "--holder", "agent-a") == EXIT_OK
        assert run(tmp_path, "release", "a.py", "--holder", "agent-a") == EXIT_OK
        assert Blackboard(tmp_path).claims.list_claims() == []


class TestArtifactCommands:
    def test_register_and_dependents(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert run(tmp_path, "register", "models/user", "--kind", "model") == EXIT_OK
        assert run(tmp_path, "register", "api/users", "--depends", "models/user") == EXIT_OK
        capsys.readouterr()

        assert run(tmp_path, "dependents", "models/user") == EXIT_OK
        assert capsys.readouterr().out.split() == ["api/users"]

    def test_reregister_without_kind(self, tmp_path: Path) -> None:
        run(tmp_path, "register", "models/user", "--kind", "model")
        assert run(tmp_path, "register", "models/user", "--export", "User") == EXIT_OK
        assert Blackboard(tmp_path).artifacts.get("models/user").kind == "model"

    def test_cycle_exit_code(self, tmp_path: Path) -> None:
        run(tmp_path, "register", "a", "--depends", "b")
        assert run(tmp_path, "register", "b", "--depends", "a") == EXIT_CYCLE


class TestDecisionCommands:
    def test_decide_and_filter(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert run(tmp_path, "decide", "Use JWT", "--by", "02/01", "--affects", "02") == EXIT_OK
        assert run(tmp_path, "decide", "Freeze schema", "--by", "01/01", "--affects", "03") == EXIT_OK
        capsys.readouterr()

        assert run(tmp_path, "decisions", "--scope", "02/03") == EXIT_OK
        out = capsys.readouterr().out
        assert "D-0001" in out
        assert "Freeze schema" not in out

    def test_empty_statement_is_usage_error(self, tmp_path: Path) -> None:
        assert run(tmp_path, "decide", " ", "--by", "02/01") == EXIT_USAGE


class TestEventCommands:
    def test_events_since(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        run(tmp_path, "claim", "a.py", "--holder", "agent-a")
        run(tmp_path, "release", "a.py", "--holder", "agent-a")
        capsys.readouterr()

        assert run(tmp_path, "events", "--since", "1") == EXIT_OK
        out = capsys.readouterr().out
        assert "claim:released" in out
        assert "claim:acquired" not in out


class TestSessionCommands:
    def test_save_list_show_delete(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert run(tmp_path, "save") == EXIT_OK
        (yaml_file,) = (tmp_path / ".planning" / "sessions").glob("*.yaml")
        session_id = yaml_file.stem.rsplit("-", 1)[1]
        capsys.readouterr()

        assert run(tmp_path, "sessions", "list") == EXIT_OK
        assert session_id in capsys.readouterr().out

        assert run(tmp_path, "sessions", "show", "latest") == EXIT_OK
        assert "Session Summary" in capsys.readouterr().out

        assert run(tmp_path, "sessions", "delete", session_id) == EXIT_OK
        assert run(tmp_path, "sessions", "show", session_id) == EXIT_NOT_FOUND

    @pytest.mark.parametrize("pattern", ["*", "??????", "[a-f0-9]*"])
    def test_glob_characters_do_not_match(self, tmp_path: Path, pattern: str) -> None:
        run(tmp_path, "save")

        assert run(tmp_path, "sessions", "show", pattern) == EXIT_NOT_FOUND
        assert run(tmp_path, "sessions", "delete", pattern) == EXIT_NOT_FOUND
        assert len(list((tmp_path / ".planning" / "sessions").glob("*.yaml"))) == 1

    def test_recover(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert run(tmp_path, "recover") == EXIT_NOT_FOUND

        run(tmp_path, "save")
        capsys.readouterr()
        assert run(tmp_path, "recover") == EXIT_OK
        assert "matches live state" in capsys.readouterr().out

    def test_clean(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        run(tmp_path, "save")
        capsys.readouterr()

        assert run(tmp_path, "sessions", "clean", "--older-than", "0") == EXIT_OK
        assert "Archived 1" in capsys.readouterr().out
        assert list((tmp_path / ".planning" / "sessions" / "archive").glob("*.yaml"))

    def test_sessions_without_action(self, tmp_path: Path) -> None:
        assert run(tmp_path, "sessions") == EXIT_USAGE


class TestHookCommand:
    def test_hook_payload_from_stdin(self, tmp_path: Path) -> None:
        (tmp_path / ".planning").mkdir()
        payload = {"tool_name": "Write", "tool_input": {"file_path": "src/app.py"}}

        assert run(tmp_path, "hook", stdin=json.dumps(payload)) == EXIT_OK
        assert Blackboard(tmp_path).artifacts.get("src/app.py") is not None

    def test_invalid_payload_still_succeeds(self, tmp_path: Path) -> None:
        assert run(tmp_path, "hook", stdin="{not json") == EXIT_OK

    def test_undecodable_payload_still_succeeds(self, tmp_path: Path) -> None:
        stdin = io.TextIOWrapper(io.BytesIO(b'{"tool_name": "\xff"}'), encoding="utf-8")
        assert run_cli(["--root", str(tmp_path), "hook"], stdin=stdin) == EXIT_OK

    @pytest.mark.parametrize("value", ["lots", "0", "-3"])
    def test_bad_config_still_succeeds(self, tmp_path: Path, value: str) -> None:
        (tmp_path / ".planning").mkdir()
        (tmp_path / ".planning" / "agentboard.yaml").write_text(
            f"blackboard:\n  event_limit: {value}\n"
        )
        payload = {"tool_name": "Write", "tool_input": {"file_path": "src/app.py"}}

        assert run(tmp_path, "hook", stdin=json.dumps(payload)) == EXIT_OK
        assert Blackboard(tmp_path).artifacts.get("src/app.py") is not None

    def test_setup_failure_still_succeeds(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def broken(*args: object, **kwargs: object) -> None:
            raise ValueError("unusable config")

        monkeypatch.setattr("agentboard.cli.load_config", broken)
        assert run(tmp_path, "hook", stdin="{}") == EXIT_OK

    def test_project_without_planning_directory_untouched(self, tmp_path: Path) -> None:
        payload = {"tool_name": "Write", "tool_input": {"file_path": "src/app.py"}}

        assert run(tmp_path, "hook", stdin=json.dumps(payload)) == EXIT_OK
        assert not (tmp_path / ".planning").exists()
