"""Tests for the configuration module."""

from __future__ import annotations

import sys
from datetime import timedelta
from pathlib import Path

import pytest

from agentboard.config import (
    BlackboardConfig,
    Config,
    deep_merge,
    get_config,
    load_config,
    merge_configs,
    reset_config,
)
from agentboard.config.loader import dict_to_config, env_overrides
from agentboard.config.paths import (
    get_blackboard_dir,
    get_config_paths,
    get_project_config_path,
    get_sessions_dir,
    get_system_config_path,
    get_user_config_path,
)


class TestDeepMerge:
    """Test the deep merge algorithm."""

    def test_nested_merge(self) -> None:
        base = {"blackboard": {"staleness_minutes": 30, "event_limit": 1000}}
        override = {"blackboard": {"event_limit": 50}}
        result = deep_merge(base, override)
        assert result == {"blackboard": {"staleness_minutes": 30, "event_limit": 50}}

    def test_none_does_not_override(self) -> None:
        assert deep_merge({"a": 1}, {"a": None}) == {"a": 1}

    def test_list_replaced_not_merged(self) -> None:
        assert deep_merge({"items": [1, 2, 3]}, {"items": [4]}) == {"items": [4]}

    def test_base_is_not_mutated(self) -> None:
        base = {"a": {"b": 1}}
        deep_merge(base, {"a": {"b": 2}})
        assert base == {"a": {"b": 1}}

    def test_merge_configs_multiple(self) -> None:
        result = merge_configs({"a": 1, "b": 2}, {"b": 3}, {}, {"c": 4})
        assert result == {"a": 1, "b": 3, "c": 4}


class TestConfigPaths:
    """Test platform-aware path resolution."""

    def test_windows_system_path(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "platform", "win32")
        monkeypatch.setenv("PROGRAMDATA", "C:\\ProgramData")

        path = get_system_config_path()
        assert path is not None
        assert "ProgramData" in str(path)
        assert "agentboard" in str(path)

    def test_unix_system_path(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "platform", "linux")
        assert get_system_config_path() == Path("/etc/agentboard/config.yaml")

    def test_unix_user_path_xdg(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "platform", "linux")
        monkeypatch.setenv("XDG_CONFIG_HOME", "/home/test/.config-custom")

        path = get_user_config_path()
        assert path == Path("/home/test/.config-custom/agentboard/config.yaml")

    def test_project_config_path(self) -> None:
        path = get_project_config_path("/home/user/myproject")
        assert path == Path("/home/user/myproject/.planning/agentboard.yaml")

    def test_state_directories(self) -> None:
        assert get_blackboard_dir("/p") == Path("/p/.planning/blackboard")
        assert get_sessions_dir("/p", "plan") == Path("/p/plan/sessions")

    def test_get_config_paths_order(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "platform", "linux")

        paths = get_config_paths(root="/project")
        assert len(paths) == 3
        assert "etc" in paths[0].parts
        assert paths[2] == Path("/project/.planning/agentboard.yaml")

    def test_no_project_path_without_root(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "platform", "linux")
        assert len(get_config_paths()) == 2


class TestConfigLoading:
    """Test configuration loading."""

    @pytest.fixture
    def project_config(self, tmp_path: Path) -> Path:
        config_file = tmp_path / ".planning" / "agentboard.yaml"
        config_file.parent.mkdir()
        return config_file

    def test_defaults(self, tmp_path: Path) -> None:
        config = load_config(root=tmp_path)
        assert isinstance(config, Config)
        assert config.planning_dir == ".planning"
        assert config.blackboard.staleness == timedelta(minutes=30)
        assert config.blackboard.event_limit == 1000
        assert config.sessions.autosave_interval == timedelta(minutes=10)
        assert config.sessions.archive_after_days == 7
        assert config.sessions.delete_after_days == 30

    def test_load_project_config(self, tmp_path: Path, project_config: Path) -> None:
        project_config.write_text(
            """
blackboard:
  staleness_minutes: 5
sessions:
  recent_decisions: 3
logging:
  level: DEBUG
custom_tool:
  enabled: true
"""
        )
        config = load_config(root=tmp_path)
        assert config.blackboard.staleness_minutes == 5.0
        assert config.blackboard.event_limit == 1000
        assert config.sessions.recent_decisions == 3
        assert config.logging.level == "DEBUG"
        assert config.extra == {"custom_tool": {"enabled": True}}

    def test_env_overrides_config(
        self, tmp_path: Path, project_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        project_config.write_text("blackboard:\n  staleness_minutes: 5\n  event_limit: 20\n")
        monkeypatch.setenv("AGENTBOARD_STALE_MINUTES", "45")
        monkeypatch.setenv("AGENTBOARD_LOG", "/tmp/agentboard.log")

        config = load_config(root=tmp_path)
        assert config.blackboard.staleness_minutes == 45.0
        assert config.blackboard.event_limit == 20
        assert config.logging.file == "/tmp/agentboard.log"

    def test_non_numeric_env_ignored(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AGENTBOARD_EVENT_LIMIT", "lots")
        assert env_overrides() == {}

    def test_invalid_yaml_uses_defaults(self, tmp_path: Path, project_config: Path) -> None:
        project_config.write_text("invalid: yaml: :")
        config = load_config(root=tmp_path)
        assert config.blackboard.staleness_minutes == 30.0

    def test_non_mapping_section_ignored(self) -> None:
        config = dict_to_config({"blackboard": ["not", "a", "mapping"]})
        assert config.blackboard.event_limit == 1000

    @pytest.mark.parametrize(
        "section",
        [
            {"event_limit": "lots", "staleness_minutes": "soon"},
            {"event_limit": 0, "staleness_minutes": -5, "poll_interval": 0},
            {"event_limit": [1], "lock_timeout": {"s": 1}},
        ],
    )
    def test_bad_numbers_keep_defaults(self, section: dict[str, object]) -> None:
        config = dict_to_config({"blackboard": section, "sessions": {"recent_decisions": "x"}})

        assert config.blackboard == BlackboardConfig()
        assert config.sessions.recent_decisions == 5

    def test_zero_allowed_for_retention(self) -> None:
        config = dict_to_config({"sessions": {"archive_after_days": 0, "autosave_minutes": "0"}})
        assert config.sessions.archive_after_days == 0
        assert config.sessions.autosave_minutes == 0.0

    def test_user_config_layer(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "platform", "linux")
        xdg = tmp_path / "xdg"
        (xdg / "agentboard").mkdir(parents=True)
        (xdg / "agentboard" / "config.yaml").write_text("sessions:\n  autosave_minutes: 2\n")
        monkeypatch.setenv("XDG_CONFIG_HOME", str(xdg))

        config = load_config(root=tmp_path / "project")
        assert config.sessions.autosave_minutes == 2.0

    def test_global_config_is_cached(self) -> None:
        first = get_config()
        assert get_config() is first
        reset_config()
        assert get_config() is not first
