"""Root pytest configuration for all tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from agentboard.blackboard import Blackboard
from agentboard.config import reset_config

pytest_plugins = ("pytest_asyncio",)


@pytest.fixture(autouse=True)
def isolated_environment(
    tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Keep user config files and environment overrides out of tests."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path_factory.mktemp("xdg")))
    for name in ("AGENTBOARD_LOG", "AGENTBOARD_STALE_MINUTES", "AGENTBOARD_EVENT_LIMIT"):
        monkeypatch.delenv(name, raising=False)
    reset_config()


@pytest.fixture
def board(tmp_path: Path) -> Blackboard:
    return Blackboard(tmp_path)
