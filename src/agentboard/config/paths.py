"""Platform-aware path resolution for configuration and project state.

Config files:
- Windows: %PROGRAMDATA% (system), %APPDATA% (user)
- Unix: /etc/ (system), ~/.config/agentboard/ or ~/.agentboard/ (user)
- Project: <root>/.planning/agentboard.yaml

Project state lives under the planning directory:
- <root>/.planning/blackboard/ for the shared record sets
- <root>/.planning/sessions/ for session snapshots
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

CONFIG_FILENAME = "config.yaml"
PROJECT_CONFIG_FILENAME = "agentboard.yaml"
APP_NAME = "agentboard"
SHORT_NAME = ".agentboard"
DEFAULT_PLANNING_DIR = ".planning"


def get_system_config_path() -> Path | None:
    """Get the system-level config path (the file may not exist)."""
    if sys.platform == "win32":
        program_data = os.environ.get("PROGRAMDATA")
        if program_data:
            return Path(program_data) / APP_NAME / CONFIG_FILENAME
        return None
    return Path("/etc") / APP_NAME / CONFIG_FILENAME


def get_user_config_path() -> Path | None:
    """Get the user-level config path (the file may not exist)."""
    if sys.platform == "win32":
        app_data = os.environ.get("APPDATA")
        if app_data:
            return Path(app_data) / APP_NAME / CONFIG_FILENAME
        return None

    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config) / APP_NAME / CONFIG_FILENAME

    home = Path.home()
    if (home / ".config").exists():
        return home / ".config" / APP_NAME / CONFIG_FILENAME
    return home / SHORT_NAME / CONFIG_FILENAME


def get_project_config_path(root: str | Path, planning_dir: str = DEFAULT_PLANNING_DIR) -> Path:
    """Get the project-level config path inside the planning directory."""
    return Path(root) / planning_dir / PROJECT_CONFIG_FILENAME


def get_config_paths(root: str | Path | None = None) -> list[Path]:
    """Get all config paths, lowest priority first.

    Args:
        root: Optional project root for the project-level config.

    Returns:
        Paths in order system, user, project. Later paths override earlier.
    """
    paths: list[Path] = []

    system_path = get_system_config_path()
    if system_path:
        paths.append(system_path)

    user_path = get_user_config_path()
    if user_path:
        paths.append(user_path)

    if root is not None:
        paths.append(get_project_config_path(root))

    return paths


def get_blackboard_dir(root: str | Path, planning_dir: str = DEFAULT_PLANNING_DIR) -> Path:
    """Directory holding the shared blackboard record sets."""
    return Path(root) / planning_dir / "blackboard"


def get_sessions_dir(root: str | Path, planning_dir: str = DEFAULT_PLANNING_DIR) -> Path:
    """Directory holding session snapshots."""
    return Path(root) / planning_dir / "sessions"


def get_state_document_path(root: str | Path, planning_dir: str = DEFAULT_PLANNING_DIR) -> Path:
    """The position source document maintained by the planning workflow."""
    return Path(root) / planning_dir / "STATE.md"
