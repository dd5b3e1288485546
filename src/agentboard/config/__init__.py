"""Configuration management for agentboard.

Hierarchical YAML configuration:
- System-level config (/etc/agentboard/ or %PROGRAMDATA%)
- User-level config (~/.config/agentboard/ or %APPDATA%)
- Project-level config (<root>/.planning/agentboard.yaml)
- Environment variable overrides (highest priority)

Example usage:
    from agentboard.config import load_config

    config = load_config(root="/path/to/project")
    print(config.blackboard.staleness_minutes)
"""

from agentboard.config.loader import (
    deep_merge,
    get_config,
    load_config,
    merge_configs,
    reset_config,
)
from agentboard.config.paths import (
    get_blackboard_dir,
    get_config_paths,
    get_project_config_path,
    get_sessions_dir,
    get_state_document_path,
)
from agentboard.config.schema import (
    BlackboardConfig,
    Config,
    LoggingConfig,
    SessionsConfig,
)

__all__ = [
    "BlackboardConfig",
    "Config",
    "LoggingConfig",
    "SessionsConfig",
    "deep_merge",
    "get_blackboard_dir",
    "get_config",
    "get_config_paths",
    "get_project_config_path",
    "get_sessions_dir",
    "get_state_document_path",
    "load_config",
    "merge_configs",
    "reset_config",
]
