"""Configuration file loading and caching.

Handles:
- YAML file parsing (missing or invalid files count as empty)
- Deep merging of system, user and project layers
- Environment variable overrides
- Conversion from dict to the typed Config dataclass
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from agentboard.config.paths import get_config_paths
from agentboard.config.schema import (
    BlackboardConfig,
    Config,
    LoggingConfig,
    SessionsConfig,
)

# Module logger (may not be configured yet at import time)
_log = logging.getLogger("agentboard.config")

_cached_config: Config | None = None


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file, returning an empty dict if missing or invalid."""
    if not path.exists():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except yaml.YAMLError as e:
        _log.warning("Invalid YAML in %s: %s", path, e)
        return {}
    except PermissionError:
        _log.debug("Permission denied reading %s", path)
        return {}
    except OSError as e:
        _log.warning("Error reading %s: %s", path, e)
        return {}


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Merge ``override`` into a copy of ``base``.

    Nested dicts merge recursively, lists and scalars are replaced, and a
    None in ``override`` leaves the base value alone.
    """
    result = dict(base)
    for key, value in override.items():
        if value is None:
            continue
        current = result.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            result[key] = deep_merge(current, value)
        else:
            result[key] = value
    return result


def merge_configs(*configs: dict[str, Any]) -> dict[str, Any]:
    """Merge config dicts in order, later ones winning."""
    result: dict[str, Any] = {}
    for config in configs:
        if config:
            result = deep_merge(result, config)
    return result


def _env_number(name: str, cast: type[int] | type[float]) -> int | float | None:
    raw = os.environ.get(name)
    if not raw:
        return None
    try:
        return cast(raw)
    except ValueError:
        _log.warning("Ignoring non-numeric %s=%r", name, raw)
        return None


def env_overrides() -> dict[str, Any]:
    """Build a config dict from environment variables (highest priority)."""
    overrides: dict[str, Any] = {}

    log_path = os.environ.get("AGENTBOARD_LOG")
    if log_path:
        overrides.setdefault("logging", {})["file"] = log_path

    stale = _env_number("AGENTBOARD_STALE_MINUTES", float)
    if stale is not None:
        overrides.setdefault("blackboard", {})["staleness_minutes"] = stale

    limit = _env_number("AGENTBOARD_EVENT_LIMIT", int)
    if limit is not None:
        overrides.setdefault("blackboard", {})["event_limit"] = limit

    return overrides


def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key)
    return value if isinstance(value, dict) else {}


def _number(
    section: dict[str, Any],
    name: str,
    key: str,
    default: int | float,
    allow_zero: bool = True,
) -> int | float:
    """Read a numeric setting, keeping ``default`` for bad or out-of-range values."""
    raw = section.get(key)
    if raw is None:
        return default
    try:
        value = type(default)(raw)
    except (TypeError, ValueError):
        _log.warning("Ignoring non-numeric %s.%s=%r", name, key, raw)
        return default
    if value < 0 or (value == 0 and not allow_zero):
        _log.warning("Ignoring out-of-range %s.%s=%r", name, key, raw)
        return default
    return value


def dict_to_config(data: dict[str, Any]) -> Config:
    """Convert a merged dict to the typed Config dataclass.

    Missing keys, non-numeric values and out-of-range values fall back to
    the dataclass defaults.
    """
    defaults_bb = BlackboardConfig()
    bb_data = _section(data, "blackboard")
    blackboard = BlackboardConfig(
        staleness_minutes=_number(
            bb_data, "blackboard", "staleness_minutes", defaults_bb.staleness_minutes,
            allow_zero=False,
        ),
        event_limit=_number(
            bb_data, "blackboard", "event_limit", defaults_bb.event_limit, allow_zero=False
        ),
        lock_timeout=_number(bb_data, "blackboard", "lock_timeout", defaults_bb.lock_timeout),
        poll_interval=_number(
            bb_data, "blackboard", "poll_interval", defaults_bb.poll_interval, allow_zero=False
        ),
    )

    defaults_sess = SessionsConfig()
    sess_data = _section(data, "sessions")
    sessions = SessionsConfig(
        autosave_minutes=_number(
            sess_data, "sessions", "autosave_minutes", defaults_sess.autosave_minutes
        ),
        recent_decisions=_number(
            sess_data, "sessions", "recent_decisions", defaults_sess.recent_decisions
        ),
        archive_after_days=_number(
            sess_data, "sessions", "archive_after_days", defaults_sess.archive_after_days
        ),
        delete_after_days=_number(
            sess_data, "sessions", "delete_after_days", defaults_sess.delete_after_days
        ),
    )

    log_data = _section(data, "logging")
    logging_config = LoggingConfig(
        level=log_data.get("level"),
        verbose=log_data.get("verbose"),
        file=log_data.get("file"),
    )

    known_keys = {"planning_dir", "blackboard", "sessions", "logging"}
    extra = {k: v for k, v in data.items() if k not in known_keys}

    return Config(
        planning_dir=str(data.get("planning_dir") or ".planning"),
        blackboard=blackboard,
        sessions=sessions,
        logging=logging_config,
        extra=extra,
    )


def load_config(root: str | Path | None = None, reload: bool = False) -> Config:
    """Load and merge config from all sources.

    Priority order (highest to lowest):
    1. Environment variables
    2. Project config (<root>/.planning/agentboard.yaml)
    3. User config
    4. System config

    Args:
        root: Project root for the project-level config.
        reload: Force reload of the cached global config.

    Returns:
        Merged Config object. Only the global (root-less) config is cached.
    """
    global _cached_config

    if _cached_config is not None and not reload and root is None:
        return _cached_config

    configs: list[dict[str, Any]] = []
    for path in get_config_paths(root):
        config_data = load_yaml_file(path)
        if config_data:
            _log.debug("Loaded config from %s", path)
            configs.append(config_data)

    env_config = env_overrides()
    if env_config:
        configs.append(env_config)

    config = dict_to_config(merge_configs(*configs))

    if root is None:
        _cached_config = config
    return config


def get_config() -> Config:
    """Get the cached global config, loading it on first use."""
    if _cached_config is None:
        return load_config()
    return _cached_config


def reset_config() -> None:
    """Drop the cached config (used by tests)."""
    global _cached_config
    _cached_config = None
