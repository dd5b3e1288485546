"""Configuration schema dataclasses for agentboard.

Defaults: claims go stale after 30 minutes, the event log keeps 1000
entries, auto-save runs every 10 minutes, and snapshots are archived
after 7 days and deleted after 30.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any


@dataclass
class BlackboardConfig:
    """Settings for the shared record sets."""

    staleness_minutes: float = 30.0
    event_limit: int = 1000
    lock_timeout: float = 10.0  # seconds to wait for another writer
    poll_interval: float = 2.0  # seconds between event polls

    @property
    def staleness(self) -> timedelta:
        return timedelta(minutes=self.staleness_minutes)


@dataclass
class SessionsConfig:
    """Settings for session snapshots and retention."""

    autosave_minutes: float = 10.0
    recent_decisions: int = 5
    archive_after_days: int = 7
    delete_after_days: int = 30

    @property
    def autosave_interval(self) -> timedelta:
        return timedelta(minutes=self.autosave_minutes)


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str | None = None  # DEBUG, INFO, WARNING, ERROR
    verbose: int | None = None  # 0-4, overrides level
    file: str | None = None


@dataclass
class Config:
    """Root configuration object."""

    planning_dir: str = ".planning"
    blackboard: BlackboardConfig = field(default_factory=BlackboardConfig)
    sessions: SessionsConfig = field(default_factory=SessionsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    # Unknown top-level keys, kept for tools sharing the config file
    extra: dict[str, Any] = field(default_factory=dict)
