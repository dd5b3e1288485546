"""Project-wide shared facts (``shared-context.json``)."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any

from agentboard.blackboard.events import EventLog
from agentboard.blackboard.schema import COMMIT_CREATED, utcnow
from agentboard.blackboard.store import RecordStore


class SharedContext:
    """Small key/value record shared by all agents, e.g. the last commit."""

    def __init__(self, path: Path, events: EventLog, *, lock_timeout: float = 10.0) -> None:
        self._store = RecordStore(path, lock_timeout=lock_timeout)
        self._events = events

    def as_dict(self) -> dict[str, Any]:
        return self._store.load()

    def get(self, key: str, default: Any = None) -> Any:
        return self._store.load().get(key, default)

    def record_commit(self, commit_hash: str, now: datetime | None = None) -> dict[str, str]:
        """Store the last observed commit and announce it."""
        now = now or utcnow()
        last_commit = {"hash": commit_hash, "timestamp": now.isoformat()}

        def modifier(data: dict[str, Any]) -> dict[str, Any]:
            data["last_commit"] = last_commit
            return data

        self._store.update(modifier)
        self._events.append(COMMIT_CREATED, {"hash": commit_hash}, now=now)
        return last_commit
