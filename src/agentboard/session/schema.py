"""Data schemas for session snapshots and recovery."""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from agentboard.blackboard.schema import parse_timestamp, utcnow


class SnapshotState(Enum):
    """Lifecycle of a snapshot.

    A capture moves NOT_STARTED -> CAPTURING -> WRITTEN. A written snapshot
    later becomes STALE (recovery found discrepancies), ARCHIVED or DELETED.
    """

    NOT_STARTED = "not_started"
    CAPTURING = "capturing"
    WRITTEN = "written"
    STALE = "stale"
    ARCHIVED = "archived"
    DELETED = "deleted"


class SnapshotTrigger(str, Enum):
    MANUAL = "manual"
    CHECKPOINT = "checkpoint"
    AUTO = "auto"


@dataclass
class Position:
    """Hierarchical locator of where work stands."""

    milestone: str | None = None
    phase: str | None = None
    phase_total: str | None = None
    plan: str | None = None
    plan_total: str | None = None
    task: int | str | None = None
    status: str | None = None

    def is_empty(self) -> bool:
        return all(v is None for v in self.to_dict().values())

    def summary(self) -> str:
        """One-line description, e.g. ``Phase 02/05 Plan 03 Task 2 (in_progress)``."""
        parts: list[str] = []
        if self.milestone:
            parts.append(f"Milestone {self.milestone}")
        if self.phase:
            parts.append(f"Phase {self.phase}" + (f"/{self.phase_total}" if self.phase_total else ""))
        if self.plan:
            parts.append(f"Plan {self.plan}" + (f"/{self.plan_total}" if self.plan_total else ""))
        if self.task is not None:
            parts.append(f"Task {self.task}")
        text = " ".join(parts) or "unknown position"
        if self.status:
            text += f" ({self.status})"
        return text

    def to_dict(self) -> dict[str, Any]:
        return {
            "milestone": self.milestone,
            "phase": self.phase,
            "phase_total": self.phase_total,
            "plan": self.plan,
            "plan_total": self.plan_total,
            "task": self.task,
            "status": self.status,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Position:
        data = data or {}

        def text(key: str) -> str | None:
            value = data.get(key)
            return None if value is None else str(value)

        task = data.get("task")
        if isinstance(task, str) and task.isdigit():
            task = int(task)
        return cls(
            milestone=text("milestone"),
            phase=text("phase"),
            phase_total=text("phase_total"),
            plan=text("plan"),
            plan_total=text("plan_total"),
            task=task,
            status=text("status"),
        )


@dataclass
class FileChange:
    """A path that differs from the last commit."""

    path: str
    status: str  # modified, added, deleted, renamed, new
    added: int = 0
    deleted: int = 0

    @property
    def size(self) -> int:
        """Change size in lines."""
        return self.added + self.deleted

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "status": self.status,
            "added": self.added,
            "deleted": self.deleted,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FileChange:
        return cls(
            path=str(data["path"]),
            status=str(data.get("status", "modified")),
            added=int(data.get("added", 0)),
            deleted=int(data.get("deleted", 0)),
        )


@dataclass
class SessionSnapshot:
    """Immutable point-in-time capture of a working session."""

    id: str
    timestamp: datetime = field(default_factory=utcnow)
    trigger: str = SnapshotTrigger.MANUAL.value
    duration_seconds: float | None = None  # since the previous snapshot
    position: Position = field(default_factory=Position)
    commit: str | None = None
    uncommitted: list[FileChange] = field(default_factory=list)
    decisions: list[dict[str, Any]] = field(default_factory=list)
    blockers: list[str] = field(default_factory=list)
    next_actions: list[str] = field(default_factory=list)

    @property
    def stem(self) -> str:
        """File name stem, ``<YYYY-MM-DD>-<id>``."""
        return f"{self.timestamp.date().isoformat()}-{self.id}"

    @property
    def has_open_work(self) -> bool:
        """Blockers or uncommitted changes exempt a snapshot from deletion."""
        return bool(self.blockers) or bool(self.uncommitted)

    def fingerprint(self) -> str:
        """Digest of the capturable state, ignoring time and trigger."""
        state = {
            "position": self.position.to_dict(),
            "commit": self.commit,
            "uncommitted": sorted((c.path, c.status, c.size) for c in self.uncommitted),
            "decisions": [d.get("id") for d in self.decisions],
            "blockers": self.blockers,
        }
        encoded = json.dumps(state, sort_keys=True, default=str).encode("utf-8")
        return hashlib.sha256(encoded).hexdigest()

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "trigger": self.trigger,
            "duration_seconds": self.duration_seconds,
            "position": self.position.to_dict(),
            "commit": self.commit,
            "uncommitted_changes": [c.to_dict() for c in self.uncommitted],
            "decisions_made": self.decisions,
            "blockers": self.blockers,
            "next_actions": self.next_actions,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SessionSnapshot:
        duration = data.get("duration_seconds")
        return cls(
            id=str(data["session_id"]),
            timestamp=parse_timestamp(data["timestamp"]),
            trigger=str(data.get("trigger", SnapshotTrigger.MANUAL.value)),
            duration_seconds=float(duration) if duration is not None else None,
            position=Position.from_dict(data.get("position")),
            commit=data.get("commit"),
            uncommitted=[FileChange.from_dict(c) for c in data.get("uncommitted_changes") or []],
            decisions=list(data.get("decisions_made") or []),
            blockers=[str(b) for b in data.get("blockers") or []],
            next_actions=[str(a) for a in data.get("next_actions") or []],
        )


@dataclass
class SnapshotSummary:
    """Listing row for one stored snapshot."""

    id: str
    timestamp: datetime
    position: str
    status: SnapshotState
    duration_seconds: float | None
    is_latest: bool
    path: Path

    @property
    def date(self) -> str:
        return self.timestamp.date().isoformat()


@dataclass
class Discrepancy:
    """One way a snapshot disagrees with live state."""

    kind: str  # missing_file, reappeared_file, no_longer_modified, unreachable_commit, vcs_unavailable
    subject: str
    detail: str

    def to_dict(self) -> dict[str, str]:
        return {"kind": self.kind, "subject": self.subject, "detail": self.detail}


@dataclass
class RecoveryReport:
    """Result of validating the latest snapshot against live state."""

    snapshot: SessionSnapshot
    discrepancies: list[Discrepancy] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.discrepancies

    @property
    def state(self) -> SnapshotState:
        return SnapshotState.WRITTEN if self.valid else SnapshotState.STALE


@dataclass
class CleanupReport:
    """Outcome of a retention pass."""

    archived: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    retained: list[str] = field(default_factory=list)  # past the delete age but exempt
