"""Data schemas for the shared blackboard record sets."""

from __future__ import annotations

import fnmatch
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

# Event type tags
CLAIM_ACQUIRED = "claim:acquired"
CLAIM_RELEASED = "claim:released"
CLAIM_SUPERSEDED = "claim:superseded"
ARTIFACT_REGISTERED = "artifact:registered"
ARTIFACT_MODIFIED = "artifact:modified"
DEPENDENCY_SATISFIED = "dependency:satisfied"
DECISION_RECORDED = "decision:recorded"
COMMIT_CREATED = "commit:created"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse an ISO timestamp, treating naive values as UTC."""
    dt = value if isinstance(value, datetime) else datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def normalize_path(path: str) -> str:
    """Normalize a resource path for storage and comparison.

    Stored paths always use forward slashes and never carry a leading "./".
    """
    normalized = path.replace("\\", "/")
    while normalized.startswith("./"):
        normalized = normalized[2:]
    return normalized


def is_planning_path(path: str, planning_dir: str = ".planning") -> bool:
    """Check whether a path points inside the planning directory."""
    normalized = normalize_path(path)
    return normalized.startswith(f"{planning_dir}/") or f"/{planning_dir}/" in normalized


def scope_matches(pattern: str, scope: str) -> bool:
    """Check whether a scope pattern covers a scope.

    A pattern matches when it equals the scope, is a path prefix of it
    ("02" covers "02/03"), or is a glob matching it ("02/*", "*").
    """
    pattern = pattern.strip("/")
    scope = scope.strip("/")
    if pattern == scope:
        return True
    if pattern and scope.startswith(pattern + "/"):
        return True
    if any(ch in pattern for ch in "*?["):
        return fnmatch.fnmatchcase(scope, pattern)
    return False


@dataclass
class Claim:
    """An advisory ownership record over a resource path."""

    path: str
    holder: str
    scope: str = ""
    acquired_at: datetime = field(default_factory=utcnow)

    def age(self, now: datetime) -> timedelta:
        return now - self.acquired_at

    def is_stale(self, now: datetime, threshold: timedelta) -> bool:
        return self.age(now) >= threshold

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "holder": self.holder,
            "scope": self.scope,
            "acquired_at": self.acquired_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Claim:
        return cls(
            path=data["path"],
            holder=data["holder"],
            scope=data.get("scope", ""),
            acquired_at=parse_timestamp(data["acquired_at"]),
        )


@dataclass
class Acquired:
    """Result of a successful acquire."""

    claim: Claim
    superseded: Claim | None = None  # stale claim that was overridden

    @property
    def ok(self) -> bool:
        return True


@dataclass
class Conflict:
    """Result of an acquire blocked by another holder's live claim."""

    holder: str
    scope: str
    age: timedelta

    @property
    def ok(self) -> bool:
        return False

    def to_dict(self) -> dict[str, Any]:
        return {
            "holder": self.holder,
            "scope": self.scope,
            "age_seconds": round(self.age.total_seconds(), 3),
        }


@dataclass
class Artifact:
    """A registered unit of produced output."""

    path: str
    kind: str = "file"
    exports: list[str] = field(default_factory=list)
    scope: str = ""
    dependencies: list[str] = field(default_factory=list)
    version: int = 1
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    exists: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "kind": self.kind,
            "exports": sorted(self.exports),
            "scope": self.scope,
            "dependencies": sorted(self.dependencies),
            "version": self.version,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "exists": self.exists,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Artifact:
        # Records written by the plain file-change hook only carry
        # last_modified/exists, so everything else is optional.
        updated = data.get("updated_at") or data.get("last_modified")
        created = data.get("created_at") or updated
        return cls(
            path=data["path"],
            kind=data.get("kind", "file"),
            exports=list(data.get("exports", [])),
            scope=data.get("scope", ""),
            dependencies=list(data.get("dependencies", [])),
            version=int(data.get("version", 1)),
            created_at=parse_timestamp(created) if created else utcnow(),
            updated_at=parse_timestamp(updated) if updated else utcnow(),
            exists=bool(data.get("exists", True)),
        )


@dataclass
class Event:
    """A single entry in the event log."""

    id: int
    type: str
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "payload": self.payload,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Event:
        return cls(
            id=int(data["id"]),
            type=data["type"],
            payload=dict(data.get("payload") or {}),
            timestamp=parse_timestamp(data["timestamp"]),
        )


@dataclass
class Decision:
    """An audit-trail record of a choice and its rationale."""

    id: str
    statement: str
    rationale: str
    made_by: str
    affects: list[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=utcnow)

    def affects_scope(self, scope: str) -> bool:
        return any(scope_matches(pattern, scope) for pattern in self.affects)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "decision": self.statement,
            "rationale": self.rationale,
            "made_by": self.made_by,
            "affects": list(self.affects),
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Decision:
        return cls(
            id=str(data["id"]),
            statement=data.get("decision", ""),
            rationale=data.get("rationale", ""),
            made_by=data.get("made_by", ""),
            affects=list(data.get("affects", [])),
            timestamp=parse_timestamp(data["timestamp"]),
        )
