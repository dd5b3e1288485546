"""Registry of produced artifacts and their dependency DAG."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from pathlib import Path
from typing import Any

from agentboard.blackboard.events import EventLog
from agentboard.blackboard.schema import (
    ARTIFACT_MODIFIED,
    ARTIFACT_REGISTERED,
    DEPENDENCY_SATISFIED,
    Artifact,
    normalize_path,
    utcnow,
)
from agentboard.blackboard.store import RecordStore
from agentboard.errors import CycleError
from agentboard.logging import get_logger

log = get_logger("artifacts")


def _find_path(graph: dict[str, set[str]], start: str, target: str) -> list[str] | None:
    """Depth-first search for a dependency path from ``start`` to ``target``."""
    stack: list[tuple[str, list[str]]] = [(start, [start])]
    seen: set[str] = set()
    while stack:
        node, trail = stack.pop()
        if node == target:
            return trail
        if node in seen:
            continue
        seen.add(node)
        for dep in sorted(graph.get(node, ())):
            stack.append((dep, trail + [dep]))
    return None


class ArtifactRegistry:
    """Upsert-by-path registry whose dependency relation stays acyclic.

    Stored as ``artifacts.json``, a mapping of normalized path to record.
    """

    def __init__(self, path: Path, events: EventLog, *, lock_timeout: float = 10.0) -> None:
        self._store = RecordStore(path, lock_timeout=lock_timeout)
        self._events = events

    def _artifacts(self, data: dict[str, Any]) -> dict[str, Artifact]:
        artifacts: dict[str, Artifact] = {}
        for key, raw in data.items():
            if not isinstance(raw, dict):
                log.warning("Skipping malformed artifact record for %s", key)
                continue
            try:
                artifacts[key] = Artifact.from_dict({"path": key, **raw})
            except (KeyError, TypeError, ValueError):
                log.warning("Skipping malformed artifact record for %s", key)
        return artifacts

    def register(
        self,
        path: str,
        kind: str | None = None,
        exports: Iterable[str] = (),
        scope: str = "",
        dependencies: Iterable[str] = (),
        now: datetime | None = None,
    ) -> Artifact:
        """Register or re-register an artifact.

        Re-registering an existing path merges its dependencies and exports
        (set union) and increments its version.

        Args:
            path: Artifact path (normalized before storage).
            kind: Artifact kind, e.g. "file", "model", "endpoint". Defaults to
                the existing kind on re-registration, otherwise "file".
            exports: Exported symbol names.
            scope: Producing scope.
            dependencies: Paths this artifact depends on. They need not be
                registered yet.
            now: Registration time.

        Returns:
            The stored artifact record.

        Raises:
            CycleError: The registration would make the artifact depend on
                itself. The registry is left unchanged.
        """
        now = now or utcnow()
        key = normalize_path(path)
        new_deps = {normalize_path(d) for d in dependencies}
        stored: Artifact | None = None

        def modifier(data: dict[str, Any]) -> dict[str, Any]:
            nonlocal stored
            artifacts = self._artifacts(data)
            existing = artifacts.get(key)

            deps = set(existing.dependencies) | new_deps if existing else set(new_deps)
            graph = {p: set(a.dependencies) for p, a in artifacts.items()}
            graph[key] = deps
            for dep in sorted(deps):
                trail = _find_path(graph, dep, key)
                if trail is not None:
                    raise CycleError([key, *trail])

            if existing is not None:
                stored = Artifact(
                    path=key,
                    kind=kind or existing.kind,
                    exports=sorted(set(existing.exports) | set(exports)),
                    scope=scope or existing.scope,
                    dependencies=sorted(deps),
                    version=existing.version + 1,
                    created_at=existing.created_at,
                    updated_at=now,
                    exists=True,
                )
            else:
                stored = Artifact(
                    path=key,
                    kind=kind or "file",
                    exports=sorted(set(exports)),
                    scope=scope,
                    dependencies=sorted(deps),
                    version=1,
                    created_at=now,
                    updated_at=now,
                )
            data[key] = stored.to_dict()
            return data

        self._store.update(modifier)
        assert stored is not None

        self._events.append(
            ARTIFACT_REGISTERED,
            {
                "path": key,
                "kind": stored.kind,
                "scope": stored.scope,
                "version": stored.version,
                "dependencies": stored.dependencies,
            },
            now=now,
        )
        for dependent in self.dependents(key):
            self._events.append(
                DEPENDENCY_SATISFIED,
                {"path": key, "dependent": dependent.path, "scope": dependent.scope},
                now=now,
            )
        return stored

    def touch(self, path: str, now: datetime | None = None) -> Artifact:
        """Record that a file was modified outside of ``register``.

        Creates a version-1 ``file`` record for unknown paths. Known records
        only get a new ``updated_at``; the version is not bumped.
        """
        now = now or utcnow()
        key = normalize_path(path)
        stored: Artifact | None = None

        def modifier(data: dict[str, Any]) -> dict[str, Any]:
            nonlocal stored
            existing = self._artifacts(data).get(key)
            if existing is None:
                stored = Artifact(path=key, created_at=now, updated_at=now)
            else:
                existing.updated_at = now
                existing.exists = True
                stored = existing
            data[key] = stored.to_dict()
            return data

        self._store.update(modifier)
        assert stored is not None
        self._events.append(ARTIFACT_MODIFIED, {"path": key}, now=now)
        return stored

    def get(self, path: str) -> Artifact | None:
        return self._artifacts(self._store.load()).get(normalize_path(path))

    def list_artifacts(self) -> list[Artifact]:
        return sorted(self._artifacts(self._store.load()).values(), key=lambda a: a.path)

    def dependents(self, path: str) -> list[Artifact]:
        """Return all artifacts that declare ``path`` as a dependency."""
        key = normalize_path(path)
        return [a for a in self.list_artifacts() if key in a.dependencies]

    def dependencies(self, path: str, transitive: bool = False) -> list[str]:
        """Return the dependency paths of an artifact.

        With ``transitive``, follows registered dependencies all the way
        down. Unregistered dependencies are included but not expanded.
        """
        artifacts = self._artifacts(self._store.load())
        root = artifacts.get(normalize_path(path))
        if root is None:
            return []
        if not transitive:
            return list(root.dependencies)

        result: set[str] = set()
        pending = list(root.dependencies)
        while pending:
            dep = pending.pop()
            if dep in result:
                continue
            result.add(dep)
            if dep in artifacts:
                pending.extend(artifacts[dep].dependencies)
        return sorted(result)
