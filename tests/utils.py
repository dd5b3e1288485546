"""Shared test utilities for agentboard tests."""

from __future__ import annotations

from datetime import datetime, timezone

from agentboard.session.schema import FileChange, Position

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


class FakePositionSource:
    """In-memory position source."""

    def __init__(self, position: Position | None = None, blockers: list[str] | None = None) -> None:
        self.position = position or Position()
        self.blockers = blockers or []

    def read_position(self) -> Position:
        return self.position

    def read_blockers(self) -> list[str]:
        return list(self.blockers)


class FakeVCS:
    """In-memory version-control status source.

    Set ``error`` to make every call raise it.
    """

    def __init__(
        self,
        head: str | None = None,
        changes: list[FileChange] | None = None,
        reachable: set[str] | None = None,
    ) -> None:
        self.head_commit = head
        self.file_changes = changes or []
        self.reachable = reachable if reachable is not None else ({head} if head else set())
        self.error: Exception | None = None

    def head(self) -> str | None:
        if self.error:
            raise self.error
        return self.head_commit

    def changes(self) -> list[FileChange]:
        if self.error:
            raise self.error
        return [FileChange(c.path, c.status, c.added, c.deleted) for c in self.file_changes]

    def is_reachable(self, commit: str) -> bool:
        if self.error:
            raise self.error
        return commit in self.reachable
