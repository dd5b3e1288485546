"""Append-only decision ledger."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from pathlib import Path
from typing import Any

from agentboard.blackboard.events import EventLog
from agentboard.blackboard.schema import DECISION_RECORDED, Decision, utcnow
from agentboard.blackboard.store import RecordStore
from agentboard.logging import get_logger

log = get_logger("decisions")


def _empty_ledger() -> dict[str, Any]:
    return {"decisions": []}


class DecisionLedger:
    """Audit trail of decisions. There is no delete operation."""

    def __init__(self, path: Path, events: EventLog, *, lock_timeout: float = 10.0) -> None:
        self._store = RecordStore(path, _empty_ledger, lock_timeout=lock_timeout)
        self._events = events

    def _decisions(self, data: dict[str, Any]) -> list[Decision]:
        raw_list = data.get("decisions")
        if not isinstance(raw_list, list):
            return []
        decisions: list[Decision] = []
        for raw in raw_list:
            try:
                decisions.append(Decision.from_dict(raw))
            except (KeyError, TypeError, ValueError):
                log.warning("Skipping malformed decision record: %r", raw)
        return decisions

    def record(
        self,
        statement: str,
        rationale: str,
        made_by: str,
        affects: Iterable[str] = (),
        now: datetime | None = None,
    ) -> Decision:
        """Append a decision.

        Raises:
            ValueError: ``statement`` or ``made_by`` is empty.
        """
        if not statement or not statement.strip():
            raise ValueError("decision statement is required")
        if not made_by or not made_by.strip():
            raise ValueError("decision made_by scope is required")

        now = now or utcnow()
        recorded: Decision | None = None

        def modifier(data: dict[str, Any]) -> dict[str, Any]:
            nonlocal recorded
            entries = data.get("decisions")
            if not isinstance(entries, list):
                entries = []
            recorded = Decision(
                id=f"D-{len(entries) + 1:04d}",
                statement=statement.strip(),
                rationale=rationale.strip() if rationale else "",
                made_by=made_by.strip(),
                affects=list(affects),
                timestamp=now,
            )
            entries.append(recorded.to_dict())
            data["decisions"] = entries
            return data

        self._store.update(modifier)
        assert recorded is not None
        self._events.append(
            DECISION_RECORDED,
            {"id": recorded.id, "made_by": recorded.made_by, "affects": recorded.affects},
            now=now,
        )
        return recorded

    def all(self) -> list[Decision]:
        return self._decisions(self._store.load())

    def recent(self, k: int) -> list[Decision]:
        """Return the last ``k`` decisions, oldest first."""
        if k <= 0:
            return []
        return self.all()[-k:]

    def affecting(self, scope: str) -> list[Decision]:
        """Return decisions whose affected scopes cover ``scope``."""
        return [d for d in self.all() if d.affects_scope(scope)]
