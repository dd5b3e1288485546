"""Tests for the decision ledger and shared context."""

from __future__ import annotations

import pytest

from agentboard.blackboard import Blackboard
from agentboard.blackboard.schema import scope_matches

from tests.utils import T0


class TestDecisionLedger:
    def test_record_assigns_sequential_ids(self, board: Blackboard) -> None:
        first = board.decisions.record("Use JWT", "Stateless auth", "02/01", now=T0)
        second = board.decisions.record("Use Postgres", "", "02/02", now=T0)

        assert first.id == "D-0001"
        assert second.id == "D-0002"
        assert [d.statement for d in board.decisions.all()] == ["Use JWT", "Use Postgres"]

    def test_record_emits_event(self, board: Blackboard) -> None:
        board.decisions.record("Use JWT", "Stateless auth", "02/01", affects=["02/*"])

        event = board.events.events()[-1]
        assert event.type == "decision:recorded"
        assert event.payload == {"id": "D-0001", "made_by": "02/01", "affects": ["02/*"]}

    @pytest.mark.parametrize("statement,made_by", [("", "02/01"), ("Use JWT", "  ")])
    def test_required_fields(self, board: Blackboard, statement: str, made_by: str) -> None:
        with pytest.raises(ValueError):
            board.decisions.record(statement, "why", made_by)
        assert board.decisions.all() == []

    def test_recent_returns_trailing_decisions(self, board: Blackboard) -> None:
        for i in range(7):
            board.decisions.record(f"Decision {i}", "", "01")

        recent = board.decisions.recent(3)
        assert [d.statement for d in recent] == ["Decision 4", "Decision 5", "Decision 6"]
        assert board.decisions.recent(0) == []

    def test_affecting_scope(self, board: Blackboard) -> None:
        board.decisions.record("Auth uses JWT", "", "02/01", affects=["02"])
        board.decisions.record("Schema frozen", "", "01/01", affects=["03/*"])
        board.decisions.record("Global style", "", "01/01", affects=["*"])

        statements = [d.statement for d in board.decisions.affecting("02/03")]
        assert statements == ["Auth uses JWT", "Global style"]

    def test_ledger_stored_with_decision_key(self, board: Blackboard) -> None:
        board.decisions.record("Use JWT", "Stateless", "02/01", now=T0)
        stored = board.decisions.all()[0].to_dict()
        assert stored["decision"] == "Use JWT"
        assert stored["timestamp"] == T0.isoformat()


class TestScopeMatching:
    @pytest.mark.parametrize(
        "pattern,scope,expected",
        [
            ("02/03", "02/03", True),
            ("02", "02/03", True),
            ("02", "020/03", False),
            ("02/*", "02/03", True),
            ("*", "anything", True),
            ("03/*", "02/03", False),
        ],
    )
    def test_scope_matches(self, pattern: str, scope: str, expected: bool) -> None:
        assert scope_matches(pattern, scope) is expected


class TestSharedContext:
    def test_record_commit(self, board: Blackboard) -> None:
        board.context.record_commit("abc1234", now=T0)

        assert board.context.get("last_commit") == {"hash": "abc1234", "timestamp": T0.isoformat()}
        event = board.events.events()[-1]
        assert event.type == "commit:created"
        assert event.payload == {"hash": "abc1234"}

    def test_missing_key_default(self, board: Blackboard) -> None:
        assert board.context.get("last_commit", "none") == "none"
        assert board.context.as_dict() == {}
