"""Tests for snapshot persistence."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

import pytest
import yaml

from agentboard.errors import SnapshotNotFoundError
from agentboard.session import Position, SessionSnapshot, SnapshotState, SnapshotStore
from agentboard.session.storage import format_duration, render_summary

from tests.utils import T0


@pytest.fixture
def store(tmp_path: Path) -> SnapshotStore:
    return SnapshotStore(tmp_path / "sessions")


def _snapshot(snapshot_id: str, days: float = 0, **kwargs: object) -> SessionSnapshot:
    return SessionSnapshot(id=snapshot_id, timestamp=T0 + timedelta(days=days), **kwargs)


class TestSnapshotStore:
    def test_write_uses_dated_names(self, store: SnapshotStore) -> None:
        path = store.write(_snapshot("abc123"))

        assert path.name == "2026-03-02-abc123.yaml"
        data = yaml.safe_load(path.read_text())
        assert data["session_id"] == "abc123"
        assert "uncommitted_changes" in data
        assert store.latest_id() == "abc123"

    def test_load_missing_raises(self, store: SnapshotStore) -> None:
        with pytest.raises(SnapshotNotFoundError):
            store.load("nope")
        with pytest.raises(SnapshotNotFoundError):
            store.load("latest")
        assert store.load_latest() is None

    def test_corrupt_snapshot_is_skipped(self, store: SnapshotStore) -> None:
        store.write(_snapshot("good01"))
        (store.directory / "2026-03-02-bad001.yaml").write_text("session_id: [unclosed")

        assert [s.id for s in store.list_snapshots()] == ["good01"]
        with pytest.raises(SnapshotNotFoundError):
            store.load("bad001")

    def test_list_newest_first(self, store: SnapshotStore) -> None:
        store.write(_snapshot("old001"))
        store.write(_snapshot("new001", days=1, position=Position(phase="03")))

        summaries = store.list_snapshots()
        assert [s.id for s in summaries] == ["new001", "old001"]
        assert summaries[0].is_latest
        assert summaries[0].position == "Phase 03"
        assert summaries[0].date == "2026-03-03"
        assert summaries[1].status is SnapshotState.WRITTEN

    def test_delete_clears_latest(self, store: SnapshotStore) -> None:
        store.write(_snapshot("abc123"))

        assert store.delete("abc123")
        assert store.latest_id() is None
        assert not list(store.directory.glob("*abc123*"))
        assert not store.delete("abc123")

    @pytest.mark.parametrize("snapshot_id", ["*", "abc12?", "[a]bc123", "../abc123", ".."])
    def test_ids_are_matched_literally(self, store: SnapshotStore, snapshot_id: str) -> None:
        store.write(_snapshot("abc123"))

        with pytest.raises(SnapshotNotFoundError):
            store.load(snapshot_id)
        assert not store.delete(snapshot_id)
        assert not store.archive(snapshot_id)
        assert store.load("abc123").id == "abc123"

    def test_archive_keeps_snapshot_loadable(self, store: SnapshotStore) -> None:
        store.write(_snapshot("abc123"))

        assert store.archive("abc123")
        assert (store.archive_directory / "2026-03-02-abc123.md").exists()
        assert store.load("latest").id == "abc123"
        assert not store.archive("abc123")
        assert store.list_snapshots(include_archived=False) == []

    def test_archive_older_than(self, store: SnapshotStore) -> None:
        store.write(_snapshot("old001"))
        store.write(_snapshot("new001", days=6))

        archived = store.archive_older_than(7, now=T0 + timedelta(days=8))

        assert archived == ["old001"]
        statuses = {s.id: s.status for s in store.list_snapshots()}
        assert statuses["old001"] is SnapshotState.ARCHIVED
        assert statuses["new001"] is SnapshotState.WRITTEN


class TestSummary:
    def test_render_summary(self) -> None:
        snapshot = _snapshot(
            "abc123",
            position=Position(milestone="v1", phase="02", phase_total="05"),
            blockers=["Need keys"],
            decisions=[{"id": "D-0001", "decision": "Use JWT"}],
            duration_seconds=3720,
        )
        text = render_summary(snapshot)

        assert text.startswith("# Session Summary: abc123")
        assert "- **Milestone:** v1" in text
        assert "- **Phase:** 02 of 05" in text
        assert "- Use JWT" in text
        assert "- Need keys" in text
        assert "1h 2m" in text

    @pytest.mark.parametrize(
        "seconds,expected", [(None, "-"), (42, "42s"), (125, "2m 5s"), (7260, "2h 1m")]
    )
    def test_format_duration(self, seconds: float | None, expected: str) -> None:
        assert format_duration(seconds) == expected
