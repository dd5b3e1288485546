"""Session checkpointing and crash recovery.

The snapshotter reads the current position, the uncommitted working-tree
changes and the trailing decisions, and writes them as an immutable
snapshot. It never writes to the blackboard record sets.

Snapshots are best-effort when triggered from hooks or timers:
:meth:`SessionSnapshotter.snapshot` and :meth:`SessionSnapshotter.maybe_snapshot`
log failures and return None instead of raising into the caller.
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING

from agentboard.blackboard.schema import utcnow
from agentboard.config.paths import get_sessions_dir, get_state_document_path
from agentboard.errors import VCSError
from agentboard.logging import get_logger
from agentboard.session.schema import (
    CleanupReport,
    Discrepancy,
    FileChange,
    Position,
    RecoveryReport,
    SessionSnapshot,
    SnapshotState,
    SnapshotTrigger,
)
from agentboard.session.sources import (
    GitStatusSource,
    PositionSource,
    StateDocumentSource,
    VCSStatusSource,
)
from agentboard.session.storage import SnapshotStore

if TYPE_CHECKING:
    from agentboard.blackboard.board import Blackboard

log = get_logger("snapshotter")


def suggest_next_actions(
    position: Position,
    uncommitted: list[FileChange],
    blockers: list[str],
) -> list[str]:
    """Derive resume hints from the captured state."""
    actions = [f"Resolve blocker: {b}" for b in blockers]
    if uncommitted:
        actions.append(f"Review and commit {len(uncommitted)} uncommitted file(s)")
    if position.is_empty():
        actions.append("Resume from current position")
    else:
        actions.append(f"Resume at {position.summary()}")
    return actions


class SessionSnapshotter:
    """Captures, writes, validates and expires session snapshots."""

    def __init__(
        self,
        board: Blackboard,
        *,
        store: SnapshotStore | None = None,
        position_source: PositionSource | None = None,
        vcs: VCSStatusSource | None = None,
    ) -> None:
        """Initialize the snapshotter.

        Args:
            board: Blackboard to read decisions from; also supplies the
                project root and configuration.
            store: Snapshot storage (defaults to the project's sessions dir).
            position_source: Position/blockers reader (defaults to STATE.md).
            vcs: Version-control status reader (defaults to git).
        """
        config = board.config
        self._board = board
        self._config = config.sessions
        self._root = board.root
        self._store = store or SnapshotStore(get_sessions_dir(self._root, config.planning_dir))
        self._position_source = position_source or StateDocumentSource(
            get_state_document_path(self._root, config.planning_dir)
        )
        self._vcs = vcs or GitStatusSource(self._root)
        self._state = SnapshotState.NOT_STARTED

    @property
    def store(self) -> SnapshotStore:
        return self._store

    @property
    def state(self) -> SnapshotState:
        """State of the most recent capture."""
        return self._state

    # -------------------------------------------------------------------------
    # Capture and write
    # -------------------------------------------------------------------------

    def capture(
        self,
        trigger: SnapshotTrigger | str = SnapshotTrigger.MANUAL,
        now: datetime | None = None,
    ) -> SessionSnapshot:
        """Collect the current state into an unwritten snapshot.

        An unavailable VCS leaves the commit and change set empty.
        """
        now = now or utcnow()
        self._state = SnapshotState.CAPTURING

        position = self._position_source.read_position()
        blockers = self._position_source.read_blockers()

        commit: str | None = None
        uncommitted: list[FileChange] = []
        try:
            commit = self._vcs.head()
            uncommitted = self._vcs.changes()
        except VCSError as e:
            log.warning("Capturing without version-control state: %s", e)

        decisions = [
            d.to_dict() for d in self._board.decisions.recent(self._config.recent_decisions)
        ]

        previous = self._store.load_latest()
        duration = (now - previous.timestamp).total_seconds() if previous else None

        trigger_value = trigger.value if isinstance(trigger, SnapshotTrigger) else str(trigger)
        return SessionSnapshot(
            id=uuid.uuid4().hex[:6],
            timestamp=now,
            trigger=trigger_value,
            duration_seconds=duration,
            position=position,
            commit=commit,
            uncommitted=uncommitted,
            decisions=decisions,
            blockers=blockers,
            next_actions=suggest_next_actions(position, uncommitted, blockers),
        )

    def write(self, snapshot: SessionSnapshot) -> Path:
        """Persist a captured snapshot and make it the latest."""
        path = self._store.write(snapshot)
        self._state = SnapshotState.WRITTEN
        log.info("Session snapshot %s saved (%s)", snapshot.id, snapshot.trigger)
        return path

    def snapshot(
        self,
        trigger: SnapshotTrigger | str = SnapshotTrigger.MANUAL,
        now: datetime | None = None,
    ) -> SessionSnapshot | None:
        """Capture and write, swallowing any failure.

        Returns:
            The written snapshot, or None if anything went wrong.
        """
        try:
            snapshot = self.capture(trigger, now)
            self.write(snapshot)
            return snapshot
        except Exception as e:
            self._state = SnapshotState.NOT_STARTED
            log.warning("Session snapshot failed: %s", e)
            return None

    def maybe_snapshot(self, now: datetime | None = None) -> SessionSnapshot | None:
        """Periodic snapshot.

        Skips writing while the autosave interval has not elapsed since the
        latest snapshot, and when nothing capturable changed since then.
        Never raises.
        """
        now = now or utcnow()
        try:
            latest = self._store.load_latest()
            if latest is not None and now - latest.timestamp < self._config.autosave_interval:
                return None

            snapshot = self.capture(SnapshotTrigger.AUTO, now)
            if latest is not None and snapshot.fingerprint() == latest.fingerprint():
                log.debug("No state change since snapshot %s, skipping", latest.id)
                self._state = SnapshotState.NOT_STARTED
                return None

            self.write(snapshot)
            return snapshot
        except Exception as e:
            self._state = SnapshotState.NOT_STARTED
            log.warning("Periodic session snapshot failed: %s", e)
            return None

    # -------------------------------------------------------------------------
    # Recovery
    # -------------------------------------------------------------------------

    def validate(self, snapshot: SessionSnapshot) -> list[Discrepancy]:
        """Compare a snapshot with live state.

        Checks that every uncommitted file still exists (or is still absent
        for deletions) and still differs from the last commit, and that the
        referenced commit is still reachable from HEAD.
        """
        discrepancies: list[Discrepancy] = []

        live: dict[str, FileChange] | None = None
        if snapshot.uncommitted or snapshot.commit:
            try:
                live = {c.path: c for c in self._vcs.changes()}
                if snapshot.commit and not self._vcs.is_reachable(snapshot.commit):
                    discrepancies.append(
                        Discrepancy(
                            kind="unreachable_commit",
                            subject=snapshot.commit,
                            detail="commit is no longer reachable from HEAD",
                        )
                    )
            except VCSError as e:
                discrepancies.append(
                    Discrepancy(kind="vcs_unavailable", subject="git", detail=str(e))
                )

        for change in snapshot.uncommitted:
            exists = (self._root / change.path).exists()
            if change.status == "deleted":
                if exists:
                    discrepancies.append(
                        Discrepancy(
                            kind="reappeared_file",
                            subject=change.path,
                            detail="file was deleted at snapshot time but exists again",
                        )
                    )
                    continue
            elif not exists:
                discrepancies.append(
                    Discrepancy(
                        kind="missing_file",
                        subject=change.path,
                        detail="file listed as uncommitted no longer exists",
                    )
                )
                continue

            if live is not None and change.path not in live:
                discrepancies.append(
                    Discrepancy(
                        kind="no_longer_modified",
                        subject=change.path,
                        detail="file no longer differs from the last commit",
                    )
                )
        return discrepancies

    def recover(self) -> RecoveryReport | None:
        """Load the latest snapshot and report how it differs from live state.

        Nothing is discarded or repaired; the caller decides whether to
        continue, treat the snapshot as stale, or delete it.

        Returns:
            The report, or None when there is no snapshot to recover.
        """
        snapshot = self._store.load_latest()
        if snapshot is None:
            return None
        report = RecoveryReport(snapshot=snapshot, discrepancies=self.validate(snapshot))
        if report.valid:
            log.info("Recovered session snapshot %s", snapshot.id)
        else:
            log.warning(
                "Session snapshot %s diverged from live state (%d discrepancies)",
                snapshot.id,
                len(report.discrepancies),
            )
        return report

    # -------------------------------------------------------------------------
    # Retention
    # -------------------------------------------------------------------------

    def cleanup(self, now: datetime | None = None) -> CleanupReport:
        """Apply the retention policy.

        Snapshots past ``archive_after_days`` move to the archive. Snapshots
        past ``delete_after_days`` are deleted unless they carry blockers or
        uncommitted changes. Never raises.
        """
        now = now or utcnow()
        archive_after = timedelta(days=self._config.archive_after_days)
        delete_after = timedelta(days=self._config.delete_after_days)
        report = CleanupReport()

        try:
            snapshots = self._store.snapshots(include_archived=True)
        except Exception as e:
            log.warning("Session retention skipped: %s", e)
            return report

        for snapshot, _path, archived in snapshots:
            age = now - snapshot.timestamp
            try:
                if age > delete_after and not snapshot.has_open_work:
                    if self._store.delete(snapshot.id):
                        report.deleted.append(snapshot.id)
                    continue
                if age > delete_after:
                    report.retained.append(snapshot.id)
                if age > archive_after and not archived and self._store.archive(snapshot.id):
                    report.archived.append(snapshot.id)
            except OSError as e:
                log.warning("Retention failed for session snapshot %s: %s", snapshot.id, e)

        if report.archived or report.deleted:
            log.info(
                "Session retention: %d archived, %d deleted, %d retained",
                len(report.archived),
                len(report.deleted),
                len(report.retained),
            )
        return report


class AutoSaver:
    """Periodic timer driving :meth:`SessionSnapshotter.maybe_snapshot`.

    Polls at a fixed interval; the snapshotter decides whether a new
    snapshot is due.
    """

    def __init__(self, snapshotter: SessionSnapshotter, poll_interval: float = 60.0) -> None:
        self._snapshotter = snapshotter
        self._poll_interval = poll_interval
        self._running = False
        self._task: asyncio.Task[None] | None = None

    async def _loop(self) -> None:
        while self._running:
            self._snapshotter.maybe_snapshot()
            await asyncio.sleep(self._poll_interval)

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop())
        log.debug("Auto-saver started (interval=%.1fs)", self._poll_interval)

    def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            self._task = None

    async def __aenter__(self) -> AutoSaver:
        self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        self.stop()
