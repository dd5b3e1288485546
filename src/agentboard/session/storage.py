"""Session snapshot persistence.

Snapshots live in ``<root>/.planning/sessions/``:

- ``<YYYY-MM-DD>-<id>.yaml``: machine-readable record
- ``<YYYY-MM-DD>-<id>.md``: human-readable summary
- ``LATEST``: pointer record naming the most recent snapshot id
- ``archive/``: snapshots moved there by retention

Every file is written to a temp file, fsynced and moved into place with
``os.replace``. ``LATEST`` is replaced only after both representations of
the snapshot are durable, so a reader following the pointer never finds a
missing or half-written snapshot.
"""

from __future__ import annotations

import glob
import os
import shutil
import tempfile
from datetime import datetime, timedelta
from pathlib import Path

import yaml

from agentboard.blackboard.schema import utcnow
from agentboard.errors import SnapshotNotFoundError
from agentboard.logging import get_logger
from agentboard.session.schema import SessionSnapshot, SnapshotState, SnapshotSummary

log = get_logger("sessions")

LATEST_POINTER = "LATEST"
ARCHIVE_DIR = "archive"


def _atomic_write(path: Path, content: str) -> None:
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def format_duration(seconds: float | None) -> str:
    if seconds is None:
        return "-"
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    if hours:
        return f"{hours}h {minutes}m"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def render_summary(snapshot: SessionSnapshot) -> str:
    """Render the human-readable Markdown summary of a snapshot."""
    pos = snapshot.position
    lines = [
        f"# Session Summary: {snapshot.id}",
        "",
        f"**Saved:** {snapshot.timestamp.strftime('%Y-%m-%d %H:%M:%S %Z')}",
        f"**Trigger:** {snapshot.trigger}",
        f"**Since previous snapshot:** {format_duration(snapshot.duration_seconds)}",
        "",
        "## Position",
    ]
    if pos.milestone:
        lines.append(f"- **Milestone:** {pos.milestone}")
    lines += [
        f"- **Phase:** {pos.phase or '?'} of {pos.phase_total or '?'}",
        f"- **Plan:** {pos.plan or '?'} of {pos.plan_total or '?'}",
        f"- **Task:** {pos.task if pos.task is not None else '?'}",
        f"- **Status:** {pos.status or 'Unknown'}",
    ]
    if snapshot.commit:
        lines.append(f"- **Commit:** `{snapshot.commit[:12]}`")

    lines += ["", f"## Uncommitted Changes ({len(snapshot.uncommitted)})"]
    if snapshot.uncommitted:
        lines += [
            f"- `{c.path}` ({c.status}, +{c.added}/-{c.deleted})" for c in snapshot.uncommitted
        ]
    else:
        lines.append("None")

    lines += ["", "## Recent Decisions"]
    if snapshot.decisions:
        lines += [f"- {d.get('decision', d.get('id', ''))}" for d in snapshot.decisions]
    else:
        lines.append("None")

    lines += ["", "## Blockers"]
    lines += [f"- {b}" for b in snapshot.blockers] if snapshot.blockers else ["None"]

    lines += ["", "## Next Actions"]
    lines += [f"- {a}" for a in snapshot.next_actions] if snapshot.next_actions else ["None"]

    lines += ["", "## Resume", "```", "agentboard recover", "```", ""]
    return "\n".join(lines)


class SnapshotStore:
    """Reads and writes snapshot files for one project."""

    def __init__(self, directory: Path) -> None:
        self._dir = directory
        self._archive = directory / ARCHIVE_DIR

    @property
    def directory(self) -> Path:
        return self._dir

    @property
    def archive_directory(self) -> Path:
        return self._archive

    # -------------------------------------------------------------------------
    # Writing
    # -------------------------------------------------------------------------

    def write(self, snapshot: SessionSnapshot) -> Path:
        """Write both representations, then move the ``LATEST`` pointer.

        Returns:
            Path of the YAML record.
        """
        self._dir.mkdir(parents=True, exist_ok=True)
        yaml_path = self._dir / f"{snapshot.stem}.yaml"
        md_path = self._dir / f"{snapshot.stem}.md"

        _atomic_write(
            yaml_path,
            yaml.safe_dump(
                snapshot.to_dict(), default_flow_style=False, allow_unicode=True, sort_keys=False
            ),
        )
        _atomic_write(md_path, render_summary(snapshot))
        _atomic_write(self._dir / LATEST_POINTER, snapshot.id + "\n")

        log.debug("Saved session snapshot %s to %s", snapshot.id, yaml_path)
        return yaml_path

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    def latest_id(self) -> str | None:
        pointer = self._dir / LATEST_POINTER
        try:
            value = pointer.read_text(encoding="utf-8").strip()
        except OSError:
            return None
        return value or None

    def _find(self, snapshot_id: str) -> Path | None:
        # Ids are plain names; anything with a path component never matches
        if not snapshot_id or Path(snapshot_id).name != snapshot_id:
            return None
        pattern = f"*-{glob.escape(snapshot_id)}.yaml"
        for directory in (self._dir, self._archive):
            if not directory.is_dir():
                continue
            matches = sorted(directory.glob(pattern))
            if matches:
                return matches[-1]
        return None

    def _resolve_id(self, snapshot_id: str) -> str:
        if snapshot_id == "latest":
            latest = self.latest_id()
            if latest is None:
                raise SnapshotNotFoundError(snapshot_id)
            return latest
        return snapshot_id

    def _read(self, path: Path) -> SessionSnapshot | None:
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
            return SessionSnapshot.from_dict(data)
        except (OSError, yaml.YAMLError, KeyError, TypeError, ValueError, AttributeError) as e:
            log.warning("Failed to load session snapshot %s: %s", path, e)
            return None

    def load(self, snapshot_id: str) -> SessionSnapshot:
        """Load a snapshot by id (``latest`` follows the pointer).

        Raises:
            SnapshotNotFoundError: No readable snapshot has that id.
        """
        resolved = self._resolve_id(snapshot_id)
        path = self._find(resolved)
        snapshot = self._read(path) if path else None
        if snapshot is None:
            raise SnapshotNotFoundError(snapshot_id)
        return snapshot

    def load_latest(self) -> SessionSnapshot | None:
        latest = self.latest_id()
        if latest is None:
            return None
        try:
            return self.load(latest)
        except SnapshotNotFoundError:
            log.warning("LATEST points at missing snapshot %s", latest)
            return None

    def path_of(self, snapshot_id: str) -> Path | None:
        return self._find(self._resolve_id(snapshot_id))

    def _iter_files(self, include_archived: bool) -> list[tuple[Path, bool]]:
        files: list[tuple[Path, bool]] = []
        if self._dir.is_dir():
            files += [(p, False) for p in self._dir.glob("*.yaml")]
        if include_archived and self._archive.is_dir():
            files += [(p, True) for p in self._archive.glob("*.yaml")]
        return files

    def snapshots(self, include_archived: bool = True) -> list[tuple[SessionSnapshot, Path, bool]]:
        """Load every readable snapshot as (snapshot, path, archived)."""
        loaded: list[tuple[SessionSnapshot, Path, bool]] = []
        for path, archived in self._iter_files(include_archived):
            snapshot = self._read(path)
            if snapshot is not None:
                loaded.append((snapshot, path, archived))
        return loaded

    def list_snapshots(self, include_archived: bool = True) -> list[SnapshotSummary]:
        """List snapshots, newest first."""
        latest = self.latest_id()
        summaries = [
            SnapshotSummary(
                id=snapshot.id,
                timestamp=snapshot.timestamp,
                position=snapshot.position.summary(),
                status=SnapshotState.ARCHIVED if archived else SnapshotState.WRITTEN,
                duration_seconds=snapshot.duration_seconds,
                is_latest=snapshot.id == latest,
                path=path,
            )
            for snapshot, path, archived in self.snapshots(include_archived)
        ]
        summaries.sort(key=lambda s: s.timestamp, reverse=True)
        return summaries

    # -------------------------------------------------------------------------
    # Administration
    # -------------------------------------------------------------------------

    def delete(self, snapshot_id: str) -> bool:
        """Delete a snapshot and clear ``LATEST`` if it pointed at it.

        Returns:
            False if no snapshot has that id.
        """
        try:
            resolved = self._resolve_id(snapshot_id)
        except SnapshotNotFoundError:
            return False
        path = self._find(resolved)
        if path is None:
            return False

        path.unlink(missing_ok=True)
        path.with_suffix(".md").unlink(missing_ok=True)
        if self.latest_id() == resolved:
            (self._dir / LATEST_POINTER).unlink(missing_ok=True)
        log.debug("Deleted session snapshot %s", resolved)
        return True

    def archive(self, snapshot_id: str) -> bool:
        """Move a snapshot into ``archive/``. ``LATEST`` still resolves it."""
        path = self._find(self._resolve_id(snapshot_id))
        if path is None or path.parent == self._archive:
            return False
        self._archive.mkdir(parents=True, exist_ok=True)
        for source in (path, path.with_suffix(".md")):
            if source.exists():
                shutil.move(str(source), str(self._archive / source.name))
        log.debug("Archived session snapshot %s", snapshot_id)
        return True

    def archive_older_than(self, days: float, now: datetime | None = None) -> list[str]:
        """Bulk-archive active snapshots older than ``days``.

        Best-effort: failures are logged and the snapshot is skipped.

        Returns:
            Ids of the archived snapshots.
        """
        now = now or utcnow()
        cutoff = now - timedelta(days=days)
        archived: list[str] = []
        for snapshot, _path, is_archived in self.snapshots(include_archived=False):
            if is_archived or snapshot.timestamp >= cutoff:
                continue
            try:
                if self.archive(snapshot.id):
                    archived.append(snapshot.id)
            except OSError as e:
                log.warning("Could not archive session snapshot %s: %s", snapshot.id, e)
        return archived
