"""External state read by the snapshotter.

Two collaborators feed a snapshot:

- a position source: where work stands (milestone/phase/plan/task, status)
  plus any open blockers, read from the planning state document;
- a version-control status source: HEAD, the uncommitted-change set and
  commit reachability, read from git.

Both are protocols so tests and other workflows can substitute their own.
"""

from __future__ import annotations

import re
import subprocess
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import yaml

from agentboard.blackboard.schema import normalize_path
from agentboard.errors import VCSError
from agentboard.logging import get_logger
from agentboard.session.schema import FileChange, Position

log = get_logger("sources")


@runtime_checkable
class PositionSource(Protocol):
    def read_position(self) -> Position: ...

    def read_blockers(self) -> list[str]: ...


@runtime_checkable
class VCSStatusSource(Protocol):
    def head(self) -> str | None: ...

    def changes(self) -> list[FileChange]: ...

    def is_reachable(self, commit: str) -> bool: ...


# =============================================================================
# Position source
# =============================================================================

_PHASE_RE = re.compile(r"^\s*\**Phase:?\**:?\s*(\d+(?:\.\d+)?)(?:\s+of\s+(\d+))?", re.I | re.M)
_PLAN_RE = re.compile(r"^\s*\**Plan:?\**:?\s*(\d+)(?:\s+of\s+(\d+))?", re.I | re.M)
_TASK_RE = re.compile(r"^\s*\**Task:?\**:?\s*(\d+)", re.I | re.M)
_STATUS_RE = re.compile(r"^\s*\**Status\**:\**\s*(.+?)\s*$", re.I | re.M)
_MILESTONE_RE = re.compile(r"^\s*\**Milestone\**:\**\s*(.+?)\s*$", re.I | re.M)
_BLOCKERS_HEADING_RE = re.compile(r"^#+\s*Blockers\b", re.I)
_NO_BLOCKERS = {"none", "none yet", "n/a", "-"}


def parse_state_markdown(content: str) -> tuple[Position, list[str]]:
    """Parse a Markdown state document.

    Recognizes ``Milestone:``, ``Phase: X of Y``, ``Plan: X of Y``,
    ``Task: N`` and ``Status:`` lines, plus list items under a heading
    starting with "Blockers".
    """
    position = Position()

    if m := _MILESTONE_RE.search(content):
        position.milestone = m.group(1)
    if m := _PHASE_RE.search(content):
        position.phase, position.phase_total = m.group(1), m.group(2)
    if m := _PLAN_RE.search(content):
        position.plan, position.plan_total = m.group(1), m.group(2)
    if m := _TASK_RE.search(content):
        position.task = int(m.group(1))
    if m := _STATUS_RE.search(content):
        position.status = m.group(1)

    blockers: list[str] = []
    in_blockers = False
    for line in content.splitlines():
        stripped = line.strip()
        if stripped.startswith("#"):
            in_blockers = bool(_BLOCKERS_HEADING_RE.match(stripped))
            continue
        if in_blockers and stripped[:2] in ("- ", "* "):
            item = stripped[2:].strip()
            if item and item.lower().rstrip(".") not in _NO_BLOCKERS:
                blockers.append(item)
    return position, blockers


def parse_state_yaml(data: dict[str, Any]) -> tuple[Position, list[str]]:
    """Parse a YAML state document.

    Position keys may sit under ``position:`` or at the top level.
    """
    raw_position = data.get("position")
    position = Position.from_dict(raw_position if isinstance(raw_position, dict) else data)
    raw_blockers = data.get("blockers") or []
    if not isinstance(raw_blockers, list):
        raw_blockers = [raw_blockers]
    blockers = [str(b) for b in raw_blockers if str(b).strip().lower() not in _NO_BLOCKERS]
    return position, blockers


class StateDocumentSource:
    """Position source backed by the planning state document.

    A missing or unreadable document yields an empty position and no
    blockers.
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> tuple[Position, list[str]]:
        if not self._path.exists():
            return Position(), []
        try:
            content = self._path.read_text(encoding="utf-8")
            if self._path.suffix in (".yaml", ".yml"):
                data = yaml.safe_load(content)
                return parse_state_yaml(data if isinstance(data, dict) else {})
            return parse_state_markdown(content)
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
            log.warning("Could not read state document %s: %s", self._path, e)
            return Position(), []

    def read_position(self) -> Position:
        return self._read()[0]

    def read_blockers(self) -> list[str]:
        return self._read()[1]


# =============================================================================
# Version-control status source
# =============================================================================


def _unquote(path: str) -> str:
    if len(path) >= 2 and path.startswith('"') and path.endswith('"'):
        # C-style escapes of UTF-8 bytes, e.g. "caf\303\251.py"
        raw = path[1:-1].encode("ascii", "backslashreplace").decode("unicode_escape")
        return raw.encode("latin-1", "replace").decode("utf-8", "replace")
    return path


def parse_porcelain(output: str) -> list[FileChange]:
    """Parse ``git status --porcelain`` (v1) output."""
    changes: list[FileChange] = []
    for line in output.splitlines():
        if len(line) < 4:
            continue
        code, raw_path = line[:2], line[3:]
        if " -> " in raw_path:
            raw_path = raw_path.split(" -> ", 1)[1]
        path = normalize_path(_unquote(raw_path))

        if code == "??":
            status = "new"
        elif "D" in code:
            status = "deleted"
        elif "R" in code:
            status = "renamed"
        elif "A" in code:
            status = "added"
        else:
            status = "modified"
        changes.append(FileChange(path=path, status=status))
    return changes


def parse_numstat(output: str) -> dict[str, tuple[int, int]]:
    """Parse ``git diff --numstat`` output into path -> (added, deleted).

    Binary files report ``-`` and count as zero.
    """
    stats: dict[str, tuple[int, int]] = {}
    for line in output.splitlines():
        parts = line.split("\t")
        if len(parts) != 3:
            continue
        added, deleted, path = parts
        stats[normalize_path(_unquote(path))] = (
            int(added) if added.isdigit() else 0,
            int(deleted) if deleted.isdigit() else 0,
        )
    return stats


class GitStatusSource:
    """VCS status source that shells out to ``git`` in the project root."""

    def __init__(self, root: Path, *, timeout: float = 10.0) -> None:
        self._root = root
        self._timeout = timeout

    def _run(self, *args: str) -> subprocess.CompletedProcess[str]:
        try:
            return subprocess.run(
                ["git", *args],
                cwd=self._root,
                capture_output=True,
                text=True,
                timeout=self._timeout,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            raise VCSError(f"git {' '.join(args)} failed: {e}") from e

    def _output(self, *args: str) -> str:
        result = self._run(*args)
        if result.returncode != 0:
            raise VCSError(f"git {' '.join(args)}: {result.stderr.strip()}")
        return result.stdout

    def head(self) -> str | None:
        """Return the HEAD commit hash, or None in a repository without commits."""
        result = self._run("rev-parse", "--verify", "--quiet", "HEAD")
        if result.returncode == 0:
            return result.stdout.strip() or None
        if result.returncode == 1:
            return None
        raise VCSError(f"git rev-parse HEAD: {result.stderr.strip()}")

    def changes(self) -> list[FileChange]:
        """List paths that differ from HEAD, with line counts."""
        changes = parse_porcelain(self._output("status", "--porcelain", "--untracked-files=all"))
        if not changes:
            return changes

        stats: dict[str, tuple[int, int]] = {}
        diff = self._run("diff", "--numstat", "HEAD")
        if diff.returncode == 0:
            stats = parse_numstat(diff.stdout)

        for change in changes:
            if change.path in stats:
                change.added, change.deleted = stats[change.path]
            elif change.status == "new":
                change.added = self._count_lines(change.path)
        return changes

    def _count_lines(self, path: str) -> int:
        try:
            with open(self._root / path, "rb") as f:
                data = f.read()
        except OSError:
            return 0
        if b"\0" in data:
            return 0
        return data.count(b"\n") + (0 if not data or data.endswith(b"\n") else 1)

    def is_reachable(self, commit: str) -> bool:
        """Check whether ``commit`` is an ancestor of (or equal to) HEAD."""
        result = self._run("merge-base", "--is-ancestor", commit, "HEAD")
        if result.returncode in (0, 1):
            return result.returncode == 0
        log.debug("Commit %s not resolvable: %s", commit, result.stderr.strip())
        return False
