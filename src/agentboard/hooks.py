"""Tool hook triggers.

Agents' tool runners call into this module after each tool invocation:

- a successful file write/edit is the "post successful mutation" trigger
  and updates the artifact registry;
- a successful ``git commit`` is the "commit observed" trigger: it records
  the commit in the shared context and takes a checkpoint snapshot;
- a pause-work skill invocation takes a manual snapshot;
- every handled call gives the periodic auto-save a chance to run.

Hooks only act inside projects that have a planning directory, and they
never change the outcome of the tool call that fired them. Every failure
is logged and swallowed.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

from agentboard.blackboard.board import Blackboard
from agentboard.blackboard.schema import is_planning_path, normalize_path
from agentboard.logging import get_logger
from agentboard.session.schema import SnapshotTrigger
from agentboard.session.snapshotter import SessionSnapshotter

log = get_logger("hooks")

FILE_TOOLS = frozenset({"Write", "Edit", "MultiEdit", "NotebookEdit"})
SHELL_TOOLS = frozenset({"Bash"})
SKILL_TOOLS = frozenset({"Skill"})

# "[main 1a2b3c4] message" or "[feature/x (root-commit) 1a2b3c4] message"
_COMMIT_RE = re.compile(r"\[[\w./-]+(?: \([\w-]+\))? ([0-9a-f]{7,40})\]")


def extract_commit_hash(output: str) -> str | None:
    """Pull the new commit's hash out of ``git commit`` output."""
    match = _COMMIT_RE.search(output or "")
    return match.group(1) if match else None


def is_git_commit(command: str | None) -> bool:
    return bool(command) and "git commit" in command


def _succeeded(result: Any) -> bool:
    if not isinstance(result, dict):
        return True
    if "success" in result:
        return bool(result["success"])
    if result.get("interrupted") or result.get("is_error") or result.get("error"):
        return False
    return True


def _output_text(result: Any) -> str:
    if isinstance(result, str):
        return result
    if isinstance(result, dict):
        parts = [result.get(k) for k in ("stdout", "output", "content")]
        return "\n".join(p for p in parts if isinstance(p, str))
    return ""


class HookDispatcher:
    """Routes tool events to blackboard and snapshot updates."""

    def __init__(self, board: Blackboard, snapshotter: SessionSnapshotter | None = None) -> None:
        self._board = board
        self._snapshotter = snapshotter or SessionSnapshotter(board)

    def _relative(self, file_path: str) -> str | None:
        path = Path(file_path)
        if not path.is_absolute():
            return normalize_path(file_path)
        try:
            return normalize_path(path.resolve().relative_to(self._board.root.resolve()).as_posix())
        except ValueError:
            return None

    def on_file_changed(self, file_path: str) -> bool:
        """Post-mutation trigger: record a modified file.

        Files outside the project root or inside the planning directory are
        ignored.

        Returns:
            True if the artifact registry was updated.
        """
        try:
            relative = self._relative(file_path)
            if relative is None:
                log.debug("Ignoring change outside project root: %s", file_path)
                return False
            if is_planning_path(relative, self._board.config.planning_dir):
                return False
            self._board.artifacts.touch(relative)
            return True
        except Exception as e:
            log.warning("File change hook failed for %s: %s", file_path, e)
            return False

    def on_commit_observed(self, command: str, output: str) -> str | None:
        """Commit-observed trigger: record the commit and checkpoint.

        Returns:
            The commit hash, or None if none was found or recording failed.
        """
        try:
            if not is_git_commit(command):
                return None
            commit_hash = extract_commit_hash(output)
            if commit_hash is None:
                return None
            self._board.context.record_commit(commit_hash)
        except Exception as e:
            log.warning("Commit hook failed: %s", e)
            return None
        self._snapshotter.snapshot(SnapshotTrigger.CHECKPOINT)
        return commit_hash

    def dispatch(self, tool: str, tool_input: dict[str, Any] | None, result: Any = None) -> bool:
        """Handle one tool invocation.

        Args:
            tool: Tool name, e.g. "Write" or "Bash".
            tool_input: The tool's input arguments.
            result: The tool's response; unsuccessful calls are ignored.

        Returns:
            True if the event was relevant and handled. Always False when
            the project has no planning directory.
        """
        try:
            planning = self._board.root / self._board.config.planning_dir
            if not planning.is_dir():
                log.debug("No planning directory at %s, ignoring %s", planning, tool)
                return False

            tool_input = tool_input or {}
            handled = False

            if tool in SKILL_TOOLS:
                skill = str(tool_input.get("skill") or tool_input.get("command") or "")
                if skill.endswith("pause-work"):
                    self._snapshotter.snapshot(SnapshotTrigger.MANUAL)
                    return True
                return False

            if not _succeeded(result):
                return False

            if tool in FILE_TOOLS:
                file_path = tool_input.get("file_path") or tool_input.get("notebook_path")
                if file_path:
                    handled = self.on_file_changed(str(file_path))
            elif tool in SHELL_TOOLS:
                command = str(tool_input.get("command") or "")
                if is_git_commit(command):
                    handled = self.on_commit_observed(command, _output_text(result)) is not None

            if handled:
                self._snapshotter.maybe_snapshot()
            return handled
        except Exception as e:
            log.warning("Hook dispatch failed for %s: %s", tool, e)
            return False

    def handle_payload(self, payload: dict[str, Any]) -> bool:
        """Handle a JSON hook payload as delivered on stdin by tool runners."""
        if not isinstance(payload, dict):
            log.warning("Ignoring non-object hook payload")
            return False
        tool = payload.get("tool_name") or payload.get("tool") or ""
        tool_input = payload.get("tool_input") or payload.get("input") or {}
        result = payload.get("tool_response", payload.get("result"))
        if not isinstance(tool_input, dict):
            tool_input = {}
        return self.dispatch(str(tool), tool_input, result)
