"""Facade wiring all blackboard record sets to one project root."""

from __future__ import annotations

from pathlib import Path

from agentboard.blackboard.artifacts import ArtifactRegistry
from agentboard.blackboard.claims import ClaimStore
from agentboard.blackboard.context import SharedContext
from agentboard.blackboard.decisions import DecisionLedger
from agentboard.blackboard.events import EventLog
from agentboard.config.paths import get_blackboard_dir
from agentboard.config.schema import Config


class Blackboard:
    """The shared coordination state of a project.

    Each record set lives in its own file under
    ``<root>/<planning_dir>/blackboard/`` and is owned by exactly one store.
    All stores append to the same event log.
    """

    def __init__(self, root: str | Path, config: Config | None = None) -> None:
        """Initialize the blackboard.

        Args:
            root: Project root directory.
            config: Configuration; defaults are used when omitted.
        """
        self._root = Path(root)
        self._config = config or Config()
        bb = self._config.blackboard
        self._dir = get_blackboard_dir(self._root, self._config.planning_dir)

        self.events = EventLog(
            self._dir / "events.json",
            limit=bb.event_limit,
            lock_timeout=bb.lock_timeout,
        )
        self.claims = ClaimStore(
            self._dir / "claims.json",
            self.events,
            staleness=bb.staleness,
            lock_timeout=bb.lock_timeout,
        )
        self.artifacts = ArtifactRegistry(
            self._dir / "artifacts.json", self.events, lock_timeout=bb.lock_timeout
        )
        self.decisions = DecisionLedger(
            self._dir / "decisions.json", self.events, lock_timeout=bb.lock_timeout
        )
        self.context = SharedContext(
            self._dir / "shared-context.json", self.events, lock_timeout=bb.lock_timeout
        )

    @property
    def root(self) -> Path:
        return self._root

    @property
    def config(self) -> Config:
        return self._config

    @property
    def directory(self) -> Path:
        return self._dir
