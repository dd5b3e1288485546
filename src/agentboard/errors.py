"""Exception hierarchy for agentboard."""

from __future__ import annotations


class AgentboardError(Exception):
    """Base class for all agentboard errors."""


class StoreError(AgentboardError):
    """A record set could not be locked or written."""


class CycleError(AgentboardError):
    """Registering an artifact would introduce a dependency cycle."""

    def __init__(self, cycle: list[str]) -> None:
        self.cycle = cycle
        super().__init__("Dependency cycle: " + " -> ".join(cycle))


class SnapshotNotFoundError(AgentboardError):
    """No session snapshot matches the requested id."""

    def __init__(self, snapshot_id: str) -> None:
        self.snapshot_id = snapshot_id
        super().__init__(f"Session snapshot not found: {snapshot_id}")


class VCSError(AgentboardError):
    """The version-control status source is unavailable or failed."""
