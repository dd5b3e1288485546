"""Session snapshots: checkpoint and restore an agent's working position."""

from agentboard.session.schema import (
    CleanupReport,
    Discrepancy,
    FileChange,
    Position,
    RecoveryReport,
    SessionSnapshot,
    SnapshotState,
    SnapshotSummary,
    SnapshotTrigger,
)
from agentboard.session.snapshotter import AutoSaver, SessionSnapshotter
from agentboard.session.sources import (
    GitStatusSource,
    PositionSource,
    StateDocumentSource,
    VCSStatusSource,
)
from agentboard.session.storage import SnapshotStore

__all__ = [
    "AutoSaver",
    "CleanupReport",
    "Discrepancy",
    "FileChange",
    "GitStatusSource",
    "Position",
    "PositionSource",
    "RecoveryReport",
    "SessionSnapshot",
    "SessionSnapshotter",
    "SnapshotState",
    "SnapshotStore",
    "SnapshotSummary",
    "SnapshotTrigger",
    "StateDocumentSource",
    "VCSStatusSource",
]
