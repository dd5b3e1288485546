"""agentboard: blackboard coordination and session continuity for agents."""

__version__ = "0.1.0"

# Public API
from agentboard.blackboard import (
    Acquired,
    Artifact,
    ArtifactRegistry,
    Blackboard,
    Claim,
    ClaimStore,
    Conflict,
    Decision,
    DecisionLedger,
    Event,
    EventLog,
    EventPoller,
    SharedContext,
)
from agentboard.config import Config, load_config
from agentboard.errors import (
    AgentboardError,
    CycleError,
    SnapshotNotFoundError,
    StoreError,
    VCSError,
)
from agentboard.hooks import HookDispatcher
from agentboard.session import (
    Position,
    RecoveryReport,
    SessionSnapshot,
    SessionSnapshotter,
    SnapshotStore,
)

__all__ = [
    # Blackboard
    "Acquired",
    "Artifact",
    "ArtifactRegistry",
    "Blackboard",
    "Claim",
    "ClaimStore",
    "Conflict",
    "Decision",
    "DecisionLedger",
    "Event",
    "EventLog",
    "EventPoller",
    "SharedContext",
    # Config
    "Config",
    "load_config",
    # Errors
    "AgentboardError",
    "CycleError",
    "SnapshotNotFoundError",
    "StoreError",
    "VCSError",
    # Hooks
    "HookDispatcher",
    # Sessions
    "Position",
    "RecoveryReport",
    "SessionSnapshot",
    "SessionSnapshotter",
    "SnapshotStore",
]
