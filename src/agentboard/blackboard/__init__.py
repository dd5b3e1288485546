"""Shared blackboard for agents working on one file tree.

Advisory only: claims tell agents who is editing what but never block.
Every mutation is recorded in a bounded, monotonically-identified event log.
"""

from agentboard.blackboard.artifacts import ArtifactRegistry
from agentboard.blackboard.board import Blackboard
from agentboard.blackboard.claims import ClaimStore
from agentboard.blackboard.context import SharedContext
from agentboard.blackboard.decisions import DecisionLedger
from agentboard.blackboard.events import EventLog, EventPoller
from agentboard.blackboard.schema import (
    Acquired,
    Artifact,
    Claim,
    Conflict,
    Decision,
    Event,
    normalize_path,
    scope_matches,
)
from agentboard.blackboard.store import RecordStore

__all__ = [
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
    "RecordStore",
    "SharedContext",
    "normalize_path",
    "scope_matches",
]
