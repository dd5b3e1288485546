"""Advisory per-path claims with time-based staleness.

Claims are a convention between agents, not a filesystem lock: the store
only answers whether a path is currently claimed. ``acquire`` never waits;
the caller decides what to do with a :class:`Conflict`.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from agentboard.blackboard.events import EventLog
from agentboard.blackboard.schema import (
    CLAIM_ACQUIRED,
    CLAIM_RELEASED,
    CLAIM_SUPERSEDED,
    Acquired,
    Claim,
    Conflict,
    normalize_path,
    utcnow,
)
from agentboard.blackboard.store import RecordStore
from agentboard.logging import get_logger

log = get_logger("claims")

DEFAULT_STALENESS = timedelta(minutes=30)


class ClaimStore:
    """Tracks which holder owns which resource path.

    Stored as ``claims.json``, a mapping of normalized path to claim record.
    """

    def __init__(
        self,
        path: Path,
        events: EventLog,
        *,
        staleness: timedelta = DEFAULT_STALENESS,
        lock_timeout: float = 10.0,
    ) -> None:
        """Initialize the claim store.

        Args:
            path: JSON file backing the claims.
            events: Log receiving claim events.
            staleness: Age at which a claim may be overridden.
            lock_timeout: Seconds to wait for another writer.
        """
        self._store = RecordStore(path, lock_timeout=lock_timeout)
        self._events = events
        self._staleness = staleness

    @property
    def staleness(self) -> timedelta:
        return self._staleness

    def _claims(self, data: dict[str, Any]) -> dict[str, Claim]:
        claims: dict[str, Claim] = {}
        for key, raw in data.items():
            try:
                claims[key] = Claim.from_dict(raw)
            except (KeyError, TypeError, ValueError):
                log.warning("Dropping malformed claim record for %s", key)
        return claims

    def acquire(
        self,
        path: str,
        holder: str,
        scope: str = "",
        now: datetime | None = None,
    ) -> Acquired | Conflict:
        """Try to claim a path.

        Returns ``Conflict`` only when a different holder's claim is younger
        than the staleness threshold. A stale claim is superseded, and the
        superseded holder is announced with a ``claim:superseded`` event.
        Re-acquiring one's own claim refreshes its timestamp.

        Raises:
            StoreError: The claim could not be persisted.
        """
        now = now or utcnow()
        key = normalize_path(path)
        result: Acquired | Conflict | None = None

        def modifier(data: dict[str, Any]) -> dict[str, Any]:
            nonlocal result
            existing_raw = data.get(key)
            existing: Claim | None = None
            if existing_raw is not None:
                try:
                    existing = Claim.from_dict(existing_raw)
                except (KeyError, TypeError, ValueError):
                    log.warning("Overwriting malformed claim record for %s", key)

            superseded: Claim | None = None
            if existing is not None and existing.holder != holder:
                if not existing.is_stale(now, self._staleness):
                    result = Conflict(
                        holder=existing.holder,
                        scope=existing.scope,
                        age=existing.age(now),
                    )
                    return data
                superseded = existing

            claim = Claim(path=key, holder=holder, scope=scope, acquired_at=now)
            data[key] = claim.to_dict()
            result = Acquired(claim=claim, superseded=superseded)
            return data

        self._store.update(modifier)
        assert result is not None

        if isinstance(result, Acquired):
            if result.superseded is not None:
                old = result.superseded
                log.info("Stale claim on %s by %s superseded by %s", key, old.holder, holder)
                self._events.append(
                    CLAIM_SUPERSEDED,
                    {
                        "path": key,
                        "previous_holder": old.holder,
                        "previous_scope": old.scope,
                        "age_seconds": round(old.age(now).total_seconds(), 3),
                        "holder": holder,
                    },
                    now=now,
                )
            self._events.append(
                CLAIM_ACQUIRED,
                {"path": key, "holder": holder, "scope": scope},
                now=now,
            )
        else:
            log.debug("Claim on %s by %s conflicts with %s", key, holder, result.holder)
        return result

    def release(self, path: str, holder: str, now: datetime | None = None) -> bool:
        """Release a claim held by ``holder``.

        A no-op when the path is unclaimed or claimed by someone else.

        Returns:
            True if a claim was removed.
        """
        key = normalize_path(path)
        current = self._store.load().get(key)
        if not isinstance(current, dict) or current.get("holder") != holder:
            return False

        released = False

        def modifier(data: dict[str, Any]) -> dict[str, Any]:
            nonlocal released
            raw = data.get(key)
            if isinstance(raw, dict) and raw.get("holder") == holder:
                del data[key]
                released = True
            return data

        self._store.update(modifier)
        if released:
            self._events.append(CLAIM_RELEASED, {"path": key, "holder": holder}, now=now)
        return released

    def get(self, path: str, now: datetime | None = None) -> Claim | None:
        """Return the live claim on a path, or None."""
        now = now or utcnow()
        key = normalize_path(path)
        claim = self._claims(self._store.load()).get(key)
        if claim is None or claim.is_stale(now, self._staleness):
            return None
        return claim

    def list_claims(self, now: datetime | None = None, include_stale: bool = False) -> list[Claim]:
        """List claims sorted by path, live ones only unless asked otherwise."""
        now = now or utcnow()
        claims = self._claims(self._store.load()).values()
        if not include_stale:
            claims = [c for c in claims if not c.is_stale(now, self._staleness)]
        return sorted(claims, key=lambda c: c.path)

    def cleanup_stale(self, now: datetime | None = None) -> int:
        """Remove claims older than the staleness threshold.

        Returns:
            Number of claims removed.
        """
        now = now or utcnow()
        removed = 0

        def modifier(data: dict[str, Any]) -> dict[str, Any]:
            nonlocal removed
            live = {
                key: claim.to_dict()
                for key, claim in self._claims(data).items()
                if not claim.is_stale(now, self._staleness)
            }
            removed = len(data) - len(live)
            return live

        self._store.update(modifier)
        return removed
