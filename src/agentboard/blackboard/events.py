"""Bounded, append-only event log and its polling consumer."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterator
from datetime import datetime
from pathlib import Path
from typing import Any

from agentboard.blackboard.schema import Event, utcnow
from agentboard.blackboard.store import RecordStore
from agentboard.logging import get_logger

log = get_logger("events")

DEFAULT_EVENT_LIMIT = 1000
DEFAULT_POLL_INTERVAL = 2.0


def _empty_log() -> dict[str, Any]:
    return {"events": [], "last_event_id": 0}


class EventLog:
    """Monotonically-identified coordination history.

    Stored as ``events.json``::

        {"events": [{"id": 1, "type": "claim:acquired", ...}], "last_event_id": 1}

    Ids come from ``last_event_id``, which survives trimming, so ids never
    repeat or skip even after old events have been dropped.
    """

    def __init__(
        self,
        path: Path,
        *,
        limit: int = DEFAULT_EVENT_LIMIT,
        lock_timeout: float = 10.0,
    ) -> None:
        if limit < 1:
            raise ValueError("event limit must be positive")
        self._store = RecordStore(path, _empty_log, lock_timeout=lock_timeout)
        self._limit = limit

    @property
    def limit(self) -> int:
        return self._limit

    def _load(self) -> dict[str, Any]:
        data = self._store.load()
        if not isinstance(data.get("events"), list):
            data["events"] = []
        if not isinstance(data.get("last_event_id"), int):
            # Recover the counter from the retained events
            ids = [e.get("id", 0) for e in data["events"] if isinstance(e, dict)]
            data["last_event_id"] = max(ids, default=0)
        return data

    def append(
        self,
        event_type: str,
        payload: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> Event:
        """Append an event and return it with its assigned id.

        Trims the oldest events so that at most ``limit`` remain.
        """
        timestamp = now or utcnow()
        appended: Event | None = None

        def modifier(data: dict[str, Any]) -> dict[str, Any]:
            nonlocal appended
            events = data.get("events")
            if not isinstance(events, list):
                events = []
            last_id = data.get("last_event_id")
            if not isinstance(last_id, int):
                last_id = max((e.get("id", 0) for e in events if isinstance(e, dict)), default=0)

            appended = Event(
                id=last_id + 1,
                type=event_type,
                payload=dict(payload or {}),
                timestamp=timestamp,
            )
            events.append(appended.to_dict())
            if len(events) > self._limit:
                del events[: len(events) - self._limit]

            data["events"] = events
            data["last_event_id"] = appended.id
            return data

        self._store.update(modifier)
        assert appended is not None
        log.debug("Event %d %s", appended.id, event_type)
        return appended

    def since(self, last_seen_id: int = 0) -> Iterator[Event]:
        """Yield retained events with id > ``last_seen_id`` in ascending order.

        Reads one consistent copy of the log up front; the iteration itself
        is lazy. Malformed entries are skipped.
        """
        raw_events = self._load()["events"]
        for raw in raw_events:
            try:
                event = Event.from_dict(raw)
            except (KeyError, TypeError, ValueError):
                log.warning("Skipping malformed event record: %r", raw)
                continue
            if event.id > last_seen_id:
                yield event

    def events(self) -> list[Event]:
        return list(self.since(0))

    def last_id(self) -> int:
        return int(self._load()["last_event_id"])

    def oldest_id(self) -> int | None:
        """Id of the oldest retained event, or None if the log is empty."""
        events = self._load()["events"]
        for raw in events:
            if isinstance(raw, dict) and isinstance(raw.get("id"), int):
                return raw["id"]
        return None

    def has_gap(self, last_seen_id: int) -> bool:
        """Check whether a consumer at ``last_seen_id`` has lost continuity.

        True when events after ``last_seen_id`` were trimmed before the
        consumer saw them, or when the consumer is ahead of the log (the log
        was reset). Either way the consumer must resynchronize from current
        state instead of assuming it saw everything.
        """
        data = self._load()
        last_id = data["last_event_id"]
        if last_seen_id > last_id:
            return True
        if last_seen_id == last_id:
            return False
        oldest = next(
            (e["id"] for e in data["events"] if isinstance(e, dict) and isinstance(e.get("id"), int)),
            None,
        )
        return oldest is None or oldest > last_seen_id + 1


class EventPoller:
    """Cooperative polling consumer of an :class:`EventLog`.

    There is no push notification: the poller sleeps ``interval`` seconds
    between reads. Delivery is at-least-once while the consumer keeps up
    with trimming. When it falls behind, ``on_gap`` is called with the last
    seen id and the current last id so the consumer can rebuild its view
    from current state; polling then continues from that last id.
    """

    def __init__(
        self,
        event_log: EventLog,
        handler: Callable[[Event], None],
        *,
        last_seen_id: int = 0,
        interval: float = DEFAULT_POLL_INTERVAL,
        on_gap: Callable[[int, int], None] | None = None,
    ) -> None:
        self._log = event_log
        self._handler = handler
        self._on_gap = on_gap
        self._interval = interval
        self._last_seen_id = last_seen_id
        self._running = False
        self._task: asyncio.Task[None] | None = None

    @property
    def last_seen_id(self) -> int:
        return self._last_seen_id

    def poll_once(self) -> int:
        """Deliver everything new since the last poll.

        Returns:
            Number of events handed to the handler.
        """
        if self._log.has_gap(self._last_seen_id):
            resume_at = self._log.last_id()
            log.info(
                "Event gap after id %d (log at %d), resynchronizing",
                self._last_seen_id,
                resume_at,
            )
            if self._on_gap is not None:
                self._on_gap(self._last_seen_id, resume_at)
            self._last_seen_id = resume_at
            return 0

        delivered = 0
        for event in self._log.since(self._last_seen_id):
            try:
                self._handler(event)
            except Exception as e:
                log.warning("Event handler failed on event %d (%s): %s", event.id, event.type, e)
            self._last_seen_id = event.id
            delivered += 1
        return delivered

    async def _poll_loop(self) -> None:
        while self._running:
            try:
                self.poll_once()
            except Exception as e:
                log.error("Error polling event log: %s", e)
            await asyncio.sleep(self._interval)

    def start(self) -> None:
        """Start polling in an asyncio task (requires a running loop)."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._poll_loop())
        log.debug("Event poller started (interval=%.1fs)", self._interval)

    def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            self._task = None
        log.debug("Event poller stopped")

    async def __aenter__(self) -> EventPoller:
        self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        self.stop()
