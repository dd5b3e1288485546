"""Locked, atomically-written JSON record sets.

Every blackboard record set (claims, artifacts, events, decisions, shared
context) is one JSON file. Writers go through :meth:`RecordStore.update`,
which holds a ``FileLock`` for the whole read-modify-write so that at most
one writer touches a record set at a time, across threads and processes.
The new content is written to a temp file and moved into place with
``os.replace``, so lock-free readers never observe a partial file.
"""

from __future__ import annotations

import copy
import json
import os
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

from filelock import FileLock, Timeout

from agentboard.errors import StoreError
from agentboard.logging import get_logger

log = get_logger("store")


class RecordStore:
    """A single JSON record collection with single-writer updates."""

    def __init__(
        self,
        path: Path,
        default: Callable[[], dict[str, Any]] = dict,
        *,
        lock_timeout: float = 10.0,
    ) -> None:
        """Initialize the store.

        Args:
            path: JSON file backing the record set.
            default: Factory for the empty record set.
            lock_timeout: Seconds to wait for another writer.
        """
        self._path = path
        self._default = default
        self._lock_path = path.with_suffix(".lock")
        self._lock_timeout = lock_timeout

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> dict[str, Any]:
        """Read the record set.

        A missing, unreadable or malformed file yields the default.
        """
        if not self._path.exists():
            return self._default()
        try:
            with open(self._path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
            log.warning("Unreadable record set %s, using empty default: %s", self._path, e)
            return self._default()
        if not isinstance(data, dict):
            log.warning("Malformed record set %s, using empty default", self._path)
            return self._default()
        return data

    def _save(self, data: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def update(self, modifier: Callable[[dict[str, Any]], dict[str, Any]]) -> dict[str, Any]:
        """Read-modify-write under the record-set lock.

        The modifier receives a private copy of the current data. If it
        raises, nothing is written and the exception propagates.

        Raises:
            StoreError: The lock could not be taken or the write failed.
        """
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            lock = FileLock(self._lock_path, timeout=self._lock_timeout)
            with lock:
                data = modifier(copy.deepcopy(self.load()))
                self._save(data)
                return data
        except Timeout as e:
            raise StoreError(f"Timed out waiting for lock on {self._path}") from e
        except OSError as e:
            raise StoreError(f"Failed to write {self._path}: {e}") from e
