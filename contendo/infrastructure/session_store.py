"""Server-side session storage.

A session record holds an arbitrary key/value payload together with its
creation time and a fixed expiry. The expiry is set once, when the record is
created, and is never pushed back by later activity.

Requests never hand a whole payload back to the store. They send the keys
they set and the keys they deleted, and the store merges that delta into the
current record under a lock. Two overlapping requests writing different keys
of the same session therefore both keep their writes.
"""

import asyncio
import secrets
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol, Self

from contendo.core.types import Clock

SESSION_ID_BYTES = 32


@dataclass
class SessionRecord:
    """Stored session state."""

    session_id: str
    data: dict[str, Any]
    created_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        """Whether the record has reached its fixed expiry."""
        return now >= self.expires_at

    def remaining_seconds(self, now: float) -> int:
        """Whole seconds left before expiry."""
        return max(int(self.expires_at - now), 0)


class SessionStore(Protocol):
    """Storage backend for session records."""

    async def get(self, session_id: str) -> SessionRecord | None:
        """Return the live record for ``session_id`` or None."""
        ...

    async def create(self, data: Mapping[str, Any]) -> SessionRecord:
        """Create a record holding ``data`` with a fresh id and expiry."""
        ...

    async def apply(
        self,
        session_id: str,
        updates: Mapping[str, Any],
        deletions: Iterable[str],
    ) -> SessionRecord | None:
        """Merge a change set into a live record; None if it no longer exists."""
        ...

    async def delete(self, session_id: str) -> None:
        """Destroy a record."""
        ...


class InMemorySessionStore:
    """Process-local session store.

    Args:
        max_age_seconds: Fixed lifetime of each record.
        clock: Wall-clock time source in seconds.
    """

    def __init__(self, *, max_age_seconds: float, clock: Clock = time.time) -> None:
        self.max_age_seconds = max_age_seconds
        self._clock = clock
        self._records: dict[str, SessionRecord] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._records)

    def now(self) -> float:
        """Current time according to the store's clock."""
        return self._clock()

    async def get(self, session_id: str) -> SessionRecord | None:
        async with self._lock:
            return self._live_record(session_id)

    async def create(self, data: Mapping[str, Any]) -> SessionRecord:
        async with self._lock:
            now = self._clock()
            session_id = secrets.token_urlsafe(SESSION_ID_BYTES)
            while session_id in self._records:
                session_id = secrets.token_urlsafe(SESSION_ID_BYTES)
            record = SessionRecord(
                session_id=session_id,
                data=dict(data),
                created_at=now,
                expires_at=now + self.max_age_seconds,
            )
            self._records[session_id] = record
            return record

    async def apply(
        self,
        session_id: str,
        updates: Mapping[str, Any],
        deletions: Iterable[str],
    ) -> SessionRecord | None:
        async with self._lock:
            record = self._live_record(session_id)
            if record is None:
                return None
            for key in deletions:
                record.data.pop(key, None)
            record.data.update(updates)
            return record

    async def delete(self, session_id: str) -> None:
        async with self._lock:
            self._records.pop(session_id, None)

    async def purge_expired(self) -> int:
        """Remove every expired record and return how many were removed."""
        async with self._lock:
            now = self._clock()
            expired = [
                sid for sid, record in self._records.items() if record.is_expired(now)
            ]
            for sid in expired:
                del self._records[sid]
            return len(expired)

    def _live_record(self, session_id: str) -> SessionRecord | None:
        """Look up a record, dropping it if expired. Caller holds the lock."""
        record = self._records.get(session_id)
        if record is not None and record.is_expired(self._clock()):
            del self._records[session_id]
            return None
        return record


@dataclass
class SessionChanges:
    """Keys set and deleted on a session during one request."""

    updates: dict[str, Any] = field(default_factory=dict)
    deletions: set[str] = field(default_factory=set)

    def __bool__(self) -> bool:
        return bool(self.updates or self.deletions)


class SessionData(dict[str, Any]):
    """Dictionary view of a session that records every mutation.

    Installed as ``request.session`` by the session middleware.
    """

    def __init__(self, initial: Mapping[str, Any] | None = None) -> None:
        super().__init__(initial or {})
        self.changes = SessionChanges()
        self.invalidated = False

    def __setitem__(self, key: str, value: Any) -> None:  # noqa: ANN401
        super().__setitem__(key, value)
        self.changes.updates[key] = value
        self.changes.deletions.discard(key)

    def __delitem__(self, key: str) -> None:
        super().__delitem__(key)
        self._record_deletion(key)

    def pop(self, key: str, *default: Any) -> Any:  # noqa: ANN401
        present = key in self
        value = super().pop(key, *default)
        if present:
            self._record_deletion(key)
        return value

    def popitem(self) -> tuple[str, Any]:
        key, value = super().popitem()
        self._record_deletion(key)
        return key, value

    def __ior__(self, other: Any) -> Self:  # type: ignore[override]  # noqa: ANN401
        self.update(other)
        return self

    def setdefault(self, key: str, default: Any = None) -> Any:  # noqa: ANN401
        if key not in self:
            self[key] = default
        return self[key]

    def update(self, *args: Any, **kwargs: Any) -> None:  # type: ignore[override]
        for key, value in dict(*args, **kwargs).items():
            self[key] = value

    def clear(self) -> None:
        for key in list(self):
            del self[key]

    def invalidate(self) -> None:
        """Destroy the session at the end of the request."""
        super().clear()
        self.changes = SessionChanges()
        self.invalidated = True

    @property
    def modified(self) -> bool:
        """Whether the request wrote to the session."""
        return bool(self.changes)

    def _record_deletion(self, key: str) -> None:
        self.changes.updates.pop(key, None)
        self.changes.deletions.add(key)
