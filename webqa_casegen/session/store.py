import logging
import secrets
import threading
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from webqa_casegen.data.test_structures import (Cursor, PageSnapshot,
                                                ProcessedCounts, SessionState,
                                                TestCase)
from webqa_casegen.exceptions import SessionNotFoundError

DEFAULT_TTL_SECONDS = 3600
DEFAULT_MAX_SESSIONS = 1000


class KeyValueStore(ABC):
    """Storage backend for session state."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the live value for ``key`` or None."""

    @abstractmethod
    def put(self, key: str, value: Any) -> None:
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        pass

    @abstractmethod
    def list_expired(self, now: Optional[float] = None) -> List[str]:
        """Keys whose entries have expired at ``now``."""

    @abstractmethod
    def keys(self) -> List[str]:
        pass


class InMemoryTTLStore(KeyValueStore):
    """Process-local store with expiry and a size bound.

    Entries expire ``ttl_seconds`` after their last write. When the store is
    full, the least recently written entry is evicted.
    """

    def __init__(self, ttl_seconds: Optional[float] = DEFAULT_TTL_SECONDS,
                 max_entries: Optional[int] = DEFAULT_MAX_SESSIONS,
                 clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[float, Any]]" = OrderedDict()
        self._lock = threading.RLock()

    def _expired(self, written_at: float, now: float) -> bool:
        return self.ttl_seconds is not None and now - written_at >= self.ttl_seconds

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            written_at, value = entry
            if self._expired(written_at, self._clock()):
                del self._entries[key]
                return None
            return value

    def put(self, key: str, value: Any) -> None:
        with self._lock:
            self._entries[key] = (self._clock(), value)
            self._entries.move_to_end(key)
            while self.max_entries is not None and len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logging.info(f"Session store full ({self.max_entries}), evicted {evicted}")

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def list_expired(self, now: Optional[float] = None) -> List[str]:
        now = self._clock() if now is None else now
        with self._lock:
            return [k for k, (written_at, _) in self._entries.items() if self._expired(written_at, now)]

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._entries.keys())

    def __len__(self) -> int:
        return len(self._entries)


class SessionStore:
    """Session id -> :class:`SessionState`, with per-session serialized updates."""

    def __init__(self, backend: Optional[KeyValueStore] = None,
                 ttl_seconds: Optional[float] = DEFAULT_TTL_SECONDS,
                 max_sessions: Optional[int] = DEFAULT_MAX_SESSIONS,
                 clock: Callable[[], float] = time.time):
        self._backend = backend if backend is not None else InMemoryTTLStore(
            ttl_seconds=ttl_seconds, max_entries=max_sessions
        )
        self._clock = clock
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    def _new_session_id(self) -> str:
        while True:
            session_id = f"session-{secrets.token_urlsafe(12)}"
            if self._backend.get(session_id) is None:
                return session_id
            logging.warning(f"Session id collision on {session_id}, regenerating")

    def _lock_for(self, session_id: str) -> threading.RLock:
        with self._locks_guard:
            lock = self._locks.get(session_id)
            if lock is None:
                lock = self._locks[session_id] = threading.RLock()
            return lock

    def _prune_locks(self):
        """Drop locks of sessions the backend no longer holds (evicted or expired)."""
        live = set(self._backend.keys())
        with self._locks_guard:
            for session_id in [s for s in self._locks if s not in live]:
                self._locks.pop(session_id, None)

    @contextmanager
    def locked(self, session_id: str) -> Iterator[None]:
        """Serialize read-modify-write sequences on one session.

        The lock is released from the registry again when the session does not
        exist afterwards, so lookups of unknown ids leave nothing behind.
        """
        lock = self._lock_for(session_id)
        try:
            with lock:
                yield
        finally:
            if self._backend.get(session_id) is None:
                with self._locks_guard:
                    if self._locks.get(session_id) is lock:
                        del self._locks[session_id]

    def create(self, snapshot: PageSnapshot, first_cases: Sequence[TestCase],
               cursor: Optional[Cursor] = None,
               processed_counts: Optional[ProcessedCounts] = None) -> str:
        session_id = self._new_session_id()
        now = self._clock()
        state = SessionState(
            session_id=session_id,
            snapshot=snapshot,
            processed_counts=processed_counts or ProcessedCounts(),
            test_cases=list(first_cases),
            cursor=cursor or Cursor(),
            created_at=now,
            updated_at=now,
        )
        self._backend.put(session_id, state)
        # A full backend may have evicted a session to make room.
        self._prune_locks()
        logging.info(f"Created session {session_id} for {snapshot.url} with {len(first_cases)} test cases")
        return session_id

    def get(self, session_id: str) -> SessionState:
        state = self._backend.get(session_id) if session_id else None
        if state is None:
            raise SessionNotFoundError(session_id)
        return state

    def update(self, session_id: str, new_cases: Sequence[TestCase], cursor: Cursor,
               processed_counts: ProcessedCounts) -> SessionState:
        """Append ``new_cases`` and replace cursor and counts atomically."""
        with self.locked(session_id):
            state = self.get(session_id)
            updated = state.model_copy(update={
                "test_cases": state.test_cases + list(new_cases),
                "cursor": cursor,
                "processed_counts": processed_counts,
                "updated_at": self._clock(),
            })
            self._backend.put(session_id, updated)
            return updated

    def delete(self, session_id: str) -> None:
        with self.locked(session_id):
            self._backend.delete(session_id)
        with self._locks_guard:
            self._locks.pop(session_id, None)

    def purge_expired(self) -> int:
        expired = self._backend.list_expired()
        for session_id in expired:
            self.delete(session_id)
        self._prune_locks()
        if expired:
            logging.info(f"Purged {len(expired)} expired sessions")
        return len(expired)

    def session_ids(self) -> List[str]:
        return self._backend.keys()
