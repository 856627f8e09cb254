# swapdesk/session/store.py

import asyncio
import contextlib
import copy
import json
import logging
from datetime import datetime, timedelta, UTC
from typing import Callable, Optional

import redis.asyncio as aioredis

from swapdesk.session.state import SessionState

log = logging.getLogger(__name__)


class SessionStore:
    """Keyed persistence for SessionState with an inactivity TTL.

    Every write refreshes the TTL. An entry past its TTL reads as absent.
    update() is the only read-modify-write path; it is serialised per
    session id so two events for the same chat never interleave.
    """

    def __init__(self, ttl_seconds: int = 3600):
        self.ttl = timedelta(seconds=ttl_seconds)
        # session_id -> (asyncio.Lock, number of tasks holding or waiting)
        self._locks = {}

    async def get(self, session_id: str) -> Optional[SessionState]:
        raise NotImplementedError

    async def set(self, state: SessionState) -> None:
        raise NotImplementedError

    async def delete(self, session_id: str) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        pass

    async def sweep_expired(self) -> int:
        """Drop expired entries; returns how many went."""
        return 0

    @contextlib.asynccontextmanager
    async def _locked(self, session_id: str):
        lock, users = self._locks.get(session_id, (None, 0))
        if lock is None:
            lock = asyncio.Lock()
        self._locks[session_id] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            lock, users = self._locks[session_id]
            if users <= 1:
                del self._locks[session_id]
            else:
                self._locks[session_id] = (lock, users - 1)

    async def update(self, session_id: str,
                     fn: Callable[[Optional[SessionState]], Optional[SessionState]]
                     ) -> Optional[SessionState]:
        """Apply fn to the current state and persist what it returns.

        Returning None deletes the entry. Anything fn raises propagates
        and nothing is written.
        """
        async with self._locked(session_id):
            current = await self.get(session_id)
            new_state = fn(current)
            if new_state is None:
                if current is not None:
                    await self.delete(session_id)
            else:
                await self.set(new_state)
            return new_state


class MemorySessionStore(SessionStore):
    def __init__(self, ttl_seconds: int = 3600):
        super().__init__(ttl_seconds)
        # session_id -> (serialized state, expires_at: datetime)
        self.sessions = {}

    async def get(self, session_id):
        entry = self.sessions.get(session_id)
        if not entry:
            return None
        data, expires_at = entry
        if datetime.now(UTC) >= expires_at:
            del self.sessions[session_id]
            log.info(f"Session expired on read: {session_id}")
            return None
        return SessionState.from_dict(copy.deepcopy(data))

    async def set(self, state):
        self.sessions[state.session_id] = (
            state.to_dict(), datetime.now(UTC) + self.ttl)

    async def delete(self, session_id):
        self.sessions.pop(session_id, None)

    async def sweep_expired(self) -> int:
        now = datetime.now(UTC)
        expired = [sid for sid, (_, expires_at) in self.sessions.items()
                   if now >= expires_at]
        for session_id in expired:
            del self.sessions[session_id]
            log.info(f"Session auto-expired: {session_id}")
        return len(expired)


class SqliteSessionStore(SessionStore):
    def __init__(self, db, ttl_seconds: int = 3600):
        super().__init__(ttl_seconds)
        self.db = db

    async def get(self, session_id):
        rows = await self.db.execute(
            "SELECT data, expires_at FROM session_state WHERE session_id = ?",
            (session_id,))
        if not rows:
            return None
        data, expires_at = rows[0]
        if datetime.now(UTC).timestamp() >= expires_at:
            await self.delete(session_id)
            log.info(f"Session expired on read: {session_id}")
            return None
        return SessionState.from_dict(json.loads(data))

    async def set(self, state):
        expires_at = (datetime.now(UTC) + self.ttl).timestamp()
        await self.db.execute(
            "INSERT OR REPLACE INTO session_state (session_id, data, expires_at) "
            "VALUES (?, ?, ?)",
            (state.session_id, json.dumps(state.to_dict()), expires_at))

    async def delete(self, session_id):
        await self.db.execute(
            "DELETE FROM session_state WHERE session_id = ?", (session_id,))

    async def sweep_expired(self) -> int:
        count = await self.db.execute(
            "DELETE FROM session_state WHERE expires_at <= ?",
            (datetime.now(UTC).timestamp(),))
        if count:
            log.info(f"Swept {count} expired sessions")
        return count


class RedisSessionStore(SessionStore):
    """Sessions as JSON strings under '{prefix}:{session_id}', expired by
    redis itself via SETEX."""

    def __init__(self, url: str, prefix: str = "user", ttl_seconds: int = 3600,
                 client=None):
        super().__init__(ttl_seconds)
        self.url = url
        self.prefix = prefix
        self._client = client

    def _get_client(self):
        if self._client is None:
            self._client = aioredis.from_url(self.url, decode_responses=True)
        return self._client

    def _make_key(self, session_id: str) -> str:
        return f"{self.prefix}:{session_id}"

    async def get(self, session_id):
        data = await self._get_client().get(self._make_key(session_id))
        return SessionState.from_dict(json.loads(data)) if data else None

    async def set(self, state):
        await self._get_client().setex(
            self._make_key(state.session_id),
            int(self.ttl.total_seconds()),
            json.dumps(state.to_dict()))

    async def delete(self, session_id):
        await self._get_client().delete(self._make_key(session_id))

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None


def build_session_store(config, db=None) -> SessionStore:
    backend = config.session["backend"]
    ttl = config.session["ttl_seconds"]
    if backend == "memory":
        return MemorySessionStore(ttl)
    if backend == "sqlite":
        if db is None:
            raise RuntimeError("sqlite session backend requires a DatabaseManager")
        return SqliteSessionStore(db, ttl)
    return RedisSessionStore(config.session["redis_url"],
                             prefix=config.session["key_prefix"],
                             ttl_seconds=ttl)
