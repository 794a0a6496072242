"""
Session manager: in-memory cache in front of a pluggable durable store.

Created once at process start and injected into the router. The cache,
the per-session lock registry and the store always agree on which
sessions exist after any public call returns. Idle sessions are swept
out (at most once per sweep interval) whenever any session is fetched.

Usage:
    manager = SessionManager(InMemorySessionStore())
    async with manager.lock("sess-1"):
        session = await manager.get_or_create("sess-1")
        session.add_message(Role.USER, "hi")
        await manager.save(session)
"""

import asyncio
from datetime import datetime, timedelta
from typing import Callable, Optional

from billing_assistant.config import SessionConfig, settings
from billing_assistant.conversation.session_store import SessionStore
from billing_assistant.errors import SessionCorruptError
from billing_assistant.logging_context import get_session_logger
from billing_assistant.schemas.session_schema import ConversationSession, utcnow

logger = get_session_logger(__name__)


class SessionManager:
    """Creates, loads, persists and evicts conversation sessions."""

    def __init__(
        self,
        store: SessionStore,
        config: Optional[SessionConfig] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._config = config or settings.session
        self._clock = clock
        self._cache: dict[str, ConversationSession] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._last_sweep = clock()

    @property
    def idle_ttl(self) -> timedelta:
        return timedelta(minutes=self._config.idle_ttl_minutes)

    @property
    def sweep_interval(self) -> timedelta:
        return timedelta(seconds=self._config.sweep_interval_seconds)

    @property
    def store(self) -> SessionStore:
        return self._store

    def lock(self, session_id: str) -> asyncio.Lock:
        """Return the lock that serializes message processing for one session."""
        lock = self._locks.get(session_id)
        if lock is None:
            lock = self._locks.setdefault(session_id, asyncio.Lock())
        return lock

    def cached(self, session_id: str) -> Optional[ConversationSession]:
        return self._cache.get(session_id)

    def _is_idle(self, session: ConversationSession, now: Optional[datetime] = None) -> bool:
        return (now or self._clock()) - session.last_interaction > self.idle_ttl

    @staticmethod
    def _deserialize(payload: str) -> ConversationSession:
        try:
            return ConversationSession.from_json(payload)
        except ValueError as exc:
            raise SessionCorruptError(str(exc)) from exc

    async def _load(self, session_id: str) -> Optional[ConversationSession]:
        payload = await self._store.get(session_id)
        if payload is None:
            return None
        try:
            return self._deserialize(payload)
        except SessionCorruptError as exc:
            logger.error(
                "Data integrity: discarding corrupt session %s (%s)", session_id, exc
            )
            await self._store.delete(session_id)
            return None

    async def get_or_create(self, session_id: str) -> ConversationSession:
        """Return the cached, stored or a brand-new session for ``session_id``."""
        await self._sweep(keep=session_id)

        session = self._cache.get(session_id)
        if session is not None and self._is_idle(session):
            logger.info("Session %s idle past TTL, starting over", session_id)
            await self.delete(session_id)
            session = None

        if session is not None:
            return session

        loaded = await self._load(session_id)
        if loaded is not None and self._is_idle(loaded):
            logger.info("Stored session %s idle past TTL, starting over", session_id)
            await self._store.delete(session_id)
            loaded = None

        fresh = loaded is None
        if fresh:
            loaded = ConversationSession(session_id=session_id)
            logger.info("Created new session %s", session_id)
        else:
            logger.debug("Loaded session %s from store", session_id)

        # Another coroutine may have filled the cache while we awaited the store
        session = self._cache.setdefault(session_id, loaded)
        if fresh and session is loaded:
            await self._store.put(session_id, session.to_json())
        return session

    async def save(self, session: ConversationSession) -> None:
        """Persist the session as-is. Safe to call repeatedly."""
        self._cache[session.session_id] = session
        await self._store.put(session.session_id, session.to_json())

    async def delete(self, session_id: str) -> None:
        """Remove the session from cache and store."""
        self._cache.pop(session_id, None)
        lock = self._locks.get(session_id)
        if lock is not None and not lock.locked():
            del self._locks[session_id]
        await self._store.delete(session_id)
        logger.info("Deleted session %s", session_id)

    async def _sweep(self, keep: str) -> None:
        now = self._clock()
        if now - self._last_sweep < self.sweep_interval:
            return
        self._last_sweep = now
        await self.evict_expired(now, keep=keep)

    async def evict_expired(
        self, now: Optional[datetime] = None, keep: Optional[str] = None
    ) -> list[str]:
        """Delete every cached session idle past the TTL. Returns evicted ids.

        Sessions whose lock is held are mid-message and are left alone,
        as is ``keep``.
        """
        now = now or self._clock()
        expired = [
            sid for sid, session in self._cache.items()
            if sid != keep and self._is_idle(session, now) and not self._is_busy(sid)
        ]
        evicted = []
        for sid in expired:
            # Re-check: a message may have claimed the session while we awaited the store
            session = self._cache.get(sid)
            if session is None or self._is_busy(sid) or not self._is_idle(session, now):
                continue
            await self.delete(sid)
            evicted.append(sid)
        if evicted:
            logger.info("Evicted %d idle session(s)", len(evicted))
        return evicted

    def _is_busy(self, session_id: str) -> bool:
        lock = self._locks.get(session_id)
        return lock is not None and lock.locked()

    async def close(self) -> None:
        """Release the durable store. The manager must not be used afterwards."""
        await self._store.close()
