"""
Durable session stores.

A store holds serialized sessions (JSON text) keyed by session id. The
SessionManager owns serialization; stores only move strings around, so a
record written by one store implementation reads back in any other.

Usage:
    store = SqliteSessionStore("data/sessions.db")
    await store.put("sess-1", session.to_json())
    payload = await store.get("sess-1")
"""

import asyncio
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol

from billing_assistant.logging_context import get_session_logger

logger = get_session_logger(__name__)


class SessionStore(Protocol):
    """Pluggable durable store for serialized sessions."""

    async def get(self, session_id: str) -> Optional[str]:
        ...

    async def put(self, session_id: str, payload: str) -> None:
        ...

    async def delete(self, session_id: str) -> None:
        ...

    async def close(self) -> None:
        ...


class InMemorySessionStore:
    """Process-local store, for tests and the console demo."""

    def __init__(self) -> None:
        self._records: dict[str, str] = {}

    async def get(self, session_id: str) -> Optional[str]:
        return self._records.get(session_id)

    async def put(self, session_id: str, payload: str) -> None:
        self._records[session_id] = payload

    async def delete(self, session_id: str) -> None:
        self._records.pop(session_id, None)

    async def close(self) -> None:
        pass

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._records

    def __len__(self) -> int:
        return len(self._records)


class SqliteSessionStore:
    """
    SQLite-backed store that survives process restarts.

    Blocking sqlite3 calls run in a worker thread so the event loop keeps
    serving other sessions.
    """

    def __init__(self, db_path: str = "data/sessions.db") -> None:
        self.db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self._lock = threading.Lock()
        self._init_schema()

    def _init_schema(self) -> None:
        """Create the sessions table if it doesn't exist."""
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS sessions (
                session_id TEXT PRIMARY KEY,
                payload TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        self.conn.commit()

    def _get(self, session_id: str) -> Optional[str]:
        with self._lock:
            row = self.conn.execute(
                "SELECT payload FROM sessions WHERE session_id = ?", (session_id,)
            ).fetchone()
        return row[0] if row else None

    def _put(self, session_id: str, payload: str) -> None:
        # An unchanged payload leaves the row, updated_at included, as it was
        with self._lock:
            self.conn.execute(
                """
                INSERT INTO sessions (session_id, payload, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(session_id) DO UPDATE SET
                    payload = excluded.payload,
                    updated_at = excluded.updated_at
                WHERE sessions.payload IS NOT excluded.payload
                """,
                (session_id, payload, datetime.now(timezone.utc).isoformat()),
            )
            self.conn.commit()

    def _delete(self, session_id: str) -> None:
        with self._lock:
            self.conn.execute("DELETE FROM sessions WHERE session_id = ?", (session_id,))
            self.conn.commit()

    async def get(self, session_id: str) -> Optional[str]:
        return await asyncio.to_thread(self._get, session_id)

    async def put(self, session_id: str, payload: str) -> None:
        await asyncio.to_thread(self._put, session_id, payload)

    async def delete(self, session_id: str) -> None:
        await asyncio.to_thread(self._delete, session_id)

    async def close(self) -> None:
        with self._lock:
            self.conn.close()
        logger.debug("Session store closed: %s", self.db_path)
