# Copyright 2025 Creator Contributors
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""SQLite-based conversation storage.

This module provides SQLiteConversationStore, which keeps chat sessions and
their messages in a single SQLite file (``~/.creator/conversations.db`` by
default).

Tables Used:
- sessions: id, title, created_at, updated_at
- messages: id, session_id, role, content, created_at

Assistant messages are stored as the JSON payload of the terminal step, so
a later run can rebuild the structured turn from history.

Example:
    store = SQLiteConversationStore(Path("conversations.db"))
    session_id = store.create_session()
    store.append_message(session_id, "user", "Create a landing page")
    history = store.read_history(session_id, limit=20)
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from creator.agent.messages import ChatTurn
from creator.config.orchestrator_constants import LOOP_LIMITS
from creator.core.errors import PersistenceError

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS sessions (
    id TEXT PRIMARY KEY,
    title TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS messages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id TEXT NOT NULL REFERENCES sessions(id),
    role TEXT NOT NULL,
    content TEXT NOT NULL,
    created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_messages_session ON messages(session_id, id);
"""

TITLE_MAX_WORDS = 8
TITLE_MAX_CHARS = 50


def generate_title(message: str) -> str:
    """Session title from the first words of the opening message."""
    title = " ".join(message.split()[:TITLE_MAX_WORDS])
    if len(title) > TITLE_MAX_CHARS:
        title = title[: TITLE_MAX_CHARS - 3].rstrip() + "..."
    return title or "New conversation"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLiteConversationStore:
    """SQLite-backed ``ConversationStoreProtocol`` implementation."""

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        """Open (and create if needed) the database.

        Args:
            db_path: Database file, or ``":memory:"`` for a private in-memory store
        """
        self._db_path = str(db_path)
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.executescript(SCHEMA)
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to open conversation store {self._db_path}: {e}", cause=e) from e
        logger.debug(f"Conversation store ready at {self._db_path}")

    def _execute(self, sql: str, params: tuple = (), session_id: Optional[str] = None) -> sqlite3.Cursor:
        with self._lock:
            try:
                with self._conn:
                    return self._conn.execute(sql, params)
            except sqlite3.Error as e:
                raise PersistenceError(f"Conversation store error: {e}", session_id=session_id, cause=e) from e

    # ========================================================================
    # Sessions
    # ========================================================================

    def create_session(self, title: Optional[str] = None) -> str:
        session_id = uuid.uuid4().hex
        now = _now()
        self._execute(
            "INSERT INTO sessions (id, title, created_at, updated_at) VALUES (?, ?, ?, ?)",
            (session_id, title, now, now),
            session_id,
        )
        logger.info(f"Created session {session_id}")
        return session_id

    def session_exists(self, session_id: str) -> bool:
        row = self._execute("SELECT 1 FROM sessions WHERE id = ?", (session_id,), session_id).fetchone()
        return row is not None

    def get_or_create_session(self, session_id: Optional[str] = None) -> str:
        """Return ``session_id`` if it exists, otherwise a new session id.

        Raises:
            PersistenceError: If ``session_id`` is given but unknown
        """
        if session_id is None:
            return self.create_session()
        if not self.session_exists(session_id):
            raise PersistenceError(f"Session not found: {session_id}", session_id=session_id)
        return session_id

    def set_title_if_missing(self, session_id: str, message: str) -> None:
        self._execute(
            "UPDATE sessions SET title = ? WHERE id = ? AND (title IS NULL OR title = '')",
            (generate_title(message), session_id),
            session_id,
        )

    def list_sessions(self, limit: int = 20) -> List[Dict[str, Any]]:
        rows = self._execute(
            """SELECT s.id, s.title, s.created_at, s.updated_at, COUNT(m.id) AS message_count
               FROM sessions s LEFT JOIN messages m ON m.session_id = s.id
               GROUP BY s.id ORDER BY s.updated_at DESC LIMIT ?""",
            (limit,),
        ).fetchall()
        return [dict(row) for row in rows]

    # ========================================================================
    # Messages
    # ========================================================================

    def append_message(self, session_id: str, role: str, content: str) -> int:
        now = _now()
        cursor = self._execute(
            "INSERT INTO messages (session_id, role, content, created_at) VALUES (?, ?, ?, ?)",
            (session_id, role, content, now),
            session_id,
        )
        self._execute("UPDATE sessions SET updated_at = ? WHERE id = ?", (now, session_id), session_id)
        return int(cursor.lastrowid)

    def read_history(self, session_id: str, limit: Optional[int] = None) -> List[ChatTurn]:
        """Return the most recent ``limit`` turns, oldest first."""
        limit = limit or LOOP_LIMITS.history_limit
        rows = self._execute(
            """SELECT role, content FROM (
                   SELECT id, role, content FROM messages
                   WHERE session_id = ? ORDER BY id DESC LIMIT ?
               ) ORDER BY id ASC""",
            (session_id, limit),
            session_id,
        ).fetchall()
        return [ChatTurn.from_stored(row["role"], row["content"]) for row in rows]

    def close(self) -> None:
        with self._lock:
            self._conn.close()
