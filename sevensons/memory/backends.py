"""
Row stores behind ConversationStore, keyed by (role_id, session_id).
"""

import copy
import json
import logging
import sqlite3
from pathlib import Path
from typing import Any, Optional, Protocol, runtime_checkable

from ..errors import StorageError

logger = logging.getLogger(__name__)


@runtime_checkable
class ConversationBackend(Protocol):
    """A missing row is None, never an error."""

    def fetch(self, role_id: str, session_id: str) -> Optional[dict[str, Any]]: ...

    def save(self, role_id: str, session_id: str, row: dict[str, Any]) -> None: ...

    def delete(self, role_id: str, session_id: str) -> None: ...


class InMemoryBackend:
    def __init__(self):
        self._rows: dict[tuple[str, str], dict[str, Any]] = {}

    def fetch(self, role_id: str, session_id: str) -> Optional[dict[str, Any]]:
        row = self._rows.get((role_id, session_id))
        return copy.deepcopy(row) if row is not None else None

    def save(self, role_id: str, session_id: str, row: dict[str, Any]) -> None:
        self._rows[(role_id, session_id)] = copy.deepcopy(row)

    def delete(self, role_id: str, session_id: str) -> None:
        self._rows.pop((role_id, session_id), None)

    def __len__(self) -> int:
        return len(self._rows)


class SQLiteBackend:
    """ai_conversations table with JSON columns."""

    def __init__(self, db_path: str = "data/conversations.db"):
        self.db_path = Path(db_path).expanduser()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self):
        conn = self._get_connection()
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS ai_conversations (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    bot_name TEXT NOT NULL,
                    session_id TEXT NOT NULL,
                    user_id TEXT,
                    messages TEXT NOT NULL DEFAULT '[]',
                    memory_snippets TEXT NOT NULL DEFAULT '[]',
                    conversation_summary TEXT,
                    last_message_at TEXT,
                    created_at TEXT,
                    updated_at TEXT,
                    UNIQUE (bot_name, session_id)
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_ai_conversations_user_id ON ai_conversations(user_id)"
            )
            conn.commit()
        finally:
            conn.close()
        logger.info("Conversation database ready at %s", self.db_path)

    def fetch(self, role_id: str, session_id: str) -> Optional[dict[str, Any]]:
        try:
            conn = self._get_connection()
            try:
                row = conn.execute(
                    "SELECT * FROM ai_conversations WHERE bot_name = ? AND session_id = ?",
                    (role_id, session_id),
                ).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StorageError(f"select failed: {e}") from e

        if row is None:
            return None

        try:
            return {
                "messages": json.loads(row["messages"] or "[]"),
                "memory_snippets": json.loads(row["memory_snippets"] or "[]"),
                "conversation_summary": row["conversation_summary"],
                "user_id": row["user_id"],
                "created_at": row["created_at"],
                "updated_at": row["updated_at"],
                "last_message_at": row["last_message_at"],
            }
        except json.JSONDecodeError as e:
            raise StorageError(f"corrupt row for {role_id}/{session_id}: {e}") from e

    def save(self, role_id: str, session_id: str, row: dict[str, Any]) -> None:
        try:
            conn = self._get_connection()
            try:
                conn.execute(
                    """
                    INSERT INTO ai_conversations (
                        bot_name, session_id, user_id, messages, memory_snippets,
                        conversation_summary, last_message_at, created_at, updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT (bot_name, session_id) DO UPDATE SET
                        user_id = excluded.user_id,
                        messages = excluded.messages,
                        memory_snippets = excluded.memory_snippets,
                        conversation_summary = excluded.conversation_summary,
                        last_message_at = excluded.last_message_at,
                        updated_at = excluded.updated_at
                    """,
                    (
                        role_id,
                        session_id,
                        row.get("user_id"),
                        json.dumps(row.get("messages") or [], ensure_ascii=False),
                        json.dumps(row.get("memory_snippets") or [], ensure_ascii=False),
                        row.get("conversation_summary"),
                        row.get("last_message_at"),
                        row.get("created_at"),
                        row.get("updated_at"),
                    ),
                )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StorageError(f"upsert failed: {e}") from e

    def delete(self, role_id: str, session_id: str) -> None:
        try:
            conn = self._get_connection()
            try:
                conn.execute(
                    "DELETE FROM ai_conversations WHERE bot_name = ? AND session_id = ?",
                    (role_id, session_id),
                )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise StorageError(f"delete failed: {e}") from e
