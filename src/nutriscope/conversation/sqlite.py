"""SQLite conversation store.

Provides persistent conversation storage using a SQLite database.
Uses aiosqlite for async access. Messages are stored as a JSON array
per conversation, mirroring the ``chat_conversations`` table layout.
"""

import json
import logging
import sqlite3
from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path
from uuid import uuid4

import aiosqlite

from ..errors import PersistenceError
from .base import ConversationStore
from .models import Conversation, ConversationSummary, Message

logger = logging.getLogger(__name__)


class SQLiteConversationStore(ConversationStore):
    """SQLite-backed conversation store.

    Stores conversations in a SQLite database file.
    Supports persistent storage across sessions.
    """

    def __init__(self, path: str | Path = "./nutriscope.db"):
        self._db_path = Path(path)
        self._connection: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Initialize database connection and schema."""
        try:
            if str(self._db_path) != ":memory:":
                self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._connection = await aiosqlite.connect(self._db_path)
            await self._create_schema()
        except (OSError, sqlite3.Error) as e:
            raise PersistenceError(f"Could not open {self._db_path}: {e}", retryable=False) from e

    async def _create_schema(self) -> None:
        """Create database tables."""
        await self._connection.execute("""
            CREATE TABLE IF NOT EXISTS chat_conversations (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                title TEXT,
                messages TEXT NOT NULL DEFAULT '[]',
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)

        await self._connection.execute("""
            CREATE INDEX IF NOT EXISTS idx_chat_conversations_user
            ON chat_conversations(user_id, updated_at)
        """)

        await self._connection.commit()

    async def disconnect(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None

    def _require_connection(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise PersistenceError("Conversation store is not connected", retryable=False)
        return self._connection

    async def list_conversations(self, user_id: str) -> list[ConversationSummary]:
        """List conversations ordered by recency."""
        conn = self._require_connection()
        try:
            async with conn.execute(
                """
                SELECT id, user_id, title, messages, created_at, updated_at
                FROM chat_conversations
                WHERE user_id = ?
                ORDER BY updated_at DESC
                """,
                (user_id,)
            ) as cursor:
                rows = await cursor.fetchall()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to list conversations: {e}") from e

        return [_row_to_conversation(row).summary() for row in rows]

    async def get_conversation(self, user_id: str, conversation_id: str) -> Conversation | None:
        """Load a conversation with its messages."""
        conn = self._require_connection()
        try:
            async with conn.execute(
                """
                SELECT id, user_id, title, messages, created_at, updated_at
                FROM chat_conversations
                WHERE id = ? AND user_id = ?
                """,
                (conversation_id, user_id)
            ) as cursor:
                row = await cursor.fetchone()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to load conversation {conversation_id}: {e}") from e

        if row is None:
            return None
        return _row_to_conversation(row)

    async def upsert(
        self,
        user_id: str,
        messages: Sequence[Message],
        conversation_id: str | None = None
    ) -> str:
        """Create or update a conversation."""
        conn = self._require_connection()
        now = datetime.now(timezone.utc).isoformat()
        payload = json.dumps([m.model_dump(mode="json") for m in messages])

        try:
            if conversation_id:
                cursor = await conn.execute(
                    """
                    UPDATE chat_conversations SET messages = ?, updated_at = ?
                    WHERE id = ? AND user_id = ?
                    """,
                    (payload, now, conversation_id, user_id)
                )
                if cursor.rowcount > 0:
                    await conn.commit()
                    return conversation_id

            new_id = conversation_id or str(uuid4())
            if conversation_id and await self._id_taken(conn, conversation_id):
                # Id belongs to another user
                new_id = str(uuid4())
            await conn.execute(
                """
                INSERT INTO chat_conversations
                (id, user_id, title, messages, created_at, updated_at)
                VALUES (?, ?, NULL, ?, ?, ?)
                """,
                (new_id, user_id, payload, now, now)
            )
            await conn.commit()
            logger.debug("Created conversation %s for user %s", new_id, user_id)
            return new_id
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to save conversation: {e}") from e

    async def _id_taken(self, conn: aiosqlite.Connection, conversation_id: str) -> bool:
        async with conn.execute(
            "SELECT 1 FROM chat_conversations WHERE id = ?", (conversation_id,)
        ) as cursor:
            return await cursor.fetchone() is not None

    async def delete(self, user_id: str, conversation_id: str) -> bool:
        """Delete a conversation."""
        conn = self._require_connection()
        try:
            cursor = await conn.execute(
                "DELETE FROM chat_conversations WHERE id = ? AND user_id = ?",
                (conversation_id, user_id)
            )
            await conn.commit()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to delete conversation {conversation_id}: {e}") from e
        return cursor.rowcount > 0

    @property
    def backend_type(self) -> str:
        return "sqlite"

    @property
    def db_path(self) -> Path:
        return self._db_path


def _row_to_conversation(row: tuple) -> Conversation:
    conversation_id, user_id, title, messages_json, created_at, updated_at = row
    return Conversation(
        id=conversation_id,
        user_id=user_id,
        title=title,
        messages=[Message.model_validate(m) for m in json.loads(messages_json)],
        created_at=datetime.fromisoformat(created_at),
        updated_at=datetime.fromisoformat(updated_at),
    )
