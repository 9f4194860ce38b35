"""SQLite-based conversation repository."""

import sqlite3
import json
import logging
from contextlib import contextmanager
from pathlib import Path
from datetime import datetime
from typing import Optional, List, Dict, Any

from schemas.context import ConversationStatus
from .errors import PersistenceUnavailable, UniquenessConflict
from .models import Conversation, Message
from .repository import ConversationRepository

logger = logging.getLogger(__name__)


class SQLiteConversationRepository(ConversationRepository):
    """SQLite-based persistent conversation store."""

    name = "sqlite"

    def __init__(self, db_path: str = "data/formagent.db"):
        """
        Initialize SQLite conversation store.

        Args:
            db_path: Path to SQLite database file

        Raises:
            PersistenceUnavailable: If the database cannot be created
        """
        self.db_path = Path(db_path)
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceUnavailable(f"Cannot create {self.db_path.parent}: {e}") from e
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get database connection with row factory."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _connection(self):
        """Connection that commits on success and maps sqlite errors."""
        try:
            conn = self._get_connection()
        except sqlite3.Error as e:
            raise PersistenceUnavailable(str(e)) from e
        try:
            yield conn
            conn.commit()
        except sqlite3.IntegrityError:
            conn.rollback()
            raise
        except sqlite3.Error as e:
            raise PersistenceUnavailable(str(e)) from e
        finally:
            conn.close()

    def _init_db(self):
        """Initialize database schema."""
        with self._connection() as conn:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS conversations (
                    conversation_id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL,
                    session_id TEXT,
                    status TEXT NOT NULL DEFAULT 'active',
                    conversation_type TEXT NOT NULL DEFAULT 'chat',
                    user_type TEXT NOT NULL DEFAULT 'firstTime',
                    total_messages INTEGER DEFAULT 0,
                    total_tokens INTEGER DEFAULT 0,
                    last_activity TIMESTAMP NOT NULL,
                    expires_at TIMESTAMP,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    document TEXT NOT NULL
                )
            """)

            # Append-only log of every message, including ones folded out
            # of short-term memory
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS messages (
                    message_id TEXT PRIMARY KEY,
                    conversation_id TEXT NOT NULL,
                    role TEXT NOT NULL CHECK(role IN ('user', 'assistant', 'system')),
                    content TEXT NOT NULL,
                    tokens INTEGER DEFAULT 0,
                    timestamp TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    metadata TEXT,
                    FOREIGN KEY (conversation_id) REFERENCES conversations(conversation_id)
                )
            """)

            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_conversations_user ON conversations(user_id, last_activity)"
            )
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_conversations_status ON conversations(status)"
            )
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_messages_conversation ON messages(conversation_id)"
            )

        logger.info(f"Database initialized at {self.db_path}")

    def _write(self, conversation: Conversation):
        meta = conversation.metadata
        with self._connection() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO conversations
                (conversation_id, user_id, session_id, status, conversation_type, user_type,
                 total_messages, total_tokens, last_activity, expires_at, created_at, updated_at,
                 document)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    conversation.conversation_id,
                    conversation.user_id,
                    conversation.session_id,
                    meta.status.value,
                    meta.conversation_type.value,
                    meta.user_type.value,
                    meta.total_messages,
                    meta.total_tokens,
                    conversation.last_activity.isoformat(),
                    conversation.expires_at.isoformat(),
                    conversation.created_at.isoformat(),
                    conversation.updated_at.isoformat(),
                    conversation.model_dump_json(),
                )
            )

    def get(self, conversation_id: str) -> Optional[Conversation]:
        """
        Get a conversation.

        Args:
            conversation_id: Conversation ID

        Returns:
            Conversation object or None if not found
        """
        with self._connection() as conn:
            row = conn.execute(
                "SELECT status, document FROM conversations WHERE conversation_id = ?",
                (conversation_id,)
            ).fetchone()

        if not row:
            return None
        return self._row_to_conversation(row)

    def insert_message(self, conversation_id: str, message: Message):
        try:
            with self._connection() as conn:
                conn.execute(
                    """
                    INSERT INTO messages
                    (message_id, conversation_id, role, content, tokens, timestamp, metadata)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        message.message_id,
                        conversation_id,
                        message.role,
                        message.content,
                        message.tokens,
                        message.timestamp.isoformat(),
                        json.dumps(message.metadata) if message.metadata else None,
                    )
                )
        except sqlite3.IntegrityError as e:
            if "UNIQUE" not in str(e):
                raise
            raise UniquenessConflict(message.message_id) from e

    def list_by_user(
        self,
        user_id: str,
        limit: int = 10,
        include_archived: bool = False
    ) -> List[Conversation]:
        query = "SELECT status, document FROM conversations WHERE user_id = ?"
        params: list = [user_id]
        if not include_archived:
            query += " AND status != ?"
            params.append(ConversationStatus.ARCHIVED.value)
        query += " ORDER BY last_activity DESC LIMIT ?"
        params.append(limit)

        with self._connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_conversation(row) for row in rows]

    def list_active(self, limit: int = 50) -> List[Conversation]:
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT status, document FROM conversations
                WHERE status != ?
                ORDER BY last_activity DESC
                LIMIT ?
                """,
                (ConversationStatus.ARCHIVED.value, limit)
            ).fetchall()
        return [self._row_to_conversation(row) for row in rows]

    def archive_inactive(self, cutoff: datetime) -> int:
        with self._connection() as conn:
            cursor = conn.execute(
                """
                UPDATE conversations
                SET status = ?, updated_at = ?
                WHERE last_activity < ? AND status != ?
                """,
                (
                    ConversationStatus.ARCHIVED.value,
                    datetime.now().isoformat(),
                    cutoff.isoformat(),
                    ConversationStatus.ARCHIVED.value,
                )
            )
            archived = cursor.rowcount
        logger.info(f"Archived {archived} conversations inactive since {cutoff.isoformat()}")
        return archived

    def stats(self) -> Dict[str, Any]:
        with self._connection() as conn:
            totals = conn.execute(
                "SELECT COUNT(*) AS conversations, COALESCE(SUM(total_messages), 0) AS messages FROM conversations"
            ).fetchone()
            type_rows = conn.execute(
                "SELECT conversation_type, COUNT(*) AS count FROM conversations GROUP BY conversation_type"
            ).fetchall()
            user_rows = conn.execute(
                "SELECT user_type, COUNT(*) AS count FROM conversations GROUP BY user_type"
            ).fetchall()

        return {
            "backend": self.name,
            "total_conversations": totals["conversations"],
            "total_messages": totals["messages"],
            "conversation_types": {row["conversation_type"]: row["count"] for row in type_rows},
            "user_types": {row["user_type"]: row["count"] for row in user_rows},
        }

    @staticmethod
    def _row_to_conversation(row: sqlite3.Row) -> Conversation:
        conversation = Conversation.model_validate_json(row["document"])
        # status column is authoritative; archival only updates the column
        conversation.metadata.status = ConversationStatus(row["status"])
        return conversation
