"""Conversation repositories."""

import logging
from abc import ABC, abstractmethod
from collections import Counter
from datetime import datetime
from typing import Optional, List, Dict, Any, Set

from schemas.context import ConversationStatus
from .errors import PersistenceUnavailable, UniquenessConflict
from .models import Conversation, Message

logger = logging.getLogger(__name__)


class ConversationRepository(ABC):
    """Storage interface for conversations and their messages."""

    name = "base"

    def save(self, conversation: Conversation):
        """
        Persist a conversation.

        The user type is recomputed on every save.

        Raises:
            PersistenceUnavailable: If storage cannot be written
        """
        conversation.refresh_user_type()
        conversation.updated_at = datetime.now()
        self._write(conversation)

    @abstractmethod
    def _write(self, conversation: Conversation):
        pass

    @abstractmethod
    def get(self, conversation_id: str) -> Optional[Conversation]:
        """Load a conversation, or None if it does not exist."""
        pass

    @abstractmethod
    def insert_message(self, conversation_id: str, message: Message):
        """
        Record a message in the message log.

        Raises:
            UniquenessConflict: If the message id is already taken
            PersistenceUnavailable: If storage cannot be written
        """
        pass

    @abstractmethod
    def list_by_user(
        self,
        user_id: str,
        limit: int = 10,
        include_archived: bool = False
    ) -> List[Conversation]:
        """Conversations of a user, most recently active first."""
        pass

    @abstractmethod
    def list_active(self, limit: int = 50) -> List[Conversation]:
        """Non-archived conversations, most recently active first."""
        pass

    @abstractmethod
    def archive_inactive(self, cutoff: datetime) -> int:
        """
        Archive conversations whose last activity is before cutoff.

        Returns:
            Number of conversations archived
        """
        pass

    @abstractmethod
    def stats(self) -> Dict[str, Any]:
        """Counts grouped by conversation type and user type."""
        pass


class InMemoryConversationRepository(ConversationRepository):
    """Process-local repository; state does not outlive the process."""

    name = "memory"

    def __init__(self):
        self._conversations: Dict[str, Conversation] = {}
        self._message_ids: Set[str] = set()

    def _write(self, conversation: Conversation):
        self._conversations[conversation.conversation_id] = conversation.model_copy(deep=True)

    def get(self, conversation_id: str) -> Optional[Conversation]:
        stored = self._conversations.get(conversation_id)
        return stored.model_copy(deep=True) if stored else None

    def insert_message(self, conversation_id: str, message: Message):
        if message.message_id in self._message_ids:
            raise UniquenessConflict(message.message_id)
        self._message_ids.add(message.message_id)

    def list_by_user(
        self,
        user_id: str,
        limit: int = 10,
        include_archived: bool = False
    ) -> List[Conversation]:
        matches = [
            c for c in self._conversations.values()
            if c.user_id == user_id
            and (include_archived or c.metadata.status != ConversationStatus.ARCHIVED)
        ]
        return self._most_recent(matches, limit)

    def list_active(self, limit: int = 50) -> List[Conversation]:
        matches = [
            c for c in self._conversations.values()
            if c.metadata.status != ConversationStatus.ARCHIVED
        ]
        return self._most_recent(matches, limit)

    def archive_inactive(self, cutoff: datetime) -> int:
        archived = 0
        for conversation in self._conversations.values():
            if (conversation.last_activity < cutoff
                    and conversation.metadata.status != ConversationStatus.ARCHIVED):
                conversation.metadata.status = ConversationStatus.ARCHIVED
                conversation.updated_at = datetime.now()
                archived += 1
        return archived

    def stats(self) -> Dict[str, Any]:
        conversations = list(self._conversations.values())
        return {
            "backend": self.name,
            "total_conversations": len(conversations),
            "total_messages": sum(c.metadata.total_messages for c in conversations),
            "conversation_types": dict(Counter(c.metadata.conversation_type.value for c in conversations)),
            "user_types": dict(Counter(c.metadata.user_type.value for c in conversations)),
        }

    @staticmethod
    def _most_recent(conversations: List[Conversation], limit: int) -> List[Conversation]:
        ordered = sorted(conversations, key=lambda c: c.last_activity, reverse=True)
        return [c.model_copy(deep=True) for c in ordered[:limit]]


class FallbackConversationRepository(ConversationRepository):
    """
    Persistent repository that degrades to memory-only mode.

    After the primary raises PersistenceUnavailable once, every call goes
    to the secondary for the rest of the process lifetime.
    """

    def __init__(
        self,
        primary: ConversationRepository,
        secondary: Optional[ConversationRepository] = None
    ):
        self.primary = primary
        self.secondary = secondary or InMemoryConversationRepository()
        self.degraded = False

    @property
    def name(self) -> str:
        return self.secondary.name if self.degraded else self.primary.name

    def _call(self, method: str, *args, **kwargs):
        if not self.degraded:
            try:
                return getattr(self.primary, method)(*args, **kwargs)
            except PersistenceUnavailable as e:
                logger.error(f"Persistent storage unavailable, switching to memory-only mode: {e}")
                self.degraded = True
        return getattr(self.secondary, method)(*args, **kwargs)

    def save(self, conversation: Conversation):
        self._call("save", conversation)

    def _write(self, conversation: Conversation):
        self._call("_write", conversation)

    def get(self, conversation_id: str) -> Optional[Conversation]:
        return self._call("get", conversation_id)

    def insert_message(self, conversation_id: str, message: Message):
        self._call("insert_message", conversation_id, message)

    def list_by_user(
        self,
        user_id: str,
        limit: int = 10,
        include_archived: bool = False
    ) -> List[Conversation]:
        return self._call("list_by_user", user_id, limit=limit, include_archived=include_archived)

    def list_active(self, limit: int = 50) -> List[Conversation]:
        return self._call("list_active", limit=limit)

    def archive_inactive(self, cutoff: datetime) -> int:
        return self._call("archive_inactive", cutoff)

    def stats(self) -> Dict[str, Any]:
        stats = self._call("stats")
        stats["degraded"] = self.degraded
        return stats
