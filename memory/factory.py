"""Conversation repository factory."""

import logging

from config.settings import Settings
from .errors import PersistenceUnavailable
from .repository import (
    ConversationRepository,
    InMemoryConversationRepository,
    FallbackConversationRepository,
)
from .sqlite_store import SQLiteConversationRepository

logger = logging.getLogger(__name__)


def create_conversation_repository(settings: Settings) -> ConversationRepository:
    """
    Pick the conversation repository for the process.

    Args:
        settings: Application settings

    Returns:
        SQLite repository wrapped with an in-memory fallback, or a plain
        in-memory repository when memory is disabled or SQLite cannot start
    """
    if not settings.memory_enabled:
        logger.info("Persistent memory disabled, using in-memory conversations")
        return InMemoryConversationRepository()

    try:
        primary = SQLiteConversationRepository(db_path=settings.db_path)
    except PersistenceUnavailable as e:
        logger.error(f"Failed to open conversation database, using in-memory conversations: {e}")
        return InMemoryConversationRepository()

    return FallbackConversationRepository(primary)
