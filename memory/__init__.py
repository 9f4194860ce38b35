"""Conversation memory and persistence."""

from .errors import (
    PersistenceUnavailable,
    UniquenessConflict,
    FormNotFound,
    SubmissionValidationError,
)
from .models import Conversation, Message, ShortTermMemory, LongTermMemory
from .repository import (
    ConversationRepository,
    InMemoryConversationRepository,
    FallbackConversationRepository,
)
from .sqlite_store import SQLiteConversationRepository
from .factory import create_conversation_repository
from .history_service import ConversationHistoryService
from .form_store import FormStore, InMemoryFormStore, SQLiteFormStore, create_form_store

__all__ = [
    "PersistenceUnavailable",
    "UniquenessConflict",
    "Conversation",
    "Message",
    "ShortTermMemory",
    "LongTermMemory",
    "ConversationRepository",
    "InMemoryConversationRepository",
    "FallbackConversationRepository",
    "SQLiteConversationRepository",
    "create_conversation_repository",
    "ConversationHistoryService",
    "FormNotFound",
    "SubmissionValidationError",
    "FormStore",
    "InMemoryFormStore",
    "SQLiteFormStore",
    "create_form_store",
]
