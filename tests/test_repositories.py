"""Tests for conversation repositories."""

import pytest
import sqlite3
from datetime import datetime, timedelta
from unittest.mock import Mock

from config.settings import Settings
from memory.errors import PersistenceUnavailable, UniquenessConflict
from memory.factory import create_conversation_repository
from memory.models import Conversation, Message
from memory.repository import (
    InMemoryConversationRepository,
    FallbackConversationRepository,
)
from memory.sqlite_store import SQLiteConversationRepository
from schemas.context import ConversationStatus, UserType


def _conversation(conversation_id, user_id="u1", days_idle=0):
    conversation = Conversation(conversation_id=conversation_id, user_id=user_id, session_id="s")
    conversation.last_activity = datetime.now() - timedelta(days=days_idle)
    return conversation


def _message(message_id, content="xin chào"):
    return Message(message_id=message_id, role="user", content=content, tokens=2)


class RepositoryContract:
    """Behaviour shared by every repository implementation."""

    def make_repository(self, tmp_path):
        raise NotImplementedError

    @pytest.fixture
    def repository(self, tmp_path):
        return self.make_repository(tmp_path)

    def test_save_and_get(self, repository):
        """Test a saved conversation round-trips."""
        conversation = _conversation("c1")
        conversation.append_message(_message("m1"))
        repository.save(conversation)

        loaded = repository.get("c1")

        assert loaded.conversation_id == "c1"
        assert [m.message_id for m in loaded.messages] == ["m1"]
        assert loaded.metadata.total_messages == 1

    def test_get_missing(self, repository):
        """Test unknown conversations return None."""
        assert repository.get("missing") is None

    def test_save_refreshes_user_type(self, repository):
        """Test user type is recomputed on save."""
        conversation = _conversation("c1")
        conversation.metadata.total_messages = 60
        repository.save(conversation)

        assert repository.get("c1").metadata.user_type == UserType.EXPERT

    def test_duplicate_message_id(self, repository):
        """Test message ids are unique across the log."""
        repository.save(_conversation("c1"))
        repository.insert_message("c1", _message("m1"))

        with pytest.raises(UniquenessConflict):
            repository.insert_message("c1", _message("m1"))

    def test_list_by_user_most_recent_first(self, repository):
        """Test user listings are ordered by last activity."""
        repository.save(_conversation("old", days_idle=5))
        repository.save(_conversation("new", days_idle=1))
        repository.save(_conversation("other", user_id="u2"))

        listed = repository.list_by_user("u1")

        assert [c.conversation_id for c in listed] == ["new", "old"]

    def test_archive_inactive(self, repository):
        """Test conversations idle past the cutoff are archived."""
        repository.save(_conversation("idle", days_idle=45))
        repository.save(_conversation("fresh"))

        archived = repository.archive_inactive(datetime.now() - timedelta(days=30))

        assert archived == 1
        assert [c.conversation_id for c in repository.list_active()] == ["fresh"]
        assert repository.get("idle").metadata.status == ConversationStatus.ARCHIVED
        assert repository.archive_inactive(datetime.now() - timedelta(days=30)) == 0
        assert len(repository.list_by_user("u1", include_archived=True)) == 2

    def test_stats(self, repository):
        """Test stats count conversations and messages."""
        conversation = _conversation("c1")
        conversation.append_message(_message("m1"))
        repository.save(conversation)
        repository.save(_conversation("c2"))

        stats = repository.stats()

        assert stats["total_conversations"] == 2
        assert stats["total_messages"] == 1
        assert stats["user_types"] == {"firstTime": 2}


class TestInMemoryRepository(RepositoryContract):
    """Test the in-memory repository."""

    def make_repository(self, tmp_path):
        return InMemoryConversationRepository()

    def test_returns_copies(self):
        """Test callers cannot mutate stored state."""
        repository = InMemoryConversationRepository()
        repository.save(_conversation("c1"))

        loaded = repository.get("c1")
        loaded.user_id = "changed"

        assert repository.get("c1").user_id == "u1"


class TestSQLiteRepository(RepositoryContract):
    """Test the SQLite repository."""

    def make_repository(self, tmp_path):
        return SQLiteConversationRepository(db_path=str(tmp_path / "conversations.db"))

    def test_persists_across_instances(self, tmp_path):
        """Test data survives reopening the database."""
        self.make_repository(tmp_path).save(_conversation("c1"))

        assert self.make_repository(tmp_path).get("c1") is not None

    def test_check_failure_is_not_a_conflict(self, tmp_path):
        """Test constraint failures other than uniqueness are raised as they are."""
        repository = self.make_repository(tmp_path)
        repository.save(_conversation("c1"))
        message = Message.model_construct(
            message_id="m1", role="bot", content="x", tokens=0, timestamp=datetime.now(), metadata={}
        )

        with pytest.raises(sqlite3.IntegrityError):
            repository.insert_message("c1", message)


class TestFallbackRepository:
    """Test degradation to memory-only mode."""

    def test_uses_primary_while_healthy(self):
        """Test calls go to the primary until it fails."""
        primary = InMemoryConversationRepository()
        repository = FallbackConversationRepository(primary)

        repository.save(_conversation("c1"))

        assert primary.get("c1") is not None
        assert not repository.degraded
        assert repository.name == "memory"

    def test_degrades_after_persistence_failure(self):
        """Test one failure switches every later call to the secondary."""
        primary = Mock()
        primary.name = "sqlite"
        primary.save.side_effect = PersistenceUnavailable("disk full")
        repository = FallbackConversationRepository(primary)

        repository.save(_conversation("c1"))
        loaded = repository.get("c1")

        assert repository.degraded
        assert loaded.conversation_id == "c1"
        primary.get.assert_not_called()
        assert repository.stats()["degraded"] is True

    def test_uniqueness_conflict_is_not_degradation(self):
        """Test uniqueness conflicts propagate without degrading."""
        repository = FallbackConversationRepository(InMemoryConversationRepository())
        repository.insert_message("c1", _message("m1"))

        with pytest.raises(UniquenessConflict):
            repository.insert_message("c1", _message("m1"))
        assert not repository.degraded


class TestRepositoryFactory:
    """Test repository selection from settings."""

    def test_memory_disabled(self):
        """Test disabled memory gives an in-memory repository."""
        repository = create_conversation_repository(Settings(memory_enabled=False))

        assert isinstance(repository, InMemoryConversationRepository)

    def test_sqlite_with_fallback(self, tmp_path):
        """Test enabled memory wraps SQLite with a fallback."""
        repository = create_conversation_repository(
            Settings(memory_enabled=True, db_path=str(tmp_path / "db" / "formagent.db"))
        )

        assert isinstance(repository, FallbackConversationRepository)
        assert repository.name == "sqlite"
