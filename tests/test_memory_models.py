"""Tests for conversation memory models."""

import pytest
from datetime import datetime, timedelta
from pydantic import ValidationError

from memory.message_ids import MessageIdGenerator
from memory.models import (
    Conversation,
    Message,
    ShortTermMemory,
    estimate_tokens,
    user_type_for,
)
from memory.topics import extract_topics, merge_summaries
from schemas.context import UserType


def _message(n, role="user", content=None):
    content = content if content is not None else f"tin nhắn {n}"
    return Message(
        message_id=f"m{n}",
        role=role,
        content=content,
        tokens=estimate_tokens(content),
    )


def _conversation(max_messages=20):
    return Conversation(
        conversation_id="c1",
        session_id="s1",
        short_term_memory=ShortTermMemory(max_messages=max_messages),
    )


class TestTokenEstimates:
    """Test token estimation and user classification."""

    def test_estimate_tokens_rounds_up(self):
        """Test a quarter token per character, rounded up."""
        assert estimate_tokens("") == 0
        assert estimate_tokens("abcd") == 1
        assert estimate_tokens("abcde") == 2
        assert estimate_tokens(None) == 0

    @pytest.mark.parametrize("count,expected", [
        (0, UserType.FIRST_TIME),
        (10, UserType.FIRST_TIME),
        (11, UserType.RETURNING),
        (50, UserType.RETURNING),
        (51, UserType.EXPERT),
    ])
    def test_user_type_thresholds(self, count, expected):
        """Test user type is a function of the message count."""
        assert user_type_for(count) == expected


class TestShortTermMemory:
    """Test bounded short-term memory and folding."""

    def test_short_term_is_bounded(self):
        """Test only the newest max_messages are kept."""
        conversation = _conversation(max_messages=5)

        for n in range(8):
            conversation.append_message(_message(n))

        assert [m.message_id for m in conversation.messages] == ["m3", "m4", "m5", "m6", "m7"]
        assert conversation.metadata.total_messages == 8

    def test_overflow_is_folded_into_long_term(self):
        """Test overflowed messages update topics and the summary."""
        conversation = _conversation(max_messages=2)
        conversation.append_message(_message(0, content="Tôi muốn tạo form khảo sát"))
        conversation.append_message(_message(1, role="assistant", content="Được, form khảo sát nhé"))
        overflow = conversation.append_message(_message(2, content="Cảm ơn"))

        assert [m.message_id for m in overflow] == ["m0"]
        topics = {t.topic for t in conversation.long_term_memory.key_topics}
        assert topics == {"form_creation", "survey"}
        assert "1 user questions" in conversation.long_term_memory.summary
        assert conversation.long_term_memory.last_summary_update is not None

    def test_topic_frequency_accumulates(self):
        """Test repeated folds increase topic frequency."""
        conversation = _conversation(max_messages=1)
        for n in range(3):
            conversation.append_message(_message(n, content="khảo sát khách hàng"))

        survey = conversation.top_topics(1)[0]
        assert survey.topic == "survey"
        assert survey.frequency == 2

    def test_refresh_user_type(self):
        """Test the user type follows the total message count."""
        conversation = _conversation()
        for n in range(11):
            conversation.append_message(_message(n))

        conversation.refresh_user_type()

        assert conversation.metadata.user_type == UserType.RETURNING

    def test_append_updates_activity(self):
        """Test appending touches last_activity."""
        conversation = _conversation()
        conversation.last_activity = datetime.now() - timedelta(days=3)

        conversation.append_message(_message(0))

        assert datetime.now() - conversation.last_activity < timedelta(minutes=1)

    def test_content_length_cap(self):
        """Test messages over the content cap are rejected by the model."""
        with pytest.raises(ValueError):
            Message(message_id="m", role="user", content="x" * 10001)

    def test_unknown_role_rejected(self):
        """Test roles outside user, assistant and system are rejected."""
        with pytest.raises(ValidationError):
            Message(message_id="m", role="bot", content="x")


class TestRecentMessages:
    """Test token-budgeted context windows."""

    def setup_method(self):
        """Set up test fixtures."""
        self.conversation = _conversation()
        for n in range(5):
            # 40 characters -> 10 tokens each
            self.conversation.append_message(_message(n, content=f"{n}" * 40))

    def test_budget_keeps_newest(self):
        """Test the newest messages that fit are returned in order."""
        recent = self.conversation.recent_messages(max_tokens=25)

        assert [m.content[0] for m in recent] == ["3", "4"]

    def test_zero_budget(self):
        """Test a zero budget yields no messages."""
        assert self.conversation.recent_messages(max_tokens=0) == []

    def test_large_budget_returns_all(self):
        """Test everything is returned when it fits."""
        assert len(self.conversation.recent_messages(max_tokens=1000)) == 5


class TestTopics:
    """Test topic extraction and summary merging."""

    def test_extract_topics_in_table_order(self):
        """Test each topic appears once, in table order."""
        topics = extract_topics(["Tích hợp API cho form liên hệ", "form liên hệ nữa"])

        assert topics == ["contact", "integration"]

    def test_merge_summaries_keeps_newest_text(self):
        """Test merged summaries are capped from the front."""
        merged = merge_summaries("a" * 50, "newest", max_length=30)

        assert len(merged) == 30
        assert merged.endswith("newest")


class TestMessageIds:
    """Test message id generation."""

    def test_ids_are_unique(self):
        """Test a burst of ids has no duplicates."""
        generator = MessageIdGenerator()

        ids = [generator.next_id() for _ in range(1000)]

        assert len(set(ids)) == 1000
        assert all(i.startswith("msg_") for i in ids)

    def test_id_format(self):
        """Test ids carry timestamp, random part and sequence."""
        prefix, timestamp, random_part, sequence = MessageIdGenerator().next_id().split("_")

        assert prefix == "msg"
        assert timestamp.isdigit()
        assert len(random_part) == 9
        assert sequence == "1"
