"""Conversation memory data models."""

import math
from datetime import datetime, timedelta
from typing import Optional, List, Dict, Any, Literal
from pydantic import BaseModel, Field

from schemas.context import UserType, ConversationType, ConversationStatus, ContextMessage
from .topics import extract_topics, summarize, merge_summaries

MAX_CONTENT_LENGTH = 10000
CONVERSATION_TTL_DAYS = 30

RETURNING_THRESHOLD = 10
EXPERT_THRESHOLD = 50


def estimate_tokens(content: str) -> int:
    """Rough token estimate: one token per four characters."""
    return math.ceil(len(content or "") / 4)


def user_type_for(total_messages: int) -> UserType:
    """User type as a pure function of the total message count."""
    if total_messages > EXPERT_THRESHOLD:
        return UserType.EXPERT
    if total_messages > RETURNING_THRESHOLD:
        return UserType.RETURNING
    return UserType.FIRST_TIME


class Message(BaseModel):
    """A single message in short-term memory."""
    message_id: str
    role: Literal["user", "assistant", "system"]
    content: str = Field(max_length=MAX_CONTENT_LENGTH)
    timestamp: datetime = Field(default_factory=datetime.now)
    tokens: int = 0
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ShortTermMemory(BaseModel):
    """Bounded buffer of recent messages."""
    messages: List[Message] = Field(default_factory=list)
    max_messages: int = 20
    context_window: int = 4000


class TopicStat(BaseModel):
    """Topic frequency in long-term memory."""
    topic: str
    frequency: int = 1
    last_mentioned: datetime = Field(default_factory=datetime.now)


class FormSummary(BaseModel):
    """A form the user created earlier."""
    title: str
    type: Optional[str] = None
    field_count: int = 0
    created_at: datetime = Field(default_factory=datetime.now)


class UserPreferences(BaseModel):
    """Preferences learned over the conversation."""
    form_types: List[str] = Field(default_factory=list)
    design_style: str = "modern"
    language: str = "Vietnamese"
    complexity: str = "medium"
    previous_forms: List[FormSummary] = Field(default_factory=list)


class LongTermMemory(BaseModel):
    """Compacted memory built from overflowed messages."""
    summary: str = ""
    key_topics: List[TopicStat] = Field(default_factory=list)
    user_preferences: UserPreferences = Field(default_factory=UserPreferences)
    last_summary_update: Optional[datetime] = None


class ConversationMetadata(BaseModel):
    """Counters and classification."""
    total_messages: int = 0
    total_tokens: int = 0
    conversation_type: ConversationType = ConversationType.CHAT
    user_type: UserType = UserType.FIRST_TIME
    status: ConversationStatus = ConversationStatus.ACTIVE


class Conversation(BaseModel):
    """A conversation with short- and long-term memory."""
    conversation_id: str
    user_id: str = "anonymous"
    session_id: str
    short_term_memory: ShortTermMemory = Field(default_factory=ShortTermMemory)
    long_term_memory: LongTermMemory = Field(default_factory=LongTermMemory)
    metadata: ConversationMetadata = Field(default_factory=ConversationMetadata)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)
    last_activity: datetime = Field(default_factory=datetime.now)
    expires_at: datetime = Field(
        default_factory=lambda: datetime.now() + timedelta(days=CONVERSATION_TTL_DAYS)
    )

    @property
    def messages(self) -> List[Message]:
        return self.short_term_memory.messages

    def append_message(self, message: Message) -> List[Message]:
        """
        Append a message and fold any overflow into long-term memory.

        Args:
            message: Message to append

        Returns:
            Messages moved out of short-term memory
        """
        messages = self.short_term_memory.messages
        messages.append(message)

        overflow: List[Message] = []
        excess = len(messages) - self.short_term_memory.max_messages
        if excess > 0:
            overflow = messages[:excess]
            del messages[:excess]
            self.fold_into_long_term(overflow)

        self.metadata.total_messages += 1
        self.metadata.total_tokens += message.tokens
        self.touch()
        return overflow

    def fold_into_long_term(self, messages: List[Message]):
        """Update topic counts and the running summary from old messages."""
        if not messages:
            return

        now = datetime.now()
        memory = self.long_term_memory
        for topic in extract_topics(m.content for m in messages):
            existing = next((t for t in memory.key_topics if t.topic == topic), None)
            if existing:
                existing.frequency += 1
                existing.last_mentioned = now
            else:
                memory.key_topics.append(TopicStat(topic=topic, last_mentioned=now))

        memory.summary = merge_summaries(memory.summary, summarize(messages))
        memory.last_summary_update = now

    def refresh_user_type(self):
        """Recompute the user type from the message count."""
        self.metadata.user_type = user_type_for(self.metadata.total_messages)

    def touch(self):
        now = datetime.now()
        self.last_activity = now
        self.updated_at = now

    def top_topics(self, limit: int = 5) -> List[TopicStat]:
        return sorted(
            self.long_term_memory.key_topics,
            key=lambda t: (t.frequency, t.last_mentioned),
            reverse=True
        )[:limit]

    def recent_messages(self, max_tokens: int) -> List[ContextMessage]:
        """
        Most recent messages that fit in a token budget.

        Walks from newest to oldest and stops at the first message that
        would exceed the budget. Returned in chronological order.
        """
        selected: List[ContextMessage] = []
        used = 0
        for message in reversed(self.short_term_memory.messages):
            tokens = message.tokens or estimate_tokens(message.content)
            if used + tokens > max_tokens:
                break
            selected.append(ContextMessage(
                role=message.role,
                content=message.content,
                timestamp=message.timestamp
            ))
            used += tokens
        selected.reverse()
        return selected
