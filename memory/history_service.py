"""Conversation history service: memory, context and greetings."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional, List, Dict, Any, Union

import pandas as pd

from agents.guardrails import GuardrailsEngine
from agents.personality import PersonalityProfile
from schemas.context import (
    ConversationContext,
    ConversationType,
    ConversationStatus,
    Greeting,
    TopicCount,
    UserType,
)
from schemas.guardrails import SafetyCheck
from .errors import UniquenessConflict
from .message_ids import MessageIdGenerator
from .models import (
    Conversation,
    FormSummary,
    Message,
    ShortTermMemory,
    MAX_CONTENT_LENGTH,
    estimate_tokens,
)
from .repository import ConversationRepository

logger = logging.getLogger(__name__)

MAX_PREVIOUS_FORMS = 10


@dataclass
class CacheEntry:
    """Cached conversation and its last access time."""
    conversation: Conversation
    last_access: datetime = field(default_factory=datetime.now)


@dataclass
class AddMessageResult:
    """Outcome of ConversationHistoryService.add_message."""
    message_id: str
    conversation: Conversation
    safety_check: SafetyCheck


class ConversationHistoryService:
    """
    Single entry point for conversation state.

    Conversations are cached in process and persisted through a
    ConversationRepository. Concurrent requests on the same conversation
    are not serialized; the cached object is shared and the last write wins.
    """

    def __init__(
        self,
        repository: ConversationRepository,
        guardrails: GuardrailsEngine,
        personality: PersonalityProfile,
        max_messages: int = 20,
        context_window: int = 4000,
        cache_ttl_minutes: int = 60
    ):
        """
        Initialize the service.

        Args:
            repository: Conversation storage
            guardrails: Guardrails engine for message safety checks
            personality: Persona used for greetings and guidelines
            max_messages: Short-term memory size for new conversations
            context_window: Default token budget for context building
            cache_ttl_minutes: Inactivity before a cache entry is evicted
        """
        self.repository = repository
        self.guardrails = guardrails
        self.personality = personality
        self.max_messages = max_messages
        self.context_window = context_window
        self.cache_ttl = timedelta(minutes=cache_ttl_minutes)
        self.id_generator = MessageIdGenerator()
        self._cache: Dict[str, CacheEntry] = {}

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def get_or_create_conversation(
        self,
        conversation_id: str,
        user_id: str = "anonymous",
        session_id: Optional[str] = None
    ) -> Conversation:
        """
        Return the cached, stored or a brand new conversation.

        Args:
            conversation_id: Conversation ID
            user_id: Owner, used only when creating
            session_id: Session, generated when missing

        Returns:
            Conversation object (shared with the cache)
        """
        entry = self._cache.get(conversation_id)
        if entry:
            entry.last_access = datetime.now()
            return entry.conversation

        conversation = self.repository.get(conversation_id)
        if conversation:
            logger.info(
                f"Conversation loaded: {conversation_id}, "
                f"messages: {conversation.metadata.total_messages}"
            )
        else:
            conversation = Conversation(
                conversation_id=conversation_id,
                user_id=user_id or "anonymous",
                session_id=session_id or f"session_{int(datetime.now().timestamp() * 1000)}",
                short_term_memory=ShortTermMemory(
                    max_messages=self.max_messages,
                    context_window=self.context_window
                ),
            )
            self.repository.save(conversation)
            logger.info(f"New conversation created: {conversation_id}")

        self._cache[conversation_id] = CacheEntry(conversation=conversation)
        return conversation

    def add_message(
        self,
        conversation_id: str,
        role: str,
        content: str,
        user_id: str = "anonymous",
        metadata: Optional[Dict[str, Any]] = None
    ) -> AddMessageResult:
        """
        Append a message to a conversation.

        Args:
            conversation_id: Conversation ID
            role: "user", "assistant" or "system"
            content: Message text (truncated to the content cap)
            user_id: Owner, used when the conversation is created
            metadata: Extra message metadata

        Returns:
            AddMessageResult with the new message id and the safety check

        Raises:
            UniquenessConflict: If the regenerated message id also collides
        """
        conversation = self.get_or_create_conversation(conversation_id, user_id)

        safety_check = self.guardrails.check_content_safety(content)
        if not safety_check.safe:
            logger.warning(
                f"Unsafe content detected in conversation {conversation_id}: "
                f"{[v.category for v in safety_check.violations]}"
            )
            self.guardrails.log_violation(
                "unsafe_content",
                details={
                    "conversation_id": conversation_id,
                    "categories": [v.category for v in safety_check.violations],
                },
                severity="high",
            )

        content = content or ""
        if len(content) > MAX_CONTENT_LENGTH:
            logger.warning(f"Truncating message of {len(content)} characters in {conversation_id}")
            content = content[:MAX_CONTENT_LENGTH]

        message = Message(
            message_id=self.id_generator.next_id(),
            role=role,
            content=content,
            tokens=estimate_tokens(content),
            metadata={
                **(metadata or {}),
                "safety_warnings": [w.pattern for w in safety_check.warnings],
            },
        )

        try:
            self.repository.insert_message(conversation_id, message)
        except UniquenessConflict:
            logger.warning(f"Duplicate message ID, generating new one for conversation {conversation_id}")
            message.message_id = self.id_generator.next_id()
            self.repository.insert_message(conversation_id, message)

        conversation.append_message(message)
        if conversation.metadata.status == ConversationStatus.ARCHIVED:
            conversation.metadata.status = ConversationStatus.ACTIVE
        self.repository.save(conversation)

        self._cache[conversation_id] = CacheEntry(conversation=conversation)
        logger.info(f"Message added to conversation {conversation_id}: {message.message_id}")

        return AddMessageResult(
            message_id=message.message_id,
            conversation=conversation,
            safety_check=safety_check
        )

    def get_conversation_context(
        self,
        conversation_id: str,
        max_tokens: Optional[int] = None
    ) -> ConversationContext:
        """
        Build the context handed to prompt builders.

        Args:
            conversation_id: Conversation ID
            max_tokens: Token budget for short-term messages

        Returns:
            ConversationContext; a default context if loading fails
        """
        budget = self.context_window if max_tokens is None else max_tokens
        try:
            conversation = self.get_or_create_conversation(conversation_id)
            short_term = conversation.recent_messages(budget)
            user_type = conversation.metadata.user_type
            return ConversationContext(
                short_term=short_term,
                long_term=conversation.long_term_memory.summary,
                user_preferences=conversation.long_term_memory.user_preferences.model_dump(mode="json"),
                key_topics=[
                    TopicCount(topic=t.topic, frequency=t.frequency)
                    for t in conversation.top_topics(5)
                ],
                user_type=user_type,
                conversation_type=conversation.metadata.conversation_type,
                guidelines=self.personality.enforce_guidelines(user_type, len(short_term)),
                personality=self.personality.as_dict(),
                total_tokens=sum(estimate_tokens(m.content) for m in short_term),
            )
        except Exception as e:
            logger.error(f"Failed to build context for {conversation_id}: {e}")
            return ConversationContext()

    def update_user_preferences(self, conversation_id: str, preferences: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge preferences into long-term memory.

        Args:
            conversation_id: Conversation ID
            preferences: Preference values to merge

        Returns:
            Updated preferences
        """
        conversation = self.get_or_create_conversation(conversation_id)
        memory = conversation.long_term_memory
        merged = {**memory.user_preferences.model_dump(), **preferences}
        memory.user_preferences = type(memory.user_preferences).model_validate(merged)
        self.repository.save(conversation)
        logger.info(f"User preferences updated for conversation {conversation_id}")
        return memory.user_preferences.model_dump(mode="json")

    def record_form_creation(
        self,
        conversation_id: str,
        title: str,
        form_type: Optional[str] = None,
        field_count: int = 0
    ) -> FormSummary:
        """
        Remember a created form (last ten are kept).

        Args:
            conversation_id: Conversation ID
            title: Form title
            form_type: Detected form type
            field_count: Number of fields

        Returns:
            The recorded FormSummary
        """
        conversation = self.get_or_create_conversation(conversation_id)
        preferences = conversation.long_term_memory.user_preferences

        record = FormSummary(title=title, type=form_type, field_count=field_count)
        preferences.previous_forms.append(record)
        preferences.previous_forms = preferences.previous_forms[-MAX_PREVIOUS_FORMS:]
        if form_type and form_type not in preferences.form_types:
            preferences.form_types.append(form_type)

        conversation.metadata.conversation_type = ConversationType.FORM_CREATION
        self.repository.save(conversation)

        logger.info(f"Form creation recorded for conversation {conversation_id}: {title}")
        return record

    def get_contextual_greeting(self, conversation_id: str, user_id: str = "anonymous") -> Greeting:
        """
        Greeting tailored to the user's history.

        Args:
            conversation_id: Conversation ID
            user_id: Owner, used when the conversation is created

        Returns:
            Greeting with optional personal touch and topic suggestion
        """
        try:
            conversation = self.get_or_create_conversation(conversation_id, user_id)
        except Exception as e:
            logger.error(f"Failed to load conversation for greeting {conversation_id}: {e}")
            return self.personality.contextual_greeting(UserType.FIRST_TIME)

        greeting = self.personality.contextual_greeting(conversation.metadata.user_type)

        previous_forms = conversation.long_term_memory.user_preferences.previous_forms
        if previous_forms:
            greeting.personal_touch = f'Lần trước bạn đã tạo "{previous_forms[-1].title}" 📋'

        top = conversation.top_topics(1)
        if top:
            greeting.topic_suggestion = f"Bạn thường quan tâm đến {top[0].topic} 💡"

        return greeting

    def analyze_conversation_quality(self, conversation_id: str) -> Dict[str, Any]:
        """Engagement and quality metrics for a conversation."""
        conversation = self.get_or_create_conversation(conversation_id)
        messages = conversation.messages

        user_messages = [m for m in messages if m.role == "user"]
        assistant_messages = [m for m in messages if m.role == "assistant"]
        engagement = (len(user_messages) / len(messages) * 100) if messages else 0.0
        avg_response_length = (
            round(sum(len(m.content) for m in assistant_messages) / len(assistant_messages))
            if assistant_messages else 0
        )

        analysis = {
            "total_messages": conversation.metadata.total_messages,
            "conversation_length": len(messages),
            "user_engagement": engagement,
            "topic_coverage": len(conversation.long_term_memory.key_topics),
            "form_creation_rate": len(conversation.long_term_memory.user_preferences.previous_forms),
            "conversation_duration_seconds": (datetime.now() - conversation.created_at).total_seconds(),
            "average_response_length": avg_response_length,
            "guardrails_violations": self.guardrails.get_violation_stats()["by_type"],
        }
        analysis["quality_score"] = self._quality_score(analysis)
        return analysis

    @staticmethod
    def _quality_score(analysis: Dict[str, Any]) -> int:
        score = min(analysis["user_engagement"] / 100 * 30, 30)
        score += min(analysis["topic_coverage"] * 4, 20)
        score += min(analysis["form_creation_rate"] * 5, 25)

        avg_length = analysis["average_response_length"]
        if 50 < avg_length < 500:
            score += 25
        elif 20 < avg_length < 1000:
            score += 15
        else:
            score += 5
        return round(score)

    def get_user_conversation_history(self, user_id: str, limit: int = 10) -> List[Dict[str, Any]]:
        """Short listing of a user's conversations."""
        conversations = self.repository.list_by_user(user_id, limit=limit)
        return [
            {
                "conversation_id": c.conversation_id,
                "created_at": c.created_at.isoformat(),
                "last_activity": c.last_activity.isoformat(),
                "total_messages": c.metadata.total_messages,
                "conversation_type": c.metadata.conversation_type.value,
                "status": c.metadata.status.value,
                "forms_created": len(c.long_term_memory.user_preferences.previous_forms),
                "key_topics": [t.topic for t in c.top_topics(3)],
            }
            for c in conversations
        ]

    def export_conversation_data(
        self,
        conversation_id: str,
        export_format: str = "json"
    ) -> Union[Dict[str, Any], str]:
        """
        Export a conversation.

        Args:
            conversation_id: Conversation ID
            export_format: "json" (dict) or "csv" (string)

        Returns:
            Export payload

        Raises:
            ValueError: If the format is not supported
        """
        conversation = self.get_or_create_conversation(conversation_id)
        messages = [
            {"timestamp": m.timestamp.isoformat(), "role": m.role, "content": m.content}
            for m in conversation.messages
        ]

        if export_format == "csv":
            df = pd.DataFrame(messages, columns=["timestamp", "role", "content"])
            df["length"] = df["content"].str.len()
            df.columns = ["Timestamp", "Role", "Content", "Length"]
            return df.to_csv(index=False)

        if export_format != "json":
            raise ValueError(f"Unsupported export format: {export_format}")

        return {
            "conversation_id": conversation.conversation_id,
            "user_id": conversation.user_id,
            "created_at": conversation.created_at.isoformat(),
            "last_activity": conversation.last_activity.isoformat(),
            "messages": messages,
            "summary": conversation.long_term_memory.summary,
            "user_preferences": conversation.long_term_memory.user_preferences.model_dump(mode="json"),
            "metadata": conversation.metadata.model_dump(mode="json"),
        }

    def list_active_conversations(self, limit: int = 50) -> List[Conversation]:
        return self.repository.list_active(limit=limit)

    def cleanup_inactive_conversations(self, now: Optional[datetime] = None) -> int:
        """
        Evict cache entries not accessed within the cache TTL.

        Persistent state is untouched.

        Returns:
            Number of evicted entries
        """
        now = now or datetime.now()
        stale = [
            conversation_id for conversation_id, entry in list(self._cache.items())
            if now - entry.last_access > self.cache_ttl
        ]
        for conversation_id in stale:
            self._cache.pop(conversation_id, None)
            logger.info(f"Cleaned up inactive conversation from cache: {conversation_id}")
        return len(stale)

    def archive_old_conversations(self, days: int = 30) -> int:
        """
        Archive conversations inactive for more than ``days`` days.

        Returns:
            Number of archived conversations
        """
        cutoff = datetime.now() - timedelta(days=days)
        archived = self.repository.archive_inactive(cutoff)

        for conversation_id, entry in list(self._cache.items()):
            if entry.conversation.last_activity < cutoff:
                self._cache.pop(conversation_id, None)

        logger.info(f"Archived {archived} old conversations")
        return archived

    def get_system_stats(self) -> Dict[str, Any]:
        """Repository, cache and guardrail statistics."""
        try:
            stats = self.repository.stats()
        except Exception as e:
            logger.error(f"Failed to collect conversation stats: {e}")
            stats = {}

        violations = self.guardrails.get_violation_stats()
        total_conversations = stats.get("total_conversations") or 1
        violation_rate = violations["total"] / total_conversations

        if violation_rate < 0.01:
            health = "excellent"
        elif violation_rate < 0.05:
            health = "good"
        elif violation_rate < 0.1:
            health = "fair"
        else:
            health = "needs_attention"

        return {
            **stats,
            "active_conversations": self.cache_size,
            "cache_size": self.cache_size,
            "violations": {k: v for k, v in violations.items() if k != "recent"},
            "system_health": health,
        }
