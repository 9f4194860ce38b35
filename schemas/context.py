"""Conversation context and greeting schemas."""

from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field


class UserType(str, Enum):
    """Familiarity level, derived from total message count."""
    FIRST_TIME = "firstTime"
    RETURNING = "returning"
    EXPERT = "expert"


class ConversationType(str, Enum):
    """Main purpose of a conversation."""
    FORM_CREATION = "form_creation"
    CHAT = "chat"
    SUPPORT = "support"
    OPTIMIZATION = "optimization"


class ConversationStatus(str, Enum):
    """Lifecycle status."""
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class ContextMessage(BaseModel):
    """Message as exposed to prompt builders."""
    role: str
    content: str
    timestamp: datetime


class TopicCount(BaseModel):
    """Topic and how often it was mentioned."""
    topic: str
    frequency: int


class Guidelines(BaseModel):
    """Response style guidelines for the current user."""
    should_use_emojis: bool = True
    tone: str = "friendly"
    language: str = "Vietnamese"
    response_style: Dict[str, Any] = Field(default_factory=dict)
    max_length: int = 400


class ConversationContext(BaseModel):
    """Context handed to chat and form handlers."""
    short_term: List[ContextMessage] = Field(default_factory=list)
    long_term: str = ""
    user_preferences: Dict[str, Any] = Field(default_factory=dict)
    key_topics: List[TopicCount] = Field(default_factory=list)
    user_type: UserType = UserType.FIRST_TIME
    conversation_type: ConversationType = ConversationType.CHAT
    guidelines: Guidelines = Field(default_factory=Guidelines)
    personality: Dict[str, Any] = Field(default_factory=dict)
    total_tokens: int = 0


class Greeting(BaseModel):
    """Greeting tailored to the user."""
    greeting: str
    follow_up: str
    contextual_message: Optional[str] = None
    tips: List[str] = Field(default_factory=list)
    personal_touch: Optional[str] = None
    topic_suggestion: Optional[str] = None
