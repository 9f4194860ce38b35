"""AI client and agent response schemas."""

from enum import Enum
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field


class ErrorCategory(str, Enum):
    """Classification of provider failures."""
    CONFIGURATION = "configuration"
    NOT_FOUND = "not_found"
    AUTH = "auth"
    TRANSIENT = "transient"
    UNKNOWN = "unknown"


class ChatCompletionResult(BaseModel):
    """
    Result of SafeAIClient.create_chat_completion.

    `success` is always True; `fallback` is the field callers inspect to
    know whether the hosted model actually answered.
    """
    success: bool = True
    response: str
    usage: Optional[Dict[str, int]] = None
    service: str
    fallback: bool = False
    original_error: Optional[str] = None
    error_category: Optional[ErrorCategory] = None


class HealthStatus(BaseModel):
    """AI client health."""
    healthy: bool
    reason: str
    service: Optional[str] = None


class FormAction(BaseModel):
    """Structured form mutation parsed from assistant text."""
    type: str  # updateField, deleteField, addField, saveForm, updateSetting
    field_id: Optional[str] = None
    property: Optional[str] = None
    value: Optional[str] = None
    field_type: Optional[str] = None
    label: Optional[str] = None
    required: Optional[bool] = None
    setting: Optional[str] = None
    confirm: Optional[bool] = None


class ParsedActions(BaseModel):
    """Assistant text with action tokens removed."""
    text: str
    actions: List[FormAction] = Field(default_factory=list)


class ChatReply(BaseModel):
    """Reply returned by the orchestrator for a chat message."""
    success: bool = True
    response: str
    conversation_id: str
    service: str
    fallback: bool = False
    form_actions: List[FormAction] = Field(default_factory=list)
    form_context: Optional[Dict[str, Any]] = None
    safety_warnings: List[str] = Field(default_factory=list)
    message_count: int = 0


class ModerationResult(BaseModel):
    """Content moderation verdict."""
    is_appropriate: bool = True
    confidence: float = 0.5
    issues: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)
    recommendation: str = "approve"  # "approve", "flag" or "reject"
    generated_by: str = "ai"


class SubmissionAnalysis(BaseModel):
    """Summary of a form's submissions."""
    summary: str
    sentiment: str = "neutral"
    insights: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    total_submissions: int = 0
    generated_by: str = "ai"


class FormOptimization(BaseModel):
    """Optimization report for an existing form."""
    analysis: Optional[str] = None
    recommendations: List[str] = Field(default_factory=list)
    optimized_form: Optional[Dict[str, Any]] = None
    expected_impact: Optional[str] = None
    fallback: bool = False


class FormReview(BaseModel):
    """Model-based review of a form."""
    is_valid: bool = False
    issues: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)
    corrected_form: Optional[Dict[str, Any]] = None
    fallback: bool = False
