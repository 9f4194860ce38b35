"""Pydantic schemas for FormAgent."""

from .context import (
    UserType,
    ConversationType,
    ConversationStatus,
    ConversationContext,
    ContextMessage,
    TopicCount,
    Guidelines,
    Greeting,
)
from .forms import FieldType, FormField, FormDraft, Submission, SubmissionInfo, GeneratedForm
from .guardrails import SafetyCheck, FormDesignCheck, FormIssue, GuardrailViolation
from .responses import (
    ErrorCategory,
    ChatCompletionResult,
    HealthStatus,
    FormAction,
    ParsedActions,
    ChatReply,
)
from .form_context import FormContextAnalysis, FormReadiness, FormValidation

__all__ = [
    "UserType",
    "ConversationType",
    "ConversationStatus",
    "ConversationContext",
    "ContextMessage",
    "TopicCount",
    "Guidelines",
    "Greeting",
    "FieldType",
    "FormField",
    "FormDraft",
    "Submission",
    "SubmissionInfo",
    "GeneratedForm",
    "SafetyCheck",
    "FormDesignCheck",
    "FormIssue",
    "GuardrailViolation",
    "ErrorCategory",
    "ChatCompletionResult",
    "HealthStatus",
    "FormAction",
    "ParsedActions",
    "ChatReply",
    "FormContextAnalysis",
    "FormReadiness",
    "FormValidation",
]
