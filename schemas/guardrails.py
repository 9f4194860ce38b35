"""Guardrail result schemas."""

from datetime import datetime
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field

# Issue types that make a form design unsafe to store
BLOCKING_ISSUE_TYPES = {"forbidden_field", "too_many_fields", "malformed_form"}


class ContentViolation(BaseModel):
    """Prohibited content detected in free text."""
    type: str = "prohibited_content"
    category: str
    severity: str = "high"


class ContentWarning(BaseModel):
    """Sensitive pattern detected in free text (non-blocking)."""
    type: str = "sensitive_content"
    pattern: str
    severity: str = "medium"


class SafetyCheck(BaseModel):
    """Result of a free-text safety check."""
    violations: List[ContentViolation] = Field(default_factory=list)
    warnings: List[ContentWarning] = Field(default_factory=list)
    safe: bool = True


class FormIssue(BaseModel):
    """Problem found while validating a form design."""
    type: str
    message: str
    field: Optional[int] = None
    fields: List[int] = Field(default_factory=list)

    @property
    def blocking(self) -> bool:
        return self.type in BLOCKING_ISSUE_TYPES


class FormDesignCheck(BaseModel):
    """Result of a form design validation."""
    issues: List[FormIssue] = Field(default_factory=list)
    safe: bool = True

    @property
    def blocking_issues(self) -> List[FormIssue]:
        return [issue for issue in self.issues if issue.blocking]


class GuardrailViolation(BaseModel):
    """Logged violation, used for aggregate statistics only."""
    type: str
    severity: str = "medium"
    timestamp: datetime = Field(default_factory=datetime.now)
    details: Dict[str, Any] = Field(default_factory=dict)
