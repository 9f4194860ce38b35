"""Form, field and submission schemas."""

from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, ConfigDict, Field


class FieldType(str, Enum):
    """Supported form field types."""
    TEXT = "text"
    EMAIL = "email"
    PASSWORD = "password"
    TEXTAREA = "textarea"
    SELECT = "select"
    RADIO = "radio"
    CHECKBOX = "checkbox"
    NUMBER = "number"
    DATE = "date"
    FILE = "file"
    TEL = "tel"


CHOICE_FIELD_TYPES = {FieldType.SELECT.value, FieldType.RADIO.value, FieldType.CHECKBOX.value}


class FieldValidation(BaseModel):
    """Optional per-field validation rules."""
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[str] = None
    message: Optional[str] = None


class FormField(BaseModel):
    """A single field of a form draft."""
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    type: str = FieldType.TEXT.value
    name: Optional[str] = None
    label: Optional[str] = None
    placeholder: str = ""
    required: bool = False
    options: List[str] = Field(default_factory=list)
    validation: Optional[FieldValidation] = None


class FormAnalytics(BaseModel):
    """View and submission counters."""
    views: int = 0
    submissions: int = 0


class FormDraft(BaseModel):
    """A form being edited or stored."""
    model_config = ConfigDict(extra="allow")

    form_id: Optional[str] = None
    title: str = ""
    description: str = ""
    introduction: Optional[str] = None
    fields: List[FormField] = Field(default_factory=list)
    settings: Dict[str, Any] = Field(default_factory=dict)
    integrations: List[str] = Field(default_factory=list)
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    trigger_phrases: List[str] = Field(default_factory=list)
    is_active: bool = True
    created_by: Optional[str] = None
    analytics: FormAnalytics = Field(default_factory=FormAnalytics)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class SubmissionStatus(str, Enum):
    """Processing state of a submission."""
    PENDING = "pending"
    PROCESSED = "processed"
    ARCHIVED = "archived"


class SubmissionInfo(BaseModel):
    """Request metadata captured with a submission."""
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    referrer: Optional[str] = None
    submission_time: datetime = Field(default_factory=datetime.now)


class Submission(BaseModel):
    """A set of answers submitted to a form."""
    submission_id: str
    form_id: str
    data: Dict[str, Any] = Field(default_factory=dict)
    submission_info: SubmissionInfo = Field(default_factory=SubmissionInfo)
    status: SubmissionStatus = SubmissionStatus.PENDING
    created_at: datetime = Field(default_factory=datetime.now)


class GeneratedForm(BaseModel):
    """Form produced by one of the generation tiers."""
    title: str
    description: str = ""
    fields: List[FormField] = Field(default_factory=list)
    generated_by: str = "ai"  # "ai", "legacy-ai" or "template"
    language: str = "Vietnamese"

    def to_draft(self) -> FormDraft:
        """Convert into an editable draft."""
        return FormDraft(
            title=self.title,
            description=self.description,
            fields=[f.model_copy() for f in self.fields],
            settings={"ai_generated": self.generated_by != "template"},
        )
