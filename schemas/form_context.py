"""Form state analysis schemas."""

from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field


class FormOverview(BaseModel):
    """High level summary of a form draft."""
    title: str
    description: str
    field_count: int = 0
    required_field_count: int = 0
    has_settings: bool = False
    is_complete: bool = False


class FieldAnalysis(BaseModel):
    """Per-field findings."""
    index: int
    id: Optional[str] = None
    label: Optional[str] = None
    type: str
    required: bool = False
    has_options: bool = False
    issues: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)


class FieldsAnalysis(BaseModel):
    """Findings across all fields."""
    fields: List[FieldAnalysis] = Field(default_factory=list)
    type_distribution: Dict[str, int] = Field(default_factory=dict)
    total_fields: int = 0
    required_fields: int = 0
    optional_fields: int = 0


class SettingState(BaseModel):
    """State of one form-level setting."""
    value: Any = None
    is_set: bool = False
    is_valid: Optional[bool] = None
    suggestion: Optional[str] = None


class SettingsAnalysis(BaseModel):
    """Form-level settings findings."""
    settings: Dict[str, SettingState] = Field(default_factory=dict)
    issues: List[str] = Field(default_factory=list)


class FormValidation(BaseModel):
    """Validation errors and warnings."""
    is_valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    can_save: bool


class Suggestion(BaseModel):
    """Improvement suggestion."""
    type: str  # "form" or "field"
    priority: str  # "high", "medium", "low"
    message: str


class FormReadiness(BaseModel):
    """Whether the draft can be stored."""
    can_save: bool
    missing_requirements: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    readiness_score: int = 0


class FormContextAnalysis(BaseModel):
    """Complete analysis of a form draft."""
    overview: FormOverview
    fields: FieldsAnalysis
    settings: SettingsAnalysis
    validation: FormValidation
    suggestions: List[Suggestion] = Field(default_factory=list)
    readiness: FormReadiness
