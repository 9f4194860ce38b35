"""Request bodies for the HTTP API."""

from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field

from schemas.forms import FormField


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1)
    conversation_id: Optional[str] = None
    user_id: str = "anonymous"
    form_data: Optional[Dict[str, Any]] = None
    language: str = "Vietnamese"


class GenerateFormRequest(BaseModel):
    description: str = Field(..., min_length=1)
    requirements: Dict[str, Any] = Field(default_factory=dict)
    auto_save: bool = False
    conversation_id: Optional[str] = None
    user_id: str = "anonymous"


class BulkGenerateRequest(BaseModel):
    requests: List[Dict[str, Any]]
    auto_save: bool = False
    user_id: str = "anonymous"


class TitleRequest(BaseModel):
    description: str = Field(..., min_length=1)
    tone: str = "professional"


class DescriptionRequest(BaseModel):
    title: str = Field(..., min_length=1)
    purpose: str = ""


class ModerationRequest(BaseModel):
    content: str = Field(..., min_length=1)


class AnalysisRequest(BaseModel):
    analysis_type: str = "summary"


class OptimizeRequest(BaseModel):
    goals: Optional[List[str]] = None


class SaveFormRequest(BaseModel):
    """Form to store; title and fields are required."""
    title: str = Field(..., min_length=1)
    description: str = ""
    fields: List[FormField]
    settings: Dict[str, Any] = Field(default_factory=dict)
    integrations: List[str] = Field(default_factory=list)
    conversation_id: Optional[str] = None
    user_id: str = "anonymous"


class SubmitRequest(BaseModel):
    data: Dict[str, Any] = Field(default_factory=dict)


class PreferencesRequest(BaseModel):
    preferences: Dict[str, Any] = Field(default_factory=dict)
