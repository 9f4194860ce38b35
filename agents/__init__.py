"""Agents for FormAgent."""

from .guardrails import GuardrailsEngine
from .personality import PersonalityProfile
from .form_context import FormContextAgent
from .form_actions import parse_form_commands, apply_action, apply_actions, FormActionError
from .form_templates import generate_default_form, detect_form_type
from .llm_form_builder import LLMFormBuilderAgent, FormGenerationError
from .form_generator import FormGenerator
from .chat_assistant import ChatAssistantAgent, AssistantTurn

__all__ = [
    "GuardrailsEngine",
    "PersonalityProfile",
    "FormContextAgent",
    "parse_form_commands",
    "apply_action",
    "apply_actions",
    "FormActionError",
    "generate_default_form",
    "detect_form_type",
    "LLMFormBuilderAgent",
    "FormGenerationError",
    "FormGenerator",
    "ChatAssistantAgent",
    "AssistantTurn",
]
