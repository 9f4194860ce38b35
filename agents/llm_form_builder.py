"""LLM-based form builder agent."""

import re
import json
import logging
from typing import Optional, List, Dict, Any, Union

from pydantic import ValidationError

from llm.base_client import Message
from llm.safe_client import SafeAIClient
from schemas.forms import FormDraft, FormField, GeneratedForm
from schemas.responses import FormOptimization, FormReview
from .form_actions import parse_bool

logger = logging.getLogger(__name__)

JSON_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")


class FormGenerationError(Exception):
    """A generation tier produced nothing usable."""


def extract_json_object(text: str) -> Dict[str, Any]:
    """
    Parse the outermost ``{...}`` block of a model reply.

    Raises:
        FormGenerationError: If no JSON object can be parsed
    """
    content = (text or "").strip()

    # Handle potential markdown code blocks
    if content.startswith("```"):
        content = content.split("```")[1]
        if content.startswith("json"):
            content = content[4:]
        content = content.strip()

    match = JSON_OBJECT_PATTERN.search(content)
    if not match:
        raise FormGenerationError("No JSON structure found in result")
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise FormGenerationError(f"Invalid JSON in result: {e}") from e
    if not isinstance(parsed, dict):
        raise FormGenerationError("Result is not a JSON object")
    return parsed


def _text(value: Any, default: str = "") -> str:
    """Scalar model output as text; lists, dicts and empty values give the default."""
    if value is None or value == "" or isinstance(value, (list, dict)):
        return default
    return str(value)


def normalize_fields(raw_fields: Any) -> List[FormField]:
    """
    Fill in ids, names and defaults for model-generated fields.

    Scalar values are converted to text and ``required`` is parsed from
    "true"/"false" strings.

    Raises:
        FormGenerationError: If the fields are not a list
    """
    if not isinstance(raw_fields, list):
        raise FormGenerationError("Invalid form structure: missing fields array")

    fields = []
    for index, raw in enumerate(raw_fields):
        if not isinstance(raw, dict):
            continue
        name = _text(raw.get("name")) or _text(raw.get("id")) or f"field_{index}"
        options = raw.get("options") if isinstance(raw.get("options"), list) else []
        try:
            fields.append(FormField(
                id=_text(raw.get("id"), name),
                name=name,
                type=_text(raw.get("type"), "text"),
                label=_text(raw.get("label"), "Untitled Field"),
                placeholder=_text(raw.get("placeholder")),
                required=parse_bool(raw.get("required", False)),
                options=[str(o) for o in options],
            ))
        except ValidationError as e:
            raise FormGenerationError(f"Invalid field {index}: {e}") from e
    return fields


def build_generated_form(parsed: Dict[str, Any], generated_by: str, language: str) -> GeneratedForm:
    """
    GeneratedForm from a parsed model reply.

    Raises:
        FormGenerationError: If there are no usable fields or the form does not validate
    """
    fields = normalize_fields(parsed.get("fields"))
    if not fields:
        raise FormGenerationError("Generated form has no fields")
    try:
        return GeneratedForm(
            title=_text(parsed.get("title"), "Generated Form"),
            description=_text(parsed.get("description")),
            fields=fields,
            generated_by=generated_by,
            language=language,
        )
    except ValidationError as e:
        raise FormGenerationError(f"Invalid generated form: {e}") from e


def extract_section(text: str, start_marker: str, end_marker: Optional[str] = None) -> Optional[str]:
    """Body of a ``## start_marker`` markdown section, up to ``## end_marker``."""
    start_pattern = re.compile(rf"##\s*{re.escape(start_marker)}\s*", re.IGNORECASE)
    start = start_pattern.search(text or "")
    if not start:
        return None

    end = len(text)
    if end_marker:
        end_match = re.compile(rf"##\s*{re.escape(end_marker)}\s*", re.IGNORECASE).search(text, start.end())
        if end_match:
            end = end_match.start()

    return text[start.end():end].strip()


def _lines(section: Optional[str]) -> List[str]:
    return [line.strip() for line in (section or "").splitlines() if line.strip()]


def _optional_json(section: Optional[str]) -> Optional[Dict[str, Any]]:
    if not section:
        return None
    try:
        return extract_json_object(section)
    except FormGenerationError:
        return None


class LLMFormBuilderAgent:
    """
    Specialized form designer.

    First tier of form generation; also produces optimization and
    review reports for existing forms. Reports are parsed from markdown
    sections on a best-effort basis.
    """

    GENERATION_SYSTEM_PROMPT = (
        "You are an expert form designer with deep knowledge of UX/UI principles, "
        "form validation, and user experience optimization."
    )
    OPTIMIZATION_SYSTEM_PROMPT = (
        "You are a form optimization expert. Analyze forms and provide detailed "
        "optimization recommendations."
    )
    REVIEW_SYSTEM_PROMPT = (
        "You are a form validation expert. Review forms for issues and provide detailed feedback."
    )

    def __init__(self, ai_client: SafeAIClient):
        """
        Initialize form builder.

        Args:
            ai_client: Safe AI client
        """
        self.ai_client = ai_client

    def generate_form(self, description: str, requirements: Optional[Dict[str, Any]] = None) -> GeneratedForm:
        """
        Generate a form from a description.

        Args:
            description: What the form should collect
            requirements: field_count, form_type, target_audience, include_validation, language

        Returns:
            GeneratedForm with generated_by="ai"

        Raises:
            FormGenerationError: If the model fell back or returned no usable form
        """
        requirements = requirements or {}
        logger.info(f"Starting form generation: {description[:100]}")

        result = self.ai_client.create_chat_completion([
            Message(role="system", content=self.GENERATION_SYSTEM_PROMPT),
            Message(role="user", content=self._build_generation_prompt(description, requirements)),
        ])
        if result.fallback:
            raise FormGenerationError("AI service unavailable")

        parsed = extract_json_object(result.response)
        form = build_generated_form(
            parsed, "ai", _text(requirements.get("language"), "Vietnamese")
        )
        logger.info(f"Form generation completed with {len(form.fields)} fields")
        return form

    def optimize_form(
        self,
        form: Union[FormDraft, Dict[str, Any]],
        goals: Optional[List[str]] = None
    ) -> FormOptimization:
        """Optimization report for an existing form."""
        goals = goals or ["improve-ux", "increase-conversion"]
        result = self.ai_client.create_chat_completion([
            Message(role="system", content=self.OPTIMIZATION_SYSTEM_PROMPT),
            Message(role="user", content=self._build_optimization_prompt(form, goals)),
        ])
        if result.fallback:
            return FormOptimization(analysis=result.response, fallback=True)

        text = result.response
        return FormOptimization(
            analysis=extract_section(text, "Issues Found", "Optimization Recommendations") or text,
            recommendations=_lines(extract_section(text, "Optimization Recommendations", "Optimized Form Structure")),
            optimized_form=_optional_json(extract_section(text, "Optimized Form Structure", "Expected Impact")),
            expected_impact=extract_section(text, "Expected Impact"),
        )

    def review_form(self, form: Union[FormDraft, Dict[str, Any]]) -> FormReview:
        """Model-based review of a form's structure."""
        result = self.ai_client.create_chat_completion([
            Message(role="system", content=self.REVIEW_SYSTEM_PROMPT),
            Message(role="user", content=self._build_review_prompt(form)),
        ])
        if result.fallback:
            return FormReview(issues=["AI review unavailable"], fallback=True)

        text = result.response
        status = extract_section(text, "Validation Status", "Issues Found") or ""
        return FormReview(
            is_valid=status.strip().upper() == "VALID",
            issues=_lines(extract_section(text, "Issues Found", "Suggestions")),
            suggestions=_lines(extract_section(text, "Suggestions", "Corrected Form")),
            corrected_form=_optional_json(extract_section(text, "Corrected Form")),
        )

    @staticmethod
    def _form_json(form: Union[FormDraft, Dict[str, Any]]) -> str:
        data = form.model_dump(mode="json", exclude_none=True) if isinstance(form, FormDraft) else form
        return json.dumps(data, indent=2, ensure_ascii=False)

    def _build_generation_prompt(self, description: str, requirements: Dict[str, Any]) -> str:
        return f"""Create a comprehensive form based on the following requirements:

User Description: {description}

Requirements:
- Field Count: {requirements.get('field_count', 5)}
- Form Type: {requirements.get('form_type', 'contact')}
- Target Audience: {requirements.get('target_audience', 'general')}
- Include Validation: {requirements.get('include_validation', True) is not False}
- Language: {requirements.get('language', 'Vietnamese')}

Generate a JSON structure with the following format:
{{
  "title": "Form Title",
  "description": "Brief form description",
  "fields": [
    {{
      "id": "field_id",
      "type": "text|email|password|textarea|select|radio|checkbox|number|date|file|tel",
      "name": "field_name",
      "label": "Field Label",
      "placeholder": "Placeholder text",
      "required": true,
      "validation": {{"pattern": "regex_pattern", "message": "validation_message"}},
      "options": ["option1", "option2"]
    }}
  ]
}}

Only select, radio and checkbox fields have options.
Make the form practical, accessible, and user-friendly. Focus on creating meaningful field IDs, proper validation, and good UX.
Return only the JSON structure, no additional text."""

    def _build_optimization_prompt(self, form: Union[FormDraft, Dict[str, Any]], goals: List[str]) -> str:
        return f"""Analyze the following form and provide optimization recommendations:

Existing Form: {self._form_json(form)}

Optimization Goals: {', '.join(goals)}

Focus on user experience, conversion rate, accessibility, validation, and field ordering.

Format your response as:
## Issues Found
[List of issues]

## Optimization Recommendations
[Detailed recommendations]

## Optimized Form Structure
[JSON structure]

## Expected Impact
[Expected improvements]"""

    def _build_review_prompt(self, form: Union[FormDraft, Dict[str, Any]]) -> str:
        return f"""Review the following form for issues and improvements:

Form Data: {self._form_json(form)}

Check field type consistency, validation rules, accessibility, required fields, field naming and label clarity.

Format as:
## Validation Status
[VALID/INVALID]

## Issues Found
- [SEVERITY] Issue description

## Suggestions
- Fix for each issue

## Corrected Form
[JSON structure if corrections needed]"""
