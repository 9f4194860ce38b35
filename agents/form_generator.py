"""One-shot form generator and form content helpers."""

import json
import logging
from collections import Counter
from typing import Optional, List, Dict, Any

from llm.base_client import Message
from llm.safe_client import SafeAIClient
from schemas.forms import GeneratedForm, Submission
from schemas.responses import ModerationResult, SubmissionAnalysis
from .form_templates import TEMPLATES, detect_form_type
from .llm_form_builder import FormGenerationError, extract_json_object, build_generated_form

logger = logging.getLogger(__name__)

ANALYSIS_PROMPTS = {
    "summary": (
        "Analyze these form submissions and provide a comprehensive summary: total responses, "
        "most common responses, key trends and notable insights."
    ),
    "sentiment": (
        "Analyze the sentiment of these form submissions: overall sentiment (positive, negative, "
        "neutral), key positive themes and key concerns."
    ),
    "insights": (
        "Extract actionable insights from these form submissions: key patterns, user behavior "
        "insights and improvement recommendations."
    ),
}


class FormGenerator:
    """
    Single-prompt generator used as the second generation tier.

    Also writes titles and descriptions, analyzes submissions and
    moderates content. Every helper has a deterministic default for
    when the model is unavailable.
    """

    def __init__(self, ai_client: SafeAIClient):
        self.ai_client = ai_client

    def _complete(self, prompt: str, max_tokens: Optional[int] = None):
        return self.ai_client.create_chat_completion(
            [Message(role="user", content=prompt)],
            max_tokens=max_tokens
        )

    def generate_form(self, description: str, requirements: Optional[Dict[str, Any]] = None) -> GeneratedForm:
        """
        Generate a form with a single prompt.

        Raises:
            FormGenerationError: If the model fell back or returned no usable form
        """
        requirements = requirements or {}
        prompt = f"""Generate a JSON structure for a form based on this description: "{description}"

Requirements:
- Generate {requirements.get('field_count', 5)} form fields
- Form type: {requirements.get('form_type', 'contact')}
- Target audience: {requirements.get('target_audience', 'general')}
- Include validation: {requirements.get('include_validation', True)}

Return a JSON object with this exact structure:
{{
  "title": "Form Title",
  "description": "Brief form description",
  "fields": [
    {{
      "type": "text|email|password|textarea|select|radio|checkbox|number|date|file|tel",
      "name": "field_name",
      "label": "Field Label",
      "placeholder": "Placeholder text",
      "required": true,
      "options": ["option1", "option2"]
    }}
  ]
}}

Make the form practical and user-friendly. Ensure field names are lowercase with underscores."""

        result = self._complete(prompt)
        if result.fallback:
            raise FormGenerationError("AI service unavailable")

        parsed = extract_json_object(result.response)
        language = requirements.get("language")
        return build_generated_form(
            parsed, "legacy-ai", language if isinstance(language, str) and language else "Vietnamese"
        )

    def generate_title(self, description: str, tone: str = "professional") -> str:
        result = self._complete(
            f'Generate a concise, {tone} title for a form based on this description: "{description}". '
            "Return only the title, maximum 8 words, no quotes or extra text.",
            max_tokens=50
        )
        title = result.response.strip().replace('"', "").replace("'", "")
        if result.fallback or not title:
            return self.default_title(description)
        return title

    @staticmethod
    def default_title(description: str) -> str:
        form_type = detect_form_type(description)
        if form_type:
            return TEMPLATES[form_type]["title"]
        words = (description or "").split()[:8]
        return " ".join(words).capitalize() if words else "Form mới"

    def generate_description(self, title: str, purpose: str = "") -> str:
        result = self._complete(
            f'Create a brief, user-friendly description (2-3 sentences) for a form titled "{title}" '
            f"with the purpose: {purpose}. Make it welcoming and explain what users can expect.",
            max_tokens=200
        )
        if result.fallback or not result.response.strip():
            description = f'Vui lòng điền thông tin vào form "{title}".'
            if purpose:
                description += f" {purpose.strip().rstrip('.')}."
            return description
        return result.response.strip()

    def analyze_submissions(
        self,
        submissions: List[Submission],
        analysis_type: str = "summary"
    ) -> SubmissionAnalysis:
        """
        Summarize a form's submissions.

        Args:
            submissions: Submissions to analyze
            analysis_type: "summary", "sentiment" or "insights"

        Returns:
            SubmissionAnalysis; statistics only when the model is unavailable
        """
        if not submissions:
            return SubmissionAnalysis(summary="No submissions to analyze", generated_by="statistics")

        data = [s.data for s in submissions]
        instructions = ANALYSIS_PROMPTS.get(analysis_type, ANALYSIS_PROMPTS["summary"])
        result = self._complete(
            f"{instructions}\n\nSubmissions: {json.dumps(data, indent=2, ensure_ascii=False, default=str)}\n\n"
            'Respond with JSON: {"summary": "...", "sentiment": "positive|negative|neutral", '
            '"insights": ["..."], "recommendations": ["..."]}'
        )

        if result.fallback:
            return self.statistical_summary(submissions)

        try:
            parsed = extract_json_object(result.response)
        except FormGenerationError:
            return SubmissionAnalysis(
                summary=result.response.strip(),
                total_submissions=len(submissions),
            )

        return SubmissionAnalysis(
            summary=str(parsed.get("summary") or result.response.strip()),
            sentiment=str(parsed.get("sentiment") or "neutral"),
            insights=[str(i) for i in parsed.get("insights") or []],
            recommendations=[str(r) for r in parsed.get("recommendations") or []],
            total_submissions=len(submissions),
        )

    @staticmethod
    def statistical_summary(submissions: List[Submission]) -> SubmissionAnalysis:
        filled = Counter(
            key for s in submissions for key, value in s.data.items() if value not in (None, "", [])
        )
        total = len(submissions)
        insights = [
            f"{key}: {count}/{total} câu trả lời ({count / total:.0%})"
            for key, count in filled.most_common()
        ]
        return SubmissionAnalysis(
            summary=f"{total} câu trả lời đã được ghi nhận.",
            insights=insights,
            total_submissions=total,
            generated_by="statistics",
        )

    def moderate_content(self, content: str) -> ModerationResult:
        result = self._complete(
            "Analyze this content for inappropriate material, spam, or harmful content.\n"
            f'Content: "{content}"\n\n'
            "Respond with a JSON object containing:\n"
            '{"isAppropriate": boolean, "confidence": number (0-1), '
            '"reasons": ["reason1"], "recommendation": "approve|flag|reject"}',
            max_tokens=300
        )

        unable = ModerationResult(
            is_appropriate=True,
            confidence=0.5,
            issues=["Unable to analyze"],
            recommendation="flag",
            generated_by="default",
        )
        if result.fallback:
            return unable

        try:
            parsed = extract_json_object(result.response)
        except FormGenerationError:
            logger.warning("Moderation reply was not JSON")
            return unable

        try:
            confidence = float(parsed.get("confidence", 0.5))
        except (TypeError, ValueError):
            confidence = 0.5

        return ModerationResult(
            is_appropriate=bool(parsed.get("isAppropriate", True)),
            confidence=confidence,
            issues=[str(r) for r in parsed.get("reasons") or []],
            recommendation=str(parsed.get("recommendation") or "approve"),
        )
