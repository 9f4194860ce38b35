"""Guardrails engine for content safety and form design checks."""

import re
import random
import logging
from collections import Counter, deque
from pathlib import Path
from typing import Optional, List, Dict, Any, Union

import yaml
from pydantic import ValidationError

from schemas.forms import FormDraft
from schemas.guardrails import (
    ContentViolation,
    ContentWarning,
    SafetyCheck,
    FormIssue,
    FormDesignCheck,
    GuardrailViolation,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "guardrails.yaml"


class GuardrailsEngine:
    """
    Keyword and regex based safety checks.

    Checks never raise on bad input: free text is coerced to a string,
    and anything that cannot be read as a form is reported as a
    blocking ``malformed_form`` issue.
    """

    def __init__(
        self,
        config_path: Optional[Union[str, Path]] = None,
        config: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize the engine.

        Args:
            config_path: Path to the guardrails YAML file
            config: Already loaded configuration (takes precedence)
        """
        self.config = config if config is not None else self._load_config(
            Path(config_path) if config_path else DEFAULT_CONFIG_PATH
        )

        safety = self.config.get("content_safety", {})
        self.prohibited_keywords: Dict[str, List[str]] = safety.get("prohibited_keywords", {})
        self.warning_patterns = [
            re.compile(p, re.IGNORECASE) for p in safety.get("warning_patterns", [])
        ]

        form_safety = self.config.get("form_safety", {})
        limits = form_safety.get("limits", {})
        self.max_fields = limits.get("max_fields", 50)
        self.max_options_per_field = limits.get("max_options_per_field", 20)
        self.forbidden_fields = [
            (re.compile(item["pattern"], re.IGNORECASE), item["reason"])
            for item in form_safety.get("forbidden_fields", [])
        ]
        self.sensitive_patterns = {
            name: re.compile(pattern, re.IGNORECASE)
            for name, pattern in form_safety.get("sensitive_patterns", {}).items()
        }
        self.disclaimers: Dict[str, str] = form_safety.get("required_disclaimers", {})

        quality = self.config.get("response_quality", {})
        self.min_length = quality.get("min_length", 20)
        self.dont_know_pattern = re.compile(
            quality.get("dont_know_pattern", r"không biết"), re.IGNORECASE
        )
        self.bare_answer_pattern = re.compile(
            quality.get("bare_answer_pattern", r"^(yes|no)$"), re.IGNORECASE
        )
        self.suggestions_text = quality.get("suggestions", "")
        self.explanations: Dict[str, str] = quality.get("explanations", {})
        self.expansions: List[str] = quality.get("expansions", [])

        self.compliance_warnings: Dict[str, str] = (
            self.config.get("compliance", {}).get("warnings", {})
        )

        self.violation_log: deque = deque(maxlen=self.config.get("violation_log_size", 1000))

    def _load_config(self, path: Path) -> Dict[str, Any]:
        """Load guardrail tables from YAML."""
        with open(path, "r", encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}
        logger.info(f"Loaded guardrails config from {path}")
        return config

    def check_content_safety(self, text: Any) -> SafetyCheck:
        """
        Check free text for prohibited content and sensitive patterns.

        Args:
            text: Text to check

        Returns:
            SafetyCheck; safe is False only when a prohibited category matched
        """
        if not isinstance(text, str):
            logger.warning(f"Content safety check got {type(text).__name__}, coercing to string")
            text = "" if text is None else str(text)

        lowered = text.lower()
        violations = [
            ContentViolation(category=category)
            for category, keywords in self.prohibited_keywords.items()
            if any(keyword.lower() in lowered for keyword in keywords)
        ]
        warnings = [
            ContentWarning(pattern=pattern.pattern)
            for pattern in self.warning_patterns
            if pattern.search(text)
        ]

        return SafetyCheck(violations=violations, warnings=warnings, safe=not violations)

    def validate_form_design(self, form: Any) -> FormDesignCheck:
        """
        Validate a form draft against field limits and forbidden fields.

        Args:
            form: FormDraft or a dict with the same shape

        Returns:
            FormDesignCheck; sensitive-data issues do not make it unsafe
        """
        draft = self._coerce_form(form)
        if draft is None:
            issue = FormIssue(type="malformed_form", message="Dữ liệu form không hợp lệ")
            return FormDesignCheck(issues=[issue], safe=False)

        issues: List[FormIssue] = []
        fields = draft.fields

        if len(fields) > self.max_fields:
            issues.append(FormIssue(
                type="too_many_fields",
                message=f"Form có quá nhiều trường ({len(fields)}/{self.max_fields})"
            ))

        for index, field in enumerate(fields):
            text = self._field_text(field)
            for pattern, reason in self.forbidden_fields:
                if pattern.search(text):
                    issues.append(FormIssue(type="forbidden_field", field=index, message=reason))
            if len(field.options) > self.max_options_per_field:
                issues.append(FormIssue(
                    type="too_many_options",
                    field=index,
                    message=f"Trường có quá nhiều lựa chọn ({len(field.options)}/{self.max_options_per_field})"
                ))

        sensitive = self.detect_sensitive_fields(draft)
        if sensitive:
            issues.append(FormIssue(
                type="sensitive_data",
                fields=sensitive,
                message="Form thu thập dữ liệu nhạy cảm, cần disclaimer"
            ))

        return FormDesignCheck(issues=issues, safe=not any(i.blocking for i in issues))

    def detect_sensitive_fields(self, form: FormDraft) -> List[int]:
        """Indexes of fields that collect sensitive data."""
        return [
            index for index, field in enumerate(form.fields)
            if any(p.search(self._field_text(field)) for p in self.sensitive_patterns.values())
        ]

    def improve_response(self, text: str, context: Optional[Dict[str, Any]] = None) -> str:
        """
        Patch up low-quality responses.

        Args:
            text: Assistant response
            context: Optional context; ``topic`` selects the explanation

        Returns:
            Possibly extended response
        """
        context = context or {}
        improved = text or ""

        if self.dont_know_pattern.search(improved):
            improved += self.suggestions_text

        if self.bare_answer_pattern.match(improved.strip()):
            explanation = self.explanations.get(
                context.get("topic", ""), self.explanations.get("default", "")
            )
            improved += f"\n\nLý do: {explanation}"

        if len(improved) < self.min_length and self.expansions:
            improved += random.choice(self.expansions)

        return improved

    def generate_compliance_warnings(self, form: Any) -> List[str]:
        """User-facing compliance warnings for a form."""
        draft = self._coerce_form(form)
        if draft is None:
            return []

        warnings = []
        if self.detect_sensitive_fields(draft):
            warnings.append(self.compliance_warnings.get("sensitive_data", ""))
        if draft.integrations or draft.settings.get("integrations"):
            warnings.append(self.compliance_warnings.get("third_party", ""))
        return [w for w in warnings if w]

    def required_disclaimers(self, form: Any) -> List[str]:
        """Disclaimers a form should display given the data it collects."""
        draft = self._coerce_form(form)
        if draft is None:
            return []

        mapping = {
            "medical": "medical_data",
            "financial": "financial_data",
            "personal_id": "personal_data",
            "children": "children_data",
        }
        needed = []
        for name, pattern in self.sensitive_patterns.items():
            if any(pattern.search(self._field_text(f)) for f in draft.fields):
                text = self.disclaimers.get(mapping.get(name, ""))
                if text and text not in needed:
                    needed.append(text)
        return needed

    def log_violation(
        self,
        violation_type: str,
        details: Optional[Dict[str, Any]] = None,
        severity: str = "medium"
    ) -> GuardrailViolation:
        """Append a violation to the capped log."""
        violation = GuardrailViolation(type=violation_type, severity=severity, details=details or {})
        self.violation_log.append(violation)
        logger.warning(f"Guardrail violation: {violation_type} ({severity})")
        return violation

    def get_violation_stats(self) -> Dict[str, Any]:
        """Aggregate counts of logged violations."""
        by_type = Counter(v.type for v in self.violation_log)
        by_severity = Counter(v.severity for v in self.violation_log)
        return {
            "total": len(self.violation_log),
            "by_type": dict(by_type),
            "by_severity": dict(by_severity),
            "recent": [v.model_dump(mode="json") for v in list(self.violation_log)[-10:]],
        }

    def _coerce_form(self, form: Any) -> Optional[FormDraft]:
        if isinstance(form, FormDraft):
            return form
        if isinstance(form, dict):
            try:
                return FormDraft.model_validate(form)
            except ValidationError as e:
                logger.warning(f"Malformed form data: {e.error_count()} validation errors")
                return None
        logger.warning(f"Cannot validate form of type {type(form).__name__}")
        return None

    @staticmethod
    def _field_text(field) -> str:
        return f"{field.label or ''} {field.name or ''}".strip()
