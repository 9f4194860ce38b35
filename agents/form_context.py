"""Form context agent: analysis of the draft the user is editing."""

import logging
from collections import Counter
from datetime import datetime
from typing import Optional, List, Dict, Any, Union

from schemas.forms import FormDraft, FormField, CHOICE_FIELD_TYPES
from schemas.form_context import (
    FormOverview,
    FieldAnalysis,
    FieldsAnalysis,
    SettingState,
    SettingsAnalysis,
    FormValidation,
    Suggestion,
    FormReadiness,
    FormContextAnalysis,
)

logger = logging.getLogger(__name__)

MIN_FIELDS_TO_SAVE = 2

READINESS_WEIGHTS = {
    "has_title": 20,
    "has_description": 10,
    "has_fields": 20,
    "fields_complete": 20,
    "no_errors": 20,
    "has_settings": 10,
}

FIELD_TYPE_GUIDANCE = {
    "text": "Nhập văn bản ngắn, thường dưới 100 ký tự.",
    "email": "Nhập địa chỉ email hợp lệ, ví dụ: user@example.com",
    "number": "Nhập số, có thể là số nguyên hoặc số thập phân.",
    "tel": "Nhập số điện thoại, ví dụ: 0912345678",
    "date": "Chọn ngày từ lịch hoặc nhập theo định dạng ngày/tháng/năm.",
    "textarea": "Nhập văn bản dài, có thể nhiều dòng.",
    "select": "Chọn một tùy chọn từ danh sách.",
    "radio": "Chọn một trong các tùy chọn được cung cấp.",
    "checkbox": "Đánh dấu vào ô vuông để chọn.",
}

QUERY_KEYWORDS = [
    ("status", ("trạng thái", "status", "hiện tại")),
    ("validation", ("validation", "lỗi", "kiểm tra")),
    ("suggestions", ("gợi ý", "suggest", "cải thiện")),
    ("readiness", ("lưu", "save", "sẵn sàng")),
    ("field_help", ("field", "trường", "điền")),
]


def _parse_date(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def _is_after(later: Optional[str], earlier: Optional[str]) -> bool:
    """True when either date is missing or unparseable, else later > earlier."""
    later_date, earlier_date = _parse_date(later), _parse_date(earlier)
    if later_date is None or earlier_date is None:
        return True
    if (later_date.tzinfo is None) != (earlier_date.tzinfo is None):
        later_date = later_date.replace(tzinfo=None)
        earlier_date = earlier_date.replace(tzinfo=None)
    return later_date > earlier_date


class FormContextAgent:
    """
    Deterministic analysis of a form draft.

    Produces the overview, per-field findings, validation, suggestions
    and save readiness used in chat prompts and in fallback replies.
    """

    def analyze_form_context(self, form: Union[FormDraft, Dict[str, Any]]) -> FormContextAnalysis:
        """
        Analyze the current form state.

        Args:
            form: Draft as a FormDraft or a plain dict

        Returns:
            FormContextAnalysis
        """
        form = self._coerce(form)
        validation = self.validate_form(form)
        return FormContextAnalysis(
            overview=self.get_form_overview(form),
            fields=self.analyze_fields(form.fields),
            settings=self.analyze_settings(form),
            validation=validation,
            suggestions=self.generate_suggestions(form),
            readiness=self.check_form_readiness(form, validation),
        )

    @staticmethod
    def _coerce(form: Union[FormDraft, Dict[str, Any]]) -> FormDraft:
        if isinstance(form, FormDraft):
            return form
        return FormDraft.model_validate(form or {})

    def get_form_overview(self, form: FormDraft) -> FormOverview:
        return FormOverview(
            title=form.title or "Chưa có tiêu đề",
            description=form.description or "Chưa có mô tả",
            field_count=len(form.fields),
            required_field_count=sum(1 for f in form.fields if f.required),
            has_settings=self._has_settings(form),
            is_complete=self._is_complete(form),
        )

    def analyze_fields(self, fields: List[FormField]) -> FieldsAnalysis:
        analyses = [
            FieldAnalysis(
                index=index,
                id=field.id,
                label=field.label,
                type=field.type,
                required=field.required,
                has_options=bool(field.options),
                issues=self.find_field_issues(field),
                suggestions=self.field_suggestions(field),
            )
            for index, field in enumerate(fields)
        ]
        required = sum(1 for f in fields if f.required)
        return FieldsAnalysis(
            fields=analyses,
            type_distribution=dict(Counter(f.type for f in fields)),
            total_fields=len(fields),
            required_fields=required,
            optional_fields=len(fields) - required,
        )

    def analyze_settings(self, form: FormDraft) -> SettingsAnalysis:
        settings = {
            "form_title": SettingState(
                value=form.title,
                is_set=bool(form.title),
                suggestion=None if form.title else "Thêm tiêu đề cho form để dễ nhận biết",
            ),
            "form_description": SettingState(
                value=form.description,
                is_set=bool(form.description),
                suggestion=None if form.description else "Thêm mô tả để người dùng hiểu rõ mục đích form",
            ),
            "introduction": SettingState(
                value=form.introduction,
                is_set=bool(form.introduction),
                suggestion=None if form.introduction else "Thêm lời giới thiệu để tạo ấn tượng tốt",
            ),
            "start_date": SettingState(
                value=form.start_date,
                is_set=bool(form.start_date),
                is_valid=_parse_date(form.start_date) is not None,
            ),
            "end_date": SettingState(
                value=form.end_date,
                is_set=bool(form.end_date),
                is_valid=_parse_date(form.end_date) is not None,
            ),
            "trigger_phrases": SettingState(
                value=list(form.trigger_phrases),
                is_set=bool(form.trigger_phrases),
            ),
        }

        issues = []
        if form.start_date and form.end_date and not _is_after(form.end_date, form.start_date):
            issues.append("Ngày kết thúc phải sau ngày bắt đầu")

        return SettingsAnalysis(settings=settings, issues=issues)

    def validate_form(self, form: Union[FormDraft, Dict[str, Any]]) -> FormValidation:
        """
        Validate the whole draft.

        Args:
            form: Draft to validate

        Returns:
            FormValidation; can_save is true iff there are no errors
        """
        form = self._coerce(form)
        errors: List[str] = []
        warnings: List[str] = []

        if not form.title.strip():
            errors.append("Form cần có tiêu đề")

        if not form.fields:
            errors.append("Form cần có ít nhất một trường thông tin")
        else:
            ids = [f.id for f in form.fields if f.id]
            duplicates = sorted({i for i in ids if ids.count(i) > 1})
            if duplicates:
                errors.append(f"Có field ID trùng lặp: {', '.join(duplicates)}")

            for index, field in enumerate(form.fields, start=1):
                if not (field.label or "").strip():
                    warnings.append(f"Field {index} cần có nhãn")
                if not (field.id or "").strip():
                    errors.append(f"Field {index} cần có ID")
                if field.type in ("select", "radio") and not field.options:
                    warnings.append(f'Field "{field.label}" cần có ít nhất một lựa chọn')

        if form.start_date and form.end_date and not _is_after(form.end_date, form.start_date):
            errors.append("Ngày kết thúc phải sau ngày bắt đầu")

        return FormValidation(
            is_valid=not errors,
            errors=errors,
            warnings=warnings,
            can_save=not errors,
        )

    def generate_suggestions(self, form: FormDraft) -> List[Suggestion]:
        suggestions = []

        if not form.description:
            suggestions.append(Suggestion(
                type="form", priority="medium",
                message="Thêm mô tả cho form để người dùng hiểu rõ mục đích"
            ))
        if not form.introduction:
            suggestions.append(Suggestion(
                type="form", priority="low",
                message="Thêm lời giới thiệu để tạo ấn tượng ban đầu tốt hơn"
            ))

        types = [f.type for f in form.fields]
        if "email" not in types and "tel" not in types:
            suggestions.append(Suggestion(
                type="field", priority="high",
                message="Nên thêm ít nhất một phương thức liên hệ (email hoặc số điện thoại)"
            ))

        # Long text fields belong after the short ones
        if "textarea" in types and "text" in types:
            if types.index("textarea") < len(types) - 1 - types[::-1].index("text"):
                suggestions.append(Suggestion(
                    type="field", priority="low",
                    message="Nên đặt các trường văn bản dài (textarea) ở cuối form"
                ))

        return suggestions

    def check_form_readiness(
        self,
        form: Union[FormDraft, Dict[str, Any]],
        validation: Optional[FormValidation] = None
    ) -> FormReadiness:
        """
        Decide whether the draft can be stored.

        A draft can be saved iff it has no validation errors, a title and
        at least two fields.
        """
        form = self._coerce(form)
        validation = validation or self.validate_form(form)
        has_minimum_fields = len(form.fields) >= MIN_FIELDS_TO_SAVE
        has_title = bool(form.title.strip())

        missing = []
        if not has_title:
            missing.append("Tiêu đề form")
        if not has_minimum_fields:
            missing.append(f"Cần ít nhất {MIN_FIELDS_TO_SAVE} trường thông tin")
        missing.extend(validation.errors)

        return FormReadiness(
            can_save=validation.can_save and has_minimum_fields and has_title,
            missing_requirements=missing,
            warnings=validation.warnings,
            readiness_score=self.readiness_score(form, validation),
        )

    def readiness_score(self, form: FormDraft, validation: FormValidation) -> int:
        checks = {
            "has_title": bool(form.title.strip()),
            "has_description": bool(form.description.strip()),
            "has_fields": bool(form.fields),
            "fields_complete": all(f.id and f.label for f in form.fields),
            "no_errors": not validation.errors,
            "has_settings": self._has_settings(form),
        }
        return sum(READINESS_WEIGHTS[name] for name, passed in checks.items() if passed)

    @staticmethod
    def find_field_issues(field: FormField) -> List[str]:
        issues = []
        if not (field.label or "").strip():
            issues.append("Thiếu nhãn")
        if not (field.id or "").strip():
            issues.append("Thiếu ID")
        if field.type in CHOICE_FIELD_TYPES and not field.options:
            issues.append("Thiếu lựa chọn")
        return issues

    @staticmethod
    def field_suggestions(field: FormField) -> List[str]:
        suggestions = []
        if field.type == "email" and not field.placeholder:
            suggestions.append('Thêm placeholder ví dụ: "email@example.com"')
        if field.type == "tel" and not field.placeholder:
            suggestions.append('Thêm placeholder ví dụ: "0912345678"')
        if field.type in ("select", "radio") and len(field.options) == 1:
            suggestions.append("Nên có ít nhất 2 lựa chọn")
        return suggestions

    @staticmethod
    def _has_settings(form: FormDraft) -> bool:
        return bool(form.start_date or form.end_date or form.trigger_phrases)

    @staticmethod
    def _is_complete(form: FormDraft) -> bool:
        return bool(form.title.strip() and form.fields and all(f.id and f.label for f in form.fields))

    # Natural language responses

    def generate_context_response(self, analysis: FormContextAnalysis) -> str:
        """Markdown description of the form state."""
        overview, fields = analysis.overview, analysis.fields
        validation, readiness = analysis.validation, analysis.readiness

        lines = [
            "📋 **Trạng thái form hiện tại:**",
            "",
            "**Tổng quan:**",
            f"• Tiêu đề: {overview.title}",
            f"• Mô tả: {overview.description}",
            f"• Số lượng trường: {overview.field_count} ({overview.required_field_count} bắt buộc)",
            "",
        ]

        if fields.total_fields:
            lines.append("**Chi tiết các trường:**")
            for position, field in enumerate(fields.fields, start=1):
                lines.append(
                    f"{position}. **{field.label}** ({field.type}){' *' if field.required else ''}"
                )
                if field.issues:
                    lines.append(f"   ⚠️ Vấn đề: {', '.join(field.issues)}")
                if field.suggestions:
                    lines.append(f"   💡 Gợi ý: {', '.join(field.suggestions)}")
            lines.append("")

        lines.append("**Trạng thái validation:**")
        lines.append(f"• {'✅ Form hợp lệ' if validation.is_valid else '❌ Form có lỗi'}")
        if validation.errors:
            lines.append(f"• Lỗi: {', '.join(validation.errors)}")
        if validation.warnings:
            lines.append(f"• Cảnh báo: {', '.join(validation.warnings)}")
        lines.append("")

        lines.append(f"**Sẵn sàng lưu:** {'✅ Có' if readiness.can_save else '❌ Chưa'}")
        if not readiness.can_save and readiness.missing_requirements:
            lines.append(f"• Còn thiếu: {', '.join(readiness.missing_requirements)}")
        lines.append(f"• Điểm hoàn thiện: {readiness.readiness_score}/100")
        lines.append("")

        if analysis.suggestions:
            lines.append("**💡 Gợi ý cải thiện:**")
            lines.extend(f"• {s.message}" for s in analysis.suggestions)

        return "\n".join(lines)

    @staticmethod
    def classify_form_query(query: str) -> str:
        """Intent of a question about the current form."""
        lower = (query or "").lower()
        for query_type, keywords in QUERY_KEYWORDS:
            if any(k in lower for k in keywords):
                return query_type
        return "general"

    def answer_form_query(self, query: str, analysis: FormContextAnalysis) -> Optional[str]:
        """
        Deterministic answer to a form question.

        Returns:
            Response text, or None for general queries
        """
        query_type = self.classify_form_query(query)
        if query_type == "status":
            return self.generate_context_response(analysis)
        if query_type == "validation":
            return self.validation_response(analysis.validation)
        if query_type == "suggestions":
            return self.suggestions_response(analysis.suggestions)
        if query_type == "readiness":
            return self.readiness_response(analysis.readiness)
        if query_type == "field_help":
            return self.field_help_response(query, analysis.fields)
        return None

    @staticmethod
    def validation_response(validation: FormValidation) -> str:
        lines = ["🔍 **Kết quả kiểm tra form:**", ""]
        if validation.is_valid:
            lines.append("✅ Form hiện tại không có lỗi!")
        else:
            lines.append("❌ Form có một số vấn đề cần khắc phục:")
            lines.append("")
            lines.append("**Lỗi:**")
            lines.extend(f"• {e}" for e in validation.errors)

        if validation.warnings:
            lines.append("")
            lines.append("**Cảnh báo:**")
            lines.extend(f"• {w}" for w in validation.warnings)

        lines.append("")
        lines.append(f"**Có thể lưu form:** {'Có ✅' if validation.can_save else 'Chưa ❌'}")
        return "\n".join(lines)

    @staticmethod
    def suggestions_response(suggestions: List[Suggestion]) -> str:
        if not suggestions:
            return "✨ Form của bạn đã khá hoàn thiện! Không có gợi ý cải thiện nào."

        lines = ["💡 **Gợi ý cải thiện form:**", ""]
        groups = [
            ("high", "**🔴 Quan trọng:**"),
            ("medium", "**🟡 Nên làm:**"),
            ("low", "**🟢 Tùy chọn:**"),
        ]
        for priority, heading in groups:
            group = [s for s in suggestions if s.priority == priority]
            if group:
                lines.append(heading)
                lines.extend(f"• {s.message}" for s in group)
                lines.append("")
        return "\n".join(lines).rstrip()

    @staticmethod
    def readiness_response(readiness: FormReadiness) -> str:
        lines = [
            "💾 **Kiểm tra sẵn sàng lưu form:**",
            "",
            f"**Điểm hoàn thiện:** {readiness.readiness_score}/100",
            f"**Có thể lưu:** {'✅ Có' if readiness.can_save else '❌ Chưa'}",
            "",
        ]
        if not readiness.can_save:
            lines.append("**Cần hoàn thành:**")
            lines.extend(f"• {r}" for r in readiness.missing_requirements)
            lines.append("")
        if readiness.warnings:
            lines.append("**Lưu ý:**")
            lines.extend(f"• {w}" for w in readiness.warnings)
        if readiness.can_save:
            lines.append("")
            lines.append("✅ Form đã sẵn sàng để lưu! Bạn có muốn lưu form ngay bây giờ không?")
        return "\n".join(lines)

    def field_help_response(self, query: str, fields: FieldsAnalysis) -> str:
        field = self.identify_field(query, fields.fields)
        if field is None:
            return self.general_field_help(fields)

        lines = [
            f'📝 **Hướng dẫn cho trường "{field.label}":**',
            "",
            f"• **Loại:** {field.type}",
            f"• **Bắt buộc:** {'Có' if field.required else 'Không'}",
        ]
        if field.issues:
            lines.append(f"• **Vấn đề:** {', '.join(field.issues)}")
        if field.suggestions:
            lines.append(f"• **Gợi ý:** {', '.join(field.suggestions)}")
        lines.append("")
        lines.append(self.field_type_guidance(field.type))
        return "\n".join(lines)

    @staticmethod
    def identify_field(query: str, fields: List[FieldAnalysis]) -> Optional[FieldAnalysis]:
        """First field whose label or id appears in the query."""
        lower = (query or "").lower()
        for field in fields:
            label = (field.label or "").lower()
            field_id = (field.id or "").lower()
            if (label and label in lower) or (field_id and field_id in lower):
                return field
        return None

    @staticmethod
    def field_type_guidance(field_type: str) -> str:
        return FIELD_TYPE_GUIDANCE.get(field_type, "Nhập thông tin phù hợp với loại trường.")

    @staticmethod
    def general_field_help(fields: FieldsAnalysis) -> str:
        lines = [
            "📋 **Hướng dẫn điền form:**",
            "",
            f"Form hiện có {fields.total_fields} trường:",
            f"• {fields.required_fields} trường bắt buộc (có dấu *)",
            f"• {fields.optional_fields} trường tùy chọn",
            "",
            "**Các loại trường trong form:**",
        ]
        lines.extend(f"• {t}: {count} trường" for t, count in fields.type_distribution.items())
        lines.extend([
            "",
            "**Mẹo điền form:**",
            "• Điền đầy đủ các trường bắt buộc trước",
            "• Kiểm tra định dạng email và số điện thoại",
            "• Đọc kỹ nhãn và placeholder của mỗi trường",
            "• Sử dụng nút Preview để xem form như người dùng",
        ])
        return "\n".join(lines)
