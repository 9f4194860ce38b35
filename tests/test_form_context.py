"""Tests for Form Context Agent."""

from agents.form_context import FormContextAgent


def _draft(**overrides):
    draft = {
        "title": "Đăng ký hội thảo",
        "description": "Form đăng ký tham dự",
        "fields": [
            {"id": "name", "type": "text", "label": "Họ tên", "required": True},
            {"id": "email", "type": "email", "label": "Email", "required": True},
        ],
    }
    draft.update(overrides)
    return draft


class TestFormValidation:
    """Test draft validation and readiness."""

    def setup_method(self):
        """Set up test fixtures."""
        self.agent = FormContextAgent()

    def test_valid_draft(self):
        """Test a complete draft is valid and can be saved."""
        analysis = self.agent.analyze_form_context(_draft())

        assert analysis.validation.is_valid
        assert analysis.readiness.can_save
        assert analysis.readiness.missing_requirements == []
        assert analysis.overview.required_field_count == 2

    def test_missing_title(self):
        """Test an empty title is an error."""
        validation = self.agent.validate_form(_draft(title="  "))

        assert not validation.can_save
        assert "Form cần có tiêu đề" in validation.errors

    def test_duplicate_ids(self):
        """Test duplicate field ids are reported."""
        fields = [
            {"id": "email", "type": "email", "label": "Email"},
            {"id": "email", "type": "email", "label": "Email 2"},
        ]
        validation = self.agent.validate_form(_draft(fields=fields))

        assert validation.errors == ["Có field ID trùng lặp: email"]

    def test_missing_options_is_warning(self):
        """Test choice fields without options only warn."""
        fields = [
            {"id": "name", "type": "text", "label": "Họ tên"},
            {"id": "size", "type": "select", "label": "Size"},
        ]
        validation = self.agent.validate_form(_draft(fields=fields))

        assert validation.is_valid
        assert validation.warnings == ['Field "Size" cần có ít nhất một lựa chọn']

    def test_end_date_before_start(self):
        """Test the end date must be after the start date."""
        validation = self.agent.validate_form(
            _draft(start_date="2026-05-10", end_date="2026-05-01")
        )

        assert "Ngày kết thúc phải sau ngày bắt đầu" in validation.errors

    def test_unparseable_dates_are_accepted(self):
        """Test dates that cannot be parsed do not fail validation."""
        validation = self.agent.validate_form(_draft(start_date="sắp tới", end_date="2026-05-01"))

        assert validation.is_valid

    def test_readiness_needs_two_fields(self):
        """Test a one-field draft is valid but not ready to save."""
        fields = [{"id": "name", "type": "text", "label": "Họ tên"}]
        readiness = self.agent.check_form_readiness(_draft(fields=fields))

        assert not readiness.can_save
        assert readiness.missing_requirements == ["Cần ít nhất 2 trường thông tin"]

    def test_readiness_score(self):
        """Test the score sums the passed checks."""
        analysis = self.agent.analyze_form_context(_draft())

        # title, description, fields, complete fields and no errors; no settings
        assert analysis.readiness.readiness_score == 90

    def test_empty_draft(self):
        """Test an empty dict is analyzed instead of raising."""
        analysis = self.agent.analyze_form_context({})

        assert analysis.overview.title == "Chưa có tiêu đề"
        assert not analysis.readiness.can_save
        # no fields counts as every field being complete
        assert analysis.readiness.readiness_score == 20


class TestFormAnalysis:
    """Test field analysis, suggestions and responses."""

    def setup_method(self):
        """Set up test fixtures."""
        self.agent = FormContextAgent()

    def test_field_issues_and_suggestions(self):
        """Test per-field findings."""
        fields = [
            {"id": "", "type": "radio", "label": "Giới tính", "options": ["Nam"]},
            {"id": "email", "type": "email", "label": "Email"},
        ]
        analysis = self.agent.analyze_form_context(_draft(fields=fields))

        first, second = analysis.fields.fields
        assert first.issues == ["Thiếu ID"]
        assert first.suggestions == ["Nên có ít nhất 2 lựa chọn"]
        assert second.suggestions == ['Thêm placeholder ví dụ: "email@example.com"']
        assert analysis.fields.type_distribution == {"radio": 1, "email": 1}

    def test_contact_suggestion(self):
        """Test forms without email or phone get a high priority suggestion."""
        fields = [{"id": "name", "type": "text", "label": "Họ tên"}]
        suggestions = self.agent.generate_suggestions(self.agent._coerce(_draft(fields=fields)))

        high = [s for s in suggestions if s.priority == "high"]
        assert len(high) == 1

    def test_textarea_ordering_suggestion(self):
        """Test long text fields before short ones are flagged."""
        fields = [
            {"id": "note", "type": "textarea", "label": "Ghi chú"},
            {"id": "name", "type": "text", "label": "Họ tên"},
            {"id": "email", "type": "email", "label": "Email"},
        ]
        suggestions = self.agent.generate_suggestions(self.agent._coerce(_draft(fields=fields)))

        assert any("textarea" in s.message for s in suggestions)

    def test_classify_form_query(self):
        """Test query intents."""
        assert self.agent.classify_form_query("Trạng thái form thế nào?") == "status"
        assert self.agent.classify_form_query("Kiểm tra lỗi giúp tôi") == "validation"
        assert self.agent.classify_form_query("Có gợi ý gì không") == "suggestions"
        assert self.agent.classify_form_query("Lưu được chưa?") == "readiness"
        assert self.agent.classify_form_query("trường email điền sao") == "field_help"
        assert self.agent.classify_form_query("Thời tiết hôm nay") == "general"

    def test_field_help_identifies_field(self):
        """Test field help names the field from the query."""
        analysis = self.agent.analyze_form_context(_draft())

        answer = self.agent.answer_form_query("trường email điền thế nào", analysis)

        assert answer.startswith('📝 **Hướng dẫn cho trường "Email":**')
        assert "user@example.com" in answer

    def test_general_query_has_no_answer(self):
        """Test general questions are left to the model."""
        analysis = self.agent.analyze_form_context(_draft())

        assert self.agent.answer_form_query("Thời tiết hôm nay", analysis) is None
