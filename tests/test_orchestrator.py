"""Tests for FormAgent Orchestrator."""

import pytest
from unittest.mock import Mock, patch

from agents.form_actions import FormActionError
from agents.llm_form_builder import FormGenerationError
from config.settings import Settings
from memory.errors import FormNotFound, SubmissionValidationError
from orchestrator import FormAgentOrchestrator, FormRejected, AIServiceUnavailable
from schemas.forms import GeneratedForm, FormField
from schemas.responses import ChatCompletionResult

FORM = {
    "title": "Đăng ký hội thảo",
    "description": "Hội thảo AI 2026",
    "fields": [
        {"id": "name", "type": "text", "label": "Họ tên", "required": True},
        {"id": "email", "type": "email", "label": "Email", "required": True},
    ],
}


def _orchestrator():
    return FormAgentOrchestrator(Settings(ai_service_disabled=True, memory_enabled=False))


class TestChat:
    """Test chat orchestration with the AI service disabled."""

    def setup_method(self):
        """Set up test fixtures."""
        self.orchestrator = _orchestrator()

    def test_chat_falls_back(self):
        """Test chat still answers when the model is unavailable."""
        reply = self.orchestrator.chat("xin chào", conversation_id="c1")

        assert reply.success
        assert reply.fallback
        assert reply.conversation_id == "c1"
        assert "FormAgent AI" in reply.response
        assert reply.message_count == 2

    def test_chat_generates_conversation_id(self):
        """Test a conversation id is created when none is given."""
        reply = self.orchestrator.chat("xin chào")

        assert reply.conversation_id

    def test_chat_with_form(self):
        """Test form-aware chat returns the form context."""
        reply = self.orchestrator.chat("trạng thái form?", conversation_id="c1", form_data=FORM)

        assert reply.service == "enhanced-fallback"
        assert reply.form_context["readiness"]["can_save"] is True

    def test_chat_reports_safety_warnings(self):
        """Test sensitive patterns in the user message are surfaced."""
        reply = self.orchestrator.chat("thêm trường mật khẩu", conversation_id="c1")

        assert len(reply.safety_warnings) == 1

    def test_history_is_kept(self):
        """Test both sides of the exchange are stored."""
        self.orchestrator.chat("xin chào", conversation_id="c1")
        self.orchestrator.chat("giúp tôi", conversation_id="c1")

        conversation = self.orchestrator.history.get_or_create_conversation("c1")
        assert [m.role for m in conversation.messages] == ["user", "assistant", "user", "assistant"]


class TestFormGeneration:
    """Test tiered form generation."""

    def setup_method(self):
        """Set up test fixtures."""
        self.orchestrator = _orchestrator()

    def test_template_tier_when_ai_disabled(self):
        """Test the template tier answers when both model tiers fall back."""
        outcome = self.orchestrator.generate_form("Form khảo sát khách hàng")

        assert outcome["generated_by"] == "template"
        assert outcome["generated_form"].title == "Khảo Sát Ý Kiến"
        assert outcome["validation"].safe

    def test_generator_tier_after_builder_fails(self):
        """Test the one-shot generator runs when the builder fails."""
        legacy = GeneratedForm(
            title="Legacy",
            fields=[FormField(id="a", label="A")],
            generated_by="legacy-ai",
        )
        with patch.object(self.orchestrator.form_builder, "generate_form",
                          side_effect=FormGenerationError("bad json")) as builder, \
                patch.object(self.orchestrator.form_generator, "generate_form",
                             return_value=legacy) as generator:
            outcome = self.orchestrator.generate_form("anything")

        builder.assert_called_once()
        generator.assert_called_once()
        assert outcome["generated_by"] == "legacy-ai"

    def test_builder_tier_first(self):
        """Test a successful builder skips the other tiers."""
        built = GeneratedForm(title="AI", fields=[FormField(id="a", label="A")], generated_by="ai")
        with patch.object(self.orchestrator.form_builder, "generate_form", return_value=built), \
                patch.object(self.orchestrator.form_generator, "generate_form") as generator:
            outcome = self.orchestrator.generate_form("anything")

        generator.assert_not_called()
        assert outcome["generated_by"] == "ai"

    def _model_replies(self, response):
        client = Mock()
        client.create_chat_completion.return_value = ChatCompletionResult(response=response, service="openai")
        self.orchestrator.form_builder.ai_client = client
        self.orchestrator.form_generator.ai_client = client
        return client

    def test_scalar_values_are_coerced(self):
        """Test a numeric label from the model is kept as text."""
        self._model_replies('{"title": "T", "fields": [{"name": "age", "type": "number", "label": 123}]}')

        outcome = self.orchestrator.generate_form("form đăng ký sự kiện")

        assert outcome["generated_by"] == "ai"
        assert outcome["generated_form"].fields[0].label == "123"

    def test_malformed_reply_ends_at_template(self):
        """Test replies without usable fields fall through both model tiers."""
        client = self._model_replies('{"title": "T", "fields": [123, "age"]}')

        outcome = self.orchestrator.generate_form("form đăng ký sự kiện")

        assert client.create_chat_completion.call_count == 2
        assert outcome["generated_by"] == "template"
        assert outcome["generated_form"].title == "Form Đăng Ký"

    def test_schema_error_skips_tier(self):
        """Test a form that fails validation is treated as a failed tier."""
        self._model_replies('{"title": "T", "fields": [{"name": "a", "label": "A"}]}')

        with patch("agents.llm_form_builder.GeneratedForm", side_effect=lambda **kwargs: FormField(required=object())):
            outcome = self.orchestrator.generate_form("form đăng ký sự kiện")

        assert outcome["generated_by"] == "template"

    def test_generation_recorded_in_conversation(self):
        """Test generated forms are remembered by the conversation."""
        self.orchestrator.generate_form("Form đăng ký", conversation_id="c1")

        greeting = self.orchestrator.greeting("c1")
        assert greeting["personal_touch"] == 'Lần trước bạn đã tạo "Form Đăng Ký" 📋'

    def test_bulk_generate(self):
        """Test bulk generation collects per-request errors."""
        outcome = self.orchestrator.bulk_generate([
            {"description": "khảo sát"},
            {"description": ""},
        ])

        assert [r["index"] for r in outcome["results"]] == [0]
        assert outcome["errors"] == [{"index": 1, "error": "Description is required"}]

    def test_bulk_generate_limit(self):
        """Test more than ten requests are refused."""
        with pytest.raises(ValueError):
            self.orchestrator.bulk_generate([{"description": "x"}] * 11)

    def test_require_ai(self):
        """Test operations needing the model raise when it is disabled."""
        with pytest.raises(AIServiceUnavailable):
            self.orchestrator.require_ai()

    def test_title_and_description_defaults(self):
        """Test content helpers answer without the model."""
        assert self.orchestrator.generate_title("form liên hệ") == "Liên Hệ"
        assert self.orchestrator.generate_description("Liên hệ").startswith("Vui lòng điền")


class TestModeration:
    """Test content moderation."""

    def setup_method(self):
        """Set up test fixtures."""
        self.orchestrator = _orchestrator()

    def test_guardrails_reject_first(self):
        """Test prohibited content is rejected without asking the model."""
        with patch.object(self.orchestrator.form_generator, "moderate_content") as model:
            result = self.orchestrator.moderate_content("click javascript:alert(1)")

        model.assert_not_called()
        assert not result.is_appropriate
        assert result.recommendation == "reject"
        assert result.generated_by == "guardrails"
        stats = self.orchestrator.guardrails.get_violation_stats()
        assert stats["by_type"] == {"moderation_reject": 1}

    def test_sensitive_content_is_flagged(self):
        """Test sensitive patterns are added to the model verdict."""
        result = self.orchestrator.moderate_content("Nhập số thẻ tín dụng của bạn")

        assert result.recommendation == "flag"
        assert any(issue.startswith("sensitive:") for issue in result.issues)


class TestFormStorage:
    """Test saving, updating and submitting forms."""

    def setup_method(self):
        """Set up test fixtures."""
        self.orchestrator = _orchestrator()

    def test_save_form(self):
        """Test a safe form is stored with compliance data."""
        outcome = self.orchestrator.save_form(FORM, user_id="u1")

        form = outcome["form"]
        assert form.form_id
        assert form.created_by == "u1"
        assert form.settings["compliance_warnings"] == []
        assert self.orchestrator.form_store.get_form(form.form_id).title == "Đăng ký hội thảo"

    def test_save_rejects_forbidden_field(self):
        """Test a credit card field blocks the save."""
        form = dict(FORM, fields=FORM["fields"] + [{"id": "cc", "label": "Credit card number"}])

        with pytest.raises(FormRejected) as excinfo:
            self.orchestrator.save_form(form)

        assert [i.type for i in excinfo.value.issues] == ["forbidden_field"]
        assert self.orchestrator.form_store.stats()["total_forms"] == 0

    def test_save_keeps_sensitive_warnings(self):
        """Test sensitive fields are saved with warnings and disclaimers."""
        form = dict(FORM, fields=FORM["fields"] + [{"id": "health", "label": "Tình trạng sức khỏe"}])

        outcome = self.orchestrator.save_form(form, conversation_id="c1")

        assert outcome["warnings"] == ["⚠️ Cảnh báo: Form này thu thập dữ liệu nhạy cảm"]
        assert outcome["disclaimers"] == ["Đây không phải tư vấn y tế chuyên nghiệp"]
        assert [i.type for i in outcome["validation_issues"]] == ["sensitive_data"]
        assert outcome["form"].settings["conversation_id"] == "c1"

    def test_update_form_rechecks_guardrails(self):
        """Test updates that add forbidden fields are rejected."""
        form_id = self.orchestrator.save_form(FORM)["form"].form_id

        with pytest.raises(FormRejected):
            self.orchestrator.update_form(form_id, {"fields": [{"id": "pw", "label": "Password"}]})

        updated = self.orchestrator.update_form(form_id, {"title": "Tên mới"})
        assert updated.title == "Tên mới"

    def test_submit_and_analyze(self):
        """Test submissions are validated, stored and analyzed."""
        form_id = self.orchestrator.save_form(FORM)["form"].form_id

        with pytest.raises(SubmissionValidationError):
            self.orchestrator.submit_form(form_id, {"name": "An", "email": "không phải email"})
        self.orchestrator.submit_form(form_id, {"name": "An", "email": "an@example.com"})

        analysis = self.orchestrator.analyze_submissions(form_id)
        assert analysis.total_submissions == 1
        assert analysis.generated_by == "statistics"

    def test_analyze_missing_form(self):
        """Test analysis of an unknown form raises FormNotFound."""
        with pytest.raises(FormNotFound):
            self.orchestrator.analyze_submissions("missing")


class TestEditorHelpers:
    """Test the form status, manipulation and save handshake."""

    def setup_method(self):
        """Set up test fixtures."""
        self.orchestrator = _orchestrator()

    def test_form_status_variants(self):
        """Test each status query shape."""
        readiness = self.orchestrator.form_status(FORM, "readiness")["response"]
        validation = self.orchestrator.form_status(FORM, "validation")["response"]
        short = self.orchestrator.form_status(FORM)["response"]

        assert readiness == "Form sẵn sàng để lưu (90/100 điểm)"
        assert validation == "✅ Form không có lỗi"
        assert short.startswith("📋 Đăng ký hội thảo - 2 trường")

    def test_form_status_free_text(self):
        """Test free-text questions are answered per intent."""
        help_text = self.orchestrator.form_status(FORM, "trường email điền thế nào")["response"]
        other = self.orchestrator.form_status(FORM, "thời tiết")["response"]

        assert help_text.startswith('📝 **Hướng dẫn cho trường "Email":**')
        assert other.startswith("📋 Đăng ký hội thảo - 2 trường")

    def test_manipulate_form(self):
        """Test an editor action returns the updated draft."""
        result = self.orchestrator.manipulate_form(
            "updateField", {"field_id": "name", "property": "required", "value": False}, FORM
        )

        assert result["updated_form_data"]["fields"][0]["required"] is False
        assert result["response"] == 'Đã cập nhật trường "name"'
        assert FORM["fields"][0]["required"] is True

    def test_manipulate_unknown_field(self):
        """Test actions on missing fields raise."""
        with pytest.raises(FormActionError):
            self.orchestrator.manipulate_form("deleteField", {"field_id": "nope"}, FORM)

    def test_save_handshake(self):
        """Test the save handshake asks for confirmation before saving."""
        not_ready = self.orchestrator.prepare_form_save({"title": "", "fields": []})
        confirm = self.orchestrator.prepare_form_save(FORM)
        ready = self.orchestrator.prepare_form_save(FORM, confirm_save=True)

        assert not_ready["event"] == "form-save-confirmation"
        assert not_ready["can_save"] is False
        assert confirm["requires_confirmation"] is True
        assert confirm["form_summary"]["required_field_count"] == 2
        assert ready["event"] == "form-save-ready"
        assert ready["form_data"]["title"] == "Đăng ký hội thảo"

    def test_archive(self):
        """Test archival runs against the repository."""
        self.orchestrator.chat("xin chào", conversation_id="c1")

        assert self.orchestrator.archive(30) == 0
        assert self.orchestrator.cleanup() == 0
