"""Tests for form action commands and templates."""

import pytest
from agents.form_actions import parse_form_commands, apply_action, apply_actions, FormActionError
from agents.form_templates import generate_default_form, detect_form_type
from schemas.form_context import FormReadiness
from schemas.forms import FormDraft, FormField
from schemas.responses import FormAction

READY = FormReadiness(can_save=True)
NOT_READY = FormReadiness(can_save=False, missing_requirements=["Tiêu đề form"])


def _draft():
    return FormDraft(
        title="Liên hệ",
        fields=[
            FormField(id="name", type="text", label="Họ tên"),
            FormField(id="email", type="email", label="Email", required=True),
        ],
    )


class TestParseFormCommands:
    """Test action command parsing."""

    def test_update_field_removed_from_text(self):
        """Test tokens are stripped and the rest of the text kept."""
        parsed = parse_form_commands('Đã cập nhật. UPDATE_FIELD:email:label:"Email công ty" Xong!')

        assert parsed.text == "Đã cập nhật.  Xong!"
        assert len(parsed.actions) == 1
        action = parsed.actions[0]
        assert action.type == "updateField"
        assert action.field_id == "email"
        assert action.property == "label"
        assert action.value == "Email công ty"

    def test_actions_in_text_order(self):
        """Test several commands come out in the order they appear."""
        text = (
            "DELETE_FIELD:phone\n"
            "ADD_FIELD:tel:Số điện thoại:true\n"
            "UPDATE_SETTING:description:Mẫu liên hệ"
        )
        parsed = parse_form_commands(text)

        assert [a.type for a in parsed.actions] == ["deleteField", "addField", "updateSetting"]
        add = parsed.actions[1]
        assert add.field_type == "tel"
        assert add.label == "Số điện thoại"
        assert add.required is True
        assert parsed.actions[2].value == "Mẫu"
        assert parsed.text == "liên hệ"

    def test_trailing_punctuation_stays_in_text(self):
        """Test sentence punctuation after an unquoted value is not part of it."""
        parsed = parse_form_commands("Đã bật UPDATE_FIELD:email:required:true. Còn gì nữa không?")

        assert parsed.actions[0].value == "true"
        assert parsed.text == "Đã bật . Còn gì nữa không?"

    def test_quoted_value_keeps_punctuation(self):
        """Test quoted values are taken as written."""
        parsed = parse_form_commands('UPDATE_FIELD:note:placeholder:"Ví dụ: abc."')

        assert parsed.actions[0].value == "Ví dụ: abc."

    def test_save_when_ready(self):
        """Test a save command becomes an action when the draft is ready."""
        parsed = parse_form_commands("Lưu thôi! SAVE_FORM:confirm", READY)

        assert [a.type for a in parsed.actions] == ["saveForm"]
        assert parsed.actions[0].confirm is True
        assert parsed.text == "Lưu thôi!"

    def test_save_refused_when_not_ready(self):
        """Test a save command on an incomplete draft becomes a notice."""
        parsed = parse_form_commands("SAVE_FORM:confirm", NOT_READY)

        assert parsed.actions == []
        assert parsed.text == "⚠️ Form chưa sẵn sàng để lưu. Còn thiếu: Tiêu đề form"

    def test_save_refused_without_form(self):
        """Test a save command with no draft is refused."""
        parsed = parse_form_commands("OK SAVE_FORM:confirm")

        assert parsed.actions == []
        assert parsed.text.startswith("OK\n\n⚠️")

    def test_plain_text(self):
        """Test text without commands passes through trimmed."""
        parsed = parse_form_commands("  Xin chào!  ")

        assert parsed.text == "Xin chào!"
        assert parsed.actions == []


class TestApplyAction:
    """Test applying actions to drafts."""

    def setup_method(self):
        """Set up test fixtures."""
        self.form = _draft()

    def test_update_field_required(self):
        """Test boolean properties are coerced from text."""
        apply_action(self.form, FormAction(type="updateField", field_id="name", property="required", value="true"))

        assert self.form.fields[0].required is True

    def test_update_field_options(self):
        """Test options are split on commas."""
        apply_action(self.form, FormAction(type="updateField", field_id="name", property="options", value="A, B,C"))

        assert self.form.fields[0].options == ["A", "B", "C"]

    def test_delete_field(self):
        """Test a field is removed by id."""
        apply_action(self.form, FormAction(type="deleteField", field_id="name"))

        assert [f.id for f in self.form.fields] == ["email"]

    def test_add_field_generates_id(self):
        """Test added fields get a unique id from their type."""
        apply_action(self.form, FormAction(type="addField", field_type="tel", label="SĐT", required=True))

        added = self.form.fields[-1]
        assert added.id == "tel_3"
        assert added.name == "tel_3"
        assert added.required is True

    def test_update_setting(self):
        """Test form attributes and free settings are both updatable."""
        apply_action(self.form, FormAction(type="updateSetting", setting="title", value="Mới"))
        apply_action(self.form, FormAction(type="updateSetting", setting="theme", value="dark"))
        apply_action(self.form, FormAction(type="updateSetting", setting="trigger_phrases", value="a, b"))

        assert self.form.title == "Mới"
        assert self.form.settings["theme"] == "dark"
        assert self.form.trigger_phrases == ["a", "b"]

    def test_missing_field_raises(self):
        """Test actions on unknown fields raise FormActionError."""
        with pytest.raises(FormActionError):
            apply_action(self.form, FormAction(type="deleteField", field_id="nope"))

    def test_unknown_action_raises(self):
        """Test unknown action types raise FormActionError."""
        with pytest.raises(FormActionError):
            apply_action(self.form, FormAction(type="explode"))

    def test_apply_actions_collects_errors(self):
        """Test batch application skips failing actions."""
        result = apply_actions(self.form, [
            FormAction(type="deleteField", field_id="nope"),
            FormAction(type="deleteField", field_id="name"),
        ])

        assert result["applied"] == ["deleteField"]
        assert result["errors"] == ["Field not found: nope"]


class TestFormTemplates:
    """Test static template selection."""

    def test_detect_form_type(self):
        """Test keywords select the template."""
        assert detect_form_type("Form đăng ký khóa học") == "registration"
        assert detect_form_type("customer survey") == "survey"
        assert detect_form_type("trang liên hệ") == "contact"
        assert detect_form_type("đặt bàn nhà hàng") is None

    def test_template_form(self):
        """Test template forms are tagged and sized."""
        form = generate_default_form("Khảo sát khách hàng")

        assert form.generated_by == "template"
        assert form.title == "Khảo Sát Ý Kiến"
        assert len(form.fields) == 5

    def test_field_count_pads_and_truncates(self):
        """Test requested field counts are honored."""
        padded = generate_default_form("liên hệ", {"field_count": 7})
        truncated = generate_default_form("liên hệ", {"field_count": 2})

        assert [f.id for f in padded.fields][-2:] == ["field_6", "field_7"]
        assert [f.id for f in truncated.fields] == ["name", "email"]

    def test_generic_template(self):
        """Test unknown descriptions get the generic template."""
        form = generate_default_form("đặt bàn nhà hàng", {"language": "English"})

        assert form.language == "English"
        assert form.fields[0].id == "name"
