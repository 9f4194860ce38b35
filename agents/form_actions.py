"""Action commands embedded in assistant replies."""

import re
import logging
from typing import Optional, Dict, Any

from schemas.form_context import FormReadiness
from schemas.forms import FormDraft, FormField
from schemas.responses import FormAction, ParsedActions

logger = logging.getLogger(__name__)

_VALUE = r'"[^"]*"|\S*[^\s.,;!?]'

ACTION_PATTERN = re.compile(
    rf"UPDATE_FIELD:(?P<update_id>[^:\s]+):(?P<update_property>[^:\s]+):(?P<update_value>{_VALUE})"
    r"|DELETE_FIELD:(?P<delete_id>[^:\s]+)"
    r"|ADD_FIELD:(?P<add_type>[^:\s]+):(?P<add_label>[^:\n]+?):(?P<add_required>true|false)\b"
    r"|(?P<save>SAVE_FORM:confirm)"
    rf"|UPDATE_SETTING:(?P<setting>[^:\s]+):(?P<setting_value>{_VALUE})"
)

ACTION_INSTRUCTIONS = """When the user asks about form manipulation:
- To update a field: Provide clear instructions and format like "UPDATE_FIELD:{fieldId}:{property}:{value}"
- To delete a field: Format like "DELETE_FIELD:{fieldId}"
- To add a field: Format like "ADD_FIELD:{type}:{label}:{required}"
- To save form: First check readiness, then format like "SAVE_FORM:confirm"
- To update settings: Format like "UPDATE_SETTING:{setting}:{value}"
Values containing spaces must be wrapped in double quotes."""

FORM_ATTRIBUTE_SETTINGS = {
    "title", "description", "introduction", "start_date", "end_date", "is_active", "trigger_phrases",
}


class FormActionError(ValueError):
    """An action cannot be applied to the draft."""


def _unquote(value: str) -> str:
    if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
        return value[1:-1]
    return value


def _to_action(match: re.Match) -> FormAction:
    groups = match.groupdict()
    if groups["update_id"]:
        return FormAction(
            type="updateField",
            field_id=groups["update_id"],
            property=groups["update_property"],
            value=_unquote(groups["update_value"]),
        )
    if groups["delete_id"]:
        return FormAction(type="deleteField", field_id=groups["delete_id"])
    if groups["add_type"]:
        return FormAction(
            type="addField",
            field_type=groups["add_type"],
            label=groups["add_label"].strip(),
            required=groups["add_required"] == "true",
        )
    if groups["save"]:
        return FormAction(type="saveForm", confirm=True)
    return FormAction(
        type="updateSetting",
        setting=groups["setting"],
        value=_unquote(groups["setting_value"]),
    )


def parse_form_commands(text: str, readiness: Optional[FormReadiness] = None) -> ParsedActions:
    """
    Extract action commands from assistant text.

    Tokens are removed from the text, which is otherwise kept as is apart
    from trimming its ends. Actions come out in text order. A save command
    only becomes an action when the draft is ready to save; otherwise a
    notice listing what is missing is appended.

    Args:
        text: Assistant reply
        readiness: Readiness of the draft being edited

    Returns:
        ParsedActions with the cleaned text and the actions
    """
    text = text or ""
    actions = []
    save_refused = False

    for match in ACTION_PATTERN.finditer(text):
        action = _to_action(match)
        if action.type == "saveForm" and not (readiness and readiness.can_save):
            save_refused = True
            continue
        actions.append(action)

    cleaned = ACTION_PATTERN.sub("", text).strip()

    if save_refused:
        missing = readiness.missing_requirements if readiness else []
        notice = "⚠️ Form chưa sẵn sàng để lưu."
        if missing:
            notice += f" Còn thiếu: {', '.join(missing)}"
        cleaned = f"{cleaned}\n\n{notice}" if cleaned else notice

    if actions:
        logger.info(f"Parsed {len(actions)} form actions: {[a.type for a in actions]}")
    return ParsedActions(text=cleaned, actions=actions)


def parse_bool(value: Any) -> bool:
    """Booleans from model or command text: only true, "true", "1" and "yes" are true."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value == 1
    return str(value).strip().lower() in ("true", "1", "yes")


def _coerce_property(name: str, value: Any) -> Any:
    annotation = FormField.model_fields.get(name)
    if name == "required" or (annotation is not None and annotation.annotation is bool):
        return parse_bool(value)
    if name == "options" and isinstance(value, str):
        return [o.strip() for o in value.split(",") if o.strip()]
    return value


def _new_field_id(form: FormDraft, field_type: str) -> str:
    existing = {f.id for f in form.fields}
    n = len(form.fields) + 1
    while f"{field_type}_{n}" in existing:
        n += 1
    return f"{field_type}_{n}"


def apply_action(form: FormDraft, action: FormAction) -> FormDraft:
    """
    Apply one action to a draft in place.

    Args:
        form: Draft to mutate
        action: Parsed action

    Returns:
        The same draft

    Raises:
        FormActionError: If the field does not exist or the action is unknown
    """
    if action.type == "updateField":
        field = next((f for f in form.fields if f.id == action.field_id), None)
        if field is None:
            raise FormActionError(f"Field not found: {action.field_id}")
        setattr(field, action.property, _coerce_property(action.property, action.value))

    elif action.type == "deleteField":
        remaining = [f for f in form.fields if f.id != action.field_id]
        if len(remaining) == len(form.fields):
            raise FormActionError(f"Field not found: {action.field_id}")
        form.fields = remaining

    elif action.type == "addField":
        field_type = action.field_type or "text"
        field_id = _new_field_id(form, field_type)
        form.fields.append(FormField(
            id=field_id,
            name=field_id,
            type=field_type,
            label=action.label,
            required=bool(action.required),
        ))

    elif action.type == "updateSetting":
        if action.setting in FORM_ATTRIBUTE_SETTINGS:
            value: Any = action.value
            if action.setting == "is_active":
                value = parse_bool(value)
            elif action.setting == "trigger_phrases":
                value = [p.strip() for p in str(value).split(",") if p.strip()]
            setattr(form, action.setting, value)
        else:
            form.settings[action.setting] = action.value

    elif action.type == "saveForm":
        pass

    else:
        raise FormActionError(f"Unknown action type: {action.type}")

    return form


def apply_actions(form: FormDraft, actions: list) -> Dict[str, Any]:
    """Apply actions in order; failures are collected, not raised."""
    applied, errors = [], []
    for action in actions:
        try:
            apply_action(form, action)
            applied.append(action.type)
        except FormActionError as e:
            logger.warning(f"Skipping form action {action.type}: {e}")
            errors.append(str(e))
    return {"form": form, "applied": applied, "errors": errors}
