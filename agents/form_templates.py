"""Static form templates used when no model can generate a form."""

import logging
from typing import Optional, Dict, Any, List

from schemas.forms import FormField, GeneratedForm

logger = logging.getLogger(__name__)

DEFAULT_FIELD_COUNT = 5


def _field(field_id: str, field_type: str, label: str, required: bool,
           placeholder: str = "", options: Optional[List[str]] = None) -> Dict[str, Any]:
    return {
        "id": field_id,
        "type": field_type,
        "name": field_id,
        "label": label,
        "required": required,
        "placeholder": placeholder,
        "options": options or [],
    }


TEMPLATES = {
    "registration": {
        "keywords": ("đăng ký", "registration"),
        "title": "Form Đăng Ký",
        "description": "Vui lòng điền đầy đủ thông tin để hoàn tất đăng ký",
        "fields": [
            _field("fullName", "text", "Họ và tên", True, "Nhập họ và tên đầy đủ"),
            _field("email", "email", "Email", True, "example@email.com"),
            _field("phone", "tel", "Số điện thoại", True, "0123456789"),
            _field("category", "select", "Loại đăng ký", True,
                   options=["Cá nhân", "Doanh nghiệp", "Tổ chức"]),
            _field("note", "textarea", "Ghi chú", False, "Ghi chú thêm (nếu có)"),
        ],
    },
    "survey": {
        "keywords": ("khảo sát", "survey"),
        "title": "Khảo Sát Ý Kiến",
        "description": "Ý kiến của bạn rất quan trọng với chúng tôi",
        "fields": [
            _field("name", "text", "Tên của bạn", False, "Tên (tùy chọn)"),
            _field("satisfaction", "radio", "Mức độ hài lòng", True,
                   options=["Rất hài lòng", "Hài lòng", "Bình thường", "Không hài lòng"]),
            _field("features", "checkbox", "Tính năng quan tâm", False,
                   options=["Giao diện", "Hiệu năng", "Tính năng", "Hỗ trợ"]),
            _field("feedback", "textarea", "Góp ý", True, "Chia sẻ ý kiến của bạn"),
            _field("rating", "number", "Đánh giá (1-10)", True, "10"),
        ],
    },
    "contact": {
        "keywords": ("liên hệ", "contact"),
        "title": "Liên Hệ",
        "description": "Chúng tôi sẽ phản hồi trong thời gian sớm nhất",
        "fields": [
            _field("name", "text", "Họ tên", True, "Nhập họ tên"),
            _field("email", "email", "Email", True, "your@email.com"),
            _field("subject", "text", "Chủ đề", True, "Chủ đề liên hệ"),
            _field("message", "textarea", "Nội dung", True, "Nội dung tin nhắn"),
            _field("priority", "select", "Mức độ ưu tiên", False,
                   options=["Thấp", "Trung bình", "Cao", "Khẩn cấp"]),
        ],
    },
}

GENERIC_TEMPLATE = {
    "title": "Form Đăng Ký",
    "description": "Vui lòng điền thông tin vào form dưới đây",
    "fields": [
        _field("name", "text", "Tên", True, "Nhập tên"),
        _field("email", "email", "Email", True, "email@example.com"),
        _field("phone", "tel", "Điện thoại", False, "Số điện thoại"),
        _field("message", "textarea", "Tin nhắn", True, "Nhập tin nhắn"),
        _field("date", "date", "Ngày", False),
    ],
}


def detect_form_type(description: str) -> Optional[str]:
    """Template name whose keywords appear in the description."""
    lower = (description or "").lower()
    for form_type, template in TEMPLATES.items():
        if any(k in lower for k in template["keywords"]):
            return form_type
    return None


def generate_default_form(description: str, requirements: Optional[Dict[str, Any]] = None) -> GeneratedForm:
    """
    Build a form from a static template.

    Args:
        description: What the form is for; keywords pick the template
        requirements: Optional ``field_count`` and ``language``

    Returns:
        GeneratedForm with generated_by="template"
    """
    requirements = requirements or {}
    field_count = requirements.get("field_count") or DEFAULT_FIELD_COUNT
    language = requirements.get("language", "Vietnamese")

    form_type = detect_form_type(description)
    template = TEMPLATES.get(form_type, GENERIC_TEMPLATE)
    fields = [dict(f) for f in template["fields"]][:field_count]

    while len(fields) < field_count:
        n = len(fields) + 1
        fields.append(_field(
            f"field_{n}", "text", f"Trường {n}", False, f"Nhập thông tin trường {n}"
        ))

    logger.info(f"Generated template form: type={form_type or 'generic'}, fields={len(fields)}")

    return GeneratedForm(
        title=template["title"],
        description=template["description"],
        fields=[FormField.model_validate(f) for f in fields],
        generated_by="template",
        language=language,
    )
