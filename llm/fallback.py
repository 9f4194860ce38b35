"""Deterministic replies used when the hosted model is unavailable."""

import re
import logging
from typing import Optional, List

from schemas.responses import ChatCompletionResult, ErrorCategory
from .base_client import Message
from .errors import classify_provider_error

logger = logging.getLogger(__name__)

FALLBACK_SERVICE = "safe-fallback"

FORM_CONTEXT_MARKERS = ("Current Form Context", "form state")
FORM_TITLE_PATTERN = re.compile(r'Form "([^"]+)"')
FIELD_COUNT_PATTERN = re.compile(r"(\d+) trường")
GREETING_PATTERN = re.compile(r"xin chào|chào|\b(hi|hello)\b", re.IGNORECASE)

ERROR_HINTS = {
    ErrorCategory.NOT_FOUND: (
        "💡 *Lưu ý: Hệ thống AI đang gặp vấn đề cấu hình. "
        "Vui lòng kiểm tra Azure OpenAI deployment và endpoint.*"
    ),
    ErrorCategory.AUTH: "💡 *Lưu ý: Vấn đề xác thực AI service. Vui lòng kiểm tra API key.*",
}
GENERIC_ERROR_HINT = "💡 *Lưu ý: AI service tạm thời không khả dụng, nhưng tôi vẫn có thể hỗ trợ bạn.*"


class FallbackResponder:
    """
    Keyword-driven responder.

    Conversations whose system prompt carries form state get form-aware
    replies; everything else gets a general reply. Output depends only
    on the messages and the error category.
    """

    def respond(
        self,
        messages: List[Message],
        error: Optional[BaseException] = None,
        category: Optional[ErrorCategory] = None
    ) -> ChatCompletionResult:
        """
        Build a fallback result.

        Args:
            messages: Conversation sent to the model
            error: Provider error that triggered the fallback
            category: Error category (derived from error when omitted)

        Returns:
            ChatCompletionResult with fallback=True
        """
        last_user = next((m.content for m in reversed(messages) if m.role == "user"), "")
        system = next((m.content for m in messages if m.role == "system"), "")

        if any(marker in system for marker in FORM_CONTEXT_MARKERS):
            response = self.form_context_reply(last_user, system)
        else:
            response = self.general_reply(last_user)

        if error is not None and category is None:
            category = classify_provider_error(error)
        if category is not None:
            response += "\n\n" + ERROR_HINTS.get(category, GENERIC_ERROR_HINT)

        return ChatCompletionResult(
            success=True,
            response=response,
            service=FALLBACK_SERVICE,
            fallback=True,
            original_error=str(error) if error is not None else None,
            error_category=category
        )

    @staticmethod
    def form_info(system: str) -> str:
        """One-line summary of the form named in the system prompt."""
        title_match = FORM_TITLE_PATTERN.search(system)
        count_match = FIELD_COUNT_PATTERN.search(system)
        if not title_match and not count_match:
            return ""
        title = title_match.group(1) if title_match else "Không có tiêu đề"
        count = count_match.group(1) if count_match else "0"
        return f"📋 Form hiện tại: {title} ({count} trường)"

    def form_context_reply(self, user_message: str, system: str) -> str:
        lower = user_message.lower()
        info = self.form_info(system)

        if any(k in lower for k in ("trạng thái", "status", "thế nào", "như nào")):
            return (
                "🤖 Tôi đang tạm thời không thể kết nối với AI service, nhưng vẫn có thể giúp bạn!\n\n"
                f"{info}\n\n"
                "Bạn có thể:\n"
                "• Xem và chỉnh sửa form bằng giao diện\n"
                "• Hỏi tôi về các trường cụ thể\n"
                "• Thử lưu form nếu đã hoàn thành"
            )

        if "lưu" in lower or "save" in lower:
            return (
                "💾 Để lưu form, bạn có thể:\n\n"
                "1. Kiểm tra form đã có đủ thông tin cần thiết\n"
                '2. Click nút "Lưu form" trong giao diện\n'
                "3. Hoặc sử dụng chức năng Export\n\n"
                f"{info or '📋 Hãy đảm bảo form có ít nhất tiêu đề và 2 trường thông tin.'}"
            )

        if "field" in lower or "trường" in lower:
            return (
                "📝 Về các trường trong form:\n\n"
                f"{info}\n\n"
                "Bạn có thể:\n"
                '• Thêm trường mới bằng nút "+" trong giao diện\n'
                "• Chỉnh sửa trường bằng cách click vào nó\n"
                "• Xóa trường không cần thiết\n"
                "• Đặt trường bắt buộc/tùy chọn"
            )

        return (
            "🤖 Xin chào! AI service tạm thời gặp vấn đề, nhưng tôi vẫn có thể hỗ trợ bạn.\n\n"
            f"{info}\n\n"
            "💡 Bạn có thể:\n"
            "• Sử dụng giao diện để chỉnh sửa form\n"
            "• Xem preview form\n"
            "• Thêm/xóa/sửa các trường\n"
            "• Lưu form khi hoàn thành\n\n"
            "Hãy cho tôi biết bạn cần hỗ trợ gì cụ thể!"
        )

    def general_reply(self, user_message: str) -> str:
        lower = user_message.lower()

        if GREETING_PATTERN.search(lower):
            return (
                "Xin chào! 👋 Tôi là FormAgent AI.\n\n"
                "Hiện AI service đang gặp vấn đề kỹ thuật, nhưng tôi vẫn có thể hỗ trợ bạn:\n\n"
                "📝 **Tạo form:** Sử dụng giao diện để tạo form\n"
                "💬 **Hướng dẫn:** Giải đáp các câu hỏi về form\n"
                "🔧 **Chỉnh sửa:** Hỗ trợ tùy chỉnh form\n\n"
                "Bạn muốn làm gì hôm nay?"
            )

        if any(k in lower for k in ("tạo form", "tạo biểu mẫu", "form mới")):
            return (
                "📝 Để tạo form mới:\n\n"
                '1. **Sử dụng giao diện:** Click "Thêm trường" để tạo form thủ công\n'
                "2. **Template có sẵn:** Chọn từ các mẫu form phổ biến\n"
                "3. **Import:** Nhập từ file CSV/JSON\n\n"
                "💡 Mặc dù AI tạm thời không khả dụng, bạn vẫn có thể tạo form hiệu quả với các công cụ có sẵn!"
            )

        if any(k in lower for k in ("giúp", "help", "hướng dẫn")):
            return (
                "🤖 **FormAgent AI - Hỗ trợ thủ công**\n\n"
                "**Tính năng hiện có:**\n"
                "📝 Tạo form bằng giao diện\n"
                "✏️ Chỉnh sửa trường form\n"
                "👁️ Preview form\n"
                "💾 Lưu và chia sẻ form\n"
                "📊 Xem submissions\n\n"
                "**Cách sử dụng:**\n"
                "1. Thêm các trường cần thiết\n"
                "2. Cấu hình thuộc tính trường\n"
                "3. Preview và kiểm tra\n"
                "4. Lưu form\n\n"
                "*AI service sẽ sớm hoạt động trở lại!*"
            )

        return (
            "🤖 Xin chào! Tôi là FormAgent AI.\n\n"
            "Hiện tại AI service gặp vấn đề kỹ thuật, nhưng FormAgent vẫn hoạt động bình thường với:\n\n"
            "✅ Tạo form thủ công\n"
            "✅ Chỉnh sửa form\n"
            "✅ Preview form\n"
            "✅ Lưu và chia sẻ\n\n"
            "Bạn có thể tiếp tục sử dụng giao diện để tạo form. Tôi sẽ hỗ trợ hướng dẫn khi cần! 😊"
        )
