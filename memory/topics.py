"""Topic detection and concatenative summaries for long-term memory."""

import re
from typing import Iterable, List

TOPIC_PATTERNS = {
    "form_creation": re.compile(r"tạo form|tạo biểu mẫu|form mới", re.IGNORECASE),
    "registration": re.compile(r"đăng ký|registration", re.IGNORECASE),
    "survey": re.compile(r"khảo sát|survey|ý kiến", re.IGNORECASE),
    "contact": re.compile(r"liên hệ|contact|hỗ trợ", re.IGNORECASE),
    "optimization": re.compile(r"tối ưu|optimize|cải thiện", re.IGNORECASE),
    "design": re.compile(r"thiết kế|design|giao diện", re.IGNORECASE),
    "validation": re.compile(r"validation|kiểm tra|xác thực", re.IGNORECASE),
    "integration": re.compile(r"tích hợp|integration|api", re.IGNORECASE),
}

MAX_SUMMARY_LENGTH = 2000


def extract_topics(contents: Iterable[str]) -> List[str]:
    """
    Topics mentioned in a batch of messages.

    Each topic appears at most once, in table order.
    """
    found = set()
    for content in contents:
        for topic, pattern in TOPIC_PATTERNS.items():
            if pattern.search(content or ""):
                found.add(topic)
    return [topic for topic in TOPIC_PATTERNS if topic in found]


def summarize(messages) -> str:
    """One-line summary of a batch of messages."""
    user_count = sum(1 for m in messages if m.role == "user")
    assistant_count = sum(1 for m in messages if m.role == "assistant")
    topics = extract_topics(m.content for m in messages)
    return (
        f"Conversation summary: {user_count} user questions, "
        f"{assistant_count} responses. Topics: {', '.join(topics)}"
    )


def merge_summaries(old: str, new: str, max_length: int = MAX_SUMMARY_LENGTH) -> str:
    """Append a new summary to the old one, keeping the newest text within max_length."""
    merged = f"{old}\n\nRecent activity: {new}" if old else new
    if len(merged) > max_length:
        merged = merged[-max_length:]
    return merged
