"""Form-aware chat assistant agent."""

import logging
from datetime import datetime
from typing import Optional, List, Dict, Any, Union

from pydantic import BaseModel, Field

from llm.base_client import Message
from llm.safe_client import SafeAIClient
from schemas.context import ConversationContext
from schemas.form_context import FormContextAnalysis
from schemas.forms import FormDraft
from schemas.responses import FormAction
from .form_actions import ACTION_INSTRUCTIONS, parse_form_commands
from .form_context import FormContextAgent

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 10


class AssistantTurn(BaseModel):
    """One assistant reply with its parsed actions."""
    response: str
    service: str
    fallback: bool = False
    form_actions: List[FormAction] = Field(default_factory=list)
    form_context: Optional[FormContextAnalysis] = None


class ChatAssistantAgent:
    """
    Conversational assistant for form building.

    When a form draft is supplied its analysis is added to the system
    prompt together with the action-command grammar, and the reply is
    scanned for action commands.
    """

    SYSTEM_PROMPT = """You are {name}, a friendly and knowledgeable AI assistant specialized in helping users with form creation and general conversation.

Your capabilities include:
1. Answering general questions in a natural and helpful way
2. Providing advice on form design and user experience
3. Explaining FormAgent features and capabilities
4. Having engaging conversations while being informative

Context Information:
- User ID: {user_id}
- Language: {language}
- User type: {user_type}
- Timestamp: {timestamp}

Guidelines:
- Be friendly, helpful, and conversational
- Ask clarifying questions when needed
- Maintain context from previous messages
- Keep answers under {max_length} words
- If you don't know something, say so honestly
- For form creation requests, guide users to use specific keywords like "tạo form", "tạo biểu mẫu"
{emoji_rule}"""

    def __init__(self, ai_client: SafeAIClient, form_context_agent: Optional[FormContextAgent] = None):
        """
        Initialize chat assistant.

        Args:
            ai_client: Safe AI client
            form_context_agent: Form analysis agent
        """
        self.ai_client = ai_client
        self.form_context_agent = form_context_agent or FormContextAgent()

    def analyze_form(self, form_data: Union[FormDraft, Dict[str, Any], None]) -> Optional[FormContextAnalysis]:
        """Analysis of the draft, or None when there is none or it cannot be read."""
        if not form_data:
            return None
        try:
            return self.form_context_agent.analyze_form_context(form_data)
        except Exception as e:
            logger.error(f"Form context analysis failed, continuing without it: {e}")
            return None

    def build_system_prompt(
        self,
        context: ConversationContext,
        user_id: str,
        language: str,
        analysis: Optional[FormContextAnalysis] = None
    ) -> str:
        guidelines = context.guidelines
        prompt = self.SYSTEM_PROMPT.format(
            name=context.personality.get("name", "FormAgent AI"),
            user_id=user_id or "anonymous",
            language=language,
            user_type=context.user_type.value,
            timestamp=datetime.now().isoformat(),
            max_length=guidelines.max_length,
            emoji_rule="- Use emojis sparingly to keep a warm tone" if guidelines.should_use_emojis else "",
        )

        if context.long_term:
            prompt += f"\n\nEarlier in this conversation:\n{context.long_term}"
        if context.key_topics:
            prompt += "\nFrequent topics: " + ", ".join(t.topic for t in context.key_topics)

        if analysis is not None:
            overview = analysis.overview
            prompt += (
                "\n\nCurrent Form Context:\n"
                f'Form "{overview.title}" ({overview.field_count} trường thông tin)\n'
                f"{self.form_context_agent.generate_context_response(analysis)}\n\n"
                "You have access to the current form state and can answer questions about it, "
                "suggest improvements, and perform actions on it.\n"
                f"{ACTION_INSTRUCTIONS}"
            )

        prompt += f"\n\nRespond naturally and helpfully in {language}."
        return prompt

    def handle_chat_message(
        self,
        message: str,
        context: ConversationContext,
        user_id: str = "anonymous",
        form_data: Union[FormDraft, Dict[str, Any], None] = None,
        language: str = "Vietnamese"
    ) -> AssistantTurn:
        """
        Answer a chat message.

        Args:
            message: User message
            context: Conversation context (short-term history may already end with message)
            user_id: User ID
            form_data: Draft being edited, if any
            language: Reply language

        Returns:
            AssistantTurn
        """
        analysis = self.analyze_form(form_data)

        messages = [Message(
            role="system",
            content=self.build_system_prompt(context, user_id, language, analysis)
        )]
        history = [m for m in context.short_term if m.role in ("user", "assistant")][-HISTORY_LIMIT:]
        messages.extend(Message(role=m.role, content=m.content) for m in history)
        if not history or history[-1].role != "user" or history[-1].content != message:
            messages.append(Message(role="user", content=message))

        result = self.ai_client.create_chat_completion(messages)
        response, service = result.response, result.service

        if result.fallback and analysis is not None:
            answer = self.form_context_agent.answer_form_query(message, analysis)
            response = answer or self.enhance_with_form_context(response, analysis)
            service = "enhanced-fallback"

        logger.info(
            f"Chat message processed: service={service}, fallback={result.fallback}, "
            f"has_form={analysis is not None}"
        )

        parsed = parse_form_commands(response, analysis.readiness if analysis else None)
        return AssistantTurn(
            response=parsed.text,
            service=service,
            fallback=result.fallback,
            form_actions=parsed.actions,
            form_context=analysis,
        )

    @staticmethod
    def enhance_with_form_context(response: str, analysis: FormContextAnalysis) -> str:
        overview = analysis.overview
        return (
            f"{response}\n\n📋 **Form hiện tại:**\n"
            f"• {overview.title} ({overview.field_count} trường)\n"
            f"• Trạng thái: {'Hợp lệ ✅' if analysis.validation.is_valid else 'Có lỗi ❌'}\n"
            f"• Sẵn sàng lưu: {'Có ✅' if analysis.readiness.can_save else 'Chưa ❌'}"
        )
