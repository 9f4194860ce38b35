"""Main orchestrator for FormAgent: chat, form generation and form storage."""

import uuid
import logging
from datetime import datetime
from typing import Optional, List, Dict, Any, Union

from config.settings import Settings
from schemas.forms import FormDraft, GeneratedForm, SubmissionInfo
from schemas.guardrails import FormIssue
from schemas.responses import ChatReply, FormAction, ModerationResult, SubmissionAnalysis, FormOptimization

# AI client
from llm.safe_client import SafeAIClient

# Memory components
from memory.factory import create_conversation_repository
from memory.history_service import ConversationHistoryService
from memory.form_store import FormStore, InMemoryFormStore, create_form_store
from memory.repository import ConversationRepository, InMemoryConversationRepository

# Agents
from agents.guardrails import GuardrailsEngine
from agents.personality import PersonalityProfile
from agents.form_context import FormContextAgent
from agents.form_actions import apply_action
from agents.chat_assistant import ChatAssistantAgent
from agents.llm_form_builder import LLMFormBuilderAgent, FormGenerationError
from agents.form_generator import FormGenerator
from agents.form_templates import generate_default_form, detect_form_type

logger = logging.getLogger(__name__)

FormInput = Union[FormDraft, Dict[str, Any]]

MAX_BULK_REQUESTS = 10


class FormRejected(ValueError):
    """A form failed a blocking guardrail check."""

    def __init__(self, issues: List[FormIssue]):
        self.issues = issues
        super().__init__("Form contains forbidden fields")


class AIServiceUnavailable(RuntimeError):
    """The operation needs the hosted model and the client is disabled."""

    def __init__(self):
        super().__init__("AI service is not enabled or configured")


class FormAgentOrchestrator:
    """Holds the single instances of every FormAgent service."""

    def __init__(self, settings: Optional[Settings] = None):
        """
        Initialize orchestrator.

        Args:
            settings: Application settings
        """
        self.settings = settings or Settings()

        self._init_guardrails()

        # Initialize memory
        self.repository: Optional[ConversationRepository] = None
        self.form_store: Optional[FormStore] = None
        self._init_memory()

        self.history = ConversationHistoryService(
            repository=self.repository,
            guardrails=self.guardrails,
            personality=self.personality,
            max_messages=self.settings.max_messages,
            context_window=self.settings.context_window,
            cache_ttl_minutes=self.settings.cache_ttl_minutes
        )

        # Initialize AI client; the provider is built lazily on first use
        self.ai_client = SafeAIClient(self.settings)

        # Initialize agents
        self._init_agents()

    def _init_guardrails(self):
        """Load guardrail and personality tables."""
        self.guardrails = GuardrailsEngine(config_path=self.settings.guardrails_path)
        self.personality = PersonalityProfile(config_path=self.settings.personality_path)
        logger.info(f"Guardrails and personality loaded ({self.personality.name})")

    def _init_memory(self):
        """Initialize conversation and form storage."""
        try:
            self.repository = create_conversation_repository(self.settings)
        except Exception as e:
            logger.error(f"Failed to initialize conversation storage: {e}")
            self.repository = InMemoryConversationRepository()

        try:
            self.form_store = create_form_store(self.settings)
        except Exception as e:
            logger.error(f"Failed to initialize form storage: {e}")
            self.form_store = InMemoryFormStore()

        logger.info(
            f"Memory initialized: conversations={type(self.repository).__name__}, "
            f"forms={type(self.form_store).__name__}"
        )

    def _init_agents(self):
        """Initialize agents on top of the shared AI client."""
        self.form_context_agent = FormContextAgent()
        self.chat_assistant = ChatAssistantAgent(self.ai_client, self.form_context_agent)
        self.form_builder = LLMFormBuilderAgent(self.ai_client)
        self.form_generator = FormGenerator(self.ai_client)

    def require_ai(self):
        """
        Raises:
            AIServiceUnavailable: If the AI client is disabled
        """
        if not self.ai_client.is_enabled:
            raise AIServiceUnavailable()

    # Chat

    def chat(
        self,
        message: str,
        conversation_id: Optional[str] = None,
        user_id: str = "anonymous",
        form_data: Optional[FormInput] = None,
        language: str = "Vietnamese"
    ) -> ChatReply:
        """
        Process a chat message end-to-end.

        Args:
            message: User message
            conversation_id: Conversation ID (generated when missing)
            user_id: User ID
            form_data: Draft being edited, if any
            language: Reply language

        Returns:
            ChatReply with parsed form actions
        """
        conversation_id = conversation_id or str(uuid.uuid4())

        if self.settings.verbose:
            print(f"\n{'='*60}")
            print(f"CHAT [{conversation_id}]: {message}")
            print(f"{'='*60}\n")

        added = self.history.add_message(
            conversation_id, "user", message, user_id=user_id,
            metadata={"has_form": form_data is not None}
        )
        context = self.history.get_conversation_context(conversation_id)

        turn = self.chat_assistant.handle_chat_message(
            message, context, user_id=user_id, form_data=form_data, language=language
        )

        topics = [t.topic for t in context.key_topics]
        response = self.guardrails.improve_response(
            turn.response, {"topic": topics[0] if topics else ""}
        )

        stored = self.history.add_message(
            conversation_id, "assistant", response, user_id=user_id,
            metadata={
                "service": turn.service,
                "fallback": turn.fallback,
                "form_actions": [a.type for a in turn.form_actions],
            }
        )

        if self.settings.verbose:
            print(f"  Service: {turn.service} (fallback={turn.fallback})")
            print(f"  Actions: {[a.type for a in turn.form_actions]}")

        return ChatReply(
            response=response,
            conversation_id=conversation_id,
            service=turn.service,
            fallback=turn.fallback,
            form_actions=turn.form_actions,
            form_context=turn.form_context.model_dump(mode="json") if turn.form_context else None,
            safety_warnings=[w.pattern for w in added.safety_check.warnings],
            message_count=stored.conversation.metadata.total_messages,
        )

    def greeting(self, conversation_id: str, user_id: str = "anonymous") -> Dict[str, Any]:
        return self.history.get_contextual_greeting(conversation_id, user_id).model_dump()

    # Form generation

    def generate_form(
        self,
        description: str,
        requirements: Optional[Dict[str, Any]] = None,
        conversation_id: Optional[str] = None,
        user_id: str = "anonymous"
    ) -> Dict[str, Any]:
        """
        Generate a form, trying each tier in order.

        The specialized builder runs first, then the one-shot generator,
        then the static templates. A tier is skipped when the AI client
        falls back or its output cannot be parsed.

        Args:
            description: What the form should collect
            requirements: field_count, form_type, target_audience, language
            conversation_id: Conversation to record the form in
            user_id: User ID

        Returns:
            Dict with generated_form, generated_by, validation and compliance_warnings
        """
        requirements = requirements or {}
        tiers = [
            ("builder", self.form_builder.generate_form),
            ("generator", self.form_generator.generate_form),
        ]

        generated: Optional[GeneratedForm] = None
        for name, generate in tiers:
            try:
                generated = generate(description, requirements)
                break
            except FormGenerationError as e:
                logger.warning(f"Form generation tier '{name}' skipped: {e}")

        if generated is None:
            generated = generate_default_form(description, requirements)

        draft = generated.to_draft()
        validation = self.guardrails.validate_form_design(draft)
        if not validation.safe:
            logger.warning(
                f"Generated form has blocking issues: {[i.type for i in validation.blocking_issues]}"
            )

        if conversation_id:
            self.history.get_or_create_conversation(conversation_id, user_id)
            self.history.record_form_creation(
                conversation_id,
                title=generated.title,
                form_type=requirements.get("form_type") or detect_form_type(description),
                field_count=len(generated.fields)
            )

        logger.info(f"Form generated by {generated.generated_by}: {generated.title}")
        return {
            "generated_form": generated,
            "generated_by": generated.generated_by,
            "validation": validation,
            "compliance_warnings": self.guardrails.generate_compliance_warnings(draft),
        }

    def bulk_generate(self, requests: List[Dict[str, Any]], user_id: str = "anonymous") -> Dict[str, Any]:
        """
        Generate several forms; per-request failures are collected.

        Raises:
            ValueError: If more than ten requests are given
        """
        if len(requests) > MAX_BULK_REQUESTS:
            raise ValueError(f"Maximum {MAX_BULK_REQUESTS} forms can be generated at once")

        results, errors = [], []
        for index, request in enumerate(requests):
            description = (request or {}).get("description")
            if not description:
                errors.append({"index": index, "error": "Description is required"})
                continue
            try:
                outcome = self.generate_form(description, request.get("requirements"), user_id=user_id)
            except Exception as e:
                logger.exception(f"Bulk generation failed for request {index}")
                errors.append({"index": index, "error": str(e)})
                continue
            results.append({"index": index, **outcome})

        return {"results": results, "errors": errors}

    def generate_title(self, description: str, tone: str = "professional") -> str:
        return self.form_generator.generate_title(description, tone)

    def generate_description(self, title: str, purpose: str = "") -> str:
        return self.form_generator.generate_description(title, purpose)

    def optimize_form(self, form: FormInput, goals: Optional[List[str]] = None) -> FormOptimization:
        return self.form_builder.optimize_form(form, goals)

    def moderate_content(self, content: str) -> ModerationResult:
        """
        Guardrail check first; the model is asked only about content that passes it.
        """
        safety = self.guardrails.check_content_safety(content)
        if not safety.safe:
            categories = [v.category for v in safety.violations]
            self.guardrails.log_violation("moderation_reject", {"categories": categories}, severity="high")
            return ModerationResult(
                is_appropriate=False,
                confidence=1.0,
                issues=categories,
                recommendation="reject",
                generated_by="guardrails",
            )

        result = self.form_generator.moderate_content(content)
        if safety.warnings:
            result.issues.extend(f"sensitive: {w.pattern}" for w in safety.warnings)
        return result

    def analyze_submissions(self, form_id: str, analysis_type: str = "summary") -> SubmissionAnalysis:
        """
        Raises:
            FormNotFound: If the form does not exist
        """
        self.form_store.get_form(form_id)
        submissions = self.form_store.all_submissions(form_id)
        return self.form_generator.analyze_submissions(submissions, analysis_type)

    # Form storage

    def save_form(
        self,
        form: FormInput,
        user_id: str = "anonymous",
        conversation_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Validate and store a form.

        Returns:
            Dict with the stored form, compliance warnings and non-blocking issues

        Raises:
            FormRejected: If guardrails report a blocking issue
        """
        validation = self.guardrails.validate_form_design(form)
        if not validation.safe:
            raise FormRejected(validation.blocking_issues)

        draft = form if isinstance(form, FormDraft) else FormDraft.model_validate(form)
        warnings = self.guardrails.generate_compliance_warnings(draft)
        draft = draft.model_copy(deep=True)
        draft.settings = {
            **draft.settings,
            "compliance_warnings": warnings,
            "validation_issues": [i.model_dump() for i in validation.issues],
        }
        if conversation_id:
            draft.settings["conversation_id"] = conversation_id

        saved = self.form_store.save_form(draft, user_id=user_id)

        if conversation_id:
            try:
                self.history.record_form_creation(
                    conversation_id,
                    title=saved.title,
                    form_type=detect_form_type(f"{saved.title} {saved.description}"),
                    field_count=len(saved.fields)
                )
            except Exception as e:
                logger.error(f"Failed to record form creation in conversation {conversation_id}: {e}")

        return {
            "form": saved,
            "warnings": warnings,
            "validation_issues": validation.issues,
            "disclaimers": self.guardrails.required_disclaimers(saved),
        }

    def update_form(self, form_id: str, updates: Dict[str, Any]) -> FormDraft:
        """
        Raises:
            FormNotFound: If the form does not exist
            FormRejected: If the updated form has a blocking issue
        """
        current = self.form_store.get_form(form_id)
        candidate = current.model_dump()
        candidate.update(updates)
        validation = self.guardrails.validate_form_design(candidate)
        if not validation.safe:
            raise FormRejected(validation.blocking_issues)
        return self.form_store.update_form(form_id, updates)

    def submit_form(self, form_id: str, data: Dict[str, Any], info: Optional[SubmissionInfo] = None):
        return self.form_store.add_submission(form_id, data, info)

    # Form-context helpers for the WebSocket handlers

    def form_status(self, form_data: FormInput, query: str = "status") -> Dict[str, Any]:
        """Status of a draft: "full", "validation", "readiness", "status" or a free-text question."""
        analysis = self.form_context_agent.analyze_form_context(form_data)
        overview, validation, readiness = analysis.overview, analysis.validation, analysis.readiness

        if query == "full":
            response = self.form_context_agent.generate_context_response(analysis)
        elif query == "validation":
            if validation.is_valid:
                response = "✅ Form không có lỗi"
            else:
                response = (
                    f"❌ Form có {len(validation.errors)} lỗi và {len(validation.warnings)} cảnh báo"
                )
        elif query == "readiness":
            state = "sẵn sàng" if readiness.can_save else "chưa sẵn sàng"
            response = f"Form {state} để lưu ({readiness.readiness_score}/100 điểm)"
        else:
            # Free-text questions get the per-intent answer when there is one
            answer = None
            if query != "status":
                answer = self.form_context_agent.answer_form_query(query, analysis)
            response = answer or (
                f"📋 {overview.title} - {overview.field_count} trường - "
                f"{'✅' if validation.is_valid else '❌'} - {readiness.readiness_score}/100 điểm"
            )

        return {"response": response, "form_context": analysis.model_dump(mode="json")}

    def manipulate_form(self, action: str, params: Dict[str, Any], form_data: FormInput) -> Dict[str, Any]:
        """
        Apply one editor action to a copy of the draft.

        Raises:
            FormActionError: If the action is unknown or the field does not exist
        """
        draft = FormDraft.model_validate(form_data) if isinstance(form_data, dict) else form_data.model_copy(deep=True)
        value = params.get("value")
        if isinstance(value, list):
            value = ",".join(str(v) for v in value)
        elif value is not None:
            value = str(value).lower() if isinstance(value, bool) else str(value)
        form_action = FormAction(
            type=action,
            field_id=params.get("field_id"),
            property=params.get("property"),
            value=value,
            field_type=params.get("field_type"),
            label=params.get("label"),
            required=params.get("required"),
            setting=params.get("setting"),
        )
        apply_action(draft, form_action)

        messages = {
            "updateField": f'Đã cập nhật trường "{form_action.field_id}"',
            "deleteField": f'Đã xóa trường "{form_action.field_id}"',
            "addField": f'Đã thêm trường mới "{form_action.label}"',
            "updateSetting": f"Đã cập nhật {form_action.setting}",
        }
        analysis = self.form_context_agent.analyze_form_context(draft)
        return {
            "response": messages.get(action, "Đã cập nhật form"),
            "updated_form_data": draft.model_dump(mode="json"),
            "form_context": analysis.model_dump(mode="json"),
        }

    def prepare_form_save(self, form_data: FormInput, confirm_save: bool = False) -> Dict[str, Any]:
        """
        Save handshake for the editor.

        Returns:
            Dict with ``event`` set to "form-save-confirmation" (not ready, or
            awaiting confirmation) or "form-save-ready"
        """
        analysis = self.form_context_agent.analyze_form_context(form_data)
        readiness = analysis.readiness
        now = datetime.now().isoformat()

        if not readiness.can_save:
            return {
                "event": "form-save-confirmation",
                "success": False,
                "can_save": False,
                "issues": readiness.missing_requirements,
                "warnings": readiness.warnings,
                "message": (
                    "Form chưa sẵn sàng để lưu. Còn thiếu: "
                    + ", ".join(readiness.missing_requirements)
                ),
                "timestamp": now,
            }

        draft = FormDraft.model_validate(form_data) if isinstance(form_data, dict) else form_data
        if not confirm_save:
            return {
                "event": "form-save-confirmation",
                "success": True,
                "can_save": True,
                "form_summary": {
                    "title": draft.title,
                    "description": draft.description,
                    "field_count": len(draft.fields),
                    "required_field_count": sum(1 for f in draft.fields if f.required),
                },
                "warnings": readiness.warnings,
                "message": "Form đã sẵn sàng để lưu. Bạn có chắc chắn muốn lưu form này?",
                "requires_confirmation": True,
                "timestamp": now,
            }

        return {
            "event": "form-save-ready",
            "success": True,
            "form_data": draft.model_dump(mode="json"),
            "validation": analysis.validation.model_dump(),
            "message": "Form đã được xác nhận và sẵn sàng lưu",
            "timestamp": now,
        }

    # Maintenance

    def cleanup(self) -> int:
        return self.history.cleanup_inactive_conversations()

    def archive(self, days: Optional[int] = None) -> int:
        return self.history.archive_old_conversations(days or self.settings.archive_after_days)
