"""Assistant persona and response guidelines."""

import random
import logging
from pathlib import Path
from typing import Optional, List, Dict, Any, Union

import yaml

from schemas.context import Guidelines, Greeting, UserType

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "personality.yaml"


class PersonalityProfile:
    """Greetings, tips and style rules for FormAgent AI."""

    LONG_CONVERSATION_MESSAGES = 10

    def __init__(
        self,
        config_path: Optional[Union[str, Path]] = None,
        config: Optional[Dict[str, Any]] = None
    ):
        if config is None:
            path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
            with open(path, "r", encoding="utf-8") as f:
                config = yaml.safe_load(f) or {}
            logger.info(f"Loaded personality config from {path}")
        self.config = config

    @property
    def name(self) -> str:
        return self.config.get("personality", {}).get("name", "FormAgent AI")

    @property
    def language(self) -> str:
        return self.config.get("personality", {}).get("language", "Vietnamese")

    def as_dict(self) -> Dict[str, Any]:
        """Persona traits for prompt context."""
        return dict(self.config.get("personality", {}))

    def enforce_guidelines(self, user_type: UserType, history_length: int = 0) -> Guidelines:
        """
        Response guidelines for a user.

        Args:
            user_type: Familiarity of the user
            history_length: Number of messages in recent history

        Returns:
            Guidelines; long conversations get shorter answers
        """
        personality = self.config.get("personality", {})
        style = self.config.get("response_style", {})
        return Guidelines(
            should_use_emojis=style.get("use_emojis", True),
            tone=personality.get("tone", "friendly"),
            language=personality.get("language", "Vietnamese"),
            response_style=self._contextual(user_type),
            max_length=200 if history_length > self.LONG_CONVERSATION_MESSAGES else 400,
        )

    def contextual_greeting(self, user_type: UserType) -> Greeting:
        """Random greeting and follow-up plus user-type specific tips."""
        greeting_cfg = self.config.get("greeting", {})
        contextual = self._contextual(user_type)
        return Greeting(
            greeting=random.choice(greeting_cfg.get("messages") or [f"Xin chào! Tôi là {self.name}"]),
            follow_up=random.choice(greeting_cfg.get("follow_up") or ["Bạn cần hỗ trợ gì?"]),
            contextual_message=contextual.get("message"),
            tips=list(contextual.get("tips", [])),
        )

    def help_messages(self, topic: str = "form_creation") -> List[str]:
        messages = self.config.get("help_messages", {})
        return list(messages.get(topic) or messages.get("form_creation", []))

    def response_template(self, kind: str) -> str:
        """Random response template ("success", "error", "clarification")."""
        templates = self.config.get("response_templates", {}).get(kind) or [""]
        return random.choice(templates)

    def form_type_names(self) -> Dict[str, str]:
        return {
            key: value.get("name", key)
            for key, value in self.config.get("form_types", {}).items()
        }

    def _contextual(self, user_type: UserType) -> Dict[str, Any]:
        responses = self.config.get("contextual_responses", {})
        key = user_type.value if isinstance(user_type, UserType) else str(user_type)
        return dict(responses.get(key) or responses.get(UserType.FIRST_TIME.value, {}))
