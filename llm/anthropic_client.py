"""Anthropic Claude LLM client implementation."""

import os
import logging
from typing import Optional, List

import anthropic

from .base_client import BaseLLMClient, Message, LLMResponse
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


class AnthropicClient(BaseLLMClient):
    """Anthropic Claude client implementation."""

    DEFAULT_MODEL = "claude-sonnet-4-20250514"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None
    ):
        """
        Initialize Anthropic client.

        Args:
            api_key: Anthropic API key (falls back to ANTHROPIC_API_KEY env var)
            model: Model to use (default: claude-sonnet-4-20250514)
        """
        self.api_key = api_key or os.environ.get("ANTHROPIC_API_KEY")
        self.model = model or self.DEFAULT_MODEL
        self.client = None

        if self.api_key:
            self.client = anthropic.Anthropic(api_key=self.api_key)
            logger.info(f"Anthropic client initialized with model: {self.model}")
        else:
            logger.warning("No Anthropic API key provided")

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    def chat(
        self,
        messages: List[Message],
        temperature: float = 0.7,
        max_tokens: int = 2000
    ) -> LLMResponse:
        """Send chat completion request to Anthropic."""
        if not self.client:
            raise ConfigurationError("Anthropic client not initialized. Check API key.")

        # System prompts go in a separate parameter
        system_content = "\n".join(m.content for m in messages if m.role == "system")
        conversation_messages = [
            {"role": m.role, "content": m.content}
            for m in messages if m.role != "system"
        ]

        kwargs = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": conversation_messages,
        }
        if system_content:
            kwargs["system"] = system_content.strip()

        response = self.client.messages.create(**kwargs)

        content = "".join(block.text for block in response.content if block.type == "text")

        usage = None
        if response.usage:
            usage = {
                "prompt_tokens": response.usage.input_tokens,
                "completion_tokens": response.usage.output_tokens,
                "total_tokens": response.usage.input_tokens + response.usage.output_tokens,
            }

        return LLMResponse(
            content=content,
            usage=usage,
            finish_reason=response.stop_reason
        )

    def get_provider_name(self) -> str:
        return "anthropic"

    def get_model_name(self) -> str:
        return self.model
