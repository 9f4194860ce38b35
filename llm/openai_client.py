"""OpenAI and Azure OpenAI LLM client implementations."""

import os
import logging
from typing import Optional, List

from openai import OpenAI, AzureOpenAI

from .base_client import BaseLLMClient, Message, LLMResponse
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


class OpenAIClient(BaseLLMClient):
    """OpenAI chat completions client."""

    DEFAULT_MODEL = "gpt-3.5-turbo"

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None
    ):
        """
        Initialize OpenAI client.

        Args:
            api_key: OpenAI API key (falls back to OPENAI_API_KEY env var)
            model: Model to use (default: gpt-3.5-turbo)
        """
        self.api_key = api_key or os.environ.get("OPENAI_API_KEY")
        self.model = model or self.DEFAULT_MODEL
        self.client = None

        if self.api_key:
            self.client = self._create_client()
            logger.info(f"{self.get_provider_name()} client initialized with model: {self.model}")
        else:
            logger.warning(f"No API key provided for {self.get_provider_name()}")

    def _create_client(self):
        return OpenAI(api_key=self.api_key)

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    def chat(
        self,
        messages: List[Message],
        temperature: float = 0.7,
        max_tokens: int = 2000
    ) -> LLMResponse:
        """Send chat completion request."""
        if not self.client:
            raise ConfigurationError(f"{self.get_provider_name()} client not initialized. Check API key.")

        response = self.client.chat.completions.create(
            model=self.get_model_name(),
            messages=[{"role": m.role, "content": m.content} for m in messages],
            temperature=temperature,
            max_tokens=max_tokens,
        )

        choice = response.choices[0]
        usage = None
        if response.usage:
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        return LLMResponse(
            content=choice.message.content or "",
            usage=usage,
            finish_reason=choice.finish_reason
        )

    def get_provider_name(self) -> str:
        return "openai"

    def get_model_name(self) -> str:
        return self.model


class AzureOpenAIClient(OpenAIClient):
    """Azure-hosted OpenAI deployment."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        endpoint: Optional[str] = None,
        deployment: Optional[str] = None,
        api_version: str = "2024-02-15-preview"
    ):
        """
        Initialize Azure OpenAI client.

        Args:
            api_key: Azure OpenAI key (falls back to AZURE_OPENAI_API_KEY)
            endpoint: Resource endpoint, e.g. https://name.openai.azure.com/
            deployment: Deployment name, sent as the model
            api_version: Azure API version
        """
        self.endpoint = endpoint or os.environ.get("AZURE_OPENAI_ENDPOINT")
        self.deployment = deployment or os.environ.get("AZURE_OPENAI_DEPLOYMENT_NAME")
        self.api_version = api_version
        if not self.endpoint or not self.deployment:
            raise ConfigurationError("Azure OpenAI requires an endpoint and a deployment name")
        super().__init__(
            api_key=api_key or os.environ.get("AZURE_OPENAI_API_KEY"),
            model=self.deployment
        )

    def _create_client(self):
        return AzureOpenAI(
            api_key=self.api_key,
            azure_endpoint=self.endpoint,
            api_version=self.api_version
        )

    def get_provider_name(self) -> str:
        return "azure"

    def get_service_name(self) -> str:
        return "azure-openai"

    def deployment_url(self) -> str:
        """Full chat completions URL, used in diagnostics."""
        base = self.endpoint if self.endpoint.endswith("/") else self.endpoint + "/"
        return (
            f"{base}openai/deployments/{self.deployment}/chat/completions"
            f"?api-version={self.api_version}"
        )
