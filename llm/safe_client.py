"""LLM client wrapper that never raises to its callers."""

import logging
import threading
from enum import Enum
from typing import Optional, List, Dict, Any, Callable, Union

from config.settings import Settings
from schemas.responses import ChatCompletionResult, ErrorCategory, HealthStatus
from .base_client import BaseLLMClient, Message
from .errors import ConfigurationError, classify_provider_error, error_details
from .factory import create_llm_client_from_settings
from .fallback import FallbackResponder

logger = logging.getLogger(__name__)

NOT_FOUND_CAUSES = [
    "Deployment name incorrect or not found",
    "Model not deployed in Azure",
    "Endpoint URL incorrect",
    "API version not supported",
    "Resource not found in specified region",
]


class ClientState(str, Enum):
    """Lifecycle of the wrapped provider client."""
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    ENABLED = "enabled"
    DISABLED = "disabled"


def key_preview(api_key: Optional[str]) -> str:
    """First ten characters of a key, for logs."""
    return f"{api_key[:10]}..." if api_key else "MISSING"


class SafeAIClient:
    """
    Chat completion entry point used by every agent.

    The provider client is built on first use. A construction failure,
    a missing key or AI_SERVICE_DISABLED leaves the client DISABLED for
    the rest of the process; calls then go straight to the fallback
    responder. Provider errors on individual calls are classified, logged
    and answered by the fallback responder as well.
    """

    def __init__(
        self,
        settings: Settings,
        client_factory: Optional[Callable[[Settings], BaseLLMClient]] = None,
        responder: Optional[FallbackResponder] = None
    ):
        """
        Initialize the wrapper.

        Args:
            settings: Application settings
            client_factory: Builds the provider client (defaults to the llm factory)
            responder: Fallback responder
        """
        self.settings = settings
        self.responder = responder or FallbackResponder()
        self.client: Optional[BaseLLMClient] = None
        self.state = ClientState.UNINITIALIZED
        self.init_error: Optional[Exception] = None
        self._client_factory = client_factory or create_llm_client_from_settings
        self._init_lock = threading.Lock()

    @property
    def is_enabled(self) -> bool:
        return self.initialize() == ClientState.ENABLED

    @property
    def service_name(self) -> str:
        if self.client is not None:
            return self.client.get_service_name()
        return "azure-openai" if self.settings.ai_provider == "azure" else self.settings.ai_provider

    def initialize(self) -> ClientState:
        """Build the provider client once; later calls return the settled state."""
        with self._init_lock:
            if self.state != ClientState.UNINITIALIZED:
                return self.state
            self.state = ClientState.INITIALIZING

            if self.settings.ai_service_disabled:
                logger.warning("AI service disabled by configuration, using fallback responses")
                self.state = ClientState.DISABLED
                return self.state

            try:
                client = self._client_factory(self.settings)
                if not client.is_configured:
                    raise ConfigurationError(
                        f"No API key configured for provider '{self.settings.ai_provider}'"
                    )
            except Exception as e:
                logger.error(f"SafeAIClient initialization failed: {e}")
                self.init_error = e
                self.state = ClientState.DISABLED
                return self.state

            self.client = client
            self.state = ClientState.ENABLED
            logger.info(
                f"SafeAIClient initialized: provider={client.get_provider_name()}, "
                f"model={client.get_model_name()}"
            )
            return self.state

    def create_chat_completion(
        self,
        messages: List[Union[Message, Dict[str, str]]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None
    ) -> ChatCompletionResult:
        """
        Run a chat completion, falling back instead of raising.

        Args:
            messages: Conversation as Message objects or role/content dicts
            temperature: Sampling temperature (settings default when None)
            max_tokens: Response token limit (settings default when None)

        Returns:
            ChatCompletionResult; ``fallback`` is True when the model did not answer
        """
        messages = [m if isinstance(m, Message) else Message.model_validate(m) for m in messages]

        if self.initialize() != ClientState.ENABLED:
            category = ErrorCategory.CONFIGURATION if self.init_error else None
            return self.responder.respond(messages, error=self.init_error, category=category)

        temperature = self.settings.temperature if temperature is None else temperature
        max_tokens = self.settings.max_tokens if max_tokens is None else max_tokens
        model = self.client.get_model_name()

        logger.info(
            f"SafeAIClient: requesting completion from {self.service_name} "
            f"(model={model}, temperature={temperature}, max_tokens={max_tokens}, "
            f"messages={len(messages)})"
        )

        try:
            response = self.client.chat(messages, temperature=temperature, max_tokens=max_tokens)
        except Exception as e:
            category = classify_provider_error(e)
            self._log_failure(e, category, model, temperature, max_tokens, len(messages))
            return self.responder.respond(messages, error=e, category=category)

        logger.info(
            f"SafeAIClient: completion succeeded, length={len(response.content)}, "
            f"usage={response.usage}"
        )
        return ChatCompletionResult(
            success=True,
            response=response.content,
            usage=response.usage,
            service=self.service_name,
            fallback=False
        )

    def _log_failure(
        self,
        error: Exception,
        category: ErrorCategory,
        model: str,
        temperature: float,
        max_tokens: int,
        message_count: int
    ):
        details = error_details(error)
        logger.error(
            f"SafeAIClient: AI request failed ({category.value}): {details}; "
            f"provider={self.settings.ai_provider}, endpoint={self.settings.azure_endpoint}, "
            f"model={model}, api_version={self.settings.azure_api_version}, "
            f"api_key={key_preview(self.settings.get_llm_api_key())}, "
            f"request=(temperature={temperature}, max_tokens={max_tokens}, messages={message_count})"
        )

        if category == ErrorCategory.NOT_FOUND:
            deployment_url = getattr(self.client, "deployment_url", None)
            logger.error(
                f"SafeAIClient: 404 analysis, possible causes: {'; '.join(NOT_FOUND_CAUSES)}. "
                f"Endpoint: {self.settings.azure_endpoint}, "
                f"deployment: {self.settings.azure_deployment}, "
                f"API version: {self.settings.azure_api_version}, "
                f"full URL: {deployment_url() if deployment_url else 'n/a'}"
            )

    def health_check(self) -> HealthStatus:
        """Round-trip a tiny request through the provider."""
        state = self.initialize()
        if state != ClientState.ENABLED:
            reason = "AI service disabled" if self.settings.ai_service_disabled else "Client not initialized"
            return HealthStatus(healthy=False, reason=reason, service=self.service_name)

        result = self.create_chat_completion(
            [Message(role="user", content="Test message")],
            max_tokens=10
        )
        return HealthStatus(
            healthy=result.success and not result.fallback,
            reason="Fallback response" if result.fallback else "Working normally",
            service=result.service
        )

    def get_provider_info(self) -> Dict[str, Any]:
        """Provider configuration safe to expose to clients."""
        self.initialize()
        settings = self.settings
        info = {
            "provider": settings.ai_provider,
            "service": self.service_name,
            "model": settings.get_model_name() or (self.client.get_model_name() if self.client else None),
            "state": self.state.value,
            "enabled": self.state == ClientState.ENABLED,
            "has_api_key": bool(settings.get_llm_api_key()),
            "api_key_preview": key_preview(settings.get_llm_api_key()),
            "temperature": settings.temperature,
            "max_tokens": settings.max_tokens,
        }
        if settings.ai_provider == "azure":
            info.update({
                "endpoint": settings.azure_endpoint,
                "deployment": settings.azure_deployment,
                "api_version": settings.azure_api_version,
            })
        if self.init_error:
            info["init_error"] = str(self.init_error)
        return info
