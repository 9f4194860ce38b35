"""LLM client abstraction layer."""

from .base_client import BaseLLMClient, Message, LLMResponse
from .errors import (
    ProviderError,
    ConfigurationError,
    TransientProviderError,
    NotFoundError,
    AuthError,
    classify_provider_error,
)
from .factory import create_llm_client, create_llm_client_from_settings, LLMProvider
from .fallback import FallbackResponder
from .safe_client import SafeAIClient, ClientState

__all__ = [
    "BaseLLMClient",
    "Message",
    "LLMResponse",
    "ProviderError",
    "ConfigurationError",
    "TransientProviderError",
    "NotFoundError",
    "AuthError",
    "classify_provider_error",
    "create_llm_client",
    "create_llm_client_from_settings",
    "LLMProvider",
    "FallbackResponder",
    "SafeAIClient",
    "ClientState",
]
