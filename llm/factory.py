"""LLM client factory."""

from enum import Enum
from typing import Optional

from config.settings import Settings
from .base_client import BaseLLMClient
from .openai_client import OpenAIClient, AzureOpenAIClient
from .anthropic_client import AnthropicClient


class LLMProvider(str, Enum):
    """Supported LLM providers."""
    OPENAI = "openai"
    AZURE = "azure"
    ANTHROPIC = "anthropic"


def create_llm_client(
    provider: LLMProvider,
    api_key: Optional[str] = None,
    model: Optional[str] = None,
    endpoint: Optional[str] = None,
    api_version: Optional[str] = None
) -> BaseLLMClient:
    """
    Create an LLM client for the specified provider.

    Args:
        provider: LLM provider (openai, azure or anthropic)
        api_key: API key for the provider
        model: Optional model override (deployment name for azure)
        endpoint: Azure resource endpoint
        api_version: Azure API version

    Returns:
        Configured LLM client

    Raises:
        ValueError: If provider is not supported
        ConfigurationError: If the azure endpoint or deployment is missing
    """
    if provider == LLMProvider.OPENAI:
        return OpenAIClient(api_key=api_key, model=model)
    elif provider == LLMProvider.AZURE:
        return AzureOpenAIClient(
            api_key=api_key,
            endpoint=endpoint,
            deployment=model,
            api_version=api_version or "2024-02-15-preview"
        )
    elif provider == LLMProvider.ANTHROPIC:
        return AnthropicClient(api_key=api_key, model=model)
    else:
        raise ValueError(f"Unsupported LLM provider: {provider}")


def create_llm_client_from_settings(settings: Settings) -> BaseLLMClient:
    """Create the client described by application settings."""
    return create_llm_client(
        LLMProvider(settings.ai_provider),
        api_key=settings.get_llm_api_key(),
        model=settings.get_model_name(),
        endpoint=settings.azure_endpoint,
        api_version=settings.azure_api_version
    )
