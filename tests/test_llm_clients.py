"""Tests for the provider clients and factory."""

import pytest
from types import SimpleNamespace
from unittest.mock import Mock

from config.settings import Settings
from llm.anthropic_client import AnthropicClient
from llm.base_client import Message
from llm.errors import ConfigurationError
from llm.factory import create_llm_client_from_settings
from llm.openai_client import OpenAIClient, AzureOpenAIClient

MESSAGES = [
    Message(role="system", content="Bạn là FormAgent"),
    Message(role="user", content="xin chào"),
]


class TestOpenAIClient:
    """Test the OpenAI chat client."""

    def test_chat_maps_response(self):
        """Test the SDK response becomes an LLMResponse."""
        client = OpenAIClient(api_key="sk-test", model="gpt-4o-mini")
        client.client = Mock()
        client.client.chat.completions.create.return_value = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="Chào bạn"), finish_reason="stop")],
            usage=SimpleNamespace(prompt_tokens=5, completion_tokens=3, total_tokens=8),
        )

        response = client.chat(MESSAGES, max_tokens=100)

        kwargs = client.client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["messages"][0] == {"role": "system", "content": "Bạn là FormAgent"}
        assert response.content == "Chào bạn"
        assert response.usage["total_tokens"] == 8

    def test_unconfigured_raises(self, monkeypatch):
        """Test a client without a key cannot chat."""
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        client = OpenAIClient()

        assert not client.is_configured
        with pytest.raises(ConfigurationError):
            client.chat(MESSAGES)


class TestAzureOpenAIClient:
    """Test the Azure deployment client."""

    def test_requires_endpoint_and_deployment(self, monkeypatch):
        """Test missing Azure settings raise ConfigurationError."""
        monkeypatch.delenv("AZURE_OPENAI_ENDPOINT", raising=False)
        monkeypatch.delenv("AZURE_OPENAI_DEPLOYMENT_NAME", raising=False)

        with pytest.raises(ConfigurationError):
            AzureOpenAIClient(api_key="key")

    def test_deployment_url(self):
        """Test the diagnostic URL adds the missing slash."""
        client = AzureOpenAIClient(
            api_key="key",
            endpoint="https://demo.openai.azure.com",
            deployment="gpt-4o",
            api_version="2024-02-15-preview"
        )

        assert client.get_model_name() == "gpt-4o"
        assert client.get_service_name() == "azure-openai"
        assert client.deployment_url() == (
            "https://demo.openai.azure.com/openai/deployments/gpt-4o/chat/completions"
            "?api-version=2024-02-15-preview"
        )


class TestAnthropicClient:
    """Test the Anthropic client."""

    def test_system_prompt_is_separate(self):
        """Test system messages are passed as the system parameter."""
        client = AnthropicClient(api_key="key")
        client.client = Mock()
        client.client.messages.create.return_value = SimpleNamespace(
            content=[SimpleNamespace(type="text", text="Chào bạn")],
            usage=SimpleNamespace(input_tokens=4, output_tokens=2),
            stop_reason="end_turn",
        )

        response = client.chat(MESSAGES)

        kwargs = client.client.messages.create.call_args.kwargs
        assert kwargs["system"] == "Bạn là FormAgent"
        assert kwargs["messages"] == [{"role": "user", "content": "xin chào"}]
        assert response.content == "Chào bạn"
        assert response.usage["total_tokens"] == 6


class TestFactory:
    """Test client creation from settings."""

    def test_openai_from_settings(self):
        """Test the configured provider and model are used."""
        settings = Settings(ai_provider="openai", openai_api_key="sk-test", openai_model="gpt-4o-mini")

        client = create_llm_client_from_settings(settings)

        assert isinstance(client, OpenAIClient)
        assert client.get_model_name() == "gpt-4o-mini"

    def test_anthropic_from_settings(self):
        """Test anthropic settings build an AnthropicClient."""
        client = create_llm_client_from_settings(Settings(ai_provider="anthropic", anthropic_api_key="key"))

        assert client.get_provider_name() == "anthropic"

    def test_unknown_provider(self):
        """Test unknown providers are rejected."""
        with pytest.raises(ValueError):
            create_llm_client_from_settings(Settings(ai_provider="cohere"))
