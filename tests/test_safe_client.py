"""Tests for the safe AI client and fallback responder."""

import pytest
from unittest.mock import Mock

from config.settings import Settings
from llm.base_client import LLMResponse, Message
from llm.errors import (
    AuthError,
    ConfigurationError,
    NotFoundError,
    TransientProviderError,
    classify_provider_error,
)
from llm.fallback import FallbackResponder, FALLBACK_SERVICE
from llm.safe_client import SafeAIClient, ClientState, key_preview
from schemas.responses import ErrorCategory


class StatusError(Exception):
    """Error carrying an HTTP status like the SDK errors do."""

    def __init__(self, status_code):
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


def _client(chat_result=None, chat_error=None, configured=True):
    client = Mock()
    client.is_configured = configured
    client.get_provider_name.return_value = "openai"
    client.get_service_name.return_value = "openai"
    client.get_model_name.return_value = "gpt-test"
    if chat_error is not None:
        client.chat.side_effect = chat_error
    else:
        client.chat.return_value = chat_result or LLMResponse(content="Xin chào từ model", usage={"total_tokens": 5})
    return client


class TestFallbackResponder:
    """Test deterministic fallback replies."""

    def setup_method(self):
        """Set up test fixtures."""
        self.responder = FallbackResponder()

    def test_greeting(self):
        """Test greetings get the FormAgent introduction."""
        result = self.responder.respond([Message(role="user", content="xin chào")])

        assert result.success
        assert result.fallback
        assert result.service == FALLBACK_SERVICE
        assert "FormAgent AI" in result.response

    def test_form_creation_help(self):
        """Test form creation questions get manual instructions."""
        result = self.responder.respond([Message(role="user", content="Làm sao để tạo form mới?")])

        assert result.response.startswith("📝 Để tạo form mới")

    def test_form_context_save_reply(self):
        """Test save questions mention the form named in the system prompt."""
        messages = [
            Message(role="system", content='Current Form Context:\nForm "Đăng ký" (3 trường thông tin)'),
            Message(role="user", content="lưu form giúp tôi"),
        ]

        result = self.responder.respond(messages)

        assert "💾 Để lưu form" in result.response
        assert "📋 Form hiện tại: Đăng ký (3 trường)" in result.response

    def test_error_hint_by_category(self):
        """Test the error category selects the hint."""
        messages = [Message(role="user", content="giúp tôi")]

        auth = self.responder.respond(messages, error=AuthError("bad key", status_code=401))
        unknown = self.responder.respond(messages, error=RuntimeError("boom"))

        assert "API key" in auth.response
        assert auth.error_category == ErrorCategory.AUTH
        assert auth.original_error == "bad key"
        assert "tạm thời không khả dụng" in unknown.response

    def test_output_is_deterministic(self):
        """Test identical input gives identical output."""
        messages = [Message(role="user", content="trạng thái?")]

        assert self.responder.respond(messages).response == self.responder.respond(messages).response


class TestErrorClassification:
    """Test provider error classification."""

    @pytest.mark.parametrize("error,expected", [
        (NotFoundError("missing"), ErrorCategory.NOT_FOUND),
        (ConfigurationError("no key"), ErrorCategory.CONFIGURATION),
        (TransientProviderError("slow"), ErrorCategory.TRANSIENT),
        (StatusError(404), ErrorCategory.NOT_FOUND),
        (StatusError(403), ErrorCategory.AUTH),
        (StatusError(429), ErrorCategory.TRANSIENT),
        (StatusError(503), ErrorCategory.TRANSIENT),
        (TimeoutError(), ErrorCategory.TRANSIENT),
        (ValueError("odd"), ErrorCategory.UNKNOWN),
    ])
    def test_classify(self, error, expected):
        """Test errors map to their category."""
        assert classify_provider_error(error) == expected


class TestSafeAIClient:
    """Test SafeAIClient state handling."""

    def test_disabled_always_falls_back(self):
        """Test a disabled client answers every call with success and fallback."""
        factory = Mock()
        client = SafeAIClient(Settings(ai_service_disabled=True), client_factory=factory)

        for _ in range(100):
            result = client.create_chat_completion([{"role": "user", "content": "hello"}])
            assert result.success
            assert result.fallback

        assert client.state == ClientState.DISABLED
        factory.assert_not_called()

    def test_successful_completion(self):
        """Test provider replies pass through unchanged."""
        provider = _client()
        client = SafeAIClient(Settings(ai_service_disabled=False), client_factory=lambda s: provider)

        result = client.create_chat_completion([Message(role="user", content="hi")])

        assert result.success
        assert not result.fallback
        assert result.response == "Xin chào từ model"
        assert result.service == "openai"
        assert client.is_enabled

    def test_settings_defaults_are_used(self):
        """Test temperature and max_tokens default to the settings."""
        provider = _client()
        client = SafeAIClient(
            Settings(ai_service_disabled=False, temperature=0.2, max_tokens=321),
            client_factory=lambda s: provider
        )

        client.create_chat_completion([Message(role="user", content="hi")])

        _, kwargs = provider.chat.call_args
        assert kwargs == {"temperature": 0.2, "max_tokens": 321}

    def test_provider_error_is_classified(self):
        """Test a failing call falls back with the error category."""
        provider = _client(chat_error=StatusError(404))
        client = SafeAIClient(Settings(ai_service_disabled=False), client_factory=lambda s: provider)

        result = client.create_chat_completion([Message(role="user", content="hi")])

        assert result.success
        assert result.fallback
        assert result.error_category == ErrorCategory.NOT_FOUND
        assert result.original_error == "HTTP 404"
        assert client.state == ClientState.ENABLED

    def test_factory_failure_disables(self):
        """Test a construction failure disables the client for good."""
        factory = Mock(side_effect=RuntimeError("sdk missing"))
        client = SafeAIClient(Settings(ai_service_disabled=False), client_factory=factory)

        first = client.create_chat_completion([Message(role="user", content="hi")])
        client.create_chat_completion([Message(role="user", content="hi")])

        assert first.fallback
        assert first.error_category == ErrorCategory.CONFIGURATION
        assert client.state == ClientState.DISABLED
        assert factory.call_count == 1

    def test_unconfigured_client_disables(self):
        """Test a client without credentials is treated as disabled."""
        client = SafeAIClient(
            Settings(ai_service_disabled=False),
            client_factory=lambda s: _client(configured=False)
        )

        assert not client.is_enabled
        assert isinstance(client.init_error, ConfigurationError)

    def test_health_check(self):
        """Test the health check reflects the client state."""
        disabled = SafeAIClient(Settings(ai_service_disabled=True))
        healthy = SafeAIClient(Settings(ai_service_disabled=False), client_factory=lambda s: _client())

        assert disabled.health_check().reason == "AI service disabled"
        assert healthy.health_check().healthy

    def test_provider_info_hides_key(self):
        """Test provider info shows only a key preview."""
        settings = Settings(ai_service_disabled=True, ai_provider="openai", openai_api_key="sk-1234567890abcdef")
        info = SafeAIClient(settings).get_provider_info()

        assert info["api_key_preview"] == "sk-1234567..."
        assert "sk-1234567890abcdef" not in info.values()
        assert key_preview(None) == "MISSING"
