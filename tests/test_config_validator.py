"""Tests for the AI configuration validator."""

from unittest.mock import Mock

from config.settings import Settings
from llm.base_client import LLMResponse
from llm.errors import AuthError
from utils.config_validator import validate_ai_config, run_ai_config_test, log_config_status


def _openai(**overrides):
    values = dict(ai_provider="openai", openai_api_key="sk-test", max_tokens=2000, temperature=0.7,
                  ai_service_disabled=False)
    values.update(overrides)
    return Settings(**values)


class TestValidateAIConfig:
    """Test static configuration checks."""

    def test_valid_openai(self):
        """Test a complete OpenAI configuration."""
        validation = validate_ai_config(_openai())

        assert validation.is_valid
        assert "OpenAI API key provided" in validation.info

    def test_missing_openai_key(self):
        """Test a blank key is an error."""
        validation = validate_ai_config(_openai(openai_api_key=""))

        assert not validation.is_valid
        assert validation.errors == ["OpenAI API key not provided"]

    def test_placeholder_key_is_missing(self):
        """Test placeholder strings count as missing."""
        assert not validate_ai_config(_openai(openai_api_key="undefined")).is_valid

    def test_azure_endpoint_warnings(self):
        """Test odd Azure endpoints only warn."""
        settings = Settings(
            ai_provider="azure",
            azure_api_key="key",
            azure_endpoint="https://example.com",
            azure_deployment="gpt-4o",
            ai_service_disabled=False,
            max_tokens=2000,
            temperature=0.7,
        )

        validation = validate_ai_config(settings)

        assert validation.is_valid
        assert validation.warnings == [
            "Endpoint does not appear to be Azure OpenAI format",
            "Endpoint should end with a slash (/)",
        ]

    def test_unknown_provider(self):
        """Test unknown providers are rejected."""
        validation = validate_ai_config(_openai(ai_provider="cohere"))

        assert validation.errors == ["Unknown AI provider: cohere"]

    def test_tuning_warnings(self):
        """Test out-of-range temperature and large max_tokens warn."""
        validation = validate_ai_config(_openai(temperature=3, max_tokens=8000))

        assert validation.is_valid
        assert len(validation.warnings) == 2


class TestRunAIConfigTest:
    """Test the live configuration check with a stubbed client."""

    def test_invalid_config_skips_request(self):
        """Test no client is built when validation fails."""
        factory = Mock()

        result = run_ai_config_test(_openai(openai_api_key=""), client_factory=factory)

        factory.assert_not_called()
        assert result["success"] is False
        assert result["error"] == "Configuration validation failed"

    def test_success(self):
        """Test a successful request returns the reply."""
        client = Mock()
        client.chat.return_value = LLMResponse(content="Test successful", usage={"total_tokens": 12})

        result = run_ai_config_test(_openai(), client_factory=lambda settings: client)

        assert result["success"] is True
        assert result["response"] == "Test successful"
        assert result["usage"] == {"total_tokens": 12}

    def test_auth_failure_suggestions(self):
        """Test auth failures come back with suggestions."""
        client = Mock()
        client.chat.side_effect = AuthError("bad key", status_code=401)

        result = run_ai_config_test(_openai(), client_factory=lambda settings: client)

        assert result["success"] is False
        assert result["error"] == "Unauthorized - check API key"
        assert result["status"] == 401
        assert result["suggestions"]

    def test_log_config_status(self):
        """Test logging returns the validation it logged."""
        validation = log_config_status(_openai(), {"success": False, "error": "x"})

        assert validation.is_valid
