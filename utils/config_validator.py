"""Validate and test the AI provider configuration."""

import logging
from typing import Optional, List, Dict, Any, Callable

from pydantic import BaseModel, Field

from config.settings import Settings
from llm.base_client import BaseLLMClient, Message
from llm.errors import classify_provider_error, get_status_code
from llm.factory import LLMProvider, create_llm_client_from_settings
from schemas.responses import ErrorCategory

logger = logging.getLogger(__name__)

MAX_TOKENS_WARNING = 4096

FAILURE_HINTS = {
    ErrorCategory.NOT_FOUND: (
        "Resource not found - check deployment name and endpoint",
        [
            "Verify the Azure OpenAI deployment name is correct",
            "Check that the endpoint URL is correct",
            "Ensure the deployment is deployed and active in Azure",
        ],
    ),
    ErrorCategory.AUTH: (
        "Unauthorized - check API key",
        [
            "Verify the API key is correct and active",
            "Check that the key has access to the specified resource",
        ],
    ),
    ErrorCategory.CONFIGURATION: (
        "Client could not be configured",
        ["Check the provider settings in your environment"],
    ),
}

RATE_LIMIT_HINT = (
    "Rate limit exceeded",
    ["Wait a moment and try again", "Check your quota and usage limits"],
)


class ConfigValidation(BaseModel):
    """Outcome of a static configuration check."""
    is_valid: bool = True
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    info: List[str] = Field(default_factory=list)

    def error(self, message: str):
        self.errors.append(message)
        self.is_valid = False


def _missing(value: Optional[str]) -> bool:
    return not value or value in ("undefined", "null")


def validate_ai_config(settings: Settings) -> ConfigValidation:
    """
    Check the AI settings without contacting the provider.

    Args:
        settings: Application settings

    Returns:
        ConfigValidation with errors, warnings and info lines
    """
    validation = ConfigValidation()
    provider = settings.ai_provider

    if not provider:
        validation.error("AI provider not specified")
        return validation
    validation.info.append(f"Provider: {provider}")

    if provider == LLMProvider.AZURE.value:
        if _missing(settings.azure_api_key):
            validation.error("Azure OpenAI API key not provided")
        else:
            validation.info.append("API key provided")

        endpoint = settings.azure_endpoint
        if _missing(endpoint):
            validation.error("Azure OpenAI endpoint not provided")
        else:
            validation.info.append(f"Endpoint: {endpoint}")
            if "openai.azure.com" not in endpoint:
                validation.warnings.append("Endpoint does not appear to be Azure OpenAI format")
            if not endpoint.endswith("/"):
                validation.warnings.append("Endpoint should end with a slash (/)")

        if _missing(settings.azure_deployment):
            validation.error("Azure OpenAI deployment name not provided")
        else:
            validation.info.append(f"Deployment: {settings.azure_deployment}")

        validation.info.append(f"API Version: {settings.azure_api_version}")

    elif provider == LLMProvider.OPENAI.value:
        if _missing(settings.openai_api_key):
            validation.error("OpenAI API key not provided")
        else:
            validation.info.append("OpenAI API key provided")
        validation.info.append(f"Model: {settings.openai_model}")

    elif provider == LLMProvider.ANTHROPIC.value:
        if _missing(settings.anthropic_api_key):
            validation.error("Anthropic API key not provided")
        else:
            validation.info.append("Anthropic API key provided")

    else:
        validation.error(f"Unknown AI provider: {provider}")

    if not 0 <= settings.temperature <= 2:
        validation.warnings.append("Temperature should be between 0 and 2")
    if settings.max_tokens > MAX_TOKENS_WARNING:
        validation.warnings.append("Max tokens is very high, may cause slower responses")
    if settings.ai_service_disabled:
        validation.warnings.append("AI service disabled by AI_SERVICE_DISABLED")

    return validation


def suggestions_for(error: BaseException):
    """User-facing message and suggestions for a failed test request."""
    category = classify_provider_error(error)
    if category == ErrorCategory.TRANSIENT and get_status_code(error) == 429:
        return RATE_LIMIT_HINT
    return FAILURE_HINTS.get(category, (str(error), []))


def run_ai_config_test(
    settings: Settings,
    client_factory: Optional[Callable[[Settings], BaseLLMClient]] = None
) -> Dict[str, Any]:
    """
    Validate the configuration, then make one small real request.

    Args:
        settings: Application settings
        client_factory: Builds the provider client (defaults to the llm factory)

    Returns:
        Dict with success, response or error, suggestions and the validation
    """
    validation = validate_ai_config(settings)
    if not validation.is_valid:
        return {
            "success": False,
            "error": "Configuration validation failed",
            "details": validation.errors,
            "validation": validation.model_dump(),
        }

    factory = client_factory or create_llm_client_from_settings
    logger.info(f"Testing AI configuration: provider={settings.ai_provider}")
    try:
        client = factory(settings)
        result = client.chat(
            [Message(
                role="user",
                content='Hello, this is a test message. Please respond with "Test successful".'
            )],
            temperature=0.1,
            max_tokens=50
        )
    except Exception as e:
        logger.error(f"AI configuration test failed: {e}")
        message, suggestions = suggestions_for(e)
        return {
            "success": False,
            "error": message,
            "original_error": str(e),
            "status": get_status_code(e),
            "suggestions": suggestions,
            "validation": validation.model_dump(),
        }

    logger.info(f"AI configuration test successful, response length: {len(result.content)}")
    return {
        "success": True,
        "response": result.content,
        "usage": result.usage,
        "validation": validation.model_dump(),
    }


def log_config_status(settings: Settings, test_result: Optional[Dict[str, Any]] = None) -> ConfigValidation:
    """Log validation results (and a test result, if given)."""
    validation = validate_ai_config(settings)
    logger.info(
        f"AI configuration status: valid={validation.is_valid}, provider={settings.ai_provider}, "
        f"has_api_key={bool(settings.get_llm_api_key())}"
    )
    for error in validation.errors:
        logger.error(f"Configuration error: {error}")
    for warning in validation.warnings:
        logger.warning(f"Configuration warning: {warning}")

    if test_result is not None:
        if test_result.get("success"):
            logger.info("AI service test passed")
        else:
            logger.error(
                f"AI service test failed: {test_result.get('error')} "
                f"(suggestions: {test_result.get('suggestions', [])})"
            )
    return validation
