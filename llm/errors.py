"""Provider error taxonomy."""

from typing import Any, Dict, Optional

import anthropic
import openai

from schemas.responses import ErrorCategory


class ProviderError(Exception):
    """Base class for errors raised by the LLM layer."""

    category = ErrorCategory.UNKNOWN

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ConfigurationError(ProviderError):
    """Missing or invalid provider configuration."""
    category = ErrorCategory.CONFIGURATION


class TransientProviderError(ProviderError):
    """Timeout, connection failure or rate limit."""
    category = ErrorCategory.TRANSIENT


class NotFoundError(ProviderError):
    """Model or deployment not found (404)."""
    category = ErrorCategory.NOT_FOUND


class AuthError(ProviderError):
    """Rejected credentials (401/403)."""
    category = ErrorCategory.AUTH


_NOT_FOUND = (openai.NotFoundError, anthropic.NotFoundError)
_AUTH = (
    openai.AuthenticationError,
    openai.PermissionDeniedError,
    anthropic.AuthenticationError,
    anthropic.PermissionDeniedError,
)
_TRANSIENT = (
    openai.RateLimitError,
    openai.APITimeoutError,
    openai.APIConnectionError,
    openai.InternalServerError,
    anthropic.RateLimitError,
    anthropic.APITimeoutError,
    anthropic.APIConnectionError,
    anthropic.InternalServerError,
)


def get_status_code(error: Optional[BaseException]) -> Optional[int]:
    """HTTP status carried by an SDK or provider error, if any."""
    if error is None:
        return None
    status = getattr(error, "status_code", None)
    if status is None:
        status = getattr(error, "status", None)
    return status if isinstance(status, int) else None


def classify_provider_error(error: BaseException) -> ErrorCategory:
    """
    Map an exception raised while calling a provider to an ErrorCategory.

    Args:
        error: Exception from the SDK or from the client wrappers

    Returns:
        Error category
    """
    if isinstance(error, ProviderError):
        return error.category
    if isinstance(error, _NOT_FOUND):
        return ErrorCategory.NOT_FOUND
    if isinstance(error, _AUTH):
        return ErrorCategory.AUTH
    if isinstance(error, _TRANSIENT):
        return ErrorCategory.TRANSIENT

    status = get_status_code(error)
    if status == 404:
        return ErrorCategory.NOT_FOUND
    if status in (401, 403):
        return ErrorCategory.AUTH
    if status == 429 or (status is not None and status >= 500):
        return ErrorCategory.TRANSIENT
    if isinstance(error, (TimeoutError, ConnectionError)):
        return ErrorCategory.TRANSIENT
    return ErrorCategory.UNKNOWN


def error_details(error: BaseException) -> Dict[str, Any]:
    """Fields worth logging from a provider error."""
    return {
        "error_type": type(error).__name__,
        "message": str(error),
        "status": get_status_code(error),
        "code": getattr(error, "code", None),
        "type": getattr(error, "type", None),
        "param": getattr(error, "param", None),
    }
