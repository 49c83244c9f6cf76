"""Custom exceptions for Gatekeeper."""

from typing import Any


class GatekeeperError(Exception):
    """Base exception for all Gatekeeper errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


# =============================================================================
# Provider Errors
# =============================================================================


class ProviderError(GatekeeperError):
    """Base exception for moderation provider errors."""

    def __init__(self, message: str, provider: str | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.provider = provider


class ProviderUnavailableError(ProviderError):
    """Raised when a provider is not configured or cannot be reached."""

    pass


class ProviderTimeoutError(ProviderError):
    """Raised when a provider does not answer within its bounded wait."""

    def __init__(
        self,
        message: str = "Provider timed out",
        timeout: float | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.timeout = timeout


class ProviderResponseError(ProviderError):
    """Raised when a provider returns an unusable response."""

    pass


# =============================================================================
# LLM Errors
# =============================================================================


class LLMError(GatekeeperError):
    """Base exception for LLM-related errors."""

    pass


class LLMRateLimitError(LLMError):
    """Raised when hitting API rate limits."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        retry_after: float | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class LLMContextLengthError(LLMError):
    """Raised when context length is exceeded."""

    pass


class LLMAuthenticationError(LLMError):
    """Raised when API authentication fails."""

    pass


class LLMConnectionError(LLMError):
    """Raised when unable to connect to LLM API."""

    pass


class LLMResponseParseError(LLMError):
    """Raised when unable to parse LLM response."""

    def __init__(
        self,
        message: str = "Failed to parse LLM response",
        raw_response: str | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.raw_response = raw_response


# =============================================================================
# Review Errors
# =============================================================================


class ReviewError(GatekeeperError):
    """Base exception for human review errors."""

    pass


class ReviewItemNotFoundError(ReviewError):
    """Raised when a review item does not exist."""

    def __init__(self, item_id: str, **kwargs: Any):
        super().__init__(f"Review item not found: {item_id}", **kwargs)
        self.item_id = item_id


class ReviewStateError(ReviewError):
    """Raised when a review item is in an invalid state for the operation."""

    def __init__(
        self,
        message: str,
        item_id: str | None = None,
        expected_status: str | None = None,
        actual_status: str | None = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.item_id = item_id
        self.expected_status = expected_status
        self.actual_status = actual_status


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(GatekeeperError):
    """Raised when configuration is invalid or incomplete."""

    def __init__(self, message: str, field: str | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.field = field
