# itinerary_workflow/errors/classifier.py
"""
Pipeline failure classification.

Maps a raised failure onto the error taxonomy used for user messaging and for
the dispatch engine's retry decisions. Pure: no I/O, no logging, identical
input gives identical output.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ErrorType(str, Enum):
    """Workflow error taxonomy."""

    VALIDATION = "validation"
    NETWORK = "network"
    AI_PROVIDER = "ai_provider"
    TIMEOUT = "timeout"
    SYSTEM = "system"
    RATE_LIMIT = "rate_limit"


class ClassifiedError(BaseModel):
    """A failure mapped onto the taxonomy."""

    model_config = ConfigDict(frozen=True)

    type: ErrorType
    stage: str
    message: str = Field(description="Original failure text")
    retryable: bool
    user_message: str
    recovery_actions: tuple[str, ...]


_NETWORK_INDICATORS = (
    "fetch",
    "network",
    "econnrefused",
    "econnreset",
    "connection refused",
    "connection reset",
    "unreachable",
    "timeout",
)
_PROVIDER_INDICATORS = ("api key", "unauthorized", "quota", "rate limit", "too many requests")
_RATE_LIMIT_INDICATORS = ("rate limit", "too many requests")
_VALIDATION_INDICATORS = ("validation", "invalid")
_TIMEOUT_INDICATORS = ("timed out", "deadline exceeded", "timeout")

# (user_message, recovery_actions) per taxonomy entry
_TEMPLATES: dict[ErrorType, tuple[str, tuple[str, ...]]] = {
    ErrorType.NETWORK: (
        "Unable to connect to our AI services. Please check your internet connection.",
        (
            "Check your internet connection",
            "Try again in a few moments",
            "Contact support if the issue persists",
        ),
    ),
    ErrorType.RATE_LIMIT: (
        "Our AI services are experiencing high demand. We'll automatically retry in a moment.",
        ("Please wait, we'll automatically retry", "Try again in a few minutes"),
    ),
    ErrorType.AI_PROVIDER: (
        "There's an issue with our AI services. Our team has been notified.",
        ("Contact support for assistance", "Try again later"),
    ),
    ErrorType.VALIDATION: (
        "There was an issue with your travel preferences. Please check your form and try again.",
        (
            "Review your travel form for any missing or invalid information",
            "Make sure all required fields are filled out",
            "Try submitting again",
        ),
    ),
    ErrorType.TIMEOUT: (
        "The AI took longer than expected to process your request. "
        "This sometimes happens with complex itineraries.",
        (
            "Try again - simpler requests typically process faster",
            "Consider reducing the number of destinations or activities",
            "Contact support if you continue to experience timeouts",
        ),
    ),
    ErrorType.SYSTEM: (
        "An unexpected error occurred. Our team has been notified.",
        ("Try again in a few moments", "Refresh the page"),
    ),
}


def _error_text(error: BaseException | str) -> str:
    if isinstance(error, str):
        return error
    # Some exceptions (e.g. bare TimeoutError()) carry no message
    return str(error) or type(error).__name__


def _matches(text: str, indicators: tuple[str, ...]) -> bool:
    return any(indicator in text for indicator in indicators)


def _build(
    error_type: ErrorType,
    stage: str,
    message: str,
    retryable: bool,
    template: ErrorType | None = None,
) -> ClassifiedError:
    user_message, actions = _TEMPLATES[template or error_type]
    return ClassifiedError(
        type=error_type,
        stage=stage,
        message=message,
        retryable=retryable,
        user_message=user_message,
        recovery_actions=actions,
    )


def classify(error: BaseException | str, stage: str) -> ClassifiedError:
    """
    Classify a pipeline failure.

    Rules are checked in order and the first match wins: network, AI provider
    (retryable only when rate limited), validation (or stage == "validation"),
    timeout, then system as the fallback. Matching is case-insensitive.

    Args:
        error: Raised exception or its message
        stage: Pipeline stage that failed (or "validation")

    Returns:
        ClassifiedError with fixed user message and recovery actions
    """
    message = _error_text(error)
    text = message.lower()

    if _matches(text, _NETWORK_INDICATORS):
        return _build(ErrorType.NETWORK, stage, message, retryable=True)

    if _matches(text, _PROVIDER_INDICATORS):
        rate_limited = _matches(text, _RATE_LIMIT_INDICATORS)
        return _build(
            ErrorType.AI_PROVIDER,
            stage,
            message,
            retryable=rate_limited,
            template=ErrorType.RATE_LIMIT if rate_limited else None,
        )

    if _matches(text, _VALIDATION_INDICATORS) or stage == "validation":
        return _build(ErrorType.VALIDATION, stage, message, retryable=False)

    if _matches(text, _TIMEOUT_INDICATORS):
        return _build(ErrorType.TIMEOUT, stage, message, retryable=True)

    return _build(ErrorType.SYSTEM, stage, message, retryable=True)


_AUTO_RETRY_TYPES = {ErrorType.NETWORK, ErrorType.TIMEOUT, ErrorType.RATE_LIMIT}


def should_retry(classified: ClassifiedError) -> bool:
    """
    Decide whether the dispatch engine should retry automatically.

    Only transient failures qualify: network, timeout, rate limits (including a
    rate-limited AI provider). Validation and system errors are never retried.
    """
    if not classified.retryable:
        return False
    if classified.type in _AUTO_RETRY_TYPES:
        return True
    return classified.type is ErrorType.AI_PROVIDER
