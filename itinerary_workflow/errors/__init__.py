"""Error taxonomy, classification and retry policy for pipeline failures."""

from .classifier import ClassifiedError, ErrorType, classify, should_retry
from .retry import is_retryable_for, stage_retry

__all__ = [
    "ErrorType",
    "ClassifiedError",
    "classify",
    "should_retry",
    "is_retryable_for",
    "stage_retry",
]
