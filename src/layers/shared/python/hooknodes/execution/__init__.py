"""Execution infrastructure for fault-tolerant delivery.

This module provides the components for reliable message delivery:
- Error classifier: Maps numeric API codes to messages, categories and severities
- ErrorStats: Per-run error counters with a circuit check
- Retry policy: Exponential backoff with jitter for retryable errors
"""

from hooknodes.execution.error_classifier import (
    ClassifiedError,
    ErrorCategory,
    ErrorSeverity,
    ErrorStats,
    classify,
    create_api_error,
    create_error_context,
    create_generic_error,
    create_user_friendly_message,
    format_error_for_display,
    get_category,
    get_error_message,
    get_retry_config,
    get_severity,
    get_suggestion,
    handle_api_error,
    is_retryable,
    validate_error,
)
from hooknodes.execution.retry_policy import (
    RetryConfig,
    calculate_retry_delay,
    with_retry,
)

__all__ = [
    # Error classifier
    "ClassifiedError",
    "ErrorCategory",
    "ErrorSeverity",
    "ErrorStats",
    "classify",
    "create_api_error",
    "create_error_context",
    "create_generic_error",
    "create_user_friendly_message",
    "format_error_for_display",
    "get_category",
    "get_error_message",
    "get_retry_config",
    "get_severity",
    "get_suggestion",
    "handle_api_error",
    "is_retryable",
    "validate_error",
    # Retry policy
    "RetryConfig",
    "calculate_retry_delay",
    "with_retry",
]
