"""Utility functions and helpers."""

from hooknodes.utils.exceptions import (
    ChatApiError,
    FeatureNotSupportedError,
    GitLabApiError,
    HooknodesError,
    InvalidWebhookUrlError,
    MessageValidationError,
    NodeOperationError,
)

__all__ = [
    # Exceptions
    "HooknodesError",
    "ChatApiError",
    "InvalidWebhookUrlError",
    "MessageValidationError",
    "FeatureNotSupportedError",
    "GitLabApiError",
    "NodeOperationError",
]
