"""Custom exception classes for hooknodes."""

from typing import Any


class HooknodesError(Exception):
    """Base exception for all hooknodes errors."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict | None = None,
    ):
        """Initialize HooknodesError.

        Args:
            message: Human-readable error message.
            error_code: Machine-readable error code.
            details: Additional error details.
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "INTERNAL_ERROR"
        self.details = details or {}

    def to_dict(self) -> dict:
        """Convert exception to dictionary for output records."""
        result = {
            "error": True,
            "error_code": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class ChatApiError(HooknodesError):
    """Raised for numeric-coded chat API failures.

    The code is either the API's own ``errcode`` or one of the synthetic
    negative codes used for failures that never reached the API.
    """

    def __init__(self, code: int, message: str, response: Any = None):
        """Initialize ChatApiError.

        Args:
            code: Numeric error code.
            message: Human-readable error message.
            response: Raw API response body, if any.
        """
        self.code = code
        self.response = response
        super().__init__(
            message=message,
            error_code="CHAT_API_ERROR",
            details={"code": code},
        )


class InvalidWebhookUrlError(ChatApiError):
    """Raised when a webhook URL fails shape validation.

    Never retried; raised before any network call.
    """

    def __init__(self, message: str = "Invalid webhook URL format", url: str | None = None):
        """Initialize InvalidWebhookUrlError."""
        super().__init__(code=-4, message=message)
        self.url = url


class MessageValidationError(HooknodesError, ValueError):
    """Raised when message input is rejected or a formatted message is invalid."""

    def __init__(self, message: str = "Message validation failed", errors: list[str] | None = None):
        """Initialize MessageValidationError.

        Args:
            message: Error message.
            errors: Individual rule violations.
        """
        self.errors = list(errors or [])
        super().__init__(
            message=message,
            error_code="VALIDATION_ERROR",
            details={"errors": self.errors} if self.errors else None,
        )


class FeatureNotSupportedError(MessageValidationError, NotImplementedError):
    """Raised for inputs that select a feature which is not implemented yet."""

    def __init__(self, feature: str, message: str | None = None):
        """Initialize FeatureNotSupportedError."""
        self.feature = feature
        super().__init__(message=message or f"{feature} is not supported yet")
        self.error_code = "NOT_SUPPORTED"


class GitLabApiError(HooknodesError):
    """Raised when the GitLab API returns a non-success status."""

    def __init__(self, status_code: int | None, message: str, response: Any = None):
        """Initialize GitLabApiError."""
        self.status_code = status_code
        self.response = response
        super().__init__(
            message=message,
            error_code="GITLAB_API_ERROR",
            details={"status_code": status_code},
        )


class NodeOperationError(HooknodesError):
    """Raised by a node when processing an input row fails."""

    def __init__(
        self,
        message: str,
        item_index: int | None = None,
        cause: Exception | None = None,
    ):
        """Initialize NodeOperationError.

        Args:
            message: Error message shown to the workflow user.
            item_index: Index of the input row that failed.
            cause: Underlying exception.
        """
        self.item_index = item_index
        self.cause = cause
        details = {}
        if item_index is not None:
            details["item_index"] = item_index
        if isinstance(cause, ChatApiError):
            details["code"] = cause.code
        super().__init__(
            message=message,
            error_code="NODE_OPERATION_ERROR",
            details=details or None,
        )
