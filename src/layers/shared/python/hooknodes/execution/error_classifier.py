"""Error classifier for WeCom bot API failures.

Maps a numeric error code to a human message, a category, a severity,
a retryability verdict and a remediation suggestion. Codes are either the
API's own ``errcode`` values or one of the synthetic negative codes used for
failures that never produced an API response:

- ``-1`` system busy
- ``-2`` request timeout
- ``-3`` network failure
- ``-4`` invalid webhook URL
- ``-5`` malformed response
- ``-6`` message rejected by local validation

Everything in this module is a pure function of the code, except
``ErrorStats`` which is an explicit diagnostics object owned by the caller.

Usage:
    error = create_api_error({"errcode": 93000, "errmsg": "invalid webhook url"})

    if is_retryable(error.code):
        # Back off and retry
        pass
    else:
        details = format_error_for_display(error)
"""

import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

import structlog

from hooknodes.execution.retry_policy import RetryConfig
from hooknodes.utils.exceptions import ChatApiError, MessageValidationError

logger = structlog.get_logger()

SYSTEM_BUSY = -1
REQUEST_TIMEOUT = -2
NETWORK_FAILURE = -3
INVALID_URL = -4
MALFORMED_RESPONSE = -5
INVALID_MESSAGE = -6


class ErrorCategory(str, Enum):
    """Error categories for WeCom API codes."""

    AUTH = "auth"
    PARAMETER = "parameter"
    CONTENT = "content"
    FILE = "file"
    RATE_LIMIT = "rate_limit"
    PERMISSION = "permission"
    NETWORK = "network"
    SYSTEM = "system"
    UNKNOWN = "unknown"


class ErrorSeverity(str, Enum):
    """How urgently an error needs attention."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


ERROR_MESSAGES: dict[int, str] = {
    0: "Request succeeded",
    # System
    -1: "System busy, please try again later",
    40001: "Invalid credential or app secret",
    40002: "Invalid credential type",
    40003: "Invalid user ID, check that the user exists",
    40004: "Invalid media file type",
    40005: "Invalid file type",
    40006: "Invalid file size",
    40007: "Invalid media_id",
    40008: "Invalid message type",
    40009: "Invalid image file size",
    40010: "Invalid voice file size",
    40011: "Invalid video file size",
    40012: "Invalid thumbnail file size",
    40013: "Invalid AppID, check for typos and letter case",
    40014: "Invalid access_token, check that it has not expired",
    40015: "Invalid menu type",
    40016: "Invalid number of buttons",
    40017: "Invalid number of buttons",
    40018: "Invalid button name length",
    40019: "Invalid button KEY length",
    40020: "Invalid button URL length",
    40021: "Invalid menu version",
    40022: "Invalid sub-menu depth",
    40023: "Invalid number of sub-menu buttons",
    40024: "Invalid sub-menu button type",
    40025: "Invalid sub-menu button name length",
    40026: "Invalid sub-menu button KEY length",
    40027: "Invalid sub-menu button URL length",
    40028: "Invalid custom menu user",
    40029: "Invalid oauth_code",
    40030: "Invalid refresh_token",
    40031: "Invalid user list",
    40032: "Invalid user list length",
    40033: "Invalid request characters, \\uxxxx sequences are not allowed",
    40035: "Invalid parameter",
    40038: "Invalid request format",
    40039: "Invalid URL length",
    40050: "Invalid group id",
    40051: "Invalid group name",
    40117: "Invalid group name",
    40118: "Invalid media_id size",
    40119: "Invalid button type",
    40120: "Invalid button type",
    40121: "Invalid media_id type",
    40132: "Invalid account name",
    40137: "Unsupported image format",
    # Missing parameters
    41001: "Missing access_token parameter",
    41002: "Missing appid parameter",
    41003: "Missing refresh_token parameter",
    41004: "Missing secret parameter",
    41005: "Missing media file data",
    41006: "Missing media_id parameter",
    41007: "Missing sub-menu data",
    41008: "Missing oauth code",
    41009: "Missing user id",
    # Expired tokens
    42001: "access_token expired, fetch a new one",
    42002: "refresh_token expired",
    42003: "oauth_code expired",
    42007: "User password changed, tokens are no longer valid and need re-authorization",
    # Wrong request shape
    43001: "GET request required",
    43002: "POST request required",
    43003: "HTTPS request required",
    43004: "Recipient must follow the account",
    43005: "Friend relationship required",
    43019: "Recipient must be removed from the blocklist",
    # Empty payloads
    44001: "Media file is empty",
    44002: "POST body is empty",
    44003: "News message content is empty",
    44004: "Text message content is empty",
    # Limits
    45001: "Media file size exceeds the limit",
    45002: "Message content exceeds the limit",
    45003: "Title field exceeds the limit",
    45004: "Description field exceeds the limit",
    45005: "Link field exceeds the limit",
    45006: "Image link field exceeds the limit",
    45007: "Voice duration exceeds the limit",
    45008: "News message exceeds the article limit",
    45009: "API call frequency exceeds the limit",
    45010: "Menu count exceeds the limit",
    45015: "Reply window exceeded",
    45016: "System group cannot be modified",
    45017: "Group name too long",
    45018: "Group count exceeds the limit",
    45047: "Outbound message count exceeds the limit",
    # Missing data
    46001: "Media data does not exist",
    46002: "Menu version does not exist",
    46003: "Menu data does not exist",
    46004: "User does not exist",
    47001: "Failed to parse JSON/XML content",
    # Authorization
    48001: "API not authorized for this application",
    48002: "Recipient has disabled incoming messages",
    48004: "API access has been banned",
    48005: "Media referenced by auto-replies or menus cannot be deleted",
    48006: "Call-count reset limit reached",
    48008: "No permission to send this message type",
    50001: "User has not authorized this API",
    50002: "User is restricted",
    50005: "User does not follow the account",
    # Customer service accounts
    61450: "System error",
    61451: "Invalid parameter",
    61452: "Invalid kf_account",
    61453: "kf_account already exists",
    61454: "kf_account name too long",
    61455: "kf_account name contains illegal characters",
    61456: "kf_account count exceeded",
    61457: "Invalid avatar file type",
    61500: "Invalid date format",
    # Bot specific
    93000: "Webhook URL is invalid or has expired",
    300001: "Missing parameter",
    300002: "HTTPS request required",
    300003: "Invalid userid",
    300004: "Client IP not allowed",
    300005: "Client not registered",
    300006: "Invalid parameter",
    300007: "Illegal operation",
    300008: "Illegal characters",
    300009: "Missing parameter",
    300010: "File size exceeds the limit",
    300011: "Illegal file type",
    300012: "Illegal file name",
    300013: "Application does not exist",
    300014: "Member does not exist",
    300015: "Invalid file size",
    300016: "Invalid file name length",
    300017: "Invalid file content",
    300018: "Invalid file type",
    # Synthetic
    -2: "Request timed out",
    -3: "Network connection failed",
    -4: "Invalid URL format",
    -5: "Malformed response data",
    -6: "Message failed validation",
}

ERROR_CATEGORIES: dict[int, ErrorCategory] = {
    93000: ErrorCategory.AUTH,
    40001: ErrorCategory.AUTH,
    40013: ErrorCategory.AUTH,
    40014: ErrorCategory.AUTH,
    42001: ErrorCategory.AUTH,
    42002: ErrorCategory.AUTH,
    40003: ErrorCategory.PARAMETER,
    40035: ErrorCategory.PARAMETER,
    41001: ErrorCategory.PARAMETER,
    41002: ErrorCategory.PARAMETER,
    41003: ErrorCategory.PARAMETER,
    300001: ErrorCategory.PARAMETER,
    300006: ErrorCategory.PARAMETER,
    300009: ErrorCategory.PARAMETER,
    44001: ErrorCategory.CONTENT,
    44002: ErrorCategory.CONTENT,
    44003: ErrorCategory.CONTENT,
    44004: ErrorCategory.CONTENT,
    45002: ErrorCategory.CONTENT,
    45003: ErrorCategory.CONTENT,
    45004: ErrorCategory.CONTENT,
    40004: ErrorCategory.FILE,
    40005: ErrorCategory.FILE,
    40006: ErrorCategory.FILE,
    40007: ErrorCategory.FILE,
    45001: ErrorCategory.FILE,
    300010: ErrorCategory.FILE,
    300011: ErrorCategory.FILE,
    300012: ErrorCategory.FILE,
    45009: ErrorCategory.RATE_LIMIT,
    48001: ErrorCategory.PERMISSION,
    50001: ErrorCategory.PERMISSION,
    50002: ErrorCategory.PERMISSION,
    -2: ErrorCategory.NETWORK,
    -3: ErrorCategory.NETWORK,
    -4: ErrorCategory.NETWORK,
    -5: ErrorCategory.NETWORK,
    -6: ErrorCategory.PARAMETER,
    -1: ErrorCategory.SYSTEM,
    61450: ErrorCategory.SYSTEM,
}

ERROR_SUGGESTIONS: dict[int, str] = {
    93000: "Check the webhook URL, or re-add the group bot to obtain a new one",
    40001: "Check the app secret, or fetch a new access_token",
    40003: "Check that the user ID is correct and the user exists",
    40004: "Use a supported media type (jpg, png, mp3, mp4, ...)",
    40005: "Check that the file type is correct",
    40006: "Reduce the file size so it stays within the limit",
    40013: "Check that the AppID is correct",
    40014: "Fetch a valid access_token",
    40035: "Check the request parameters",
    42001: "access_token has expired, fetch a new one",
    44001: "Make sure the uploaded media file is not empty",
    44002: "Make sure the POST request carries a body",
    44003: "Make sure the news message has content",
    44004: "Make sure the text message content is not empty",
    45001: "Reduce the media file size so it stays within the limit",
    45002: "Shorten the message to at most 4096 characters",
    45009: "Lower the call frequency and try again later",
    48001: "Make sure the application has been granted this API",
    50001: "Make sure the user has authorized this API",
    -1: "System busy, retry later",
    -2: "Request timed out, check the network connection",
    -3: "Network connection failed, check the network settings",
    -4: "Check that the URL format is correct",
    -5: "Malformed response data, contact support",
    -6: "Fix the message fields listed in the error and send again",
}

DEFAULT_SUGGESTION = "See the detailed error message or contact support"

RETRYABLE_CODES = frozenset({
    SYSTEM_BUSY,
    REQUEST_TIMEOUT,
    NETWORK_FAILURE,
    42001,  # access_token expired
    42002,  # refresh_token expired
    45009,  # rate limited
})

CRITICAL_CODES = frozenset({93000, 40001, 40013, 40014, 48001, 50001})
HIGH_CODES = frozenset({40003, 40004, 40005, 40006, 40007, 40008, 44001, 44002, 44003, 44004})
MEDIUM_CODES = frozenset({45001, 45002, 45003, 45004, 45005, 45006, 45007, 45008, 45009})

# Retry tuning per severity: fewer, slower retries for worse errors.
SEVERITY_RETRY_POLICIES: dict[ErrorSeverity, dict[str, Any]] = {
    ErrorSeverity.CRITICAL: {"max_retries": 1, "base_delay": 5.0},
    ErrorSeverity.HIGH: {"max_retries": 2, "base_delay": 2.0},
    ErrorSeverity.MEDIUM: {"max_retries": 3, "base_delay": 1.0},
    ErrorSeverity.LOW: {"max_retries": 5, "base_delay": 0.5},
}

# Substring patterns for errors raised before an API response exists.
# Format: (patterns, code, message)
GENERIC_ERROR_PATTERNS: list[tuple[tuple[str, ...], int, str]] = [
    (("timeout", "timed out"), REQUEST_TIMEOUT, "Request timed out, check the network connection"),
    (("network", "connect", "fetch"), NETWORK_FAILURE, "Network connection failed, check the network settings"),
    (("url",), INVALID_URL, "Invalid webhook URL format"),
    (("json", "parse"), MALFORMED_RESPONSE, "Malformed response data"),
]


@dataclass(frozen=True)
class ClassifiedError:
    """Enriched, derived view of an error code."""

    code: int
    message: str
    category: ErrorCategory
    severity: ErrorSeverity
    retryable: bool
    suggestion: str

    def to_dict(self) -> dict[str, Any]:
        """Serialize for output records and logs."""
        return {
            "code": self.code,
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "retryable": self.retryable,
            "suggestion": self.suggestion,
        }


def get_error_message(code: int, fallback: str | None = None) -> str:
    """Get the curated message for an error code.

    Args:
        code: Error code.
        fallback: Raw message from the API, used when no curated text exists.

    Returns:
        Human-readable message.
    """
    message = ERROR_MESSAGES.get(code)
    if message:
        return message

    if fallback and fallback.strip():
        return fallback.strip()

    return f"Unknown WeCom API error (code {code})"


def is_retryable(code: int) -> bool:
    """Check whether an error code may succeed on retry."""
    return code in RETRYABLE_CODES


def get_severity(code: int) -> ErrorSeverity:
    """Get the severity of an error code."""
    if code in CRITICAL_CODES:
        return ErrorSeverity.CRITICAL
    if code in HIGH_CODES:
        return ErrorSeverity.HIGH
    if code in MEDIUM_CODES:
        return ErrorSeverity.MEDIUM
    return ErrorSeverity.LOW


def get_category(code: int) -> ErrorCategory:
    """Get the category of an error code."""
    return ERROR_CATEGORIES.get(code, ErrorCategory.UNKNOWN)


def get_suggestion(code: int) -> str:
    """Get a remediation suggestion for an error code."""
    return ERROR_SUGGESTIONS.get(code, DEFAULT_SUGGESTION)


def classify(code: int, fallback: str | None = None) -> ClassifiedError:
    """Build the full classified view of an error code.

    Args:
        code: Error code.
        fallback: Raw message used when no curated message exists.

    Returns:
        ClassifiedError.
    """
    return ClassifiedError(
        code=code,
        message=get_error_message(code, fallback),
        category=get_category(code),
        severity=get_severity(code),
        retryable=is_retryable(code),
        suggestion=get_suggestion(code),
    )


def get_retry_config(code: int, base: RetryConfig | None = None) -> RetryConfig:
    """Get a retry configuration tuned to the severity of an error code.

    Args:
        code: Error code.
        base: Configuration to derive from. Defaults to ``RetryConfig()``.

    Returns:
        RetryConfig with ``max_retries`` and ``base_delay`` overridden.
    """
    overrides = SEVERITY_RETRY_POLICIES[get_severity(code)]
    return replace(base or RetryConfig(), **overrides)


def create_api_error(response: dict[str, Any]) -> ChatApiError:
    """Create an error from an ``{errcode, errmsg}`` response body."""
    code = response.get("errcode", SYSTEM_BUSY)
    message = get_error_message(code, response.get("errmsg"))
    return ChatApiError(code, message, response)


def create_generic_error(error: Exception, default_code: int = SYSTEM_BUSY) -> ChatApiError:
    """Convert any exception into a coded error.

    Transport failures carry no API code, so the code is inferred from the
    exception message. Errors that are already coded pass through unchanged,
    and rejected messages always map to the non-retryable ``-6``.

    Args:
        error: Exception to convert.
        default_code: Code used when no pattern matches.

    Returns:
        ChatApiError.
    """
    if isinstance(error, ChatApiError):
        return error

    if isinstance(error, MessageValidationError):
        return ChatApiError(INVALID_MESSAGE, error.message)

    message = str(error) or type(error).__name__
    lowered = message.lower()

    for patterns, code, friendly in GENERIC_ERROR_PATTERNS:
        if any(pattern in lowered for pattern in patterns):
            return ChatApiError(code, friendly)

    return ChatApiError(default_code, message)


def handle_api_error(error: Any) -> ChatApiError:
    """Convert an HTTP-helper failure into a coded error.

    Errors that carry a parsed ``response.data`` body are treated as API
    responses; anything else becomes a system-busy error.
    """
    response = getattr(error, "response", None)
    data = getattr(response, "data", None)
    if isinstance(data, dict):
        return create_api_error(data)

    if isinstance(error, Exception):
        return ChatApiError(SYSTEM_BUSY, str(error))

    message = getattr(error, "message", None)
    return ChatApiError(SYSTEM_BUSY, message if isinstance(message, str) else "Unknown error")


def validate_error(error: Any) -> bool:
    """Check that an object is a well-formed coded error."""
    return (
        isinstance(error, ChatApiError)
        and isinstance(error.code, int)
        and isinstance(error.message, str)
    )


def format_error_for_display(error: ChatApiError) -> dict[str, Any]:
    """Format an error for display to the workflow user."""
    return {
        "title": f"Error {error.code}",
        "message": error.message,
        "category": get_category(error.code).value,
        "severity": get_severity(error.code).value,
        "suggestion": get_suggestion(error.code),
        "retryable": is_retryable(error.code),
    }


def create_user_friendly_message(error: ChatApiError) -> str:
    """Create a two-line message with the category and a suggestion."""
    category = get_category(error.code).value
    suggestion = get_suggestion(error.code)
    return f"{category}: {error.message}\nSuggestion: {suggestion}"


def create_error_context(error: ChatApiError, **additional_info: Any) -> dict[str, Any]:
    """Build a structured context dict for logging an error."""
    context = {
        "error_code": error.code,
        "error_message": error.message,
        "error_category": get_category(error.code).value,
        "error_severity": get_severity(error.code).value,
        "is_retryable": is_retryable(error.code),
        "suggestion": get_suggestion(error.code),
        "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
    }
    context.update(additional_info)
    return context


@dataclass
class ErrorStats:
    """Error statistics for one execution.

    Owned by whoever drives delivery and passed by reference into the
    delivery client. Diagnostic only; nothing depends on these counters.
    """

    total_errors: int = 0
    errors_by_code: dict[int, int] = field(default_factory=dict)
    errors_by_category: dict[str, int] = field(default_factory=dict)
    last_error_time: float = 0.0
    retry_attempts: int = 0
    successful_retries: int = 0

    # Circuit check window
    window_seconds: float = 300.0
    min_requests: int = 10
    error_rate_threshold: float = 0.5

    def record_error(self, error: ChatApiError, is_retry: bool = False) -> None:
        """Record a failed attempt.

        Args:
            error: The coded error.
            is_retry: Whether the failed attempt was itself a retry.
        """
        self.total_errors += 1
        self.last_error_time = time.time()
        self.errors_by_code[error.code] = self.errors_by_code.get(error.code, 0) + 1

        category = get_category(error.code).value
        self.errors_by_category[category] = self.errors_by_category.get(category, 0) + 1

        if is_retry:
            self.retry_attempts += 1

    def record_successful_retry(self) -> None:
        """Record a retry that eventually succeeded."""
        self.successful_retries += 1

    def should_open_circuit(self, now: float | None = None) -> bool:
        """Check whether recent error volume warrants short-circuiting sends.

        Args:
            now: Current epoch seconds (defaults to ``time.time()``).

        Returns:
            True if there was an error inside the window, enough requests
            were observed and the error rate exceeds the threshold.
        """
        now = time.time() if now is None else now
        if self.last_error_time < now - self.window_seconds:
            return False

        total_requests = self.total_errors + self.successful_retries
        if total_requests > self.min_requests:
            return self.total_errors / total_requests > self.error_rate_threshold

        return False

    def snapshot(self) -> dict[str, Any]:
        """Get a copy of the counters."""
        return {
            "total_errors": self.total_errors,
            "errors_by_code": dict(self.errors_by_code),
            "errors_by_category": dict(self.errors_by_category),
            "last_error_time": self.last_error_time,
            "retry_attempts": self.retry_attempts,
            "successful_retries": self.successful_retries,
        }

    def reset(self) -> None:
        """Reset all counters."""
        self.total_errors = 0
        self.errors_by_code = {}
        self.errors_by_category = {}
        self.last_error_time = 0.0
        self.retry_attempts = 0
        self.successful_retries = 0
