"""Message models, validation and formatting."""

from hooknodes.messages.models import (
    DeliveryOutcome,
    FileMessage,
    ImageMessage,
    MarkdownMessage,
    MessageInput,
    MessageType,
    NewsArticle,
    NewsMessage,
    TextMessage,
    ValidationResult,
    WeworkApiResponse,
    WeworkMessage,
)
from hooknodes.messages.validators import validate_message, validate_url

__all__ = [
    "DeliveryOutcome",
    "FileMessage",
    "ImageMessage",
    "MarkdownMessage",
    "MessageInput",
    "MessageType",
    "NewsArticle",
    "NewsMessage",
    "TextMessage",
    "ValidationResult",
    "WeworkApiResponse",
    "WeworkMessage",
    "validate_message",
    "validate_url",
]
