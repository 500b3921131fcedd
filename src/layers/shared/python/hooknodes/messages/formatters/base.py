"""Base formatter and shared formatter configuration."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import structlog

from hooknodes.messages.models import MessageInput, MessageType, ValidationResult, WeworkMessage
from hooknodes.messages.validators import (
    MAX_ARTICLE_COUNT,
    MAX_CONTENT_LENGTH,
    MAX_DESCRIPTION_LENGTH,
    MAX_IMAGE_SIZE,
    MAX_TITLE_LENGTH,
)

logger = structlog.get_logger()


@dataclass(frozen=True)
class FormatterConfig:
    """Limits applied while formatting messages."""

    max_content_length: int = MAX_CONTENT_LENGTH
    max_image_size: int = MAX_IMAGE_SIZE
    supported_image_types: tuple[str, ...] = ("jpg", "jpeg", "png")
    max_article_count: int = MAX_ARTICLE_COUNT
    max_title_length: int = MAX_TITLE_LENGTH
    max_description_length: int = MAX_DESCRIPTION_LENGTH


class BaseFormatter(ABC):
    """Base class for message formatters.

    A formatter turns loosely typed input into a strict wire message and
    checks the result. ``format`` raises ``MessageValidationError`` on bad
    input; ``validate`` never raises.
    """

    message_type: MessageType

    def __init__(self, config: FormatterConfig | None = None):
        """Initialize the formatter.

        Args:
            config: Formatting limits. Defaults to ``FormatterConfig()``.
        """
        self.config = config or FormatterConfig()
        self.logger = logger.bind(service="formatter", message_type=self.message_type.value)

    @abstractmethod
    def format(self, data: MessageInput) -> WeworkMessage:
        """Build a wire message from input.

        Args:
            data: Formatter input.

        Returns:
            Wire message model.

        Raises:
            MessageValidationError: If required input is missing or invalid.
        """
        pass

    @abstractmethod
    def validate(self, message: Any) -> ValidationResult:
        """Check a wire message, collecting every violation."""
        pass

    def process(self, data: MessageInput) -> tuple[WeworkMessage, ValidationResult]:
        """Format then validate."""
        message = self.format(data)
        return message, self.validate(message)
