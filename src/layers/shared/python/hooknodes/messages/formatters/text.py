"""Plain text messages with optional @mentions."""

from typing import Any

from hooknodes.messages.formatters.base import BaseFormatter
from hooknodes.messages.models import (
    MessageInput,
    MessageType,
    TextContent,
    TextMessage,
    ValidationResult,
)
from hooknodes.messages.validators import (
    MOBILE_PATTERN,
    is_blank,
    truncate_string,
    validate_text_message,
)
from hooknodes.utils.exceptions import MessageValidationError

TRUNCATION_SUFFIX = "...(truncated)"
MENTION_ALL = "@all"


def _unique(values: list[str]) -> list[str]:
    # dict preserves first-occurrence order
    return list(dict.fromkeys(values))


class TextFormatter(BaseFormatter):
    """Formats plain text messages."""

    message_type = MessageType.TEXT

    def format(self, data: MessageInput) -> TextMessage:
        content = data.content or ""
        if is_blank(content):
            raise MessageValidationError("Text message content cannot be empty")

        if len(content) > self.config.max_content_length:
            content = truncate_string(content, self.config.max_content_length, TRUNCATION_SUFFIX)
            self.logger.debug("Text content truncated", length=len(content))

        users = _unique([user for user in data.mentioned_users if not is_blank(user)])
        mobiles = _unique([
            mobile for mobile in data.mentioned_mobiles
            if not is_blank(mobile) and MOBILE_PATTERN.match(mobile)
        ])

        return TextMessage(
            text=TextContent(
                content=content,
                mentioned_list=users or None,
                mentioned_mobile_list=mobiles or None,
            )
        )

    def validate(self, message: Any) -> ValidationResult:
        return validate_text_message(message)

    def create_mention_all_message(self, content: str) -> TextMessage:
        """Build a text message that mentions everyone in the group."""
        message = self.format(MessageInput(message_type=MessageType.TEXT, content=content))
        message.text.mentioned_list = [MENTION_ALL]
        return message

    def create_mention_users_message(self, content: str, users: list[str]) -> TextMessage:
        """Build a text message mentioning the given user IDs."""
        return self.format(
            MessageInput(message_type=MessageType.TEXT, content=content, mentioned_users=users)
        )

    def create_mention_mobiles_message(self, content: str, mobiles: list[str]) -> TextMessage:
        """Build a text message mentioning the given mobile numbers."""
        return self.format(
            MessageInput(message_type=MessageType.TEXT, content=content, mentioned_mobiles=mobiles)
        )
