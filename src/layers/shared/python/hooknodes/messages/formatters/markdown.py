"""Markdown messages with a sanitizing pass.

WeCom renders a small markdown dialect and no HTML. Content is truncated,
stripped of tags and unsafe links, then balance-repaired so unmatched
markers never leak into the rendered message.
"""

import re
from typing import Any

from hooknodes.messages.formatters.base import BaseFormatter
from hooknodes.messages.models import (
    MarkdownContent,
    MarkdownMessage,
    MessageInput,
    MessageType,
    ValidationResult,
)
from hooknodes.messages.validators import (
    BOLD_PATTERN,
    FENCE_PATTERN,
    LINK_PATTERN,
    count_inline_code_markers,
    count_italic_markers,
    is_blank,
    truncate_string,
    validate_markdown_message,
    validate_url,
)
from hooknodes.utils.exceptions import MessageValidationError

TRUNCATION_SUFFIX = "\n\n...(truncated)"
# Headroom left for closing markers appended by the sanitizer
TRUNCATION_RESERVE = 15

SCRIPT_BLOCK_PATTERN = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
TAG_PATTERN = re.compile(r"<[^>]*?>")


def _keep_safe_link(match: re.Match) -> str:
    text, url = match.group(1), match.group(2)
    if validate_url(url):
        return f"[{text}]({url})"
    return text


def fix_code_blocks(content: str) -> str:
    """Close an unterminated code fence, then an unterminated inline code span."""
    if len(FENCE_PATTERN.findall(content)) % 2:
        content += "\n```"

    if count_inline_code_markers(content) % 2:
        content += "`"

    return content


def fix_bold_syntax(content: str) -> str:
    """Close an unterminated ``**`` span."""
    if len(BOLD_PATTERN.findall(content)) % 2:
        content += "**"
    return content


def fix_italic_syntax(content: str) -> str:
    """Close an unterminated single ``*`` span."""
    if count_italic_markers(content) % 2:
        content += "*"
    return content


def sanitize_markdown(content: str) -> str:
    """Strip HTML and unsafe links, then repair unbalanced markers.

    Order matters: script blocks go before other tags so their bodies are
    dropped too, and code repair runs before emphasis repair.
    """
    content = SCRIPT_BLOCK_PATTERN.sub("", content)
    content = TAG_PATTERN.sub("", content)
    content = LINK_PATTERN.sub(_keep_safe_link, content)

    content = fix_code_blocks(content)
    content = fix_bold_syntax(content)
    content = fix_italic_syntax(content)

    return content


class MarkdownFormatter(BaseFormatter):
    """Formats markdown messages."""

    message_type = MessageType.MARKDOWN

    def format(self, data: MessageInput) -> MarkdownMessage:
        content = data.markdown_content or ""
        if is_blank(content):
            raise MessageValidationError("Markdown message content cannot be empty")

        # Only over-limit content is truncated. Repairs on near-limit content can
        # still push it past the limit, which validation then reports.
        if len(content) > self.config.max_content_length:
            content = truncate_string(
                content,
                self.config.max_content_length - TRUNCATION_RESERVE,
                TRUNCATION_SUFFIX,
            )

        return MarkdownMessage(markdown=MarkdownContent(content=sanitize_markdown(content)))

    def validate(self, message: Any) -> ValidationResult:
        return validate_markdown_message(message)

    def create_markdown_message(self, content: str) -> MarkdownMessage:
        """Build a markdown message from raw content."""
        return self.format(MessageInput(message_type=MessageType.MARKDOWN, markdown_content=content))

    def create_titled_markdown(self, title: str, content: str) -> MarkdownMessage:
        """Build a markdown message with a level-one heading."""
        return self.create_markdown_message(f"# {title}\n\n{content}")

    def create_markdown_with_link(self, content: str, link_text: str, link_url: str) -> MarkdownMessage:
        """Build a markdown message followed by a link."""
        return self.create_markdown_message(f"{content}\n\n[{link_text}]({link_url})")

    def create_code_block_message(self, code: str, language: str | None = None) -> MarkdownMessage:
        """Build a markdown message holding a fenced code block."""
        return self.create_markdown_message(f"```{language or ''}\n{code}\n```")
