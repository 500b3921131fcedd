"""Formatter selection by message kind."""

from hooknodes.messages.formatters.base import BaseFormatter, FormatterConfig
from hooknodes.messages.formatters.file import FileFormatter
from hooknodes.messages.formatters.image import ImageFormatter
from hooknodes.messages.formatters.markdown import MarkdownFormatter
from hooknodes.messages.formatters.news import NewsFormatter
from hooknodes.messages.formatters.text import TextFormatter
from hooknodes.messages.models import MessageType
from hooknodes.utils.exceptions import MessageValidationError

# Default-config formatters, built on first use
_formatter_cache: dict[MessageType, BaseFormatter] = {}


def _build_formatter(kind: MessageType, config: FormatterConfig | None) -> BaseFormatter:
    if kind == MessageType.TEXT:
        return TextFormatter(config)
    elif kind == MessageType.MARKDOWN:
        return MarkdownFormatter(config)
    elif kind == MessageType.IMAGE:
        return ImageFormatter(config)
    elif kind == MessageType.NEWS:
        return NewsFormatter(config)
    elif kind == MessageType.FILE:
        return FileFormatter(config)

    raise MessageValidationError(f"Unsupported message type: {kind}")


def get_formatter(kind: MessageType | str, config: FormatterConfig | None = None) -> BaseFormatter:
    """Get the formatter for a message kind.

    Formatters built with the default config are cached per kind; a custom
    config always yields a fresh instance.

    Args:
        kind: Message kind or its string value.
        config: Optional formatting limits.

    Returns:
        Formatter instance.

    Raises:
        MessageValidationError: If the kind is unknown.
    """
    try:
        kind = MessageType(kind)
    except ValueError:
        raise MessageValidationError(f"Unsupported message type: {kind}") from None

    if config is not None:
        return _build_formatter(kind, config)

    formatter = _formatter_cache.get(kind)
    if formatter is None:
        formatter = _build_formatter(kind, None)
        _formatter_cache[kind] = formatter
    return formatter


def clear_formatter_cache() -> None:
    """Drop all cached formatters."""
    _formatter_cache.clear()
