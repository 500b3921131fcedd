"""Per-kind message formatters."""

from hooknodes.messages.formatters.base import BaseFormatter, FormatterConfig
from hooknodes.messages.formatters.factory import clear_formatter_cache, get_formatter
from hooknodes.messages.formatters.file import (
    MAX_FILE_SIZE,
    SUPPORTED_FILE_TYPES,
    FileFormatter,
    format_file_size,
    get_file_extension,
    get_file_upload_guide,
    is_supported_file_type,
    is_valid_file_size,
    validate_file_info,
    validate_media_id,
)
from hooknodes.messages.formatters.image import ImageFormatter, detect_image_type
from hooknodes.messages.formatters.markdown import MarkdownFormatter, sanitize_markdown
from hooknodes.messages.formatters.news import NewsFormatter, validate_articles
from hooknodes.messages.formatters.text import TextFormatter

__all__ = [
    # Base
    "BaseFormatter",
    "FormatterConfig",
    # Factory
    "get_formatter",
    "clear_formatter_cache",
    # Formatters
    "TextFormatter",
    "MarkdownFormatter",
    "ImageFormatter",
    "NewsFormatter",
    "FileFormatter",
    # Helpers
    "sanitize_markdown",
    "detect_image_type",
    "validate_articles",
    "MAX_FILE_SIZE",
    "SUPPORTED_FILE_TYPES",
    "format_file_size",
    "get_file_extension",
    "get_file_upload_guide",
    "is_supported_file_type",
    "is_valid_file_size",
    "validate_file_info",
    "validate_media_id",
]
