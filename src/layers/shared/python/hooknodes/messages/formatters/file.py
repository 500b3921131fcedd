"""File messages referencing an uploaded media_id, plus upload helpers."""

import re
from typing import Any

from hooknodes.messages.formatters.base import BaseFormatter
from hooknodes.messages.models import (
    FileContent,
    FileMessage,
    MessageInput,
    MessageType,
    ValidationResult,
)
from hooknodes.messages.validators import is_blank, validate_file_message
from hooknodes.utils.exceptions import MessageValidationError

MEDIA_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{10,100}$")

SUPPORTED_FILE_TYPES = (
    "doc", "docx", "xls", "xlsx", "ppt", "pptx", "pdf",
    "txt", "csv", "zip", "rar", "7z",
    "mp3", "mp4", "avi", "mov", "wmv",
    "jpg", "jpeg", "png", "gif", "bmp",
)
MAX_FILE_SIZE = 20 * 1024 * 1024

_SIZE_UNITS = ("B", "KB", "MB", "GB")


def is_valid_media_id(media_id: str) -> bool:
    """Check a media_id: 10 to 100 letters, digits, underscores or hyphens."""
    return bool(MEDIA_ID_PATTERN.match(media_id))


class FileFormatter(BaseFormatter):
    """Formats file messages."""

    message_type = MessageType.FILE

    def format(self, data: MessageInput) -> FileMessage:
        media_id = data.file_media_id
        if is_blank(media_id):
            raise MessageValidationError("File media_id cannot be empty")

        media_id = media_id.strip()
        if not is_valid_media_id(media_id):
            raise MessageValidationError("Invalid file media_id format")

        return FileMessage(file=FileContent(media_id=media_id))

    def validate(self, message: Any) -> ValidationResult:
        return validate_file_message(message)

    def create_file_message(self, media_id: str) -> FileMessage:
        """Build a file message from a media_id."""
        return self.format(MessageInput(message_type=MessageType.FILE, file_media_id=media_id))


def get_file_extension(filename: str) -> str:
    """Get the lowercase extension of a file name, or an empty string."""
    _, dot, extension = filename.rpartition(".")
    if not dot or not extension:
        return ""
    return extension.lower()


def is_supported_file_type(extension: str) -> bool:
    """Check an extension (with or without leading dot) against the allow-list."""
    return extension.lower().replace(".", "", 1) in SUPPORTED_FILE_TYPES


def is_valid_file_size(size: int) -> bool:
    """Check that a size in bytes is positive and within the upload limit."""
    return 0 < size <= MAX_FILE_SIZE


def format_file_size(size: float) -> str:
    """Render a byte count with two decimals, e.g. ``20.00 MB``."""
    unit_index = 0
    while size >= 1024 and unit_index < len(_SIZE_UNITS) - 1:
        size /= 1024
        unit_index += 1
    return f"{size:.2f} {_SIZE_UNITS[unit_index]}"


def validate_file_info(filename: str, size: int) -> dict[str, Any]:
    """Check a file before upload.

    Returns:
        Dict with ``valid``, ``errors`` and ``warnings``.
    """
    errors: list[str] = []
    warnings: list[str] = []

    if is_blank(filename):
        errors.append("File name cannot be empty")
    else:
        extension = get_file_extension(filename)
        if not extension:
            warnings.append("File has no extension and may not be recognized")
        elif not is_supported_file_type(extension):
            errors.append(
                f"Unsupported file type: {extension}, supported types: {', '.join(SUPPORTED_FILE_TYPES)}"
            )

    if size <= 0:
        errors.append("File size must be greater than 0")
    elif not is_valid_file_size(size):
        errors.append(
            f"File size cannot exceed {format_file_size(MAX_FILE_SIZE)}, got {format_file_size(size)}"
        )

    return {"valid": not errors, "errors": errors, "warnings": warnings}


def validate_media_id(media_id: str | None) -> ValidationResult:
    """Check a media_id without raising."""
    if is_blank(media_id):
        return ValidationResult.from_errors(["media_id cannot be empty"])

    if not is_valid_media_id(media_id.strip()):
        return ValidationResult.from_errors([
            "Invalid media_id format, expected 10-100 letters, digits, underscores or hyphens"
        ])

    return ValidationResult.from_errors([])


def get_file_upload_guide() -> dict[str, Any]:
    """Describe how to obtain a media_id for a file message."""
    return {
        "max_size": format_file_size(MAX_FILE_SIZE),
        "supported_types": list(SUPPORTED_FILE_TYPES),
        "steps": [
            "1. Make sure the file is no larger than 20MB",
            "2. Make sure the file type is in the supported list",
            "3. Upload the file through the WeCom media API to get a media_id",
            "4. Send a file message with that media_id",
            "5. A media_id is valid for 3 days, upload again once it expires",
        ],
    }
