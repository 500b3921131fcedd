"""Image messages from base64 data."""

import binascii
import hashlib
import re
from typing import Any

from hooknodes.messages.formatters.base import BaseFormatter
from hooknodes.messages.models import (
    ImageContent,
    ImageMessage,
    MessageInput,
    MessageType,
    ValidationResult,
)
from hooknodes.messages.validators import (
    base64_size,
    decode_base64,
    is_blank,
    is_valid_base64,
    validate_image_message,
)
from hooknodes.utils.exceptions import FeatureNotSupportedError, MessageValidationError

DATA_URI_PREFIX = re.compile(r"^data:image/[a-z]+;base64,", re.IGNORECASE)
WHITESPACE = re.compile(r"\s")

# Leading magic bytes per image type
IMAGE_SIGNATURES: list[tuple[bytes, str]] = [
    (b"\x89PNG", "png"),
    (b"\xff\xd8\xff", "jpg"),
    (b"GIF8", "gif"),
]

MB = 1024 * 1024


def clean_base64(data: str) -> str:
    """Remove a data URI prefix and any whitespace."""
    return WHITESPACE.sub("", DATA_URI_PREFIX.sub("", data))


def detect_image_type(data: str) -> str:
    """Sniff the image type from the first decoded bytes.

    Returns:
        ``png``, ``jpg``, ``gif`` or ``unknown``.
    """
    try:
        head = decode_base64(data[:16])
    except (binascii.Error, ValueError):
        return "unknown"

    if len(head) < 4:
        return "unknown"

    for signature, image_type in IMAGE_SIGNATURES:
        if head.startswith(signature):
            return image_type

    return "unknown"


class ImageFormatter(BaseFormatter):
    """Formats image messages."""

    message_type = MessageType.IMAGE

    def format(self, data: MessageInput) -> ImageMessage:
        raw = data.image_base64 or ""

        if data.image_url and not raw:
            raise FeatureNotSupportedError(
                "image_url",
                "Converting an image URL to base64 is not supported yet, provide base64 data",
            )

        if is_blank(raw):
            raise MessageValidationError("Image base64 data cannot be empty")

        cleaned = clean_base64(raw)
        if not is_valid_base64(cleaned):
            raise MessageValidationError("Invalid base64 encoding")

        size = base64_size(cleaned)
        if size > self.config.max_image_size:
            raise MessageValidationError(
                f"Image size cannot exceed {self.config.max_image_size / MB:g}MB, "
                f"got {size / MB:.2f}MB"
            )

        image_type = detect_image_type(cleaned)
        if image_type not in self.config.supported_image_types:
            raise MessageValidationError(
                f"Unsupported image format: {image_type}, "
                f"supported formats: {', '.join(self.config.supported_image_types)}"
            )

        md5 = hashlib.md5(decode_base64(cleaned)).hexdigest()

        return ImageMessage(image=ImageContent(base64=cleaned, md5=md5))

    def validate(self, message: Any) -> ValidationResult:
        return validate_image_message(message, self.config.max_image_size)

    def create_image_message(self, data: str) -> ImageMessage:
        """Build an image message from base64 data."""
        return self.format(MessageInput(message_type=MessageType.IMAGE, image_base64=data))

    def create_image_message_from_file(self, path: str) -> ImageMessage:
        """Build an image message from a local file."""
        raise FeatureNotSupportedError("image_file", "Creating an image message from a file is not supported yet")

    def validate_image_requirements(self, data: str) -> ValidationResult:
        """Check base64 image data against every rule without raising."""
        errors: list[str] = []
        cleaned = clean_base64(data or "")

        if not is_valid_base64(cleaned):
            errors.append("Invalid base64 encoding")

        size = base64_size(cleaned)
        if size > self.config.max_image_size:
            errors.append(
                f"Image size exceeds the limit: {size / MB:.2f}MB > {self.config.max_image_size / MB:g}MB"
            )

        image_type = detect_image_type(cleaned)
        if image_type not in self.config.supported_image_types:
            errors.append(f"Unsupported image format: {image_type}")

        return ValidationResult.from_errors(errors)
