"""Validation rules for outbound messages.

Validators never raise. Each one walks the whole payload and reports every
violation it finds, so a caller sees all problems at once.
"""

import base64
import binascii
import re
from typing import Any
from urllib.parse import urlsplit

from pydantic import BaseModel

from hooknodes.messages.models import MessageType, ValidationResult

MAX_CONTENT_LENGTH = 4096
MAX_IMAGE_SIZE = 2 * 1024 * 1024
MAX_ARTICLE_COUNT = 8
MAX_TITLE_LENGTH = 128
MAX_DESCRIPTION_LENGTH = 512

MOBILE_PATTERN = re.compile(r"^1[3-9]\d{9}$")
BASE64_PATTERN = re.compile(r"^[A-Za-z0-9+/]*={0,2}$")

# Markdown syntax
BOLD_PATTERN = re.compile(r"\*\*")
BOLD_SPAN_PATTERN = re.compile(r"\*\*[^*]*\*\*")
ITALIC_PATTERN = re.compile(r"(?<!\*)\*(?!\*)")
FENCE_PATTERN = re.compile(r"```")
FENCED_BLOCK_PATTERN = re.compile(r"```[\s\S]*?```")
LINK_PATTERN = re.compile(r"\[([^\]]*)\]\(([^)]*)\)")
HTML_TAG_PATTERN = re.compile(r"<[^>]+>")


def validate_url(url: Any) -> bool:
    """Check that a value is an absolute http or https URL."""
    if not isinstance(url, str) or not url.strip():
        return False

    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return False

    return parts.scheme in ("http", "https") and bool(parts.netloc)


def is_blank(value: Any) -> bool:
    """Check whether a value is missing or whitespace only."""
    return not isinstance(value, str) or not value.strip()


def truncate_string(value: str, max_length: int, suffix: str = "...") -> str:
    """Cut a string to ``max_length`` characters, ending with ``suffix``."""
    if len(value) <= max_length:
        return value
    return value[: max_length - len(suffix)] + suffix


def decode_base64(data: str) -> bytes:
    """Decode base64, tolerating missing padding.

    Raises:
        binascii.Error: If the data is not valid base64.
    """
    padded = data + "=" * (-len(data) % 4)
    return base64.b64decode(padded, validate=True)


def is_valid_base64(data: str) -> bool:
    """Check base64 by character set and a decode/re-encode round trip."""
    if not BASE64_PATTERN.match(data):
        return False

    try:
        decoded = decode_base64(data)
    except (binascii.Error, ValueError):
        return False

    return base64.b64encode(decoded).decode("ascii").rstrip("=") == data.rstrip("=")


def base64_size(data: str) -> float:
    """Estimate the decoded byte size of a base64 string."""
    return len(data) * 3 / 4 - data.count("=")


def count_inline_code_markers(content: str) -> int:
    """Count single backticks outside fenced code blocks."""
    return FENCED_BLOCK_PATTERN.sub("", content).count("`")


def count_italic_markers(content: str) -> int:
    """Count lone ``*`` markers once bold spans are removed."""
    return len(ITALIC_PATTERN.findall(BOLD_SPAN_PATTERN.sub("", content)))


def _as_payload(message: Any) -> Any:
    if isinstance(message, BaseModel):
        return message.model_dump(mode="json", exclude_none=True)
    return message


def _section(payload: Any, name: str) -> dict[str, Any] | None:
    if not isinstance(payload, dict):
        return None
    section = payload.get(name)
    return section if isinstance(section, dict) else None


def _check_content(content: Any, label: str, errors: list[str]) -> None:
    if not isinstance(content, str) or not content:
        errors.append(f"{label} content is required")
        return

    stripped = content.strip()
    if not stripped:
        errors.append(f"{label} content cannot be whitespace only")
    elif len(stripped) > MAX_CONTENT_LENGTH:
        errors.append(
            f"{label} content cannot exceed {MAX_CONTENT_LENGTH} characters, got {len(stripped)}"
        )


def validate_text_message(message: Any) -> ValidationResult:
    """Validate a text message payload."""
    payload = _as_payload(message)
    errors: list[str] = []

    if not isinstance(payload, dict) or payload.get("msgtype") != MessageType.TEXT.value:
        errors.append("Message type must be text")

    text = _section(payload, "text") or {}
    _check_content(text.get("content"), "Text message", errors)

    mentioned = text.get("mentioned_list")
    if mentioned is not None:
        if not isinstance(mentioned, list):
            errors.append("Mentioned users must be a list")
        else:
            if len(set(map(str, mentioned))) != len(mentioned):
                errors.append("Mentioned users contain duplicates")
            if any(is_blank(user) for user in mentioned):
                errors.append("Mentioned user IDs cannot be empty")

    mobiles = text.get("mentioned_mobile_list")
    if mobiles is not None:
        if not isinstance(mobiles, list):
            errors.append("Mentioned mobiles must be a list")
        else:
            if len(set(map(str, mobiles))) != len(mobiles):
                errors.append("Mentioned mobiles contain duplicates")
            for mobile in mobiles:
                if not isinstance(mobile, str):
                    errors.append("Mobile numbers must be strings")
                    break
                if not MOBILE_PATTERN.match(mobile):
                    errors.append(
                        f"Invalid mobile number: {mobile}, expected 11 digits starting with 1"
                    )

    return ValidationResult.from_errors(errors)


def validate_markdown_syntax(content: str) -> list[str]:
    """Check markdown balance, links and stray HTML.

    Args:
        content: Markdown text.

    Returns:
        List of violations, empty when the content is clean.
    """
    errors: list[str] = []

    if len(BOLD_PATTERN.findall(content)) % 2:
        errors.append("Unbalanced markdown bold markers (**)")

    if count_italic_markers(content) % 2:
        errors.append("Unbalanced markdown italic markers (*)")

    if len(FENCE_PATTERN.findall(content)) % 2:
        errors.append("Unbalanced markdown code fences (```)")

    if count_inline_code_markers(content) % 2:
        errors.append("Unbalanced markdown inline code markers (`)")

    for match in LINK_PATTERN.finditer(content):
        link_text, link_url = match.group(1), match.group(2)
        if not link_text.strip():
            errors.append("Markdown link text cannot be empty")
        if not link_url.strip():
            errors.append("Markdown link URL cannot be empty")
        elif not validate_url(link_url):
            errors.append(f"Invalid markdown link URL: {link_url}")

    if HTML_TAG_PATTERN.search(content):
        errors.append("Markdown content must not contain HTML tags")

    return errors


def validate_markdown_message(message: Any) -> ValidationResult:
    """Validate a markdown message payload."""
    payload = _as_payload(message)
    errors: list[str] = []

    if not isinstance(payload, dict) or payload.get("msgtype") != MessageType.MARKDOWN.value:
        errors.append("Message type must be markdown")

    markdown = _section(payload, "markdown") or {}
    content = markdown.get("content")
    _check_content(content, "Markdown message", errors)

    if isinstance(content, str) and content.strip():
        errors.extend(validate_markdown_syntax(content))

    return ValidationResult.from_errors(errors)


def validate_image_message(message: Any, max_image_size: int = MAX_IMAGE_SIZE) -> ValidationResult:
    """Validate an image message payload."""
    payload = _as_payload(message)
    errors: list[str] = []

    if not isinstance(payload, dict) or payload.get("msgtype") != MessageType.IMAGE.value:
        errors.append("Message type must be image")

    image = _section(payload, "image") or {}
    data = image.get("base64")
    if is_blank(data):
        errors.append("Image base64 data is required")
    else:
        if not is_valid_base64(data):
            errors.append("Invalid base64 encoding")
        if base64_size(data) > max_image_size:
            errors.append(f"Image size cannot exceed {max_image_size / (1024 * 1024):g}MB")

    if is_blank(image.get("md5")):
        errors.append("Image MD5 is required")

    return ValidationResult.from_errors(errors)


def validate_news_article(article: Any) -> list[str]:
    """Validate a single link card, returning its violations."""
    if not isinstance(article, dict):
        return ["Article must be an object"]

    errors: list[str] = []
    title = article.get("title")
    if is_blank(title):
        errors.append("Article title is required")
    elif len(title) > MAX_TITLE_LENGTH:
        errors.append(f"Article title cannot exceed {MAX_TITLE_LENGTH} characters")

    description = article.get("description")
    if isinstance(description, str) and len(description) > MAX_DESCRIPTION_LENGTH:
        errors.append(f"Article description cannot exceed {MAX_DESCRIPTION_LENGTH} characters")

    url = article.get("url")
    if is_blank(url):
        errors.append("Article URL is required")
    elif not validate_url(url):
        errors.append("Invalid article URL")

    picurl = article.get("picurl")
    if picurl and not validate_url(picurl):
        errors.append("Invalid article image URL")

    return errors


def validate_news_message(message: Any) -> ValidationResult:
    """Validate a news message payload."""
    payload = _as_payload(message)
    errors: list[str] = []

    if not isinstance(payload, dict) or payload.get("msgtype") != MessageType.NEWS.value:
        errors.append("Message type must be news")

    news = _section(payload, "news") or {}
    articles = news.get("articles")
    if not isinstance(articles, list):
        errors.append("News articles are required and must be a list")
        return ValidationResult.from_errors(errors)

    if not articles:
        errors.append("News message needs at least one article")
    if len(articles) > MAX_ARTICLE_COUNT:
        errors.append(f"News message cannot have more than {MAX_ARTICLE_COUNT} articles")

    for index, article in enumerate(articles, start=1):
        article_errors = validate_news_article(article)
        if article_errors:
            errors.append(f"Article {index}: {', '.join(article_errors)}")

    return ValidationResult.from_errors(errors)


def validate_file_message(message: Any) -> ValidationResult:
    """Validate a file message payload."""
    payload = _as_payload(message)
    errors: list[str] = []

    if not isinstance(payload, dict) or payload.get("msgtype") != MessageType.FILE.value:
        errors.append("Message type must be file")

    file_section = _section(payload, "file") or {}
    media_id = file_section.get("media_id")
    if media_id is None or media_id == "":
        errors.append("File media_id is required")
    elif not isinstance(media_id, str):
        errors.append("File media_id must be a string")

    return ValidationResult.from_errors(errors)


def validate_message(message: Any, max_image_size: int = MAX_IMAGE_SIZE) -> ValidationResult:
    """Validate any message payload by its ``msgtype``."""
    payload = _as_payload(message)
    msgtype = payload.get("msgtype") if isinstance(payload, dict) else None

    if msgtype == MessageType.TEXT.value:
        return validate_text_message(payload)
    elif msgtype == MessageType.MARKDOWN.value:
        return validate_markdown_message(payload)
    elif msgtype == MessageType.IMAGE.value:
        return validate_image_message(payload, max_image_size)
    elif msgtype == MessageType.NEWS.value:
        return validate_news_message(payload)
    elif msgtype == MessageType.FILE.value:
        return validate_file_message(payload)

    return ValidationResult.from_errors([f"Unsupported message type: {msgtype}"])
