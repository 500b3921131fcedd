"""Wire-format message models for WeCom group-bot webhooks.

Models describe shape only. Length limits, URL checks and mention filtering
are enforced by the formatters and validators, so a model can always be built
from whatever a formatter produced and then checked.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class MessageType(str, Enum):
    """Supported message kinds."""

    TEXT = "text"
    MARKDOWN = "markdown"
    IMAGE = "image"
    NEWS = "news"
    FILE = "file"


class WireModel(BaseModel):
    """Base for outbound payload models."""

    model_config = ConfigDict(populate_by_name=True)

    def to_payload(self) -> dict[str, Any]:
        """Serialize to the JSON body sent to the webhook."""
        return self.model_dump(mode="json", exclude_none=True)


class TextContent(WireModel):
    """Body of a text message."""

    content: str
    mentioned_list: list[str] | None = None
    mentioned_mobile_list: list[str] | None = None


class TextMessage(WireModel):
    """Plain text message with optional @mentions."""

    msgtype: Literal["text"] = "text"
    text: TextContent


class MarkdownContent(WireModel):
    """Body of a markdown message."""

    content: str


class MarkdownMessage(WireModel):
    """Markdown message."""

    msgtype: Literal["markdown"] = "markdown"
    markdown: MarkdownContent


class ImageContent(WireModel):
    """Body of an image message."""

    base64: str
    md5: str


class ImageMessage(WireModel):
    """Image message carrying base64 data and its MD5 digest."""

    msgtype: Literal["image"] = "image"
    image: ImageContent


class NewsArticle(WireModel):
    """A single link card."""

    title: str
    description: str | None = None
    url: str
    picurl: str | None = None


class NewsContent(WireModel):
    """Body of a news message."""

    articles: list[NewsArticle]


class NewsMessage(WireModel):
    """Collection of 1..8 link cards."""

    msgtype: Literal["news"] = "news"
    news: NewsContent


class FileContent(WireModel):
    """Body of a file message."""

    media_id: str


class FileMessage(WireModel):
    """Reference to a previously uploaded file."""

    msgtype: Literal["file"] = "file"
    file: FileContent


WeworkMessage = TextMessage | MarkdownMessage | ImageMessage | NewsMessage | FileMessage


class MessageInput(BaseModel):
    """Loosely typed formatter input gathered from node parameters."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    message_type: MessageType
    content: str | None = None
    markdown_content: str | None = None
    image_base64: str | None = None
    image_url: str | None = None
    news_articles: list[dict[str, Any]] = Field(default_factory=list)
    file_media_id: str | None = None
    mentioned_users: list[str] = Field(default_factory=list)
    mentioned_mobiles: list[str] = Field(default_factory=list)


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating a formatted message. Never mutated after return."""

    valid: bool
    errors: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_errors(cls, errors: list[str]) -> "ValidationResult":
        """Build a result from a list of violations."""
        return cls(valid=not errors, errors=tuple(errors))


class WeworkApiResponse(BaseModel):
    """Uniform ``{errcode, errmsg}`` response envelope."""

    errcode: int
    errmsg: str

    @property
    def ok(self) -> bool:
        """Whether the API reported success."""
        return self.errcode == 0


def utc_now_millis() -> int:
    """Get the current UTC time in epoch milliseconds."""
    return int(datetime.now(timezone.utc).timestamp() * 1000)


class DeliveryOutcome(BaseModel):
    """Result of one delivery call, retries included."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    success: bool
    message_id: str | None = None
    error_code: int | None = None
    error_message: str | None = None
    timestamp: int = Field(default_factory=utc_now_millis)
    message_type: str

    def to_record(self) -> dict[str, Any]:
        """Serialize with camelCase keys, dropping unset fields."""
        return self.model_dump(by_alias=True, exclude_none=True)
