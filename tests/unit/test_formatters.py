"""Tests for message formatters."""

import base64
import hashlib

import pytest

from hooknodes.messages.formatters import (
    MAX_FILE_SIZE,
    FileFormatter,
    FormatterConfig,
    ImageFormatter,
    MarkdownFormatter,
    NewsFormatter,
    TextFormatter,
    clear_formatter_cache,
    detect_image_type,
    format_file_size,
    get_file_extension,
    get_file_upload_guide,
    get_formatter,
    is_supported_file_type,
    is_valid_file_size,
    sanitize_markdown,
    validate_articles,
    validate_file_info,
    validate_media_id,
)
from hooknodes.messages.models import MessageInput, MessageType
from hooknodes.utils.exceptions import FeatureNotSupportedError, MessageValidationError

MB = 1024 * 1024


def _input(**fields):
    return MessageInput.model_validate(fields)


class TestTextFormatter:
    """Tests for text messages."""

    def test_basic(self):
        """Test plain content is passed through."""
        message = TextFormatter().format(_input(messageType="text", content="Hello team"))

        assert message.to_payload() == {"msgtype": "text", "text": {"content": "Hello team"}}
        assert TextFormatter().validate(message).valid

    def test_mentions_are_cleaned(self):
        """Test blank and duplicate mentions are dropped, bad mobiles filtered."""
        message = TextFormatter().format(_input(
            messageType="text",
            content="Deploy finished",
            mentionedUsers=["alice", "", "alice", "bob"],
            mentionedMobiles=["13800138000", "123", "13800138000"],
        ))

        assert message.text.mentioned_list == ["alice", "bob"]
        assert message.text.mentioned_mobile_list == ["13800138000"]

    def test_empty_mentions_are_omitted(self):
        """Test empty mention lists do not reach the payload."""
        message = TextFormatter().format(_input(messageType="text", content="hi", mentionedUsers=[" "]))

        assert "mentioned_list" not in message.to_payload()["text"]

    def test_blank_content_rejected(self):
        """Test whitespace-only content raises."""
        with pytest.raises(MessageValidationError, match="cannot be empty"):
            TextFormatter().format(_input(messageType="text", content="   "))

    def test_long_content_truncated(self):
        """Test content is cut to the limit with a marker."""
        message = TextFormatter().format(_input(messageType="text", content="a" * 5000))

        assert len(message.text.content) == 4096
        assert message.text.content.endswith("...(truncated)")
        assert TextFormatter().validate(message).valid

    def test_mention_all(self):
        """Test the mention-all helper."""
        message = TextFormatter().create_mention_all_message("Attention")
        assert message.text.mentioned_list == ["@all"]

    def test_validate_reports_all_errors(self):
        """Test the validator aggregates violations."""
        result = TextFormatter().validate({
            "msgtype": "text",
            "text": {"content": "", "mentioned_mobile_list": ["1", "1"]},
        })

        assert not result.valid
        assert len(result.errors) >= 3


class TestMarkdownFormatter:
    """Tests for markdown messages."""

    def test_unterminated_bold_is_closed(self):
        """Test an open bold span is closed."""
        message = MarkdownFormatter().create_markdown_message("**unterminated")

        assert message.markdown.content == "**unterminated**"
        assert MarkdownFormatter().validate(message).valid

    def test_repair_near_limit_fails_validation(self):
        """Test closing markers can push near-limit content over the limit."""
        content = "**" + "a" * 4093

        message, result = MarkdownFormatter().process(_input(messageType="markdown", markdownContent=content))

        assert len(message.markdown.content) == 4097
        assert not result.valid
        assert any("cannot exceed 4096" in error for error in result.errors)

    def test_unterminated_fence_is_closed(self):
        """Test an open code fence is closed."""
        message = MarkdownFormatter().create_markdown_message("```python\nprint(1)")
        assert message.markdown.content == "```python\nprint(1)\n```"

    def test_unterminated_inline_code_is_closed(self):
        """Test an open inline code span is closed."""
        assert sanitize_markdown("run `make") == "run `make`"

    def test_html_and_scripts_removed(self):
        """Test tags are stripped and script bodies dropped."""
        assert sanitize_markdown("<script>alert(1)</script>hello <b>world</b>") == "hello world"

    def test_unsafe_links_reduced_to_text(self):
        """Test links with invalid URLs keep only their text."""
        content = sanitize_markdown("[docs](https://example.com) and [click](not-a-url)")
        assert content == "[docs](https://example.com) and click"

    @pytest.mark.parametrize(
        "content",
        [
            "**unterminated",
            "# Title\n\n**bold** and `code",
            "```\ncode",
            "<b>x</b> [a](https://example.com)",
        ],
    )
    def test_sanitize_is_idempotent(self, content):
        """Test sanitizing twice changes nothing further."""
        once = sanitize_markdown(content)
        assert sanitize_markdown(once) == once

    def test_long_content_truncated(self):
        """Test truncation leaves room for closing markers."""
        message = MarkdownFormatter().create_markdown_message("a" * 5000)

        assert len(message.markdown.content) == 4096 - 15
        assert message.markdown.content.endswith("\n\n...(truncated)")

    def test_blank_rejected(self):
        """Test blank content raises."""
        with pytest.raises(MessageValidationError):
            MarkdownFormatter().create_markdown_message("  ")

    def test_helpers(self):
        """Test heading, link and code block helpers."""
        formatter = MarkdownFormatter()

        assert formatter.create_titled_markdown("Report", "All good").markdown.content == "# Report\n\nAll good"
        assert formatter.create_markdown_with_link(
            "See", "docs", "https://example.com"
        ).markdown.content == "See\n\n[docs](https://example.com)"
        assert formatter.create_code_block_message("x = 1", "python").markdown.content == "```python\nx = 1\n```"

    def test_validate_flags_unbalanced(self):
        """Test the validator catches unbalanced markers in raw payloads."""
        result = MarkdownFormatter().validate({"msgtype": "markdown", "markdown": {"content": "**open"}})

        assert not result.valid
        assert "Unbalanced markdown bold markers (**)" in result.errors


class TestImageFormatter:
    """Tests for image messages."""

    def test_png(self, png_base64):
        """Test a PNG yields base64 and the MD5 of the decoded bytes."""
        message = ImageFormatter().create_image_message(png_base64)

        expected_md5 = hashlib.md5(base64.b64decode(png_base64)).hexdigest()
        assert message.image.base64 == png_base64
        assert message.image.md5 == expected_md5
        assert len(message.image.md5) == 32
        assert ImageFormatter().validate(message).valid

    def test_data_uri_and_whitespace_stripped(self, png_base64):
        """Test data URI prefixes and line breaks are removed."""
        wrapped = "data:image/png;base64," + png_base64[:40] + "\n" + png_base64[40:]
        message = ImageFormatter().create_image_message(wrapped)

        assert message.image.base64 == png_base64

    def test_too_large(self):
        """Test images over 2MB are rejected."""
        data = base64.b64encode(b"\x89PNG" + b"\0" * (2 * MB + 10)).decode()

        with pytest.raises(MessageValidationError, match="cannot exceed 2MB"):
            ImageFormatter().create_image_message(data)

    def test_gif_rejected_by_default(self):
        """Test GIF is outside the default allow-list."""
        data = base64.b64encode(b"GIF89a" + b"\0" * 10).decode()

        with pytest.raises(MessageValidationError, match="Unsupported image format: gif"):
            ImageFormatter().create_image_message(data)

    def test_gif_allowed_by_config(self):
        """Test the allow-list is configurable."""
        data = base64.b64encode(b"GIF89a" + b"\0" * 10).decode()
        config = FormatterConfig(supported_image_types=("png", "gif"))

        assert ImageFormatter(config).create_image_message(data).image.base64 == data

    def test_invalid_base64(self):
        """Test malformed data is rejected."""
        with pytest.raises(MessageValidationError, match="Invalid base64 encoding"):
            ImageFormatter().create_image_message("!!!not-base64!!!")

    def test_blank(self):
        """Test blank data is rejected."""
        with pytest.raises(MessageValidationError, match="cannot be empty"):
            ImageFormatter().create_image_message("")

    def test_image_url_not_supported(self):
        """Test URL sources raise a distinguishable not-supported error."""
        with pytest.raises(FeatureNotSupportedError) as exc_info:
            ImageFormatter().format(_input(messageType="image", imageUrl="https://example.com/a.png"))

        assert isinstance(exc_info.value, NotImplementedError)
        assert exc_info.value.feature == "image_url"
        assert exc_info.value.error_code == "NOT_SUPPORTED"

    def test_detect_image_type(self, png_base64):
        """Test signature sniffing."""
        assert detect_image_type(png_base64) == "png"
        assert detect_image_type(base64.b64encode(b"\xff\xd8\xff\xe0" + b"\0" * 12).decode()) == "jpg"
        assert detect_image_type(base64.b64encode(b"hello world!").decode()) == "unknown"

    def test_validate_image_requirements(self, png_base64):
        """Test the non-raising requirement check."""
        assert ImageFormatter().validate_image_requirements(png_base64).valid

        result = ImageFormatter().validate_image_requirements(base64.b64encode(b"GIF89a").decode())
        assert not result.valid
        assert "Unsupported image format: gif" in result.errors


class TestNewsFormatter:
    """Tests for news messages."""

    def test_single_article(self):
        """Test one card with optional fields omitted when blank."""
        message = NewsFormatter().create_single_article_message(
            title=" Release notes ",
            url="https://example.com/notes",
            description="",
            picurl="  ",
        )

        assert message.to_payload() == {
            "msgtype": "news",
            "news": {"articles": [{"title": "Release notes", "url": "https://example.com/notes"}]},
        }

    def test_no_articles(self):
        """Test an empty card list is rejected."""
        with pytest.raises(MessageValidationError, match="at least one article"):
            NewsFormatter().create_multiple_articles_message([])

    def test_too_many_articles(self):
        """Test more than 8 cards are rejected."""
        articles = [{"title": f"t{i}", "url": "https://example.com"} for i in range(9)]

        with pytest.raises(MessageValidationError, match="cannot have more than 8 articles"):
            NewsFormatter().create_multiple_articles_message(articles)

    def test_invalid_url_names_card(self):
        """Test errors name the 1-based card index."""
        with pytest.raises(MessageValidationError, match="card 1: not-a-url"):
            NewsFormatter().create_multiple_articles_message([{"title": "t", "url": "not-a-url"}])

    def test_missing_title_names_card(self):
        """Test the second card is reported as card 2."""
        articles = [
            {"title": "ok", "url": "https://example.com"},
            {"title": "", "url": "https://example.com"},
        ]
        with pytest.raises(MessageValidationError, match="Title is required for card 2"):
            NewsFormatter().create_multiple_articles_message(articles)

    def test_long_fields_truncated(self):
        """Test title and description are cut to their limits."""
        message = NewsFormatter().create_single_article_message(
            title="t" * 200,
            url="https://example.com",
            description="d" * 600,
        )
        article = message.news.articles[0]

        assert len(article.title) == 128
        assert article.title.endswith("...")
        assert len(article.description) == 512

    def test_invalid_picurl(self):
        """Test a non-blank invalid image URL is rejected."""
        with pytest.raises(MessageValidationError, match="Invalid image URL for card 1"):
            NewsFormatter().create_single_article_message("t", "https://example.com", picurl="nope")

    def test_validate_articles_aggregates(self):
        """Test the non-raising checker reports every card."""
        result = validate_articles([
            {"title": "", "url": "https://example.com"},
            {"title": "ok", "url": "bad"},
        ])

        assert not result.valid
        assert "Title is required for card 1" in result.errors
        assert "Invalid URL for card 2: bad" in result.errors


class TestFileFormatter:
    """Tests for file messages and upload helpers."""

    def test_valid_media_id(self):
        """Test a well-formed media_id."""
        message = FileFormatter().create_file_message(" 3a8asd892asd8asd ")

        assert message.to_payload() == {"msgtype": "file", "file": {"media_id": "3a8asd892asd8asd"}}

    def test_blank_media_id(self):
        """Test blank media_id is rejected."""
        with pytest.raises(MessageValidationError, match="cannot be empty"):
            FileFormatter().create_file_message("")

    def test_malformed_media_id(self):
        """Test media_id charset and length are enforced."""
        with pytest.raises(MessageValidationError, match="Invalid file media_id format"):
            FileFormatter().create_file_message("bad id!")

    def test_validate_media_id(self):
        """Test the non-raising media_id check."""
        assert validate_media_id("3a8asd892asd8asd").valid
        assert not validate_media_id("short").valid
        assert not validate_media_id(None).valid

    def test_file_helpers(self):
        """Test extension, size and type helpers."""
        assert get_file_extension("Report.PDF") == "pdf"
        assert get_file_extension("README") == ""
        assert is_supported_file_type(".pdf")
        assert not is_supported_file_type("exe")
        assert is_valid_file_size(MAX_FILE_SIZE)
        assert not is_valid_file_size(0)
        assert not is_valid_file_size(MAX_FILE_SIZE + 1)
        assert format_file_size(MAX_FILE_SIZE) == "20.00 MB"
        assert format_file_size(512) == "512.00 B"

    def test_validate_file_info(self):
        """Test errors and warnings before upload."""
        assert validate_file_info("report.pdf", 1024)["valid"]

        no_extension = validate_file_info("archive", 1024)
        assert no_extension["valid"]
        assert no_extension["warnings"]

        bad = validate_file_info("tool.exe", 0)
        assert not bad["valid"]
        assert len(bad["errors"]) == 2

    def test_upload_guide(self):
        """Test the upload guide content."""
        guide = get_file_upload_guide()

        assert guide["max_size"] == "20.00 MB"
        assert "pdf" in guide["supported_types"]
        assert len(guide["steps"]) == 5


class TestFormatterFactory:
    """Tests for formatter selection."""

    def setup_method(self):
        """Start each test with an empty cache."""
        clear_formatter_cache()

    @pytest.mark.parametrize(
        "kind,formatter_class",
        [
            ("text", TextFormatter),
            ("markdown", MarkdownFormatter),
            ("image", ImageFormatter),
            ("news", NewsFormatter),
            ("file", FileFormatter),
        ],
    )
    def test_dispatch(self, kind, formatter_class):
        """Test each kind maps to its formatter."""
        assert isinstance(get_formatter(kind), formatter_class)

    def test_cached_for_default_config(self):
        """Test default-config formatters are reused."""
        assert get_formatter("text") is get_formatter(MessageType.TEXT)

    def test_custom_config_not_cached(self):
        """Test custom configs get fresh instances."""
        config = FormatterConfig(max_content_length=100)
        formatter = get_formatter("text", config)

        assert formatter is not get_formatter("text")
        assert formatter.config.max_content_length == 100

    def test_clear_cache(self):
        """Test clearing the cache yields new instances."""
        first = get_formatter("news")
        clear_formatter_cache()

        assert get_formatter("news") is not first

    def test_unknown_kind(self):
        """Test unknown kinds raise a descriptive error."""
        with pytest.raises(MessageValidationError, match="Unsupported message type: video"):
            get_formatter("video")
