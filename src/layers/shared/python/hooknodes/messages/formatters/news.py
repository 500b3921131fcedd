"""News messages: collections of link cards."""

from typing import Any

from hooknodes.messages.formatters.base import BaseFormatter
from hooknodes.messages.models import (
    MessageInput,
    MessageType,
    NewsArticle,
    NewsContent,
    NewsMessage,
    ValidationResult,
)
from hooknodes.messages.validators import (
    MAX_ARTICLE_COUNT,
    MAX_DESCRIPTION_LENGTH,
    MAX_TITLE_LENGTH,
    is_blank,
    truncate_string,
    validate_news_message,
    validate_url,
)
from hooknodes.utils.exceptions import MessageValidationError

TRUNCATION_SUFFIX = "..."


class NewsFormatter(BaseFormatter):
    """Formats news messages."""

    message_type = MessageType.NEWS

    def format(self, data: MessageInput) -> NewsMessage:
        articles = data.news_articles or []

        if not articles:
            raise MessageValidationError("News message needs at least one article")

        if len(articles) > self.config.max_article_count:
            raise MessageValidationError(
                f"News message cannot have more than {self.config.max_article_count} articles, "
                f"got {len(articles)}"
            )

        return NewsMessage(
            news=NewsContent(
                articles=[
                    self._process_article(article, index)
                    for index, article in enumerate(articles, start=1)
                ]
            )
        )

    def validate(self, message: Any) -> ValidationResult:
        return validate_news_message(message)

    def _process_article(self, article: dict[str, Any], index: int) -> NewsArticle:
        """Clean one card. ``index`` is 1-based for error messages."""
        title = article.get("title")
        if is_blank(title):
            raise MessageValidationError(f"Title is required for card {index}")
        title = truncate_string(title.strip(), self.config.max_title_length, TRUNCATION_SUFFIX)

        description = article.get("description")
        if isinstance(description, str) and description:
            description = truncate_string(
                description.strip(), self.config.max_description_length, TRUNCATION_SUFFIX
            )
        else:
            description = None

        url = article.get("url")
        if is_blank(url):
            raise MessageValidationError(f"URL is required for card {index}")
        url = url.strip()
        if not validate_url(url):
            raise MessageValidationError(f"Invalid URL for card {index}: {url}")

        picurl = article.get("picurl")
        if isinstance(picurl, str) and picurl.strip():
            picurl = picurl.strip()
            if not validate_url(picurl):
                raise MessageValidationError(f"Invalid image URL for card {index}: {picurl}")
        else:
            picurl = None

        return NewsArticle(title=title, description=description, url=url, picurl=picurl)

    def create_single_article_message(
        self,
        title: str,
        url: str,
        description: str | None = None,
        picurl: str | None = None,
    ) -> NewsMessage:
        """Build a news message with one card."""
        article = {"title": title, "url": url, "description": description, "picurl": picurl}
        return self.create_multiple_articles_message([article])

    def create_multiple_articles_message(self, articles: list[dict[str, Any]]) -> NewsMessage:
        """Build a news message from several card dicts."""
        return self.format(MessageInput(message_type=MessageType.NEWS, news_articles=articles))


def validate_articles(articles: Any) -> ValidationResult:
    """Check raw card dicts against the news rules without raising.

    Args:
        articles: Candidate card list.

    Returns:
        ValidationResult with one entry per violation, prefixed by card number.
    """
    if not isinstance(articles, list):
        return ValidationResult.from_errors(["Articles must be a list"])

    errors: list[str] = []
    if not articles:
        errors.append("News message needs at least one article")
    if len(articles) > MAX_ARTICLE_COUNT:
        errors.append(
            f"News message cannot have more than {MAX_ARTICLE_COUNT} articles, got {len(articles)}"
        )

    for index, article in enumerate(articles, start=1):
        if not isinstance(article, dict):
            errors.append(f"Card {index} must be an object")
            continue

        title = article.get("title")
        if is_blank(title):
            errors.append(f"Title is required for card {index}")
        elif len(title) > MAX_TITLE_LENGTH:
            errors.append(f"Title for card {index} cannot exceed {MAX_TITLE_LENGTH} characters")

        description = article.get("description")
        if isinstance(description, str) and len(description) > MAX_DESCRIPTION_LENGTH:
            errors.append(
                f"Description for card {index} cannot exceed {MAX_DESCRIPTION_LENGTH} characters"
            )

        url = article.get("url")
        if is_blank(url):
            errors.append(f"URL is required for card {index}")
        elif not validate_url(url):
            errors.append(f"Invalid URL for card {index}: {url}")

        picurl = article.get("picurl")
        if isinstance(picurl, str) and picurl.strip() and not validate_url(picurl):
            errors.append(f"Invalid image URL for card {index}: {picurl}")

    return ValidationResult.from_errors(errors)
