"""HTTP client for WeCom group-bot webhooks.

Posts one formatted message per call and retries transient failures with
exponential backoff. Every failure surfaces as a ``ChatApiError`` carrying
either the API ``errcode`` or a synthetic negative code.
"""

import asyncio
import os
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable
from urllib.parse import urlsplit

import httpx

from hooknodes import __version__
from hooknodes.execution.error_classifier import (
    MALFORMED_RESPONSE,
    NETWORK_FAILURE,
    REQUEST_TIMEOUT,
    SYSTEM_BUSY,
    ErrorStats,
    create_api_error,
    is_retryable,
)
from hooknodes.execution.retry_policy import RetryConfig, calculate_retry_delay
from hooknodes.messages.models import WeworkApiResponse, WireModel
from hooknodes.observability.logger import NodeLogger, create_logger
from hooknodes.observability.redaction import mask_url
from hooknodes.utils.exceptions import ChatApiError, InvalidWebhookUrlError

WEBHOOK_HOST = "qyapi.weixin.qq.com"
TEST_MESSAGE_CONTENT = "Connection test succeeded - WeworkBot"

# Substrings marking transport failures that are always worth another attempt
_TRANSIENT_MARKERS = ("network", "timed out", "timeout")


@dataclass
class ClientConfig:
    """Configuration for the webhook client. Durations are in seconds."""

    timeout: float = 30.0
    max_retries: int = 3
    retry_delay: float = 1.0
    retry_backoff_factor: float = 2.0
    max_retry_delay: float = 30.0
    jitter: bool = True
    user_agent: str = f"hooknodes-wework-bot/{__version__}"

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Build a config, overriding defaults from ``HOOKNODES_*`` variables."""
        return cls(
            timeout=float(os.environ.get("HOOKNODES_HTTP_TIMEOUT", "30")),
            max_retries=int(os.environ.get("HOOKNODES_MAX_RETRIES", "3")),
            retry_delay=float(os.environ.get("HOOKNODES_RETRY_DELAY", "1")),
        )

    def retry_config(self) -> RetryConfig:
        """Get the backoff settings as a RetryConfig."""
        return RetryConfig(
            max_retries=self.max_retries,
            base_delay=self.retry_delay,
            max_delay=self.max_retry_delay,
            backoff_factor=self.retry_backoff_factor,
            jitter=self.jitter,
        )


def is_valid_webhook_url(url: Any) -> bool:
    """Check that a URL is an HTTPS WeCom webhook endpoint."""
    if not isinstance(url, str):
        return False

    try:
        parts = urlsplit(url)
        hostname = parts.hostname or ""
    except ValueError:
        return False

    if parts.scheme != "https":
        return False

    if hostname != WEBHOOK_HOST:
        return False

    return "webhook" in parts.path or "send" in parts.path


def parse_api_response(data: Any) -> WeworkApiResponse:
    """Validate a response body and raise for non-zero ``errcode``.

    Raises:
        ChatApiError: Code -5 for malformed bodies, the API code otherwise.
    """
    if not isinstance(data, dict):
        raise ChatApiError(MALFORMED_RESPONSE, "Invalid API response format", data)

    errcode = data.get("errcode")
    if not isinstance(errcode, int) or isinstance(errcode, bool):
        raise ChatApiError(MALFORMED_RESPONSE, "API response is missing errcode", data)

    if not isinstance(data.get("errmsg"), str):
        raise ChatApiError(MALFORMED_RESPONSE, "API response is missing errmsg", data)

    response = WeworkApiResponse(errcode=errcode, errmsg=data["errmsg"])
    if not response.ok:
        raise create_api_error(data)

    return response


class WeworkApiClient:
    """Webhook client with bounded retries.

    Example:
        client = WeworkApiClient(ClientConfig(max_retries=2))
        response = await client.send_message(webhook_url, message)
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        logger: NodeLogger | None = None,
        stats: ErrorStats | None = None,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initialize the client.

        Args:
            config: Client configuration.
            logger: Logger to write to. Defaults to a fresh ``ApiClient`` logger.
            stats: Error statistics to update. Defaults to a private instance.
            http_client: Shared HTTP client. Not closed by this class.
            sleep: Awaitable used for backoff pauses.
        """
        self.config = config or ClientConfig()
        self.logger = logger or create_logger("ApiClient")
        self.stats = stats if stats is not None else ErrorStats()
        self._http_client = http_client
        self._sleep = sleep

    async def send_message(self, webhook_url: str, message: WireModel | dict[str, Any]) -> WeworkApiResponse:
        """Send a message, retrying retryable failures.

        Args:
            webhook_url: Target webhook URL.
            message: Wire message model or its payload dict.

        Returns:
            The successful API response.

        Raises:
            InvalidWebhookUrlError: If the URL is not a WeCom webhook. No request is made.
            ChatApiError: The last classified error once retries stop.
        """
        if not is_valid_webhook_url(webhook_url):
            self.logger.error("Invalid webhook URL", {"webhook_url": mask_url(str(webhook_url))})
            raise InvalidWebhookUrlError(url=str(webhook_url))

        payload = message.to_payload() if isinstance(message, WireModel) else dict(message)
        message_type = payload.get("msgtype")
        retry_config = self.config.retry_config()
        start = time.monotonic()

        self.logger.info("Sending message", {
            "message_type": message_type,
            "webhook_url": mask_url(webhook_url),
        })

        attempt = 0
        last_error: ChatApiError | None = None

        while attempt <= self.config.max_retries:
            request_start = time.monotonic()
            try:
                response = await self._post(webhook_url, payload)
            except ChatApiError as e:
                last_error = e
            else:
                total = time.monotonic() - start
                self.logger.info("Message sent", {
                    "attempt": attempt + 1,
                    "request_ms": round((time.monotonic() - request_start) * 1000),
                    "total_ms": round(total * 1000),
                    "errcode": response.errcode,
                })
                self.logger.log_performance(
                    "send_message",
                    total,
                    message_type=message_type,
                    attempts=attempt + 1,
                    success=True,
                )
                if attempt > 0:
                    self.stats.record_successful_retry()
                return response

            attempt += 1
            self.stats.record_error(last_error, is_retry=attempt > 1)
            self.logger.error("Message send failed", {
                "attempt": attempt,
                "max_retries": self.config.max_retries,
                "error": last_error.message,
                "code": last_error.code,
                "elapsed_ms": round((time.monotonic() - start) * 1000),
            })

            if attempt > self.config.max_retries:
                break

            if not self.should_retry(last_error):
                self.logger.info("Error is not retryable, giving up", {"code": last_error.code})
                break

            delay = calculate_retry_delay(attempt, retry_config)
            self.logger.log_retry(attempt, self.config.max_retries, delay, last_error)
            await self._sleep(delay)

        total = time.monotonic() - start
        self.logger.error("All attempts failed", {
            "error": last_error.message,
            "code": last_error.code,
            "total_ms": round(total * 1000),
            "total_attempts": attempt,
        })
        self.logger.log_performance(
            "send_message",
            total,
            message_type=message_type,
            attempts=attempt,
            success=False,
            error_code=last_error.code,
        )
        raise last_error

    async def test_connection(self, webhook_url: str) -> bool:
        """Send a harmless text message and report whether it was accepted."""
        start = time.monotonic()
        self.logger.info("Testing connection", {"webhook_url": mask_url(str(webhook_url))})

        test_message = {"msgtype": "text", "text": {"content": TEST_MESSAGE_CONTENT}}
        try:
            response = await self.send_message(webhook_url, test_message)
        except Exception as e:
            self.logger.error("Connection test failed", {
                "error": str(e),
                "duration_ms": round((time.monotonic() - start) * 1000),
            })
            return False

        self.logger.info("Connection test finished", {
            "success": response.ok,
            "duration_ms": round((time.monotonic() - start) * 1000),
            "errcode": response.errcode,
        })
        return response.ok

    def should_retry(self, error: ChatApiError) -> bool:
        """Decide whether a failed attempt is worth repeating.

        Transport failures, including unparseable bodies, are retried
        alongside the codes the classifier marks retryable.
        """
        if error.code in (REQUEST_TIMEOUT, NETWORK_FAILURE, MALFORMED_RESPONSE):
            return True
        lowered = error.message.lower()
        if any(marker in lowered for marker in _TRANSIENT_MARKERS):
            return True
        return is_retryable(error.code)

    async def _post(self, url: str, payload: dict[str, Any]) -> WeworkApiResponse:
        """Perform a single POST and parse the envelope."""
        headers = {
            "Content-Type": "application/json",
            "User-Agent": self.config.user_agent,
        }
        self.logger.log_api_request("POST", url, headers, payload)
        request_start = time.monotonic()

        try:
            if self._http_client is not None:
                response = await self._http_client.post(
                    url, json=payload, headers=headers, timeout=self.config.timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self.config.timeout) as client:
                    response = await client.post(url, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            raise ChatApiError(REQUEST_TIMEOUT, f"Request timed out ({self.config.timeout:g}s)") from e
        except httpx.DecodingError as e:
            raise ChatApiError(MALFORMED_RESPONSE, f"Malformed response data: {e}") from e
        except httpx.HTTPError as e:
            raise ChatApiError(NETWORK_FAILURE, f"Network connection failed: {e}") from e

        self.logger.log_api_response(
            response.status_code,
            response.reason_phrase,
            dict(response.headers),
            duration=time.monotonic() - request_start,
        )

        if not response.is_success:
            raise ChatApiError(SYSTEM_BUSY, f"HTTP error: {response.status_code} {response.reason_phrase}")

        try:
            data = response.json()
        except ValueError as e:
            raise ChatApiError(MALFORMED_RESPONSE, "Malformed response data: body is not JSON") from e

        return parse_api_response(data)
