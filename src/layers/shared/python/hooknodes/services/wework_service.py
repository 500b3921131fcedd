"""High-level delivery service for WeCom bot messages.

Wraps ``WeworkApiClient`` and turns every send into a ``DeliveryOutcome``
instead of raising, so callers can decide per message how to react.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable

import httpx
from ulid import ULID

from hooknodes.execution.error_classifier import (
    ErrorStats,
    create_generic_error,
    format_error_for_display,
)
from hooknodes.messages.models import DeliveryOutcome, WireModel
from hooknodes.messages.validators import MAX_IMAGE_SIZE, validate_message
from hooknodes.observability.logger import NodeLogger, create_logger
from hooknodes.services.wework_client import ClientConfig, WeworkApiClient, is_valid_webhook_url
from hooknodes.utils.exceptions import (
    ChatApiError,
    HooknodesError,
    InvalidWebhookUrlError,
    MessageValidationError,
)

BATCH_SEND_INTERVAL = 0.5


def generate_message_id() -> str:
    """Generate an identifier for a delivered message."""
    return f"msg_{ULID()}"


class WeworkApiService:
    """Sends messages and reports outcomes.

    Example:
        service = WeworkApiService(stats=ErrorStats())
        outcome = await service.send_message(webhook_url, message)
        if not outcome.success:
            print(outcome.error_code, outcome.error_message)
    """

    def __init__(
        self,
        config: ClientConfig | None = None,
        logger: NodeLogger | None = None,
        stats: ErrorStats | None = None,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        max_image_size: int = MAX_IMAGE_SIZE,
    ):
        """Initialize the service.

        Args:
            config: Client configuration.
            logger: Logger to write to; the client gets a child of it.
            stats: Error statistics shared with the client.
            http_client: Shared HTTP client.
            sleep: Awaitable used for backoff and batch pauses.
            max_image_size: Largest decoded image, in bytes, accepted before sending.
        """
        self.logger = logger or create_logger("ApiService")
        self.stats = stats if stats is not None else ErrorStats()
        self._sleep = sleep
        self.max_image_size = max_image_size
        self.client = WeworkApiClient(
            config=config,
            logger=self.logger.create_child("Client"),
            stats=self.stats,
            http_client=http_client,
            sleep=sleep,
        )

    async def send_message(self, webhook_url: str, message: WireModel | dict[str, Any]) -> DeliveryOutcome:
        """Validate and send one message.

        Args:
            webhook_url: Target webhook URL.
            message: Wire message model or payload dict.

        Returns:
            DeliveryOutcome. Project errors are reported, never raised.
        """
        payload = message.to_payload() if isinstance(message, WireModel) else message
        message_type = str(payload.get("msgtype")) if isinstance(payload, dict) else "unknown"
        start = time.monotonic()

        self.logger.info("Sending WeCom message", {"message_type": message_type})

        try:
            self._validate_message(payload)
            if not is_valid_webhook_url(webhook_url):
                raise InvalidWebhookUrlError(url=str(webhook_url))
            self.logger.debug("Message validation passed", {"message_type": message_type})

            response = await self.client.send_message(webhook_url, payload)
        except HooknodesError as e:
            outcome = self._error_outcome(message_type, e)
            self.logger.error("Message send failed", {
                "message_type": message_type,
                "duration_ms": round((time.monotonic() - start) * 1000),
                "error": outcome.error_message,
                "error_code": outcome.error_code,
            })
            return outcome

        outcome = DeliveryOutcome(
            success=True,
            message_id=generate_message_id(),
            message_type=message_type,
        )
        self.logger.info("Message sent", {
            "message_type": message_type,
            "duration_ms": round((time.monotonic() - start) * 1000),
            "errcode": response.errcode,
        })
        return outcome

    async def send_messages(
        self,
        webhook_url: str,
        messages: list[WireModel | dict[str, Any]],
    ) -> list[DeliveryOutcome]:
        """Send messages one after another, pausing between sends.

        Returns:
            One outcome per message, in order.
        """
        start = time.monotonic()
        self.logger.info("Starting batch send", {"count": len(messages)})

        outcomes: list[DeliveryOutcome] = []
        for index, message in enumerate(messages):
            outcome = await self.send_message(webhook_url, message)
            outcomes.append(outcome)

            if index < len(messages) - 1:
                await self._sleep(BATCH_SEND_INTERVAL)

        duration = time.monotonic() - start
        successes = sum(1 for outcome in outcomes if outcome.success)

        self.logger.info("Batch send finished", {
            "total": len(messages),
            "success": successes,
            "failure": len(messages) - successes,
            "duration_ms": round(duration * 1000),
        })
        self.logger.log_performance(
            "batch_send_messages",
            duration,
            message_count=len(messages),
            success_rate=round(successes / len(messages), 3) if messages else 0.0,
        )
        return outcomes

    async def test_webhook_connection(self, webhook_url: str) -> dict[str, Any]:
        """Check that a webhook accepts messages.

        Returns:
            Dict with ``success``, ``message`` and ``response_time`` in seconds.
        """
        start = time.monotonic()

        if not is_valid_webhook_url(webhook_url):
            return {
                "success": False,
                "message": "Connection test failed: invalid webhook URL format",
                "response_time": time.monotonic() - start,
            }

        connected = await self.client.test_connection(webhook_url)
        response_time = time.monotonic() - start

        if connected:
            return {"success": True, "message": "Connection test succeeded", "response_time": response_time}

        return {
            "success": False,
            "message": "Connection test failed, check that the webhook URL is correct",
            "response_time": response_time,
        }

    def get_api_error_details(self, error: ChatApiError) -> dict[str, Any]:
        """Get the full classified view of an API error."""
        details = format_error_for_display(error)
        return {
            "code": error.code,
            "message": error.message,
            "category": details["category"],
            "suggestion": details["suggestion"],
            "retryable": details["retryable"],
            "severity": details["severity"],
        }

    def _validate_message(self, payload: Any) -> None:
        """Reject malformed payloads before any network call."""
        if not isinstance(payload, dict) or not payload:
            raise MessageValidationError("Message cannot be empty")

        if not payload.get("msgtype"):
            raise MessageValidationError("Message type cannot be empty")

        result = validate_message(payload, self.max_image_size)
        self.logger.log_validation(str(payload.get("msgtype")), result.valid, list(result.errors))
        if not result.valid:
            raise MessageValidationError(
                f"Message validation failed: {'; '.join(result.errors)}",
                list(result.errors),
            )

    def _error_outcome(self, message_type: str, error: HooknodesError) -> DeliveryOutcome:
        coded = error if isinstance(error, ChatApiError) else create_generic_error(error)
        return DeliveryOutcome(
            success=False,
            error_code=coded.code,
            error_message=error.message,
            message_type=message_type,
        )
