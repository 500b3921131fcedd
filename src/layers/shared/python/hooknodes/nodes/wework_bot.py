"""WeCom group-bot node.

Sends one message per input row to a group-bot webhook. Rows are processed
strictly in order and each produces exactly one output record.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable

import httpx

from hooknodes.execution.error_classifier import ErrorStats, create_generic_error
from hooknodes.integrations.credentials import WEWORK_CREDENTIALS, WeworkBotCredentials
from hooknodes.integrations.manifest import (
    CredentialRequirement,
    FieldDefinition,
    FieldOption,
    FieldType,
    NodeManifest,
)
from hooknodes.messages.formatters import get_formatter
from hooknodes.messages.models import DeliveryOutcome, MessageInput, MessageType
from hooknodes.nodes.base import BaseNode, ExecutionContext, NodeExecutionData
from hooknodes.observability.logger import NodeLogger, create_logger
from hooknodes.services.wework_client import ClientConfig
from hooknodes.services.wework_service import WeworkApiService
from hooknodes.utils.exceptions import MessageValidationError, NodeOperationError


def split_list(value: Any) -> list[str]:
    """Split a comma-joined parameter into trimmed, non-blank entries."""
    if value is None:
        return []
    if isinstance(value, str):
        parts = value.split(",")
    elif isinstance(value, (list, tuple)):
        parts = [str(part) for part in value if part is not None]
    else:
        parts = [str(value)]
    return [part.strip() for part in parts if part.strip()]


def _show(message_type: MessageType, **extra: list[Any]) -> dict[str, list[Any]]:
    return {"messageType": [message_type.value], **extra}


class WeworkBotNode(BaseNode):
    """Send notifications to a WeCom group through its bot webhook."""

    node_type = "weworkBot"

    def __init__(
        self,
        client_config: ClientConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initialize node.

        Args:
            client_config: Delivery client configuration. Read from the
                environment when omitted.
            http_client: Shared HTTP client.
            sleep: Awaitable used for backoff pauses.
        """
        super().__init__()
        self.client_config = client_config
        self._http_client = http_client
        self._sleep = sleep

    @classmethod
    def get_manifest(cls) -> NodeManifest:
        return NodeManifest(
            id="weworkBot",
            name="WeCom Group Bot",
            description="Send notification messages to a WeCom group",
            documentation="https://developer.work.weixin.qq.com/document/path/91770",
            credentials=[CredentialRequirement(name=WEWORK_CREDENTIALS)],
            fields=[
                FieldDefinition(
                    name="messageType",
                    label="Message Type",
                    type=FieldType.OPTIONS,
                    required=True,
                    default=MessageType.TEXT.value,
                    options=[
                        FieldOption(name="Image", value="image", description="Send a base64 image"),
                        FieldOption(name="News", value="news", description="Send link cards"),
                        FieldOption(name="Text", value="text", description="Send plain text"),
                        FieldOption(name="File", value="file", description="Send an uploaded file"),
                        FieldOption(name="Markdown", value="markdown", description="Send markdown"),
                    ],
                ),
                FieldDefinition(
                    name="content",
                    label="Content",
                    type=FieldType.STRING,
                    required=True,
                    default="",
                    description="Text content, at most 4096 characters",
                    display_options=_show(MessageType.TEXT),
                ),
                FieldDefinition(
                    name="mentionedUsers",
                    label="Mentioned Users",
                    type=FieldType.STRING,
                    default="",
                    description="Comma-separated user IDs to @mention, @all for everyone",
                    display_options=_show(MessageType.TEXT),
                ),
                FieldDefinition(
                    name="mentionedMobiles",
                    label="Mentioned Mobiles",
                    type=FieldType.STRING,
                    default="",
                    description="Comma-separated mobile numbers to @mention",
                    display_options=_show(MessageType.TEXT),
                ),
                FieldDefinition(
                    name="markdownContent",
                    label="Markdown Content",
                    type=FieldType.STRING,
                    required=True,
                    default="",
                    display_options=_show(MessageType.MARKDOWN),
                ),
                FieldDefinition(
                    name="imageSource",
                    label="Image Source",
                    type=FieldType.OPTIONS,
                    default="base64",
                    options=[
                        FieldOption(name="Base64", value="base64"),
                        FieldOption(name="Image URL", value="url"),
                    ],
                    display_options=_show(MessageType.IMAGE),
                ),
                FieldDefinition(
                    name="imageBase64",
                    label="Image Base64",
                    type=FieldType.STRING,
                    required=True,
                    default="",
                    description="Base64 JPG or PNG data, at most 2MB",
                    display_options=_show(MessageType.IMAGE, imageSource=["base64"]),
                ),
                FieldDefinition(
                    name="imageUrl",
                    label="Image URL",
                    type=FieldType.STRING,
                    required=True,
                    default="",
                    display_options=_show(MessageType.IMAGE, imageSource=["url"]),
                ),
                FieldDefinition(
                    name="articles",
                    label="Articles",
                    type=FieldType.FIXED_COLLECTION,
                    default={},
                    description="Between 1 and 8 link cards",
                    display_options=_show(MessageType.NEWS),
                    fields=[
                        FieldDefinition(name="title", label="Title", type=FieldType.STRING, required=True, default=""),
                        FieldDefinition(name="description", label="Description", type=FieldType.STRING, default=""),
                        FieldDefinition(name="url", label="URL", type=FieldType.STRING, required=True, default=""),
                        FieldDefinition(name="picurl", label="Image URL", type=FieldType.STRING, default=""),
                    ],
                ),
                FieldDefinition(
                    name="fileMediaId",
                    label="File Media ID",
                    type=FieldType.STRING,
                    required=True,
                    default="",
                    description="media_id returned by the upload API",
                    display_options=_show(MessageType.FILE),
                ),
            ],
        )

    async def execute(self, context: ExecutionContext) -> list[NodeExecutionData]:
        """Send one message per input row.

        Args:
            context: Host execution context.

        Returns:
            One record per input row, in input order.

        Raises:
            NodeOperationError: If a row fails and continue-on-fail is off.
        """
        items = context.get_input_data()
        start = time.monotonic()

        node_logger = create_logger("WeworkBot")
        node_logger.set_execution_context(context.execution_id, context.node_id, context.workflow_id)
        node_logger.log_execution_start(
            context.execution_id,
            context.node_id,
            context.workflow_id,
            {"item_count": len(items)},
        )

        stats = ErrorStats()
        service = WeworkApiService(
            config=self.client_config or ClientConfig.from_env(),
            logger=node_logger,
            stats=stats,
            http_client=self._http_client,
            sleep=self._sleep,
        )

        results: list[NodeExecutionData] = []
        try:
            for index in range(len(items)):
                record = await self._process_item(context, index, service, node_logger)
                results.append(NodeExecutionData(json=record, paired_item=index))
        except NodeOperationError as e:
            node_logger.log_execution_end(context.execution_id, False, time.monotonic() - start, error=e)
            raise

        node_logger.log_execution_end(
            context.execution_id,
            True,
            time.monotonic() - start,
            {"records": len(results), "errors": stats.snapshot()["total_errors"]},
        )
        return results

    async def _process_item(
        self,
        context: ExecutionContext,
        index: int,
        service: WeworkApiService,
        node_logger: NodeLogger,
    ) -> dict[str, Any]:
        """Format, validate and send the message for one row."""
        message_type = "unknown"
        fields: dict[str, Any] = {}

        try:
            message_type = str(self._get_parameter(context, "messageType", index))
            fields = {"messageType": message_type}
            formatter = get_formatter(message_type)
            fields = self._gather_fields(context, index, formatter.message_type)

            message, validation = formatter.process(MessageInput.model_validate(fields))
            node_logger.log_validation(message_type, validation.valid, list(validation.errors))
            if not validation.valid:
                raise MessageValidationError(
                    f"Message validation failed: {'; '.join(validation.errors)}",
                    list(validation.errors),
                )

            credentials = WeworkBotCredentials.model_validate(
                await context.get_credentials(WEWORK_CREDENTIALS)
            )
            outcome = await service.send_message(credentials.webhook_url.get_secret_value(), message)
        except Exception as e:
            if not context.continue_on_fail():
                raise NodeOperationError(str(e), item_index=index, cause=e) from e

            node_logger.warn("Row failed, continuing", {"item_index": index, "error": str(e)})
            coded = create_generic_error(e)
            outcome = DeliveryOutcome(
                success=False,
                error_code=coded.code,
                error_message=str(e),
                message_type=message_type,
            )

        if not outcome.success and not context.continue_on_fail():
            raise NodeOperationError(
                outcome.error_message or "Message delivery failed",
                item_index=index,
            )

        return {**outcome.to_record(), "input": fields}

    def _gather_fields(self, context: ExecutionContext, index: int, message_type: MessageType) -> dict[str, Any]:
        """Resolve the parameters relevant to one message kind."""
        resolved: dict[str, Any] = {"messageType": message_type.value}

        def param(name: str) -> Any:
            return self._get_parameter(context, name, index, resolved)

        if message_type == MessageType.TEXT:
            resolved["content"] = param("content")
            resolved["mentionedUsers"] = split_list(param("mentionedUsers"))
            resolved["mentionedMobiles"] = split_list(param("mentionedMobiles"))
        elif message_type == MessageType.MARKDOWN:
            resolved["markdownContent"] = param("markdownContent")
        elif message_type == MessageType.IMAGE:
            resolved["imageSource"] = param("imageSource")
            if resolved["imageSource"] == "url":
                resolved["imageUrl"] = param("imageUrl")
            else:
                resolved["imageBase64"] = param("imageBase64")
        elif message_type == MessageType.NEWS:
            articles = self._get_parameter(context, "articles.article", index, resolved, default=[])
            resolved["newsArticles"] = [dict(article) for article in articles or [] if isinstance(article, dict)]
        elif message_type == MessageType.FILE:
            resolved["fileMediaId"] = param("fileMediaId")

        return resolved
