"""Tests for the WeCom group-bot node."""

import pytest

from hooknodes.nodes import InMemoryExecutionContext, WeworkBotNode, get_node_class, split_list
from hooknodes.services.wework_client import ClientConfig
from hooknodes.utils.exceptions import FeatureNotSupportedError, NodeOperationError

OK = (200, {"errcode": 0, "errmsg": "ok"})


class UnresolvableRowContext(InMemoryExecutionContext):
    """Context whose host fails to resolve the message type of one row."""

    def __init__(self, failing_row, **kwargs):
        super().__init__(**kwargs)
        self.failing_row = failing_row

    def get_node_parameter(self, name, item_index, default=None):
        if name == "messageType" and item_index == self.failing_row:
            raise RuntimeError("expression could not be resolved")
        return super().get_node_parameter(name, item_index, default)


@pytest.fixture
def credentials(webhook_url):
    """Credentials as the host platform hands them out."""
    return {"weworkBotApi": {"webhookUrl": webhook_url}}


@pytest.fixture
def make_node(no_sleep):
    """Build a node wired to a fake HTTP client."""
    def _create(http_client):
        return WeworkBotNode(
            client_config=ClientConfig(jitter=False),
            http_client=http_client,
            sleep=no_sleep,
        )

    return _create


class TestSplitList:
    """Tests for comma-joined parameter parsing."""

    def test_split(self):
        """Test trimming and blank removal."""
        assert split_list(" alice, bob ,,  ") == ["alice", "bob"]
        assert split_list("") == []
        assert split_list(None) == []
        assert split_list(["a", " b "]) == ["a", "b"]


class TestManifest:
    """Tests for the node description."""

    def test_registry(self):
        """Test the node is registered under its type."""
        assert get_node_class("weworkBot") is WeworkBotNode

    def test_credentials(self):
        """Test the node asks for the bot credentials."""
        assert WeworkBotNode().get_required_credentials() == ["weworkBotApi"]

    def test_message_type_options(self):
        """Test all five kinds are offered, text by default."""
        field = WeworkBotNode.get_manifest().get_field("messageType")

        assert field.default == "text"
        assert sorted(field.option_values()) == ["file", "image", "markdown", "news", "text"]

    def test_image_fields_depend_on_source(self):
        """Test image inputs are shown per source."""
        manifest = WeworkBotNode.get_manifest()

        assert manifest.get_field("imageBase64").is_visible({"messageType": "image", "imageSource": "base64"})
        assert not manifest.get_field("imageUrl").is_visible({"messageType": "image", "imageSource": "base64"})


class TestWeworkBotExecution:
    """Tests for per-row execution."""

    @pytest.mark.asyncio
    async def test_one_record_per_row(self, make_node, mock_transport, sent_payloads, credentials):
        """Test rows are sent in order with paired output records."""
        http_client = mock_transport(OK)
        context = InMemoryExecutionContext(
            parameters=[
                {"messageType": "text", "content": "first"},
                {"messageType": "text", "content": "second"},
                {"messageType": "text", "content": "third"},
            ],
            credentials=credentials,
        )

        results = await make_node(http_client).execute(context)

        assert len(results) == 3
        assert [result.paired_item for result in results] == [0, 1, 2]
        assert all(result.json["success"] for result in results)
        assert [payload["text"]["content"] for payload in sent_payloads(http_client)] == [
            "first",
            "second",
            "third",
        ]

    @pytest.mark.asyncio
    async def test_text_with_mentions(self, make_node, mock_transport, sent_payloads, credentials):
        """Test comma-joined mentions reach the payload."""
        http_client = mock_transport(OK)
        context = InMemoryExecutionContext(
            parameters=[{
                "messageType": "text",
                "content": "Deploy finished",
                "mentionedUsers": "alice, bob,",
                "mentionedMobiles": "13800138000",
            }],
            credentials=credentials,
        )

        results = await make_node(http_client).execute(context)
        record = results[0].json

        assert sent_payloads(http_client) == [{
            "msgtype": "text",
            "text": {
                "content": "Deploy finished",
                "mentioned_list": ["alice", "bob"],
                "mentioned_mobile_list": ["13800138000"],
            },
        }]
        assert record["success"] is True
        assert record["messageId"].startswith("msg_")
        assert record["messageType"] == "text"
        assert isinstance(record["timestamp"], int)
        assert record["input"]["mentionedUsers"] == ["alice", "bob"]
        assert results[0].to_dict()["pairedItem"] == {"item": 0}

    @pytest.mark.asyncio
    async def test_default_message_type(self, make_node, mock_transport, credentials):
        """Test text is used when no kind is given."""
        context = InMemoryExecutionContext(parameters=[{"content": "hello"}], credentials=credentials)

        results = await make_node(mock_transport(OK)).execute(context)

        assert results[0].json["messageType"] == "text"

    @pytest.mark.asyncio
    async def test_markdown(self, make_node, mock_transport, sent_payloads, credentials):
        """Test markdown is sanitized before sending."""
        http_client = mock_transport(OK)
        context = InMemoryExecutionContext(
            parameters=[{"messageType": "markdown", "markdownContent": "**Alert** <b>disk</b> `df"}],
            credentials=credentials,
        )

        await make_node(http_client).execute(context)

        assert sent_payloads(http_client)[0]["markdown"]["content"] == "**Alert** disk `df`"

    @pytest.mark.asyncio
    async def test_image(self, make_node, mock_transport, sent_payloads, credentials, png_base64):
        """Test base64 images carry their MD5."""
        http_client = mock_transport(OK)
        context = InMemoryExecutionContext(
            parameters=[{"messageType": "image", "imageBase64": png_base64}],
            credentials=credentials,
        )

        results = await make_node(http_client).execute(context)

        image = sent_payloads(http_client)[0]["image"]
        assert image["base64"] == png_base64
        assert len(image["md5"]) == 32
        assert results[0].json["input"]["imageSource"] == "base64"

    @pytest.mark.asyncio
    async def test_news(self, make_node, mock_transport, sent_payloads, credentials):
        """Test cards are read from the article collection."""
        http_client = mock_transport(OK)
        context = InMemoryExecutionContext(
            parameters=[{
                "messageType": "news",
                "articles": {"article": [
                    {"title": "Release", "url": "https://example.com/r", "description": "", "picurl": ""},
                    {"title": "Docs", "url": "https://example.com/d", "picurl": "https://example.com/p.png"},
                ]},
            }],
            credentials=credentials,
        )

        await make_node(http_client).execute(context)

        assert sent_payloads(http_client)[0]["news"]["articles"] == [
            {"title": "Release", "url": "https://example.com/r"},
            {"title": "Docs", "url": "https://example.com/d", "picurl": "https://example.com/p.png"},
        ]

    @pytest.mark.asyncio
    async def test_file(self, make_node, mock_transport, sent_payloads, credentials):
        """Test file messages reference the media_id."""
        http_client = mock_transport(OK)
        context = InMemoryExecutionContext(
            parameters=[{"messageType": "file", "fileMediaId": "3a8asd892asd8asd"}],
            credentials=credentials,
        )

        await make_node(http_client).execute(context)

        assert sent_payloads(http_client) == [{"msgtype": "file", "file": {"media_id": "3a8asd892asd8asd"}}]

    @pytest.mark.asyncio
    async def test_retry_inside_row(self, make_node, mock_transport, credentials, no_sleep):
        """Test a transient failure is retried within the same row."""
        http_client = mock_transport((200, {"errcode": -1, "errmsg": "system busy"}), OK)
        context = InMemoryExecutionContext(
            parameters=[{"messageType": "text", "content": "hello"}],
            credentials=credentials,
        )

        results = await make_node(http_client).execute(context)

        assert results[0].json["success"] is True
        assert len(http_client.requests) == 2
        assert no_sleep.delays == [1.0]


class TestWeworkBotFailures:
    """Tests for failing rows."""

    @pytest.mark.asyncio
    async def test_invalid_row_raises(self, make_node, mock_transport, credentials):
        """Test a bad row aborts with its index when continue-on-fail is off."""
        http_client = mock_transport(OK)
        context = InMemoryExecutionContext(
            parameters=[
                {"messageType": "text", "content": "ok"},
                {"messageType": "text", "content": "   "},
            ],
            credentials=credentials,
        )

        with pytest.raises(NodeOperationError) as exc_info:
            await make_node(http_client).execute(context)

        assert exc_info.value.item_index == 1
        assert "cannot be empty" in exc_info.value.message
        assert len(http_client.requests) == 1

    @pytest.mark.asyncio
    async def test_continue_on_fail(self, make_node, mock_transport, credentials):
        """Test failed rows become failure records and later rows still run."""
        http_client = mock_transport(OK)
        context = InMemoryExecutionContext(
            parameters=[
                {"messageType": "text", "content": "ok"},
                {"messageType": "text", "content": "   "},
                {"messageType": "video"},
                {"messageType": "text", "content": "also ok"},
            ],
            credentials=credentials,
            continue_on_fail=True,
        )

        results = await make_node(http_client).execute(context)

        assert len(results) == 4
        assert [result.json["success"] for result in results] == [True, False, False, True]
        assert "cannot be empty" in results[1].json["errorMessage"]
        assert results[2].json["errorMessage"] == "Unsupported message type: video"
        assert results[2].json["messageType"] == "video"
        assert [result.paired_item for result in results] == [0, 1, 2, 3]
        assert len(http_client.requests) == 2

    @pytest.mark.asyncio
    async def test_api_failure_raises(self, make_node, mock_transport, credentials):
        """Test API errors abort the run when continue-on-fail is off."""
        context = InMemoryExecutionContext(
            parameters=[{"messageType": "text", "content": "hello"}],
            credentials=credentials,
        )
        http_client = mock_transport((200, {"errcode": 93000, "errmsg": "invalid webhook url"}))

        with pytest.raises(NodeOperationError) as exc_info:
            await make_node(http_client).execute(context)

        assert exc_info.value.message == "Webhook URL is invalid or has expired"
        assert exc_info.value.item_index == 0

    @pytest.mark.asyncio
    async def test_api_failure_record(self, make_node, mock_transport, credentials):
        """Test API errors become records with the error code."""
        context = InMemoryExecutionContext(
            parameters=[{"messageType": "text", "content": "hello"}],
            credentials=credentials,
            continue_on_fail=True,
        )
        http_client = mock_transport((200, {"errcode": 93000, "errmsg": "invalid webhook url"}))

        results = await make_node(http_client).execute(context)
        record = results[0].json

        assert record["success"] is False
        assert record["errorCode"] == 93000
        assert "messageId" not in record

    @pytest.mark.asyncio
    async def test_invalid_webhook_url(self, make_node, mock_transport):
        """Test a malformed webhook URL fails without any request."""
        http_client = mock_transport(OK)
        context = InMemoryExecutionContext(
            parameters=[{"messageType": "text", "content": "hello"}],
            credentials={"weworkBotApi": {"webhookUrl": "https://example.com/hook"}},
            continue_on_fail=True,
        )

        results = await make_node(http_client).execute(context)

        assert results[0].json["errorCode"] == -4
        assert http_client.requests == []

    @pytest.mark.asyncio
    async def test_image_url_not_supported(self, make_node, mock_transport, credentials):
        """Test URL image sources surface the not-supported error."""
        context = InMemoryExecutionContext(
            parameters=[{
                "messageType": "image",
                "imageSource": "url",
                "imageUrl": "https://example.com/a.png",
            }],
            credentials=credentials,
        )

        with pytest.raises(NodeOperationError) as exc_info:
            await make_node(mock_transport(OK)).execute(context)

        assert isinstance(exc_info.value.cause, FeatureNotSupportedError)

    @pytest.mark.asyncio
    async def test_missing_credentials(self, make_node, mock_transport):
        """Test a missing credential fails the row."""
        context = InMemoryExecutionContext(
            parameters=[{"messageType": "text", "content": "hello"}],
            continue_on_fail=True,
        )

        results = await make_node(mock_transport(OK)).execute(context)

        assert results[0].json["success"] is False
        assert "weworkBotApi" in results[0].json["errorMessage"]

    @pytest.mark.asyncio
    async def test_no_rows(self, make_node, mock_transport, credentials):
        """Test an empty input yields no records."""
        context = InMemoryExecutionContext(parameters=[], credentials=credentials)

        assert await make_node(mock_transport(OK)).execute(context) == []

    @pytest.mark.asyncio
    async def test_unresolvable_parameter_keeps_one_record_per_row(self, make_node, mock_transport, credentials):
        """Test a row whose parameters cannot be resolved still yields its record."""
        http_client = mock_transport(OK)
        context = UnresolvableRowContext(
            failing_row=1,
            parameters=[
                {"messageType": "text", "content": "first"},
                {"messageType": "text", "content": "second"},
                {"messageType": "text", "content": "third"},
            ],
            credentials=credentials,
            continue_on_fail=True,
        )

        results = await make_node(http_client).execute(context)

        assert len(results) == 3
        assert [result.json["success"] for result in results] == [True, False, True]
        assert results[1].json["errorMessage"] == "expression could not be resolved"
        assert results[1].json["messageType"] == "unknown"
        assert results[1].paired_item == 1
        assert len(http_client.requests) == 2

    @pytest.mark.asyncio
    async def test_unresolvable_parameter_raises_node_error(self, make_node, mock_transport, credentials):
        """Test resolution failures surface as a row error when continue-on-fail is off."""
        context = UnresolvableRowContext(
            failing_row=0,
            parameters=[{"messageType": "text", "content": "first"}],
            credentials=credentials,
        )

        with pytest.raises(NodeOperationError) as exc_info:
            await make_node(mock_transport(OK)).execute(context)

        assert exc_info.value.item_index == 0
        assert isinstance(exc_info.value.cause, RuntimeError)

    @pytest.mark.asyncio
    async def test_validation_failure_code(self, make_node, mock_transport, credentials):
        """Test rejected rows carry the non-retryable validation code."""
        context = InMemoryExecutionContext(
            parameters=[
                {
                    "messageType": "news",
                    "articles": {"article": [{"title": "Release", "url": "not-a-url"}]},
                },
                {"messageType": "text", "content": "   "},
            ],
            credentials=credentials,
            continue_on_fail=True,
        )

        results = await make_node(mock_transport(OK)).execute(context)

        assert "card 1" in results[0].json["errorMessage"].lower()
        assert [result.json["errorCode"] for result in results] == [-6, -6]
