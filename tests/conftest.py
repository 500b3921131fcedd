"""Pytest configuration and fixtures."""

import json
import os
import pytest

import httpx

# Set environment variables before imports
os.environ["HOOKNODES_LOG_LEVEL"] = "DEBUG"
os.environ["HOOKNODES_HTTP_TIMEOUT"] = "5"
os.environ["HOOKNODES_MAX_RETRIES"] = "3"
os.environ["HOOKNODES_RETRY_DELAY"] = "1"

# 1x1 transparent PNG
PNG_BASE64 = (
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)

WEBHOOK_KEY = "693a91f6-7xxx-4bc4-97a0-0ec2sifa5aaa"
WEBHOOK_URL = f"https://qyapi.weixin.qq.com/cgi-bin/webhook/send?key={WEBHOOK_KEY}"


@pytest.fixture
def png_base64():
    """Base64 of a valid 1x1 PNG."""
    return PNG_BASE64


@pytest.fixture
def webhook_url():
    """A well-formed group bot webhook URL."""
    return WEBHOOK_URL


@pytest.fixture
def no_sleep():
    """Awaitable sleep that records requested delays and returns at once."""
    delays = []

    async def _sleep(delay):
        delays.append(delay)

    _sleep.delays = delays
    return _sleep


@pytest.fixture
def mock_transport():
    """Build an httpx client whose responses come from a list of handlers.

    Each entry is either a response-producing callable taking the request,
    a ``(status, body)`` tuple, or an exception instance to raise. The last
    entry repeats once the list is exhausted. Sent requests are recorded on
    ``client.requests``.
    """
    def _create(*responses):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            entry = responses[min(len(requests), len(responses)) - 1]

            if isinstance(entry, Exception):
                raise entry
            if callable(entry):
                return entry(request)

            status, body = entry
            if isinstance(body, (dict, list)):
                return httpx.Response(status, json=body)
            return httpx.Response(status, text=body)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client.requests = requests
        return client

    return _create


@pytest.fixture
def sent_payloads():
    """Decode the JSON bodies of requests recorded by ``mock_transport``."""
    def _decode(client):
        return [json.loads(request.content) for request in client.requests]

    return _decode
