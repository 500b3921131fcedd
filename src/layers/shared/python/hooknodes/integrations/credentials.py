"""Credential models and connection tests for the bundled nodes."""

from typing import Any

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

from hooknodes.observability.redaction import mask_url

logger = structlog.get_logger()

WEWORK_CREDENTIALS = "weworkBotApi"
GITLAB_CREDENTIALS = "gitLabApi"

CREDENTIAL_TEST_CONTENT = "Connection test succeeded - WeCom group bot node"


class WeworkBotCredentials(BaseModel):
    """Webhook credentials for a WeCom group bot."""

    model_config = ConfigDict(populate_by_name=True)

    webhook_url: SecretStr = Field(
        ...,
        alias="webhookUrl",
        description="Group bot webhook URL, e.g. https://qyapi.weixin.qq.com/cgi-bin/webhook/send?key=...",
    )

    @field_validator("webhook_url")
    @classmethod
    def validate_webhook_url(cls, v: SecretStr) -> SecretStr:
        """Reject blank webhook URLs."""
        if not v.get_secret_value().strip():
            raise ValueError("Webhook URL is required")
        return SecretStr(v.get_secret_value().strip())


class GitLabCredentials(BaseModel):
    """Personal access token credentials for a GitLab instance."""

    model_config = ConfigDict(populate_by_name=True)

    domain: str = Field(default="https://gitlab.com", description="GitLab server URL")
    access_token: SecretStr = Field(..., alias="accessToken", description="Personal access token")

    @field_validator("domain")
    @classmethod
    def normalize_domain(cls, v: str) -> str:
        """Strip whitespace and trailing slashes from the server URL."""
        return v.strip().rstrip("/")

    @property
    def api_base_url(self) -> str:
        """Base URL of the v4 REST API."""
        return f"{self.domain}/api/v4"

    def auth_headers(self) -> dict[str, str]:
        """Headers authenticating a request."""
        return {"PRIVATE-TOKEN": self.access_token.get_secret_value()}


async def verify_wework_credentials(
    credentials: WeworkBotCredentials,
    http_client: httpx.AsyncClient | None = None,
) -> dict[str, Any]:
    """Send a test message to the webhook.

    Returns:
        Dict with ``status`` (OK or Error) and ``message``.
    """
    url = credentials.webhook_url.get_secret_value()
    payload = {"msgtype": "text", "text": {"content": CREDENTIAL_TEST_CONTENT}}

    try:
        if http_client is not None:
            response = await http_client.post(url, json=payload)
        else:
            async with httpx.AsyncClient(timeout=30.0) as client:
                response = await client.post(url, json=payload)
        body = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("WeCom credential test failed", webhook_url=mask_url(url), error=str(e))
        return {"status": "Error", "message": f"Connection failed: {e}"}

    if isinstance(body, dict) and body.get("errcode") == 0:
        return {"status": "OK", "message": "Connection successful"}

    logger.warning("WeCom credential test rejected", webhook_url=mask_url(url), response=body)
    return {"status": "Error", "message": "Invalid webhook URL or misconfigured bot"}


async def verify_gitlab_credentials(
    credentials: GitLabCredentials,
    http_client: httpx.AsyncClient | None = None,
) -> dict[str, Any]:
    """Fetch the current user to verify the token.

    Returns:
        Dict with ``status`` (OK or Error) and ``message``.
    """
    url = f"{credentials.api_base_url}/user"

    try:
        if http_client is not None:
            response = await http_client.get(url, headers=credentials.auth_headers())
        else:
            async with httpx.AsyncClient(timeout=30.0) as client:
                response = await client.get(url, headers=credentials.auth_headers())
    except httpx.HTTPError as e:
        logger.warning("GitLab credential test failed", domain=credentials.domain, error=str(e))
        return {"status": "Error", "message": f"Connection failed: {e}"}

    if response.is_success:
        return {"status": "OK", "message": "Connection successful"}

    return {"status": "Error", "message": f"GitLab returned HTTP {response.status_code}"}
