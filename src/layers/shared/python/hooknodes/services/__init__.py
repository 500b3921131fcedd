"""Service classes talking to the chat webhook and GitLab APIs."""

from hooknodes.services.gitlab_service import GitLabService, validate_project_id
from hooknodes.services.wework_client import (
    ClientConfig,
    WeworkApiClient,
    is_valid_webhook_url,
    parse_api_response,
)
from hooknodes.services.wework_service import WeworkApiService, generate_message_id

__all__ = [
    "ClientConfig",
    "GitLabService",
    "WeworkApiClient",
    "WeworkApiService",
    "generate_message_id",
    "is_valid_webhook_url",
    "parse_api_response",
    "validate_project_id",
]
