"""GitLab REST API client for projects and merge requests."""

import re
from typing import Any
from urllib.parse import quote

import httpx
import structlog

from hooknodes.integrations.credentials import GitLabCredentials
from hooknodes.utils.exceptions import GitLabApiError, MessageValidationError

logger = structlog.get_logger()

NUMERIC_ID_PATTERN = re.compile(r"^\d+$")
PROJECT_PATH_PATTERN = re.compile(r"^[a-zA-Z0-9_.-]+(?:/[a-zA-Z0-9_.-]+)+$")

MERGE_REQUEST_STATES = ("all", "opened", "closed", "merged")


def validate_project_id(project_id: Any) -> str:
    """Check a project reference and return it trimmed.

    Accepts a numeric ID (``1``) or a namespaced path (``group/sub/project``).

    Raises:
        MessageValidationError: If the reference is empty or malformed.
    """
    if not isinstance(project_id, (str, int)) or not str(project_id).strip():
        raise MessageValidationError("Project ID cannot be empty")

    project_id = str(project_id).strip()
    if not NUMERIC_ID_PATTERN.match(project_id) and not PROJECT_PATH_PATTERN.match(project_id):
        raise MessageValidationError(
            "Invalid project ID. Use a numeric ID (e.g. 1) or a project path "
            "(e.g. group/project or group/subgroup/project)"
        )
    return project_id


def encode_project_id(project_id: str) -> str:
    """Percent-encode a project reference, slashes included."""
    return quote(project_id, safe="")


class GitLabService:
    """Read-only access to GitLab projects and merge requests."""

    def __init__(
        self,
        credentials: GitLabCredentials,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        """Initialize the service.

        Args:
            credentials: Server URL and access token.
            http_client: Shared HTTP client. Not closed by this class.
            timeout: Per-request timeout in seconds.
        """
        self.credentials = credentials
        self._http_client = http_client
        self.timeout = timeout
        self.logger = logger.bind(service="gitlab", domain=credentials.domain)

    async def get_project(self, project_id: str) -> dict[str, Any]:
        """Get a single project."""
        project_id = validate_project_id(project_id)
        return await self._get(f"/projects/{encode_project_id(project_id)}")

    async def list_merge_requests(
        self,
        project_id: str,
        state: str = "all",
        per_page: int | None = None,
        page: int | None = None,
    ) -> list[dict[str, Any]]:
        """List merge requests of a project.

        Args:
            project_id: Numeric ID or path.
            state: One of all, opened, closed, merged. ``all`` sends no filter.
            per_page: Page size.
            page: Page number.

        Returns:
            Merge request objects.
        """
        project_id = validate_project_id(project_id)
        if state not in MERGE_REQUEST_STATES:
            raise MessageValidationError(f"Invalid merge request state: {state}")

        params: dict[str, Any] = {}
        if state != "all":
            params["state"] = state
        if per_page:
            params["per_page"] = per_page
        if page:
            params["page"] = page

        data = await self._get(f"/projects/{encode_project_id(project_id)}/merge_requests", params)
        return data if isinstance(data, list) else [data]

    async def get_merge_request(self, project_id: str, merge_request_iid: int) -> dict[str, Any]:
        """Get one merge request by its project-scoped IID."""
        project_id = validate_project_id(project_id)
        return await self._get(
            f"/projects/{encode_project_id(project_id)}/merge_requests/{int(merge_request_iid)}"
        )

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        url = f"{self.credentials.api_base_url}{path}"
        headers = {
            "Accept": "application/json",
            **self.credentials.auth_headers(),
        }

        self.logger.debug("GitLab request", path=path, params=params or {})

        try:
            if self._http_client is not None:
                response = await self._http_client.get(
                    url, params=params, headers=headers, timeout=self.timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url, params=params, headers=headers)
        except httpx.HTTPError as e:
            self.logger.error("GitLab request failed", path=path, error=str(e))
            raise GitLabApiError(None, f"Request failed: {e}") from e

        if not response.is_success:
            self.logger.warning("GitLab returned error", path=path, status_code=response.status_code)
            raise GitLabApiError(response.status_code, _error_text(response), response.text)

        return response.json()


def _error_text(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"

    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
        if message:
            return str(message)
    return f"HTTP {response.status_code}"
