"""GitLab node.

Reads projects and merge requests through the GitLab v4 REST API.
"""

from typing import Any

import httpx

from hooknodes.integrations.credentials import GITLAB_CREDENTIALS, GitLabCredentials
from hooknodes.integrations.manifest import (
    CredentialRequirement,
    FieldDefinition,
    FieldOption,
    FieldType,
    NodeManifest,
)
from hooknodes.nodes.base import BaseNode, ExecutionContext, NodeExecutionData
from hooknodes.services.gitlab_service import MERGE_REQUEST_STATES, GitLabService
from hooknodes.utils.exceptions import GitLabApiError, MessageValidationError, NodeOperationError

AUTH_FAILED_MESSAGE = "Authentication failed: access token is invalid or expired. Check your GitLab API credentials."


def describe_gitlab_error(error: GitLabApiError, label: str, reference: str, action: str) -> str:
    """Turn an API failure into a message for the workflow user.

    Args:
        error: The failure.
        label: Kind of object requested, e.g. ``Project``.
        reference: Which object, e.g. ``group/app``.
        action: Verb phrase used for other failures, e.g. ``get project``.
    """
    if error.status_code == 404:
        return f"{label} not found: {reference}. Check the project ID or path."
    elif error.status_code == 403:
        return f"Permission denied: cannot access {label.lower()} {reference}. Check your access token permissions."
    elif error.status_code == 401:
        return AUTH_FAILED_MESSAGE
    return f"Failed to {action}: {error.message}"


def _show(resource: str, operation: str | None = None) -> dict[str, list[Any]]:
    conditions: dict[str, list[Any]] = {"resource": [resource]}
    if operation:
        conditions["operation"] = [operation]
    return conditions


class GitLabNode(BaseNode):
    """Fetch GitLab projects and merge requests."""

    node_type = "gitLabApi"

    def __init__(self, http_client: httpx.AsyncClient | None = None):
        """Initialize node.

        Args:
            http_client: Shared HTTP client.
        """
        super().__init__()
        self._http_client = http_client

    @classmethod
    def get_manifest(cls) -> NodeManifest:
        return NodeManifest(
            id="gitLabApi",
            name="GitLab API",
            description="Read projects and merge requests from GitLab",
            documentation="https://docs.gitlab.com/ee/api/",
            credentials=[CredentialRequirement(name=GITLAB_CREDENTIALS)],
            fields=[
                FieldDefinition(
                    name="resource",
                    label="Resource",
                    type=FieldType.OPTIONS,
                    default="project",
                    options=[
                        FieldOption(name="Project", value="project"),
                        FieldOption(name="Merge Request", value="mergeRequest"),
                    ],
                ),
                FieldDefinition(
                    name="operation",
                    label="Operation",
                    type=FieldType.OPTIONS,
                    default="get",
                    options=[FieldOption(name="Get", value="get", description="Get a project")],
                    display_options=_show("project"),
                ),
                FieldDefinition(
                    name="operation",
                    label="Operation",
                    type=FieldType.OPTIONS,
                    default="getAll",
                    options=[
                        FieldOption(name="Get Many", value="getAll", description="List merge requests"),
                        FieldOption(name="Get", value="get", description="Get a merge request"),
                    ],
                    display_options=_show("mergeRequest"),
                ),
                FieldDefinition(
                    name="projectId",
                    label="Project ID",
                    type=FieldType.STRING,
                    required=True,
                    default="",
                    placeholder="group/project",
                    description="Numeric project ID or namespaced path",
                ),
                FieldDefinition(
                    name="state",
                    label="State",
                    type=FieldType.OPTIONS,
                    default="all",
                    options=[FieldOption(name=state.title(), value=state) for state in MERGE_REQUEST_STATES],
                    display_options=_show("mergeRequest", "getAll"),
                ),
                FieldDefinition(
                    name="returnAll",
                    label="Return All",
                    type=FieldType.BOOLEAN,
                    default=True,
                    display_options=_show("mergeRequest", "getAll"),
                ),
                FieldDefinition(
                    name="limit",
                    label="Limit",
                    type=FieldType.NUMBER,
                    default=50,
                    display_options={**_show("mergeRequest", "getAll"), "returnAll": [False]},
                ),
                FieldDefinition(
                    name="additionalOptions",
                    label="Additional Options",
                    type=FieldType.COLLECTION,
                    default={},
                    display_options=_show("mergeRequest", "getAll"),
                    fields=[
                        FieldDefinition(name="per_page", label="Per Page", type=FieldType.NUMBER, default=20),
                        FieldDefinition(name="page", label="Page", type=FieldType.NUMBER, default=1),
                    ],
                ),
                FieldDefinition(
                    name="mergeRequestIid",
                    label="Merge Request IID",
                    type=FieldType.NUMBER,
                    required=True,
                    default=1,
                    display_options=_show("mergeRequest", "get"),
                ),
            ],
        )

    async def execute(self, context: ExecutionContext) -> list[NodeExecutionData]:
        """Run the selected operation for every input row.

        Resource and operation are read once, from the first row.

        Raises:
            NodeOperationError: If a row fails and continue-on-fail is off.
        """
        items = context.get_input_data()
        if not items:
            return []

        selection: dict[str, Any] = {}
        selection["resource"] = self._get_parameter(context, "resource", 0, selection)
        selection["operation"] = self._get_parameter(context, "operation", 0, selection)

        self.logger.info("Executing GitLab node", item_count=len(items), **selection)

        results: list[NodeExecutionData] = []
        service: GitLabService | None = None

        for index in range(len(items)):
            try:
                if service is None:
                    credentials = GitLabCredentials.model_validate(
                        await context.get_credentials(GITLAB_CREDENTIALS)
                    )
                    service = GitLabService(credentials, http_client=self._http_client)

                records = await self._run_operation(context, index, service, selection)
            except Exception as e:
                if not context.continue_on_fail():
                    if isinstance(e, NodeOperationError):
                        raise
                    raise NodeOperationError(str(e), item_index=index, cause=e) from e

                self.logger.warning("Row failed, continuing", item_index=index, error=str(e))
                records = [{"error": e.message if isinstance(e, NodeOperationError) else str(e)}]

            results.extend(NodeExecutionData(json=record, paired_item=index) for record in records)

        return results

    async def _run_operation(
        self,
        context: ExecutionContext,
        index: int,
        service: GitLabService,
        selection: dict[str, Any],
    ) -> list[dict[str, Any]]:
        resource = selection["resource"]
        operation = selection["operation"]
        resolved = dict(selection)

        project_id = str(self._get_parameter(context, "projectId", index, resolved) or "").strip()
        if not project_id:
            raise NodeOperationError("Project ID cannot be empty", item_index=index)

        if resource == "project" and operation == "get":
            try:
                return [await service.get_project(project_id)]
            except GitLabApiError as e:
                raise NodeOperationError(
                    describe_gitlab_error(e, "Project", project_id, "get project"),
                    item_index=index,
                    cause=e,
                ) from e

        elif resource == "mergeRequest" and operation == "getAll":
            state = self._get_parameter(context, "state", index, resolved)
            options = self._get_parameter(context, "additionalOptions", index, resolved) or {}
            resolved["returnAll"] = bool(self._get_parameter(context, "returnAll", index, resolved))

            try:
                merge_requests = await service.list_merge_requests(
                    project_id,
                    state=state,
                    per_page=options.get("per_page"),
                    page=options.get("page"),
                )
            except GitLabApiError as e:
                raise NodeOperationError(
                    describe_gitlab_error(e, "Project", project_id, "list merge requests"),
                    item_index=index,
                    cause=e,
                ) from e

            if not resolved["returnAll"]:
                limit = int(self._get_parameter(context, "limit", index, resolved))
                merge_requests = merge_requests[:limit]
            return merge_requests

        elif resource == "mergeRequest" and operation == "get":
            iid = int(self._get_parameter(context, "mergeRequestIid", index, resolved))
            try:
                return [await service.get_merge_request(project_id, iid)]
            except GitLabApiError as e:
                raise NodeOperationError(
                    describe_gitlab_error(
                        e,
                        "Merge request",
                        f"{iid} in project {project_id}",
                        "get merge request",
                    ),
                    item_index=index,
                    cause=e,
                ) from e

        raise MessageValidationError(f"Unsupported operation: {resource}.{operation}")
