"""Base classes for workflow nodes and the host execution interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import structlog
from ulid import ULID

from hooknodes.integrations.manifest import NodeManifest

logger = structlog.get_logger()

_MISSING = object()


@dataclass
class NodeExecutionData:
    """One output record produced by a node."""

    json: dict[str, Any]
    paired_item: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the host platform."""
        result: dict[str, Any] = {"json": self.json}
        if self.paired_item is not None:
            result["pairedItem"] = {"item": self.paired_item}
        return result


class ExecutionContext(ABC):
    """Interface the host platform offers to a running node.

    Supplies input rows, resolves parameters per row, and hands out
    credentials.
    """

    execution_id: str = ""
    node_id: str = ""
    workflow_id: str = ""

    @abstractmethod
    def get_input_data(self) -> list[dict[str, Any]]:
        """Get the input rows."""
        pass

    @abstractmethod
    def get_node_parameter(self, name: str, item_index: int, default: Any = None) -> Any:
        """Resolve a parameter for one input row.

        Args:
            name: Parameter name. Dots address nested values (``articles.article``).
            item_index: Row index.
            default: Value returned when the parameter is not set.

        Returns:
            Resolved value.
        """
        pass

    @abstractmethod
    async def get_credentials(self, name: str) -> dict[str, Any]:
        """Get decrypted credential data by credential type name."""
        pass

    @abstractmethod
    def continue_on_fail(self) -> bool:
        """Whether failed rows should become output records instead of aborting."""
        pass


class InMemoryExecutionContext(ExecutionContext):
    """Execution context backed by plain dicts.

    Used to embed nodes outside a host platform and in tests.

    Example:
        context = InMemoryExecutionContext(
            parameters=[{"messageType": "text", "content": "hello"}],
            credentials={"weworkBotApi": {"webhookUrl": url}},
        )
        records = await WeworkBotNode().execute(context)
    """

    def __init__(
        self,
        parameters: list[dict[str, Any]] | dict[str, Any],
        items: list[dict[str, Any]] | None = None,
        credentials: dict[str, dict[str, Any]] | None = None,
        continue_on_fail: bool = False,
        execution_id: str | None = None,
        node_id: str = "node",
        workflow_id: str = "workflow",
    ):
        """Initialize the context.

        Args:
            parameters: Per-row parameter dicts, or one dict shared by every row.
            items: Input rows. Defaults to one empty row per parameter dict.
            credentials: Credential data by type name.
            continue_on_fail: Continue-on-fail flag.
            execution_id: Execution identifier. Generated when omitted.
            node_id: Node identifier.
            workflow_id: Workflow identifier.
        """
        self.parameters = parameters
        if items is None:
            items = [{} for _ in parameters] if isinstance(parameters, list) else [{}]
        self.items = items
        self.credentials = credentials or {}
        self._continue_on_fail = continue_on_fail
        self.execution_id = execution_id or str(ULID())
        self.node_id = node_id
        self.workflow_id = workflow_id

    def get_input_data(self) -> list[dict[str, Any]]:
        return list(self.items)

    def get_node_parameter(self, name: str, item_index: int, default: Any = None) -> Any:
        if isinstance(self.parameters, list):
            if item_index >= len(self.parameters):
                return default
            current: Any = self.parameters[item_index]
        else:
            current = self.parameters

        for part in name.split("."):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default
        return current

    async def get_credentials(self, name: str) -> dict[str, Any]:
        if name not in self.credentials:
            raise KeyError(f"No credentials of type {name} configured")
        return dict(self.credentials[name])

    def continue_on_fail(self) -> bool:
        return self._continue_on_fail


class BaseNode(ABC):
    """Abstract base class for all workflow nodes.

    Each node type should inherit from this class and implement
    ``get_manifest`` and ``execute``.
    """

    # Node type identifier (must match the manifest id)
    node_type: str = ""

    def __init__(self):
        """Initialize node."""
        self.manifest = self.get_manifest()
        self.logger = logger.bind(node_type=self.node_type)

    @classmethod
    @abstractmethod
    def get_manifest(cls) -> NodeManifest:
        """Describe the node's parameters and credentials."""
        pass

    @abstractmethod
    async def execute(self, context: ExecutionContext) -> list[NodeExecutionData]:
        """Execute the node over every input row.

        Args:
            context: Host execution context.

        Returns:
            Output records.
        """
        pass

    def get_required_credentials(self) -> list[str]:
        """Get list of required credential type names."""
        return self.manifest.get_required_credentials()

    def _get_parameter(
        self,
        context: ExecutionContext,
        name: str,
        item_index: int,
        resolved: dict[str, Any] | None = None,
        default: Any = _MISSING,
    ) -> Any:
        """Resolve a parameter, falling back to the manifest default.

        Args:
            context: Host execution context.
            name: Parameter name.
            item_index: Row index.
            resolved: Parameters already resolved for this row, used to pick
                the definition whose display conditions match.
            default: Explicit default overriding the manifest.

        Returns:
            Parameter value.
        """
        if default is _MISSING:
            default = self.manifest.get_default(name.split(".")[0], resolved)
        return context.get_node_parameter(name, item_index, default)
