"""Workflow node implementations."""

from hooknodes.nodes.base import (
    BaseNode,
    ExecutionContext,
    InMemoryExecutionContext,
    NodeExecutionData,
)
from hooknodes.nodes.gitlab import GitLabNode, describe_gitlab_error
from hooknodes.nodes.wework_bot import WeworkBotNode, split_list

# Node types exposed to the host platform
NODE_REGISTRY: dict[str, type[BaseNode]] = {
    WeworkBotNode.node_type: WeworkBotNode,
    GitLabNode.node_type: GitLabNode,
}


def get_node_class(node_type: str) -> type[BaseNode] | None:
    """Look up a node class by its type identifier."""
    return NODE_REGISTRY.get(node_type)


__all__ = [
    # Base
    "BaseNode",
    "ExecutionContext",
    "InMemoryExecutionContext",
    "NodeExecutionData",
    # Nodes
    "GitLabNode",
    "WeworkBotNode",
    "describe_gitlab_error",
    "split_list",
    # Registry
    "NODE_REGISTRY",
    "get_node_class",
]
