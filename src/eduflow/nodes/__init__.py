"""
Nodes - the node contract and the bundled node kinds.

- BaseNode: configure / validate / execute contract
- NodeExecutionContext: per-invocation read-only context
- NodeOutput: explicit result envelope (success, outcome)
- NodeRegistry: type tag -> node class, with a pass-through fallback
"""

from eduflow.nodes.base import (
    BaseNode,
    NodeConfig,
    NodeExecutionContext,
    NodeOutput,
)
from eduflow.nodes.http import HttpClient, HttpResponse
from eduflow.nodes.generic import PassThroughNode, SimulatedNode
from eduflow.nodes.registry import (
    NodeDefinition,
    NodeRegistry,
    build_default_registry,
    get_global_registry,
)

__all__ = [
    # Contract
    "BaseNode",
    "NodeConfig",
    "NodeExecutionContext",
    "NodeOutput",
    # HTTP
    "HttpClient",
    "HttpResponse",
    # Registry
    "NodeDefinition",
    "NodeRegistry",
    "PassThroughNode",
    "SimulatedNode",
    "build_default_registry",
    "get_global_registry",
]
