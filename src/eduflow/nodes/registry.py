"""
Node Registry - maps node type tags to node classes.

Built once per process and read-only afterwards. Unknown type tags fall
back to PassThroughNode so a workflow never breaks on a type the engine
does not ship yet.
"""

from __future__ import annotations

from typing import Any, Dict, Iterator, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field

from eduflow.nodes.ai import LocalAINode
from eduflow.nodes.alert import AlertSendNode
from eduflow.nodes.base import BaseNode
from eduflow.nodes.education import AssignmentCreateNode, AttendanceTrackNode, ScheduleCheckNode
from eduflow.nodes.files import FileUploadNode
from eduflow.nodes.generic import SIMULATED_NODE_TYPES, PassThroughNode, SimulatedNode
from eduflow.nodes.http_request import HttpRequestNode
from eduflow.nodes.logic import ConditionNode, DelayNode
from eduflow.nodes.messaging import (
    DiscordSendNode,
    EmailSendNode,
    SlackSendNode,
    TwilioSmsNode,
    TwilioWhatsAppNode,
    WhatsAppGroupNode,
)
from eduflow.observability import get_logger


logger = get_logger(__name__)


class NodeDefinition(BaseModel):
    """Catalogue entry for a registered node type."""
    model_config = ConfigDict(extra="allow")

    node_type: str = Field(..., description="Unique node type identifier")
    label: str = Field(..., description="Human-readable name")
    description: str = Field("", description="Node description")
    category: str = Field("Utility", description="Editor palette category")
    node_class: str = Field(..., description="Fully qualified class name")

    @classmethod
    def from_node_class(cls, node_class: Type[BaseNode], node_type: Optional[str] = None) -> "NodeDefinition":
        info = node_class.get_definition()
        return cls(
            node_type=node_type or info["type"],
            label=info["label"],
            description=info["description"],
            category=info["category"],
            node_class=f"{node_class.__module__}.{node_class.__name__}",
        )


class NodeRegistry:
    """
    Central registry for instantiating nodes.

    Usage:
        registry = build_default_registry()
        node = registry.create_node("slack-send", {"message": "hi"})
    """

    def __init__(self, fallback: Type[BaseNode] = PassThroughNode):
        self._nodes: Dict[str, NodeDefinition] = {}
        self._node_classes: Dict[str, Type[BaseNode]] = {}
        self._fallback = fallback

    def register_node(
        self,
        node_class: Type[BaseNode],
        node_type: Optional[str] = None,
        definition: Optional[NodeDefinition] = None,
    ) -> NodeDefinition:
        """
        Register a node class.

        Args:
            node_class: BaseNode subclass
            node_type: Override node type (uses class.type if not provided)
            definition: Catalogue entry (derived from the class if not provided)
        """
        node_type = node_type or node_class.type
        definition = definition or NodeDefinition.from_node_class(node_class, node_type)

        self._nodes[node_type] = definition
        self._node_classes[node_type] = node_class
        logger.debug(f"Registered node: {node_type}")
        return definition

    def get_node_class(self, node_type: str) -> Optional[Type[BaseNode]]:
        return self._node_classes.get(node_type)

    def create_node(self, node_type: str, config: Optional[Dict[str, Any]] = None) -> BaseNode:
        """
        Create a node instance for `node_type`.

        Unregistered types get the fallback node, with a warning.
        """
        node_class = self.get_node_class(node_type)
        if node_class is None:
            logger.warning(f"Unknown node type: {node_type}, using {self._fallback.__name__}")
            node_class = self._fallback
        return node_class(config, node_type=node_type)

    def list_nodes(self) -> List[NodeDefinition]:
        return list(self._nodes.values())

    def list_node_types(self) -> List[str]:
        return list(self._nodes.keys())

    def has_node(self, node_type: str) -> bool:
        return node_type in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[NodeDefinition]:
        return iter(self._nodes.values())

    def __contains__(self, node_type: str) -> bool:
        return self.has_node(node_type)


BUILTIN_NODES: List[Type[BaseNode]] = [
    HttpRequestNode,
    DelayNode,
    ConditionNode,
    SlackSendNode,
    DiscordSendNode,
    EmailSendNode,
    TwilioSmsNode,
    TwilioWhatsAppNode,
    WhatsAppGroupNode,
    AlertSendNode,
    LocalAINode,
    AttendanceTrackNode,
    ScheduleCheckNode,
    AssignmentCreateNode,
    FileUploadNode,
]


def build_default_registry() -> NodeRegistry:
    """Registry holding every bundled node kind."""
    registry = NodeRegistry()
    for node_class in BUILTIN_NODES:
        registry.register_node(node_class)

    for node_type, (label, description, category) in SIMULATED_NODE_TYPES.items():
        registry.register_node(
            SimulatedNode,
            node_type,
            NodeDefinition(
                node_type=node_type,
                label=label,
                description=description,
                category=category,
                node_class=f"{SimulatedNode.__module__}.{SimulatedNode.__name__}",
            ),
        )
    return registry


# Global registry instance
_global_registry: Optional[NodeRegistry] = None


def get_global_registry() -> NodeRegistry:
    """Get the global node registry (lazy initialized)."""
    global _global_registry
    if _global_registry is None:
        _global_registry = build_default_registry()
    return _global_registry


__all__ = [
    "BUILTIN_NODES",
    "NodeDefinition",
    "NodeRegistry",
    "build_default_registry",
    "get_global_registry",
]
