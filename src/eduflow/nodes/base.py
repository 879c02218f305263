"""
BaseNode - Abstract base class for node implementations.

Every node kind implements the same three-step contract:
- configure(new_config): merge into the current config
- validate(config): reject missing/malformed fields, no I/O
- execute(context): perform the effect (async, may raise)

execute() may be called more than once on the same instance.
"""

from __future__ import annotations

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, ClassVar, Dict, Mapping, Optional, Tuple, Type

from pydantic import BaseModel, ConfigDict, ValidationError

from eduflow.errors import NodeValidationError
from eduflow.models import NodeOutcome, NodeResult
from eduflow.observability import get_logger


# ==============================================================================
# Configuration models
# ==============================================================================

class NodeConfig(BaseModel):
    """
    Base class for typed node configurations.

    Unknown keys are kept so editor-only fields survive a round trip.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)


def format_validation_error(error: ValidationError) -> Tuple[str, Optional[str]]:
    """First pydantic error as (message, field)."""
    first = error.errors()[0]
    loc = ".".join(str(part) for part in first.get("loc", ()))
    msg = first.get("msg", "invalid value")
    # Custom validators raise ValueError; pydantic prefixes the message
    msg = msg.removeprefix("Value error, ")
    if first.get("type") == "missing":
        return f"{loc} is required", loc or None
    return (f"{loc}: {msg}" if loc else msg), loc or None


# ==============================================================================
# NodeExecutionContext - per-node runtime context
# ==============================================================================

@dataclass(frozen=True)
class NodeExecutionContext:
    """
    Runtime context handed to one node invocation.

    `input` is a read-only snapshot: the trigger payload plus every
    earlier node's output keyed by node id.
    """
    input: Mapping[str, Any]
    workflow_id: str
    run_id: str
    organization_id: str
    node_id: str = ""
    user_id: Optional[str] = None
    payload: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    previous_results: Tuple[NodeResult, ...] = ()
    credentials: Optional[Mapping[str, Any]] = None

    def credential(self, *keys: str, default: Any = None) -> Any:
        """First non-empty value among `keys` in the resolved credentials."""
        if not self.credentials:
            return default
        for key in keys:
            value = self.credentials.get(key)
            if value:
                return value
        return default


# ==============================================================================
# NodeOutput - explicit result envelope
# ==============================================================================

@dataclass
class NodeOutput:
    """
    Explicit execute() result.

    Nodes return plain values when the effect simply happened; they return
    a NodeOutput to report a simulated effect or a handled failure.
    """
    data: Any = None
    success: bool = True
    outcome: NodeOutcome = NodeOutcome.EXECUTED
    error: Optional[str] = None

    @classmethod
    def simulated(cls, data: Any) -> "NodeOutput":
        return cls(data=data, success=True, outcome=NodeOutcome.SIMULATED)


# ==============================================================================
# BaseNode
# ==============================================================================

class BaseNode(ABC):
    """
    Abstract base class for all node implementations.

    Subclasses define:
    - type: node type tag (e.g. "slack-send")
    - description: catalogue metadata (label, description, category)
    - config_model: NodeConfig subclass used by validate()

    And implement the async execute() method.

    Example:

        class SlackSendNode(BaseNode):
            type = "slack-send"
            description = {"label": "Send to Slack", "category": "Communication"}
            config_model = SlackSendConfig

            async def execute(self, context):
                config = self.parsed_config
                ...
                return {"status": "sent"}
    """

    type: ClassVar[str] = "base"
    description: ClassVar[Dict[str, Any]] = {
        "label": "Base Node",
        "description": "",
        "category": "Utility",
    }
    config_model: ClassVar[Type[NodeConfig]] = NodeConfig

    def __init__(
        self,
        config: Optional[Dict[str, Any]] = None,
        node_type: Optional[str] = None,
    ) -> None:
        self.config: Dict[str, Any] = dict(config or {})
        # One class may serve several type tags (see SimulatedNode)
        self.node_type = node_type or self.type
        self.logger = get_logger(f"eduflow.node.{self.node_type}")
        self._parsed: Optional[NodeConfig] = None

    # ==== Contract ====

    def configure(self, new_config: Dict[str, Any]) -> None:
        """Merge `new_config` into the current configuration."""
        self.config = {**self.config, **new_config}
        self._parsed = None

    def validate(self, config: Dict[str, Any]) -> None:
        """
        Validate a configuration dict.

        Decodes it through config_model and runs check(); the decoded
        model is kept for execute().

        Raises:
            NodeValidationError: when required fields are absent or malformed
        """
        try:
            parsed = self.config_model.model_validate(config or {})
        except ValidationError as e:
            message, field_name = format_validation_error(e)
            raise NodeValidationError(message, node_type=self.node_type, field=field_name) from e
        self.check(parsed)
        self._parsed = parsed

    def check(self, config: Any) -> None:
        """Cross-field checks beyond the config model. Raise NodeValidationError."""

    @abstractmethod
    async def execute(self, context: NodeExecutionContext) -> Any:
        """
        Execute node operation.

        Returns:
            Any JSON-serializable output, or a NodeOutput envelope.

        Raises:
            NodeExecutionError: On operation failure
            NodeApiError: On API call failure
        """
        raise NotImplementedError

    # ==== Helpers for subclasses ====

    @property
    def parsed_config(self) -> Any:
        """Typed configuration (decoded on first access if validate() was skipped)."""
        if self._parsed is None:
            self.validate(self.config)
        return self._parsed

    def get_config(self) -> Dict[str, Any]:
        return self.config

    @staticmethod
    def env(name: str, default: Optional[str] = None) -> Optional[str]:
        """Read an environment fallback value (empty strings count as unset)."""
        return os.environ.get(name) or default

    @classmethod
    def get_definition(cls) -> Dict[str, Any]:
        """Catalogue entry for this node kind."""
        return {
            "type": cls.type,
            "label": cls.description.get("label", cls.type),
            "description": cls.description.get("description", ""),
            "category": cls.description.get("category", "Utility"),
        }


__all__ = [
    "BaseNode",
    "NodeConfig",
    "NodeExecutionContext",
    "NodeOutput",
    "format_validation_error",
]
