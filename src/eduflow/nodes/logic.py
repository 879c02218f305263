"""Logic and flow-control nodes: condition, delay."""

from __future__ import annotations

import asyncio
import math
from typing import Any, Mapping, Optional

from pydantic import Field, field_validator

from eduflow.config import get_settings
from eduflow.errors import NodeExecutionError, NodeValidationError
from eduflow.models import utcnow
from eduflow.nodes.base import BaseNode, NodeConfig, NodeExecutionContext


CONDITION_OPERATORS = (
    "equals", "not_equals", "not-equals",
    "contains", "not_contains", "not-contains",
    "greater_than", "greater-than", "greater",
    "less_than", "less-than", "less",
    "exists", "not_exists", "not-exists",
)


def _as_number(value: Any) -> Optional[float]:
    """Finite float for numbers and numeric strings, otherwise None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def get_nested_value(data: Any, path: str) -> Any:
    """Resolve a dotted path ("n1.data.status") against nested mappings/lists."""
    if not path:
        return None
    current = data
    for key in path.split("."):
        if isinstance(current, Mapping):
            current = current.get(key)
        elif isinstance(current, (list, tuple)) and key.isdigit() and int(key) < len(current):
            current = current[int(key)]
        else:
            return None
    return current


class ConditionConfig(NodeConfig):
    field: str
    operator: str
    value: Any = None

    @field_validator("field")
    @classmethod
    def field_required(cls, v: str) -> str:
        if not v:
            raise ValueError("Field is required")
        return v

    @field_validator("operator")
    @classmethod
    def operator_known(cls, v: str) -> str:
        if not v:
            raise ValueError("Operator is required")
        if v not in CONDITION_OPERATORS:
            raise ValueError(f"Invalid operator: {v}")
        return v


class ConditionNode(BaseNode):
    """
    Evaluates one comparison against the accumulated input.

    The run continues either way; later nodes read `passed`.
    """

    type = "condition"
    description = {
        "label": "Condition",
        "description": "Evaluate conditions and branch logic",
        "category": "Logic",
    }
    config_model = ConditionConfig

    async def execute(self, context: NodeExecutionContext) -> Any:
        config: ConditionConfig = self.parsed_config
        field_value = get_nested_value(context.input, config.field)

        try:
            passed = self._evaluate(config.operator, field_value, config.value)
        except (TypeError, ValueError) as e:
            raise NodeExecutionError(f"Condition evaluation failed: {e}") from e

        return {
            "condition": {
                "field": config.field,
                "operator": config.operator,
                "value": config.value,
                "result": passed,
            },
            "passed": passed,
            "fieldValue": field_value,
        }

    @staticmethod
    def _evaluate(operator: str, field_value: Any, value: Any) -> bool:
        op = operator.replace("-", "_")
        if op == "equals":
            return field_value == value
        if op == "not_equals":
            return field_value != value
        if op == "contains":
            return str(value).lower() in str(field_value).lower()
        if op == "not_contains":
            return str(value).lower() not in str(field_value).lower()
        if op in ("greater_than", "greater"):
            left, right = _as_number(field_value), _as_number(value)
            return left is not None and right is not None and left > right
        if op in ("less_than", "less"):
            left, right = _as_number(field_value), _as_number(value)
            return left is not None and right is not None and left < right
        if op == "exists":
            return field_value is not None
        if op == "not_exists":
            return field_value is None
        raise ValueError(f"Unknown operator: {operator}")


class DelayConfig(NodeConfig):
    duration: Optional[float] = Field(None, description="Seconds to wait")


class DelayNode(BaseNode):
    """Pauses the run for a fixed number of seconds."""

    type = "delay"
    description = {
        "label": "Delay",
        "description": "Add delays between actions",
        "category": "Utility",
    }
    config_model = DelayConfig

    def check(self, config: DelayConfig) -> None:
        if not config.duration:
            raise NodeValidationError("Duration is required", node_type=self.type, field="duration")
        if config.duration < 0:
            raise NodeValidationError("Duration must be a positive number", node_type=self.type, field="duration")
        limit = get_settings().max_delay_seconds
        if config.duration > limit:
            raise NodeValidationError(
                f"Duration cannot exceed {limit} seconds",
                node_type=self.type,
                field="duration",
            )

    async def execute(self, context: NodeExecutionContext) -> Any:
        duration = self.parsed_config.duration
        await asyncio.sleep(duration)
        return {
            "delayed": True,
            "duration": duration,
            "delayedAt": utcnow().isoformat(),
        }


__all__ = ["ConditionNode", "DelayNode", "get_nested_value", "CONDITION_OPERATORS"]
