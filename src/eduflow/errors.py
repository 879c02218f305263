"""
Error taxonomy for workflow execution.

- WorkflowNotFoundError: workflow missing, no run is created
- MalformedWorkflowError: stored node list fails structural validation
- NodeValidationError: a node's own configuration is invalid
- NodeExecutionError: a node's execute() failed
- NodeApiError: third-party API call made by a node failed
"""

from __future__ import annotations

from typing import Any, Optional


class EduflowError(Exception):
    """Base exception for engine errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class WorkflowNotFoundError(EduflowError):
    """Raised when the requested workflow does not exist."""

    def __init__(self, workflow_id: str) -> None:
        super().__init__(f"Workflow with ID {workflow_id} not found")
        self.workflow_id = workflow_id


class MalformedWorkflowError(EduflowError):
    """Raised when the stored node list is not a well-formed node array."""

    def __init__(self, message: str, index: Optional[int] = None) -> None:
        super().__init__(message)
        self.index = index


class NodeValidationError(EduflowError):
    """Raised by BaseNode.validate() for missing or malformed config fields."""

    def __init__(
        self,
        message: str,
        node_type: Optional[str] = None,
        field: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.node_type = node_type
        self.field = field


class NodeExecutionError(EduflowError):
    """Error during node execution."""

    def __init__(
        self,
        message: str,
        node_id: Optional[str] = None,
        node_type: Optional[str] = None,
        output: Any = None,
    ) -> None:
        super().__init__(message)
        self.node_id = node_id
        self.node_type = node_type
        self.output = output


class NodeApiError(NodeExecutionError):
    """Error from an external API call."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


__all__ = [
    "EduflowError",
    "WorkflowNotFoundError",
    "MalformedWorkflowError",
    "NodeValidationError",
    "NodeExecutionError",
    "NodeApiError",
]
