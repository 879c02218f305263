"""
Workflow Models - stored workflows, runs and run log entries.

Node descriptors match the editor's JSON format:
{"id": "n1", "type": "slack-send", "position": {...},
 "data": {"label": "Notify", "nodeType": "slack-send", "config": {...}}}
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from eduflow.errors import MalformedWorkflowError


def utcnow() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


class RunStatus(str, Enum):
    """Run lifecycle status. SUCCESS and FAILED are terminal."""
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.SUCCESS, RunStatus.FAILED)


class NodeOutcome(str, Enum):
    """What actually happened when a node ran."""
    EXECUTED = "executed"    # Side effect performed
    SIMULATED = "simulated"  # No credentials/config: effect simulated
    SKIPPED = "skipped"      # Nothing to do
    FAILED = "failed"


# ==============================================================================
# Workflow definition
# ==============================================================================

class NodePosition(BaseModel):
    """Node position in the canvas."""
    x: float = 0
    y: float = 0


class NodeData(BaseModel):
    """Data bag carried by every node descriptor."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    label: Optional[str] = Field("", description="Human-readable label")
    node_type: Optional[str] = Field(None, alias="nodeType", description="Node type tag")
    config: Optional[Dict[str, Any]] = Field(default_factory=dict, description="Node-type-specific configuration")

    @field_validator("label", "config", mode="before")
    @classmethod
    def null_as_empty(cls, v: Any, info) -> Any:
        """The editor saves cleared fields as null."""
        if v is None:
            return "" if info.field_name == "label" else {}
        return v


class WorkflowNode(BaseModel):
    """A node descriptor in a workflow."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = Field(..., min_length=1, description="Node ID (unique within workflow)")
    type: str = Field(..., min_length=1, description="Node type (e.g. 'slack-send')")
    position: NodePosition = Field(default_factory=NodePosition)
    data: NodeData

    @property
    def node_type(self) -> str:
        """Effective node type: data.nodeType wins over the descriptor type."""
        return self.data.node_type or self.type

    @property
    def label(self) -> str:
        return self.data.label or self.node_type

    @property
    def config(self) -> Dict[str, Any]:
        return self.data.config or {}


class WorkflowEdge(BaseModel):
    """
    Connection between two nodes.

    Kept for the editor; execution order is the node array order.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    source: str
    target: str
    source_handle: Optional[str] = Field(None, alias="sourceHandle")
    target_handle: Optional[str] = Field(None, alias="targetHandle")


class Workflow(BaseModel):
    """
    Stored workflow.

    `nodes` holds the raw stored list; it is checked by parse_nodes()
    when a run starts, not when the record is loaded.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = Field(..., description="Workflow ID")
    organization_id: str = Field(..., alias="organizationId", description="Owning organization")
    name: str = Field("Unnamed Workflow", description="Workflow name")
    nodes: Any = Field(default_factory=list, description="Ordered node descriptors (raw)")
    edges: List[WorkflowEdge] = Field(default_factory=list)
    enabled: bool = Field(True)


def parse_nodes(raw_nodes: Any) -> List[WorkflowNode]:
    """
    Validate and parse a stored node list.

    Every element must carry a non-empty string id, a non-empty string
    type and an object data bag.

    Raises:
        MalformedWorkflowError: if the list or any element is malformed
    """
    if not isinstance(raw_nodes, list):
        raise MalformedWorkflowError("Workflow nodes are malformed or not an array")

    nodes: List[WorkflowNode] = []
    for index, item in enumerate(raw_nodes):
        if not isinstance(item, dict) or not isinstance(item.get("data"), dict):
            raise MalformedWorkflowError(
                f"Workflow node at index {index} is malformed: 'data' must be an object",
                index=index,
            )
        if not isinstance(item.get("id"), str) or not isinstance(item.get("type"), str):
            raise MalformedWorkflowError(
                f"Workflow node at index {index} is malformed: 'id' and 'type' must be strings",
                index=index,
            )
        try:
            nodes.append(WorkflowNode.model_validate(item))
        except ValidationError as e:
            raise MalformedWorkflowError(
                f"Workflow node at index {index} is malformed: {e.errors()[0]['msg']}",
                index=index,
            ) from e
    return nodes


# ==============================================================================
# Runs
# ==============================================================================

class NodeResult(BaseModel):
    """
    Outcome of one node within a run. Immutable once appended.

    Serialized with camelCase keys (nodeId, durationMs) for log readers.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    node_id: str = Field(..., alias="nodeId")
    success: bool
    output: Any = None
    error: Optional[str] = None
    duration_ms: float = Field(0, alias="durationMs")
    outcome: NodeOutcome = NodeOutcome.EXECUTED

    @classmethod
    def workflow_failure(cls, error: str) -> "NodeResult":
        """Synthetic entry carrying a run-level error."""
        return cls(
            node_id=WORKFLOW_RESULT_ID,
            success=False,
            error=error,
            duration_ms=0,
            outcome=NodeOutcome.FAILED,
        )


WORKFLOW_RESULT_ID = "workflow"


class Run(BaseModel):
    """One execution attempt of a workflow."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    workflow_id: str = Field(..., alias="workflowId")
    organization_id: str = Field(..., alias="organizationId")
    status: RunStatus = RunStatus.PENDING
    logs: List[NodeResult] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
    started_at: Optional[datetime] = Field(None, alias="startedAt")
    finished_at: Optional[datetime] = Field(None, alias="finishedAt")
    triggered_by: Optional[str] = Field(None, alias="triggeredBy")

    @property
    def duration_ms(self) -> Optional[float]:
        if self.started_at is None or self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds() * 1000


class RunPatch(BaseModel):
    """Partial update of a run. `status` is always present."""
    status: RunStatus
    logs: Optional[List[NodeResult]] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    def apply(self, run: Run) -> Run:
        """Return a copy of `run` with this patch applied."""
        update: Dict[str, Any] = {"status": self.status}
        if self.logs is not None:
            update["logs"] = list(self.logs)
        if self.started_at is not None:
            update["started_at"] = self.started_at
        if self.finished_at is not None:
            update["finished_at"] = self.finished_at
        return run.model_copy(update=update)


# ==============================================================================
# Integrations and users
# ==============================================================================

class IntegrationConnection(BaseModel):
    """Stored credential bundle for one integration of one organization."""
    model_config = ConfigDict(populate_by_name=True)

    organization_id: str = Field(..., alias="organizationId")
    type: str = Field(..., description="Integration type, e.g. 'slack'")
    credentials: Dict[str, Any] = Field(default_factory=dict)
    meta: Dict[str, Any] = Field(default_factory=dict)


class User(BaseModel):
    """Directory entry for a user."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    organization_id: str = Field(..., alias="organizationId")
    email: Optional[str] = None


class OAuthToken(BaseModel):
    """Cached OAuth token for one provider."""
    model_config = ConfigDict(populate_by_name=True)

    access_token: str = Field(..., alias="accessToken")
    refresh_token: Optional[str] = Field(None, alias="refreshToken")
    expires_at: Optional[datetime] = Field(None, alias="expiresAt")

    def as_credentials(self) -> Dict[str, Any]:
        """Credential keys overlaid onto a stored bundle."""
        data: Dict[str, Any] = {"accessToken": self.access_token}
        if self.refresh_token:
            data["refreshToken"] = self.refresh_token
        if self.expires_at:
            data["expiresAt"] = self.expires_at.isoformat()
        return data


class OAuthTokens(BaseModel):
    """Per-user cached tokens."""
    google: Optional[OAuthToken] = None
    microsoft: Optional[OAuthToken] = None


__all__ = [
    "RunStatus",
    "NodeOutcome",
    "NodeData",
    "WorkflowNode",
    "WorkflowEdge",
    "Workflow",
    "parse_nodes",
    "NodeResult",
    "WORKFLOW_RESULT_ID",
    "Run",
    "RunPatch",
    "IntegrationConnection",
    "User",
    "OAuthToken",
    "OAuthTokens",
    "utcnow",
]
