"""Collaborator interfaces the executor depends on."""
from typing import Any, List, Optional, Protocol, runtime_checkable

from eduflow.models import (
    IntegrationConnection,
    OAuthTokens,
    Run,
    RunPatch,
    User,
    Workflow,
)


@runtime_checkable
class WorkflowStore(Protocol):
    """Workflows (read-only) and runs (create, patch, read)."""

    async def get_workflow(self, workflow_id: str) -> Optional[Workflow]: ...

    async def create_run(self, run: Run) -> Run: ...

    async def update_run(self, run_id: str, patch: RunPatch) -> Run: ...

    async def get_run(self, run_id: str) -> Optional[Run]: ...


@runtime_checkable
class IntegrationStore(Protocol):
    """Per-organization stored integration connections."""

    async def find_connection(
        self, organization_id: str, integration_type: str
    ) -> Optional[IntegrationConnection]: ...

    async def list_connection_types(self, organization_id: str) -> List[str]: ...


@runtime_checkable
class TokenCache(Protocol):
    """Cached OAuth tokens keyed by user id."""

    async def get_tokens(self, user_id: str) -> Optional[OAuthTokens]: ...


@runtime_checkable
class UserDirectory(Protocol):
    async def find_user_by_acting_id(self, acting_user_id: str) -> Optional[User]: ...

    async def find_any_user_in_organization(self, organization_id: str) -> Optional[User]: ...


@runtime_checkable
class EventSink(Protocol):
    """Fire-and-forget run events and user notifications."""

    async def emit_run_event(self, kind: str, payload: dict[str, Any]) -> None: ...

    async def emit_notification(
        self,
        title: str,
        message: str,
        severity: str = "info",
        category: str = "workflow",
    ) -> None: ...


__all__ = [
    "WorkflowStore",
    "IntegrationStore",
    "TokenCache",
    "UserDirectory",
    "EventSink",
]
