"""In-memory store implementing every storage protocol. Used by tests and the CLI."""
import asyncio
from typing import Dict, List, Optional, Tuple

from eduflow.errors import EduflowError
from eduflow.models import (
    IntegrationConnection,
    OAuthTokens,
    Run,
    RunPatch,
    User,
    Workflow,
)
from eduflow.observability import get_logger

logger = get_logger(__name__)


class InMemoryStore:
    """Dict-backed WorkflowStore, IntegrationStore, TokenCache and UserDirectory."""

    def __init__(self) -> None:
        self.workflows: Dict[str, Workflow] = {}
        self.runs: Dict[str, Run] = {}
        self.connections: Dict[Tuple[str, str], IntegrationConnection] = {}
        self.tokens: Dict[str, OAuthTokens] = {}
        self.users: Dict[str, User] = {}
        # Snapshot of the run after every update, for inspection in tests
        self.run_history: Dict[str, List[Run]] = {}
        self._lock = asyncio.Lock()

    # ==== Seeding ====

    def add_workflow(self, workflow: Workflow) -> Workflow:
        self.workflows[workflow.id] = workflow
        return workflow

    def add_connection(self, connection: IntegrationConnection) -> IntegrationConnection:
        self.connections[(connection.organization_id, connection.type)] = connection
        return connection

    def add_user(self, user: User, tokens: Optional[OAuthTokens] = None) -> User:
        self.users[user.id] = user
        if tokens is not None:
            self.tokens[user.id] = tokens
        return user

    # ==== WorkflowStore ====

    async def get_workflow(self, workflow_id: str) -> Optional[Workflow]:
        return self.workflows.get(workflow_id)

    async def create_run(self, run: Run) -> Run:
        async with self._lock:
            if run.id in self.runs:
                raise EduflowError(f"Run {run.id} already exists")
            self.runs[run.id] = run
            self.run_history[run.id] = [run]
        logger.debug("Run created", extra={"run_id": run.id, "workflow_id": run.workflow_id})
        return run

    async def update_run(self, run_id: str, patch: RunPatch) -> Run:
        async with self._lock:
            run = self.runs.get(run_id)
            if run is None:
                raise EduflowError(f"Run {run_id} not found")
            updated = patch.apply(run)
            self.runs[run_id] = updated
            self.run_history[run_id].append(updated)
        return updated

    async def get_run(self, run_id: str) -> Optional[Run]:
        return self.runs.get(run_id)

    # ==== IntegrationStore ====

    async def find_connection(
        self, organization_id: str, integration_type: str
    ) -> Optional[IntegrationConnection]:
        return self.connections.get((organization_id, integration_type))

    async def list_connection_types(self, organization_id: str) -> List[str]:
        return [t for (org, t) in self.connections if org == organization_id]

    # ==== TokenCache ====

    async def get_tokens(self, user_id: str) -> Optional[OAuthTokens]:
        return self.tokens.get(user_id)

    # ==== UserDirectory ====

    async def find_user_by_acting_id(self, acting_user_id: str) -> Optional[User]:
        return self.users.get(acting_user_id)

    async def find_any_user_in_organization(self, organization_id: str) -> Optional[User]:
        for user in self.users.values():
            if user.organization_id == organization_id:
                return user
        return None


__all__ = ["InMemoryStore"]
