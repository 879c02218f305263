"""
Redis-backed stores.

Values are pydantic models serialized as JSON. Key layout:

    workflow:{id}                      Workflow
    run:{id}                           Run
    integration:{org_id}:{type}        IntegrationConnection
    integrations:{org_id}              set of configured integration types
    user:{id}                          User
    org-users:{org_id}                 set of user ids
    tokens:{user_id}                   OAuthTokens
"""
from typing import List, Optional

import redis.asyncio as redis

from eduflow.config import get_settings
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


def create_redis_client(url: str | None = None) -> redis.Redis:
    """Async Redis client for the configured URL (decoded responses)."""
    return redis.from_url(url or get_settings().redis_url, decode_responses=True)


class _RedisStore:
    def __init__(self, redis_client: redis.Redis | None = None):
        """
        Args:
            redis_client: Optional Redis client (will create one if not provided)
        """
        self.redis_client = redis_client if redis_client is not None else create_redis_client()


class RedisWorkflowStore(_RedisStore):
    """Workflows and runs."""

    _workflow_prefix = "workflow:"
    _run_prefix = "run:"

    def _workflow_key(self, workflow_id: str) -> str:
        return f"{self._workflow_prefix}{workflow_id}"

    def _run_key(self, run_id: str) -> str:
        return f"{self._run_prefix}{run_id}"

    async def save_workflow(self, workflow: Workflow) -> None:
        await self.redis_client.set(
            self._workflow_key(workflow.id),
            workflow.model_dump_json(by_alias=True),
        )

    async def get_workflow(self, workflow_id: str) -> Optional[Workflow]:
        data = await self.redis_client.get(self._workflow_key(workflow_id))
        if data is None:
            return None
        return Workflow.model_validate_json(data)

    async def create_run(self, run: Run) -> Run:
        created = await self.redis_client.set(
            self._run_key(run.id),
            run.model_dump_json(by_alias=True),
            nx=True,
        )
        if not created:
            raise EduflowError(f"Run {run.id} already exists")

        logger.info("Run created", extra={"run_id": run.id, "workflow_id": run.workflow_id})
        return run

    async def update_run(self, run_id: str, patch: RunPatch) -> Run:
        run = await self.get_run(run_id)
        if run is None:
            logger.error("Run not found", extra={"run_id": run_id})
            raise EduflowError(f"Run {run_id} not found")

        updated = patch.apply(run)
        await self.redis_client.set(
            self._run_key(run_id),
            updated.model_dump_json(by_alias=True),
        )
        logger.debug(
            "Run updated",
            extra={"run_id": run_id, "status": updated.status.value, "log_entries": len(updated.logs)},
        )
        return updated

    async def get_run(self, run_id: str) -> Optional[Run]:
        data = await self.redis_client.get(self._run_key(run_id))
        if data is None:
            return None
        return Run.model_validate_json(data)


class RedisIntegrationStore(_RedisStore):
    """Stored integration connections per organization."""

    def _connection_key(self, organization_id: str, integration_type: str) -> str:
        return f"integration:{organization_id}:{integration_type}"

    def _types_key(self, organization_id: str) -> str:
        return f"integrations:{organization_id}"

    async def save_connection(self, connection: IntegrationConnection) -> None:
        async with self.redis_client.pipeline(transaction=True) as pipe:
            pipe.set(
                self._connection_key(connection.organization_id, connection.type),
                connection.model_dump_json(by_alias=True),
            )
            pipe.sadd(self._types_key(connection.organization_id), connection.type)
            await pipe.execute()

    async def find_connection(
        self, organization_id: str, integration_type: str
    ) -> Optional[IntegrationConnection]:
        data = await self.redis_client.get(self._connection_key(organization_id, integration_type))
        if data is None:
            return None
        return IntegrationConnection.model_validate_json(data)

    async def list_connection_types(self, organization_id: str) -> List[str]:
        types = await self.redis_client.smembers(self._types_key(organization_id))
        return sorted(types)


class RedisTokenCache(_RedisStore):
    """OAuth tokens per user."""

    def _tokens_key(self, user_id: str) -> str:
        return f"tokens:{user_id}"

    async def save_tokens(self, user_id: str, tokens: OAuthTokens, ttl_s: int | None = None) -> None:
        await self.redis_client.set(
            self._tokens_key(user_id),
            tokens.model_dump_json(by_alias=True, exclude_none=True),
            ex=ttl_s,
        )

    async def get_tokens(self, user_id: str) -> Optional[OAuthTokens]:
        data = await self.redis_client.get(self._tokens_key(user_id))
        if data is None:
            return None
        return OAuthTokens.model_validate_json(data)


class RedisUserDirectory(_RedisStore):
    """User records and organization membership."""

    def _user_key(self, user_id: str) -> str:
        return f"user:{user_id}"

    def _members_key(self, organization_id: str) -> str:
        return f"org-users:{organization_id}"

    async def save_user(self, user: User) -> None:
        async with self.redis_client.pipeline(transaction=True) as pipe:
            pipe.set(self._user_key(user.id), user.model_dump_json(by_alias=True))
            pipe.sadd(self._members_key(user.organization_id), user.id)
            await pipe.execute()

    async def find_user_by_acting_id(self, acting_user_id: str) -> Optional[User]:
        data = await self.redis_client.get(self._user_key(acting_user_id))
        if data is None:
            return None
        return User.model_validate_json(data)

    async def find_any_user_in_organization(self, organization_id: str) -> Optional[User]:
        member_ids = sorted(await self.redis_client.smembers(self._members_key(organization_id)))
        for user_id in member_ids:
            user = await self.find_user_by_acting_id(user_id)
            if user is not None:
                return user
        return None


__all__ = [
    "create_redis_client",
    "RedisWorkflowStore",
    "RedisIntegrationStore",
    "RedisTokenCache",
    "RedisUserDirectory",
]
