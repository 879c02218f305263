"""Storage package."""
from eduflow.storage.memory import InMemoryStore
from eduflow.storage.protocols import (
    EventSink,
    IntegrationStore,
    TokenCache,
    UserDirectory,
    WorkflowStore,
)
from eduflow.storage.redis_store import (
    RedisIntegrationStore,
    RedisTokenCache,
    RedisUserDirectory,
    RedisWorkflowStore,
    create_redis_client,
)

__all__ = [
    "EventSink",
    "IntegrationStore",
    "TokenCache",
    "UserDirectory",
    "WorkflowStore",
    "InMemoryStore",
    "RedisIntegrationStore",
    "RedisTokenCache",
    "RedisUserDirectory",
    "RedisWorkflowStore",
    "create_redis_client",
]
