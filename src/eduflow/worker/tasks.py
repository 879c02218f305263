"""Celery tasks for background workflow runs."""
import asyncio
from typing import Any, Optional

from eduflow.config import Settings, get_settings
from eduflow.events import FanoutEventSink, LoggingEventSink, RedisEventSink
from eduflow.executor import WorkflowExecutor
from eduflow.observability import get_logger, setup_logging
from eduflow.storage import (
    InMemoryStore,
    RedisIntegrationStore,
    RedisTokenCache,
    RedisUserDirectory,
    RedisWorkflowStore,
    create_redis_client,
)
from eduflow.worker.celery_app import celery_app

setup_logging()
logger = get_logger(__name__)

# Process-local store for the "memory" backend (eager mode, local development)
_memory_store: Optional[InMemoryStore] = None


def get_memory_store() -> InMemoryStore:
    global _memory_store
    if _memory_store is None:
        _memory_store = InMemoryStore()
    return _memory_store


async def run_workflow(
    workflow_id: str,
    payload: Optional[dict[str, Any]] = None,
    acting_user_id: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> str:
    """
    Execute one workflow against the configured store backend.

    The Redis client is created and closed inside the call so it is bound
    to the event loop that runs the workflow.
    """
    settings = settings or get_settings()

    if settings.store_backend == "memory":
        store = get_memory_store()
        executor = WorkflowExecutor(
            workflows=store,
            integrations=store,
            tokens=store,
            users=store,
            settings=settings,
        )
        return await executor.execute(workflow_id, payload, acting_user_id)

    client = create_redis_client(settings.redis_url)
    try:
        executor = WorkflowExecutor(
            workflows=RedisWorkflowStore(client),
            integrations=RedisIntegrationStore(client),
            tokens=RedisTokenCache(client),
            users=RedisUserDirectory(client),
            events=FanoutEventSink([LoggingEventSink(), RedisEventSink(client)]),
            settings=settings,
        )
        return await executor.execute(workflow_id, payload, acting_user_id)
    finally:
        await client.aclose()


@celery_app.task(name="eduflow.execute_workflow", bind=True)
def execute_workflow(
    self,
    workflow_id: str,
    payload: Optional[dict[str, Any]] = None,
    acting_user_id: Optional[str] = None,
) -> str:
    """
    Execute a workflow by ID.

    Returns:
        Run id (the run itself is read from the workflow store)
    """
    logger.info(
        "Starting workflow execution",
        extra={"workflow_id": workflow_id, "task_id": self.request.id},
    )
    try:
        run_id = asyncio.run(run_workflow(workflow_id, payload, acting_user_id))
    except Exception as e:
        logger.error(
            "Workflow execution failed",
            extra={"workflow_id": workflow_id, "error": str(e)},
            exc_info=True,
        )
        raise

    logger.info(
        "Workflow execution finished",
        extra={"workflow_id": workflow_id, "run_id": run_id},
    )
    return run_id
