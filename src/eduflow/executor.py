"""
Workflow Executor - sequential, fail-fast run orchestration.

Runs the stored node list in array order (edges are not consulted).
Run lifecycle:

    PENDING -> RUNNING -> SUCCESS
                       -> FAILED

The run log is persisted after every node so a crashed worker leaves a
readable partial history behind.

Only an exception raised by a node aborts the run. A node that returns
normally is recorded as successful whatever it reports about itself;
its own verdict is kept in the result outcome and output (alert-send
returns a failed outcome when every channel failed, and the run goes on).

Events go through a per-run BufferedEventSink, so a slow sink never
holds up node execution.
"""

from __future__ import annotations

import asyncio
import secrets
import string
import time
from types import MappingProxyType
from typing import Any, Dict, List, Optional

from eduflow.config import Settings, get_settings
from eduflow.errors import (
    EduflowError,
    NodeExecutionError,
    NodeValidationError,
    WorkflowNotFoundError,
)
from eduflow.events import BufferedEventSink, LoggingEventSink
from eduflow.integrations.credentials import CredentialResolver
from eduflow.integrations.readiness import ReadinessChecker, summarize
from eduflow.models import (
    WORKFLOW_RESULT_ID,
    NodeOutcome,
    NodeResult,
    Run,
    RunPatch,
    RunStatus,
    Workflow,
    WorkflowNode,
    parse_nodes,
    utcnow,
)
from eduflow.nodes.base import BaseNode, NodeExecutionContext, NodeOutput
from eduflow.nodes.registry import NodeRegistry, get_global_registry
from eduflow.observability import get_logger, with_run_context
from eduflow.storage.protocols import (
    EventSink,
    IntegrationStore,
    TokenCache,
    UserDirectory,
    WorkflowStore,
)

logger = get_logger(__name__)

_RUN_ID_ALPHABET = string.ascii_lowercase + string.digits


def new_run_id() -> str:
    """Run id of the form run_{epoch_ms}_{9 random base36 chars}."""
    suffix = "".join(secrets.choice(_RUN_ID_ALPHABET) for _ in range(9))
    return f"run_{int(time.time() * 1000)}_{suffix}"


def _error_message(error: BaseException) -> str:
    if isinstance(error, EduflowError):
        return error.message
    return str(error) or type(error).__name__


class WorkflowExecutor:
    """
    Executes stored workflows.

    Usage:
        executor = WorkflowExecutor(workflows=store, integrations=store)
        run_id = await executor.execute("wf_1", payload={"studentId": "s1"})
        run = await store.get_run(run_id)

    Concurrent execute() calls share only the stores and the read-only
    registry; each call owns its run, log, input map and event buffer.
    """

    def __init__(
        self,
        workflows: WorkflowStore,
        integrations: IntegrationStore,
        tokens: Optional[TokenCache] = None,
        users: Optional[UserDirectory] = None,
        events: Optional[EventSink] = None,
        registry: Optional[NodeRegistry] = None,
        settings: Optional[Settings] = None,
    ):
        self.workflows = workflows
        self.events = events or LoggingEventSink()
        self.registry = registry or get_global_registry()
        self.settings = settings or get_settings()
        self.credentials = CredentialResolver(integrations, tokens, users)
        self.readiness = ReadinessChecker(integrations)

    async def execute(
        self,
        workflow_id: str,
        payload: Optional[Dict[str, Any]] = None,
        acting_user_id: Optional[str] = None,
    ) -> str:
        """
        Execute a workflow once.

        Args:
            workflow_id: Stored workflow to run
            payload: Trigger payload, seeds the input map
            acting_user_id: User on whose behalf the run happens (OAuth lookups)

        Returns:
            Id of the created run, whether it succeeded or failed

        Raises:
            WorkflowNotFoundError: if the workflow does not exist (no run is created)
        """
        workflow = await self.workflows.get_workflow(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(workflow_id)

        run_id = new_run_id()
        await self.workflows.create_run(
            Run(
                id=run_id,
                workflow_id=workflow_id,
                organization_id=workflow.organization_id,
                status=RunStatus.PENDING,
                triggered_by=acting_user_id,
            )
        )
        logger.info(
            f"Starting run for workflow {workflow.name}",
            extra=with_run_context(run_id, workflow_id, workflow.organization_id),
        )

        events = BufferedEventSink(self.events, self.settings.event_timeout_s)
        try:
            await self._run(workflow, run_id, payload or {}, acting_user_id, events)
        finally:
            await events.aclose()
        return run_id

    async def _run(
        self,
        workflow: Workflow,
        run_id: str,
        payload: Dict[str, Any],
        acting_user_id: Optional[str],
        events: EventSink,
    ) -> None:
        extra = with_run_context(run_id, workflow.id, workflow.organization_id)
        logs: List[NodeResult] = []

        try:
            await self.workflows.update_run(
                run_id, RunPatch(status=RunStatus.RUNNING, started_at=utcnow())
            )
            nodes = parse_nodes(workflow.nodes)
            await self._check_readiness(workflow, nodes, run_id, events)

            inputs: Dict[str, Any] = dict(payload)
            for node in nodes:
                inputs = await self._run_node(
                    workflow, node, run_id, inputs, logs, payload, acting_user_id, events
                )

            run = await self.workflows.update_run(
                run_id, RunPatch(status=RunStatus.SUCCESS, logs=logs, finished_at=utcnow())
            )
        except asyncio.CancelledError:
            await self._fail(workflow, run_id, logs, "Run cancelled", events)
            raise
        except Exception as e:
            logger.error(f"Run failed: {_error_message(e)}", extra=extra)
            await self._fail(workflow, run_id, logs, _error_message(e), events)
            return

        logger.info(f"Run succeeded with {len(logs)} nodes", extra=extra)
        await events.emit_run_event("run.completed", self._run_summary(workflow, run))
        await events.emit_notification(
            "Workflow completed",
            f'Workflow "{workflow.name}" completed successfully',
            "success",
            "workflow",
        )

    # ==== Steps ====

    async def _check_readiness(
        self,
        workflow: Workflow,
        nodes: List[WorkflowNode],
        run_id: str,
        events: EventSink,
    ) -> None:
        """Report missing integrations; never blocks the run."""
        try:
            report = await self.readiness.check(workflow.organization_id, nodes)
        except Exception as e:
            logger.warning(
                f"Integration readiness check failed: {e}",
                extra=with_run_context(run_id, workflow.id, workflow.organization_id),
            )
            return

        await events.emit_run_event(
            "workflow.integrations",
            {
                "runId": run_id,
                "workflowId": workflow.id,
                "workflowName": workflow.name,
                "allConfigured": report.all_configured,
                "missing": report.missing_integration_names,
                "nodeStatuses": {
                    node_id: status.model_dump(by_alias=True)
                    for node_id, status in report.node_statuses.items()
                },
            },
        )
        if not report.all_configured:
            await events.emit_notification("Missing integrations", summarize(report), "warning", "workflow")

    async def _run_node(
        self,
        workflow: Workflow,
        node: WorkflowNode,
        run_id: str,
        inputs: Dict[str, Any],
        logs: List[NodeResult],
        payload: Dict[str, Any],
        acting_user_id: Optional[str],
        events: EventSink,
    ) -> Dict[str, Any]:
        """
        Validate, execute and record one node.

        Returns the next input map. Raises to abort the run.
        """
        node_type = node.node_type
        extra = with_run_context(run_id, workflow.id, workflow.organization_id, node.id, node_type=node_type)

        instance = self.registry.create_node(node_type, node.config)
        try:
            instance.validate(node.config)
        except NodeValidationError as e:
            raise NodeValidationError(
                f"Node {node.id} ({node_type}) validation failed: {e.message}",
                node_type=node_type,
                field=e.field,
            ) from e

        credentials = await self.credentials.resolve(workflow.organization_id, node_type, acting_user_id)
        context = NodeExecutionContext(
            input=MappingProxyType(dict(inputs)),
            workflow_id=workflow.id,
            run_id=run_id,
            organization_id=workflow.organization_id,
            node_id=node.id,
            user_id=acting_user_id,
            payload=MappingProxyType(dict(payload)),
            previous_results=tuple(logs),
            credentials=MappingProxyType(credentials) if credentials else None,
        )

        await events.emit_run_event("node.running", {"runId": run_id, "workflowId": workflow.id, "nodeId": node.id})
        logger.debug(f"Executing node {node.label}", extra=extra)

        started = time.perf_counter()
        try:
            raw = await self._invoke(instance, context)
        except Exception as e:
            result = NodeResult(
                node_id=node.id,
                success=False,
                error=_error_message(e),
                duration_ms=(time.perf_counter() - started) * 1000,
                outcome=NodeOutcome.FAILED,
            )
            logs.append(result)
            await self.workflows.update_run(run_id, RunPatch(status=RunStatus.RUNNING, logs=logs))

            logger.error(f"Node failed: {result.error}", extra=extra)
            await events.emit_run_event(
                "node.failed",
                {"runId": run_id, "workflowId": workflow.id, "nodeId": node.id, "error": result.error},
            )
            raise NodeExecutionError(
                f"Node {node.id} ({node_type}) failed: {result.error}",
                node_id=node.id,
                node_type=node_type,
            ) from e

        result = self._to_result(node.id, raw, (time.perf_counter() - started) * 1000)
        logs.append(result)
        await self.workflows.update_run(run_id, RunPatch(status=RunStatus.RUNNING, logs=logs))

        if result.outcome == NodeOutcome.FAILED:
            logger.warning(f"Node reported failure, run continues: {result.error}", extra=extra)
        else:
            logger.info(
                f"Node completed in {result.duration_ms:.0f}ms",
                extra={**extra, "outcome": result.outcome.value},
            )
        await events.emit_run_event(
            "node.succeeded",
            {
                "runId": run_id,
                "workflowId": workflow.id,
                "nodeId": node.id,
                "outcome": result.outcome.value,
                "durationMs": result.duration_ms,
            },
        )
        return {**inputs, node.id: result.output}

    async def _invoke(self, instance: BaseNode, context: NodeExecutionContext) -> Any:
        timeout = self.settings.node_timeout_s
        if timeout is None:
            return await instance.execute(context)
        try:
            return await asyncio.wait_for(instance.execute(context), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise NodeExecutionError(
                f"Node execution timed out after {timeout}s",
                node_id=context.node_id,
                node_type=instance.node_type,
            ) from e

    @staticmethod
    def _to_result(node_id: str, raw: Any, duration_ms: float) -> NodeResult:
        """A node that returned is a successful entry; a NodeOutput only sets outcome and error."""
        if isinstance(raw, NodeOutput):
            return NodeResult(
                node_id=node_id,
                success=True,
                output=raw.data,
                error=None if raw.success else raw.error,
                duration_ms=duration_ms,
                outcome=raw.outcome if raw.success else NodeOutcome.FAILED,
            )
        return NodeResult(node_id=node_id, success=True, output=raw, duration_ms=duration_ms)

    async def _fail(
        self,
        workflow: Workflow,
        run_id: str,
        logs: List[NodeResult],
        error: str,
        events: EventSink,
    ) -> None:
        """Mark the run FAILED. Errors here are logged, never raised."""
        extra = with_run_context(run_id, workflow.id, workflow.organization_id)
        if not logs or logs[-1].node_id != WORKFLOW_RESULT_ID:
            logs.append(NodeResult.workflow_failure(error))

        run: Optional[Run] = None
        try:
            run = await self.workflows.update_run(
                run_id, RunPatch(status=RunStatus.FAILED, logs=logs, finished_at=utcnow())
            )
        except Exception as e:
            logger.error(f"Failed to update workflow run status: {e}", extra=extra)

        summary = self._run_summary(workflow, run) if run else {
            "id": run_id,
            "runId": run_id,
            "workflowId": workflow.id,
            "workflowName": workflow.name,
            "status": RunStatus.FAILED.value,
        }
        await events.emit_run_event("run.failed", {**summary, "error": error})
        await events.emit_notification(
            "Workflow failed", f'Workflow "{workflow.name}" failed: {error}', "error", "workflow"
        )

    @staticmethod
    def _run_summary(workflow: Workflow, run: Run) -> Dict[str, Any]:
        return {
            "id": run.id,
            "runId": run.id,
            "workflowId": run.workflow_id,
            "workflowName": workflow.name,
            "status": run.status.value,
            "startedAt": run.started_at.isoformat() if run.started_at else None,
            "finishedAt": run.finished_at.isoformat() if run.finished_at else None,
            "duration": run.duration_ms,
        }


__all__ = ["WorkflowExecutor", "new_run_id"]
