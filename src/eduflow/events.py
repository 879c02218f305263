"""
Event sinks for run lifecycle events and user notifications.

Run event kinds emitted by the executor:
    workflow.integrations, node.running, node.succeeded, node.failed,
    run.completed, run.failed
"""
import asyncio
import json
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Tuple

import redis.asyncio as redis

from eduflow.config import get_settings
from eduflow.models import utcnow
from eduflow.observability import get_logger

logger = get_logger(__name__)

NOTIFICATION_SEVERITIES = ("info", "success", "warning", "error")


class LoggingEventSink:
    """Writes events and notifications to the structured log."""

    def __init__(self, logger_name: str = "eduflow.events"):
        self.logger = get_logger(logger_name)

    async def emit_run_event(self, kind: str, payload: dict[str, Any]) -> None:
        self.logger.info(
            f"Run event {kind}",
            extra={
                "event": kind,
                "run_id": payload.get("runId"),
                "workflow_id": payload.get("workflowId"),
                "node_id": payload.get("nodeId"),
            },
        )

    async def emit_notification(
        self,
        title: str,
        message: str,
        severity: str = "info",
        category: str = "workflow",
    ) -> None:
        level = {"warning": "warning", "error": "error"}.get(severity, "info")
        getattr(self.logger, level)(
            f"{title}: {message}",
            extra={"severity": severity, "category": category},
        )


class RedisEventSink:
    """Publishes events and notifications as JSON on Redis pub/sub channels."""

    def __init__(
        self,
        redis_client: redis.Redis | None = None,
        dashboard_channel: str | None = None,
        notification_channel: str | None = None,
    ):
        settings = get_settings()
        if redis_client is None:
            redis_client = redis.from_url(settings.redis_url, decode_responses=True)
        self.redis_client = redis_client
        self.dashboard_channel = dashboard_channel or settings.dashboard_channel
        self.notification_channel = notification_channel or settings.notification_channel

    async def emit_run_event(self, kind: str, payload: dict[str, Any]) -> None:
        message = {"type": kind, "data": payload, "timestamp": utcnow().isoformat()}
        await self.redis_client.publish(self.dashboard_channel, json.dumps(message, default=str))

    async def emit_notification(
        self,
        title: str,
        message: str,
        severity: str = "info",
        category: str = "workflow",
    ) -> None:
        if severity not in NOTIFICATION_SEVERITIES:
            severity = "info"
        notification = {
            "type": "notification",
            "data": {"title": title, "message": message, "type": severity, "category": category},
            "timestamp": utcnow().isoformat(),
        }
        await self.redis_client.publish(self.notification_channel, json.dumps(notification))


class FanoutEventSink:
    """
    Forwards to several sinks.

    A failing sink is logged and skipped; the others still receive the event.
    """

    def __init__(self, sinks: Iterable[Any]):
        self.sinks: List[Any] = list(sinks)

    async def emit_run_event(self, kind: str, payload: dict[str, Any]) -> None:
        for sink in self.sinks:
            try:
                await sink.emit_run_event(kind, payload)
            except Exception as e:
                logger.warning(f"Event sink {type(sink).__name__} failed for {kind}: {e}")

    async def emit_notification(
        self,
        title: str,
        message: str,
        severity: str = "info",
        category: str = "workflow",
    ) -> None:
        for sink in self.sinks:
            try:
                await sink.emit_notification(title, message, severity, category)
            except Exception as e:
                logger.warning(f"Notification sink {type(sink).__name__} failed: {e}")


class BufferedEventSink:
    """
    Non-blocking front for another sink, scoped to one run.

    emit_* only enqueue; a single background task delivers in emission
    order, each delivery bounded by `timeout`. aclose() waits at most
    `timeout` for the backlog, then cancels what is left. Events that do
    not fit in the queue are dropped with a warning.
    """

    DEFAULT_QUEUE_SIZE = 1000

    def __init__(self, sink: Any, timeout: float, queue_size: int = DEFAULT_QUEUE_SIZE):
        self.sink = sink
        self.timeout = timeout
        self._queue: asyncio.Queue[Optional[Tuple[str, Callable[[], Awaitable[None]]]]] = asyncio.Queue(
            maxsize=queue_size
        )
        self._worker: Optional[asyncio.Task[None]] = None
        self.dropped = 0

    async def emit_run_event(self, kind: str, payload: dict[str, Any]) -> None:
        self._enqueue(f"run event {kind}", lambda: self.sink.emit_run_event(kind, payload))

    async def emit_notification(
        self,
        title: str,
        message: str,
        severity: str = "info",
        category: str = "workflow",
    ) -> None:
        self._enqueue(
            f"notification {title!r}",
            lambda: self.sink.emit_notification(title, message, severity, category),
        )

    def _enqueue(self, label: str, send: Callable[[], Awaitable[None]]) -> None:
        try:
            self._queue.put_nowait((label, send))
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(f"Event queue full, dropped {label}")
            return
        if self._worker is None:
            self._worker = asyncio.create_task(self._deliver())

    async def _deliver(self) -> None:
        while True:
            item = await self._queue.get()
            if item is None:
                return
            label, send = item
            try:
                await asyncio.wait_for(send(), timeout=self.timeout)
            except Exception as e:
                self.dropped += 1
                logger.warning(f"Dropped {label}: {type(e).__name__}: {e}")

    async def aclose(self) -> None:
        """Flush the backlog (bounded by `timeout`) and stop the worker."""
        if self._worker is None:
            return
        worker, self._worker = self._worker, None
        try:
            await asyncio.wait_for(self._drain(worker), timeout=self.timeout)
        except asyncio.TimeoutError:
            worker.cancel()
            logger.warning(f"Event delivery timed out after {self.timeout}s, undelivered events dropped")

    async def _drain(self, worker: "asyncio.Task[None]") -> None:
        await self._queue.put(None)
        await worker


__all__ = [
    "LoggingEventSink",
    "RedisEventSink",
    "FanoutEventSink",
    "BufferedEventSink",
    "NOTIFICATION_SEVERITIES",
]
