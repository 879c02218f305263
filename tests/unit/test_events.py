"""Tests for event sinks."""
import asyncio
import json
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from eduflow.events import BufferedEventSink, FanoutEventSink, LoggingEventSink, RedisEventSink


@pytest.fixture
def redis_client():
    client = MagicMock()
    client.publish = AsyncMock(return_value=1)
    return client


class TestRedisEventSink:

    @pytest.mark.asyncio
    async def test_run_event_goes_to_dashboard_channel(self, redis_client):
        sink = RedisEventSink(redis_client)

        await sink.emit_run_event("node.running", {"runId": "run_1", "nodeId": "n1"})

        channel, raw = redis_client.publish.await_args.args
        message = json.loads(raw)
        assert channel == "eduflow:dashboard"
        assert message["type"] == "node.running"
        assert message["data"] == {"runId": "run_1", "nodeId": "n1"}
        assert "timestamp" in message

    @pytest.mark.asyncio
    async def test_notification_payload(self, redis_client):
        sink = RedisEventSink(redis_client, notification_channel="alerts")

        await sink.emit_notification("Workflow completed", "Done", "success")

        channel, raw = redis_client.publish.await_args.args
        assert channel == "alerts"
        assert json.loads(raw)["data"] == {
            "title": "Workflow completed",
            "message": "Done",
            "type": "success",
            "category": "workflow",
        }

    @pytest.mark.asyncio
    async def test_unknown_severity_becomes_info(self, redis_client):
        await RedisEventSink(redis_client).emit_notification("t", "m", "catastrophic")

        assert json.loads(redis_client.publish.await_args.args[1])["data"]["type"] == "info"


class TestFanoutEventSink:

    @pytest.mark.asyncio
    async def test_failing_sink_does_not_block_others(self, events, caplog):
        broken = MagicMock()
        broken.emit_run_event = AsyncMock(side_effect=ConnectionError("redis down"))
        broken.emit_notification = AsyncMock(side_effect=ConnectionError("redis down"))
        sink = FanoutEventSink([broken, events])

        with caplog.at_level(logging.WARNING, logger="eduflow.events"):
            await sink.emit_run_event("run.completed", {"runId": "run_1"})
            await sink.emit_notification("t", "m", "error")

        assert events.kinds() == ["run.completed"]
        assert events.notifications[0]["severity"] == "error"
        assert "redis down" in caplog.text


class TestLoggingEventSink:

    @pytest.mark.asyncio
    async def test_logs_run_context(self, caplog):
        with caplog.at_level(logging.INFO, logger="eduflow.events"):
            await LoggingEventSink().emit_run_event("node.failed", {"runId": "run_1", "nodeId": "n2"})

        record = caplog.records[-1]
        assert record.event == "node.failed"
        assert record.run_id == "run_1"
        assert record.node_id == "n2"

    @pytest.mark.asyncio
    async def test_warning_notification_level(self, caplog):
        with caplog.at_level(logging.INFO, logger="eduflow.events"):
            await LoggingEventSink().emit_notification("Missing integrations", "Configure Slack", "warning")

        assert caplog.records[-1].levelno == logging.WARNING
        assert caplog.records[-1].getMessage() == "Missing integrations: Configure Slack"


class TestBufferedEventSink:

    @pytest.mark.asyncio
    async def test_emit_returns_before_delivery(self, events):
        sink = BufferedEventSink(events, timeout=1.0)

        await sink.emit_run_event("node.running", {"runId": "run_1"})
        await sink.emit_notification("Done", "ok", "success")

        assert events.kinds() == []

        await sink.aclose()

        assert events.kinds() == ["node.running"]
        assert events.notifications[0]["title"] == "Done"

    @pytest.mark.asyncio
    async def test_preserves_emission_order(self, events):
        sink = BufferedEventSink(events, timeout=1.0)

        for kind in ["workflow.integrations", "node.running", "node.succeeded", "run.completed"]:
            await sink.emit_run_event(kind, {})
        await sink.aclose()

        assert events.kinds() == ["workflow.integrations", "node.running", "node.succeeded", "run.completed"]

    @pytest.mark.asyncio
    async def test_failing_delivery_is_logged_and_counted(self, events, caplog):
        broken = MagicMock()
        broken.emit_run_event = AsyncMock(side_effect=[ConnectionError("redis down"), None])
        sink = BufferedEventSink(broken, timeout=1.0)

        with caplog.at_level(logging.WARNING, logger="eduflow.events"):
            await sink.emit_run_event("node.running", {})
            await sink.emit_run_event("node.succeeded", {})
            await sink.aclose()

        assert sink.dropped == 1
        assert broken.emit_run_event.await_count == 2
        assert "Dropped run event node.running: ConnectionError: redis down" in caplog.text

    @pytest.mark.asyncio
    async def test_slow_sink_is_bounded(self, caplog):
        async def stall(*args):
            await asyncio.sleep(10)

        slow = MagicMock()
        slow.emit_run_event = AsyncMock(side_effect=stall)
        sink = BufferedEventSink(slow, timeout=0.05)

        loop = asyncio.get_running_loop()
        started = loop.time()
        with caplog.at_level(logging.WARNING, logger="eduflow.events"):
            for _ in range(5):
                await sink.emit_run_event("node.running", {})
            emitted = loop.time()
            await sink.aclose()

        assert emitted - started < 0.05
        assert loop.time() - started < 1.0
        assert "Event delivery timed out" in caplog.text

    @pytest.mark.asyncio
    async def test_full_queue_drops_event(self, events, caplog):
        sink = BufferedEventSink(events, timeout=1.0, queue_size=1)

        with caplog.at_level(logging.WARNING, logger="eduflow.events"):
            await sink.emit_run_event("node.running", {})
            await sink.emit_run_event("node.succeeded", {})
            await sink.aclose()

        assert sink.dropped == 1
        assert events.kinds() == ["node.running"]
        assert "Event queue full, dropped run event node.succeeded" in caplog.text

    @pytest.mark.asyncio
    async def test_close_without_events(self, events):
        await BufferedEventSink(events, timeout=1.0).aclose()

        assert events.kinds() == []
