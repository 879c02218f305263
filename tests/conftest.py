"""Pytest configuration and fixtures."""
import os

import pytest

# Set test environment variables
os.environ["EDUFLOW_ENV"] = "test"
os.environ["EDUFLOW_STORE_BACKEND"] = "memory"
os.environ["EDUFLOW_REDIS_URL"] = "redis://localhost:6379/1"  # Test DB
os.environ["EDUFLOW_BROKER_URL"] = "memory://"

# Integration env fallbacks that would turn simulated sends into real ones
FALLBACK_ENV_VARS = (
    "TWILIO_ACCOUNT_SID",
    "TWILIO_AUTH_TOKEN",
    "TWILIO_PHONE_NUMBER",
    "TWILIO_WHATSAPP_FROM",
    "TWILIO_WHATSAPP_NUMBER",
    "SMTP_HOST",
    "SMTP_PORT",
    "SMTP_USER",
    "SMTP_PASS",
    "SMTP_FROM",
    "SLACK_WEBHOOK_URL",
    "DISCORD_WEBHOOK_URL",
    "OPENAI_API_KEY",
    "EDUFLOW_OPENAI_API_KEY",
    "EDUFLOW_NODE_TIMEOUT_S",
    "EDUFLOW_UPLOAD_DIR",
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Start every test without integration env fallbacks or cached settings."""
    from eduflow.config import reset_settings

    for name in FALLBACK_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()


class RecordingEventSink:
    """EventSink that keeps everything it receives."""

    def __init__(self):
        self.events = []
        self.notifications = []

    async def emit_run_event(self, kind, payload):
        self.events.append((kind, payload))

    async def emit_notification(self, title, message, severity="info", category="workflow"):
        self.notifications.append(
            {"title": title, "message": message, "severity": severity, "category": category}
        )

    def kinds(self):
        return [kind for kind, _ in self.events]


@pytest.fixture
def store():
    from eduflow.storage import InMemoryStore

    return InMemoryStore()


@pytest.fixture
def events():
    return RecordingEventSink()


@pytest.fixture
def executor(store, events):
    """Executor wired to the in-memory store and a recording event sink."""
    from eduflow.executor import WorkflowExecutor

    return WorkflowExecutor(
        workflows=store,
        integrations=store,
        tokens=store,
        users=store,
        events=events,
    )


def make_node(node_id, node_type, config=None, label=None):
    """Stored node descriptor as the editor saves it."""
    return {
        "id": node_id,
        "type": node_type,
        "position": {"x": 0, "y": 0},
        "data": {"label": label or node_id, "nodeType": node_type, "config": config or {}},
    }


@pytest.fixture
def node():
    """Factory for stored node descriptors."""
    return make_node


@pytest.fixture
def add_workflow(store):
    """Factory storing a workflow with the given raw nodes."""
    from eduflow.models import Workflow

    def _add(nodes, workflow_id="wf_1", organization_id="org_1", name="Test Workflow"):
        return store.add_workflow(
            Workflow(id=workflow_id, organization_id=organization_id, name=name, nodes=nodes)
        )

    return _add


@pytest.fixture
def node_context():
    """Factory for a NodeExecutionContext with sensible defaults."""
    from types import MappingProxyType

    from eduflow.nodes import NodeExecutionContext

    def _make(input=None, credentials=None, node_id="node_1"):
        return NodeExecutionContext(
            input=MappingProxyType(dict(input or {})),
            workflow_id="wf_1",
            run_id="run_test",
            organization_id="org_1",
            node_id=node_id,
            credentials=MappingProxyType(credentials) if credentials else None,
        )

    return _make
