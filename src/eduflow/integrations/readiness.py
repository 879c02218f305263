"""
Integration readiness check.

Advisory only: the executor reports the result and carries on whatever
it says.
"""
from typing import Dict, List, Sequence

from pydantic import BaseModel, Field

from eduflow.integrations.catalog import (
    NODE_INTEGRATIONS,
    has_env_fallback,
    integration_name,
    required_integrations,
)
from eduflow.models import WorkflowNode
from eduflow.storage.protocols import IntegrationStore


class IntegrationCheck(BaseModel):
    """One (node, integration) requirement and whether it is met."""

    node_id: str
    node_label: str
    node_type: str
    integration: str
    integration_name: str
    configured: bool
    has_env_fallback: bool = False


class NodeIntegrationStatus(BaseModel):
    has_integration: bool
    integration_name: str = ""


class ReadinessReport(BaseModel):
    all_configured: bool
    missing: List[IntegrationCheck] = Field(default_factory=list)
    configured: List[IntegrationCheck] = Field(default_factory=list)
    node_statuses: Dict[str, NodeIntegrationStatus] = Field(default_factory=dict)

    @property
    def missing_integration_names(self) -> List[str]:
        """Distinct names of missing integrations, in first-seen order."""
        return list(dict.fromkeys(m.integration_name for m in self.missing))


class ReadinessChecker:
    """Checks which integrations a node list needs and which are configured."""

    def __init__(self, integrations: IntegrationStore):
        self.integrations = integrations

    async def check(self, organization_id: str, nodes: Sequence[WorkflowNode]) -> ReadinessReport:
        """
        An integration counts as configured when the organization has a
        stored connection for it or its env fallback set is fully present.
        """
        stored = set(await self.integrations.list_connection_types(organization_id))
        missing: List[IntegrationCheck] = []
        configured: List[IntegrationCheck] = []
        statuses: Dict[str, NodeIntegrationStatus] = {}

        for node in nodes:
            node_type = node.node_type
            required = required_integrations(node_type)
            if not required:
                statuses[node.id] = NodeIntegrationStatus(has_integration=True)
                continue

            node_ok = True
            for integration in required:
                env_ok = has_env_fallback(integration)
                check = IntegrationCheck(
                    node_id=node.id,
                    node_label=node.label or node_type,
                    node_type=node_type,
                    integration=integration,
                    integration_name=integration_name(integration),
                    configured=integration in stored or env_ok,
                    has_env_fallback=env_ok,
                )
                (configured if check.configured else missing).append(check)
                node_ok = node_ok and check.configured

            statuses[node.id] = NodeIntegrationStatus(
                has_integration=node_ok,
                integration_name=NODE_INTEGRATIONS[node_type].name,
            )

        return ReadinessReport(
            all_configured=not missing,
            missing=missing,
            configured=configured,
            node_statuses=statuses,
        )


def summarize(report: ReadinessReport) -> str:
    """User-facing one-line summary of a readiness report."""
    if report.all_configured:
        return "All integrations are configured"

    names = report.missing_integration_names
    if len(names) == 1:
        return f"Configure {names[0]} in Integrations to enable this workflow"
    return f"Configure {', '.join(names[:-1])} and {names[-1]} in Integrations"


__all__ = [
    "IntegrationCheck",
    "NodeIntegrationStatus",
    "ReadinessReport",
    "ReadinessChecker",
    "summarize",
]
