"""Integrations package: catalogue, credential resolution, readiness."""
from eduflow.integrations.catalog import (
    ENV_FALLBACKS,
    NODE_INTEGRATIONS,
    has_env_fallback,
    required_integrations,
)
from eduflow.integrations.credentials import CredentialResolver
from eduflow.integrations.readiness import (
    IntegrationCheck,
    NodeIntegrationStatus,
    ReadinessChecker,
    ReadinessReport,
    summarize,
)

__all__ = [
    "ENV_FALLBACKS",
    "NODE_INTEGRATIONS",
    "has_env_fallback",
    "required_integrations",
    "CredentialResolver",
    "IntegrationCheck",
    "NodeIntegrationStatus",
    "ReadinessChecker",
    "ReadinessReport",
    "summarize",
]
