"""
EduFlow Engine

Execution engine for node-based automation workflows:
a stored, ordered node list is run against live services
(chat apps, email, SMS, AI APIs) and every step is recorded
in a durable, pollable run log.

Architecture:
- nodes/: Node contract (BaseNode, NodeExecutionContext) + bundled node kinds
- nodes/registry.py: Node type -> node instance, with pass-through fallback
- integrations/: Integration catalogue, credential resolution, readiness check
- storage/: Store protocols + in-memory and Redis adapters
- executor.py: Run orchestrator (fail-fast, incremental log persistence)
"""

__version__ = "1.0.0"
