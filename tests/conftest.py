"""
Shared fixtures.
"""

import pytest

from agents_engine.core.audit import AuditLog
from agents_engine.engine.workflow import WorkflowEngine
from agents_engine.sandbox.executor import ToolExecutionSandbox
from agents_engine.sandbox.registry import ToolRegistry


@pytest.fixture
def audit_log() -> AuditLog:
    """In-memory audit log."""
    return AuditLog()


@pytest.fixture
def registry() -> ToolRegistry:
    """Empty tool registry."""
    return ToolRegistry()


@pytest.fixture
def make_engine(audit_log):
    """Factory building an engine with instant retries and a short grace period."""
    def factory(client, registry=None, policy=None, guardrails=None, **kwargs):
        sandbox = ToolExecutionSandbox(
            registry or ToolRegistry(),
            policy=policy,
            audit_log=audit_log,
            grace_period=0.1,
        )
        return WorkflowEngine(
            client,
            sandbox=sandbox,
            guardrails=guardrails,
            default_model="test-model",
            backoff_multiplier=0,
            grace_period=0.1,
            **kwargs,
        )
    return factory
