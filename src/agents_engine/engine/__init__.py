"""
Workflow execution: sessions, routing, turn accounting and the engine.
"""

from .budget import TurnBudget
from .resolver import HANDOFF_PREFIX, ResolvedConfig, RuntimeContext, handoff_tool_name, resolve
from .routing import BUILTIN_FILTERS, HandoffRouter
from .session import AgentSession
from .validation import ValidationIssue, ValidationReport, validate_definition
from .workflow import RunState, WorkflowEngine

__all__ = [
    "AgentSession",
    "BUILTIN_FILTERS",
    "HANDOFF_PREFIX",
    "HandoffRouter",
    "ResolvedConfig",
    "RunState",
    "RuntimeContext",
    "TurnBudget",
    "ValidationIssue",
    "ValidationReport",
    "WorkflowEngine",
    "handoff_tool_name",
    "resolve",
    "validate_definition",
]
