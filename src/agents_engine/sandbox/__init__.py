"""
Tool execution sandbox: registry, security policy, approvals and dispatch.
"""

from .approval import ApprovalChecker, ApprovalRequirement
from .executor import AgentRunner, BatchContext, BatchOutcome, ToolExecutionSandbox
from .policy import PolicyDecision, PolicyEngine, SecurityPolicy
from .registry import ToolRegistry

__all__ = [
    "AgentRunner",
    "ApprovalChecker",
    "ApprovalRequirement",
    "BatchContext",
    "BatchOutcome",
    "PolicyDecision",
    "PolicyEngine",
    "SecurityPolicy",
    "ToolExecutionSandbox",
    "ToolRegistry",
]
