"""
Agents Workflow Engine

Multi-agent workflow orchestration: agents bound to instructions, tools and
handoff targets are driven to completion against an OpenAI-compatible
completion service, with every side effect mediated by a tool sandbox and
every input and output checked by guardrails.

Usage:
    from agents_engine import WorkflowEngine, LiteLLMReasoningClient, load_definition

    engine = WorkflowEngine(LiteLLMReasoningClient(base_url="http://localhost:4000"))
    result = await engine.run(load_definition("workflow.yaml"), "Plan a trip to Lisbon")
"""

from .core import (
    AgentsEngineError,
    AuditEvent,
    AuditLog,
    ConfigurationError,
    ExecutionError,
    GuardrailViolation,
    ReasoningServiceError,
    RoutingError,
    ToolExecutionError,
    TurnLimitExceeded,
    WorkflowTimeoutError,
)
from .core.loader import LoadedWorkflow, load_definition, load_workflow, parse_definition
from .models import (
    AgentDefinition,
    AgentTool,
    ApprovalDecision,
    ExternalProtocolTool,
    FunctionTool,
    HostedTool,
    Interruption,
    ToolCall,
    ToolResult,
    WorkflowDefinition,
    WorkflowPattern,
    WorkflowResult,
    WorkflowStatus,
)
from .reasoning import AbstractReasoningClient, LiteLLMReasoningClient, RetryingReasoningClient
from .sandbox import SecurityPolicy, ToolExecutionSandbox, ToolRegistry
from .guardrails import FunctionGuardrail, Guardrail, GuardrailChecker
from .engine import AgentSession, HandoffRouter, ValidationReport, WorkflowEngine, validate_definition

__all__ = [
    "AgentsEngineError",
    "AuditEvent",
    "AuditLog",
    "ConfigurationError",
    "ExecutionError",
    "GuardrailViolation",
    "ReasoningServiceError",
    "RoutingError",
    "ToolExecutionError",
    "TurnLimitExceeded",
    "WorkflowTimeoutError",
    "LoadedWorkflow",
    "load_definition",
    "load_workflow",
    "parse_definition",
    "AgentDefinition",
    "AgentTool",
    "ApprovalDecision",
    "ExternalProtocolTool",
    "FunctionTool",
    "HostedTool",
    "Interruption",
    "ToolCall",
    "ToolResult",
    "WorkflowDefinition",
    "WorkflowPattern",
    "WorkflowResult",
    "WorkflowStatus",
    "AbstractReasoningClient",
    "LiteLLMReasoningClient",
    "RetryingReasoningClient",
    "SecurityPolicy",
    "ToolExecutionSandbox",
    "ToolRegistry",
    "FunctionGuardrail",
    "Guardrail",
    "GuardrailChecker",
    "AgentSession",
    "HandoffRouter",
    "ValidationReport",
    "WorkflowEngine",
    "validate_definition",
]

__version__ = "0.1.0"
