"""
Cross-cutting engine infrastructure: errors, cancellation, audit trail.
"""

from .audit import AuditEvent, AuditLog
from .cancellation import run_cancellable
from .errors import (
    AgentsEngineError,
    ConfigurationError,
    ExecutionError,
    GuardrailViolation,
    OperationCancelled,
    ReasoningAuthenticationError,
    ReasoningInvalidRequestError,
    ReasoningRateLimitError,
    ReasoningServiceError,
    RoutingError,
    ToolExecutionError,
    TurnLimitExceeded,
    WorkflowTimeoutError,
)
from .redaction import redact

__all__ = [
    "AuditEvent",
    "AuditLog",
    "run_cancellable",
    "AgentsEngineError",
    "ConfigurationError",
    "ExecutionError",
    "GuardrailViolation",
    "OperationCancelled",
    "ReasoningAuthenticationError",
    "ReasoningInvalidRequestError",
    "ReasoningRateLimitError",
    "ReasoningServiceError",
    "RoutingError",
    "ToolExecutionError",
    "TurnLimitExceeded",
    "WorkflowTimeoutError",
    "redact",
]
