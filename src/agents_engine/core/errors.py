"""
Workflow engine error types.
"""

from typing import Optional


class AgentsEngineError(Exception):
    """Base exception for workflow engine errors."""

    def __init__(self, message: str, session_id: Optional[str] = None, turn: Optional[int] = None):
        self.message = message
        self.session_id = session_id
        self.turn = turn
        super().__init__(message)


class ConfigurationError(AgentsEngineError):
    """Raised when a workflow definition is invalid."""
    pass


class ExecutionError(AgentsEngineError):
    """Raised when the engine reaches an inconsistent execution state."""
    pass


class RoutingError(AgentsEngineError):
    """Raised when a handoff cannot be routed."""

    def __init__(self, message: str, target: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.target = target


class GuardrailViolation(AgentsEngineError):
    """Raised when a guardrail blocks input or output."""

    def __init__(self, message: str, guardrail: str = "", stage: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.guardrail = guardrail
        self.stage = stage


class ToolExecutionError(AgentsEngineError):
    """Raised when a single tool call fails."""

    def __init__(self, message: str, error_type: str = "execution_error", tool: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.error_type = error_type
        self.tool = tool


class ReasoningServiceError(AgentsEngineError):
    """Raised when the completion service call fails."""

    retryable = True

    def __init__(self, message: str, client: Optional[str] = None, status_code: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.client = client
        self.status_code = status_code


class ReasoningAuthenticationError(ReasoningServiceError):
    """Raised when the completion service rejects our credentials."""
    retryable = False


class ReasoningInvalidRequestError(ReasoningServiceError):
    """Raised when the completion service rejects the request itself."""
    retryable = False


class ReasoningRateLimitError(ReasoningServiceError):
    """Raised when rate limit is exceeded."""

    def __init__(self, message: str, retry_after: Optional[float] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class WorkflowTimeoutError(AgentsEngineError):
    """Raised when the run exceeds its wall-clock limit."""
    pass


class TurnLimitExceeded(AgentsEngineError):
    """Raised when the workflow or a session runs out of turns."""

    def __init__(self, message: str, scope: str = "workflow", **kwargs):
        super().__init__(message, **kwargs)
        self.scope = scope


class OperationCancelled(AgentsEngineError):
    """Raised when an awaited operation is cut short by the cancellation signal."""
    pass
