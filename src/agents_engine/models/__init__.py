"""
Workflow engine data models.
"""

from .definition import (
    AgentDefinition,
    WorkflowDefinition,
    WorkflowPattern,
    WorkflowSettings,
)
from .tools import (
    AgentTool,
    ApprovalDecision,
    BaseTool,
    ExternalProtocolTool,
    FunctionTool,
    HostedTool,
    Interruption,
    Tool,
    ToolCall,
    ToolError,
    ToolErrorType,
    ToolKind,
    ToolResult,
)
from .results import (
    EXIT_CODES,
    FinalOutput,
    GuardrailVerdict,
    HandoffRequest,
    HandoffRequested,
    SessionStatus,
    SessionTrace,
    ToolCallsPending,
    WorkflowResult,
    WorkflowStatus,
)
from .api import ResumeRequest, RunRequest, RunResponse, ValidateRequest

__all__ = [
    "AgentDefinition",
    "WorkflowDefinition",
    "WorkflowPattern",
    "WorkflowSettings",
    "AgentTool",
    "ApprovalDecision",
    "BaseTool",
    "ExternalProtocolTool",
    "FunctionTool",
    "HostedTool",
    "Interruption",
    "Tool",
    "ToolCall",
    "ToolError",
    "ToolErrorType",
    "ToolKind",
    "ToolResult",
    "FinalOutput",
    "GuardrailVerdict",
    "HandoffRequest",
    "HandoffRequested",
    "SessionStatus",
    "SessionTrace",
    "ToolCallsPending",
    "WorkflowResult",
    "WorkflowStatus",
    "EXIT_CODES",
    "ResumeRequest",
    "RunRequest",
    "RunResponse",
    "ValidateRequest",
]
