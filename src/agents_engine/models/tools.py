"""
Tool variants and per-call records.
"""

import uuid
from typing import Optional, Dict, Any, Callable, Tuple, Union, Literal, Annotated
from enum import Enum
from pydantic import BaseModel, Field


class ToolKind(str, Enum):
    """Closed set of tool variants, dispatched by tag."""
    FUNCTION = "function"
    HOSTED = "hosted"
    AGENT = "agent"
    EXTERNAL_PROTOCOL = "external_protocol"


class ToolErrorType(str, Enum):
    """Typed failure reasons surfaced to the reasoning call."""
    NOT_FOUND = "not_found"
    INVALID_ARGUMENTS = "invalid_arguments"
    POLICY_DENIED = "policy_denied"
    RESOURCE_LIMIT = "resource_limit"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"
    APPROVAL_REJECTED = "approval_rejected"
    EXECUTION_ERROR = "execution_error"


class BaseTool(BaseModel):
    """Fields shared by every tool variant."""
    name: str
    description: str = ""
    parameters: Dict[str, Any] = Field(default_factory=lambda: {"type": "object", "properties": {}})
    needs_approval: bool = False
    approval_predicate: Optional[Callable[[Dict[str, Any]], bool]] = Field(default=None, exclude=True)
    timeout_seconds: Optional[float] = Field(default=None, gt=0)
    path_params: Tuple[str, ...] = ("path", "file_path", "directory")
    url_params: Tuple[str, ...] = ("url",)

    class Config:
        frozen = True


class FunctionTool(BaseTool):
    """Local Python callable, sync or async."""
    kind: Literal[ToolKind.FUNCTION] = ToolKind.FUNCTION
    handler: Callable[..., Any] = Field(..., exclude=True)


class HostedTool(BaseTool):
    """Capability executed by the model gateway."""
    kind: Literal[ToolKind.HOSTED] = ToolKind.HOSTED
    capability: str


class AgentTool(BaseTool):
    """Another agent of the same definition, run as a nested session."""
    kind: Literal[ToolKind.AGENT] = ToolKind.AGENT
    agent: str = Field(..., description="Agent key to run")
    input_param: str = "input"


class ExternalProtocolTool(BaseTool):
    """Tool served by an MCP server behind the agent gateway."""
    kind: Literal[ToolKind.EXTERNAL_PROTOCOL] = ToolKind.EXTERNAL_PROTOCOL
    server: str = Field(..., description="Name of the configured MCP client")
    remote_name: Optional[str] = Field(default=None, description="Tool name on the server, if different")


Tool = Annotated[
    Union[FunctionTool, HostedTool, AgentTool, ExternalProtocolTool],
    Field(discriminator="kind"),
]


class ToolCall(BaseModel):
    """A tool invocation requested by one reasoning turn."""
    id: str
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)
    session_id: str
    needs_approval: bool = False
    argument_error: Optional[str] = Field(default=None, description="Set when arguments failed to decode")


class ToolError(BaseModel):
    """Typed tool failure."""
    type: ToolErrorType
    message: str


class ToolResult(BaseModel):
    """Outcome of exactly one ToolCall."""
    call_id: str
    tool_name: str
    success: bool
    data: Any = None
    error: Optional[ToolError] = None
    duration_ms: int = 0

    @classmethod
    def ok(cls, call: ToolCall, data: Any, duration_ms: int = 0) -> "ToolResult":
        return cls(call_id=call.id, tool_name=call.name, success=True, data=data, duration_ms=duration_ms)

    @classmethod
    def failed(cls, call: ToolCall, error_type: ToolErrorType, message: str, duration_ms: int = 0) -> "ToolResult":
        return cls(
            call_id=call.id,
            tool_name=call.name,
            success=False,
            error=ToolError(type=error_type, message=message),
            duration_ms=duration_ms,
        )

    def to_payload(self) -> Dict[str, Any]:
        """Shape returned into the next reasoning call."""
        payload: Dict[str, Any] = {"call_id": self.call_id, "success": self.success}
        if self.success:
            payload["data"] = self.data
        else:
            payload["error"] = self.error.model_dump(mode="json") if self.error else None
        return payload


class Interruption(BaseModel):
    """A tool call suspended until a human approves or rejects it."""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    call: ToolCall
    session_id: str
    agent: str
    reason: str = ""
    risk_level: str = "medium"

    @property
    def call_id(self) -> str:
        return self.call.id


class ApprovalDecision(BaseModel):
    """External verdict on an Interruption."""
    call_id: str
    approved: bool
    reason: Optional[str] = None
    approver: Optional[str] = None

    @classmethod
    def approve(cls, call_id: str, approver: Optional[str] = None) -> "ApprovalDecision":
        return cls(call_id=call_id, approved=True, approver=approver)

    @classmethod
    def reject(cls, call_id: str, reason: str = "Rejected by approver", approver: Optional[str] = None) -> "ApprovalDecision":
        return cls(call_id=call_id, approved=False, reason=reason, approver=approver)
