"""
Run outcome models: session traces, verdicts, handoffs and results.
"""

from typing import Optional, List, Dict, Any
from enum import Enum
from datetime import datetime
from pydantic import BaseModel, Field

from ..reasoning.models import Message
from .tools import Interruption, ToolCall


class SessionStatus(str, Enum):
    """AgentSession lifecycle states."""
    PENDING = "pending"
    ACTIVE = "active"
    AWAITING_TOOL_RESULTS = "awaiting_tool_results"
    AWAITING_APPROVAL = "awaiting_approval"
    HANDED_OFF = "handed_off"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.HANDED_OFF, SessionStatus.COMPLETED, SessionStatus.FAILED)


class WorkflowStatus(str, Enum):
    """Final status of a run."""
    COMPLETED = "completed"
    FAILED = "failed"
    MAX_TURNS_EXCEEDED = "max_turns_exceeded"
    GUARDRAIL_BLOCKED = "guardrail_blocked"
    INTERRUPTED = "interrupted"


EXIT_CODES: Dict[WorkflowStatus, int] = {
    WorkflowStatus.COMPLETED: 0,
    WorkflowStatus.FAILED: 1,
    WorkflowStatus.GUARDRAIL_BLOCKED: 2,
    WorkflowStatus.MAX_TURNS_EXCEEDED: 3,
    WorkflowStatus.INTERRUPTED: 4,
}


class HandoffRequest(BaseModel):
    """Request to transfer control to another agent."""
    origin_session_id: str
    origin_agent: str
    target: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    context_filter: Optional[str] = None


class GuardrailVerdict(BaseModel):
    """Result of one guardrail check."""
    allowed: bool
    modified_payload: Optional[Any] = None
    reason: str = ""
    guardrail: str = ""

    @property
    def is_modified(self) -> bool:
        return self.allowed and self.modified_payload is not None

    @classmethod
    def allow(cls, reason: str = "") -> "GuardrailVerdict":
        return cls(allowed=True, reason=reason)

    @classmethod
    def block(cls, reason: str) -> "GuardrailVerdict":
        return cls(allowed=False, reason=reason)

    @classmethod
    def sanitize(cls, payload: Any, reason: str = "") -> "GuardrailVerdict":
        return cls(allowed=True, modified_payload=payload, reason=reason)


class FinalOutput(BaseModel):
    """Step outcome: the agent answered in plain text."""
    kind: str = "final_output"
    content: str


class ToolCallsPending(BaseModel):
    """Step outcome: the agent requested a batch of tool calls."""
    kind: str = "tool_calls"
    calls: List[ToolCall]


class HandoffRequested(BaseModel):
    """Step outcome: the agent asked to transfer control."""
    kind: str = "handoff"
    request: HandoffRequest
    call_id: str


class SessionTrace(BaseModel):
    """Snapshot of one session for the run trace."""
    session_id: str
    agent: str
    status: SessionStatus
    turns: int
    activated_at_turn: int
    messages: List[Message] = Field(default_factory=list)
    handed_off_to: Optional[str] = None
    output: Optional[Any] = None
    error: Optional[str] = None


class WorkflowResult(BaseModel):
    """Outcome of a workflow run."""
    run_id: str
    status: WorkflowStatus
    output: Optional[Any] = None
    reason: Optional[str] = None
    error_type: Optional[str] = None
    trace: List[SessionTrace] = Field(default_factory=list)
    turns_used: int = 0
    last_session_id: Optional[str] = None
    last_agent: Optional[str] = None
    interruptions: List[Interruption] = Field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: int = 0

    @property
    def exit_code(self) -> int:
        return EXIT_CODES[self.status]

    @property
    def is_interrupted(self) -> bool:
        return self.status == WorkflowStatus.INTERRUPTED
