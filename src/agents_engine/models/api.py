"""
Request/response models for the HTTP service.
"""

from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field

from .results import WorkflowResult
from .tools import ApprovalDecision


class ValidateRequest(BaseModel):
    """Definition to validate; the service default when omitted."""
    definition: Optional[Dict[str, Any]] = Field(default=None, description="Document with agents and workflow sections")


class RunRequest(BaseModel):
    """Request to start a run."""
    input: Any = Field(..., description="Input for the entry agent")
    definition: Optional[Dict[str, Any]] = Field(default=None, description="Document with agents and workflow sections")
    variables: Dict[str, Any] = Field(default_factory=dict, description="Instruction placeholder values")


class ResumeRequest(BaseModel):
    """Approval decisions for an interrupted run."""
    decisions: List[ApprovalDecision]


class RunResponse(BaseModel):
    """A run result with its process-style exit code."""
    result: WorkflowResult
    exit_code: int

    @classmethod
    def from_result(cls, result: WorkflowResult) -> "RunResponse":
        return cls(result=result, exit_code=result.exit_code)
