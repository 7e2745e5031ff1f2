"""
Workflow definition models.
"""

from typing import Optional, Tuple, Dict, Any, List
from enum import Enum
from pydantic import AliasChoices, BaseModel, Field, field_validator


class WorkflowPattern(str, Enum):
    """How agents are composed within a run."""
    HANDOFF_CHAIN = "handoff_chain"
    PARALLEL = "parallel"
    SEQUENTIAL = "sequential"


class AgentDefinition(BaseModel):
    """Definition of a single agent."""
    name: str = Field(..., description="Display name")
    instructions: str = Field(..., description="System instructions, may contain ${variables}")
    model: Optional[str] = Field(default=None, description="Model reference, engine default if unset")
    description: Optional[str] = None
    tools: Tuple[str, ...] = Field(default=(), description="Tool names from the registry")
    guardrails: Tuple[str, ...] = Field(default=(), description="Guardrail names, applied in order")
    handoffs: Tuple[str, ...] = Field(default=(), description="Agent keys this agent may hand off to")
    max_turns: Optional[int] = Field(default=None, ge=1, description="Per-session turn cap")
    input_schema: Optional[Dict[str, Any]] = Field(default=None, description="JSON Schema for handoff payloads")
    handoff_filter: Optional[str] = Field(default=None, description="Context filter applied on handoff")

    class Config:
        frozen = True


class WorkflowSettings(BaseModel):
    """Run-level workflow settings."""
    entry_point: str = Field(..., description="Agent key that receives the input")
    pattern: WorkflowPattern = Field(default=WorkflowPattern.HANDOFF_CHAIN)
    max_turns: int = Field(default=10, ge=1, description="Reasoning calls allowed across the whole run")
    timeout_seconds: float = Field(
        default=300.0,
        gt=0,
        validation_alias=AliasChoices("timeout_seconds", "timeout"),
        description="Wall-clock limit for the run",
    )

    class Config:
        frozen = True
        populate_by_name = True


class WorkflowDefinition(BaseModel):
    """Complete workflow definition, immutable once loaded."""
    agents: Dict[str, AgentDefinition] = Field(..., description="Agent key to definition")
    workflow: WorkflowSettings

    class Config:
        frozen = True

    @field_validator("agents")
    @classmethod
    def _agents_not_empty(cls, value: Dict[str, AgentDefinition]) -> Dict[str, AgentDefinition]:
        if not value:
            raise ValueError("at least one agent must be defined")
        return value

    @property
    def entry_point(self) -> str:
        return self.workflow.entry_point

    @property
    def pattern(self) -> WorkflowPattern:
        return self.workflow.pattern

    @property
    def max_turns(self) -> int:
        return self.workflow.max_turns

    @property
    def timeout_seconds(self) -> float:
        return self.workflow.timeout_seconds

    def get_agent(self, key: str) -> Optional[AgentDefinition]:
        """Look up an agent by its stable key."""
        return self.agents.get(key)

    def handoff_graph(self) -> Dict[str, List[str]]:
        """Adjacency list of declared handoffs, keyed by agent key."""
        return {key: list(agent.handoffs) for key, agent in self.agents.items()}

    def stage_order(self) -> List[str]:
        """Entry agent first, then the remaining agents in document order."""
        rest = [key for key in self.agents if key != self.entry_point]
        return [self.entry_point] + rest
