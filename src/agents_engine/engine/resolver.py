"""
Per-activation resolution of an agent definition against runtime context.
"""

import string
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..core.errors import ConfigurationError
from ..models.definition import AgentDefinition, WorkflowDefinition
from ..models.tools import BaseTool
from ..reasoning.models import FunctionDefinition, ToolDefinition
from ..sandbox.registry import ToolRegistry

HANDOFF_PREFIX = "transfer_to_"


def handoff_tool_name(agent_key: str) -> str:
    return f"{HANDOFF_PREFIX}{agent_key}"


@dataclass
class RuntimeContext:
    """Run-level inputs to resolution."""
    definition: WorkflowDefinition
    registry: ToolRegistry
    default_model: str
    variables: Dict[str, Any] = field(default_factory=dict)
    allow_handoffs: bool = True


class ResolvedConfig(BaseModel):
    """What one session needs: final instructions, model, tools and catalog."""
    agent_key: str
    name: str
    instructions: str
    model: str
    tools: List[BaseTool] = Field(default_factory=list)
    catalog: List[ToolDefinition] = Field(default_factory=list)
    handoff_targets: Dict[str, str] = Field(default_factory=dict, description="Handoff tool name to agent key")
    allow_handoffs: bool = True

    class Config:
        frozen = True
        arbitrary_types_allowed = True


def resolve(agent_key: str, agent: AgentDefinition, context: RuntimeContext) -> ResolvedConfig:
    """
    Resolve an agent definition for one session activation.

    Pure: the same inputs always give the same config. Instructions have
    ${variable} placeholders substituted (unknown ones are left as-is); the
    catalog lists declared tools in order, then handoff tools in declared
    order when handoffs are allowed.

    Raises:
        ConfigurationError: If a tool or handoff target cannot be resolved
    """
    instructions = string.Template(agent.instructions).safe_substitute(
        {k: str(v) for k, v in context.variables.items()}
    )

    tools: List[BaseTool] = []
    catalog: List[ToolDefinition] = []
    for name in agent.tools:
        tool = context.registry.get(name)
        if tool is None:
            raise ConfigurationError(f"Agent {agent_key} references unknown tool {name}")
        tools.append(tool)
        catalog.append(ToolDefinition(function=FunctionDefinition(
            name=tool.name,
            description=tool.description or None,
            parameters=tool.parameters,
        )))

    handoff_targets: Dict[str, str] = {}
    if context.allow_handoffs:
        for target_key in agent.handoffs:
            target = context.definition.get_agent(target_key)
            if target is None:
                raise ConfigurationError(f"Agent {agent_key} hands off to unknown agent {target_key}")
            tool_name = handoff_tool_name(target_key)
            handoff_targets[tool_name] = target_key
            catalog.append(ToolDefinition(function=FunctionDefinition(
                name=tool_name,
                description=target.description or f"Hand off the conversation to {target.name}",
                parameters=target.input_schema or {"type": "object", "properties": {}},
            )))

    return ResolvedConfig(
        agent_key=agent_key,
        name=agent.name,
        instructions=instructions,
        model=agent.model or context.default_model,
        tools=tools,
        catalog=catalog,
        handoff_targets=handoff_targets,
        allow_handoffs=context.allow_handoffs,
    )


def catalog_entries(config: ResolvedConfig) -> List[Dict[str, Optional[Any]]]:
    """Catalog as plain {name, description, parameters} entries."""
    return [
        {
            "name": entry.function.name,
            "description": entry.function.description,
            "parameters": entry.function.parameters,
        }
        for entry in config.catalog
    ]
