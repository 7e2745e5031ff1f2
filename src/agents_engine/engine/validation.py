"""
Definition-only validation: no sessions, no reasoning calls.
"""

from collections import deque
from typing import Iterable, List, Optional, Set

import jsonschema
from pydantic import BaseModel, Field

from ..core.errors import ConfigurationError
from ..models.definition import WorkflowDefinition, WorkflowPattern
from ..models.tools import AgentTool
from ..sandbox.registry import ToolRegistry
from .routing import BUILTIN_FILTERS


class ValidationIssue(BaseModel):
    """A single finding."""
    code: str
    message: str
    agent: Optional[str] = None


class ValidationReport(BaseModel):
    """Ordered findings for one definition."""
    errors: List[ValidationIssue] = Field(default_factory=list)
    warnings: List[ValidationIssue] = Field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def error(self, code: str, message: str, agent: Optional[str] = None) -> None:
        self.errors.append(ValidationIssue(code=code, message=message, agent=agent))

    def warn(self, code: str, message: str, agent: Optional[str] = None) -> None:
        self.warnings.append(ValidationIssue(code=code, message=message, agent=agent))

    def raise_for_errors(self) -> None:
        """Raise ConfigurationError listing every error, if any."""
        if self.errors:
            raise ConfigurationError("; ".join(issue.message for issue in self.errors))


def validate_definition(
    definition: WorkflowDefinition,
    registry: Optional[ToolRegistry] = None,
    guardrail_names: Optional[Iterable[str]] = None,
    filter_names: Optional[Iterable[str]] = None,
) -> ValidationReport:
    """
    Validate a workflow definition.

    Deterministic: agents are checked in document order, so validating the
    same definition twice yields equal reports.

    Args:
        definition: Definition to check
        registry: Tool registry; tool names are not checked without one
        guardrail_names: Known guardrails; not checked when None
        filter_names: Extra context filter names beyond the built-ins

    Returns:
        ValidationReport
    """
    report = ValidationReport()
    known_filters = set(BUILTIN_FILTERS) | set(filter_names or [])
    known_guardrails = set(guardrail_names) if guardrail_names is not None else None

    if definition.get_agent(definition.entry_point) is None:
        report.error("entry_point_missing", f"Entry point {definition.entry_point} is not a defined agent")

    for key, agent in definition.agents.items():
        for target in agent.handoffs:
            if definition.get_agent(target) is None:
                report.error("handoff_unknown_target", f"Agent {key} hands off to unknown agent {target}", key)

        if agent.handoffs and definition.pattern != WorkflowPattern.HANDOFF_CHAIN:
            report.warn(
                "handoffs_ignored",
                f"Agent {key} declares handoffs, which only apply to the handoff_chain pattern",
                key,
            )

        if registry is not None:
            for name in agent.tools:
                tool = registry.get(name)
                if tool is None:
                    report.error("tool_unknown", f"Agent {key} references unknown tool {name}", key)
                elif isinstance(tool, AgentTool) and definition.get_agent(tool.agent) is None:
                    report.error(
                        "agent_tool_unknown_target",
                        f"Tool {name} of agent {key} runs unknown agent {tool.agent}",
                        key,
                    )

        if known_guardrails is not None:
            for name in agent.guardrails:
                if name not in known_guardrails:
                    report.error("guardrail_unknown", f"Agent {key} references unknown guardrail {name}", key)

        if agent.input_schema is not None:
            try:
                jsonschema.Draft7Validator.check_schema(agent.input_schema)
            except jsonschema.SchemaError as e:
                report.error("input_schema_invalid", f"Agent {key} has an invalid input_schema: {e.message}", key)

        if agent.handoff_filter is not None and agent.handoff_filter not in known_filters:
            report.error("filter_unknown", f"Agent {key} uses unknown handoff filter {agent.handoff_filter}", key)

    if report.valid and definition.pattern == WorkflowPattern.HANDOFF_CHAIN:
        reachable = _reachable(definition, registry)
        for key in definition.agents:
            if key not in reachable:
                report.warn("agent_unreachable", f"Agent {key} is not reachable from {definition.entry_point}", key)

    return report


def _reachable(definition: WorkflowDefinition, registry: Optional[ToolRegistry]) -> Set[str]:
    """Agents reachable from the entry point through handoffs and agent tools."""
    graph = definition.handoff_graph()
    seen = {definition.entry_point}
    queue = deque([definition.entry_point])
    while queue:
        key = queue.popleft()
        neighbours = list(graph[key])
        if registry is not None:
            for name in definition.agents[key].tools:
                tool = registry.get(name)
                if isinstance(tool, AgentTool):
                    neighbours.append(tool.agent)
        for target in neighbours:
            if target not in seen:
                seen.add(target)
                queue.append(target)
    return seen
