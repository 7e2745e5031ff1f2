"""
Workflow definition loader.

Reads a YAML (or JSON) document with these sections:
- agents: agent key -> agent definition
- workflow: entry_point, pattern, max_turns, timeout_seconds
- sandbox: optional security policy
- guardrails: optional configured guardrails, name -> {type, ...options}
- tools: optional declarative tools (hosted, agent, external_protocol)

${VAR} references are replaced from the environment when VAR is set;
other placeholders are left for per-run variable substitution.
"""

import os
import re
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import TypeAdapter, ValidationError

from .errors import ConfigurationError
from ..guardrails.base import Guardrail
from ..guardrails.builtin import build_guardrail
from ..models.definition import WorkflowDefinition
from ..models.tools import Tool, ToolKind
from ..sandbox.policy import SecurityPolicy

logger = logging.getLogger(__name__)

ENV_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")

_tool_adapter = TypeAdapter(Tool)


@dataclass
class LoadedWorkflow:
    """Everything a definition document declares."""
    definition: WorkflowDefinition
    policy: SecurityPolicy = field(default_factory=SecurityPolicy)
    guardrails: List[Guardrail] = field(default_factory=list)
    tools: List[Any] = field(default_factory=list)
    source: Optional[str] = None


def expand_env(value: Any) -> Any:
    """Recursively replace ${VAR} with environment values where VAR is set."""
    if isinstance(value, str):
        return ENV_PATTERN.sub(lambda m: os.environ.get(m.group(1), m.group(0)), value)
    if isinstance(value, dict):
        return {k: expand_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [expand_env(v) for v in value]
    return value


def read_document(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read a definition document from disk.

    Raises:
        ConfigurationError: If the file is missing or not a mapping
    """
    filepath = Path(path)
    if not filepath.exists():
        raise ConfigurationError(f"Configuration file not found: {filepath}")

    try:
        with open(filepath) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Could not parse {filepath}: {e}")

    if not isinstance(data, dict):
        raise ConfigurationError(f"{filepath} must contain a mapping at the top level")
    return data


def parse_definition(data: Dict[str, Any]) -> WorkflowDefinition:
    """
    Build a WorkflowDefinition from a parsed document.

    Raises:
        ConfigurationError: If the document does not match the schema
    """
    try:
        return WorkflowDefinition.model_validate({
            "agents": data.get("agents") or {},
            "workflow": data.get("workflow") or {},
        })
    except ValidationError as e:
        raise ConfigurationError(f"Invalid workflow definition: {_format_errors(e)}")


def parse_security_policy(data: Dict[str, Any]) -> SecurityPolicy:
    """Build the sandbox policy from the optional "sandbox" section."""
    try:
        return SecurityPolicy.model_validate(data.get("sandbox") or {})
    except ValidationError as e:
        raise ConfigurationError(f"Invalid sandbox policy: {_format_errors(e)}")


def parse_guardrails(data: Dict[str, Any]) -> List[Guardrail]:
    """Build configured guardrails from the optional "guardrails" section."""
    section = data.get("guardrails") or {}
    if not isinstance(section, dict):
        raise ConfigurationError("guardrails section must be a mapping of name to options")
    return [build_guardrail(name, spec or {}) for name, spec in section.items()]


def parse_tools(data: Dict[str, Any]) -> List[Any]:
    """
    Build declarative tools from the optional "tools" section.

    Function tools need a Python callable and are registered in code instead.
    """
    section = data.get("tools") or {}
    if not isinstance(section, dict):
        raise ConfigurationError("tools section must be a mapping of name to options")

    tools = []
    for name, spec in section.items():
        spec = {"name": name, **(spec or {})}
        if spec.get("kind") == ToolKind.FUNCTION.value:
            raise ConfigurationError(f"Tool {name}: function tools must be registered in code")
        try:
            tools.append(_tool_adapter.validate_python(spec))
        except ValidationError as e:
            raise ConfigurationError(f"Invalid tool {name}: {_format_errors(e)}")
    return tools


def load_workflow(path: Union[str, Path]) -> LoadedWorkflow:
    """
    Load a definition document with all optional sections.

    Args:
        path: YAML or JSON file

    Returns:
        LoadedWorkflow

    Raises:
        ConfigurationError: On any invalid section
    """
    data = expand_env(read_document(path))
    loaded = LoadedWorkflow(
        definition=parse_definition(data),
        policy=parse_security_policy(data),
        guardrails=parse_guardrails(data),
        tools=parse_tools(data),
        source=str(path),
    )
    logger.info(
        f"Loaded workflow from {path}: {len(loaded.definition.agents)} agents, "
        f"entry {loaded.definition.entry_point}, pattern {loaded.definition.pattern.value}"
    )
    return loaded


def load_definition(path: Union[str, Path]) -> WorkflowDefinition:
    """Load only the workflow definition from a document."""
    return parse_definition(expand_env(read_document(path)))


def _format_errors(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item.get("loc", ()))
        parts.append(f"{location}: {item.get('msg')}" if location else item.get("msg", ""))
    return "; ".join(parts)
