"""
Tool registry for registering and resolving tools by name.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from ..core.errors import ConfigurationError
from ..models.tools import BaseTool, FunctionTool, Tool

logger = logging.getLogger(__name__)


class ToolRegistry:
    """
    Registry of tools available to agents.

    Populated at startup, then frozen so concurrent runs can share it as
    read-only state.
    """

    def __init__(self, tools: Optional[Iterable[Tool]] = None):
        """
        Initialize the registry.

        Args:
            tools: Tools to register up front
        """
        self._tools: Dict[str, BaseTool] = {}
        self._frozen = False
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: Tool) -> Tool:
        """
        Register a tool.

        Args:
            tool: Any tool variant

        Returns:
            The registered tool

        Raises:
            ConfigurationError: If frozen or the name is taken
        """
        if self._frozen:
            raise ConfigurationError(f"Tool registry is frozen, cannot register {tool.name}")
        if tool.name in self._tools:
            raise ConfigurationError(f"Tool already registered: {tool.name}")
        if tool.name.startswith("transfer_to_"):
            raise ConfigurationError(f"Tool name {tool.name!r} is reserved for handoffs")

        self._tools[tool.name] = tool
        logger.info(f"Registered tool: {tool.name} (kind: {tool.kind.value})")
        return tool

    def function(
        self,
        name: Optional[str] = None,
        description: str = "",
        parameters: Optional[Dict[str, Any]] = None,
        **options: Any,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """
        Decorator registering a callable as a FunctionTool.

        Args:
            name: Tool name, defaults to the function name
            description: Description shown to the model, defaults to the docstring
            parameters: JSON Schema for the arguments
            **options: Extra FunctionTool fields (needs_approval, timeout_seconds, ...)
        """
        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            fields: Dict[str, Any] = {
                "name": name or func.__name__,
                "description": description or (func.__doc__ or "").strip(),
                "handler": func,
                **options,
            }
            if parameters is not None:
                fields["parameters"] = parameters
            self.register(FunctionTool(**fields))
            return func
        return decorator

    def freeze(self) -> "ToolRegistry":
        """Make the registry immutable."""
        self._frozen = True
        return self

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    def get(self, name: str) -> Optional[BaseTool]:
        """Get a tool by name, or None."""
        return self._tools.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def names(self) -> List[str]:
        """Registered tool names in registration order."""
        return list(self._tools)

    def list_tools(self) -> List[Dict[str, Any]]:
        """
        List registered tools.

        Returns:
            List of tool info dicts
        """
        return [
            {
                "name": tool.name,
                "kind": tool.kind.value,
                "description": tool.description,
                "needs_approval": tool.needs_approval,
            }
            for tool in self._tools.values()
        ]
