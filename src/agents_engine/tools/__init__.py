"""
Tool implementations and remote tool clients.
"""

from .builtin import builtin_tools
from .hosted import HostedToolClient
from .mcp_binding import MCPClient

__all__ = [
    "builtin_tools",
    "HostedToolClient",
    "MCPClient",
]
