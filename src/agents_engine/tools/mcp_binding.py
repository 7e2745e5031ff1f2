"""
MCP client for external protocol tools via the Agent Gateway.
"""

import logging
from typing import Optional, Dict, Any, List
import httpx

from ..core.errors import ToolExecutionError

logger = logging.getLogger(__name__)


class MCPClient:
    """
    Async HTTP client for MCP tools via Agent Gateway.

    Backs ExternalProtocolTool execution in the sandbox.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:3000",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize MCP client.

        Args:
            base_url: Agent Gateway URL
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def list_tools(self) -> List[Dict[str, Any]]:
        """
        List available MCP tools.

        Returns:
            List of tool definitions
        """
        client = await self._get_client()

        response = await client.post("/mcp/tools/list", json={})

        if response.status_code != 200:
            logger.warning(f"Failed to list tools: {response.status_code}")
            return []

        return response.json().get("tools", [])

    async def call_tool(
        self,
        name: str,
        arguments: Dict[str, Any],
    ) -> Dict[str, Any]:
        """
        Call an MCP tool.

        Args:
            name: Tool name
            arguments: Tool arguments

        Returns:
            Tool result

        Raises:
            ToolExecutionError: If the gateway or the tool reports a failure
        """
        client = await self._get_client()

        try:
            response = await client.post(
                "/mcp/tools/call",
                json={
                    "name": name,
                    "arguments": arguments,
                }
            )
        except httpx.RequestError as e:
            raise ToolExecutionError(f"MCP gateway unreachable: {e}", tool=name)

        if response.status_code != 200:
            raise ToolExecutionError(f"Tool call failed: {response.status_code} - {response.text}", tool=name)

        result = response.json()
        if result.get("isError"):
            raise ToolExecutionError(f"Tool reported an error: {result.get('content')}", tool=name)
        return result
