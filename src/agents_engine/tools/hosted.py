"""
Client for capabilities hosted by the model gateway (web search, code
interpreter and similar).
"""

import logging
from typing import Optional, Dict, Any
import httpx

from ..core.errors import ToolExecutionError

logger = logging.getLogger(__name__)


class HostedToolClient:
    """Invokes gateway-hosted capabilities over HTTP."""

    def __init__(
        self,
        base_url: str = "http://localhost:4000",
        api_key: Optional[str] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Content-Type": "application/json"}
            if self.api_key:
                headers["Authorization"] = f"Bearer {self.api_key}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def invoke(self, capability: str, arguments: Dict[str, Any]) -> Any:
        """
        Invoke a hosted capability.

        Args:
            capability: Capability identifier (e.g. "web_search")
            arguments: Capability arguments

        Returns:
            The "result" field of the gateway response

        Raises:
            ToolExecutionError: On transport or gateway failure
        """
        client = await self._get_client()
        try:
            response = await client.post(f"/v1/tools/{capability}/invoke", json={"arguments": arguments})
        except httpx.RequestError as e:
            raise ToolExecutionError(f"Hosted capability {capability} unreachable: {e}", tool=capability)

        if response.status_code != 200:
            raise ToolExecutionError(
                f"Hosted capability {capability} failed: {response.status_code} - {response.text}",
                tool=capability,
            )
        return response.json().get("result")
