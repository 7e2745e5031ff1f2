"""
LiteLLM reasoning client.

Talks to any OpenAI-compatible proxy (LiteLLM by default) over httpx.
"""

import logging
from typing import Optional

import httpx

from ..core.errors import (
    ReasoningAuthenticationError,
    ReasoningInvalidRequestError,
    ReasoningRateLimitError,
    ReasoningServiceError,
)
from .interface import AbstractReasoningClient
from .models import ChatRequest, ChatResponse

logger = logging.getLogger(__name__)


class LiteLLMReasoningClient(AbstractReasoningClient):
    """
    Async HTTP client for the LiteLLM proxy.

    Maps HTTP failures onto the reasoning error taxonomy so the retry layer
    can tell transient faults from permanent ones.
    """

    def __init__(
        self,
        name: str = "primary-litellm",
        base_url: str = "http://localhost:4000",
        api_key: Optional[str] = None,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize LiteLLM client.

        Args:
            name: Unique name for this client instance
            base_url: LiteLLM proxy URL
            api_key: API key for authentication
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self._name = name
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def name(self) -> str:
        return self._name

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            headers = {"Content-Type": "application/json"}
            if self._api_key:
                headers["Authorization"] = f"Bearer {self._api_key}"

            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=headers,
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info(f"Closed reasoning client {self._name}")

    async def complete(self, request: ChatRequest) -> ChatResponse:
        """Create a chat completion through LiteLLM."""
        client = await self._get_client()

        try:
            response = await client.post(
                "/v1/chat/completions",
                json=request.to_openai_format(),
            )
        except httpx.TimeoutException as e:
            raise ReasoningServiceError(f"Request timed out: {e}", client=self._name)
        except httpx.RequestError as e:
            raise ReasoningServiceError(f"Connection failed: {e}", client=self._name)

        status = response.status_code

        if status in (401, 403):
            raise ReasoningAuthenticationError(
                "Authentication failed",
                client=self._name,
                status_code=status,
            )

        if status == 429:
            retry_after = response.headers.get("retry-after")
            raise ReasoningRateLimitError(
                "Rate limit exceeded",
                retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None,
                client=self._name,
                status_code=status,
            )

        if 400 <= status < 500:
            raise ReasoningInvalidRequestError(
                f"Request rejected: {status} - {response.text}",
                client=self._name,
                status_code=status,
            )

        if status != 200:
            raise ReasoningServiceError(
                f"Request failed: {status} - {response.text}",
                client=self._name,
                status_code=status,
            )

        return ChatResponse.from_openai(response.json(), client=self._name)
