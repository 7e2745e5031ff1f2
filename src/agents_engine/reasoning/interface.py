"""
Abstract reasoning client interface.

Defines the contract that every completion service adapter must implement.
"""

from abc import ABC, abstractmethod

from .models import ChatRequest, ChatResponse


class AbstractReasoningClient(ABC):
    """
    Single-call adapter to an external language-model completion service.

    Given the conversation history and tool catalog in a ChatRequest, returns
    text, one or more tool-call requests, or a handoff request (expressed as
    a transfer tool call).
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """
        Unique name of this client instance.

        Returns:
            Client name (e.g., "primary-litellm")
        """
        pass

    @abstractmethod
    async def complete(self, request: ChatRequest) -> ChatResponse:
        """
        Perform one reasoning call.

        Args:
            request: Chat completion request

        Returns:
            Chat completion response

        Raises:
            ReasoningServiceError: On network, rate-limit or model faults
        """
        pass

    async def close(self) -> None:
        """Release any held connections."""
        return None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"
