"""
Reasoning client layer.

Adapters for the external completion service behind one interface:
- AbstractReasoningClient: single-call contract
- LiteLLMReasoningClient: OpenAI-compatible HTTP adapter
- RetryingReasoningClient: bounded exponential-backoff wrapper
"""

from .interface import AbstractReasoningClient
from .litellm_client import LiteLLMReasoningClient
from .models import (
    ChatRequest,
    ChatResponse,
    Choice,
    FunctionDefinition,
    Message,
    ResponseMessage,
    ToolCallRequest,
    ToolDefinition,
    Usage,
)
from .retry import RetryingReasoningClient

__all__ = [
    "AbstractReasoningClient",
    "LiteLLMReasoningClient",
    "RetryingReasoningClient",
    "ChatRequest",
    "ChatResponse",
    "Choice",
    "FunctionDefinition",
    "Message",
    "ResponseMessage",
    "ToolCallRequest",
    "ToolDefinition",
    "Usage",
]
