"""
Shared test doubles and builders.
"""

import asyncio
from typing import Any, Dict, List, Optional, Union

from agents_engine.models import AgentDefinition, WorkflowDefinition
from agents_engine.reasoning import AbstractReasoningClient, ChatRequest, ChatResponse

Scripted = Union[ChatResponse, BaseException]


class ScriptedReasoningClient(AbstractReasoningClient):
    """
    Reasoning client that replays queued responses.

    Exceptions in the queue are raised instead of returned. With by_agent,
    each agent key gets its own queue (looked up from request metadata).
    """

    def __init__(
        self,
        responses: Optional[List[Scripted]] = None,
        by_agent: Optional[Dict[str, List[Scripted]]] = None,
        delay: float = 0.0,
    ):
        self.responses = list(responses or [])
        self.by_agent = {k: list(v) for k, v in by_agent.items()} if by_agent is not None else None
        self.delay = delay
        self.requests: List[ChatRequest] = []

    @property
    def name(self) -> str:
        return "scripted"

    async def complete(self, request: ChatRequest) -> ChatResponse:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)

        queue = self.responses
        if self.by_agent is not None:
            queue = self.by_agent[request.metadata["agent"]]
        if not queue:
            raise AssertionError("No scripted response left")

        item = queue.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


def agent(name: str, instructions: str = "You are a helpful assistant.", **fields: Any) -> AgentDefinition:
    return AgentDefinition(name=name, instructions=instructions, **fields)


def definition(
    agents: Dict[str, AgentDefinition],
    entry_point: Optional[str] = None,
    **workflow: Any,
) -> WorkflowDefinition:
    return WorkflowDefinition(
        agents=agents,
        workflow={"entry_point": entry_point or next(iter(agents)), **workflow},
    )


def text(content: str) -> ChatResponse:
    return ChatResponse.text(content)


def calls(*specs: tuple) -> ChatResponse:
    """Tool-call response from (call_id, name, arguments) tuples."""
    return ChatResponse.tool_calls([
        {"id": call_id, "name": name, "arguments": arguments}
        for call_id, name, arguments in specs
    ])
