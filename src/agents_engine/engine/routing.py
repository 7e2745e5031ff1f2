"""
Handoff routing between agents.

Context filters are pure functions over the origin's history deciding what
the target agent sees.
"""

import inspect
import json
import logging
from typing import Any, Callable, Dict, List, Optional

import jsonschema

from ..core.errors import RoutingError
from ..models.results import HandoffRequest, SessionStatus
from ..reasoning.models import Message
from .resolver import RuntimeContext, resolve
from .session import AgentSession

logger = logging.getLogger(__name__)

ContextFilter = Callable[[List[Message]], List[Message]]
HandoffHook = Callable[[HandoffRequest, AgentSession], Any]

DEFAULT_FILTER = "conversation"


def conversation_filter(history: List[Message]) -> List[Message]:
    """User and assistant text only; system prompts and tool traffic are dropped."""
    forwarded = []
    for message in history:
        if message.role not in ("user", "assistant") or not message.content:
            continue
        forwarded.append(Message(role=message.role, content=message.content))
    return forwarded


def none_filter(history: List[Message]) -> List[Message]:
    return []


def last_user_message_filter(history: List[Message]) -> List[Message]:
    for message in reversed(history):
        if message.role == "user" and message.content:
            return [Message(role="user", content=message.content)]
    return []


BUILTIN_FILTERS: Dict[str, ContextFilter] = {
    "conversation": conversation_filter,
    "none": none_filter,
    "last_user_message": last_user_message_filter,
}


class HandoffRouter:
    """
    Validates handoff requests and activates the target session.

    One router serves one run; filters and hooks are supplied by the engine.
    """

    def __init__(
        self,
        runtime: RuntimeContext,
        filters: Optional[Dict[str, ContextFilter]] = None,
        hooks: Optional[List[HandoffHook]] = None,
    ):
        """
        Initialize router.

        Args:
            runtime: Runtime context of the run (definition, registry, variables)
            filters: Extra context filters keyed by name
            hooks: Pre-activation hooks, sync or async
        """
        self.runtime = runtime
        self.filters: Dict[str, ContextFilter] = {**BUILTIN_FILTERS, **(filters or {})}
        self.hooks: List[HandoffHook] = list(hooks or [])

    async def route(self, request: HandoffRequest, origin: AgentSession) -> AgentSession:
        """
        Route a handoff.

        Args:
            request: Handoff request from the origin session
            origin: Session requesting the handoff

        Returns:
            New pending session for the target agent

        Raises:
            RoutingError: If the target is unknown or undeclared, the origin is
                not active, the payload fails the target schema, or the
                context filter is unknown
        """
        definition = self.runtime.definition
        target = definition.get_agent(request.target)
        if target is None:
            raise RoutingError(
                f"Handoff target {request.target} does not exist",
                target=request.target,
                session_id=origin.id,
                turn=origin.turns,
            )
        if request.target not in origin.definition.handoffs:
            raise RoutingError(
                f"Agent {origin.agent_key} is not allowed to hand off to {request.target}",
                target=request.target,
                session_id=origin.id,
                turn=origin.turns,
            )
        if origin.status != SessionStatus.ACTIVE:
            raise RoutingError(
                f"Origin session {origin.id} is {origin.status.value}, expected active",
                target=request.target,
                session_id=origin.id,
                turn=origin.turns,
            )

        if target.input_schema:
            try:
                jsonschema.validate(instance=request.payload, schema=target.input_schema)
            except jsonschema.ValidationError as e:
                raise RoutingError(
                    f"Handoff payload rejected by {request.target}: {e.message}",
                    target=request.target,
                    session_id=origin.id,
                    turn=origin.turns,
                )

        filter_name = request.context_filter or origin.definition.handoff_filter or DEFAULT_FILTER
        context_filter = self.filters.get(filter_name)
        if context_filter is None:
            raise RoutingError(
                f"Unknown context filter: {filter_name}",
                target=request.target,
                session_id=origin.id,
                turn=origin.turns,
            )
        forwarded = context_filter(list(origin.messages))

        for hook in self.hooks:
            try:
                outcome = hook(request, origin)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                logger.warning(f"Handoff hook failed for {origin.agent_key} -> {request.target}: {e}")

        config = resolve(request.target, target, self.runtime)
        forwarded.append(Message(
            role="user",
            content=f"Handoff from {origin.agent_key}: {json.dumps(request.payload, default=str)}",
        ))
        session = AgentSession(request.target, target, config, history=forwarded)
        logger.info(f"Routed handoff {origin.agent_key} -> {request.target} (session {session.id})")
        return session
