"""
Unit tests for handoff routing and context filters.
"""
import pytest

from agents_engine.core.errors import RoutingError
from agents_engine.engine.resolver import RuntimeContext, resolve
from agents_engine.engine.routing import (
    HandoffRouter,
    conversation_filter,
    last_user_message_filter,
    none_filter,
)
from agents_engine.engine.session import AgentSession
from agents_engine.models import HandoffRequest, SessionStatus
from agents_engine.reasoning import Message
from agents_engine.sandbox.registry import ToolRegistry

from support import agent, definition

HISTORY = [
    Message(role="system", content="You are A"),
    Message(role="user", content="I need a refund"),
    Message(role="assistant", content="Let me check"),
    Message(role="tool", content='{"ok": true}', tool_call_id="call_1"),
    Message(role="user", content="Order 42"),
]


def setup_router(agents, **router_kwargs):
    defn = definition(agents)
    runtime = RuntimeContext(definition=defn, registry=ToolRegistry(), default_model="test-model")
    origin_key = defn.entry_point
    origin = AgentSession(
        origin_key,
        defn.agents[origin_key],
        resolve(origin_key, defn.agents[origin_key], runtime),
        history=[Message(role="user", content="I need a refund")],
    )
    origin.activate(1)
    return HandoffRouter(runtime, **router_kwargs), origin


def request(origin, target, payload=None, context_filter=None):
    return HandoffRequest(
        origin_session_id=origin.id,
        origin_agent=origin.agent_key,
        target=target,
        payload=payload or {},
        context_filter=context_filter,
    )


class TestContextFilters:
    """Test the built-in context filters."""

    def test_conversation_filter_drops_system_and_tools(self):
        """Only user and assistant text survives."""
        forwarded = conversation_filter(HISTORY)
        assert [m.role for m in forwarded] == ["user", "assistant", "user"]

    def test_none_filter(self):
        """Nothing is forwarded."""
        assert none_filter(HISTORY) == []

    def test_last_user_message_filter(self):
        """Only the latest user message is forwarded."""
        forwarded = last_user_message_filter(HISTORY)
        assert len(forwarded) == 1
        assert forwarded[0].content == "Order 42"


class TestHandoffRouter:
    """Test handoff validation and activation."""

    @pytest.mark.asyncio
    async def test_route_declared_target(self):
        """A declared handoff yields a pending session seeded with context and payload."""
        router, origin = setup_router({"a": agent("A", handoffs=["b"]), "b": agent("B")})

        session = await router.route(request(origin, "b", {"order": 42}), origin)

        assert session.agent_key == "b"
        assert session.status == SessionStatus.PENDING
        assert [m.role for m in session.messages] == ["system", "user", "user"]
        assert session.messages[1].content == "I need a refund"
        assert session.messages[2].content == 'Handoff from a: {"order": 42}'

    @pytest.mark.asyncio
    async def test_unknown_target(self):
        """Handoff to an agent that does not exist is rejected."""
        router, origin = setup_router({"a": agent("A", handoffs=["b"]), "b": agent("B")})

        with pytest.raises(RoutingError) as exc_info:
            await router.route(request(origin, "ghost"), origin)
        assert exc_info.value.target == "ghost"

    @pytest.mark.asyncio
    async def test_undeclared_target(self):
        """Handoff to an existing but undeclared agent is rejected."""
        router, origin = setup_router({"a": agent("A"), "b": agent("B")})

        with pytest.raises(RoutingError, match="not allowed"):
            await router.route(request(origin, "b"), origin)

    @pytest.mark.asyncio
    async def test_origin_must_be_active(self):
        """A finished session cannot hand off."""
        router, origin = setup_router({"a": agent("A", handoffs=["b"]), "b": agent("B")})
        origin.complete("done")

        with pytest.raises(RoutingError, match="expected active"):
            await router.route(request(origin, "b"), origin)

    @pytest.mark.asyncio
    async def test_payload_schema(self):
        """Payloads are validated against the target's input schema."""
        schema = {
            "type": "object",
            "properties": {"order": {"type": "integer"}},
            "required": ["order"],
        }
        router, origin = setup_router({
            "a": agent("A", handoffs=["b"]),
            "b": agent("B", input_schema=schema),
        })

        with pytest.raises(RoutingError, match="rejected by b"):
            await router.route(request(origin, "b", {"order": "forty-two"}), origin)

        session = await router.route(request(origin, "b", {"order": 42}), origin)
        assert session.agent_key == "b"

    @pytest.mark.asyncio
    async def test_filter_from_origin_definition(self):
        """The origin's handoff_filter applies when the request names none."""
        router, origin = setup_router({
            "a": agent("A", handoffs=["b"], handoff_filter="none"),
            "b": agent("B"),
        })

        session = await router.route(request(origin, "b"), origin)

        assert [m.role for m in session.messages] == ["system", "user"]

    @pytest.mark.asyncio
    async def test_request_filter_overrides_definition(self):
        """A filter on the request wins over the origin's default."""
        router, origin = setup_router({
            "a": agent("A", handoffs=["b"], handoff_filter="none"),
            "b": agent("B"),
        })

        session = await router.route(request(origin, "b", context_filter="last_user_message"), origin)

        assert session.messages[1].content == "I need a refund"

    @pytest.mark.asyncio
    async def test_unknown_filter(self):
        """An unknown filter name is a routing error."""
        router, origin = setup_router({"a": agent("A", handoffs=["b"]), "b": agent("B")})

        with pytest.raises(RoutingError, match="Unknown context filter"):
            await router.route(request(origin, "b", context_filter="summarise"), origin)

    @pytest.mark.asyncio
    async def test_custom_filter(self):
        """Filters supplied to the router are usable by name."""
        def shout(history):
            return [Message(role="user", content=m.content.upper()) for m in history if m.role == "user"]

        router, origin = setup_router(
            {"a": agent("A", handoffs=["b"], handoff_filter="shout"), "b": agent("B")},
            filters={"shout": shout},
        )

        session = await router.route(request(origin, "b"), origin)

        assert session.messages[1].content == "I NEED A REFUND"

    @pytest.mark.asyncio
    async def test_hooks_run_and_failures_do_not_abort(self):
        """Sync and async hooks run before activation; a failing hook only warns."""
        seen = []

        def failing_hook(req, origin):
            raise RuntimeError("hook down")

        async def recording_hook(req, origin):
            seen.append((origin.agent_key, req.target))

        router, origin = setup_router(
            {"a": agent("A", handoffs=["b"]), "b": agent("B")},
            hooks=[failing_hook, recording_hook],
        )

        session = await router.route(request(origin, "b"), origin)

        assert seen == [("a", "b")]
        assert session.agent_key == "b"
