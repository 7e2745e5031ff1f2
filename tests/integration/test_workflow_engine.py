"""
Integration tests for the workflow engine.

Drives complete runs against a scripted reasoning client: handoffs, tool
batches, approvals, guardrails, retries, turn limits, timeouts and the
sequential and parallel patterns.
"""
import asyncio
import json
import time

import pytest

from agents_engine.core.errors import ExecutionError, ReasoningAuthenticationError, ReasoningServiceError
from agents_engine.core.redaction import REDACTED
from agents_engine.guardrails import (
    BlockedPatternsGuardrail,
    FunctionGuardrail,
    GuardrailChecker,
    GuardrailStage,
)
from agents_engine.models import (
    AgentTool,
    ApprovalDecision,
    FunctionTool,
    SessionStatus,
    WorkflowPattern,
    WorkflowStatus,
)
from agents_engine.sandbox import SecurityPolicy
from agents_engine.sandbox.registry import ToolRegistry

from support import ScriptedReasoningClient, agent, calls, definition, text


def tool_payloads(session_trace):
    """Decoded tool result payloads from a session trace, in order."""
    return [json.loads(m.content) for m in session_trace.messages if m.role == "tool"]


class TestPlainRuns:
    """Test runs where agents answer directly."""

    @pytest.mark.asyncio
    async def test_plain_text_completes_with_one_session(self, make_engine):
        """Entry agent emitting text completes with exactly one session."""
        client = ScriptedReasoningClient([text("Hello there")])
        engine = make_engine(client)

        result = await engine.run(definition({"assistant": agent("Assistant")}), "Hi")

        assert result.status == WorkflowStatus.COMPLETED
        assert result.output == "Hello there"
        assert len(result.trace) == 1
        assert result.trace[0].status == SessionStatus.COMPLETED
        assert result.turns_used == 1
        assert result.exit_code == 0

    @pytest.mark.asyncio
    async def test_missing_entry_point_fails_without_sessions(self, make_engine):
        """Unknown entry point yields a configuration failure and no sessions."""
        client = ScriptedReasoningClient([])
        engine = make_engine(client)

        result = await engine.run(definition({"a": agent("A")}, entry_point="missing"), "Hi")

        assert result.status == WorkflowStatus.FAILED
        assert result.error_type == "ConfigurationError"
        assert result.trace == []
        assert client.requests == []

    @pytest.mark.asyncio
    async def test_instruction_variables_are_substituted(self, make_engine):
        """Runtime variables fill ${placeholders} in instructions."""
        client = ScriptedReasoningClient([text("ok")])
        engine = make_engine(client)
        defn = definition({"a": agent("A", instructions="Help ${customer} with ${topic}")})

        await engine.run(defn, "Hi", variables={"customer": "Ada"})

        system = client.requests[0].messages[0]
        assert system.role == "system"
        assert system.content == "Help Ada with ${topic}"

    @pytest.mark.asyncio
    async def test_run_events_are_audited(self, make_engine, audit_log):
        """A run records start, activation and finish events."""
        engine = make_engine(ScriptedReasoningClient([text("ok")]))

        result = await engine.run(definition({"a": agent("A")}), "Hi")

        kinds = [e.event_type for e in audit_log.events(run_id=result.run_id)]
        assert kinds == ["run_started", "session_activated", "run_finished"]


class TestHandoffs:
    """Test handoff-chain runs."""

    @pytest.mark.asyncio
    async def test_handoff_scenario(self, make_engine):
        """A hands off to B at turn 1; B answers at turn 2."""
        client = ScriptedReasoningClient([
            calls(("call_1", "transfer_to_b", {"x": 1})),
            text("done by B"),
        ])
        engine = make_engine(client)
        defn = definition({"a": agent("A", handoffs=["b"]), "b": agent("B")}, max_turns=5)

        result = await engine.run(defn, "start")

        assert result.status == WorkflowStatus.COMPLETED
        assert result.output == "done by B"
        assert len(result.trace) == 2

        origin, target = result.trace
        assert origin.status == SessionStatus.HANDED_OFF
        assert origin.handed_off_to == "b"
        assert origin.turns == 1
        assert target.status == SessionStatus.COMPLETED
        assert target.activated_at_turn == 2
        assert '"x": 1' in target.messages[-2].content
        assert result.last_agent == "b"
        assert result.turns_used == 2

    @pytest.mark.asyncio
    async def test_handoff_tools_in_catalog(self, make_engine):
        """Declared handoff targets are exposed as transfer tools."""
        client = ScriptedReasoningClient([text("ok")])
        engine = make_engine(client)
        defn = definition({"a": agent("A", handoffs=["b"]), "b": agent("B")})

        await engine.run(defn, "Hi")

        names = [t.function.name for t in client.requests[0].tools]
        assert names == ["transfer_to_b"]

    @pytest.mark.asyncio
    async def test_undeclared_handoff_fails_before_activation(self, make_engine):
        """Handoff to an agent not in the handoff list is a routing failure."""
        client = ScriptedReasoningClient([calls(("call_1", "transfer_to_b", {}))])
        engine = make_engine(client)
        defn = definition({"a": agent("A"), "b": agent("B")})

        result = await engine.run(defn, "Hi")

        assert result.status == WorkflowStatus.FAILED
        assert result.error_type == "RoutingError"
        assert len(result.trace) == 1
        assert result.trace[0].status == SessionStatus.FAILED
        assert len(client.requests) == 1

    @pytest.mark.asyncio
    async def test_handoff_audited_only_once_routed(self, make_engine, audit_log):
        """Accepted handoffs are recorded after routing; refused ones as rejected."""
        client = ScriptedReasoningClient([calls(("call_1", "transfer_to_b", {}))])
        engine = make_engine(client)
        refused = await engine.run(definition({"a": agent("A"), "b": agent("B")}), "Hi")

        kinds = [e.event_type for e in audit_log.events(run_id=refused.run_id)]
        assert "handoff" not in kinds
        rejected = audit_log.events(run_id=refused.run_id, event_type="handoff_rejected")
        assert rejected[0].data["target"] == "b"

        client = ScriptedReasoningClient([calls(("call_1", "transfer_to_b", {})), text("done")])
        engine = make_engine(client)
        accepted = await engine.run(definition({"a": agent("A", handoffs=["b"]), "b": agent("B")}), "Hi")

        kinds = [e.event_type for e in audit_log.events(run_id=accepted.run_id)]
        assert kinds == ["run_started", "session_activated", "handoff", "session_activated", "run_finished"]
        handoff = audit_log.events(run_id=accepted.run_id, event_type="handoff")[0]
        assert handoff.data["target_session_id"] == accepted.trace[1].session_id

    @pytest.mark.asyncio
    async def test_handoff_payload_schema_enforced(self, make_engine):
        """Payload failing the target's input schema aborts the run."""
        client = ScriptedReasoningClient([calls(("call_1", "transfer_to_b", {"x": "not a number"}))])
        engine = make_engine(client)
        schema = {"type": "object", "properties": {"x": {"type": "integer"}}, "required": ["x"]}
        defn = definition({"a": agent("A", handoffs=["b"]), "b": agent("B", input_schema=schema)})

        result = await engine.run(defn, "Hi")

        assert result.status == WorkflowStatus.FAILED
        assert result.error_type == "RoutingError"
        assert len(result.trace) == 1


class TestTurnLimits:
    """Test turn accounting."""

    @pytest.mark.asyncio
    async def test_never_exceeds_max_turns(self, make_engine):
        """A looping agent stops at max_turns with the partial trace."""
        registry = ToolRegistry([FunctionTool(name="ping", handler=lambda: "pong")])
        client = ScriptedReasoningClient([calls((f"call_{i}", "ping", {})) for i in range(10)])
        engine = make_engine(client, registry=registry)
        defn = definition({"a": agent("A", tools=["ping"])}, max_turns=3)

        result = await engine.run(defn, "Hi")

        assert result.status == WorkflowStatus.MAX_TURNS_EXCEEDED
        assert result.exit_code == 3
        assert len(client.requests) == 3
        assert result.turns_used == 3
        assert len(tool_payloads(result.trace[0])) == 3

    @pytest.mark.asyncio
    async def test_turns_count_across_sessions(self, make_engine):
        """Handoffs share one workflow budget."""
        client = ScriptedReasoningClient([
            calls(("call_1", "transfer_to_b", {})),
            calls(("call_2", "transfer_to_a", {})),
            text("never reached"),
        ])
        engine = make_engine(client)
        defn = definition(
            {"a": agent("A", handoffs=["b"]), "b": agent("B", handoffs=["a"])},
            max_turns=2,
        )

        result = await engine.run(defn, "Hi")

        assert result.status == WorkflowStatus.MAX_TURNS_EXCEEDED
        assert len(client.requests) == 2
        assert len(result.trace) == 3

    @pytest.mark.asyncio
    async def test_session_cap(self, make_engine):
        """Per-agent max_turns is enforced under a larger workflow budget."""
        registry = ToolRegistry([FunctionTool(name="ping", handler=lambda: "pong")])
        client = ScriptedReasoningClient([calls(("call_1", "ping", {})), text("late")])
        engine = make_engine(client, registry=registry)
        defn = definition({"a": agent("A", tools=["ping"], max_turns=1)}, max_turns=10)

        result = await engine.run(defn, "Hi")

        assert result.status == WorkflowStatus.MAX_TURNS_EXCEEDED
        assert len(client.requests) == 1


class TestToolBatches:
    """Test tool dispatch from a run."""

    @pytest.mark.asyncio
    async def test_batch_yields_one_result_per_call_in_order(self, make_engine):
        """Failures in a batch do not abort siblings and order is preserved."""
        def explode():
            raise RuntimeError("kaboom")

        async def slow_echo(text: str):
            await asyncio.sleep(0.05)
            return text

        registry = ToolRegistry([
            FunctionTool(name="slow_echo", handler=slow_echo),
            FunctionTool(name="explode", handler=explode),
        ])
        client = ScriptedReasoningClient([
            calls(
                ("call_1", "slow_echo", {"text": "first"}),
                ("call_2", "explode", {}),
                ("call_3", "missing_tool", {}),
            ),
            text("summarised"),
        ])
        engine = make_engine(client, registry=registry)
        defn = definition({"a": agent("A", tools=["slow_echo", "explode"])})

        result = await engine.run(defn, "Hi")

        assert result.status == WorkflowStatus.COMPLETED
        payloads = tool_payloads(result.trace[0])
        assert [p["call_id"] for p in payloads] == ["call_1", "call_2", "call_3"]
        assert [p["success"] for p in payloads] == [True, False, False]
        assert payloads[0]["data"] == "first"
        assert payloads[1]["error"]["type"] == "execution_error"
        assert payloads[2]["error"]["type"] == "not_found"

    @pytest.mark.asyncio
    async def test_unusable_tool_arguments_do_not_fail_the_run(self, make_engine, tmp_path):
        """A call whose checks raise becomes a failed result and the run continues."""
        registry = ToolRegistry([
            FunctionTool(name="ok", handler=lambda: "fine"),
            FunctionTool(name="read", handler=lambda path: path),
        ])
        client = ScriptedReasoningClient([
            calls(("call_1", "ok", {}), ("call_2", "read", {"path": "a\x00b"})),
            text("recovered"),
        ])
        engine = make_engine(client, registry=registry, policy=SecurityPolicy(allowed_paths=(str(tmp_path),)))
        defn = definition({"a": agent("A", tools=["ok", "read"])})

        result = await engine.run(defn, "Hi")

        assert result.status == WorkflowStatus.COMPLETED
        assert result.output == "recovered"
        payloads = tool_payloads(result.trace[0])
        assert [p["success"] for p in payloads] == [True, False]
        assert payloads[1]["error"]["type"] == "policy_denied"
        assert len(client.requests) == 2

    @pytest.mark.asyncio
    async def test_tool_arguments_redacted_in_audit(self, make_engine, audit_log):
        """Credentials in tool arguments never reach the audit log."""
        registry = ToolRegistry([FunctionTool(name="login", handler=lambda user, api_key: "ok")])
        client = ScriptedReasoningClient([
            calls(("call_1", "login", {"user": "ada", "api_key": "sk-live-1234567890abcdef"})),
            text("logged in"),
        ])
        engine = make_engine(client, registry=registry)

        await engine.run(definition({"a": agent("A", tools=["login"])}), "Hi")

        event = audit_log.events(event_type="tool_call")[0]
        assert event.data["arguments"]["api_key"] == REDACTED
        assert event.data["arguments"]["user"] == "ada"

    @pytest.mark.asyncio
    async def test_agent_tool_runs_nested_session(self, make_engine):
        """An agent tool runs another agent and returns its output."""
        registry = ToolRegistry([
            AgentTool(
                name="ask_researcher",
                agent="researcher",
                parameters={
                    "type": "object",
                    "properties": {"input": {"type": "string"}},
                    "required": ["input"],
                },
            ),
        ])
        client = ScriptedReasoningClient([
            calls(("call_1", "ask_researcher", {"input": "facts?"})),
            text("facts!"),
            text("article"),
        ])
        engine = make_engine(client, registry=registry)
        defn = definition({
            "writer": agent("Writer", tools=["ask_researcher"]),
            "researcher": agent("Researcher"),
        })

        result = await engine.run(defn, "Write something")

        assert result.status == WorkflowStatus.COMPLETED
        assert result.output == "article"
        assert result.turns_used == 3
        assert [t.agent for t in result.trace] == ["writer", "researcher"]
        assert tool_payloads(result.trace[0])[0]["data"] == "facts!"
        assert client.requests[1].messages[1].content == "facts?"


class TestApprovals:
    """Test human-in-the-loop interruptions."""

    def _setup(self, make_engine, responses, **engine_kwargs):
        executed = []

        def delete_record(record_id: str):
            executed.append(record_id)
            return {"deleted": record_id}

        registry = ToolRegistry([
            FunctionTool(name="delete_record", handler=delete_record, needs_approval=True),
        ])
        client = ScriptedReasoningClient(responses)
        engine = make_engine(client, registry=registry, **engine_kwargs)
        defn = definition({"a": agent("A", tools=["delete_record"])})
        return engine, defn, executed

    @pytest.mark.asyncio
    async def test_unapproved_call_interrupts_run(self, make_engine):
        """An approval-required call returns an interrupted result."""
        engine, defn, executed = self._setup(make_engine, [
            calls(("call_1", "delete_record", {"record_id": "r1"})),
        ])

        result = await engine.run(defn, "Delete r1")

        assert result.status == WorkflowStatus.INTERRUPTED
        assert result.exit_code == 4
        assert len(result.interruptions) == 1
        assert result.interruptions[0].call_id == "call_1"
        assert result.trace[0].status == SessionStatus.AWAITING_APPROVAL
        assert executed == []
        assert result.run_id in engine.suspended_runs()

    @pytest.mark.asyncio
    async def test_reject_resumes_with_rejected_outcome(self, make_engine):
        """Rejecting appends an approval_rejected result and continues."""
        engine, defn, executed = self._setup(make_engine, [
            calls(("call_1", "delete_record", {"record_id": "r1"})),
            text("Understood, nothing deleted"),
        ])
        interrupted = await engine.run(defn, "Delete r1")

        result = await engine.resume(interrupted, [ApprovalDecision.reject("call_1", reason="Not today")])

        assert result.status == WorkflowStatus.COMPLETED
        assert result.output == "Understood, nothing deleted"
        assert executed == []
        payload = tool_payloads(result.trace[0])[0]
        assert payload["success"] is False
        assert payload["error"]["type"] == "approval_rejected"

    @pytest.mark.asyncio
    async def test_approve_executes_call(self, make_engine, audit_log):
        """Approving runs the call and records the decision."""
        engine, defn, executed = self._setup(make_engine, [
            calls(("call_1", "delete_record", {"record_id": "r1"})),
            text("Deleted"),
        ])
        interrupted = await engine.run(defn, "Delete r1")

        result = await engine.resume(interrupted.run_id, [ApprovalDecision.approve("call_1", approver="ops")])

        assert result.status == WorkflowStatus.COMPLETED
        assert executed == ["r1"]
        decisions = audit_log.events(event_type="approval_decision")
        assert decisions[0].data["approved"] is True
        assert result.run_id not in engine.suspended_runs()

    @pytest.mark.asyncio
    async def test_resume_unknown_run_raises(self, make_engine):
        """Resuming a run that is not interrupted is an error."""
        engine = make_engine(ScriptedReasoningClient([]))
        with pytest.raises(ExecutionError):
            await engine.resume("run_missing", [])

    @pytest.mark.asyncio
    async def test_oldest_interrupted_run_dropped_beyond_cap(self, make_engine):
        """Only the most recent interrupted runs are kept for resume."""
        engine, defn, executed = self._setup(make_engine, [
            calls(("call_1", "delete_record", {"record_id": "r1"})),
            calls(("call_2", "delete_record", {"record_id": "r2"})),
        ], max_suspended_runs=1)

        first = await engine.run(defn, "Delete r1")
        second = await engine.run(defn, "Delete r2")

        assert engine.suspended_runs() == [second.run_id]
        with pytest.raises(ExecutionError):
            await engine.resume(first.run_id, [ApprovalDecision.approve("call_1")])
        assert executed == []

    @pytest.mark.asyncio
    async def test_partial_decisions_stay_interrupted(self, make_engine):
        """Calls without a decision keep the run interrupted."""
        engine, defn, executed = self._setup(make_engine, [
            calls(
                ("call_1", "delete_record", {"record_id": "r1"}),
                ("call_2", "delete_record", {"record_id": "r2"}),
            ),
            text("done"),
        ])
        interrupted = await engine.run(defn, "Delete both")
        assert len(interrupted.interruptions) == 2

        partial = await engine.resume(interrupted, [ApprovalDecision.approve("call_1")])
        assert partial.status == WorkflowStatus.INTERRUPTED
        assert [i.call_id for i in partial.interruptions] == ["call_2"]

        result = await engine.resume(partial, [ApprovalDecision.reject("call_2")])
        assert result.status == WorkflowStatus.COMPLETED
        assert executed == ["r1"]
        assert [p["call_id"] for p in tool_payloads(result.trace[0])] == ["call_1", "call_2"]


class TestGuardrails:
    """Test input and output guardrails in a run."""

    @pytest.mark.asyncio
    async def test_input_violation_prevents_reasoning(self, make_engine):
        """A blocked input never reaches the reasoning client."""
        client = ScriptedReasoningClient([text("should not happen")])
        engine = make_engine(client)
        defn = definition({"a": agent("A", guardrails=["no_destructive_operations"])})

        result = await engine.run(defn, "Please run rm -rf / on the server")

        assert result.status == WorkflowStatus.GUARDRAIL_BLOCKED
        assert result.exit_code == 2
        assert client.requests == []
        assert result.trace == []

    @pytest.mark.asyncio
    async def test_output_sanitization_replaces_only_payload(self, make_engine):
        """Sanitized output is returned while the trace keeps the original."""
        secret = "sk-abcdefghijklmnop1234"
        client = ScriptedReasoningClient([text(f"The key is {secret}")])
        engine = make_engine(client)
        defn = definition({"a": agent("A", guardrails=["redact_secrets"])})

        result = await engine.run(defn, "What is the key?")

        assert result.status == WorkflowStatus.COMPLETED
        assert secret not in result.output
        assert REDACTED in result.output
        assert result.trace[0].messages[-1].content == f"The key is {secret}"

    @pytest.mark.asyncio
    async def test_output_violation_blocks(self, make_engine):
        """A blocked output fails the finishing session."""
        checker = GuardrailChecker([BlockedPatternsGuardrail("no_forbidden", ["forbidden"])])
        client = ScriptedReasoningClient([text("this is forbidden")])
        engine = make_engine(client, guardrails=checker)
        defn = definition({"a": agent("A", guardrails=["no_forbidden"])})

        result = await engine.run(defn, "Hi")

        assert result.status == WorkflowStatus.GUARDRAIL_BLOCKED
        assert result.output is None
        assert result.trace[0].status == SessionStatus.FAILED


class TestReasoningFailures:
    """Test retry behaviour of reasoning calls."""

    @pytest.mark.asyncio
    async def test_transient_failures_are_retried(self, make_engine, audit_log):
        """Two transient failures then success complete with two retry events."""
        client = ScriptedReasoningClient([
            ReasoningServiceError("upstream hiccup"),
            ReasoningServiceError("upstream hiccup"),
            text("finally"),
        ])
        engine = make_engine(client)

        result = await engine.run(definition({"a": agent("A")}), "Hi")

        assert result.status == WorkflowStatus.COMPLETED
        assert result.output == "finally"
        assert result.turns_used == 1
        assert len(client.requests) == 3
        assert len(audit_log.events(run_id=result.run_id, event_type="reasoning_retry")) == 2

    @pytest.mark.asyncio
    async def test_exhausted_retries_fail_run(self, make_engine):
        """Failures past the attempt ceiling fail the run."""
        client = ScriptedReasoningClient([ReasoningServiceError("down")] * 3)
        engine = make_engine(client)

        result = await engine.run(definition({"a": agent("A")}), "Hi")

        assert result.status == WorkflowStatus.FAILED
        assert result.error_type == "ReasoningServiceError"
        assert len(client.requests) == 3
        assert result.last_agent == "a"

    @pytest.mark.asyncio
    async def test_permanent_failure_not_retried(self, make_engine):
        """Authentication failures surface immediately."""
        client = ScriptedReasoningClient([ReasoningAuthenticationError("bad key"), text("unused")])
        engine = make_engine(client)

        result = await engine.run(definition({"a": agent("A")}), "Hi")

        assert result.status == WorkflowStatus.FAILED
        assert result.error_type == "ReasoningAuthenticationError"
        assert len(client.requests) == 1


class TestTimeouts:
    """Test wall-clock timeout and external cancellation."""

    @pytest.mark.asyncio
    async def test_timeout_cancels_reasoning_call(self, make_engine):
        """A slow reasoning call is cut off by the run timeout."""
        client = ScriptedReasoningClient([text("too late")], delay=5)
        engine = make_engine(client)
        defn = definition({"a": agent("A")}, timeout_seconds=0.2)

        result = await engine.run(defn, "Hi")

        assert result.status == WorkflowStatus.FAILED
        assert result.reason == "timeout"
        assert result.error_type == "WorkflowTimeoutError"
        assert result.trace[0].status == SessionStatus.FAILED

    @pytest.mark.asyncio
    async def test_timeout_cancels_tool_execution(self, make_engine, audit_log):
        """In-flight tools are cancelled and recorded when the run times out."""
        async def hang():
            await asyncio.sleep(5)

        registry = ToolRegistry([FunctionTool(name="hang", handler=hang)])
        client = ScriptedReasoningClient([calls(("call_1", "hang", {})), text("unreachable")])
        engine = make_engine(client, registry=registry)
        defn = definition({"a": agent("A", tools=["hang"])}, timeout_seconds=0.3)

        result = await engine.run(defn, "Hi")

        assert result.status == WorkflowStatus.FAILED
        assert result.reason == "timeout"
        tool_result = audit_log.events(event_type="tool_result")[0]
        assert tool_result.data["error"]["type"] == "cancelled"
        assert len(client.requests) == 1

    @pytest.mark.asyncio
    async def test_external_cancellation(self, make_engine):
        """A caller-supplied event aborts the run as cancelled."""
        client = ScriptedReasoningClient([text("too late")], delay=5)
        engine = make_engine(client)
        cancel = asyncio.Event()
        asyncio.get_running_loop().call_later(0.05, cancel.set)

        result = await engine.run(definition({"a": agent("A")}), "Hi", cancel_event=cancel)

        assert result.status == WorkflowStatus.FAILED
        assert result.reason == "cancelled"

    @pytest.mark.asyncio
    async def test_timeout_cuts_off_slow_guardrail(self, make_engine):
        """A guardrail still checking when the timeout fires does not delay the result."""
        async def slow_review(payload, context):
            await asyncio.sleep(5)
            return True

        checker = GuardrailChecker([FunctionGuardrail("slow_review", slow_review, stages=[GuardrailStage.OUTPUT])])
        engine = make_engine(ScriptedReasoningClient([text("answer")]), guardrails=checker)
        defn = definition({"a": agent("A", guardrails=["slow_review"])}, timeout_seconds=0.1)

        started = time.monotonic()
        result = await engine.run(defn, "Hi")

        assert time.monotonic() - started < 2
        assert result.status == WorkflowStatus.FAILED
        assert result.reason == "timeout"
        assert result.output is None

    @pytest.mark.asyncio
    async def test_timeout_cuts_off_slow_handoff_hook(self, make_engine):
        async def slow_hook(request, origin):
            await asyncio.sleep(5)

        client = ScriptedReasoningClient([calls(("call_1", "transfer_to_b", {})), text("unreachable")])
        engine = make_engine(client, handoff_hooks=[slow_hook])
        defn = definition({"a": agent("A", handoffs=["b"]), "b": agent("B")}, timeout_seconds=0.1)

        started = time.monotonic()
        result = await engine.run(defn, "Hi")

        assert time.monotonic() - started < 2
        assert result.reason == "timeout"
        assert len(result.trace) == 1
        assert len(client.requests) == 1


class TestPatterns:
    """Test sequential and parallel composition."""

    @pytest.mark.asyncio
    async def test_sequential_feeds_outputs_forward(self, make_engine):
        """Each stage's output is the next stage's input."""
        client = ScriptedReasoningClient([text("draft"), text("polished")])
        engine = make_engine(client)
        defn = definition(
            {"writer": agent("Writer"), "editor": agent("Editor")},
            pattern=WorkflowPattern.SEQUENTIAL,
        )

        result = await engine.run(defn, "Write a haiku")

        assert result.status == WorkflowStatus.COMPLETED
        assert result.output == "polished"
        assert [t.agent for t in result.trace] == ["writer", "editor"]
        assert all(t.status == SessionStatus.COMPLETED for t in result.trace)
        assert client.requests[1].messages[1].content == "draft"

    @pytest.mark.asyncio
    async def test_sequential_hides_handoff_tools(self, make_engine):
        """Handoff tools are not offered outside the handoff chain."""
        client = ScriptedReasoningClient([text("one"), text("two")])
        engine = make_engine(client)
        defn = definition(
            {"a": agent("A", handoffs=["b"]), "b": agent("B")},
            pattern="sequential",
        )

        await engine.run(defn, "Hi")

        assert client.requests[0].tools is None

    @pytest.mark.asyncio
    async def test_parallel_collects_outputs_by_agent(self, make_engine):
        """Every agent answers the same input; outputs are keyed by agent."""
        client = ScriptedReasoningClient(by_agent={
            "optimist": [text("It will work")],
            "pessimist": [text("It will fail")],
        })
        engine = make_engine(client)
        defn = definition(
            {"optimist": agent("Optimist"), "pessimist": agent("Pessimist")},
            pattern=WorkflowPattern.PARALLEL,
        )

        result = await engine.run(defn, "Will it work?")

        assert result.status == WorkflowStatus.COMPLETED
        assert result.output == {"optimist": "It will work", "pessimist": "It will fail"}
        assert result.turns_used == 2
        assert len(result.trace) == 2

    @pytest.mark.asyncio
    async def test_parallel_shares_turn_budget(self, make_engine):
        """Parallel lanes draw from one workflow budget."""
        registry = ToolRegistry([FunctionTool(name="ping", handler=lambda: "pong")])
        client = ScriptedReasoningClient(by_agent={
            "a": [calls((f"a_{i}", "ping", {})) for i in range(5)],
            "b": [calls((f"b_{i}", "ping", {})) for i in range(5)],
        })
        engine = make_engine(client, registry=registry)
        defn = definition(
            {"a": agent("A", tools=["ping"]), "b": agent("B", tools=["ping"])},
            pattern=WorkflowPattern.PARALLEL,
            max_turns=4,
        )

        result = await engine.run(defn, "Go")

        assert result.status == WorkflowStatus.MAX_TURNS_EXCEEDED
        assert len(client.requests) == 4
