"""
Workflow engine.

Drives agent sessions through reasoning turns, tool batches and handoffs to
a WorkflowResult. Supports three composition patterns:
- handoff_chain: one session in control at a time, transferred by handoffs
- sequential: every agent runs once, each stage feeding the next
- parallel: every agent runs concurrently on the same input
"""

import asyncio
import dataclasses
import functools
import json
import logging
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Union

from opentelemetry import trace

from ..core.audit import AuditLog
from ..core.cancellation import run_cancellable
from ..core.errors import (
    AgentsEngineError,
    ConfigurationError,
    ExecutionError,
    GuardrailViolation,
    OperationCancelled,
    RoutingError,
    ToolExecutionError,
    TurnLimitExceeded,
    WorkflowTimeoutError,
)
from ..guardrails.checker import GuardrailChecker
from ..models.definition import WorkflowDefinition, WorkflowPattern
from ..models.results import (
    FinalOutput,
    HandoffRequest,
    HandoffRequested,
    SessionStatus,
    WorkflowResult,
    WorkflowStatus,
)
from ..models.tools import ApprovalDecision, ToolCall
from ..reasoning.interface import AbstractReasoningClient
from ..reasoning.models import Message
from ..reasoning.retry import RetryingReasoningClient
from ..sandbox.executor import BatchContext, BatchOutcome, ToolExecutionSandbox
from ..sandbox.registry import ToolRegistry
from .budget import TurnBudget
from .resolver import RuntimeContext, resolve
from .routing import ContextFilter, HandoffHook, HandoffRouter
from .session import AgentSession, StepOutcome
from .validation import ValidationReport, validate_definition

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

_SUSPENDED = object()


@dataclass
class RunState:
    """Mutable state of one run; kept in memory while the run is interrupted."""
    run_id: str
    definition: WorkflowDefinition
    runtime: RuntimeContext
    router: HandoffRouter
    budget: TurnBudget
    input: Any
    started_at: datetime
    remaining_seconds: float
    reasoning_lock: Optional[asyncio.Lock] = None
    sessions: List[AgentSession] = field(default_factory=list)
    current: Optional[AgentSession] = None
    stage_index: int = 0
    pending: Optional[BatchOutcome] = None
    pending_session: Optional[AgentSession] = None
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    timed_out: bool = False


class WorkflowEngine:
    """
    Runs workflow definitions.

    Registries, guardrails and policies are shared read-only by concurrent
    runs; the audit log is the only shared sink. Interrupted runs are held
    in memory until resumed, up to max_suspended_runs.
    """

    def __init__(
        self,
        reasoning_client: AbstractReasoningClient,
        registry: Optional[ToolRegistry] = None,
        sandbox: Optional[ToolExecutionSandbox] = None,
        guardrails: Optional[GuardrailChecker] = None,
        audit_log: Optional[AuditLog] = None,
        default_model: str = "gpt-4o-mini",
        max_attempts: int = 3,
        backoff_multiplier: float = 0.5,
        backoff_max: float = 8.0,
        grace_period: float = 1.0,
        context_filters: Optional[Dict[str, ContextFilter]] = None,
        handoff_hooks: Optional[List[HandoffHook]] = None,
        max_suspended_runs: int = 1000,
    ):
        """
        Initialize engine.

        Args:
            reasoning_client: Completion service client; wrapped with retries
                unless it already is a RetryingReasoningClient
            registry: Tool registry (taken from the sandbox if omitted)
            sandbox: Tool execution sandbox
            guardrails: Guardrail checker, built-ins only if omitted
            audit_log: Shared audit sink
            default_model: Model for agents that do not name one
            max_attempts: Reasoning attempt ceiling per logical call
            backoff_multiplier: Base of the exponential retry wait, in seconds
            backoff_max: Upper bound on a single retry wait
            grace_period: Seconds a cancelled operation may take to unwind
            context_filters: Extra handoff context filters by name
            handoff_hooks: Pre-activation hooks run on every handoff
            max_suspended_runs: Interrupted runs kept for resume; the oldest is dropped beyond this
        """
        if sandbox is not None:
            self.registry = registry or sandbox.registry
            self.audit_log = audit_log if audit_log is not None else sandbox.audit_log
            self.sandbox = sandbox
        else:
            self.registry = registry or ToolRegistry()
            self.audit_log = audit_log if audit_log is not None else AuditLog()
            self.sandbox = ToolExecutionSandbox(self.registry, audit_log=self.audit_log, grace_period=grace_period)

        if isinstance(reasoning_client, RetryingReasoningClient):
            self.reasoning = reasoning_client
        else:
            self.reasoning = RetryingReasoningClient(
                reasoning_client,
                audit_log=self.audit_log,
                max_attempts=max_attempts,
                backoff_multiplier=backoff_multiplier,
                backoff_max=backoff_max,
            )

        self.guardrails = guardrails or GuardrailChecker()
        self.default_model = default_model
        self.grace_period = grace_period
        self.context_filters: Dict[str, ContextFilter] = dict(context_filters or {})
        self.handoff_hooks: List[HandoffHook] = list(handoff_hooks or [])
        self.max_suspended_runs = max_suspended_runs
        self._suspended: "OrderedDict[str, RunState]" = OrderedDict()

    def register_context_filter(self, name: str, context_filter: ContextFilter) -> None:
        self.context_filters[name] = context_filter

    def add_handoff_hook(self, hook: HandoffHook) -> None:
        self.handoff_hooks.append(hook)

    def validate(self, definition: WorkflowDefinition) -> ValidationReport:
        """Validate a definition against this engine's tools, guardrails and filters."""
        return validate_definition(
            definition,
            registry=self.registry,
            guardrail_names=self.guardrails.names(),
            filter_names=self.context_filters,
        )

    def suspended_runs(self) -> List[str]:
        """Ids of runs waiting for approval decisions."""
        return list(self._suspended)

    async def run(
        self,
        definition: WorkflowDefinition,
        input: Any,
        variables: Optional[Dict[str, Any]] = None,
        cancel_event: Optional[asyncio.Event] = None,
        run_id: Optional[str] = None,
    ) -> WorkflowResult:
        """
        Execute a workflow.

        Args:
            definition: Workflow definition
            input: Run input for the entry agent
            variables: Values for ${variable} placeholders in instructions
            cancel_event: Caller-owned abort signal
            run_id: Run id to use instead of a generated one

        Returns:
            WorkflowResult; never raises for run-level failures
        """
        state = self._new_state(definition, input, variables or {}, run_id)
        logger.info(f"Starting run {state.run_id} ({definition.pattern.value}, entry {definition.entry_point})")
        await self.audit_log.record(
            "run_started",
            run_id=state.run_id,
            entry_point=definition.entry_point,
            pattern=definition.pattern.value,
            input=input,
        )
        return await self._execute(state, self._start(state), cancel_event)

    async def resume(
        self,
        run: Union[str, WorkflowResult],
        decisions: Union[Iterable[ApprovalDecision], Dict[str, ApprovalDecision]],
        cancel_event: Optional[asyncio.Event] = None,
    ) -> WorkflowResult:
        """
        Continue an interrupted run with approval decisions.

        Calls without a decision stay suspended and the run is returned as
        interrupted again. Time spent waiting is not charged to the run
        timeout.

        Args:
            run: Interrupted WorkflowResult or its run id
            decisions: Decisions, keyed by call id or as a list
            cancel_event: Caller-owned abort signal

        Raises:
            ExecutionError: If no interrupted run has that id
        """
        run_id = run.run_id if isinstance(run, WorkflowResult) else run
        state = self._suspended.pop(run_id, None)
        if state is None:
            raise ExecutionError(f"No interrupted run with id {run_id}")

        if not isinstance(decisions, dict):
            decisions = {d.call_id: d for d in decisions}

        logger.info(f"Resuming run {run_id} with {len(decisions)} decision(s)")
        await self.audit_log.record("run_resumed", run_id=run_id, decisions=len(decisions))
        return await self._execute(state, self._continue(state, decisions), cancel_event)

    def _new_state(
        self,
        definition: WorkflowDefinition,
        input: Any,
        variables: Dict[str, Any],
        run_id: Optional[str],
    ) -> RunState:
        runtime = RuntimeContext(
            definition=definition,
            registry=self.registry,
            default_model=self.default_model,
            variables=variables,
            allow_handoffs=definition.pattern == WorkflowPattern.HANDOFF_CHAIN,
        )
        serialized = definition.pattern != WorkflowPattern.PARALLEL
        return RunState(
            run_id=run_id or f"run_{uuid.uuid4().hex[:16]}",
            definition=definition,
            runtime=runtime,
            router=HandoffRouter(runtime, filters=self.context_filters, hooks=self.handoff_hooks),
            budget=TurnBudget(definition.max_turns),
            input=input,
            started_at=datetime.now(timezone.utc),
            remaining_seconds=definition.timeout_seconds,
            reasoning_lock=asyncio.Lock() if serialized else None,
        )

    async def _execute(self, state: RunState, body, cancel_event: Optional[asyncio.Event]) -> WorkflowResult:
        """Run one leg of a run under its timeout and classify the outcome."""
        loop = asyncio.get_running_loop()
        state.cancel_event = asyncio.Event()
        state.timed_out = False
        timer = loop.call_later(max(state.remaining_seconds, 0.0), self._on_timeout, state)
        relay = asyncio.ensure_future(self._relay_cancel(cancel_event, state.cancel_event)) if cancel_event else None
        leg_started = loop.time()

        with tracer.start_as_current_span("workflow.run") as span:
            span.set_attribute("workflow.run_id", state.run_id)
            span.set_attribute("workflow.pattern", state.definition.pattern.value)
            span.set_attribute("workflow.entry_point", state.definition.entry_point)

            try:
                output = await body
                if output is _SUSPENDED:
                    result = self._interrupted(state)
                else:
                    result = self._result(state, WorkflowStatus.COMPLETED, output=output)
            except GuardrailViolation as e:
                result = self._failure(state, WorkflowStatus.GUARDRAIL_BLOCKED, e)
            except TurnLimitExceeded as e:
                result = self._failure(state, WorkflowStatus.MAX_TURNS_EXCEEDED, e)
            except (OperationCancelled, WorkflowTimeoutError) as e:
                if state.timed_out:
                    error = WorkflowTimeoutError(
                        f"Workflow exceeded timeout_seconds={state.definition.timeout_seconds}",
                    )
                    result = self._failure(state, WorkflowStatus.FAILED, error, reason="timeout")
                else:
                    result = self._failure(state, WorkflowStatus.FAILED, e, reason="cancelled")
            except AgentsEngineError as e:
                result = self._failure(state, WorkflowStatus.FAILED, e)
            except Exception as e:
                logger.exception(f"Run {state.run_id} failed unexpectedly")
                result = self._failure(state, WorkflowStatus.FAILED, e)
            finally:
                timer.cancel()
                if relay is not None:
                    relay.cancel()
                state.remaining_seconds -= loop.time() - leg_started

            span.set_attribute("workflow.status", result.status.value)
            span.set_attribute("workflow.turns_used", result.turns_used)

        logger.info(f"Run {state.run_id} finished: {result.status.value} ({result.turns_used} turns)")
        await self.audit_log.record(
            "run_finished",
            run_id=state.run_id,
            status=result.status.value,
            reason=result.reason,
            turns_used=result.turns_used,
        )
        return result

    def _on_timeout(self, state: RunState) -> None:
        logger.warning(f"Run {state.run_id} hit its timeout, cancelling in-flight work")
        state.timed_out = True
        state.cancel_event.set()

    async def _relay_cancel(self, external: asyncio.Event, internal: asyncio.Event) -> None:
        await external.wait()
        internal.set()

    def _check_cancelled(self, state: RunState) -> None:
        if not state.cancel_event.is_set():
            return
        if state.timed_out:
            raise WorkflowTimeoutError(f"Workflow exceeded timeout_seconds={state.definition.timeout_seconds}")
        raise OperationCancelled("Run cancelled by caller")

    async def _start(self, state: RunState) -> Any:
        definition = state.definition
        entry_key = definition.entry_point
        if definition.get_agent(entry_key) is None:
            raise ConfigurationError(f"Entry point {entry_key} is not a defined agent")

        if definition.pattern == WorkflowPattern.PARALLEL:
            return await self._run_parallel(state)

        payload = await self._check_input(state, entry_key, state.input)
        state.current = await self._activate(state, entry_key, payload)
        return await self._run_pattern(state)

    async def _continue(self, state: RunState, decisions: Dict[str, ApprovalDecision]) -> Any:
        session = state.pending_session
        outcome = state.pending
        if session is None or outcome is None:
            raise ExecutionError(f"Run {state.run_id} has no suspended tool batch")

        pending_ids = {i.call_id for i in outcome.interruptions}
        unknown = [call_id for call_id in decisions if call_id not in pending_ids]
        if unknown:
            logger.warning(f"Run {state.run_id}: ignoring decisions for unknown calls {unknown}")

        session.transition(SessionStatus.AWAITING_TOOL_RESULTS)
        await self.sandbox.resume(outcome, decisions, self._batch_context(state, session, interruptible=True))
        if outcome.interruptions:
            session.transition(SessionStatus.AWAITING_APPROVAL)
            return _SUSPENDED

        state.pending = None
        state.pending_session = None
        session.append_tool_results(outcome.ordered_results())
        return await self._run_pattern(state)

    async def _run_pattern(self, state: RunState) -> Any:
        if state.definition.pattern == WorkflowPattern.SEQUENTIAL:
            return await self._run_sequential(state)
        return await self._advance(state, state.current, interruptible=True)

    async def _run_sequential(self, state: RunState) -> Any:
        order = state.definition.stage_order()
        while True:
            output = await self._advance(state, state.current, interruptible=True)
            if output is _SUSPENDED:
                return _SUSPENDED

            state.stage_index += 1
            if state.stage_index >= len(order):
                return output

            key = order[state.stage_index]
            stage_input = await self._check_input(state, key, output)
            state.current = await self._activate(state, key, stage_input)

    async def _run_parallel(self, state: RunState) -> Dict[str, Any]:
        keys = state.definition.stage_order()
        inputs = {}
        for key in keys:
            inputs[key] = await self._check_input(state, key, state.input)

        lanes = [await self._activate(state, key, inputs[key]) for key in keys]
        outputs = await asyncio.gather(
            *[self._advance(state, lane, interruptible=False) for lane in lanes],
            return_exceptions=True,
        )
        for output in outputs:
            if isinstance(output, BaseException):
                raise output
        return {lane.agent_key: output for lane, output in zip(lanes, outputs)}

    async def _advance(self, state: RunState, session: AgentSession, interruptible: bool) -> Any:
        """Drive a session (and, in a handoff chain, its successors) to a final output."""
        while True:
            self._check_cancelled(state)
            outcome = await self._step(state, session)

            if isinstance(outcome, FinalOutput):
                return await self._finish(state, session, outcome.content)

            if isinstance(outcome, HandoffRequested):
                session = await self._hand_off(state, session, outcome.request)
                continue

            if await self._run_tools(state, session, outcome.calls, interruptible):
                return _SUSPENDED

    async def _step(self, state: RunState, session: AgentSession) -> StepOutcome:
        session.ensure_turn_available()
        turn = state.budget.consume(session.id)
        if session.status == SessionStatus.PENDING:
            session.activate(turn)

        with tracer.start_as_current_span("agent.step") as span:
            span.set_attribute("agent.name", session.agent_key)
            span.set_attribute("agent.session_id", session.id)
            span.set_attribute("workflow.turn", turn)

            call = functools.partial(
                self.reasoning.complete,
                audit_context={"run_id": state.run_id, "session_id": session.id, "agent": session.agent_key},
            )
            if state.reasoning_lock is not None:
                async with state.reasoning_lock:
                    outcome = await session.step(call, state.cancel_event, self.grace_period)
            else:
                outcome = await session.step(call, state.cancel_event, self.grace_period)

            span.set_attribute("agent.outcome", outcome.kind)
        return outcome

    async def _run_tools(
        self,
        state: RunState,
        session: AgentSession,
        calls: List[ToolCall],
        interruptible: bool,
    ) -> bool:
        """Execute a batch; returns True if the run must suspend for approval."""
        outcome = await self.sandbox.execute(calls, self._batch_context(state, session, interruptible))
        if outcome.interruptions:
            session.transition(SessionStatus.AWAITING_APPROVAL)
            state.pending = outcome
            state.pending_session = session
            logger.info(f"Run {state.run_id}: {len(outcome.interruptions)} call(s) awaiting approval")
            return True

        session.append_tool_results(outcome.ordered_results())
        return False

    def _batch_context(self, state: RunState, session: AgentSession, interruptible: bool) -> BatchContext:
        return BatchContext(
            agent=session.agent_key,
            run_id=state.run_id,
            cancel_event=state.cancel_event,
            agent_runner=functools.partial(self._run_agent_tool, state, session),
            allow_interruptions=interruptible,
        )

    async def _run_agent_tool(
        self,
        state: RunState,
        parent: AgentSession,
        agent_key: str,
        text: str,
        call: ToolCall,
    ) -> Any:
        """Run another agent of the definition as a nested session."""
        if state.definition.get_agent(agent_key) is None:
            raise ToolExecutionError(f"Unknown agent {agent_key}", error_type="not_found", tool=call.name)

        session = await self._activate(state, agent_key, text, parent=parent, allow_handoffs=False)
        try:
            return await self._advance(state, session, interruptible=False)
        except OperationCancelled:
            session.fail("cancelled")
            raise
        except AgentsEngineError as e:
            session.fail(e.message)
            raise ToolExecutionError(f"Agent {agent_key} failed: {e.message}", tool=call.name)

    async def _hand_off(self, state: RunState, origin: AgentSession, request: HandoffRequest) -> AgentSession:
        audit = {"run_id": state.run_id, "session_id": origin.id, "agent": origin.agent_key, "target": request.target}
        try:
            session = await run_cancellable(
                state.router.route(request, origin), state.cancel_event, self.grace_period,
            )
        except RoutingError as e:
            await self.audit_log.record("handoff_rejected", reason=e.message, **audit)
            raise

        origin.hand_off(request.target)
        await self.audit_log.record("handoff", payload=request.payload, target_session_id=session.id, **audit)
        state.current = session
        await self._register(state, session)
        return session

    async def _finish(self, state: RunState, session: AgentSession, content: str) -> Any:
        try:
            output = await run_cancellable(
                self.guardrails.validate_output(
                    session.definition.guardrails,
                    content,
                    self._guard_context(state, session.agent_key, session.id),
                ),
                state.cancel_event,
                self.grace_period,
            )
        except GuardrailViolation as e:
            session.fail(f"Output blocked by {e.guardrail}: {e.message}")
            raise
        session.complete(output)
        return output

    async def _check_input(self, state: RunState, agent_key: str, payload: Any) -> Any:
        agent = state.definition.agents[agent_key]
        return await run_cancellable(
            self.guardrails.validate_input(agent.guardrails, payload, self._guard_context(state, agent_key)),
            state.cancel_event,
            self.grace_period,
        )

    def _guard_context(self, state: RunState, agent_key: str, session_id: Optional[str] = None) -> Dict[str, Any]:
        return {"run_id": state.run_id, "agent": agent_key, "session_id": session_id}

    async def _activate(
        self,
        state: RunState,
        agent_key: str,
        input: Any,
        parent: Optional[AgentSession] = None,
        allow_handoffs: bool = True,
    ) -> AgentSession:
        agent = state.definition.agents[agent_key]
        runtime = state.runtime
        if not allow_handoffs and runtime.allow_handoffs:
            runtime = dataclasses.replace(runtime, allow_handoffs=False)

        session = AgentSession(
            agent_key,
            agent,
            resolve(agent_key, agent, runtime),
            history=[Message(role="user", content=_as_text(input))],
            parent_id=parent.id if parent else None,
        )
        await self._register(state, session)
        return session

    async def _register(self, state: RunState, session: AgentSession) -> None:
        state.sessions.append(session)
        await self.audit_log.record(
            "session_activated",
            run_id=state.run_id,
            session_id=session.id,
            agent=session.agent_key,
            parent_session_id=session.parent_id,
        )

    def _interrupted(self, state: RunState) -> WorkflowResult:
        interruptions = list(state.pending.interruptions)
        self._suspended[state.run_id] = state
        while len(self._suspended) > self.max_suspended_runs:
            expired, _ = self._suspended.popitem(last=False)
            logger.warning(f"Dropping interrupted run {expired}: more than {self.max_suspended_runs} awaiting approval")
        return self._result(
            state,
            WorkflowStatus.INTERRUPTED,
            reason=f"Awaiting approval for {len(interruptions)} tool call(s)",
            interruptions=interruptions,
        )

    def _failure(
        self,
        state: RunState,
        status: WorkflowStatus,
        error: BaseException,
        reason: Optional[str] = None,
    ) -> WorkflowResult:
        message = getattr(error, "message", None) or str(error) or type(error).__name__
        for session in state.sessions:
            if not session.is_terminal:
                session.fail(message)
        state.pending = None
        state.pending_session = None
        return self._result(state, status, reason=reason or message, error_type=type(error).__name__)

    def _result(
        self,
        state: RunState,
        status: WorkflowStatus,
        output: Any = None,
        reason: Optional[str] = None,
        error_type: Optional[str] = None,
        interruptions: Optional[list] = None,
    ) -> WorkflowResult:
        last = state.current or (state.sessions[-1] if state.sessions else None)
        completed_at = datetime.now(timezone.utc)
        return WorkflowResult(
            run_id=state.run_id,
            status=status,
            output=output,
            reason=reason,
            error_type=error_type,
            trace=[session.trace() for session in state.sessions],
            turns_used=state.budget.used,
            last_session_id=last.id if last else None,
            last_agent=last.agent_key if last else None,
            interruptions=interruptions or [],
            started_at=state.started_at,
            completed_at=completed_at,
            duration_ms=int((completed_at - state.started_at).total_seconds() * 1000),
        )


def _as_text(payload: Any) -> str:
    if isinstance(payload, str):
        return payload
    return json.dumps(payload, default=str)
