"""
Tool execution sandbox.

Every tool call passes through resolution, argument validation, security
policy and approval checks before it runs. Calls within one batch execute
concurrently and independently; each produces exactly one ToolResult in the
position of its call.
"""

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import jsonschema

from ..core.audit import AuditLog
from ..core.cancellation import run_cancellable
from ..core.errors import ExecutionError, OperationCancelled, ToolExecutionError
from ..models.tools import (
    AgentTool,
    ApprovalDecision,
    BaseTool,
    ExternalProtocolTool,
    FunctionTool,
    HostedTool,
    Interruption,
    ToolCall,
    ToolErrorType,
    ToolKind,
    ToolResult,
)
from ..tools.hosted import HostedToolClient
from ..tools.mcp_binding import MCPClient
from .approval import ApprovalChecker
from .policy import PolicyEngine, SecurityPolicy
from .registry import ToolRegistry

logger = logging.getLogger(__name__)

# (agent key, input text, originating call) -> nested agent output
AgentRunner = Callable[[str, str, ToolCall], Awaitable[Any]]


@dataclass
class BatchContext:
    """Per-batch execution context."""
    agent: str
    run_id: Optional[str] = None
    cancel_event: Optional[asyncio.Event] = None
    agent_runner: Optional[AgentRunner] = None
    allow_interruptions: bool = True


class BatchOutcome:
    """
    Results of one batch, aligned with the calls that produced them.

    A slot stays None while its call is suspended as an interruption.
    """

    def __init__(self, calls: List[ToolCall]):
        self.calls = list(calls)
        self.results: List[Optional[ToolResult]] = [None] * len(self.calls)
        self.interruptions: List[Interruption] = []

    @property
    def complete(self) -> bool:
        return all(r is not None for r in self.results)

    def index_of(self, call_id: str) -> int:
        for index, call in enumerate(self.calls):
            if call.id == call_id:
                return index
        raise ExecutionError(f"Unknown tool call id: {call_id}")

    def ordered_results(self) -> List[ToolResult]:
        """Results in call order; only valid once the batch is complete."""
        if not self.complete:
            raise ExecutionError("Tool batch still has suspended calls")
        return list(self.results)


class ToolExecutionSandbox:
    """
    Mediates every tool call through policy, approval, limits and audit.

    The registry, policy and clients are shared read-only across runs; the
    audit log is the only shared mutable sink.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        policy: Optional[SecurityPolicy] = None,
        audit_log: Optional[AuditLog] = None,
        approval_checker: Optional[ApprovalChecker] = None,
        mcp_clients: Optional[Dict[str, MCPClient]] = None,
        hosted_client: Optional[HostedToolClient] = None,
        default_timeout: float = 30.0,
        grace_period: float = 1.0,
    ):
        """
        Initialize sandbox.

        Args:
            registry: Tool registry (frozen on first use)
            policy: Security policy, permissive defaults if omitted
            audit_log: Append-only audit sink
            approval_checker: Approval rules, built from the policy's risk patterns if omitted
            mcp_clients: MCP clients keyed by server name
            hosted_client: Client for gateway-hosted capabilities
            default_timeout: Per-call timeout when the tool sets none
            grace_period: Seconds a cancelled call may take to unwind
        """
        self.registry = registry
        self.policy = policy or SecurityPolicy()
        self.policy_engine = PolicyEngine(self.policy)
        self.audit_log = audit_log if audit_log is not None else AuditLog()
        self.approval_checker = approval_checker or ApprovalChecker(self.policy.risk_patterns)
        self.mcp_clients = mcp_clients or {}
        self.hosted_client = hosted_client
        self.default_timeout = default_timeout
        self.grace_period = grace_period

        self._dispatchers: Dict[ToolKind, Callable[[Any, ToolCall, BatchContext], Awaitable[Any]]] = {
            ToolKind.FUNCTION: self._run_function,
            ToolKind.HOSTED: self._run_hosted,
            ToolKind.AGENT: self._run_agent,
            ToolKind.EXTERNAL_PROTOCOL: self._run_external,
        }

    async def execute(self, calls: List[ToolCall], context: BatchContext) -> BatchOutcome:
        """
        Execute a batch of tool calls.

        Args:
            calls: Calls from one reasoning turn, in model order
            context: Batch context (agent, run, cancellation)

        Returns:
            BatchOutcome; incomplete if any call was suspended for approval
        """
        self.registry.freeze()
        outcome = BatchOutcome(calls)
        runnable: List[Tuple[int, ToolCall, BaseTool]] = []

        for index, call in enumerate(calls):
            await self._audit("tool_call", call, context, arguments=call.arguments)

            try:
                tool, rejection = self._prepare(call)
                requirement = self.approval_checker.check(tool, call.arguments) if rejection is None else None
            except Exception as e:
                logger.warning(f"Checks for tool {call.name} ({call.id}) raised: {e}")
                rejection = ToolResult.failed(call, ToolErrorType.EXECUTION_ERROR, f"{type(e).__name__}: {e}")

            if rejection is not None:
                outcome.results[index] = rejection
                await self._audit_result(rejection, call, context)
                continue

            if requirement.needs_approval:
                if not context.allow_interruptions:
                    result = ToolResult.failed(
                        call,
                        ToolErrorType.APPROVAL_REJECTED,
                        f"{requirement.reason}; approval is not available in this context",
                    )
                    outcome.results[index] = result
                    await self._audit_result(result, call, context)
                    continue

                suspended = call.model_copy(update={"needs_approval": True})
                outcome.calls[index] = suspended
                interruption = Interruption(
                    call=suspended,
                    session_id=call.session_id,
                    agent=context.agent,
                    reason=requirement.reason,
                    risk_level=requirement.risk_level,
                )
                outcome.interruptions.append(interruption)
                await self._audit(
                    "approval_requested", call, context,
                    reason=requirement.reason, risk_level=requirement.risk_level,
                )
                continue

            runnable.append((index, call, tool))

        await self._run_all(outcome, runnable, context)
        return outcome

    async def resume(
        self,
        outcome: BatchOutcome,
        decisions: Dict[str, ApprovalDecision],
        context: BatchContext,
    ) -> BatchOutcome:
        """
        Apply approve/reject decisions to suspended calls.

        Rejected calls resolve to an approval_rejected failure, approved calls
        execute. Calls without a decision stay suspended.

        Args:
            outcome: Outcome returned by execute()
            decisions: Decisions keyed by call id
            context: Batch context

        Returns:
            The same outcome, updated in place
        """
        remaining: List[Interruption] = []
        runnable: List[Tuple[int, ToolCall, BaseTool]] = []

        for interruption in outcome.interruptions:
            call = interruption.call
            decision = decisions.get(call.id)
            if decision is None:
                remaining.append(interruption)
                continue

            await self._audit(
                "approval_decision", call, context,
                approved=decision.approved, reason=decision.reason, approver=decision.approver,
            )
            index = outcome.index_of(call.id)

            if not decision.approved:
                result = ToolResult.failed(
                    call,
                    ToolErrorType.APPROVAL_REJECTED,
                    decision.reason or "Rejected by approver",
                )
                outcome.results[index] = result
                await self._audit_result(result, call, context)
                continue

            runnable.append((index, call, self.registry.get(call.name)))

        outcome.interruptions = remaining
        await self._run_all(outcome, runnable, context)
        return outcome

    def _prepare(self, call: ToolCall) -> Tuple[Optional[BaseTool], Optional[ToolResult]]:
        """Resolve the tool and apply static checks; returns (tool, rejection)."""
        if call.argument_error:
            return None, ToolResult.failed(call, ToolErrorType.INVALID_ARGUMENTS, call.argument_error)

        tool = self.registry.get(call.name)
        if tool is None:
            return None, ToolResult.failed(call, ToolErrorType.NOT_FOUND, f"Unknown tool: {call.name}")

        try:
            jsonschema.validate(instance=call.arguments, schema=tool.parameters)
        except jsonschema.ValidationError as e:
            return None, ToolResult.failed(call, ToolErrorType.INVALID_ARGUMENTS, e.message)
        except jsonschema.SchemaError as e:
            return None, ToolResult.failed(call, ToolErrorType.EXECUTION_ERROR, f"Invalid tool schema: {e.message}")

        decision = self.policy_engine.evaluate(tool, call)
        if not decision.is_allowed:
            error_type = ToolErrorType(decision.error_type or ToolErrorType.POLICY_DENIED.value)
            return None, ToolResult.failed(call, error_type, "; ".join(decision.reasons))

        return tool, None

    async def _run_all(
        self,
        outcome: BatchOutcome,
        runnable: List[Tuple[int, ToolCall, BaseTool]],
        context: BatchContext,
    ) -> None:
        if not runnable:
            return

        semaphore = asyncio.Semaphore(self.policy.max_concurrent_calls)
        results = await asyncio.gather(*[
            self._run_one(call, tool, context, semaphore) for _, call, tool in runnable
        ])
        for (index, _, _), result in zip(runnable, results):
            outcome.results[index] = result

    async def _run_one(
        self,
        call: ToolCall,
        tool: BaseTool,
        context: BatchContext,
        semaphore: asyncio.Semaphore,
    ) -> ToolResult:
        timeout = self.policy_engine.timeout_for(tool, self.default_timeout)
        started = time.monotonic()

        async with semaphore:
            try:
                data = await run_cancellable(
                    asyncio.wait_for(self._dispatchers[tool.kind](tool, call, context), timeout),
                    context.cancel_event,
                    grace_period=self.grace_period,
                )
            except OperationCancelled:
                result = ToolResult.failed(call, ToolErrorType.CANCELLED, "Cancelled before completion")
            except asyncio.TimeoutError:
                result = ToolResult.failed(call, ToolErrorType.TIMEOUT, f"Timed out after {timeout:.1f}s")
            except ToolExecutionError as e:
                result = ToolResult.failed(call, _error_type(e.error_type), e.message)
            except Exception as e:
                logger.warning(f"Tool {call.name} ({call.id}) raised: {e}")
                result = ToolResult.failed(call, ToolErrorType.EXECUTION_ERROR, f"{type(e).__name__}: {e}")
            else:
                limit_reason = self.policy_engine.check_output(data)
                if limit_reason:
                    result = ToolResult.failed(call, ToolErrorType.RESOURCE_LIMIT, limit_reason)
                else:
                    result = ToolResult.ok(call, data)

        result.duration_ms = int((time.monotonic() - started) * 1000)
        await self._audit_result(result, call, context)
        return result

    async def _run_function(self, tool: FunctionTool, call: ToolCall, context: BatchContext) -> Any:
        if inspect.iscoroutinefunction(tool.handler):
            return await tool.handler(**call.arguments)
        result = await asyncio.to_thread(tool.handler, **call.arguments)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def _run_hosted(self, tool: HostedTool, call: ToolCall, context: BatchContext) -> Any:
        if self.hosted_client is None:
            raise ToolExecutionError("No hosted tool client configured", tool=tool.name)
        return await self.hosted_client.invoke(tool.capability, call.arguments)

    async def _run_agent(self, tool: AgentTool, call: ToolCall, context: BatchContext) -> Any:
        if context.agent_runner is None:
            raise ToolExecutionError("Agent tools are not available in this context", tool=tool.name)
        text = call.arguments.get(tool.input_param)
        if text is None:
            text = str(call.arguments)
        return await context.agent_runner(tool.agent, str(text), call)

    async def _run_external(self, tool: ExternalProtocolTool, call: ToolCall, context: BatchContext) -> Any:
        client = self.mcp_clients.get(tool.server)
        if client is None:
            raise ToolExecutionError(f"No MCP client configured for server {tool.server}", tool=tool.name)
        return await client.call_tool(tool.remote_name or tool.name, call.arguments)

    async def _audit(self, event_type: str, call: ToolCall, context: BatchContext, **data: Any) -> None:
        await self.audit_log.record(
            event_type,
            run_id=context.run_id,
            session_id=call.session_id,
            agent=context.agent,
            call_id=call.id,
            tool=call.name,
            **data,
        )

    async def _audit_result(self, result: ToolResult, call: ToolCall, context: BatchContext) -> None:
        await self._audit(
            "tool_result", call, context,
            success=result.success,
            data=result.data if result.success else None,
            error=result.error.model_dump(mode="json") if result.error else None,
            duration_ms=result.duration_ms,
        )


def _error_type(value: str) -> ToolErrorType:
    try:
        return ToolErrorType(value)
    except ValueError:
        return ToolErrorType.EXECUTION_ERROR
