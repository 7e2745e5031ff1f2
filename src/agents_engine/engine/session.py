"""
Agent session: one agent's conversation and lifecycle within a run.
"""

import json
import logging
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from ..core.cancellation import run_cancellable
from ..core.errors import ExecutionError, RoutingError, TurnLimitExceeded
from ..models.definition import AgentDefinition
from ..models.results import (
    FinalOutput,
    HandoffRequest,
    HandoffRequested,
    SessionStatus,
    SessionTrace,
    ToolCallsPending,
)
from ..models.tools import ToolCall, ToolResult
from ..reasoning.models import ChatRequest, ChatResponse, Message
from .resolver import HANDOFF_PREFIX, ResolvedConfig

logger = logging.getLogger(__name__)

StepOutcome = Union[FinalOutput, ToolCallsPending, HandoffRequested]
ReasoningCall = Callable[[ChatRequest], Awaitable[ChatResponse]]

TRANSITIONS: Dict[SessionStatus, tuple] = {
    SessionStatus.PENDING: (SessionStatus.ACTIVE, SessionStatus.FAILED),
    SessionStatus.ACTIVE: (
        SessionStatus.AWAITING_TOOL_RESULTS,
        SessionStatus.AWAITING_APPROVAL,
        SessionStatus.HANDED_OFF,
        SessionStatus.COMPLETED,
        SessionStatus.FAILED,
    ),
    SessionStatus.AWAITING_TOOL_RESULTS: (
        SessionStatus.ACTIVE,
        SessionStatus.AWAITING_APPROVAL,
        SessionStatus.FAILED,
    ),
    SessionStatus.AWAITING_APPROVAL: (
        SessionStatus.AWAITING_TOOL_RESULTS,
        SessionStatus.ACTIVE,
        SessionStatus.FAILED,
    ),
    SessionStatus.HANDED_OFF: (),
    SessionStatus.COMPLETED: (),
    SessionStatus.FAILED: (),
}


class AgentSession:
    """
    Conversation state and state machine for one activated agent.

    History is ordered: system instructions, seeded messages, then
    assistant turns and tool results as they happen.
    """

    def __init__(
        self,
        agent_key: str,
        definition: AgentDefinition,
        config: ResolvedConfig,
        history: Optional[List[Message]] = None,
        session_id: Optional[str] = None,
        parent_id: Optional[str] = None,
    ):
        self.id = session_id or f"sess_{uuid.uuid4().hex[:12]}"
        self.agent_key = agent_key
        self.definition = definition
        self.config = config
        self.parent_id = parent_id
        self.messages: List[Message] = [Message(role="system", content=config.instructions)]
        self.messages.extend(history or [])

        self.status = SessionStatus.PENDING
        self.turns = 0
        self.activated_at_turn: Optional[int] = None
        self.output: Optional[Any] = None
        self.error: Optional[str] = None
        self.handed_off_to: Optional[str] = None

    def __repr__(self) -> str:
        return f"AgentSession(id={self.id!r}, agent={self.agent_key!r}, status={self.status.value})"

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def transition(self, status: SessionStatus) -> None:
        """
        Move to a new status.

        Raises:
            ExecutionError: If the transition is not allowed
        """
        if status not in TRANSITIONS[self.status]:
            raise ExecutionError(
                f"Illegal session transition {self.status.value} -> {status.value}",
                session_id=self.id,
                turn=self.turns,
            )
        logger.debug(f"Session {self.id} ({self.agent_key}): {self.status.value} -> {status.value}")
        self.status = status

    def ensure_turn_available(self) -> None:
        """Raise TurnLimitExceeded if the per-session cap is spent."""
        cap = self.definition.max_turns
        if cap is not None and self.turns >= cap:
            raise TurnLimitExceeded(
                f"Agent {self.agent_key} exceeded its max_turns={cap}",
                scope="session",
                session_id=self.id,
                turn=self.turns,
            )

    def activate(self, turn: int) -> None:
        """Pending -> active, recording the workflow turn of activation."""
        self.transition(SessionStatus.ACTIVE)
        self.activated_at_turn = turn

    async def step(
        self,
        call: ReasoningCall,
        cancel_event=None,
        grace_period: float = 0.0,
    ) -> StepOutcome:
        """
        Run one reasoning turn and classify the response.

        Args:
            call: Coroutine function performing the reasoning call
            cancel_event: Run cancellation signal
            grace_period: Seconds the cancelled call may take to unwind

        Returns:
            FinalOutput, ToolCallsPending or HandoffRequested
        """
        if self.status != SessionStatus.ACTIVE:
            raise ExecutionError(
                f"Cannot step session in status {self.status.value}",
                session_id=self.id,
                turn=self.turns,
            )
        self.ensure_turn_available()
        self.turns += 1

        request = ChatRequest(
            model=self.config.model,
            messages=list(self.messages),
            tools=list(self.config.catalog) or None,
            tool_choice="auto" if self.config.catalog else None,
            metadata={"session_id": self.id, "agent": self.agent_key},
        )
        response = await run_cancellable(call(request), cancel_event, grace_period)
        return self._classify(response)

    def _classify(self, response: ChatResponse) -> StepOutcome:
        requested = response.get_tool_calls()

        if not requested:
            content = response.get_content() or ""
            self.messages.append(Message(role="assistant", content=content))
            return FinalOutput(content=content)

        if self.config.allow_handoffs:
            handoff = next((tc for tc in requested if tc.name.startswith(HANDOFF_PREFIX)), None)
            if handoff is not None:
                if len(requested) > 1:
                    dropped = [tc.name for tc in requested if tc is not handoff]
                    logger.warning(f"Session {self.id}: handoff {handoff.name} wins, dropping calls {dropped}")
                try:
                    payload = handoff.parse_arguments()
                except ValueError as e:
                    raise RoutingError(
                        f"Handoff payload is not a JSON object: {e}",
                        target=handoff.name[len(HANDOFF_PREFIX):],
                        session_id=self.id,
                        turn=self.turns,
                    )
                content = response.get_content()
                self.messages.append(Message(role="assistant", content=content, tool_calls=[handoff]))
                return HandoffRequested(
                    request=HandoffRequest(
                        origin_session_id=self.id,
                        origin_agent=self.agent_key,
                        target=handoff.name[len(HANDOFF_PREFIX):],
                        payload=payload,
                    ),
                    call_id=handoff.id,
                )

        calls = []
        for tc in requested:
            try:
                calls.append(ToolCall(id=tc.id, name=tc.name, arguments=tc.parse_arguments(), session_id=self.id))
            except ValueError as e:
                calls.append(ToolCall(id=tc.id, name=tc.name, session_id=self.id, argument_error=f"Invalid arguments: {e}"))

        self.messages.append(Message(role="assistant", content=response.get_content(), tool_calls=requested))
        self.transition(SessionStatus.AWAITING_TOOL_RESULTS)
        return ToolCallsPending(calls=calls)

    def append_tool_results(self, results: List[ToolResult]) -> None:
        """Append results in call order and return to active."""
        for result in results:
            self.messages.append(Message(
                role="tool",
                tool_call_id=result.call_id,
                name=result.tool_name,
                content=json.dumps(result.to_payload(), default=str),
            ))
        self.transition(SessionStatus.ACTIVE)

    def complete(self, output: Any) -> None:
        self.transition(SessionStatus.COMPLETED)
        self.output = output

    def hand_off(self, target: str) -> None:
        self.transition(SessionStatus.HANDED_OFF)
        self.handed_off_to = target

    def fail(self, reason: str) -> None:
        if self.is_terminal:
            return
        self.transition(SessionStatus.FAILED)
        self.error = reason

    def trace(self) -> SessionTrace:
        """Snapshot for the run trace."""
        return SessionTrace(
            session_id=self.id,
            agent=self.agent_key,
            status=self.status,
            turns=self.turns,
            activated_at_turn=self.activated_at_turn or 0,
            messages=list(self.messages),
            handed_off_to=self.handed_off_to,
            output=self.output,
            error=self.error,
        )
