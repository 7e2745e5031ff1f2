"""
Bounded exponential-backoff retry around a reasoning client.
"""

import logging
from typing import Any, Dict, Optional

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from ..core.errors import ReasoningServiceError
from ..core.audit import AuditLog
from .interface import AbstractReasoningClient
from .models import ChatRequest, ChatResponse

logger = logging.getLogger(__name__)


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, ReasoningServiceError) and exc.retryable


class wait_retry_after(wait_base):
    """
    Exponential backoff that never waits less than the server's retry_after hint.

    The hint is still capped by the backoff ceiling.
    """

    def __init__(self, multiplier: float, max: float):
        self.backoff = wait_exponential(multiplier=multiplier, max=max)
        self.max = max

    def __call__(self, retry_state: RetryCallState) -> float:
        wait = self.backoff(retry_state)
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        retry_after = getattr(exc, "retry_after", None)
        if retry_after:
            wait = min(max(wait, float(retry_after)), self.max)
        return wait


class RetryingReasoningClient(AbstractReasoningClient):
    """
    Wraps a reasoning client with tenacity-driven retries.

    Only transient ReasoningServiceErrors are retried; authentication and
    invalid-request errors surface immediately. Every retry is written to
    the audit log.
    """

    def __init__(
        self,
        inner: AbstractReasoningClient,
        audit_log: Optional[AuditLog] = None,
        max_attempts: int = 3,
        backoff_multiplier: float = 0.5,
        backoff_max: float = 8.0,
    ):
        """
        Initialize retrying client.

        Args:
            inner: Client performing the actual call
            audit_log: Sink for retry events
            max_attempts: Attempt ceiling, first call included
            backoff_multiplier: Base of the exponential wait, in seconds
            backoff_max: Upper bound on a single wait
        """
        self.inner = inner
        self.audit_log = audit_log
        self.max_attempts = max_attempts
        self.backoff_multiplier = backoff_multiplier
        self.backoff_max = backoff_max

    @property
    def name(self) -> str:
        return self.inner.name

    async def close(self) -> None:
        await self.inner.close()

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            f"Reasoning call via {self.inner.name} failed "
            f"(attempt {retry_state.attempt_number}/{self.max_attempts}): {exc}"
        )

    async def complete(self, request: ChatRequest, audit_context: Optional[Dict[str, Any]] = None) -> ChatResponse:
        """
        Perform one logical reasoning call with retries.

        Args:
            request: Chat completion request
            audit_context: run/session identifiers attached to retry events

        Returns:
            Chat completion response

        Raises:
            ReasoningServiceError: When attempts are exhausted or the error is permanent
        """
        audit_context = audit_context or {}
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_retry_after(self.backoff_multiplier, self.backoff_max),
            retry=retry_if_exception(_is_retryable),
            before_sleep=self._log_retry,
            reraise=True,
        )

        async for attempt in retrying:
            with attempt:
                attempt_number = attempt.retry_state.attempt_number
                if attempt_number > 1 and self.audit_log is not None:
                    await self.audit_log.record(
                        "reasoning_retry",
                        attempt=attempt_number,
                        max_attempts=self.max_attempts,
                        client=self.inner.name,
                        **audit_context,
                    )
                return await self.inner.complete(request)
