"""
Cooperative cancellation helpers shared by the engine and the sandbox.
"""

import asyncio
import logging
from typing import Any, Awaitable, Optional

from .errors import OperationCancelled

logger = logging.getLogger(__name__)


async def run_cancellable(
    awaitable: Awaitable[Any],
    cancel_event: Optional[asyncio.Event],
    grace_period: float = 0.0,
) -> Any:
    """
    Await an operation, abandoning it if the cancellation signal fires.

    Args:
        awaitable: Coroutine or future to run
        cancel_event: Shared cancellation signal (None means not cancellable)
        grace_period: Seconds to let the cancelled task unwind

    Returns:
        Result of the awaitable

    Raises:
        OperationCancelled: If the signal fired before completion
    """
    if cancel_event is None:
        return await awaitable

    task = asyncio.ensure_future(awaitable)
    if cancel_event.is_set():
        task.cancel()
        raise OperationCancelled("Operation cancelled before start")

    waiter = asyncio.ensure_future(cancel_event.wait())
    try:
        done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        waiter.cancel()

    if task in done:
        return task.result()

    task.cancel()
    if grace_period > 0:
        finished, _ = await asyncio.wait({task}, timeout=grace_period)
        if not finished:
            logger.warning("Cancelled operation did not finish within grace period")
    raise OperationCancelled("Operation cancelled")
