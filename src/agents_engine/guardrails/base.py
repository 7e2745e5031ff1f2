"""
Guardrail interface.

A guardrail inspects the run input (before the first reasoning call) or the
final output (before it is returned) and yields a GuardrailVerdict.
"""

import inspect
import json
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Optional, Union

from ..models.results import GuardrailVerdict


class GuardrailStage(str, Enum):
    """Point in the run where a guardrail applies."""
    INPUT = "input"
    OUTPUT = "output"


class Guardrail(ABC):
    """Abstract base class for guardrails."""

    stages = (GuardrailStage.INPUT, GuardrailStage.OUTPUT)

    def __init__(self, name: str, stages: Optional[Iterable[GuardrailStage]] = None):
        self.name = name
        if stages is not None:
            self.stages = tuple(GuardrailStage(s) for s in stages)

    def applies_to(self, stage: GuardrailStage) -> bool:
        return stage in self.stages

    @abstractmethod
    async def check(self, payload: Any, context: Dict[str, Any]) -> GuardrailVerdict:
        """
        Inspect a payload.

        Args:
            payload: Run input or final output
            context: Stage, agent, session and run identifiers

        Returns:
            GuardrailVerdict
        """
        pass


GuardrailFunction = Callable[[Any, Dict[str, Any]], Union[GuardrailVerdict, bool, Any]]


class FunctionGuardrail(Guardrail):
    """
    Wraps a sync or async callable as a guardrail.

    The callable may return a GuardrailVerdict or a bool.
    """

    def __init__(
        self,
        name: str,
        func: GuardrailFunction,
        stages: Optional[Iterable[GuardrailStage]] = None,
    ):
        super().__init__(name, stages)
        self.func = func

    async def check(self, payload: Any, context: Dict[str, Any]) -> GuardrailVerdict:
        verdict = self.func(payload, context)
        if inspect.isawaitable(verdict):
            verdict = await verdict
        if isinstance(verdict, GuardrailVerdict):
            return verdict
        if verdict:
            return GuardrailVerdict.allow()
        return GuardrailVerdict.block(f"Rejected by {self.name}")


def payload_text(payload: Any) -> str:
    """Text form of a payload for pattern and length checks."""
    if isinstance(payload, str):
        return payload
    return json.dumps(payload, default=str)
