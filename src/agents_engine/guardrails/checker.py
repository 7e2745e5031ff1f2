"""
Guardrail checker: runs named guardrails in order over input or output.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..core.errors import ConfigurationError, GuardrailViolation
from ..models.results import GuardrailVerdict
from .base import Guardrail, GuardrailStage
from .builtin import default_guardrails

logger = logging.getLogger(__name__)


class GuardrailChecker:
    """
    Registry and runner for guardrails.

    The first blocking verdict raises GuardrailViolation. A sanitizing
    verdict replaces the payload and later guardrails see the replacement.
    """

    def __init__(self, guardrails: Optional[Iterable[Guardrail]] = None, include_defaults: bool = True):
        self._guardrails: Dict[str, Guardrail] = {}
        if include_defaults:
            for guardrail in default_guardrails():
                self._guardrails[guardrail.name] = guardrail
        for guardrail in guardrails or []:
            self.register(guardrail, replace=True)

    def register(self, guardrail: Guardrail, replace: bool = False) -> Guardrail:
        """Register a guardrail under its name."""
        if guardrail.name in self._guardrails and not replace:
            raise ConfigurationError(f"Guardrail already registered: {guardrail.name}")
        self._guardrails[guardrail.name] = guardrail
        logger.info(f"Registered guardrail: {guardrail.name}")
        return guardrail

    def __contains__(self, name: str) -> bool:
        return name in self._guardrails

    def names(self) -> List[str]:
        return list(self._guardrails)

    async def validate_input(
        self,
        names: Sequence[str],
        payload: Any,
        context: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Run input guardrails.

        Args:
            names: Guardrail names in declared order
            payload: Run input
            context: Agent/session/run identifiers

        Returns:
            The payload, possibly sanitized

        Raises:
            GuardrailViolation: On the first blocking verdict
        """
        return await self._run(GuardrailStage.INPUT, names, payload, context or {})

    async def validate_output(
        self,
        names: Sequence[str],
        payload: Any,
        context: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Run output guardrails; same contract as validate_input."""
        return await self._run(GuardrailStage.OUTPUT, names, payload, context or {})

    async def _run(
        self,
        stage: GuardrailStage,
        names: Sequence[str],
        payload: Any,
        context: Dict[str, Any],
    ) -> Any:
        context = {**context, "stage": stage.value}

        for name in names:
            guardrail = self._guardrails.get(name)
            if guardrail is None:
                raise ConfigurationError(f"Unknown guardrail: {name}")
            if not guardrail.applies_to(stage):
                continue

            try:
                verdict = await guardrail.check(payload, context)
            except Exception as e:
                logger.exception(f"Guardrail {name} raised during {stage.value} check")
                verdict = GuardrailVerdict.block(f"Guardrail error: {e}")

            verdict.guardrail = name
            if not verdict.allowed:
                logger.info(f"Guardrail {name} blocked {stage.value}: {verdict.reason}")
                raise GuardrailViolation(
                    verdict.reason or f"Blocked by {name}",
                    guardrail=name,
                    stage=stage.value,
                    session_id=context.get("session_id"),
                )
            if verdict.is_modified:
                logger.info(f"Guardrail {name} sanitized {stage.value}: {verdict.reason}")
                payload = verdict.modified_payload

        return payload
