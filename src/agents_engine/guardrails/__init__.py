"""
Input and output guardrails.
"""

from .base import FunctionGuardrail, Guardrail, GuardrailStage
from .builtin import (
    BlockedPatternsGuardrail,
    JsonSchemaGuardrail,
    MaxLengthGuardrail,
    NoDestructiveOperationsGuardrail,
    RedactSecretsGuardrail,
    build_guardrail,
    default_guardrails,
)
from .checker import GuardrailChecker

__all__ = [
    "BlockedPatternsGuardrail",
    "FunctionGuardrail",
    "Guardrail",
    "GuardrailChecker",
    "GuardrailStage",
    "JsonSchemaGuardrail",
    "MaxLengthGuardrail",
    "NoDestructiveOperationsGuardrail",
    "RedactSecretsGuardrail",
    "build_guardrail",
    "default_guardrails",
]
