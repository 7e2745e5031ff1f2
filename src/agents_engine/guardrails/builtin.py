"""
Built-in guardrails.
"""

import json
import logging
import re
from typing import Any, Dict, Iterable, List, Optional

import jsonschema

from ..core.errors import ConfigurationError
from ..core.redaction import redact
from ..models.results import GuardrailVerdict
from .base import Guardrail, GuardrailStage, payload_text

logger = logging.getLogger(__name__)

DESTRUCTIVE_PATTERNS = [
    r"\brm\s+-[a-z]*r[a-z]*f?\s+/",
    r"\bdrop\s+(table|database|schema)\b",
    r"\btruncate\s+table\b",
    r"\bdelete\s+from\s+\w+\s*(;|$)",
    r"\bmkfs(\.\w+)?\b",
    r"\bdd\s+if=.*\bof=/dev/",
    r"\bgit\s+push\s+.*--force\b",
    r"\bformat\s+[a-z]:",
    r":\(\)\s*\{\s*:\|:&\s*\};:",
]


class MaxLengthGuardrail(Guardrail):
    """Blocks payloads longer than max_chars."""

    def __init__(self, name: str = "max_length", max_chars: int = 20_000, stages=None):
        super().__init__(name, stages)
        self.max_chars = max_chars

    async def check(self, payload: Any, context: Dict[str, Any]) -> GuardrailVerdict:
        length = len(payload_text(payload))
        if length > self.max_chars:
            return GuardrailVerdict.block(f"Payload is {length} characters, limit is {self.max_chars}")
        return GuardrailVerdict.allow()


class BlockedPatternsGuardrail(Guardrail):
    """Blocks payloads matching any of a list of regexes."""

    def __init__(self, name: str = "blocked_patterns", patterns: Iterable[str] = (), stages=None):
        super().__init__(name, stages)
        try:
            self.patterns = [re.compile(p, re.IGNORECASE) for p in patterns]
        except re.error as e:
            raise ConfigurationError(f"Guardrail {name}: invalid pattern: {e}")

    async def check(self, payload: Any, context: Dict[str, Any]) -> GuardrailVerdict:
        text = payload_text(payload)
        for pattern in self.patterns:
            if pattern.search(text):
                return GuardrailVerdict.block(f"Matched blocked pattern {pattern.pattern!r}")
        return GuardrailVerdict.allow()


class NoDestructiveOperationsGuardrail(BlockedPatternsGuardrail):
    """Blocks requests for obviously destructive shell or SQL operations."""

    def __init__(self, name: str = "no_destructive_operations", stages=None):
        super().__init__(name, DESTRUCTIVE_PATTERNS, stages)

    async def check(self, payload: Any, context: Dict[str, Any]) -> GuardrailVerdict:
        verdict = await super().check(payload, context)
        if not verdict.allowed:
            verdict.reason = f"Destructive operation requested ({verdict.reason})"
        return verdict


class RedactSecretsGuardrail(Guardrail):
    """Replaces credentials in the payload instead of blocking."""

    async def check(self, payload: Any, context: Dict[str, Any]) -> GuardrailVerdict:
        cleaned = redact(payload)
        if cleaned != payload:
            return GuardrailVerdict.sanitize(cleaned, "Credentials redacted")
        return GuardrailVerdict.allow()


class JsonSchemaGuardrail(Guardrail):
    """Requires the payload (or its JSON decoding) to satisfy a schema."""

    stages = (GuardrailStage.OUTPUT,)

    def __init__(self, name: str = "json_schema", schema: Optional[Dict[str, Any]] = None, stages=None):
        super().__init__(name, stages)
        self.schema = schema or {}
        try:
            jsonschema.Draft7Validator.check_schema(self.schema)
        except jsonschema.SchemaError as e:
            raise ConfigurationError(f"Guardrail {name}: invalid schema: {e.message}")

    async def check(self, payload: Any, context: Dict[str, Any]) -> GuardrailVerdict:
        instance = payload
        if isinstance(payload, str):
            try:
                instance = json.loads(payload)
            except json.JSONDecodeError:
                return GuardrailVerdict.block("Payload is not valid JSON")
        try:
            jsonschema.validate(instance=instance, schema=self.schema)
        except jsonschema.ValidationError as e:
            return GuardrailVerdict.block(f"Payload does not match schema: {e.message}")
        return GuardrailVerdict.allow()


GUARDRAIL_TYPES = {
    "max_length": MaxLengthGuardrail,
    "blocked_patterns": BlockedPatternsGuardrail,
    "no_destructive_operations": NoDestructiveOperationsGuardrail,
    "redact_secrets": RedactSecretsGuardrail,
    "json_schema": JsonSchemaGuardrail,
}


def build_guardrail(name: str, spec: Dict[str, Any]) -> Guardrail:
    """
    Build a configured guardrail from a definition document entry.

    Args:
        name: Name agents refer to
        spec: Mapping with "type" plus the type's options

    Raises:
        ConfigurationError: On unknown type or bad options
    """
    options = dict(spec)
    kind = options.pop("type", name)
    guardrail_cls = GUARDRAIL_TYPES.get(kind)
    if guardrail_cls is None:
        raise ConfigurationError(f"Unknown guardrail type: {kind}")
    try:
        return guardrail_cls(name=name, **options)
    except TypeError as e:
        raise ConfigurationError(f"Guardrail {name}: {e}")


def default_guardrails() -> List[Guardrail]:
    """Guardrails available without configuration."""
    return [
        MaxLengthGuardrail(),
        NoDestructiveOperationsGuardrail(),
        RedactSecretsGuardrail("redact_secrets"),
    ]
