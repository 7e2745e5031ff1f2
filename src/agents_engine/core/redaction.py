"""
Credential redaction applied before anything reaches the audit log.
"""

import re
from typing import Any

REDACTED = "***REDACTED***"

SENSITIVE_KEY_PATTERN = re.compile(
    r"(api[_-]?key|access[_-]?key|secret|(?:^|[_-])token$|password|passwd|authorization|credential|private[_-]?key)",
    re.IGNORECASE,
)

SECRET_VALUE_PATTERNS = [
    re.compile(r"\bsk-[A-Za-z0-9_\-]{8,}"),
    re.compile(r"(?i)\bbearer\s+[A-Za-z0-9._\-~+/]+=*"),
    re.compile(r"\bAKIA[0-9A-Z]{16}\b"),
    re.compile(r"\bgh[pousr]_[A-Za-z0-9]{20,}\b"),
    re.compile(r"\bxox[abprs]-[A-Za-z0-9\-]{10,}\b"),
    re.compile(r"(?i)\b(password|passwd|api[_-]?key|token|secret)\s*[=:]\s*\S+"),
]


def redact_text(text: str) -> str:
    """Mask secret-looking substrings in free text."""
    for pattern in SECRET_VALUE_PATTERNS:
        text = pattern.sub(REDACTED, text)
    return text


def redact(value: Any) -> Any:
    """
    Return a copy of value with credentials masked.

    Dict entries whose key looks sensitive are replaced wholesale; strings
    anywhere in the structure are scanned for known secret formats.
    """
    if isinstance(value, dict):
        return {
            k: REDACTED if isinstance(k, str) and SENSITIVE_KEY_PATTERN.search(k) else redact(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact(v) for v in value]
    if isinstance(value, str):
        return redact_text(value)
    return value
