"""Redaction helpers for safe logging.

Occupant records carry NIK (national ID / employee ID) numbers, phone
numbers and emails. None of those may reach the logs in clear text.
"""

import re
from typing import Any

_PHONE_PATTERN = re.compile(r"\+?\d[\d\s\-()]{8,}\d")
_EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
# 16-digit KTP numbers and long employee IDs
_NIK_PATTERN = re.compile(r"\b\d{8,16}\b")

# Field names whose values are always masked, whatever they look like
SENSITIVE_FIELDS = frozenset(
    {"nik", "identifier", "companion_nik", "requester_nik", "phone", "email", "name"}
)

_REDACTED = "[REDACTED]"


def redact_string(value: str) -> str:
    """Redact PII patterns from a string."""
    result = _EMAIL_PATTERN.sub(_REDACTED, value)
    result = _PHONE_PATTERN.sub(_REDACTED, result)
    result = _NIK_PATTERN.sub(_REDACTED, result)
    return result


def mask_identifier(value: str | None) -> str:
    """Keep the last four characters of an identifier, e.g. ``****5678``."""
    if not value:
        return "null"
    if len(value) <= 4:
        return "*" * len(value)
    return "*" * (len(value) - 4) + value[-4:]


def redact_value(value: Any) -> str:
    """Redact any value for safe logging. Returns string representation."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return redact_string(value)
    if isinstance(value, dict):
        return f"dict(keys={list(value.keys())})"
    if isinstance(value, (list, tuple)):
        return f"list(len={len(value)})"
    return f"<{type(value).__name__}>"


def safe_log_context(**kwargs: Any) -> dict[str, str]:
    """Build a context dict safe for logging. All values are redacted."""
    ctx: dict[str, str] = {}
    for key, value in kwargs.items():
        if key in SENSITIVE_FIELDS:
            ctx[key] = mask_identifier(value if isinstance(value, str) else None)
        else:
            ctx[key] = redact_value(value)
    return ctx
