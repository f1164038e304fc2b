"""Mask credentials that appear in audited commands."""

from __future__ import annotations

import re
from typing import Any

REDACTED = "***REDACTED***"

_SENSITIVE_KEYWORDS = (
    "token",
    "secret",
    "password",
    "api_key",
    "apikey",
    "authorization",
    "credential",
    "private_key",
)

_BEARER_RE = re.compile(r"(?i)\bBearer\s+[A-Za-z0-9._\-]+")
# --password=x, --token x, -p=x style flags
_FLAG_RE = re.compile(r"(?i)(--?(?:password|passwd|token|secret|api[-_]?key)[= ])(\S+)")
# FOO_TOKEN=x env assignments in front of a command
_ENV_RE = re.compile(r"\b((?:[A-Z][A-Z0-9_]*_)?(?:TOKEN|SECRET|PASSWORD|API_KEY))=(\S+)")
_SECRET_VALUE_PATTERNS = (
    re.compile(r"\bsk-[A-Za-z0-9]{8,}\b"),
    re.compile(r"\bgh[pousr]_[A-Za-z0-9]{20,}\b"),
    re.compile(r"\bAKIA[0-9A-Z]{16}\b"),
)


def _is_sensitive_key(key: str | None) -> bool:
    if not key:
        return False
    normalized = key.lower().replace("-", "_")
    return any(token in normalized for token in _SENSITIVE_KEYWORDS)


def redact_text(text: str) -> str:
    """Mask secret-looking values inside free text such as a shell command."""
    redacted = _BEARER_RE.sub(f"Bearer {REDACTED}", text)
    redacted = _FLAG_RE.sub(lambda m: f"{m.group(1)}{REDACTED}", redacted)
    redacted = _ENV_RE.sub(lambda m: f"{m.group(1)}={REDACTED}", redacted)
    for pattern in _SECRET_VALUE_PATTERNS:
        redacted = pattern.sub(REDACTED, redacted)
    return redacted


def _redact(value: Any, key: str | None = None) -> Any:
    if _is_sensitive_key(key):
        return REDACTED

    if isinstance(value, dict):
        return {k: _redact(v, str(k)) for k, v in value.items()}

    if isinstance(value, list):
        return [_redact(item, key) for item in value]

    if isinstance(value, str):
        return redact_text(value)

    return value


def redact_payload(payload: dict[str, Any]) -> dict[str, Any]:
    """Return a redacted copy of an audit payload."""
    return _redact(payload)
