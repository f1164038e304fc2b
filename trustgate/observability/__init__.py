"""Decision log and redaction."""

from trustgate.observability.audit import DecisionLog
from trustgate.observability.redaction import REDACTED, redact_payload, redact_text

__all__ = ["DecisionLog", "REDACTED", "redact_payload", "redact_text"]
