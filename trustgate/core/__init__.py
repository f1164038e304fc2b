"""Core domain types and errors for the trust engine."""

from trustgate.core.errors import (
    ConfigParseError,
    PatternNotFoundError,
    PatternValidationError,
    PersistenceError,
    ToolNotFoundError,
    TrustGateError,
)
from trustgate.core.types import (
    CommandAssessment,
    DangerousPatternMatch,
    DecisionEvent,
    Native,
    PatternCategory,
    PermissionVerdict,
    RemoteServer,
    ToolOrigin,
)

__all__ = [
    "CommandAssessment",
    "ConfigParseError",
    "DangerousPatternMatch",
    "DecisionEvent",
    "Native",
    "PatternCategory",
    "PatternNotFoundError",
    "PatternValidationError",
    "PermissionVerdict",
    "PersistenceError",
    "RemoteServer",
    "ToolNotFoundError",
    "ToolOrigin",
    "TrustGateError",
]
