"""Error taxonomy for the trust engine.

None of these are fatal: callers turn them into a message for the user, and the
worst outcome of any failure path is asking the human before running something.
"""

from __future__ import annotations

from pathlib import Path

from trustgate.core.types import PatternCategory


class TrustGateError(Exception):
    """Base class for all trust engine errors."""


class PatternValidationError(TrustGateError):
    """A trusted-command pattern was rejected at write time."""

    def __init__(
        self,
        pattern: str,
        reason: str,
        category: PatternCategory | None = None,
    ) -> None:
        self.pattern = pattern
        self.reason = reason
        self.category = category
        super().__init__(reason)


class PatternNotFoundError(TrustGateError):
    """A pattern to remove does not exist in the target scope."""

    def __init__(self, pattern: str, scope: str) -> None:
        self.pattern = pattern
        self.scope = scope
        super().__init__(f"Trusted command pattern '{pattern}' not found in {scope} configuration")


class ToolNotFoundError(TrustGateError):
    """A tool referenced by a trust operation has no override to act on."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Tool '{name}' does not exist or is already in default settings")


class ConfigParseError(TrustGateError):
    """A persisted configuration file could not be parsed."""

    def __init__(self, path: Path, detail: str) -> None:
        self.path = path
        self.detail = detail
        super().__init__(f"Invalid configuration file '{path}': {detail}")


class PersistenceError(TrustGateError):
    """A configuration file could not be read or written."""

    def __init__(self, path: Path, detail: str) -> None:
        self.path = path
        self.detail = detail
        super().__init__(f"Failed to access '{path}': {detail}")
