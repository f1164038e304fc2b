"""Shared core DTOs used across the safety and trust layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Union
from uuid import uuid4


class PatternCategory(Enum):
    """Kind of dangerous literal found in a command string."""

    DESTRUCTIVE = "destructive"
    SHELL_CONTROL = "shell_control"
    IO_REDIRECTION = "io_redirection"


@dataclass(frozen=True, slots=True)
class DangerousPatternMatch:
    """First dangerous literal found in a command."""

    pattern: str
    category: PatternCategory


@dataclass(frozen=True, slots=True)
class Native:
    """Tool built into the assistant."""


@dataclass(frozen=True, slots=True)
class RemoteServer:
    """Tool exposed by a remote (plugin) tool server."""

    name: str


ToolOrigin = Union[Native, RemoteServer]


class PermissionVerdict(Enum):
    """Outcome handed back to the conversation loop."""

    ALLOW = "allow"  # run without asking
    ASK = "ask"  # pause for confirmation
    DENY = "deny"  # refuse outright


@dataclass(frozen=True, slots=True)
class CommandAssessment:
    """Verdict of the acceptance procedure for one shell command."""

    command: str
    requires_acceptance: bool
    reason: str
    dangerous: DangerousPatternMatch | None = None
    trusted: bool = False
    parsed: bool = True

    @property
    def vetoed(self) -> bool:
        """Dangerous or unparseable; no trust setting may auto-run it."""
        return self.dangerous is not None or not self.parsed


@dataclass(slots=True)
class DecisionEvent:
    """Audit record of one trust decision."""

    kind: str  # "command" or "tool"
    subject: str
    verdict: str
    reason: str = ""
    profile: str | None = None
    agent: str | None = None
    session_id: str | None = None
    event_id: str = field(default_factory=lambda: uuid4().hex)
    ts: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    attrs: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable payload."""
        return {
            "event_id": self.event_id,
            "ts": self.ts.isoformat(),
            "kind": self.kind,
            "subject": self.subject,
            "verdict": self.verdict,
            "reason": self.reason,
            "profile": self.profile,
            "agent": self.agent,
            "session_id": self.session_id,
            "attrs": self.attrs,
        }
