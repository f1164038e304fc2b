"""Decide whether a shell command must be confirmed by the user.

The procedure is ordered and each step is final:

1. tokenize (failure means ask),
2. dangerous-literal veto on the raw string (trust cannot override it),
3. explicit user trust,
4. pipe decomposition, rejecting pipes fused to neighbouring text,
5. every pipe segment must start with a readonly command (``find`` only without
   ``-exec``/``-delete``).

Unknown commands are never auto-approved.
"""

from __future__ import annotations

import shlex
from typing import Protocol

from loguru import logger

from trustgate.core.types import CommandAssessment
from trustgate.safety.dangerous_patterns import PIPE, classify, describe

# Commands that are safe to run without confirmation (POSIX and Windows).
READONLY_COMMANDS: frozenset[str] = frozenset(
    {"ls", "cat", "echo", "pwd", "which", "head", "tail", "find", "grep", "dir", "type"}
)

_FIND_MUTATING_FLAGS: tuple[str, ...] = ("-exec", "-delete")


class TrustedMatcher(Protocol):
    """Anything that can tell whether a raw command is trusted."""

    def is_trusted(self, command: str) -> bool: ...


def split_pipeline(words: list[str]) -> list[list[str]] | None:
    """Split shell words into pipe-chain segments.

    Returns ``None`` when a word contains a pipe glued to other text
    (``myfile|rm``); such shapes are not split, they are refused.
    """
    segments: list[list[str]] = []
    current: list[str] = []
    for word in words:
        if word == PIPE:
            segments.append(current)
            current = []
        elif PIPE in word:
            return None
        else:
            current.append(word)
    segments.append(current)
    return segments


def _segment_reason(segment: list[str]) -> str | None:
    if not segment:
        return "empty command in pipe chain"
    head = segment[0]
    if head == "find" and any(flag in word for word in segment for flag in _FIND_MUTATING_FLAGS):
        return "find with -exec/-delete can modify files"
    if head not in READONLY_COMMANDS:
        return f"'{head}' is not a known read-only command"
    return None


def assess_command(command: str, trusted: TrustedMatcher | None = None) -> CommandAssessment:
    """Run the acceptance procedure and keep the reason for the verdict."""
    try:
        words = shlex.split(command)
    except ValueError as e:
        logger.debug("Could not tokenize command {!r}: {}", command, e)
        return CommandAssessment(command, True, f"could not parse command ({e})", parsed=False)

    match = classify(command, allow_pipe=True)
    if match is not None:
        return CommandAssessment(
            command,
            True,
            f"contains '{match.pattern}' ({describe(match)})",
            dangerous=match,
        )

    if trusted is not None and trusted.is_trusted(command):
        return CommandAssessment(command, False, "trusted by user configuration", trusted=True)

    segments = split_pipeline(words)
    if segments is None:
        return CommandAssessment(command, True, "pipe without surrounding whitespace")

    for segment in segments:
        reason = _segment_reason(segment)
        if reason is not None:
            return CommandAssessment(command, True, reason)

    return CommandAssessment(command, False, "read-only command")


def requires_acceptance(command: str, trusted: TrustedMatcher | None = None) -> bool:
    """True when ``command`` must pause for human confirmation."""
    return assess_command(command, trusted).requires_acceptance
