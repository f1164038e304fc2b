"""Static denylist of dangerous shell literals.

Matching is plain, case-sensitive substring containment. Lists are scanned in
priority order (destructive, then shell control, then I/O redirection) so that a
command carrying both a destructive and a control literal reports the more
severe reason.
"""

from __future__ import annotations

from trustgate.core.types import DangerousPatternMatch, PatternCategory

# Commands that should never be trusted.
DESTRUCTIVE_PATTERNS: tuple[str, ...] = (
    "rm -rf",  # recursive force remove
    "sudo rm",  # privileged remove
    "format",  # disk format
    "mkfs",  # make filesystem
    "dd if=",  # raw disk dump
    ":(){ :|:& };:",  # fork bomb
    "> /dev/",  # write to device files
    "chmod 777",  # world-writable permissions
    "chown root",  # hand ownership to root
    "su -",  # switch user
    "sudo su",  # privileged user switch
    "del /",  # Windows recursive delete
    "rmdir /s",  # Windows recursive rmdir
)

# Shell syntax that changes what actually gets executed.
SHELL_CONTROL_PATTERNS: tuple[str, ...] = (
    "<(",  # process substitution
    "$(",  # command substitution
    "`",  # backtick substitution
    ">",  # output redirection
    ">>",  # append redirection
    "&&",  # logical and
    "||",  # logical or
    "&",  # background execution
    ";",  # command separator
    "|",  # pipe
)

# Redirections that can hide output or errors.
IO_REDIRECTION_PATTERNS: tuple[str, ...] = (
    "> /dev/null",
    "2>&1",
    "&>",
)

PIPE = "|"

_ORDERED: tuple[tuple[PatternCategory, tuple[str, ...]], ...] = (
    (PatternCategory.DESTRUCTIVE, DESTRUCTIVE_PATTERNS),
    (PatternCategory.SHELL_CONTROL, SHELL_CONTROL_PATTERNS),
    (PatternCategory.IO_REDIRECTION, IO_REDIRECTION_PATTERNS),
)

_REASONS: dict[PatternCategory, str] = {
    PatternCategory.DESTRUCTIVE: "destructive command",
    PatternCategory.SHELL_CONTROL: "shell control pattern",
    PatternCategory.IO_REDIRECTION: "I/O redirection pattern",
}


def classify(command: str, *, allow_pipe: bool = False) -> DangerousPatternMatch | None:
    """Return the first dangerous literal contained in ``command``.

    Args:
        command: Raw, untokenized command string.
        allow_pipe: Skip the bare ``|`` literal. Used by the acceptance procedure,
            which decomposes pipe chains itself. ``||`` and the fork bomb are still
            reported.

    Returns:
        The match, or ``None`` when the command contains no dangerous literal.
    """
    for category, patterns in _ORDERED:
        for pattern in patterns:
            if allow_pipe and pattern == PIPE:
                continue
            if pattern in command:
                return DangerousPatternMatch(pattern=pattern, category=category)
    return None


def describe(match: DangerousPatternMatch) -> str:
    """Human-readable name of the match's category."""
    return _REASONS[match.category]
