"""Glob patterns for trusted commands.

Only two wildcards exist: ``*`` (any run of characters) and ``?`` (one
character). Every other character is passed to the regex engine untouched, so
legacy patterns keep matching exactly what they matched before. Matches are
anchored on both ends: ``npm run *`` must not trust ``npm install``.

A pattern is split on ``*``. The text between two stars is wrapped in an atomic
group that stops at its first occurrence, and only the last star may backtrack.
For fixed-width pieces the earliest occurrence never loses a match, and patterns
like ``git *a*a*a*b`` no longer backtrack exponentially.
"""

from __future__ import annotations

import re

WILDCARD = "*"


def _piece(text: str) -> str:
    return text.replace("?", ".")


def glob_to_regex(pattern: str) -> str:
    """Translate a glob pattern into an anchored regex source string."""
    pieces = pattern.split(WILDCARD)
    if len(pieces) == 1:
        return f"^{_piece(pattern)}$"

    first, *middle, last = pieces
    body = "".join(f"(?>.*?{_piece(text)})" for text in middle if text)
    return f"^{_piece(first)}{body}.*{_piece(last)}$"


def compile_glob(pattern: str) -> re.Pattern[str]:
    """Compile a glob pattern. Raises ``re.error`` for malformed input."""
    return re.compile(glob_to_regex(pattern))


def is_match(pattern: str, candidate: str) -> bool:
    """Whether ``candidate`` is matched in full by the glob ``pattern``."""
    if pattern == candidate:
        return True
    try:
        regex = compile_glob(pattern)
    except re.error:
        return False
    return regex.fullmatch(candidate) is not None
