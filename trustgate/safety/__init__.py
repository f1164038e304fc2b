"""Command safety checks: dangerous literals, glob matching and acceptance."""

from trustgate.safety.acceptance import READONLY_COMMANDS, assess_command, requires_acceptance
from trustgate.safety.dangerous_patterns import classify, describe
from trustgate.safety.glob import compile_glob, glob_to_regex, is_match

__all__ = [
    "READONLY_COMMANDS",
    "assess_command",
    "classify",
    "compile_glob",
    "describe",
    "glob_to_regex",
    "is_match",
    "requires_acceptance",
]
