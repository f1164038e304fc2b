"""Trusted commands, tool trust and their persistence."""

from trustgate.trust.commands import (
    CombinedTrustedCommands,
    TrustedCommandStore,
    combine,
    suggest_patterns,
    validate_pattern,
)
from trustgate.trust.persistence import TrustRepository
from trustgate.trust.schema import AgentTrustState, TrustedCommand, TrustedCommandsConfig
from trustgate.trust.tools import StaticToolCatalog, ToolPermissions, default_agent_state

__all__ = [
    "AgentTrustState",
    "CombinedTrustedCommands",
    "StaticToolCatalog",
    "ToolPermissions",
    "TrustRepository",
    "TrustedCommand",
    "TrustedCommandStore",
    "TrustedCommandsConfig",
    "combine",
    "default_agent_state",
    "suggest_patterns",
    "validate_pattern",
]
