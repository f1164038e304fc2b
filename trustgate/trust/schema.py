"""Pydantic models for persisted trust configuration.

Unknown fields are ignored on read so newer files stay loadable, and optional
fields are dropped on write instead of being serialized as ``null``.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class TrustedCommand(BaseModel):
    """A glob pattern the user approved to run without confirmation."""

    model_config = ConfigDict(extra="ignore")

    command: str
    description: str | None = None


class TrustedCommandsConfig(BaseModel):
    """Trusted patterns of one scope (global or profile), in insertion order."""

    model_config = ConfigDict(extra="ignore")

    trusted_commands: list[TrustedCommand] = Field(default_factory=list)

    def find(self, pattern: str) -> TrustedCommand | None:
        """Entry whose literal pattern equals ``pattern``."""
        for entry in self.trusted_commands:
            if entry.command == pattern:
                return entry
        return None

    def commands(self) -> list[str]:
        return [entry.command for entry in self.trusted_commands]

    def to_payload(self) -> dict[str, Any]:
        """JSON payload with ``description`` omitted when absent."""
        return self.model_dump(exclude_none=True)


class AgentTrustState(BaseModel):
    """Tool trust persisted as part of an agent record."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    allowed_tools: set[str] = Field(default_factory=set)
    trust_all_tools: bool = False

    @field_validator("allowed_tools", mode="before")
    @classmethod
    def drop_blank_names(cls, v: Any) -> Any:
        if isinstance(v, (list, tuple, set, frozenset)):
            return {str(name).strip() for name in v if str(name).strip()}
        return v

    def to_payload(self) -> dict[str, Any]:
        """camelCase payload with a stable tool order."""
        return {
            "allowedTools": sorted(self.allowed_tools),
            "trustAllTools": self.trust_all_tools,
        }
