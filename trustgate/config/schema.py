"""Configuration schema using Pydantic."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

_PROFILE_CHARS = frozenset("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_-")


class Base(BaseModel):
    """Base model that accepts both camelCase and snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AuditConfig(Base):
    """Decision audit trail."""

    enabled: bool = True
    rotate_bytes: int = 5 * 1024 * 1024
    max_backups: int = 3


class Config(Base):
    """Root configuration for trustgate."""

    profile: str = "default"
    agent: str = "default"
    log_level: str = "WARNING"
    audit: AuditConfig = Field(default_factory=AuditConfig)

    @field_validator("profile", "agent")
    @classmethod
    def valid_name(cls, v: str) -> str:
        if not v or not v[0].isalnum() or not set(v) <= _PROFILE_CHARS:
            raise ValueError(
                "must start with an alphanumeric character and contain only "
                "alphanumeric characters, hyphens, and underscores"
            )
        return v

    @field_validator("log_level")
    @classmethod
    def upper_level(cls, v: str) -> str:
        return v.upper()
