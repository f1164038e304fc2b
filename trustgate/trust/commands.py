"""User-trusted shell command patterns.

Patterns live in two scopes, ``global`` and ``profile``. Matching uses the
combined view: all global patterns, then the profile patterns whose literal is not
already present globally. Combination never touches either scope's storage.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from loguru import logger

from trustgate.core.errors import PatternNotFoundError, PatternValidationError
from trustgate.safety.dangerous_patterns import classify, describe
from trustgate.safety.glob import WILDCARD, compile_glob, is_match
from trustgate.trust.persistence import TrustRepository
from trustgate.trust.schema import TrustedCommand, TrustedCommandsConfig


def validate_pattern(pattern: str) -> None:
    """Reject patterns that must never be stored as trusted.

    Raises:
        PatternValidationError: With the specific reason for the rejection.
    """
    if not pattern.strip():
        raise PatternValidationError(pattern, "Command pattern cannot be empty")

    match = classify(pattern)
    if match is not None:
        raise PatternValidationError(
            pattern,
            f"Command pattern '{pattern}' contains dangerous sequence '{match.pattern}' "
            f"({describe(match)}) and cannot be trusted",
            category=match.category,
        )

    if pattern == WILDCARD:
        raise PatternValidationError(
            pattern,
            "Pattern '*' is too broad and would trust all commands. Use more specific patterns.",
        )

    try:
        compile_glob(pattern)
    except re.error as e:
        raise PatternValidationError(pattern, f"Command pattern '{pattern}' is not a valid pattern: {e}") from e


def sanitize_config(config: TrustedCommandsConfig, source: str) -> TrustedCommandsConfig:
    """Drop entries that would fail ``validate_pattern`` from a loaded config."""
    kept: list[TrustedCommand] = []
    for entry in config.trusted_commands:
        try:
            validate_pattern(entry.command)
        except PatternValidationError as e:
            logger.warning("Ignoring trusted command from {}: {}", source, e.reason)
            continue
        kept.append(entry)

    removed = len(config.trusted_commands) - len(kept)
    if removed:
        logger.warning(
            "Ignored {} invalid trusted command pattern(s) from {} (originally had {})",
            removed,
            source,
            len(config.trusted_commands),
        )
    return TrustedCommandsConfig(trusted_commands=kept)


def combine(global_config: TrustedCommandsConfig, profile_config: TrustedCommandsConfig) -> TrustedCommandsConfig:
    """Global patterns followed by profile patterns not already present globally."""
    combined = [entry.model_copy() for entry in global_config.trusted_commands]
    seen = {entry.command for entry in combined}
    for entry in profile_config.trusted_commands:
        if entry.command not in seen:
            combined.append(entry.model_copy())
            seen.add(entry.command)
    return TrustedCommandsConfig(trusted_commands=combined)


@dataclass(frozen=True, slots=True)
class CombinedTrustedCommands:
    """Read-only matcher over the combined trusted patterns."""

    patterns: tuple[TrustedCommand, ...] = ()

    @classmethod
    def from_config(cls, config: TrustedCommandsConfig) -> CombinedTrustedCommands:
        return cls(tuple(config.trusted_commands))

    def is_trusted(self, command: str) -> bool:
        return self.matching(command) is not None

    def matching(self, command: str) -> TrustedCommand | None:
        """First pattern that matches ``command``, if any."""
        for entry in self.patterns:
            if is_match(entry.command, command):
                return entry
        return None

    def __len__(self) -> int:
        return len(self.patterns)


def suggest_patterns(command: str) -> list[tuple[str, str]]:
    """Trust options to offer after the user confirmed ``command``.

    From narrowest to broadest: the exact command, the first two words (when the
    second one is a subcommand, not a flag) and the first word alone.
    """
    words = command.split()
    if not words:
        return []

    options: list[tuple[str, str]] = [(command, "Trust this exact command only")]
    if len(words) >= 3 and not words[1].startswith("-"):
        prefix = f"{words[0]} {words[1]}"
        options.append((f"{prefix}*", f"Trust all '{prefix}' commands"))
    if len(words) >= 2:
        options.append((f"{words[0]}*", f"Trust all '{words[0]}' commands"))

    unique: list[tuple[str, str]] = []
    seen: set[str] = set()
    for pattern, description in options:
        if pattern in seen:
            continue
        seen.add(pattern)
        try:
            validate_pattern(pattern)
        except PatternValidationError:
            continue
        unique.append((pattern, description))
    return unique


@dataclass
class TrustedCommandStore:
    """Global and profile trusted commands of one session.

    Every mutation is validated first and then persisted immediately. If the save
    fails the in-memory change stays applied and ``PersistenceError`` propagates,
    so the caller can warn that the change will not survive a restart.
    """

    repository: TrustRepository
    global_config: TrustedCommandsConfig = field(default_factory=TrustedCommandsConfig)
    profile_config: TrustedCommandsConfig = field(default_factory=TrustedCommandsConfig)

    @classmethod
    async def open(cls, repository: TrustRepository) -> TrustedCommandStore:
        """Create a store populated from the repository."""
        store = cls(repository)
        await store.reload()
        return store

    @property
    def profile(self) -> str:
        return self.repository.profile

    async def _load(self, profile: str) -> tuple[TrustedCommandsConfig, TrustedCommandsConfig]:
        global_config = await self.repository.load_commands(global_=True)
        profile_config = await self.repository.load_commands(global_=False, profile=profile)
        return (
            sanitize_config(global_config, self._source(True)),
            sanitize_config(profile_config, self._source(False, profile)),
        )

    async def reload(self) -> None:
        """Reload both scopes wholesale."""
        self.global_config, self.profile_config = await self._load(self.profile)

    async def switch_profile(self, profile: str) -> None:
        """Load ``profile`` and make it active. On failure the old profile stays active."""
        global_config, profile_config = await self._load(profile)
        self.repository.profile = profile
        self.global_config = global_config
        self.profile_config = profile_config
        logger.info("Loaded trusted commands for profile {}", profile)

    def _source(self, global_: bool, profile: str | None = None) -> str:
        return "global configuration" if global_ else f"profile '{profile or self.profile}' configuration"

    def _config(self, global_: bool) -> TrustedCommandsConfig:
        return self.global_config if global_ else self.profile_config

    async def add(self, pattern: str, description: str | None = None, *, global_: bool = False) -> TrustedCommand:
        """Trust ``pattern``, or update its description if it is already trusted."""
        validate_pattern(pattern)
        config = self._config(global_)

        existing = config.find(pattern)
        if existing is not None:
            existing.description = description
            await self.repository.save_commands(config, global_)
            logger.info("Updated description for trusted command pattern '{}' in {}", pattern, self._source(global_))
            return existing

        entry = TrustedCommand(command=pattern, description=description)
        config.trusted_commands.append(entry)
        await self.repository.save_commands(config, global_)
        logger.info("Added trusted command pattern '{}' to {}", pattern, self._source(global_))
        return entry

    async def remove(self, pattern: str, *, global_: bool = False) -> None:
        """Remove the entry whose literal equals ``pattern``."""
        config = self._config(global_)
        if config.find(pattern) is None:
            raise PatternNotFoundError(pattern, "global" if global_ else "profile")

        config.trusted_commands = [entry for entry in config.trusted_commands if entry.command != pattern]
        await self.repository.save_commands(config, global_)
        logger.info("Removed trusted command pattern '{}' from {}", pattern, self._source(global_))

    async def clear(self, *, global_: bool = False) -> None:
        config = self._config(global_)
        config.trusted_commands = []
        await self.repository.save_commands(config, global_)
        logger.info("Cleared trusted commands in {}", self._source(global_))

    def get(self, *, global_: bool = False) -> TrustedCommandsConfig:
        """Copy of one scope's configuration."""
        return self._config(global_).model_copy(deep=True)

    def combined(self) -> TrustedCommandsConfig:
        return combine(self.global_config, self.profile_config)

    def matcher(self) -> CombinedTrustedCommands:
        return CombinedTrustedCommands.from_config(self.combined())

    def is_trusted(self, command: str) -> bool:
        return self.matcher().is_trusted(command)
