"""Per-conversation trust facade.

A ``TrustSession`` is owned by one running conversation and threaded through its
loop explicitly. It bundles the trusted-command store (global + profile), the
tool permissions (agent defaults + session overrides) and an optional audit sink,
and exposes the operations the conversation loop and the CLI call.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from pathlib import Path
from uuid import uuid4

from loguru import logger

from trustgate.config.loader import get_data_dir
from trustgate.config.schema import Config
from trustgate.core.types import (
    CommandAssessment,
    DecisionEvent,
    Native,
    PermissionVerdict,
    ToolOrigin,
)
from trustgate.observability.audit import DecisionLog
from trustgate.safety.acceptance import assess_command
from trustgate.trust.commands import TrustedCommandStore, suggest_patterns
from trustgate.trust.persistence import TrustRepository
from trustgate.trust.schema import TrustedCommand, TrustedCommandsConfig
from trustgate.trust.tools import (
    SHELL_TOOLS,
    ToolCatalog,
    ToolPermissions,
    default_agent_state,
    namespaced_name,
)


class TrustSession:
    """Trust state and decisions for one conversation."""

    def __init__(
        self,
        store: TrustedCommandStore,
        permissions: ToolPermissions,
        *,
        agent: str = "default",
        audit: DecisionLog | None = None,
        session_id: str | None = None,
    ) -> None:
        self.store = store
        self.permissions = permissions
        self.agent = agent
        self.audit = audit
        self.session_id = session_id or uuid4().hex

    @classmethod
    async def open(
        cls,
        data_dir: Path,
        *,
        profile: str = "default",
        agent: str = "default",
        catalog: ToolCatalog | None = None,
        audit: DecisionLog | None = None,
    ) -> TrustSession:
        """Load persisted trust for ``profile`` and ``agent`` from ``data_dir``."""
        repository = TrustRepository(data_dir, profile)
        store = await TrustedCommandStore.open(repository)
        defaults = await repository.load_agent_state(agent, default=default_agent_state())
        permissions = ToolPermissions(defaults, catalog)
        logger.debug("Opened trust session for profile {} / agent {}", profile, agent)
        return cls(store, permissions, agent=agent, audit=audit)

    @classmethod
    async def from_config(
        cls,
        config: Config,
        *,
        data_dir: Path | None = None,
        catalog: ToolCatalog | None = None,
    ) -> TrustSession:
        root = data_dir or get_data_dir()
        audit = None
        if config.audit.enabled:
            audit = DecisionLog(
                root / "logs" / "decisions.jsonl",
                rotate_bytes=config.audit.rotate_bytes,
                max_backups=config.audit.max_backups,
            )
        return await cls.open(root, profile=config.profile, agent=config.agent, catalog=catalog, audit=audit)

    @property
    def profile(self) -> str:
        return self.store.profile

    # ------------------------------------------------------------------
    # Shell commands
    # ------------------------------------------------------------------

    def assess(self, command: str) -> CommandAssessment:
        return assess_command(command, self.store.matcher())

    def requires_acceptance(self, command: str) -> bool:
        return self.assess(command).requires_acceptance

    async def check_command(self, command: str) -> CommandAssessment:
        """Assess ``command`` and record the decision in the decision log."""
        assessment = self.assess(command)
        verdict = PermissionVerdict.ASK if assessment.requires_acceptance else PermissionVerdict.ALLOW
        pattern = self.matching_pattern(command) if assessment.trusted else None
        await self._record(
            "command",
            command,
            verdict,
            assessment.reason,
            pattern=pattern.command if pattern is not None else None,
        )
        return assessment

    def is_trusted(self, command: str) -> bool:
        """Whether a user trust rule matches ``command`` (display only)."""
        return self.store.is_trusted(command)

    def matching_pattern(self, command: str) -> TrustedCommand | None:
        return self.store.matcher().matching(command)

    def suggest_patterns(self, command: str) -> list[tuple[str, str]]:
        return suggest_patterns(command)

    async def add_trusted_command(
        self, pattern: str, description: str | None = None, *, global_: bool = False
    ) -> TrustedCommand:
        return await self.store.add(pattern, description, global_=global_)

    async def remove_trusted_command(self, pattern: str, *, global_: bool = False) -> None:
        await self.store.remove(pattern, global_=global_)

    async def clear_trusted_commands(self, *, global_: bool = False) -> None:
        await self.store.clear(global_=global_)

    def get_trusted_commands(self, *, global_: bool = False) -> TrustedCommandsConfig:
        return self.store.get(global_=global_)

    def get_combined_trusted_commands(self) -> TrustedCommandsConfig:
        return self.store.combined()

    async def switch_profile(self, profile: str) -> None:
        await self.store.switch_profile(profile)

    # ------------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------------

    def trust_tools(self, names: Iterable[str]) -> None:
        for name in names:
            self.permissions.trust(name)
            logger.info("Tool {} trusted for this session", name)

    def untrust_tools(self, names: Iterable[str]) -> None:
        for name in names:
            self.permissions.untrust(name)
            logger.info("Tool {} set to per-request confirmation", name)

    def trust_all_tools(self) -> None:
        self.permissions.trust_all()
        logger.info("All tools trusted for this session")

    def reset(self) -> None:
        self.permissions.reset()

    def reset_tool(self, name: str) -> None:
        self.permissions.reset_tool(name)

    def display_label(self, name: str, origin: ToolOrigin | None = None) -> str:
        return self.permissions.display_label(name, origin or Native())

    def server_label(self, server: str) -> str:
        return self.permissions.server_label(server)

    def unknown_tools(self, names: Iterable[str]) -> list[str]:
        """Names that are neither native tools nor well-formed server references."""
        return [name for name in names if not self.permissions.is_known_tool(name)]

    async def evaluate_tool(
        self,
        name: str,
        origin: ToolOrigin | None = None,
        command: str | None = None,
    ) -> PermissionVerdict:
        """Verdict for one tool call; ``command`` is the shell command of shell tools."""
        origin = origin or Native()
        assessment = None
        if command is not None and isinstance(origin, Native) and name in SHELL_TOOLS:
            assessment = self.assess(command)

        verdict = self.permissions.evaluate(name, origin, assessment)
        reason = assessment.reason if assessment is not None else self.display_label(name, origin).lstrip("* ")
        await self._record(
            "tool",
            namespaced_name(name, origin),
            verdict,
            reason,
            command=command,
        )
        return verdict

    async def save_agent_trust(self) -> None:
        """Persist the effective tool trust as the agent's new defaults."""
        state = self.permissions.effective_state()
        await self.store.repository.save_agent_state(self.agent, state)
        self.permissions.replace_defaults(state)
        logger.info("Saved tool trust for agent {}", self.agent)

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------

    async def _record(
        self,
        kind: str,
        subject: str,
        verdict: PermissionVerdict,
        reason: str,
        **attrs: object,
    ) -> None:
        logger.debug("{} {} -> {} ({})", kind, subject, verdict.value, reason)
        if self.audit is None:
            return
        event = DecisionEvent(
            kind=kind,
            subject=subject,
            verdict=verdict.value,
            reason=reason,
            profile=self.profile,
            agent=self.agent,
            session_id=self.session_id,
            attrs={k: v for k, v in attrs.items() if v is not None},
        )
        try:
            await asyncio.to_thread(self.audit.record, event)
        except OSError as e:
            logger.warning("Failed to write decision to {}: {}", self.audit.path, e)

    def close(self) -> None:
        if self.audit is not None:
            self.audit.close()
