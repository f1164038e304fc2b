"""JSON persistence for trusted commands and agent tool trust.

Each scope lives in its own file:

- global:  ``<data_dir>/global_context.json``
- profile: ``<data_dir>/profiles/<profile>/context.json``
- agent:   ``<data_dir>/agents/<agent>.json``

These documents are shared with other collaborators (context paths, hooks, agent
prompts), so writes are read-modify-write and only touch the trust keys. A missing
or empty file reads as the default configuration. A malformed file raises
``ConfigParseError`` and is never overwritten; the caller decides what to do.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import ValidationError

from trustgate.core.errors import ConfigParseError, PersistenceError
from trustgate.trust.schema import AgentTrustState, TrustedCommandsConfig

TRUSTED_COMMANDS_KEY = "trusted_commands"
_AGENT_KEYS = ("allowedTools", "trustAllTools")


def _scope_label(global_: bool) -> str:
    return "global" if global_ else "profile"


class TrustRepository:
    """Loads and saves trust configuration under one data directory."""

    def __init__(self, data_dir: Path, profile: str = "default") -> None:
        self.data_dir = data_dir
        self.profile = profile

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def commands_path(self, global_: bool, profile: str | None = None) -> Path:
        if global_:
            return self.data_dir / "global_context.json"
        return self.data_dir / "profiles" / (profile or self.profile) / "context.json"

    def agent_path(self, agent: str) -> Path:
        return self.data_dir / "agents" / f"{agent}.json"

    # ------------------------------------------------------------------
    # Trusted commands
    # ------------------------------------------------------------------

    async def load_commands(self, global_: bool, profile: str | None = None) -> TrustedCommandsConfig:
        """Load one scope's trusted commands, for ``profile`` if given."""
        path = self.commands_path(global_, profile)
        document = await asyncio.to_thread(self._read_document_sync, path)
        section = document.get(TRUSTED_COMMANDS_KEY)
        if section is None:
            return TrustedCommandsConfig()
        try:
            return TrustedCommandsConfig.model_validate(section)
        except ValidationError as e:
            raise ConfigParseError(path, f"invalid trusted_commands section: {e}") from e

    async def save_commands(self, config: TrustedCommandsConfig, global_: bool) -> None:
        """Persist one scope's trusted commands."""
        path = self.commands_path(global_)
        await asyncio.to_thread(self._update_document_sync, path, {TRUSTED_COMMANDS_KEY: config.to_payload()})
        logger.debug("Saved {} trusted command(s) to {} ({})", len(config.trusted_commands), path, _scope_label(global_))

    # ------------------------------------------------------------------
    # Agent tool trust
    # ------------------------------------------------------------------

    async def load_agent_state(self, agent: str, default: AgentTrustState | None = None) -> AgentTrustState:
        """Load the tool trust of ``agent``; ``default`` when nothing is stored."""
        path = self.agent_path(agent)
        document = await asyncio.to_thread(self._read_document_sync, path)
        if not any(key in document for key in _AGENT_KEYS):
            return default.model_copy(deep=True) if default is not None else AgentTrustState()
        try:
            return AgentTrustState.model_validate(document)
        except ValidationError as e:
            raise ConfigParseError(path, f"invalid agent trust fields: {e}") from e

    async def save_agent_state(self, agent: str, state: AgentTrustState) -> None:
        path = self.agent_path(agent)
        await asyncio.to_thread(self._update_document_sync, path, state.to_payload())
        logger.debug("Saved tool trust for agent {} to {}", agent, path)

    # ------------------------------------------------------------------
    # File helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _read_document_sync(path: Path) -> dict[str, Any]:
        if not path.exists():
            return {}
        try:
            raw = path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise ConfigParseError(path, f"not valid UTF-8 at byte {e.start}") from e
        except OSError as e:
            raise PersistenceError(path, str(e)) from e
        if not raw.strip():
            logger.warning("Configuration file {} is empty, using defaults", path)
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ConfigParseError(path, f"invalid JSON at line {e.lineno}: {e.msg}") from e
        if not isinstance(data, dict):
            raise ConfigParseError(path, "top-level value must be an object")
        return data

    def _update_document_sync(self, path: Path, updates: dict[str, Any]) -> None:
        document = self._read_document_sync(path)
        document.update(updates)
        text = json.dumps(document, indent=2, ensure_ascii=False) + "\n"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(path.suffix + ".tmp")
            tmp.write_text(text, encoding="utf-8")
            tmp.replace(path)
        except OSError as e:
            raise PersistenceError(path, str(e)) from e
