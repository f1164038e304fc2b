"""Tool-level trust: persisted agent defaults plus session overrides.

Precedence, highest first:

1. session overrides (``trust``/``untrust``/``trust_all`` during this session),
2. the agent's persisted ``allowed_tools`` and ``trust_all_tools``,
3. the built-in per-tool default policy.

Tools whose default policy is "trusted" are seeded into the allow-list of a new
agent rather than being trusted by the fallback, so removing one from a saved
agent makes it ask again.

Remote tools are trusted through namespaced entries only: ``@server/tool`` trusts
one tool, ``@server`` trusts whatever that server currently exposes. The server's
tool list is consulted at check time, so tools a server adds later inherit the
blanket trust.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

from loguru import logger

from trustgate.core.errors import ToolNotFoundError
from trustgate.core.types import CommandAssessment, Native, PermissionVerdict, RemoteServer, ToolOrigin
from trustgate.trust.schema import AgentTrustState

NAMESPACE_PREFIX = "@"
SERVER_TOOL_DELIMITER = "/"

SHELL_TOOLS: frozenset[str] = frozenset({"execute_bash", "execute_cmd"})
NATIVE_TOOLS: tuple[str, ...] = (
    "fs_read",
    "fs_write",
    "execute_bash",
    "execute_cmd",
    "use_aws",
    "report_issue",
    "thinking",
)


class ToolPolicy(Enum):
    """Built-in behaviour of a native tool when nothing else applies."""

    TRUSTED = "trusted"
    READONLY_COMMANDS = "trust read-only commands"
    ASK = "not trusted"


DEFAULT_TOOL_POLICY: dict[str, ToolPolicy] = {
    "fs_read": ToolPolicy.TRUSTED,
    "fs_write": ToolPolicy.ASK,
    "execute_bash": ToolPolicy.READONLY_COMMANDS,
    "execute_cmd": ToolPolicy.READONLY_COMMANDS,
    "use_aws": ToolPolicy.READONLY_COMMANDS,
    "report_issue": ToolPolicy.TRUSTED,
    "thinking": ToolPolicy.TRUSTED,
}

DEFAULT_APPROVE: tuple[str, ...] = tuple(
    name for name, policy in DEFAULT_TOOL_POLICY.items() if policy is ToolPolicy.TRUSTED
)

_TRUSTED_LABELS: dict[str, str] = {"thinking": "trusted (prerelease)"}


def default_agent_state() -> AgentTrustState:
    """Trust state of a freshly created agent."""
    return AgentTrustState(allowed_tools=set(DEFAULT_APPROVE))


def namespaced_name(name: str, origin: ToolOrigin) -> str:
    """Identity used in trust lists: ``tool`` or ``@server/tool``."""
    if isinstance(origin, RemoteServer):
        return f"{NAMESPACE_PREFIX}{origin.name}{SERVER_TOOL_DELIMITER}{name}"
    return name


def parse_tool_ref(ref: str) -> tuple[str, ToolOrigin]:
    """Inverse of ``namespaced_name``. ``@server`` yields an empty tool name."""
    if not ref.startswith(NAMESPACE_PREFIX):
        return ref, Native()
    server, _, tool = ref[len(NAMESPACE_PREFIX) :].partition(SERVER_TOOL_DELIMITER)
    return tool, RemoteServer(server)


class ToolCatalog(Protocol):
    """Live view of the tools each remote server exposes."""

    def tools_for(self, server: str) -> Collection[str] | None: ...


class StaticToolCatalog:
    """In-memory catalog, updated by whoever manages the server processes."""

    def __init__(self, servers: Mapping[str, Iterable[str]] | None = None) -> None:
        self._servers: dict[str, set[str]] = {k: set(v) for k, v in (servers or {}).items()}

    def tools_for(self, server: str) -> Collection[str] | None:
        return self._servers.get(server)

    def set_tools(self, server: str, tools: Iterable[str]) -> None:
        self._servers[server] = set(tools)

    def remove_server(self, server: str) -> None:
        self._servers.pop(server, None)


@dataclass
class SessionTrustOverrides:
    """Ephemeral per-session changes on top of the agent's persisted trust."""

    trusted: set[str] = field(default_factory=set)
    untrusted: set[str] = field(default_factory=set)
    trust_all: bool | None = None

    def is_empty(self) -> bool:
        return not self.trusted and not self.untrusted and self.trust_all is None


def merge(defaults: AgentTrustState, overrides: SessionTrustOverrides) -> AgentTrustState:
    """Effective trust state: agent defaults with session overrides applied."""
    allowed = (defaults.allowed_tools - overrides.untrusted) | overrides.trusted
    trust_all = defaults.trust_all_tools if overrides.trust_all is None else overrides.trust_all
    return AgentTrustState(allowed_tools=allowed, trust_all_tools=trust_all)


class ToolPermissions:
    """Answers "may this tool run without asking?" for one session."""

    def __init__(
        self,
        defaults: AgentTrustState | None = None,
        catalog: ToolCatalog | None = None,
    ) -> None:
        self.defaults = defaults if defaults is not None else default_agent_state()
        self.catalog = catalog
        self.overrides = SessionTrustOverrides()

    # ------------------------------------------------------------------
    # Mutation (session scope only)
    # ------------------------------------------------------------------

    def trust(self, name: str) -> None:
        self.overrides.untrusted.discard(name)
        self.overrides.trusted.add(name)

    def untrust(self, name: str) -> None:
        self.overrides.trusted.discard(name)
        self.overrides.untrusted.add(name)

    def trust_all(self) -> None:
        self.overrides.trust_all = True

    def reset(self) -> None:
        """Discard every session override."""
        self.overrides = SessionTrustOverrides()

    def reset_tool(self, name: str) -> None:
        """Discard the session override of one tool entry."""
        if name not in self.overrides.trusted and name not in self.overrides.untrusted:
            raise ToolNotFoundError(name)
        self.overrides.trusted.discard(name)
        self.overrides.untrusted.discard(name)

    def replace_defaults(self, defaults: AgentTrustState) -> None:
        """Swap in another agent's persisted trust and drop session overrides."""
        self.defaults = defaults
        self.reset()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def effective_state(self) -> AgentTrustState:
        return merge(self.defaults, self.overrides)

    def has(self, name: str) -> bool:
        """Whether ``name`` is literally present in the effective allow-list."""
        return name in self.effective_state().allowed_tools

    def exposes(self, server: str, name: str) -> bool:
        """Whether ``server`` currently exposes ``name`` (unknown without a catalog)."""
        if self.catalog is None:
            return True
        tools = self.catalog.tools_for(server)
        return tools is not None and name in tools

    def grants(self, entry: str, name: str, origin: ToolOrigin) -> bool:
        """Whether one allow-list entry covers the tool ``name`` from ``origin``."""
        if isinstance(origin, Native):
            return entry == name
        if isinstance(origin, RemoteServer):
            if not entry.startswith(NAMESPACE_PREFIX):
                return False
            server, sep, tool = entry[len(NAMESPACE_PREFIX) :].partition(SERVER_TOOL_DELIMITER)
            if server != origin.name:
                return False
            if sep:
                return tool == name
            return self.exposes(server, name)
        raise TypeError(f"unknown tool origin: {origin!r}")

    def override(self, name: str, origin: ToolOrigin) -> bool | None:
        """Session decision for a tool, or ``None`` when the session says nothing."""
        if self.overrides.trust_all:
            return True
        if any(self.grants(entry, name, origin) for entry in self.overrides.trusted):
            return True
        if any(self.grants(entry, name, origin) for entry in self.overrides.untrusted):
            return False
        return None

    def is_trusted(self, name: str, origin: ToolOrigin) -> bool:
        decided = self.override(name, origin)
        if decided is not None:
            return decided
        if self.overrides.trust_all is None and self.defaults.trust_all_tools:
            return True
        return any(self.grants(entry, name, origin) for entry in self.defaults.allowed_tools)

    def default_policy(self, name: str, origin: ToolOrigin) -> ToolPolicy:
        if isinstance(origin, RemoteServer):
            return ToolPolicy.ASK
        return DEFAULT_TOOL_POLICY.get(name, ToolPolicy.ASK)

    def evaluate(
        self,
        name: str,
        origin: ToolOrigin,
        assessment: CommandAssessment | None = None,
    ) -> PermissionVerdict:
        """Three-way verdict for one tool invocation.

        ``assessment`` is the acceptance result of the command a shell tool is
        about to run. A vetoed command is always confirmed, even when the tool or
        every tool is trusted.
        """
        if isinstance(origin, RemoteServer) and not self.exposes(origin.name, name):
            logger.warning("Tool {} is not exposed by server {}", name, origin.name)
            return PermissionVerdict.DENY

        if assessment is not None and assessment.vetoed:
            return PermissionVerdict.ASK

        if self.is_trusted(name, origin):
            return PermissionVerdict.ALLOW
        if self.override(name, origin) is False:
            return PermissionVerdict.ASK

        # ToolPolicy.TRUSTED tools only run unprompted while allow-listed
        policy = self.default_policy(name, origin)
        if policy is ToolPolicy.READONLY_COMMANDS and assessment is not None:
            return PermissionVerdict.ASK if assessment.requires_acceptance else PermissionVerdict.ALLOW
        return PermissionVerdict.ASK

    def display_label(self, name: str, origin: ToolOrigin) -> str:
        """Short permission label, e.g. ``* trusted`` or ``* not trusted``."""
        if self.is_trusted(name, origin):
            if isinstance(origin, Native) and name in _TRUSTED_LABELS:
                return f"* {_TRUSTED_LABELS[name]}"
            return "* trusted"
        if self.override(name, origin) is False:
            return "* not trusted"
        if self.default_policy(name, origin) is ToolPolicy.READONLY_COMMANDS:
            return f"* {ToolPolicy.READONLY_COMMANDS.value}"
        return f"* {ToolPolicy.ASK.value}"

    def server_label(self, server: str) -> str:
        """Label of a whole server, trusted only through an ``@server`` entry."""
        state = self.effective_state()
        if state.trust_all_tools or f"{NAMESPACE_PREFIX}{server}" in state.allowed_tools:
            return "* trusted"
        return f"* {ToolPolicy.ASK.value}"

    def is_known_tool(self, ref: str) -> bool:
        """Whether ``ref`` names a native tool, a server or a server tool.

        Without a catalog any well-formed ``@server`` or ``@server/tool`` is accepted.
        """
        if not ref.startswith(NAMESPACE_PREFIX):
            return ref in NATIVE_TOOLS
        server, sep, tool = ref[len(NAMESPACE_PREFIX) :].partition(SERVER_TOOL_DELIMITER)
        if not server or (sep and not tool):
            return False
        if self.catalog is None:
            return True
        tools = self.catalog.tools_for(server)
        if tools is None:
            return False
        return not sep or tool in tools
