"""CLI commands for trustgate."""

from __future__ import annotations

import asyncio
import json
import sys
from collections.abc import Awaitable, Callable
from typing import TypeVar

import typer
from loguru import logger
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from trustgate import __app_name__, __version__
from trustgate.config.loader import get_data_dir, load_config
from trustgate.config.schema import Config
from trustgate.core.errors import PatternValidationError, PersistenceError, TrustGateError
from trustgate.core.types import RemoteServer
from trustgate.observability.audit import DecisionLog
from trustgate.session import TrustSession
from trustgate.trust.tools import DEFAULT_APPROVE, NATIVE_TOOLS, default_agent_state, parse_tool_ref

app = typer.Typer(
    name="trustgate",
    help="Decide which commands and tools may run without confirmation.",
    no_args_is_help=True,
)
tools_app = typer.Typer(help="Manage tool trust for the active agent.", no_args_is_help=True)
app.add_typer(tools_app, name="tools")

console = Console()

T = TypeVar("T")


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"{__app_name__} v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    profile: str | None = typer.Option(None, "--profile", "-p", help="Profile to use"),
    agent: str | None = typer.Option(None, "--agent", "-a", help="Agent to use"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version"
    ),
) -> None:
    """trustgate - command & tool trust engine."""
    try:
        config = load_config()
    except TrustGateError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)

    updates = {k: v for k, v in {"profile": profile, "agent": agent}.items() if v}
    if updates:
        try:
            config = Config.model_validate({**config.model_dump(), **updates})
        except ValidationError as e:
            raise typer.BadParameter(str(e.errors()[0]["msg"])) from e

    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else config.log_level)
    ctx.obj = config


def _run(ctx: typer.Context, action: Callable[[TrustSession], Awaitable[T]]) -> T:
    """Open a session for the configured profile/agent and run ``action``."""

    async def runner() -> T:
        session = await TrustSession.from_config(ctx.obj)
        try:
            return await action(session)
        finally:
            session.close()

    try:
        return asyncio.run(runner())
    except PersistenceError as e:
        console.print(f"[yellow]Warning:[/yellow] {escape(str(e))}")
        console.print("[yellow]The change applies to this session only and will not survive a restart.[/yellow]")
        raise typer.Exit(1)
    except TrustGateError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)


def _scope(global_: bool) -> str:
    return "global" if global_ else "profile"


# ============================================================================
# Shell commands
# ============================================================================


@app.command()
def check(
    ctx: typer.Context,
    command: str = typer.Argument(..., help="Shell command to assess"),
) -> None:
    """Show whether a shell command would run without confirmation."""

    async def action(session: TrustSession):
        assessment = await session.check_command(command)
        return assessment, session.matching_pattern(command)

    assessment, pattern = _run(ctx, action)
    if assessment.requires_acceptance:
        console.print(f"[yellow]requires confirmation[/yellow]: {escape(assessment.reason)}")
    else:
        console.print(f"[green]auto-approved[/green]: {escape(assessment.reason)}")
    if pattern is not None:
        console.print(f"  matched trusted pattern \"{escape(pattern.command)}\"")


@app.command()
def allow(
    ctx: typer.Context,
    commands: list[str] = typer.Option(..., "--command", "-c", help="Pattern to trust (supports * and ?)"),
    description: str | None = typer.Option(None, "--description", "-d", help="Why it is trusted"),
    global_: bool = typer.Option(False, "--global", "-g", help="Add to global configuration"),
) -> None:
    """Trust shell command patterns."""

    async def action(session: TrustSession):
        added: list[str] = []
        failed: list[tuple[str, str]] = []
        for pattern in commands:
            try:
                await session.add_trusted_command(pattern, description, global_=global_)
            except PatternValidationError as e:
                failed.append((pattern, e.reason))
                continue
            added.append(pattern)
        return added, failed

    added, failed = _run(ctx, action)
    for pattern in added:
        console.print(f"[green]✓[/green] Trusted \"{escape(pattern)}\" ({_scope(global_)})")
    for pattern, reason in failed:
        console.print(f"[red]✗[/red] \"{escape(pattern)}\": {escape(reason)}")
    if failed:
        raise typer.Exit(1)


@app.command()
def remove(
    ctx: typer.Context,
    commands: list[str] = typer.Option(..., "--command", "-c", help="Pattern to remove (exact match)"),
    global_: bool = typer.Option(False, "--global", "-g", help="Remove from global configuration"),
) -> None:
    """Remove trusted shell command patterns."""

    async def action(session: TrustSession):
        existing = set(session.get_trusted_commands(global_=global_).commands())
        removed = [p for p in commands if p in existing]
        for pattern in removed:
            await session.remove_trusted_command(pattern, global_=global_)
        return removed, [p for p in commands if p not in existing]

    removed, missing = _run(ctx, action)
    for pattern in removed:
        console.print(f"[green]✓[/green] Removed \"{escape(pattern)}\" ({_scope(global_)})")
    for pattern in missing:
        console.print(f"[red]✗[/red] \"{escape(pattern)}\" is not trusted in {_scope(global_)} scope")
    if missing:
        raise typer.Exit(1)


@app.command()
def clear(
    ctx: typer.Context,
    global_: bool = typer.Option(False, "--global", "-g", help="Clear global configuration"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Remove every trusted pattern of one scope."""
    if not yes and not typer.confirm(f"Remove all trusted commands in {_scope(global_)} scope?"):
        raise typer.Exit()

    async def action(session: TrustSession):
        await session.clear_trusted_commands(global_=global_)

    _run(ctx, action)
    console.print(f"[green]✓[/green] Cleared trusted commands ({_scope(global_)})")


@app.command("list")
def list_commands(
    ctx: typer.Context,
    global_: bool = typer.Option(False, "--global", "-g", help="Only the global scope"),
    profile_only: bool = typer.Option(False, "--profile-only", help="Only the profile scope"),
) -> None:
    """List trusted shell command patterns."""

    async def action(session: TrustSession):
        if global_:
            return session.get_trusted_commands(global_=True)
        if profile_only:
            return session.get_trusted_commands(global_=False)
        return session.get_combined_trusted_commands()

    config = _run(ctx, action)
    if not config.trusted_commands:
        console.print("No trusted commands configured.")
        return

    table = Table(title="Trusted commands")
    table.add_column("Pattern", style="cyan")
    table.add_column("Description")
    for entry in config.trusted_commands:
        table.add_row(escape(entry.command), escape(entry.description or ""))
    console.print(table)


@app.command()
def suggest(
    ctx: typer.Context,
    command: str = typer.Argument(..., help="Command the user just approved"),
) -> None:
    """Show trust patterns that could be offered for a command."""

    async def action(session: TrustSession):
        return session.suggest_patterns(command)

    options = _run(ctx, action)
    if not options:
        console.print("No pattern can be trusted for this command.")
        return
    for index, (pattern, description) in enumerate(options, 1):
        console.print(f"{index}. \"{escape(pattern)}\" - {escape(description)}")


# ============================================================================
# Tools
# ============================================================================


@tools_app.command("list")
def tools_list(
    ctx: typer.Context,
    extra: list[str] = typer.Argument(None, help="Additional tools, e.g. @server or @server/tool"),
) -> None:
    """Show native tools and their permission."""

    async def action(session: TrustSession):
        rows = [(name, session.display_label(name)) for name in NATIVE_TOOLS]
        refs = extra or []
        unknown = session.unknown_tools(refs)
        for ref in refs:
            if ref in unknown:
                continue
            name, origin = parse_tool_ref(ref)
            if isinstance(origin, RemoteServer) and not name:
                rows.append((ref, session.server_label(origin.name)))
            else:
                rows.append((ref, session.display_label(name, origin)))
        return rows, unknown, session.get_combined_trusted_commands().commands()

    rows, unknown, patterns = _run(ctx, action)
    width = max(len(name) for name, _ in rows) + 4
    console.print(f"[bold]{'Tool'.ljust(width)}Permission[/bold]")
    for name, label in rows:
        console.print(f"- {escape(name).ljust(width - 2)}{escape(label)}")
        if name in ("execute_bash", "execute_cmd") and patterns:
            quoted = " ".join(f'"{escape(p)}"' for p in patterns)
            console.print(f"    * trusted by profile configuration: {quoted}")
    _report_unknown("show", unknown)


def _report_unknown(verb: str, unknown: list[str]) -> None:
    if not unknown:
        return
    names = "', '".join(escape(n) for n in unknown)
    tail = "they do not exist." if len(unknown) > 1 else "it does not exist."
    console.print(f"[red]Cannot {verb} '{names}', {tail}[/red]")
    raise typer.Exit(1)


def _change_tools(ctx: typer.Context, names: list[str], *, trust: bool) -> None:
    async def action(session: TrustSession):
        unknown = session.unknown_tools(names)
        valid = [n for n in names if n not in unknown]
        if valid:
            if trust:
                session.trust_tools(valid)
            else:
                session.untrust_tools(valid)
            await session.save_agent_trust()
        return valid, unknown

    valid, unknown = _run(ctx, action)
    if valid:
        listed = ", ".join(escape(n) for n in valid)
        if trust:
            console.print(f"[green]✓[/green] Trusted {listed} for agent {ctx.obj.agent}")
        else:
            console.print(f"[green]✓[/green] {listed} set to per-request confirmation")
    _report_unknown("trust" if trust else "untrust", unknown)


@tools_app.command("trust")
def tools_trust(
    ctx: typer.Context,
    names: list[str] = typer.Argument(..., help="Tool names, @server or @server/tool"),
) -> None:
    """Trust tools for the active agent and save it."""
    _change_tools(ctx, names, trust=True)


@tools_app.command("untrust")
def tools_untrust(
    ctx: typer.Context,
    names: list[str] = typer.Argument(..., help="Tool names, @server or @server/tool"),
) -> None:
    """Set tools back to per-request confirmation and save the agent."""
    _change_tools(ctx, names, trust=False)


@tools_app.command("reset")
def tools_reset(
    ctx: typer.Context,
    name: str | None = typer.Argument(None, help="Reset only this tool"),
) -> None:
    """Restore default tool permissions for the active agent."""

    async def action(session: TrustSession):
        if name is not None and session.unknown_tools([name]):
            return False
        if name is None:
            session.permissions.replace_defaults(default_agent_state())
        elif name in DEFAULT_APPROVE:
            session.trust_tools([name])
        else:
            session.untrust_tools([name])
        await session.save_agent_trust()
        return True

    if not _run(ctx, action):
        _report_unknown("reset", [name])
    target = f"tool '{escape(name)}'" if name else "all tools"
    console.print(f"[green]✓[/green] Reset {target} to the default permission level")


# ============================================================================
# Decision log
# ============================================================================


@app.command()
def audit(
    kind: str | None = typer.Option(None, "--kind", help="command or tool"),
    verdict: str | None = typer.Option(None, "--verdict", help="allow, ask or deny"),
    subject: str | None = typer.Option(None, "--subject", "-s", help="Glob over the command or tool"),
    pattern: str | None = typer.Option(None, "--pattern", help="Trusted pattern that approved the command"),
    limit: int = typer.Option(50, "--limit", "-n", help="Maximum decisions"),
    as_json: bool = typer.Option(False, "--json", help="Print raw JSON"),
) -> None:
    """Show recent trust decisions."""
    log = DecisionLog(get_data_dir() / "logs" / "decisions.jsonl")
    rows = log.query(kind=kind, verdict=verdict, subject=subject, pattern=pattern, limit=limit)
    if not rows:
        console.print("No decisions recorded.")
        return
    for row in rows:
        if as_json:
            console.print_json(json.dumps(row))
            continue
        approved_by = row.get("attrs", {}).get("pattern")
        suffix = f" [dim](pattern \"{escape(approved_by)}\")[/dim]" if approved_by else ""
        console.print(
            f"{row.get('ts', '')} {row.get('kind', '')} "
            f"[bold]{escape(str(row.get('verdict', '')))}[/bold] "
            f"{escape(str(row.get('subject', '')))} - {escape(str(row.get('reason', '')))}{suffix}"
        )


if __name__ == "__main__":
    app()
