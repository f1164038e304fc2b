"""Tests for the per-conversation TrustSession."""

import asyncio
import json

import pytest

from trustgate.config.schema import Config
from trustgate.core.errors import ConfigParseError, PatternValidationError
from trustgate.core.types import PermissionVerdict, RemoteServer
from trustgate.observability.audit import DecisionLog
from trustgate.session import TrustSession
from trustgate.trust.tools import StaticToolCatalog


@pytest.fixture
def session(tmp_path):
    audit = DecisionLog(tmp_path / "logs" / "decisions.jsonl")
    session = asyncio.run(TrustSession.open(tmp_path, audit=audit))
    yield session
    session.close()


def test_new_session_uses_default_tool_trust(session):
    assert session.display_label("fs_read") == "* trusted"
    assert session.display_label("execute_bash") == "* trust read-only commands"
    assert session.profile == "default"


def test_trusted_command_flow(session):
    assert session.requires_acceptance("npm run build")
    asyncio.run(session.add_trusted_command("npm run *", "npm scripts"))

    assert not session.requires_acceptance("npm run build")
    assert session.is_trusted("npm run build")
    assert session.matching_pattern("npm run build").command == "npm run *"
    assert session.requires_acceptance("npm install")


def test_dangerous_pattern_is_rejected(session):
    with pytest.raises(PatternValidationError):
        asyncio.run(session.add_trusted_command("rm -rf *"))
    assert session.get_trusted_commands().commands() == []


def test_combined_trusted_commands(session):
    asyncio.run(session.add_trusted_command("git*", global_=True))
    asyncio.run(session.add_trusted_command("ls*"))
    assert session.get_combined_trusted_commands().commands() == ["git*", "ls*"]
    assert session.get_trusted_commands(global_=True).commands() == ["git*"]


def test_check_command_is_audited(session, tmp_path):
    assessment = asyncio.run(session.check_command("git push --password=hunter2"))
    assert assessment.requires_acceptance

    rows = session.audit.query(kind="command")
    assert len(rows) == 1
    assert rows[0]["verdict"] == "ask"
    assert rows[0]["profile"] == "default"
    assert "hunter2" not in rows[0]["subject"]


def test_evaluate_tool_for_shell_command(session):
    assert asyncio.run(session.evaluate_tool("execute_bash", command="ls -la")) is PermissionVerdict.ALLOW
    assert asyncio.run(session.evaluate_tool("execute_bash", command="rm -rf /")) is PermissionVerdict.ASK

    session.trust_all_tools()
    assert asyncio.run(session.evaluate_tool("execute_bash", command="rm -rf /")) is PermissionVerdict.ASK
    assert asyncio.run(session.evaluate_tool("execute_bash", command="git push")) is PermissionVerdict.ALLOW


def test_evaluate_remote_tool(tmp_path):
    catalog = StaticToolCatalog({"fetch": ["fetch_url"]})
    session = asyncio.run(TrustSession.open(tmp_path, catalog=catalog))

    assert asyncio.run(session.evaluate_tool("fetch_url", RemoteServer("fetch"))) is PermissionVerdict.ASK
    session.trust_tools(["@fetch"])
    assert asyncio.run(session.evaluate_tool("fetch_url", RemoteServer("fetch"))) is PermissionVerdict.ALLOW
    assert asyncio.run(session.evaluate_tool("other", RemoteServer("fetch"))) is PermissionVerdict.DENY


def test_tool_audit_uses_namespaced_subject(session):
    asyncio.run(session.evaluate_tool("fetch_url", RemoteServer("fetch")))
    rows = session.audit.query(kind="tool")
    assert rows[-1]["subject"] == "@fetch/fetch_url"


def test_overrides_are_not_persisted_until_saved(tmp_path):
    session = asyncio.run(TrustSession.open(tmp_path, agent="dev"))
    session.trust_tools(["fs_write"])
    session.untrust_tools(["thinking"])

    reopened = asyncio.run(TrustSession.open(tmp_path, agent="dev"))
    assert reopened.display_label("fs_write") == "* not trusted"

    asyncio.run(session.save_agent_trust())
    assert session.permissions.overrides.is_empty()

    reopened = asyncio.run(TrustSession.open(tmp_path, agent="dev"))
    assert reopened.display_label("fs_write") == "* trusted"
    assert reopened.display_label("thinking") == "* not trusted"
    raw = json.loads((tmp_path / "agents" / "dev.json").read_text())
    assert raw["allowedTools"] == ["fs_read", "fs_write", "report_issue"]


def test_reset_and_reset_tool(session):
    session.trust_tools(["fs_write", "use_aws"])
    session.reset_tool("fs_write")
    assert session.display_label("fs_write") == "* not trusted"
    assert session.display_label("use_aws") == "* trusted"

    session.reset()
    assert session.display_label("use_aws") == "* trust read-only commands"


def test_switch_profile(session):
    asyncio.run(session.add_trusted_command("git*"))
    asyncio.run(session.switch_profile("work"))
    assert session.profile == "work"
    assert not session.is_trusted("git status")


def test_from_config_enables_audit(tmp_path):
    config = Config(profile="work", agent="dev")
    session = asyncio.run(TrustSession.from_config(config, data_dir=tmp_path))
    assert session.profile == "work"
    assert session.agent == "dev"
    assert session.audit.path == tmp_path / "logs" / "decisions.jsonl"

    config = Config.model_validate({"audit": {"enabled": False}})
    session = asyncio.run(TrustSession.from_config(config, data_dir=tmp_path))
    assert session.audit is None


def test_suggest_patterns(session):
    assert [p for p, _ in session.suggest_patterns("npm run build")] == ["npm run build", "npm run*", "npm*"]


def test_saved_untrust_of_default_tool_asks(tmp_path):
    session = asyncio.run(TrustSession.open(tmp_path))
    session.untrust_tools(["fs_read"])
    asyncio.run(session.save_agent_trust())

    assert asyncio.run(session.evaluate_tool("fs_read")) is PermissionVerdict.ASK
    assert session.display_label("fs_read") == "* not trusted"

    reopened = asyncio.run(TrustSession.open(tmp_path))
    assert asyncio.run(reopened.evaluate_tool("fs_read")) is PermissionVerdict.ASK
    assert asyncio.run(reopened.evaluate_tool("report_issue")) is PermissionVerdict.ALLOW


def test_failed_profile_switch_keeps_current_profile(tmp_path):
    session = asyncio.run(TrustSession.open(tmp_path, profile="work"))
    asyncio.run(session.add_trusted_command("git push*"))
    broken = tmp_path / "profiles" / "home" / "context.json"
    broken.parent.mkdir(parents=True)
    broken.write_text("{broken")

    with pytest.raises(ConfigParseError):
        asyncio.run(session.switch_profile("home"))

    assert session.profile == "work"
    assert not session.requires_acceptance("git push origin main")
    assert session.store.repository.commands_path(False) == tmp_path / "profiles" / "work" / "context.json"


def test_trusted_pattern_is_logged(session):
    asyncio.run(session.add_trusted_command("npm run *"))
    asyncio.run(session.check_command("npm run build"))
    asyncio.run(session.check_command("npm install"))

    rows = session.audit.query(pattern="npm run *")
    assert [r["subject"] for r in rows] == ["npm run build"]


def test_unknown_tools(session):
    assert session.unknown_tools(["fs_read", "fs_reed", "@fetch/get", "@"]) == ["fs_reed", "@"]
