"""Tests for the trustgate CLI."""

import json

import pytest
from typer.testing import CliRunner

from trustgate import __version__
from trustgate.cli.commands import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def data_dir(tmp_path, monkeypatch):
    """Point all trustgate state at a temporary directory."""
    monkeypatch.setenv("TRUSTGATE_HOME", str(tmp_path))
    return tmp_path


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_check_readonly_and_unknown():
    result = runner.invoke(app, ["check", "ls -la"])
    assert result.exit_code == 0
    assert "auto-approved" in result.stdout

    result = runner.invoke(app, ["check", "git status"])
    assert result.exit_code == 0
    assert "requires confirmation" in result.stdout


def test_allow_then_check(data_dir):
    result = runner.invoke(app, ["allow", "-c", "git*", "-d", "git commands"])
    assert result.exit_code == 0
    assert 'Trusted "git*" (profile)' in result.stdout

    result = runner.invoke(app, ["check", "git status"])
    assert "auto-approved" in result.stdout
    assert 'matched trusted pattern "git*"' in result.stdout

    raw = json.loads((data_dir / "profiles" / "default" / "context.json").read_text())
    assert raw["trusted_commands"] == [{"command": "git*", "description": "git commands"}]


def test_allow_rejects_dangerous():
    result = runner.invoke(app, ["allow", "-c", "npm*", "-c", "rm -rf *"])
    assert result.exit_code == 1
    assert 'Trusted "npm*"' in result.stdout
    assert "dangerous" in result.stdout


def test_allow_global_and_list(data_dir):
    runner.invoke(app, ["allow", "-g", "-c", "ls*"])
    runner.invoke(app, ["allow", "-c", "npm run *"])

    result = runner.invoke(app, ["list"])
    assert result.exit_code == 0
    assert "ls*" in result.stdout
    assert "npm run *" in result.stdout

    result = runner.invoke(app, ["list", "--global"])
    assert "ls*" in result.stdout
    assert "npm run *" not in result.stdout

    assert (data_dir / "global_context.json").exists()


def test_list_empty():
    result = runner.invoke(app, ["list"])
    assert result.exit_code == 0
    assert "No trusted commands configured." in result.stdout


def test_remove():
    runner.invoke(app, ["allow", "-c", "git*"])
    result = runner.invoke(app, ["remove", "-c", "git*", "-c", "npm*"])
    assert result.exit_code == 1
    assert 'Removed "git*"' in result.stdout
    assert '"npm*" is not trusted in profile scope' in result.stdout


def test_clear_requires_confirmation():
    runner.invoke(app, ["allow", "-c", "git*"])

    result = runner.invoke(app, ["clear"], input="n\n")
    assert result.exit_code == 0
    assert "git*" in runner.invoke(app, ["list"]).stdout

    result = runner.invoke(app, ["clear", "--yes"])
    assert result.exit_code == 0
    assert "No trusted commands configured." in runner.invoke(app, ["list"]).stdout


def test_suggest():
    result = runner.invoke(app, ["suggest", "npm run build"])
    assert result.exit_code == 0
    assert '1. "npm run build" - Trust this exact command only' in result.stdout
    assert "2. \"npm run*\" - Trust all 'npm run' commands" in result.stdout
    assert "3. \"npm*\" - Trust all 'npm' commands" in result.stdout


def test_profile_option(data_dir):
    result = runner.invoke(app, ["--profile", "work", "allow", "-c", "make*"])
    assert result.exit_code == 0
    assert (data_dir / "profiles" / "work" / "context.json").exists()
    assert "make*" not in runner.invoke(app, ["list"]).stdout


def test_invalid_profile_option():
    result = runner.invoke(app, ["--profile", "bad name", "list"])
    assert result.exit_code != 0


def test_malformed_config_file(data_dir):
    (data_dir / "global_context.json").write_text("{broken")
    result = runner.invoke(app, ["list"])
    assert result.exit_code == 1
    assert "Invalid configuration file" in result.stdout
    assert (data_dir / "global_context.json").read_text() == "{broken"


def test_tools_list_defaults():
    result = runner.invoke(app, ["tools", "list"])
    assert result.exit_code == 0
    assert "fs_read" in result.stdout
    assert "trust read-only commands" in result.stdout


def test_tools_trust_untrust_reset(data_dir):
    result = runner.invoke(app, ["tools", "trust", "fs_write", "@fetch"])
    assert result.exit_code == 0
    raw = json.loads((data_dir / "agents" / "default.json").read_text())
    assert "fs_write" in raw["allowedTools"]
    assert "@fetch" in raw["allowedTools"]

    result = runner.invoke(app, ["tools", "list", "@fetch/get"])
    assert "@fetch/get" in result.stdout

    result = runner.invoke(app, ["tools", "untrust", "fs_read"])
    assert result.exit_code == 0
    raw = json.loads((data_dir / "agents" / "default.json").read_text())
    assert "fs_read" not in raw["allowedTools"]

    result = runner.invoke(app, ["tools", "reset", "fs_read"])
    assert result.exit_code == 0
    raw = json.loads((data_dir / "agents" / "default.json").read_text())
    assert "fs_read" in raw["allowedTools"]

    result = runner.invoke(app, ["tools", "reset"])
    assert result.exit_code == 0
    raw = json.loads((data_dir / "agents" / "default.json").read_text())
    assert raw["allowedTools"] == ["fs_read", "report_issue", "thinking"]


def test_audit_records_checks():
    runner.invoke(app, ["check", "ls"])
    runner.invoke(app, ["check", "git push"])

    result = runner.invoke(app, ["audit", "--verdict", "ask"])
    assert result.exit_code == 0
    assert "git push" in result.stdout
    assert "allow" not in result.stdout


def test_audit_empty():
    result = runner.invoke(app, ["audit"])
    assert result.exit_code == 0
    assert "No decisions recorded." in result.stdout


def test_tools_trust_unknown_name(data_dir):
    result = runner.invoke(app, ["tools", "trust", "fs_reed"])
    assert result.exit_code == 1
    assert "Cannot trust 'fs_reed', it does not exist." in result.stdout
    assert not (data_dir / "agents" / "default.json").exists()

    result = runner.invoke(app, ["tools", "untrust", "fs_write", "nope", "@"])
    assert result.exit_code == 1
    assert "fs_write set to per-request confirmation" in result.stdout
    assert "Cannot untrust 'nope', '@', they do not exist." in result.stdout

    result = runner.invoke(app, ["tools", "reset", "nope"])
    assert result.exit_code == 1
    assert "Cannot reset 'nope', it does not exist." in result.stdout


def test_tools_list_server_entry():
    result = runner.invoke(app, ["tools", "list", "@fetch"])
    assert result.exit_code == 0
    line = next(line for line in result.stdout.splitlines() if "@fetch" in line)
    assert "not trusted" in line

    runner.invoke(app, ["tools", "trust", "@fetch"])
    result = runner.invoke(app, ["tools", "list", "@fetch"])
    line = next(line for line in result.stdout.splitlines() if "@fetch" in line)
    assert "* trusted" in line


def test_tools_untrust_default_tool_is_kept():
    runner.invoke(app, ["tools", "untrust", "fs_read"])
    result = runner.invoke(app, ["tools", "list"])
    line = next(line for line in result.stdout.splitlines() if "fs_read" in line)
    assert "not trusted" in line


def test_audit_filters_by_subject_and_pattern():
    runner.invoke(app, ["allow", "-c", "git push*"])
    runner.invoke(app, ["check", "git push origin"])
    runner.invoke(app, ["check", "npm install"])

    result = runner.invoke(app, ["audit", "--subject", "git *"])
    assert result.exit_code == 0
    assert "git push origin" in result.stdout
    assert "npm install" not in result.stdout

    result = runner.invoke(app, ["audit", "--pattern", "git push*", "--json"])
    assert "git push origin" in result.stdout
    assert '"pattern": "git push*"' in result.stdout
    assert "npm install" not in result.stdout
