import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from portwarden import __version__
from portwarden import cli
from portwarden.cli import app
from portwarden.system.platforms import UnixPlatform

from conftest import LSOF_NODE_AND_POSTGRES, FakeRunner, ok


LSOF = ("lsof", "-i", "-P", "-n")


@pytest.fixture
def fake(monkeypatch):
    runner = FakeRunner({LSOF: ok(LSOF_NODE_AND_POSTGRES)})
    monkeypatch.setattr(cli, "detect_platform", lambda: UnixPlatform("linux"))
    monkeypatch.setattr(cli, "SubprocessRunner", lambda timeout=None: runner)
    return runner


def test_version():
    result = CliRunner().invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_classify_critical_and_plain():
    runner = CliRunner()
    result = runner.invoke(app, ["classify", "kernel_task"])
    assert result.exit_code == 0
    assert "critical" in result.output
    assert "cannot be overridden" in result.output

    result = runner.invoke(app, ["classify", "node", "--port", "5432"])
    assert "PostgreSQL service port" in result.output


def test_scan_json(fake):
    result = CliRunner().invoke(app, ["scan", "--json"])
    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data["success"] is True
    assert [r["port"] for r in data["data"]] == [3000, 5432]
    assert data["stats"]["protected"] == 1


def test_scan_table(fake):
    result = CliRunner().invoke(app, ["scan"])
    assert result.exit_code == 0
    assert "postgres" in result.output
    assert "2 port(s)" in result.output


def test_kill_invalid_pid_exits_nonzero(fake):
    result = CliRunner().invoke(app, ["kill", "abc"])
    assert result.exit_code == 1
    assert "Invalid PID" in result.output
    assert fake.calls == []


def test_kill_confirmed(fake):
    fake.responses[("kill", "-9", "12345")] = ok()
    result = CliRunner().invoke(app, ["kill", "12345", "--name", "node", "--port", "3000"], input="y\n")
    assert result.exit_code == 0, result.output
    assert "Stop node (PID: 12345)?" in result.output
    assert "has been terminated" in result.output


def test_kill_declined(fake):
    result = CliRunner().invoke(app, ["kill", "12345", "--name", "node"], input="n\n")
    assert result.exit_code == 1
    assert ("kill", "-9", "12345") not in fake.calls


def test_kill_port_protected_with_force_and_yes(fake):
    fake.responses[("lsof", "-i", ":5432", "-P", "-n")] = ok(LSOF_NODE_AND_POSTGRES)
    fake.responses[("kill", "-9", "23456")] = ok()
    result = CliRunner().invoke(app, ["kill-port", "5432", "--force", "--yes"])
    assert result.exit_code == 0, result.output
    assert ("kill", "-9", "23456") in fake.calls


def test_kill_critical_blocked(fake):
    result = CliRunner().invoke(app, ["kill", "1", "--name", "launchd", "--force", "--yes"])
    assert result.exit_code == 1
    assert "cannot be stopped" in result.output


def test_invalid_config_exits_2(tmp_path: Path):
    bad = tmp_path / "bad.yml"
    bad.write_text("scan:\n  retry_attempts: -1\n", encoding="utf-8")
    result = CliRunner().invoke(app, ["--config", str(bad), "classify", "node"])
    assert result.exit_code == 2
