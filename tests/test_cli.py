"""
Tests for the CLI — options, exit codes and output, on in-memory fakes.
"""

import json
import logging
from pathlib import Path

import pytest
from click.testing import CliRunner

from stackconverge.adapters.mock import MockHost
from stackconverge.main import cli


@pytest.fixture(autouse=True)
def _isolated(monkeypatch, tmp_path: Path):
    """No config file or environment from the machine running the tests."""
    monkeypatch.chdir(tmp_path)
    for name in (
        "STACKCONVERGE_DB_PASSWORD",
        "STACKCONVERGE_LOG_LEVEL",
        "STACKCONVERGE_LOG_FILE",
        "STACKCONVERGE_LOG_FILE_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def invoke(*args: str, input: str | None = None):
    return CliRunner().invoke(cli, list(args), input=input)


class FailingDatabaseHost(MockHost):
    def __post_init__(self) -> None:
        super().__post_init__()
        self.database.set_failure("ddl", "ERROR 1045 (28000): Access denied for user 'root'")


class TestCLIGlobal:
    def test_help(self):
        result = invoke("--help")
        assert result.exit_code == 0
        assert "Converge this host" in result.output
        assert "--db-password" in result.output

    def test_version(self):
        result = invoke("--version")
        assert result.exit_code == 0
        assert "0.1.0" in result.output


class TestMockRun:
    def test_success(self, tmp_path: Path):
        result = invoke("--mock", "--db-password", "pw", "--state-dir", str(tmp_path / "s"))
        assert result.exit_code == 0, result.output
        assert "[mock]" in result.output
        assert "[CHANGED]" in result.output
        assert "Post-install notification" in result.output
        assert "https://pts.lan/install/install.php" in result.output
        assert (tmp_path / "s" / "current.json").is_file()
        assert (tmp_path / "s" / "audit.ndjson").is_file()

    def test_flags_reach_configuration(self, tmp_path: Path):
        result = invoke(
            "--mock",
            "--db-password", "pw",
            "--domain", "helpdesk.example.lan",
            "--state-dir", str(tmp_path / "s"),
        )
        assert result.exit_code == 0, result.output
        assert "https://helpdesk.example.lan/install/install.php" in result.output

    def test_config_file(self, tmp_path: Path):
        (tmp_path / "stackconverge.yml").write_text("stack:\n  domain: from-file.lan\n")
        result = invoke("--mock", "--db-password", "pw", "--state-dir", str(tmp_path / "s"))
        assert result.exit_code == 0, result.output
        assert "https://from-file.lan/install/install.php" in result.output

    def test_password_prompt(self, tmp_path: Path):
        result = invoke("--mock", "--state-dir", str(tmp_path / "s"), input="pw\npw\n")
        assert result.exit_code == 0, result.output
        assert "Database password for glpiuser" in result.output

    def test_quiet(self, tmp_path: Path):
        result = invoke("--mock", "--quiet", "--db-password", "pw", "--state-dir", str(tmp_path / "s"))
        assert result.exit_code == 0
        assert "[OK]" not in result.output
        assert "[CHANGED]" in result.output

    def test_json(self, tmp_path: Path):
        result = invoke(
            "--mock", "--json", "--db-password", "s3cretPW", "--state-dir", str(tmp_path / "s")
        )
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["report"]["status"] == "ok"
        assert data["report"]["failed"] == 0
        assert data["install_url"] == "https://pts.lan/install/install.php"
        assert "s3cretPW" not in result.stdout

    def test_json_run_logs_each_action(self, monkeypatch, tmp_path: Path):
        log_file = tmp_path / "run.log"
        monkeypatch.setenv("STACKCONVERGE_LOG_FILE", str(log_file))
        monkeypatch.setenv("STACKCONVERGE_LOG_FILE_LEVEL", "INFO")
        result = invoke(
            "--mock", "--json", "--db-password", "pw", "--state-dir", str(tmp_path / "s")
        )
        assert result.exit_code == 0
        for handler in logging.getLogger().handlers:
            handler.flush()
        text = log_file.read_text()
        assert "[CHANGED] System update / " in text
        assert "complete:" in text


class TestFailures:
    def test_failed_step_exits_1(self, monkeypatch, tmp_path: Path):
        monkeypatch.setattr("stackconverge.adapters.mock.MockHost", FailingDatabaseHost)
        result = invoke("--mock", "--db-password", "pw", "--state-dir", str(tmp_path / "s"))
        assert result.exit_code == 1
        assert "[FAILED]" in result.output
        assert "Failed at step: Configure database" in result.output
        assert "Access denied" in result.output
        assert "Issue TLS certificate" not in result.output

    def test_failed_step_json(self, monkeypatch, tmp_path: Path):
        monkeypatch.setattr("stackconverge.adapters.mock.MockHost", FailingDatabaseHost)
        result = invoke(
            "--mock", "--json", "--db-password", "pw", "--state-dir", str(tmp_path / "s")
        )
        assert result.exit_code == 1
        assert json.loads(result.stdout)["report"]["failed_step"] == "Configure database"

    def test_invalid_flag_value_exits_2(self):
        result = invoke("--mock", "--db-password", "pw", "--domain", "not a domain")
        assert result.exit_code == 2
        assert "domain" in result.output

    def test_invalid_password_exits_2(self):
        result = invoke("--mock", "--db-password", "it's")
        assert result.exit_code == 2

    def test_invalid_config_file_exits_2(self, tmp_path: Path):
        path = tmp_path / "custom.yml"
        path.write_text("colour: blue\n")
        result = invoke("--mock", "--config", str(path), "--db-password", "pw", "--json")
        assert result.exit_code == 2
        assert "colour" in json.loads(result.stdout)["error"]

    def test_interrupt_exits_130(self, monkeypatch, tmp_path: Path):
        def interrupted(*args, **kwargs):
            raise KeyboardInterrupt

        monkeypatch.setattr("stackconverge.core.use_cases.provision.provision", interrupted)
        result = invoke("--mock", "--db-password", "pw", "--state-dir", str(tmp_path / "s"))
        assert result.exit_code == 130
        assert "Interrupted" in result.output
