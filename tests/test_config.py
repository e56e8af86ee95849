"""
Tests for configuration loading — file, environment and flag precedence.
"""

import textwrap
from pathlib import Path

import pytest

from stackconverge.core.config.loader import (
    env_overrides,
    find_config_file,
    load_configuration,
    read_config_file,
)
from stackconverge.core.errors import ConfigurationInvalid


def write_config(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "stackconverge.yml"
    path.write_text(textwrap.dedent(content))
    return path


class TestReadConfigFile:
    def test_flat(self, tmp_path: Path):
        path = write_config(tmp_path, """\
            domain: glpi.example.lan
            db_name: helpdesk
        """)
        assert read_config_file(path) == {"domain": "glpi.example.lan", "db_name": "helpdesk"}

    def test_wrapped_under_stack(self, tmp_path: Path):
        path = write_config(tmp_path, """\
            stack:
              domain: glpi.example.lan
        """)
        assert read_config_file(path) == {"domain": "glpi.example.lan"}

    def test_empty_file(self, tmp_path: Path):
        assert read_config_file(write_config(tmp_path, "")) == {}

    def test_missing(self, tmp_path: Path):
        with pytest.raises(ConfigurationInvalid, match="not found"):
            read_config_file(tmp_path / "nope.yml")

    def test_invalid_yaml(self, tmp_path: Path):
        with pytest.raises(ConfigurationInvalid, match="Invalid YAML"):
            read_config_file(write_config(tmp_path, "domain: [unclosed\n"))

    def test_not_a_mapping(self, tmp_path: Path):
        with pytest.raises(ConfigurationInvalid, match="mapping"):
            read_config_file(write_config(tmp_path, "- a\n- b\n"))


class TestFindConfigFile:
    def test_walks_up(self, tmp_path: Path):
        path = write_config(tmp_path, "domain: a.lan\n")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        assert find_config_file(nested) == path

    def test_none(self, tmp_path: Path):
        assert find_config_file(tmp_path) is None


class TestEnvOverrides:
    def test_known_keys_only(self):
        env = {
            "STACKCONVERGE_DOMAIN": "env.lan",
            "STACKCONVERGE_LOG_LEVEL": "DEBUG",
            "STACKCONVERGE_CERT_SUBJECT": "x",
            "PATH": "/usr/bin",
        }
        assert env_overrides(env) == {"domain": "env.lan"}


class TestLoadConfiguration:
    def test_defaults(self):
        config = load_configuration(environ={}, search=False)
        assert config.domain == "pts.lan"

    def test_precedence(self, tmp_path: Path):
        path = write_config(tmp_path, """\
            domain: file.lan
            db_name: from_file
            db_user: from_file
        """)
        config = load_configuration(
            path,
            overrides={"domain": "flag.lan", "db_user": None},
            environ={"STACKCONVERGE_DOMAIN": "env.lan", "STACKCONVERGE_DB_NAME": "from_env"},
        )
        assert config.domain == "flag.lan"
        assert config.db_name == "from_env"
        assert config.db_user == "from_file"

    def test_env_values_are_coerced(self):
        config = load_configuration(
            environ={"STACKCONVERGE_OPEN_BROWSER": "false", "STACKCONVERGE_CERT_VALIDITY_DAYS": "90"},
            search=False,
        )
        assert config.open_browser is False
        assert config.cert_validity_days == 90

    def test_password_from_env(self):
        config = load_configuration(environ={"STACKCONVERGE_DB_PASSWORD": "pw"}, search=False)
        assert config.db_password.get_secret_value() == "pw"

    def test_cert_subject_from_file(self, tmp_path: Path):
        path = write_config(tmp_path, """\
            cert_subject:
              C: BE
              O: Example
        """)
        config = load_configuration(path, environ={})
        assert config.cert_subject == {"C": "BE", "O": "Example"}

    def test_invalid_reports_every_field(self, tmp_path: Path):
        path = write_config(tmp_path, """\
            domain: "not a domain"
            db_name: "bad-name"
        """)
        with pytest.raises(ConfigurationInvalid) as exc:
            load_configuration(path, environ={})
        message = str(exc.value)
        assert "domain" in message
        assert "db_name" in message

    def test_unknown_key(self, tmp_path: Path):
        path = write_config(tmp_path, "colour: blue\n")
        with pytest.raises(ConfigurationInvalid, match="colour"):
            load_configuration(path, environ={})
