"""
Tests for the data registry — package catalog and templates.
"""

import json
from pathlib import Path

import pytest

from stackconverge.core.data import DataRegistry


class TestPackages:
    def test_php_version_substituted(self):
        packages = DataRegistry().packages("8.2")
        assert packages[0] == "apache2"
        assert "php8.2" in packages
        assert "php8.2-bcmath" in packages
        assert not any("{php}" in p for p in packages)

    def test_duplicates_removed(self, tmp_path: Path):
        (tmp_path / "catalogs").mkdir()
        (tmp_path / "catalogs" / "packages.json").write_text(
            json.dumps({"base": ["tar", "php{php}"], "php": ["php{php}", "php{php}-cli"]})
        )
        assert DataRegistry(tmp_path).packages("8.3") == ["tar", "php8.3", "php8.3-cli"]

    def test_missing_catalog_is_empty(self, tmp_path: Path):
        assert DataRegistry(tmp_path).packages("8.2") == []


class TestWebModules:
    def test_catalog(self):
        modules = DataRegistry().web_modules
        assert modules["http"] == ["proxy_fcgi", "setenvif", "rewrite"]
        assert modules["https"] == ["ssl", "http2"]
        assert modules["default_sites"] == ["000-default"]


class TestRender:
    def test_render(self):
        text = DataRegistry().render(
            "config_db.php", db_name="glpidb", db_user="glpiuser", db_password="pw"
        )
        assert text.startswith("<?php\n")
        assert "$DBUSER     = 'glpiuser';" in text

    def test_missing_value(self):
        with pytest.raises(KeyError):
            DataRegistry().render("config_db.php", db_name="glpidb")

    def test_unknown_template(self):
        with pytest.raises(KeyError, match="Unknown template"):
            DataRegistry().render("nope.conf")
