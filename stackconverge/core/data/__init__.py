"""
Central data registry for the stack's static content.

The package catalog, web server module lists and file templates are
data, not engine logic. They live as JSON and template files next to
this module and are loaded once at first access.

Usage::

    from stackconverge.core.data import DataRegistry

    data = DataRegistry()
    packages = data.packages("8.2")               # list[str]
    vhost = data.render("vhost_http.conf", domain="pts.lan", ...)

Templates use ``string.Template`` syntax: ``${name}`` placeholders, and
``$$`` for a literal dollar sign.
"""

from __future__ import annotations

import json
import logging
from functools import cached_property
from pathlib import Path
from string import Template

logger = logging.getLogger(__name__)

_DATA_DIR = Path(__file__).parent


def _load_json(relative_path: str, base: Path = _DATA_DIR) -> list | dict:
    """Load a JSON file relative to the data directory."""
    path = base / relative_path
    if not path.exists():
        logger.warning("Data file not found: %s", path)
        return {}
    with open(path, encoding="utf-8") as f:
        return json.load(f)


class DataRegistry:
    """Lazily loaded catalogs and templates.

    Create one instance per process; each property reads its file once.
    """

    def __init__(self, data_dir: Path | None = None):
        self._dir = data_dir or _DATA_DIR

    # ── Catalogs ─────────────────────────────────────────────────

    @cached_property
    def package_catalog(self) -> dict[str, list[str]]:
        """Package groups; ``{php}`` is replaced by the PHP version."""
        data = _load_json("catalogs/packages.json", self._dir)
        logger.debug("Loaded package catalog: %s", list(data))
        return data

    @cached_property
    def web_modules(self) -> dict[str, list[str]]:
        """Web server modules per site kind, plus default sites to disable."""
        data = _load_json("catalogs/web_modules.json", self._dir)
        logger.debug("Loaded web module catalog: %s", list(data))
        return data

    def packages(self, php_version: str) -> list[str]:
        """Every package to install, in catalog order, without duplicates."""
        result: list[str] = []
        for group in self.package_catalog.values():
            for name in group:
                resolved = name.replace("{php}", php_version)
                if resolved not in result:
                    result.append(resolved)
        return result

    # ── Templates ────────────────────────────────────────────────

    @cached_property
    def _templates(self) -> dict[str, Template]:
        templates = {}
        for path in sorted((self._dir / "templates").glob("*")):
            if path.is_file():
                templates[path.name] = Template(path.read_text(encoding="utf-8"))
        logger.debug("Loaded %d templates", len(templates))
        return templates

    def render(self, name: str, **values: str) -> str:
        """Render template ``name``; every placeholder must be supplied.

        Raises:
            KeyError: Unknown template or missing placeholder value.
        """
        template = self._templates.get(name)
        if template is None:
            raise KeyError(f"Unknown template: {name}")
        return template.substitute(values)
