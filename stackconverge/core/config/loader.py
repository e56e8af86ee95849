"""
Configuration loader — resolves one immutable Configuration per run.

Sources, lowest to highest precedence:

    built-in defaults
    stackconverge.yml          (flat, or wrapped under a "stack" key)
    STACKCONVERGE_<KEY> environment variables
    CLI flags                  (passed in as ``overrides``)

Validation happens once, on the merged mapping. Anything invalid is
reported as ConfigurationInvalid before a single step runs.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from stackconverge.core.errors import ConfigurationInvalid
from stackconverge.core.models.config import Configuration

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILE = "stackconverge.yml"

ENV_PREFIX = "STACKCONVERGE_"

# Keys the environment may set; logging variables share the prefix
_ENV_KEYS = frozenset(Configuration.model_fields) - {"cert_subject"}


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for stackconverge.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to stackconverge.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def read_config_file(path: Path) -> dict[str, Any]:
    """Read a YAML config file into a plain mapping.

    Raises:
        ConfigurationInvalid: If the file is missing, unreadable or not a mapping.
    """
    if not path.is_file():
        raise ConfigurationInvalid(f"Config file not found: {path}")

    logger.debug("Loading stack config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationInvalid(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigurationInvalid(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationInvalid(
            f"Expected a YAML mapping in {path}, got {type(data).__name__}"
        )

    # The YAML may wrap everything under a "stack" key or be flat
    stack = data.get("stack", data)
    if not isinstance(stack, dict):
        raise ConfigurationInvalid(f"'stack' in {path} must be a mapping")
    return dict(stack)


def env_overrides(environ: Mapping[str, str] | None = None) -> dict[str, str]:
    """``STACKCONVERGE_<KEY>`` variables for known configuration keys."""
    environ = os.environ if environ is None else environ
    values = {}
    for name, value in environ.items():
        if not name.startswith(ENV_PREFIX):
            continue
        key = name[len(ENV_PREFIX):].lower()
        if key in _ENV_KEYS:
            values[key] = value
    return values


def load_configuration(
    path: Path | None = None,
    overrides: Mapping[str, Any] | None = None,
    environ: Mapping[str, str] | None = None,
    search: bool = True,
) -> Configuration:
    """Merge every source and validate the result.

    Args:
        path: Explicit config file. If None and ``search`` is set, searches upward.
        overrides: Values from CLI flags; None values are ignored.
        environ: Environment to read (default: ``os.environ``).
        search: Whether to look for a config file when ``path`` is None.

    Raises:
        ConfigurationInvalid: If any source is unreadable or the merged
            values fail validation.
    """
    merged: dict[str, Any] = {}
    sources = ["defaults"]

    if path is None and search:
        path = find_config_file()
    if path is not None:
        merged.update(read_config_file(path))
        sources.append(str(path))

    env = env_overrides(environ)
    if env:
        merged.update(env)
        sources.append("environment")

    flags = {k: v for k, v in (overrides or {}).items() if v is not None}
    if flags:
        merged.update(flags)
        sources.append("flags")

    try:
        config = Configuration.model_validate(merged)
    except ValidationError as e:
        raise ConfigurationInvalid(_format_errors(e)) from e

    logger.info(
        "Configuration for %s %s on %s (from %s)",
        config.app_name,
        config.app_version,
        config.domain,
        ", ".join(sources),
    )
    return config


def _format_errors(error: ValidationError) -> str:
    lines = ["Invalid configuration:"]
    for item in error.errors():
        field = ".".join(str(p) for p in item["loc"]) or "(root)"
        lines.append(f"  {field}: {item['msg']}")
    return "\n".join(lines)
