"""
State file persistence — atomic read/write for HostState.

State is stored as JSON in <state_dir>/current.json. Writes are atomic
(write to temp file, then rename) so a crash mid-write never leaves a
truncated file behind.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from stackconverge.core.models.state import HostState

logger = logging.getLogger(__name__)

DEFAULT_STATE_FILE = "current.json"


def default_state_path(state_dir: Path) -> Path:
    """Get the state file path inside a state directory."""
    return state_dir / DEFAULT_STATE_FILE


def load_state(path: Path) -> HostState:
    """Load host state from a JSON file.

    Returns:
        HostState model. A missing or unreadable file yields a fresh state.
    """
    if not path.is_file():
        logger.info("No state file at %s — starting fresh", path)
        return HostState()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        state = HostState.model_validate(data)
        logger.debug("Loaded state from %s (updated_at=%s)", path, state.updated_at)
        return state
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        logger.warning("Cannot load state from %s: %s — starting fresh", path, e)
        return HostState()


def save_state(state: HostState, path: Path) -> None:
    """Save host state to a JSON file (atomic write)."""
    state.touch()
    path.parent.mkdir(parents=True, exist_ok=True)

    content = json.dumps(state.model_dump(mode="json"), indent=2, ensure_ascii=False) + "\n"

    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".state_", suffix=".tmp")
    tmp = Path(tmp_path)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        tmp.replace(path)
        logger.debug("State saved to %s", path)
    except Exception as e:
        tmp.unlink(missing_ok=True)
        logger.error("Failed to save state to %s: %s", path, e)
        raise
