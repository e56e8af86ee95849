"""
Shared test fixtures and configuration.
"""

from pathlib import Path

import pytest

from stackconverge.adapters.mock import MockHost
from stackconverge.core.engine.prober import StateProber
from stackconverge.core.models.config import Configuration


@pytest.fixture
def tmp_state_dir(tmp_path: Path) -> Path:
    """Return a temporary directory for lock, state and audit files."""
    state_dir = tmp_path / "state"
    state_dir.mkdir()
    return state_dir


@pytest.fixture
def config(tmp_state_dir: Path) -> Configuration:
    """Default configuration with a password and a throwaway state dir."""
    return Configuration(db_password="s3cret", state_dir=str(tmp_state_dir))


@pytest.fixture
def mock_host() -> MockHost:
    """A fresh host: nothing installed, only the default site enabled."""
    return MockHost()


@pytest.fixture
def prober(mock_host: MockHost) -> StateProber:
    return StateProber(mock_host.as_adapters())
