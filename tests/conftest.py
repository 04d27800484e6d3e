"""Pytest configuration and fixtures for embedgrid tests."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from test_helpers import FakeBackend


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path) -> Path:
    """Point the config file at a test-specific location for every test."""
    config_dir = tmp_path / "config"
    monkeypatch.setattr("embedgrid.config.CONFIG_DIR", config_dir)
    monkeypatch.setattr("embedgrid.config.CONFIG_PATH", config_dir / "config.toml")
    monkeypatch.setattr("embedgrid.config._cached_config", None)
    for name in (
        "EMBEDGRID_BACKEND",
        "EMBEDGRID_MODEL",
        "EMBEDGRID_DEVICE",
        "EMBEDGRID_DEBOUNCE_MS",
        "EMBEDGRID_PRECISION",
    ):
        monkeypatch.delenv(name, raising=False)
    return config_dir


@pytest.fixture
def fake_backend() -> FakeBackend:
    """Backend returning orthogonal vectors for "cat" and "dog"."""
    return FakeBackend(vectors={"cat": [1.0, 0.0], "dog": [0.0, 1.0]})
