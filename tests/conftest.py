"""Root pytest configuration for all tests."""

from __future__ import annotations

import pytest

from filetail.config import reset_config
from filetail.logging import reset_logging

# Configure pytest-asyncio to use auto mode
# This is redundant with pyproject.toml but ensures it's set
pytest_plugins = ("pytest_asyncio",)


@pytest.fixture(autouse=True)
def _clean_globals():
    """Drop cached config and logging handlers between tests."""
    yield
    reset_config()
    reset_logging()


@pytest.fixture
def log_file(tmp_path):
    """A file with a couple of complete lines."""
    path = tmp_path / "app.log"
    path.write_bytes(b"hello\nworld\n")
    return path
