"""Shared fixtures for the sentinel-memory test suite.

Every store lives under pytest's ``tmp_path`` so no test ever touches a
real workspace.
"""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest

from sentinel_memory.store import MemoryStore


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """An empty workspace directory."""
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def store(workspace: Path) -> Generator[MemoryStore, None, None]:
    """A freshly created store for ``workspace``."""
    s = MemoryStore(workspace)
    yield s
    s.close()
