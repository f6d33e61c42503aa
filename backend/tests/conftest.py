"""
Shared fixtures: a freshly initialized workspace in a temporary folder.
"""

import tempfile
from datetime import datetime
from pathlib import Path

import pytest

from incread.services.workspace_registry import WorkspaceStore

NOW = datetime(2026, 3, 10, 9, 0, 0)


@pytest.fixture
def workspace_dir():
    """Create a temporary workspace folder."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir).resolve()


@pytest.fixture
def workspace(workspace_dir):
    """Workspace with its store created and seeded."""
    return WorkspaceStore(workspace_dir).initialize(now=NOW)


@pytest.fixture
def write_note(workspace_dir):
    """Write a note file below the workspace and return its path."""

    def _write(relative_path: str, content: str) -> Path:
        path = workspace_dir / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write
