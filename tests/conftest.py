"""Knowledge store test configuration."""
import sys
from pathlib import Path

import pytest

# Ensure knowledge_mcp is importable without installation
sys.path.insert(0, str(Path(__file__).parent.parent))

from knowledge_mcp.models import KnowledgeItem
from knowledge_mcp.repository import KnowledgeRepository


@pytest.fixture
def store_dir(tmp_path, monkeypatch):
    """Point the server at a temporary knowledge directory."""
    from knowledge_mcp.server import reset_repository

    knowledge_dir = tmp_path / "knowledge"
    monkeypatch.setenv("KNOWLEDGE_BASE_PATH", str(knowledge_dir))
    reset_repository()
    yield knowledge_dir
    reset_repository()


@pytest.fixture
def repo(tmp_path):
    """Create a fresh KnowledgeRepository for testing."""
    return KnowledgeRepository(tmp_path / "knowledge")


def make_item(
    id="item-1",
    title="Naming Conventions",
    content="Use camelCase for variables",
    tags=None,
    scope="global",
    project_path=None,
):
    """Build a KnowledgeItem without touching disk."""
    return KnowledgeItem(
        id=id,
        title=title,
        content=content,
        tags=tags if tags is not None else ["style"],
        scope=scope,
        project_path=project_path,
        created_at="2026-01-01T00:00:00+00:00",
    )
