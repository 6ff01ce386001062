"""
Knowledge Store MCP Server

This MCP server persists free-form knowledge items for a coding agent across
sessions and retrieves them by lexical relevance.

Tools:
- save_knowledge: store a titled, tagged knowledge item (global or project scoped)
- search_knowledge: rank stored items against a query with scope and tag filters

Resources:
- knowledge://config: store location, scoring weights and limits
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import aiofiles
import aiofiles.os
from fastmcp import FastMCP

from .config import KNOWLEDGE_CONFIG, SERVER_CONFIG, get_knowledge_base_path
from .ids import now_iso, project_hash
from .models import SaveKnowledgeInput, SearchKnowledgeInput, SearchResult
from .repository import KnowledgeRepository
from .scoring import DEFAULT_WEIGHTS
from .search import search_knowledge as run_search

logger = logging.getLogger(__name__)

# Initialize FastMCP server
mcp = FastMCP(
    "knowledge_mcp",
    instructions=(
        "Persistent knowledge for coding agents. Save conventions, decisions and "
        "lessons as titled, tagged items; search them later by keyword."
    ),
)

AUDIT_LOG_NAME = "audit.log"

_repository: Optional[KnowledgeRepository] = None
audit_lock = asyncio.Lock()


def get_repository() -> KnowledgeRepository:
    """Repository for the configured store path, recreated if the path changes."""
    global _repository
    root = get_knowledge_base_path()
    if _repository is None or _repository.root != root:
        _repository = KnowledgeRepository(root)
    return _repository


def reset_repository() -> None:
    global _repository
    _repository = None


async def audit(root: Path, action: str, details: str = "") -> None:
    """Append an operation to the store's audit log.

    Entry format: ``timestamp | action | details``. A failed audit write is
    logged and does not fail the operation.
    """
    entry = f"{now_iso()} | {action} | {details}\n"

    async with audit_lock:
        try:
            await aiofiles.os.makedirs(root, exist_ok=True)
            async with aiofiles.open(root / AUDIT_LOG_NAME, "a", encoding="utf-8") as f:
                await f.write(entry)
        except OSError as e:
            logger.error("Audit log write failed: %s", e)


# ============================================================================
# Handlers
# ============================================================================

def format_result(result: SearchResult) -> Dict[str, Any]:
    item = result.item
    formatted: Dict[str, Any] = {
        "id": item.id,
        "title": item.title,
        "scope": item.scope,
        "tags": item.tags,
        "created_at": item.created_at,
        "score": result.score,
        "preview": result.preview,
    }
    if item.project_path:
        formatted["project_path"] = item.project_path
    return formatted


async def handle_save_knowledge(params: SaveKnowledgeInput) -> Dict[str, Any]:
    repo = get_repository()
    item = await repo.save(
        title=params.title,
        content=params.content,
        tags=params.tags,
        scope=params.scope,
        project_path=params.project_path,
    )

    details = f"id={item.id} | scope={item.scope} | tags={len(item.tags)}"
    if item.project_path:
        details += f" | project={project_hash(item.project_path)}"
    await audit(repo.root, "save_knowledge", details)

    lines = [
        "Knowledge saved",
        f"  ID: {item.id}",
        f"  Title: {item.title}",
        f"  Scope: {item.scope}",
    ]
    if item.tags:
        lines.append(f"  Tags: {', '.join(item.tags)}")
    if item.project_path:
        lines.append(f"  Project: {item.project_path}")
    lines.append(f"  Saved to: {repo.root}")

    response: Dict[str, Any] = {
        "success": True,
        "id": item.id,
        "title": item.title,
        "scope": item.scope,
        "tags": item.tags,
        "saved_to": str(repo.root),
        "message": "\n".join(lines),
    }
    if item.project_path:
        response["project_path"] = item.project_path
    return response


async def handle_search_knowledge(params: SearchKnowledgeInput) -> Dict[str, Any]:
    repo = get_repository()
    results = await run_search(
        repo,
        params.query,
        tags=params.tags,
        scope=params.scope,
        limit=params.limit,
        project_path=params.project_path,
    )

    await audit(
        repo.root,
        "search_knowledge",
        f"query={params.query!r} | scope={params.scope} | results={len(results)}",
    )

    if results:
        message = f'Found {len(results)} knowledge item(s) matching "{params.query}"'
    else:
        message = f'No knowledge items found matching "{params.query}"'

    return {
        "query": params.query,
        "scope": params.scope,
        "results_count": len(results),
        "results": [format_result(r) for r in results],
        "message": message,
    }


# ============================================================================
# MCP Tools
# ============================================================================

@mcp.tool(
    name="save_knowledge",
    annotations={
        "title": "Save Knowledge",
        "readOnlyHint": False,
        "destructiveHint": False,
        "idempotentHint": False,
        "openWorldHint": False
    }
)
async def save_knowledge(params: SaveKnowledgeInput) -> Dict[str, Any]:
    """Save a knowledge item for future reference.

    Knowledge can be global or project-scoped, and tagged for easy retrieval.
    Every call creates a new item with a fresh id, even if the title repeats.

    Args:
        params: SaveKnowledgeInput with title, content, tags, scope and
                projectPath (required when scope is 'project').

    Returns:
        Dict with success status, id, title, scope, tags, project_path (for
        project items), saved_to directory, and a confirmation message.
    """
    return await handle_save_knowledge(params)


@mcp.tool(
    name="search_knowledge",
    annotations={
        "title": "Search Knowledge",
        "readOnlyHint": True,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": False
    }
)
async def search_knowledge(params: SearchKnowledgeInput) -> Dict[str, Any]:
    """Search saved knowledge items by query text and optional filters.

    Matches are scored on title, tags and content and returned by relevance.
    Tag filters match items carrying any of the given tags.

    Args:
        params: SearchKnowledgeInput with query, tags, scope ('global',
                'project' or 'all'), projectPath and limit.

    Returns:
        Dict with query, scope, results_count, results list (id, title, scope,
        tags, project_path, created_at, score, preview) and a summary message.
    """
    return await handle_search_knowledge(params)


# ============================================================================
# MCP Resources
# ============================================================================

def render_config() -> str:
    """Markdown summary of the store location, scoring weights and limits."""
    weights = DEFAULT_WEIGHTS
    return f"""# Knowledge Store Configuration

## Storage

- Location: {get_knowledge_base_path()}
- Index content prefix: {KNOWLEDGE_CONFIG['index_content_chars']} characters
- Search preview: {KNOWLEDGE_CONFIG['preview_chars']} characters
- Default result limit: {KNOWLEDGE_CONFIG['default_limit']}

## Relevance Scoring

| Field   | Exact match | Partial match |
|---------|-------------|---------------|
| Title   | +{weights.title_exact} | +{weights.title_partial} |
| Tag     | +{weights.tag_exact} | +{weights.tag_partial} |
| Content | +{weights.content_exact} | +{weights.content_partial} |

Scores add up over every query token and every field token. Items scoring 0
are not returned. Equal scores are ordered by id.
"""


@mcp.resource("knowledge://config")
def knowledge_config() -> str:
    """Provides the current knowledge store configuration."""
    return render_config()


# ============================================================================
# Server Entry Point
# ============================================================================

def main() -> None:
    logging.basicConfig(level=SERVER_CONFIG["log_level"], stream=sys.stderr)
    transport = SERVER_CONFIG["transport"]
    logger.info("Starting knowledge MCP server (%s), store at %s", transport, get_knowledge_base_path())
    if transport == "stdio":
        mcp.run()
    else:
        mcp.run(
            transport=transport,
            host=SERVER_CONFIG["host"],
            port=SERVER_CONFIG["port"]
        )


if __name__ == "__main__":
    main()
