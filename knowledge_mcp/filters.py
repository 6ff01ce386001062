"""Scope and tag filters applied before scoring."""

from typing import Optional, Sequence

from .models import KnowledgeItem


def matches_scope(item: KnowledgeItem, scope: str, project_path: Optional[str] = None) -> bool:
    """Check item visibility for a requested scope.

    'project' with a project_path compares paths by exact string equality.
    """
    if scope == "all":
        return True
    if scope == "global":
        return item.scope == "global"
    if scope == "project":
        if not project_path:
            return item.scope == "project"
        return item.scope == "project" and item.project_path == project_path
    return True


def matches_tags(item: KnowledgeItem, tags: Optional[Sequence[str]]) -> bool:
    """Filter items that carry any of the provided tags (case-insensitive)."""
    if not tags:
        return True
    item_tags = {tag.lower() for tag in item.tags}
    return any(tag.lower() in item_tags for tag in tags)


def passes_filters(
    item: KnowledgeItem,
    scope: str = "all",
    tags: Optional[Sequence[str]] = None,
    project_path: Optional[str] = None,
) -> bool:
    return matches_scope(item, scope, project_path) and matches_tags(item, tags)
