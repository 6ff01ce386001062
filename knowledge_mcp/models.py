"""Pydantic models for persisted knowledge documents and tool inputs."""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .config import KNOWLEDGE_CONFIG

ItemScope = Literal["global", "project"]
SearchScope = Literal["global", "project", "all"]

INDEX_FORMAT_VERSION = 1


# ============================================================================
# Persisted Documents
# ============================================================================

class _Document(BaseModel):
    """Base for on-disk documents: camelCase keys, unknown keys ignored."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True, indent=2)


class KnowledgeItem(_Document):
    """Full record for one knowledge item."""

    id: str
    title: str
    content: str
    tags: List[str] = Field(default_factory=list)
    scope: ItemScope = "global"
    project_path: Optional[str] = None
    created_at: str
    updated_at: Optional[str] = None
    content_hash: Optional[str] = None

    @field_validator("tags", mode="before")
    @classmethod
    def _null_tags(cls, value):
        return [] if value is None else value

    @model_validator(mode="after")
    def _default_updated_at(self) -> "KnowledgeItem":
        # Items are never modified after creation.
        if self.updated_at is None:
            self.updated_at = self.created_at
        return self


class IndexEntry(KnowledgeItem):
    """Index projection of a KnowledgeItem with content cut to a fixed prefix."""

    @classmethod
    def from_item(cls, item: KnowledgeItem) -> "IndexEntry":
        data = item.model_dump()
        data["content"] = item.content[:KNOWLEDGE_CONFIG["index_content_chars"]]
        return cls(**data)


class KnowledgeIndex(_Document):
    """Mapping of item id to IndexEntry plus a whole-index timestamp."""

    items: Dict[str, IndexEntry] = Field(default_factory=dict)
    last_updated: Optional[str] = None
    version: int = INDEX_FORMAT_VERSION


# ============================================================================
# Input Models for Tools
# ============================================================================

class SaveKnowledgeInput(BaseModel):
    """Input for saving a knowledge item."""
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    title: str = Field(..., description="Knowledge item title", min_length=1)
    content: str = Field(..., description="The knowledge content")
    tags: List[str] = Field(default_factory=list, description="Tags for categorization")
    scope: ItemScope = Field(default="global", description="Scope of the knowledge item (default: global)")
    project_path: Optional[str] = Field(
        None,
        alias="projectPath",
        description="For project-scoped items, the project path",
    )

    @model_validator(mode="after")
    def _check_project_path(self) -> "SaveKnowledgeInput":
        if self.scope == "project":
            if not self.project_path:
                raise ValueError("projectPath is required for project-scoped knowledge")
        else:
            self.project_path = None
        return self


class SearchKnowledgeInput(BaseModel):
    """Input for searching knowledge items."""
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    query: str = Field(..., description="Search query")
    tags: Optional[List[str]] = Field(None, description="Filter by tags (matches any)")
    scope: SearchScope = Field(default="all", description="Scope to search within (default: all)")
    project_path: Optional[str] = Field(
        None,
        alias="projectPath",
        description="With scope 'project', only return items saved for this exact path",
    )
    limit: int = Field(
        default=KNOWLEDGE_CONFIG["default_limit"],
        description="Maximum number of results to return (default: 10)",
        ge=0,
    )


# ============================================================================
# Search Results
# ============================================================================

class SearchResult(BaseModel):
    """A scored knowledge item."""

    item: KnowledgeItem
    score: int

    @property
    def preview(self) -> str:
        limit = KNOWLEDGE_CONFIG["preview_chars"]
        content = self.item.content
        if len(content) > limit:
            return content[:limit] + "..."
        return content
