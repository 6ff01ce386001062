"""File-backed knowledge store with lexical search, served over MCP."""

from .models import IndexEntry, KnowledgeIndex, KnowledgeItem, SearchResult
from .repository import KnowledgeRepository
from .scoring import score_item
from .search import search_knowledge
from .tokenizer import tokenize

__version__ = "0.1.0"

__all__ = [
    "IndexEntry",
    "KnowledgeIndex",
    "KnowledgeItem",
    "KnowledgeRepository",
    "SearchResult",
    "score_item",
    "search_knowledge",
    "tokenize",
]
