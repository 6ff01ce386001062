"""Search over the knowledge repository."""

import logging
from typing import List, Optional, Sequence

from .filters import passes_filters
from .models import SearchResult
from .repository import KnowledgeRepository
from .scoring import score_item
from .tokenizer import tokenize

logger = logging.getLogger(__name__)


async def search_knowledge(
    repo: KnowledgeRepository,
    query: str,
    tags: Optional[Sequence[str]] = None,
    scope: str = "all",
    limit: int = 10,
    project_path: Optional[str] = None,
) -> List[SearchResult]:
    """Rank stored items against a query.

    Full records are loaded for scoring because index entries hold only a
    content prefix, so only the indexed ids are used. An id whose index
    entry is malformed is still searched. Records that are indexed but
    missing or unreadable are skipped. Results are ordered by score
    descending, then id ascending.
    """
    query_tokens = tokenize(query)
    if not query_tokens:
        return []

    results: List[SearchResult] = []
    for item_id in await repo.list_indexed_ids():
        item = await repo.load_full(item_id)
        if item is None:
            continue
        if not passes_filters(item, scope, tags, project_path):
            continue

        score = score_item(item, query_tokens)
        if score > 0:
            results.append(SearchResult(item=item, score=score))

    results.sort(key=lambda r: (-r.score, r.item.id))
    logger.debug("Query %r matched %d item(s)", query, len(results))
    return results[:max(limit, 0)]
