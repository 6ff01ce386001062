"""Lexical relevance scoring.

Every query token is compared with every title token, every tag (whole,
case-folded, not re-tokenized) and every content token. Exact matches and
substring containment earn fixed per-field bonuses that add up without a
cap or any length normalization, so repeated and multi-field overlap ranks
higher. A score of 0 means the item does not match.
"""

from typing import List, NamedTuple, Sequence

from .models import KnowledgeItem
from .tokenizer import tokenize


class ScoreWeights(NamedTuple):
    title_exact: int = 10
    title_partial: int = 5
    tag_exact: int = 8
    tag_partial: int = 4
    content_exact: int = 2
    content_partial: int = 1


DEFAULT_WEIGHTS = ScoreWeights()


def _field_score(query_token: str, field_tokens: Sequence[str], exact: int, partial: int) -> int:
    score = 0
    for token in field_tokens:
        if token == query_token:
            score += exact
        elif query_token in token:
            score += partial
    return score


def score_item(
    item: KnowledgeItem,
    query_tokens: Sequence[str],
    weights: ScoreWeights = DEFAULT_WEIGHTS,
) -> int:
    """Calculate the relevance score of an item for a tokenized query."""
    if not query_tokens:
        return 0

    title_tokens = tokenize(item.title)
    tag_tokens: List[str] = [tag.lower() for tag in item.tags]
    content_tokens = tokenize(item.content)

    score = 0
    for query_token in query_tokens:
        score += _field_score(query_token, title_tokens, weights.title_exact, weights.title_partial)
        score += _field_score(query_token, tag_tokens, weights.tag_exact, weights.tag_partial)
        score += _field_score(query_token, content_tokens, weights.content_exact, weights.content_partial)
    return score
