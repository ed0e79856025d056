"""Scoring, filtering and diversity strategies."""
from .diversity import (
    EmbeddingSimilarity,
    TextSimilarity,
    TokenJaccardSimilarity,
    select_mmr,
)
from .query_expansion import ExpandedQuery, QueryExpander
from .scoring import (
    ExcludeDocumentStrategy,
    ExcludeIdsStrategy,
    MetadataFilterStrategy,
    ScoringStrategy,
)

__all__ = [
    "EmbeddingSimilarity",
    "ExcludeDocumentStrategy",
    "ExcludeIdsStrategy",
    "ExpandedQuery",
    "MetadataFilterStrategy",
    "QueryExpander",
    "ScoringStrategy",
    "TextSimilarity",
    "TokenJaccardSimilarity",
    "select_mmr",
]
