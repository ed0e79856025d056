"""Candidate retriever - concurrent per-source retrieval."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

from ..models.search import (
    ALL_SOURCE_TYPES,
    SearchCandidate,
    SearchFilters,
    SearchMode,
    SimilarChunks,
    SourceType,
)
from ..protocols.knowledge_store import RRF_K, KnowledgeStoreProtocol
from ..strategies.scoring import (
    ExcludeDocumentStrategy,
    ExcludeIdsStrategy,
    MetadataFilterStrategy,
)

logger = logging.getLogger(__name__)

DEFAULT_CANDIDATE_MULTIPLIER = 3


@dataclass
class RetrievalParams:
    """Parameters shared by every per-source retrieval of one request."""
    query: str
    query_embedding: list[float]
    source_types: tuple[SourceType, ...] = ALL_SOURCE_TYPES
    search_mode: SearchMode = SearchMode.HYBRID
    semantic_weight: float = 0.7
    limit: int = 10
    threshold: float = 0.3
    filters: SearchFilters = field(default_factory=SearchFilters)
    rerank_enabled: bool = False
    # Keyword text for hybrid/keyword procedures when it differs from the query.
    keyword_query: Optional[str] = None


class CandidateRetriever:
    """Fan a query out over source types and merge the results."""

    def __init__(
        self,
        store: KnowledgeStoreProtocol,
        candidate_multiplier: int = DEFAULT_CANDIDATE_MULTIPLIER,
        rrf_k: int = RRF_K,
    ):
        """Initialize retriever.

        Args:
            store: Knowledge store.
            candidate_multiplier: Over-fetch factor when reranking follows.
            rrf_k: RRF smoothing constant passed to hybrid procedures.
        """
        self._store = store
        self._candidate_multiplier = candidate_multiplier
        self._rrf_k = rrf_k

    def candidate_limit(self, limit: int, rerank_enabled: bool) -> int:
        """Per-source limit; over-fetched so the reranker can diversify."""
        return limit * self._candidate_multiplier if rerank_enabled else limit

    async def retrieve(self, params: RetrievalParams) -> list[SearchCandidate]:
        """Retrieve from every enabled source concurrently.

        Args:
            params: Retrieval parameters.

        Returns:
            Merged candidates sorted by similarity (descending).
        """
        source_types = list(dict.fromkeys(params.source_types))
        if not source_types:
            return []

        per_source = await asyncio.gather(
            *(self._retrieve_source(source_type, params) for source_type in source_types)
        )

        merged: list[SearchCandidate] = []
        seen: set[tuple[str, str]] = set()
        for results in per_source:
            for candidate in results:
                key = (candidate.type, candidate.id)
                if key not in seen:
                    seen.add(key)
                    merged.append(candidate)
        merged.sort(key=lambda c: c.similarity, reverse=True)

        logger.info(
            f"Retrieved {len(merged)} candidates from "
            f"{', '.join(s.value for s in source_types)} "
            f"(mode={params.search_mode.value})"
        )
        return merged

    async def _retrieve_source(
        self, source_type: SourceType, params: RetrievalParams
    ) -> list[SearchCandidate]:
        limit = self.candidate_limit(params.limit, params.rerank_enabled)
        filters = None if params.filters.is_empty() else params.filters
        keyword_query = params.keyword_query or params.query

        if params.search_mode is SearchMode.HYBRID:
            try:
                results = await self._store.hybrid_search(
                    source_type,
                    keyword_query,
                    params.query_embedding,
                    limit=limit,
                    threshold=params.threshold,
                    semantic_weight=params.semantic_weight,
                    rrf_k=self._rrf_k,
                    filters=filters,
                )
            except Exception as e:
                logger.warning(
                    f"Hybrid search failed for {source_type.value}: {e}, "
                    "falling back to semantic"
                )
                results = await self._semantic_or_empty(source_type, params, limit, filters)
        elif params.search_mode is SearchMode.SEMANTIC:
            results = await self._semantic_or_empty(source_type, params, limit, filters)
        else:
            try:
                results = await self._store.keyword_search(
                    source_type, keyword_query, limit=limit, filters=filters
                )
            except Exception as e:
                logger.error(f"Keyword search failed for {source_type.value}: {e}")
                results = []

        return ExcludeIdsStrategy(params.filters.exclude_ids).apply(params.query, results)

    async def _semantic_or_empty(
        self,
        source_type: SourceType,
        params: RetrievalParams,
        limit: int,
        filters: Optional[SearchFilters],
    ) -> list[SearchCandidate]:
        try:
            return await self._store.semantic_search(
                source_type,
                params.query_embedding,
                limit=limit,
                threshold=params.threshold,
                filters=filters,
            )
        except Exception as e:
            logger.error(f"Semantic search failed for {source_type.value}: {e}")
            return []

    async def find_similar(
        self,
        chunk_id: str,
        limit: int,
        exclude_same_document: bool = True,
        filters: Optional[SearchFilters] = None,
    ) -> list[SearchCandidate]:
        """Nearest document chunks to a stored chunk, bypassing embedding.

        Args:
            chunk_id: Source chunk ID.
            limit: Maximum results.
            exclude_same_document: Drop chunks sharing the source's document.
            filters: Request filters; ``exclude_ids`` and metadata filters apply.

        Returns:
            Similar chunks sorted by similarity (descending).
        """
        try:
            similar: SimilarChunks = await self._store.find_similar(
                chunk_id, limit=limit, exclude_same_document=exclude_same_document
            )
        except Exception as e:
            logger.error(f"Find similar failed for chunk {chunk_id}: {e}")
            return []

        results: list[SearchCandidate] = [r for r in similar.results if r.id != chunk_id]
        if exclude_same_document:
            results = ExcludeDocumentStrategy(similar.source_document_id).apply("", results)
        if filters is not None:
            results = ExcludeIdsStrategy(filters.exclude_ids).apply("", results)
            results = MetadataFilterStrategy(filters).apply("", results)

        results.sort(key=lambda c: c.similarity, reverse=True)
        return results[:limit]
