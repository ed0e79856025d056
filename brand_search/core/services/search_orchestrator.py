"""Search orchestrator - top-level brand knowledge search."""

import asyncio
import logging
import time
from typing import Optional

from ..errors import EmbeddingError, RerankError
from ..models.search import (
    Facet,
    SearchCandidate,
    SearchMeta,
    SearchRequest,
    SearchResponse,
    SearchTiming,
    SourceType,
)
from ..protocols.embedder import EmbedderProtocol
from ..protocols.knowledge_store import KnowledgeStoreProtocol
from ..strategies.query_expansion import QueryExpander
from .candidate_retriever import CandidateRetriever, RetrievalParams
from .rerank_pipeline import RerankOptions, RerankPipeline

logger = logging.getLogger(__name__)

MIN_QUERY_LENGTH = 3

FACETED_SOURCE_TYPES = (SourceType.ASSETS, SourceType.DOCUMENTS)


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


class SearchOrchestrator:
    """Validate, embed, retrieve, rerank and assemble search responses."""

    def __init__(
        self,
        embedder: EmbedderProtocol,
        store: KnowledgeStoreProtocol,
        retriever: Optional[CandidateRetriever] = None,
        rerank_pipeline: Optional[RerankPipeline] = None,
        query_expander: Optional[QueryExpander] = None,
        default_rerank_model: Optional[str] = None,
        min_rerank_score: float = 0.0,
    ):
        """Initialize orchestrator.

        Args:
            embedder: Query embedding provider.
            store: Knowledge store (facets are read from it directly).
            retriever: Candidate retriever; built over ``store`` if omitted.
            rerank_pipeline: Rerank pipeline; reranking is unavailable if None.
            query_expander: Expander used when a request asks for expansion.
            default_rerank_model: Model used when the request names none.
            min_rerank_score: Relevance floor applied while reranking.
        """
        self._embedder = embedder
        self._store = store
        self._retriever = retriever or CandidateRetriever(store)
        self._rerank_pipeline = rerank_pipeline
        self._query_expander = query_expander or QueryExpander()
        self._default_rerank_model = default_rerank_model
        self._min_rerank_score = min_rerank_score

    @property
    def rerank_available(self) -> bool:
        return self._rerank_pipeline is not None

    async def search(self, request: SearchRequest) -> SearchResponse:
        """Run a search request.

        Args:
            request: Search request.

        Returns:
            Search response. Empty and too-short queries yield an empty,
            successful response.

        Raises:
            EmbeddingError: If the query embedding cannot be generated.
        """
        start = time.perf_counter()
        query = request.query.strip()

        if not request.similar_to and len(query) < MIN_QUERY_LENGTH:
            logger.debug(f"Skip: query too short ({len(query)} chars)")
            return SearchResponse(
                results=[],
                query=query,
                timing=SearchTiming(total=_elapsed_ms(start)),
            )

        rerank_enabled = self._resolve_rerank(request, query)
        apply_diversity = request.diversity if request.diversity is not None else True
        timing = SearchTiming()

        search_start = time.perf_counter()
        if request.similar_to:
            candidates = await self._retriever.find_similar(
                request.similar_to,
                limit=self._retriever.candidate_limit(request.limit, rerank_enabled),
                exclude_same_document=request.exclude_same_document,
                filters=request.filters,
            )
        else:
            semantic_query, keyword_query = query, None
            if request.expand_query:
                semantic_query, keyword_query = self._query_expander.expand_for_hybrid(query)

            embedding_start = time.perf_counter()
            query_embedding = await self._embed(semantic_query)
            timing.embedding = _elapsed_ms(embedding_start)

            search_start = time.perf_counter()
            candidates = await self._retriever.retrieve(
                RetrievalParams(
                    query=query,
                    query_embedding=query_embedding,
                    source_types=request.types,
                    search_mode=request.search_mode,
                    semantic_weight=request.semantic_weight,
                    limit=request.limit,
                    threshold=request.threshold,
                    filters=request.filters,
                    rerank_enabled=rerank_enabled,
                    keyword_query=keyword_query,
                )
            )
        timing.search = _elapsed_ms(search_start)

        meta = SearchMeta(candidates_retrieved=len(candidates))
        results: Optional[list[SearchCandidate]] = None

        if rerank_enabled and candidates:
            rerank_start = time.perf_counter()
            try:
                ranked = await self._rerank_pipeline.rerank(
                    query,
                    candidates,
                    RerankOptions(
                        top_k=request.limit,
                        model=request.rerank_model or self._default_rerank_model,
                        apply_diversity=apply_diversity,
                        diversity_lambda=request.diversity_lambda,
                        min_score=self._min_rerank_score,
                    ),
                )
            except RerankError as e:
                logger.warning(f"Reranking failed, using similarity order: {e}")
            else:
                results = RerankPipeline.apply(candidates, ranked)
                meta.reranked = True
                meta.diversity_applied = apply_diversity
                timing.rerank = _elapsed_ms(rerank_start)

        if results is None:
            results = candidates[: request.limit]

        facets = None
        if request.include_facets:
            facets = await self._facets(request.types)

        timing.total = _elapsed_ms(start)

        logger.info(
            f"Search: returned {len(results)}/{request.limit} results for "
            f"'{query[:50]}' (reranked={meta.reranked}, {timing.total:.0f}ms)"
        )

        return SearchResponse(
            results=results,
            query=query,
            timing=timing,
            meta=meta,
            facets=facets,
        )

    def _resolve_rerank(self, request: SearchRequest, query: str) -> bool:
        wanted = request.rerank if request.rerank is not None else self.rerank_available
        if wanted and not self.rerank_available:
            logger.warning("Reranking requested but no relevance provider is configured")
            return False
        # Find-similar requests may carry no query text to score against.
        return wanted and bool(query)

    async def _embed(self, text: str) -> list[float]:
        try:
            return await self._embedder.embed(text)
        except EmbeddingError:
            raise
        except Exception as e:
            raise EmbeddingError(f"Failed to generate query embedding: {e}") from e

    async def _facets(
        self, source_types: tuple[SourceType, ...]
    ) -> dict[SourceType, list[Facet]]:
        wanted = [s for s in dict.fromkeys(source_types) if s in FACETED_SOURCE_TYPES]

        async def fetch(source_type: SourceType) -> Optional[list[Facet]]:
            try:
                return await self._store.facets(source_type)
            except Exception as e:
                logger.error(f"Facets failed for {source_type.value}: {e}")
                return None

        fetched = await asyncio.gather(*(fetch(s) for s in wanted))
        return {s: f for s, f in zip(wanted, fetched) if f is not None}
