"""Rerank pipeline - relevance scoring then MMR diversification."""

import dataclasses
import logging
from dataclasses import dataclass
from typing import Optional

from ..errors import RerankError
from ..models.search import RankedResult, SearchCandidate
from ..protocols.embedder import EmbedderProtocol
from ..protocols.reranker import RelevanceProviderProtocol
from ..strategies.diversity import (
    EmbeddingSimilarity,
    TextSimilarity,
    TokenJaccardSimilarity,
    select_mmr,
)

logger = logging.getLogger(__name__)


@dataclass
class RerankOptions:
    top_k: int
    model: Optional[str] = None
    apply_diversity: bool = True
    diversity_lambda: float = 0.7
    min_score: float = 0.0


class RerankPipeline:
    """Cross-encoder relevance scoring followed by optional MMR selection."""

    def __init__(
        self,
        provider: RelevanceProviderProtocol,
        embedder: Optional[EmbedderProtocol] = None,
        diversity_similarity: str = "jaccard",
    ):
        """Initialize pipeline.

        Args:
            provider: Relevance scoring provider.
            embedder: Embedder for embedding-based diversity.
            diversity_similarity: "jaccard" or "embedding".
        """
        self._provider = provider
        self._embedder = embedder
        self._diversity_similarity = diversity_similarity

    async def aclose(self) -> None:
        close = getattr(self._provider, "aclose", None)
        if close is not None:
            await close()

    async def rerank(
        self,
        query: str,
        candidates: list[SearchCandidate],
        options: RerankOptions,
    ) -> list[RankedResult]:
        """Score candidates for relevance and select the final top-K.

        Relevance scores replace the retrieval similarity; the two are never
        blended.

        Args:
            query: User query.
            candidates: Retrieved candidates, similarity-sorted.
            options: Pipeline options.

        Returns:
            Up to ``top_k`` ranked results with unique IDs.

        Raises:
            RerankError: If the relevance provider fails.
        """
        if not candidates:
            return []

        texts = [c.display_text for c in candidates]

        try:
            scores = await self._provider.score(query, texts, options.model)
        except RerankError:
            raise
        except Exception as e:
            raise RerankError(f"Relevance provider failed: {e}") from e

        if len(scores) != len(candidates):
            raise RerankError(
                f"Relevance provider returned {len(scores)} scores for {len(candidates)} documents"
            )

        seen: set[str] = set()
        keep: list[int] = []
        for i, candidate in enumerate(candidates):
            if candidate.id in seen or scores[i] < options.min_score:
                continue
            seen.add(candidate.id)
            keep.append(i)

        if len(keep) < len(candidates):
            logger.info(f"Rerank pool: {len(candidates)} → {len(keep)} candidates")

        if not keep:
            return []

        if options.apply_diversity:
            kept_texts = [texts[i] for i in keep]
            similarity = await self._similarity(kept_texts)
            selected = select_mmr(
                [candidates[i].id for i in keep],
                kept_texts,
                [float(scores[i]) for i in keep],
                top_k=options.top_k,
                diversity_lambda=options.diversity_lambda,
                similarity=similarity,
            )
            ranked = [
                dataclasses.replace(r, original_rank=keep[r.original_rank]) for r in selected
            ]
        else:
            order = sorted(keep, key=lambda i: (-scores[i], i))[: options.top_k]
            ranked = [
                RankedResult(
                    id=candidates[i].id,
                    relevance_score=float(scores[i]),
                    original_rank=i,
                )
                for i in order
            ]

        if logger.isEnabledFor(logging.DEBUG):
            top_scores = ", ".join(f"{r.relevance_score:.2f}" for r in ranked[:3])
            logger.debug(f"Reranker top-3 scores: [{top_scores}]")

        return ranked

    async def _similarity(self, texts: list[str]) -> TextSimilarity:
        if self._diversity_similarity != "embedding" or self._embedder is None:
            return TokenJaccardSimilarity()
        try:
            embeddings = await self._embedder.embed_many(texts)
        except Exception as e:
            logger.warning(f"Embedding texts for MMR failed: {e}, using token overlap")
            return TokenJaccardSimilarity()
        return EmbeddingSimilarity(embeddings)

    @staticmethod
    def apply(
        candidates: list[SearchCandidate], ranked: list[RankedResult]
    ) -> list[SearchCandidate]:
        """Project ranked results back onto copies of their candidates."""
        return [
            dataclasses.replace(
                candidates[r.original_rank],
                relevance_score=r.relevance_score,
                diversity_score=r.diversity_score,
                original_rank=r.original_rank,
            )
            for r in ranked
        ]
