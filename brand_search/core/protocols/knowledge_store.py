"""Knowledge store protocols for dependency injection."""
from typing import Optional, Protocol, runtime_checkable

from ..models.chunk import MarkdownChunk
from ..models.search import (
    Facet,
    SearchCandidate,
    SearchFilters,
    SimilarChunks,
    SourceType,
)

RRF_K = 60


@runtime_checkable
class KnowledgeStoreProtocol(Protocol):
    """Brand-scoped retrieval procedures over pre-chunked, pre-embedded content.

    Every method raises ``StoreError`` on transport or procedure failure.
    """

    async def hybrid_search(
        self,
        source_type: SourceType,
        query: str,
        query_embedding: list[float],
        *,
        limit: int,
        threshold: float,
        semantic_weight: float,
        rrf_k: int = RRF_K,
        filters: Optional[SearchFilters] = None,
    ) -> list[SearchCandidate]:
        """Vector + keyword search fused with weighted Reciprocal Rank Fusion.

        Args:
            source_type: Source to search.
            query: Keyword text.
            query_embedding: Query vector.
            limit: Maximum rows.
            threshold: Minimum vector similarity for the semantic leg.
            semantic_weight: Weight of the vector rank; keyword gets the rest.
            rrf_k: RRF smoothing constant.
            filters: Filters for the filtered procedure; None selects the
                unfiltered one.

        Returns:
            Candidates ordered by fused score.
        """
        ...

    async def semantic_search(
        self,
        source_type: SourceType,
        query_embedding: list[float],
        *,
        limit: int,
        threshold: float,
        filters: Optional[SearchFilters] = None,
    ) -> list[SearchCandidate]:
        """Vector-only search ordered by similarity."""
        ...

    async def keyword_search(
        self,
        source_type: SourceType,
        query: str,
        *,
        limit: int,
        filters: Optional[SearchFilters] = None,
    ) -> list[SearchCandidate]:
        """Full-text search ordered by keyword rank."""
        ...

    async def find_similar(
        self,
        chunk_id: str,
        *,
        limit: int,
        exclude_same_document: bool = True,
    ) -> SimilarChunks:
        """Nearest document chunks to a stored chunk's vector."""
        ...

    async def facets(self, source_type: SourceType) -> list[Facet]:
        """Metadata value counts for a source type."""
        ...


@runtime_checkable
class ChunkSinkProtocol(Protocol):
    """Write side used by document ingestion."""

    async def add_document_chunks(
        self,
        document_id: str,
        title: str,
        category: str,
        slug: str,
        chunks: list[MarkdownChunk],
        embeddings: list[list[float]],
        markdown: str = "",
    ) -> None:
        """Replace a document's stored chunks.

        Args:
            document_id: Parent document ID.
            title: Document title.
            category: Document category.
            slug: Document slug.
            chunks: Chunks in document order.
            embeddings: One vector per chunk.
            markdown: Source markdown, kept for change detection.
        """
        ...

    async def document_hashes(self) -> dict[str, str]:
        """``content_hash`` of the stored markdown per document ID."""
        ...
