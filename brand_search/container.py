import logging
from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar

from .config.settings import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Container:
    _factories: dict[type, Callable[[], Any]] = field(default_factory=dict)
    _singletons: dict[type, Any] = field(default_factory=dict)
    _singleton_flags: set[type] = field(default_factory=set)

    def register(
        self, interface: type[T], factory: Callable[[], T], singleton: bool = False
    ) -> None:
        """Register factory for interface.

        Args:
            interface: Interface type.
            factory: Factory function.
            singleton: Whether to cache instance.
        """
        self._factories[interface] = factory
        if singleton:
            self._singleton_flags.add(interface)

    def resolve(self, interface: type[T]) -> T:
        if interface in self._singletons:
            return self._singletons[interface]

        if interface not in self._factories:
            raise KeyError(f"No factory registered for {interface}")

        instance = self._factories[interface]()

        if interface in self._singleton_flags:
            self._singletons[interface] = instance

        return instance

    def reset(self) -> None:
        """Reset singletons (for testing)."""
        self._singletons.clear()

    async def aclose(self) -> None:
        """Close singletons that hold network clients and drop them."""
        for instance in list(self._singletons.values()):
            close = getattr(instance, "aclose", None)
            if close is not None:
                await close()
        self._singletons.clear()


container = Container()


def _build_embedder(settings: Settings):
    if settings.embedding_provider == "sentence-transformers":
        from .infrastructure.embeddings.sentence_transformer import (
            SentenceTransformerEmbedder,
        )

        return SentenceTransformerEmbedder(settings.embedding_model)

    from .infrastructure.embeddings.openai_embedder import OpenAIEmbedder

    return OpenAIEmbedder(api_key=settings.openai_api_key, model=settings.embedding_model)


def _build_store(settings: Settings):
    if settings.knowledge_store == "memory":
        from .infrastructure.knowledge_stores.memory_store import InMemoryKnowledgeStore

        return InMemoryKnowledgeStore(settings.memory_store_path)

    from .infrastructure.knowledge_stores.supabase_store import SupabaseKnowledgeStore

    return SupabaseKnowledgeStore(
        url=settings.supabase_url,
        service_key=settings.supabase_service_key,
        brand_id=settings.supabase_brand_id,
        timeout=settings.supabase_timeout,
    )


def _build_relevance_provider(settings: Settings):
    """Relevance provider, or None when reranking is unavailable."""
    if settings.reranker_provider == "cross-encoder":
        from .infrastructure.rerankers.cross_encoder import CrossEncoderReranker

        return CrossEncoderReranker(settings.reranker_model)

    if settings.reranker_provider == "cohere":
        if not settings.cohere_api_key:
            logger.warning("COHERE_API_KEY not set, reranking disabled")
            return None

        from .infrastructure.rerankers.cohere import CohereReranker

        return CohereReranker(
            api_key=settings.cohere_api_key,
            model=settings.reranker_model,
            url=settings.cohere_url,
            timeout=settings.cohere_timeout,
        )

    return None


def configure_container(settings: Settings) -> Container:
    """Configure container with all dependencies.

    Args:
        settings: Application settings.

    Returns:
        Configured container.
    """
    from .core.models.chunk import ChunkOptions
    from .core.protocols.embedder import EmbedderProtocol
    from .core.protocols.knowledge_store import KnowledgeStoreProtocol
    from .core.services.candidate_retriever import CandidateRetriever
    from .core.services.evaluation_service import SearchEvaluator
    from .core.services.ingest_service import IngestService
    from .core.services.rerank_pipeline import RerankPipeline
    from .core.services.search_orchestrator import SearchOrchestrator

    container.register(
        EmbedderProtocol,
        lambda: _build_embedder(settings),
        singleton=True,
    )

    container.register(
        KnowledgeStoreProtocol,
        lambda: _build_store(settings),
        singleton=True,
    )

    def build_rerank_pipeline():
        provider = _build_relevance_provider(settings)
        if provider is None:
            return None
        return RerankPipeline(
            provider,
            embedder=container.resolve(EmbedderProtocol),
            diversity_similarity=settings.search_diversity_similarity,
        )

    container.register(RerankPipeline, build_rerank_pipeline, singleton=True)

    container.register(
        SearchOrchestrator,
        lambda: SearchOrchestrator(
            embedder=container.resolve(EmbedderProtocol),
            store=container.resolve(KnowledgeStoreProtocol),
            retriever=CandidateRetriever(
                container.resolve(KnowledgeStoreProtocol),
                candidate_multiplier=settings.search_candidate_multiplier,
            ),
            rerank_pipeline=container.resolve(RerankPipeline),
            default_rerank_model=settings.reranker_model,
            min_rerank_score=settings.search_min_rerank_score,
        ),
        singleton=True,
    )

    container.register(
        IngestService,
        lambda: IngestService(
            embedder=container.resolve(EmbedderProtocol),
            sink=container.resolve(KnowledgeStoreProtocol),
            docs_path=settings.docs_path,
            chunk_options=ChunkOptions(
                max_tokens=settings.chunk_max_tokens,
                min_tokens=settings.chunk_min_tokens,
                include_heading_in_content=settings.chunk_include_heading,
            ),
            batch_size=settings.ingest_batch_size,
        ),
        singleton=True,
    )

    container.register(
        SearchEvaluator,
        lambda: SearchEvaluator(
            orchestrator=container.resolve(SearchOrchestrator),
            top_k=settings.search_limit,
            threshold=settings.search_threshold,
            semantic_weight=settings.search_semantic_weight,
        ),
        singleton=True,
    )

    logger.info("Container configured")
    return container
