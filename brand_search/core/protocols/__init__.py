"""Protocol interfaces for dependency injection."""
from .embedder import EmbedderProtocol
from .knowledge_store import RRF_K, ChunkSinkProtocol, KnowledgeStoreProtocol
from .reranker import RelevanceProviderProtocol

__all__ = [
    "EmbedderProtocol",
    "KnowledgeStoreProtocol",
    "ChunkSinkProtocol",
    "RelevanceProviderProtocol",
    "RRF_K",
]
