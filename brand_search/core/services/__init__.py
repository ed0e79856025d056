"""Core business services."""
from .candidate_retriever import CandidateRetriever, RetrievalParams
from .evaluation_service import SearchEvaluator
from .ingest_service import IngestService
from .rerank_pipeline import RerankOptions, RerankPipeline
from .search_orchestrator import SearchOrchestrator

__all__ = [
    "CandidateRetriever",
    "RetrievalParams",
    "RerankOptions",
    "RerankPipeline",
    "SearchOrchestrator",
    "IngestService",
    "SearchEvaluator",
]
