"""Domain models."""
from .chunk import ChunkOptions, IngestResult, MarkdownChunk
from .evaluation import EvalQuery, EvaluationReport, MetricSummary, QueryEvaluation
from .search import (
    ALL_SOURCE_TYPES,
    AnyCandidate,
    AssetCandidate,
    ChatCandidate,
    DocumentCandidate,
    Facet,
    MatchType,
    RankedResult,
    SearchCandidate,
    SearchFilters,
    SearchMeta,
    SearchMode,
    SearchRequest,
    SearchResponse,
    SearchTiming,
    SimilarChunks,
    SourceType,
)

__all__ = [
    "ALL_SOURCE_TYPES",
    "AnyCandidate",
    "AssetCandidate",
    "ChatCandidate",
    "ChunkOptions",
    "DocumentCandidate",
    "EvalQuery",
    "EvaluationReport",
    "Facet",
    "IngestResult",
    "MarkdownChunk",
    "MatchType",
    "MetricSummary",
    "QueryEvaluation",
    "RankedResult",
    "SearchCandidate",
    "SearchFilters",
    "SearchMeta",
    "SearchMode",
    "SearchRequest",
    "SearchResponse",
    "SearchTiming",
    "SimilarChunks",
    "SourceType",
]
