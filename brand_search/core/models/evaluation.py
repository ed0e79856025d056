"""Search evaluation models."""
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class EvalQuery:
    """Labelled evaluation query."""
    id: str
    query: str
    type: str  # "exact-match" | "semantic" | "ambiguous" | "edge-cases"
    expected_documents: list[str] = field(default_factory=list)
    expected_topics: list[str] = field(default_factory=list)
    notes: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EvalQuery":
        return cls(
            id=str(data["id"]),
            query=data["query"],
            type=data.get("type", "semantic"),
            expected_documents=list(data.get("expectedDocuments", [])),
            expected_topics=list(data.get("expectedTopics", [])),
            notes=data.get("notes"),
        )


@dataclass
class QueryEvaluation:
    """Metrics for a single evaluation query."""
    query_id: str
    query: str
    type: str
    reciprocal_rank: float
    recall: dict[int, float]
    exact_match_rank: Optional[int]
    latency_ms: float
    top_titles: list[str] = field(default_factory=list)


@dataclass
class MetricSummary:
    count: int
    mrr10: float
    recall5: float
    recall10: float
    exact_match_rate: float


@dataclass
class EvaluationReport:
    """Aggregated evaluation metrics."""
    total_queries: int
    overall: MetricSummary
    avg_latency_ms: float
    p95_latency_ms: float
    by_type: dict[str, MetricSummary]
    queries: list[QueryEvaluation]
