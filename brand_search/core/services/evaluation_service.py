"""Search evaluation against a labelled query dataset."""

import json
import logging
import math
import time
from pathlib import Path
from typing import Optional

from ..models.evaluation import (
    EvalQuery,
    EvaluationReport,
    MetricSummary,
    QueryEvaluation,
)
from ..models.search import SearchCandidate, SearchRequest, SourceType
from .search_orchestrator import SearchOrchestrator

logger = logging.getLogger(__name__)

QUERY_TYPES = ("exact-match", "semantic", "ambiguous", "edge-cases")


def load_dataset(path: str) -> list[EvalQuery]:
    """Load evaluation queries from a JSON dataset file.

    Raises:
        FileNotFoundError: If the dataset does not exist.
    """
    dataset_path = Path(path)
    if not dataset_path.exists():
        raise FileNotFoundError(f"Evaluation dataset not found at {dataset_path}")
    data = json.loads(dataset_path.read_text(encoding="utf-8"))
    return [EvalQuery.from_dict(q) for q in data.get("queries", [])]


def _haystack(candidate: SearchCandidate) -> tuple[str, str, str]:
    title = (getattr(candidate, "title", "") or "").lower()
    category = (getattr(candidate, "category", "") or "").lower()
    hierarchy = " ".join(getattr(candidate, "heading_hierarchy", None) or []).lower()
    combined = f"{candidate.display_text.lower()} {title} {category} {hierarchy}"
    return combined, title, category


def is_relevant(candidate: SearchCandidate, query: EvalQuery) -> bool:
    """True if the candidate mentions an expected document or topic."""
    combined, _, category = _haystack(candidate)

    for expected in query.expected_documents:
        slug_words = expected.lower().replace("-", " ")
        if slug_words in combined or expected.lower() in category:
            return True

    return any(topic.lower() in combined for topic in query.expected_topics)


def reciprocal_rank(results: list[SearchCandidate], query: EvalQuery, k: int = 10) -> float:
    for i, candidate in enumerate(results[:k]):
        if is_relevant(candidate, query):
            return 1 / (i + 1)
    return 0.0


def recall_at(results: list[SearchCandidate], query: EvalQuery, k: int) -> float:
    """Relevant results in the top K over the number of expected topics."""
    found = sum(1 for c in results[:k] if is_relevant(c, query))
    return found / max(len(query.expected_topics), 1)


def exact_match_rank(results: list[SearchCandidate], query_text: str) -> Optional[int]:
    """1-based rank of the first result containing the query verbatim."""
    needle = query_text.lower()
    for i, candidate in enumerate(results):
        _, title, _ = _haystack(candidate)
        if needle in candidate.display_text.lower() or needle in title:
            return i + 1
    return None


def percentile(values: list[float], p: float) -> float:
    if not values:
        return 0.0
    ordered = sorted(values)
    index = math.ceil((p / 100) * len(ordered)) - 1
    return ordered[max(0, index)]


def _mean(values: list[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def summarize(evaluations: list[QueryEvaluation]) -> MetricSummary:
    exact = [e for e in evaluations if e.type == "exact-match"]
    return MetricSummary(
        count=len(evaluations),
        mrr10=_mean([e.reciprocal_rank for e in evaluations]),
        recall5=_mean([e.recall[5] for e in evaluations]),
        recall10=_mean([e.recall[10] for e in evaluations]),
        exact_match_rate=_mean([1.0 if e.exact_match_rank == 1 else 0.0 for e in exact]),
    )


class SearchEvaluator:
    """Run labelled queries through the orchestrator and score ranking quality."""

    def __init__(
        self,
        orchestrator: SearchOrchestrator,
        top_k: int = 10,
        threshold: float = 0.3,
        semantic_weight: float = 0.7,
    ):
        self._orchestrator = orchestrator
        self._top_k = top_k
        self._threshold = threshold
        self._semantic_weight = semantic_weight

    async def evaluate_query(self, query: EvalQuery) -> QueryEvaluation:
        """Evaluate a single query; failures score zero."""
        request = SearchRequest(
            query=query.query,
            types=(SourceType.DOCUMENTS,),
            limit=self._top_k,
            threshold=self._threshold,
            semantic_weight=self._semantic_weight,
        )

        start = time.perf_counter()
        try:
            response = await self._orchestrator.search(request)
        except Exception as e:
            logger.error(f"Error processing query {query.id}: {e}")
            return QueryEvaluation(
                query_id=query.id,
                query=query.query,
                type=query.type,
                reciprocal_rank=0.0,
                recall={5: 0.0, 10: 0.0},
                exact_match_rank=None,
                latency_ms=0.0,
            )
        latency_ms = (time.perf_counter() - start) * 1000

        results = response.results
        evaluation = QueryEvaluation(
            query_id=query.id,
            query=query.query,
            type=query.type,
            reciprocal_rank=reciprocal_rank(results, query, 10),
            recall={5: recall_at(results, query, 5), 10: recall_at(results, query, 10)},
            exact_match_rank=exact_match_rank(results, query.query),
            latency_ms=latency_ms,
            top_titles=[getattr(r, "title", "") or r.id for r in results[:5]],
        )

        status = "OK" if evaluation.reciprocal_rank > 0 else "MISS"
        logger.debug(
            f"[{status}] {query.id}: RR={evaluation.reciprocal_rank:.3f} "
            f"R@5={evaluation.recall[5]:.2f} {latency_ms:.0f}ms"
        )
        return evaluation

    async def evaluate(self, queries: list[EvalQuery]) -> EvaluationReport:
        """Evaluate queries sequentially and aggregate metrics.

        Queries run one at a time so latencies are not skewed by contention.
        """
        evaluations = [await self.evaluate_query(q) for q in queries]
        latencies = [e.latency_ms for e in evaluations if e.latency_ms > 0]

        by_type: dict[str, MetricSummary] = {}
        for query_type in QUERY_TYPES:
            typed = [e for e in evaluations if e.type == query_type]
            if typed:
                by_type[query_type] = summarize(typed)

        report = EvaluationReport(
            total_queries=len(evaluations),
            overall=summarize(evaluations),
            avg_latency_ms=_mean(latencies),
            p95_latency_ms=percentile(latencies, 95),
            by_type=by_type,
            queries=evaluations,
        )
        logger.info(
            f"Evaluated {report.total_queries} queries: "
            f"MRR@10={report.overall.mrr10:.3f} Recall@10={report.overall.recall10:.3f}"
        )
        return report

    async def evaluate_file(self, path: str) -> EvaluationReport:
        return await self.evaluate(load_dataset(path))
