"""
Tests for brand_search/core/services/evaluation_service.py
Metric functions are checked against hand-computed values.
"""
import json
from unittest.mock import AsyncMock

import pytest

from brand_search.core.models.evaluation import EvalQuery, QueryEvaluation
from brand_search.core.models.search import SearchResponse, SourceType
from brand_search.core.services.evaluation_service import (
    SearchEvaluator,
    exact_match_rank,
    is_relevant,
    load_dataset,
    percentile,
    recall_at,
    reciprocal_rank,
    summarize,
)

from conftest import doc


def query(**kwargs):
    defaults = dict(id="q1", query="aperol orange", type="semantic")
    defaults.update(kwargs)
    return EvalQuery(**defaults)


def evaluation(type="semantic", rr=0.0, r5=0.0, r10=0.0, exact=None, latency=10.0):
    return QueryEvaluation(
        query_id="q",
        query="q",
        type=type,
        reciprocal_rank=rr,
        recall={5: r5, 10: r10},
        exact_match_rank=exact,
        latency_ms=latency,
    )


RESULTS = [
    doc("r1", content="Charcoal backgrounds", category="visual-identity"),
    doc("r2", content="Use Aperol orange for accents", heading_hierarchy=["Colors", "Primary"]),
    doc("r3", content="Neue Haas Grotesk headings", title="Typography"),
]


class TestRelevance:

    def test_topic_in_content(self):
        assert is_relevant(RESULTS[1], query(expected_topics=["aperol"]))

    def test_expected_document_slug_as_words(self):
        candidate = doc("x", content="Rules for logo usage on dark backgrounds")
        assert is_relevant(candidate, query(expected_documents=["logo-usage"]))

    def test_expected_document_matches_category(self):
        assert is_relevant(RESULTS[0], query(expected_documents=["visual-identity"]))

    def test_topic_in_heading_hierarchy(self):
        assert is_relevant(RESULTS[1], query(expected_topics=["primary"]))

    def test_irrelevant(self):
        assert not is_relevant(RESULTS[0], query(expected_topics=["typography"]))


class TestRankingMetrics:

    def test_reciprocal_rank(self):
        assert reciprocal_rank(RESULTS, query(expected_topics=["aperol"])) == 0.5

    def test_reciprocal_rank_outside_k(self):
        assert reciprocal_rank(RESULTS, query(expected_topics=["grotesk"]), k=2) == 0.0

    def test_recall_over_expected_topics(self):
        q = query(expected_topics=["aperol", "grotesk", "glass", "texture"])
        assert recall_at(RESULTS, q, 5) == 0.5
        assert recall_at(RESULTS, q, 1) == 0.0

    def test_recall_without_topics(self):
        q = query(expected_documents=["visual-identity"])
        assert recall_at(RESULTS, q, 5) == 1.0

    def test_exact_match_rank_is_one_based(self):
        assert exact_match_rank(RESULTS, "Aperol Orange") == 2
        assert exact_match_rank(RESULTS, "typography") == 3
        assert exact_match_rank(RESULTS, "vanilla") is None


class TestPercentile:

    def test_p95_nearest_rank(self):
        values = [float(v) for v in range(1, 21)]
        assert percentile(values, 95) == 19.0

    def test_unsorted_input(self):
        assert percentile([30.0, 10.0, 20.0], 50) == 20.0

    def test_empty(self):
        assert percentile([], 95) == 0.0


class TestSummarize:

    def test_means(self):
        summary = summarize(
            [
                evaluation(rr=1.0, r5=1.0, r10=1.0),
                evaluation(rr=0.5, r5=0.0, r10=0.5),
            ]
        )
        assert summary.count == 2
        assert summary.mrr10 == 0.75
        assert summary.recall5 == 0.5
        assert summary.recall10 == 0.75

    def test_exact_match_rate_counts_exact_queries_only(self):
        summary = summarize(
            [
                evaluation(type="exact-match", exact=1),
                evaluation(type="exact-match", exact=3),
                evaluation(type="semantic", exact=1),
            ]
        )
        assert summary.exact_match_rate == 0.5

    def test_no_exact_queries(self):
        assert summarize([evaluation()]).exact_match_rate == 0.0


class TestLoadDataset:

    def test_parses_camel_case(self, tmp_path):
        path = tmp_path / "queries.json"
        path.write_text(
            json.dumps(
                {
                    "queries": [
                        {
                            "id": "em-1",
                            "query": "Aperol",
                            "type": "exact-match",
                            "expectedDocuments": ["visual-identity"],
                            "expectedTopics": ["aperol"],
                        }
                    ]
                }
            ),
            encoding="utf-8",
        )

        queries = load_dataset(str(path))

        assert queries[0].id == "em-1"
        assert queries[0].expected_documents == ["visual-identity"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_dataset(str(tmp_path / "nope.json"))


class TestSearchEvaluator:

    async def test_searches_documents_and_scores(self):
        orchestrator = AsyncMock()
        orchestrator.search.return_value = SearchResponse(results=list(RESULTS), query="aperol orange")
        evaluator = SearchEvaluator(orchestrator, top_k=7)

        result = await evaluator.evaluate_query(query(expected_topics=["aperol"]))

        request = orchestrator.search.await_args.args[0]
        assert request.types == (SourceType.DOCUMENTS,)
        assert request.limit == 7
        assert result.reciprocal_rank == 0.5
        assert result.exact_match_rank == 2
        assert result.latency_ms > 0
        assert result.top_titles == ["Title r1", "Title r2", "Typography"]

    async def test_failed_query_scores_zero(self):
        orchestrator = AsyncMock()
        orchestrator.search.side_effect = RuntimeError("store down")

        result = await SearchEvaluator(orchestrator).evaluate_query(query(expected_topics=["aperol"]))

        assert result.reciprocal_rank == 0.0
        assert result.recall == {5: 0.0, 10: 0.0}
        assert result.latency_ms == 0.0

    async def test_report_groups_by_type(self):
        orchestrator = AsyncMock()
        orchestrator.search.return_value = SearchResponse(results=list(RESULTS), query="q")
        queries = [
            query(id="a", type="exact-match", query="aperol orange", expected_topics=["aperol"]),
            query(id="b", type="semantic", query="dark backgrounds", expected_topics=["charcoal"]),
        ]

        report = await SearchEvaluator(orchestrator).evaluate(queries)

        assert report.total_queries == 2
        assert set(report.by_type) == {"exact-match", "semantic"}
        assert report.overall.mrr10 == 0.75
        assert report.by_type["exact-match"].exact_match_rate == 0.0
        assert report.avg_latency_ms > 0
        assert report.p95_latency_ms >= report.avg_latency_ms
