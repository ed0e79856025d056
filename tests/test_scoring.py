"""
Tests for brand_search/core/strategies/scoring.py
"""
from datetime import datetime, timezone

from brand_search.core.models.search import SearchFilters
from brand_search.core.strategies.scoring import (
    ExcludeDocumentStrategy,
    ExcludeIdsStrategy,
    MetadataFilterStrategy,
)

from conftest import asset, chat, doc


class TestExcludeStrategies:

    def test_exclude_ids(self):
        results = ExcludeIdsStrategy({"d2"}).apply("q", [doc("d1"), doc("d2")])
        assert [r.id for r in results] == ["d1"]

    def test_exclude_document(self):
        results = ExcludeDocumentStrategy("doc-A").apply(
            "", [doc("c1", document_id="doc-A"), doc("c2", document_id="doc-B")]
        )
        assert [r.id for r in results] == ["c2"]

    def test_no_document_keeps_everything(self):
        results = [doc("c1")]
        assert ExcludeDocumentStrategy(None).apply("", results) == results


class TestMetadataFilterStrategy:

    def test_empty_filters_pass_through(self):
        results = [doc("d1"), asset("a1")]
        assert MetadataFilterStrategy(None).apply("q", results) is results

    def test_categories_and_document_ids(self):
        filters = SearchFilters(
            categories=frozenset({"colors"}), document_ids=frozenset({"doc-A"})
        )
        results = MetadataFilterStrategy(filters).apply(
            "q",
            [
                doc("keep", category="colors", document_id="doc-A"),
                doc("wrong-doc", category="colors", document_id="doc-B"),
                doc("wrong-cat", category="type", document_id="doc-A"),
            ],
        )
        assert [r.id for r in results] == ["keep"]

    def test_variants_only_constrain_assets(self):
        filters = SearchFilters(variants=frozenset({"dark"}))
        results = MetadataFilterStrategy(filters).apply(
            "q", [asset("a1", variant="dark"), asset("a2", variant="light"), doc("d1")]
        )
        assert [r.id for r in results] == ["a1", "d1"]

    def test_date_range_on_updated_at(self):
        filters = SearchFilters(
            date_from=datetime(2025, 1, 1, tzinfo=timezone.utc),
            date_to=datetime(2025, 12, 31, tzinfo=timezone.utc),
        )
        results = MetadataFilterStrategy(filters).apply(
            "q",
            [
                chat("before", updated_at="2024-06-01T00:00:00Z"),
                chat("inside", updated_at="2025-06-01T00:00:00Z"),
                chat("after", updated_at="2026-06-01T00:00:00Z"),
                doc("undated"),
            ],
        )
        assert [r.id for r in results] == ["inside", "undated"]
