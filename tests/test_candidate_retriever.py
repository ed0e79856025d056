"""
Tests for brand_search/core/services/candidate_retriever.py
Concurrent per-source retrieval, fallbacks and find-similar.
"""
import asyncio

import pytest

from brand_search.core.errors import StoreError
from brand_search.core.models.search import (
    SearchFilters,
    SearchMode,
    SimilarChunks,
    SourceType,
)
from brand_search.core.services.candidate_retriever import (
    CandidateRetriever,
    RetrievalParams,
)

from conftest import asset, chat, doc, make_store


def params(**kwargs):
    kwargs.setdefault("query", "brand colors")
    kwargs.setdefault("query_embedding", [0.1, 0.2])
    return RetrievalParams(**kwargs)


class TestMergeAndSort:

    async def test_merges_all_sources_sorted_by_similarity(self, store):
        results = await CandidateRetriever(store).retrieve(params())

        assert [r.id for r in results] == ["d1", "a1", "c1", "d2"]
        sims = [r.similarity for r in results]
        assert sims == sorted(sims, reverse=True)

    async def test_only_requested_sources(self, store):
        results = await CandidateRetriever(store).retrieve(
            params(source_types=(SourceType.ASSETS,))
        )

        assert [r.id for r in results] == ["a1"]
        assert store.hybrid_search.await_count == 1

    async def test_duplicate_rows_merged_once(self):
        store = make_store({SourceType.DOCUMENTS: [doc("d1", 0.9), doc("d1", 0.9)]})
        results = await CandidateRetriever(store).retrieve(params())
        assert [r.id for r in results] == ["d1"]

    async def test_sources_run_concurrently(self):
        in_flight = 0
        peak = 0

        async def slow(source_type, *args, **kwargs):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return []

        store = make_store()
        store.hybrid_search.side_effect = slow
        await CandidateRetriever(store).retrieve(params())

        assert peak == 3


class TestHybridCalls:

    async def test_weight_and_rrf_constant_passed_through(self, store):
        await CandidateRetriever(store).retrieve(
            params(source_types=(SourceType.DOCUMENTS,), semantic_weight=0.4)
        )

        kwargs = store.hybrid_search.await_args.kwargs
        assert kwargs["semantic_weight"] == 0.4
        assert kwargs["rrf_k"] == 60
        assert kwargs["filters"] is None

    async def test_filtered_procedure_when_filters_present(self, store):
        filters = SearchFilters(categories=frozenset({"logos"}))
        await CandidateRetriever(store).retrieve(
            params(source_types=(SourceType.ASSETS,), filters=filters)
        )
        assert store.hybrid_search.await_args.kwargs["filters"] == filters

    async def test_over_fetch_when_reranking(self, store):
        retriever = CandidateRetriever(store)
        await retriever.retrieve(params(source_types=(SourceType.DOCUMENTS,), limit=10))
        assert store.hybrid_search.await_args.kwargs["limit"] == 10

        await retriever.retrieve(
            params(source_types=(SourceType.DOCUMENTS,), limit=10, rerank_enabled=True)
        )
        assert store.hybrid_search.await_args.kwargs["limit"] == 30

    async def test_keyword_query_override(self, store):
        await CandidateRetriever(store).retrieve(
            params(source_types=(SourceType.DOCUMENTS,), keyword_query="colour palette")
        )
        assert store.hybrid_search.await_args.args[1] == "colour palette"


class TestFallbacks:

    async def test_hybrid_failure_falls_back_to_semantic(self):
        store = make_store({SourceType.ASSETS: [asset("a1", 0.6)]})
        store.hybrid_search.side_effect = StoreError("hybrid_search_assets", "boom")

        results = await CandidateRetriever(store).retrieve(
            params(source_types=(SourceType.ASSETS,))
        )

        assert [r.id for r in results] == ["a1"]
        store.semantic_search.assert_awaited_once()

    async def test_double_failure_isolated_to_source(self):
        store = make_store({SourceType.DOCUMENTS: [doc("d1")], SourceType.CHATS: [chat("c1")]})

        async def hybrid(source_type, *args, **kwargs):
            if source_type is SourceType.ASSETS:
                raise StoreError("hybrid_search_assets", "boom")
            return [doc("d1")] if source_type is SourceType.DOCUMENTS else [chat("c1")]

        async def semantic(source_type, *args, **kwargs):
            raise StoreError("match_assets", "also boom")

        store.hybrid_search.side_effect = hybrid
        store.semantic_search.side_effect = semantic

        results = await CandidateRetriever(store).retrieve(params())
        assert {r.id for r in results} == {"d1", "c1"}

    async def test_semantic_mode_has_no_fallback(self):
        store = make_store()
        store.semantic_search.side_effect = StoreError("match_document_chunks", "boom")

        results = await CandidateRetriever(store).retrieve(
            params(source_types=(SourceType.DOCUMENTS,), search_mode=SearchMode.SEMANTIC)
        )

        assert results == []
        store.hybrid_search.assert_not_awaited()
        store.keyword_search.assert_not_awaited()

    async def test_keyword_mode_failure_is_empty(self):
        store = make_store()
        store.keyword_search.side_effect = StoreError("keyword_search_chunks", "boom")

        results = await CandidateRetriever(store).retrieve(
            params(source_types=(SourceType.DOCUMENTS,), search_mode=SearchMode.KEYWORD)
        )

        assert results == []
        store.semantic_search.assert_not_awaited()


class TestExclusions:

    async def test_exclude_ids_applied_after_retrieval(self, store):
        results = await CandidateRetriever(store).retrieve(
            params(filters=SearchFilters(exclude_ids=frozenset({"d1", "c1"})))
        )
        assert [r.id for r in results] == ["a1", "d2"]


class TestFindSimilar:

    async def test_excludes_source_document_and_chunk(self):
        store = make_store()
        store.find_similar.return_value = SimilarChunks(
            source_document_id="doc-A",
            results=[
                doc("src", 1.0, document_id="doc-A"),
                doc("same", 0.95, document_id="doc-A"),
                doc("x", 0.7, document_id="doc-B"),
                doc("y", 0.8, document_id="doc-C"),
            ],
        )

        results = await CandidateRetriever(store).find_similar("src", limit=5)

        assert [r.id for r in results] == ["y", "x"]

    async def test_same_document_kept_when_not_excluded(self):
        store = make_store()
        store.find_similar.return_value = SimilarChunks(
            source_document_id="doc-A",
            results=[doc("same", 0.95, document_id="doc-A"), doc("x", 0.7, document_id="doc-B")],
        )

        results = await CandidateRetriever(store).find_similar(
            "src", limit=1, exclude_same_document=False
        )

        assert [r.id for r in results] == ["same"]
        assert store.find_similar.await_args.kwargs["exclude_same_document"] is False

    async def test_metadata_filters_applied(self):
        store = make_store()
        store.find_similar.return_value = SimilarChunks(
            source_document_id="doc-A",
            results=[
                doc("colors", 0.9, document_id="doc-B", category="colors"),
                doc("type", 0.8, document_id="doc-C", category="typography"),
                doc("other", 0.7, document_id="doc-D", category="colors"),
            ],
        )

        results = await CandidateRetriever(store).find_similar(
            "src",
            limit=5,
            filters=SearchFilters(
                categories=frozenset({"colors"}), document_ids=frozenset({"doc-B", "doc-C"})
            ),
        )

        assert [r.id for r in results] == ["colors"]

    async def test_store_failure_is_empty(self):
        store = make_store()
        store.find_similar.side_effect = StoreError("find_similar_chunks", "missing")

        assert await CandidateRetriever(store).find_similar("src", limit=5) == []
