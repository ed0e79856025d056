"""
Tests for brand_search/core/services/ingest_service.py
Runs against a temporary docs folder and the in-memory store.
"""
import pytest

from brand_search.core.models.chunk import ChunkOptions
from brand_search.core.models.search import SourceType
from brand_search.core.services.ingest_service import IngestService
from brand_search.infrastructure.knowledge_stores.memory_store import InMemoryKnowledgeStore

from conftest import FakeEmbedder

CORE = """# Brand Core

Our brand is warm and direct.

## Colors

Aperol orange leads every layout.

## Typography

Neue Haas Grotesk for headings.
"""


@pytest.fixture
def docs(tmp_path):
    root = tmp_path / "docs"
    (root / "visual-identity").mkdir(parents=True)
    (root / "brand-core.md").write_text(CORE, encoding="utf-8")
    (root / "visual-identity" / "Logo Usage.md").write_text(
        "# Logo Usage\n\nKeep clear space around the mark.", encoding="utf-8"
    )
    (root / "notes.txt").write_text("not markdown", encoding="utf-8")
    (root / "empty.md").write_text("   \n", encoding="utf-8")
    return root


def service(docs, sink, embedder=None, **kwargs):
    return IngestService(embedder or FakeEmbedder(), sink, docs_path=str(docs), **kwargs)


class TestIngestMarkdown:

    async def test_chunks_embedded_and_stored(self):
        sink = InMemoryKnowledgeStore()
        embedder = FakeEmbedder()

        result = await IngestService(embedder, sink).ingest_markdown(
            "brand-identity/brand-core", "Brand Core", "brand-identity", "brand-core", CORE
        )

        assert result.chunks_created == 3
        assert result.total_tokens > 0
        stored = await sink.semantic_search(SourceType.DOCUMENTS, [0.1, 0.2, 0.3], limit=10, threshold=0.0)
        assert [r.heading_hierarchy for r in stored] == [
            ["Brand Core"],
            ["Brand Core", "Colors"],
            ["Brand Core", "Typography"],
        ]
        assert all(r.category == "brand-identity" for r in stored)

    async def test_embeddings_batched(self):
        embedder = FakeEmbedder()
        await IngestService(embedder, InMemoryKnowledgeStore(), batch_size=2).ingest_markdown(
            "x/core", "Core", "x", "core", CORE
        )
        assert [len(b) for b in embedder.batches] == [2, 1]

    async def test_empty_document_produces_nothing(self):
        embedder = FakeEmbedder()
        result = await IngestService(embedder, InMemoryKnowledgeStore()).ingest_markdown(
            "x/empty", "Empty", "x", "empty", ""
        )
        assert result.chunks_created == 0
        assert embedder.batches == []


class TestRun:

    async def test_indexes_markdown_files(self, docs):
        sink = InMemoryKnowledgeStore()

        count = await service(docs, sink).run()

        assert count == 4
        hashes = await sink.document_hashes()
        assert set(hashes) == {"brand-identity/brand-core", "visual-identity/logo-usage"}

    async def test_title_from_first_heading(self, docs):
        sink = InMemoryKnowledgeStore()
        await service(docs, sink).run()

        results = await sink.keyword_search(SourceType.DOCUMENTS, "clear space", limit=5)
        assert results[0].title == "Logo Usage"
        assert results[0].slug == "logo-usage"
        assert results[0].category == "visual-identity"

    async def test_unchanged_documents_skipped(self, docs):
        sink = InMemoryKnowledgeStore()
        await service(docs, sink).run()
        embedder = FakeEmbedder()

        assert await service(docs, sink, embedder).run() == 0
        assert embedder.batches == []

    async def test_changed_document_reindexed(self, docs):
        sink = InMemoryKnowledgeStore()
        await service(docs, sink).run()
        (docs / "brand-core.md").write_text(CORE + "\n## Voice\n\nConfident.\n", encoding="utf-8")

        assert await service(docs, sink).run() == 4

    async def test_force_reindexes_everything(self, docs):
        sink = InMemoryKnowledgeStore()
        await service(docs, sink).run()

        assert await service(docs, sink).run(force=True) == 4

    async def test_missing_docs_path(self, tmp_path):
        assert await service(tmp_path / "missing", InMemoryKnowledgeStore()).run() == 0

    async def test_chunk_options_applied(self, docs):
        sink = InMemoryKnowledgeStore()
        options = ChunkOptions(include_heading_in_content=False)
        await service(docs, sink, chunk_options=options).run()

        results = await sink.keyword_search(SourceType.DOCUMENTS, "clear space", limit=5)
        assert results[0].content == "Keep clear space around the mark."
