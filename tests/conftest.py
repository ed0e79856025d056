"""
Shared fixtures for the brand search test suite.

Collaborators are faked in-process: the embedder returns a fixed vector,
the knowledge store is an ``AsyncMock`` with per-source results, and the
relevance provider scores documents from a lookup table.
"""
from unittest.mock import AsyncMock

import pytest

from brand_search.core.models.search import (
    AssetCandidate,
    ChatCandidate,
    DocumentCandidate,
    SimilarChunks,
    SourceType,
)


def doc(id, similarity=0.5, content=None, document_id="doc-1", **kwargs):
    return DocumentCandidate(
        id=id,
        similarity=similarity,
        content=content if content is not None else f"content of {id}",
        document_id=document_id,
        title=kwargs.pop("title", f"Title {id}"),
        **kwargs,
    )


def asset(id, similarity=0.5, **kwargs):
    return AssetCandidate(
        id=id,
        similarity=similarity,
        name=kwargs.pop("name", f"asset {id}"),
        description=kwargs.pop("description", f"description of {id}"),
        category=kwargs.pop("category", "logos"),
        **kwargs,
    )


def chat(id, similarity=0.5, **kwargs):
    return ChatCandidate(
        id=id,
        similarity=similarity,
        content=kwargs.pop("content", f"message {id}"),
        **kwargs,
    )


class FakeEmbedder:
    """Embedder returning a constant vector and recording inputs."""

    def __init__(self, vector=None, error=None):
        self.vector = vector or [0.1, 0.2, 0.3]
        self.error = error
        self.calls: list[str] = []
        self.batches: list[list[str]] = []

    async def embed(self, text):
        self.calls.append(text)
        if self.error:
            raise self.error
        return list(self.vector)

    async def embed_many(self, texts):
        self.batches.append(list(texts))
        if self.error:
            raise self.error
        return [list(self.vector) for _ in texts]

    def warmup(self):
        pass


class FakeRelevanceProvider:
    """Scores documents from a text -> score table; unknown texts score 0."""

    def __init__(self, scores=None, error=None):
        self.scores = scores or {}
        self.error = error
        self.calls = []

    async def score(self, query, documents, model=None):
        self.calls.append((query, list(documents), model))
        if self.error:
            raise self.error
        return [self.scores.get(d, 0.0) for d in documents]


def make_store(per_source=None):
    """AsyncMock store whose hybrid/semantic/keyword calls return per-source lists."""
    per_source = per_source or {}
    store = AsyncMock()

    async def by_source(source_type, *args, **kwargs):
        return list(per_source.get(source_type, []))

    store.hybrid_search.side_effect = by_source
    store.semantic_search.side_effect = by_source
    store.keyword_search.side_effect = by_source
    store.find_similar.return_value = SimilarChunks(source_document_id=None, results=[])
    store.facets.return_value = []
    return store


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def store():
    return make_store(
        {
            SourceType.DOCUMENTS: [doc("d1", 0.9), doc("d2", 0.4)],
            SourceType.ASSETS: [asset("a1", 0.7)],
            SourceType.CHATS: [chat("c1", 0.6)],
        }
    )
