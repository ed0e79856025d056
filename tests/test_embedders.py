"""
Tests for brand_search/infrastructure/embeddings/openai_embedder.py
The OpenAI client is replaced with an AsyncMock; no requests are made.
"""
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import pytest
from openai import OpenAIError

from brand_search.core.errors import EmbeddingError
from brand_search.infrastructure.embeddings.openai_embedder import (
    MAX_INPUT_CHARS,
    OpenAIEmbedder,
    prepare_text,
)


def embedder_with(create):
    embedder = OpenAIEmbedder(api_key="sk-test", model="text-embedding-3-small")
    embedder._client = Mock(embeddings=Mock(create=create))
    return embedder


def item(index, vector):
    return SimpleNamespace(index=index, embedding=vector)


class TestPrepareText:

    def test_collapses_whitespace(self):
        assert prepare_text("  Aperol\n\norange\t accent ") == "Aperol orange accent"

    def test_truncates(self):
        assert len(prepare_text("x" * (MAX_INPUT_CHARS + 50))) == MAX_INPUT_CHARS


class TestOpenAIEmbedder:

    async def test_results_ordered_by_index(self):
        create = AsyncMock(return_value=SimpleNamespace(data=[item(1, [0.2]), item(0, [0.1])]))

        vectors = await embedder_with(create).embed_many(["a", "b"])

        assert vectors == [[0.1], [0.2]]
        assert create.await_args.kwargs == {"model": "text-embedding-3-small", "input": ["a", "b"]}

    async def test_embed_single(self):
        create = AsyncMock(return_value=SimpleNamespace(data=[item(0, [0.5, 0.5])]))
        assert await embedder_with(create).embed("brand colors") == [0.5, 0.5]

    async def test_empty_input_skips_request(self):
        create = AsyncMock()
        assert await embedder_with(create).embed_many([]) == []
        create.assert_not_awaited()

    async def test_count_mismatch(self):
        create = AsyncMock(return_value=SimpleNamespace(data=[item(0, [0.1])]))
        with pytest.raises(EmbeddingError):
            await embedder_with(create).embed_many(["a", "b"])

    async def test_provider_error(self):
        create = AsyncMock(side_effect=OpenAIError("quota exceeded"))
        with pytest.raises(EmbeddingError, match="quota"):
            await embedder_with(create).embed("brand colors")
