import asyncio
import logging
from functools import cached_property

import numpy as np
from sentence_transformers import SentenceTransformer

from brand_search.core.errors import EmbeddingError

logger = logging.getLogger(__name__)


class SentenceTransformerEmbedder:
    """Local embedder; model calls run off the event loop."""

    def __init__(self, model_name: str = "intfloat/multilingual-e5-base"):
        self._model_name = model_name

    @cached_property
    def model(self) -> SentenceTransformer:
        logger.info(f"Loading embedding model: {self._model_name}")
        return SentenceTransformer(self._model_name)

    def warmup(self) -> None:
        _ = self.model
        logger.info("Embedding model warmed up")

    def encode(self, texts: str | list[str]) -> np.ndarray:
        return self.model.encode(texts, convert_to_numpy=True, normalize_embeddings=True)

    async def embed(self, text: str) -> list[float]:
        vectors = await self.embed_many([text])
        return vectors[0]

    async def embed_many(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        try:
            vectors = await asyncio.to_thread(self.encode, texts)
        except Exception as e:
            raise EmbeddingError(f"{self._model_name}: {e}") from e
        return np.asarray(vectors, dtype=np.float32).tolist()
