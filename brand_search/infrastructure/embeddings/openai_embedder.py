import logging
import re

from openai import AsyncOpenAI, OpenAIError

from brand_search.core.errors import EmbeddingError

logger = logging.getLogger(__name__)

# Stays under the 8191-token input limit for typical prose.
MAX_INPUT_CHARS = 8000

_WHITESPACE_RE = re.compile(r"\s+")


def prepare_text(text: str) -> str:
    """Collapse whitespace and truncate to the provider's input size."""
    return _WHITESPACE_RE.sub(" ", text).strip()[:MAX_INPUT_CHARS]


class OpenAIEmbedder:
    """Embedder using the OpenAI embeddings API."""

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-large",
        base_url: str | None = None,
    ):
        """Initialize OpenAI embedder.

        Args:
            api_key: OpenAI API key.
            model: Embedding model name.
            base_url: Alternative OpenAI-compatible endpoint.
        """
        try:
            self._client = AsyncOpenAI(api_key=api_key or None, base_url=base_url)
        except OpenAIError as e:
            raise EmbeddingError(f"OpenAI client unavailable: {e}") from e
        self._model = model

    def warmup(self) -> None:
        pass

    async def embed(self, text: str) -> list[float]:
        vectors = await self.embed_many([text])
        return vectors[0]

    async def embed_many(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        try:
            response = await self._client.embeddings.create(
                model=self._model,
                input=[prepare_text(t) for t in texts],
            )
        except OpenAIError as e:
            logger.error(f"Embedding request failed: {e}")
            raise EmbeddingError(f"{self._model}: {e}") from e

        data = sorted(response.data, key=lambda d: d.index)
        if len(data) != len(texts):
            raise EmbeddingError(
                f"{self._model}: got {len(data)} embeddings for {len(texts)} texts"
            )
        return [list(d.embedding) for d in data]
