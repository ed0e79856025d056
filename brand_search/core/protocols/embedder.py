"""Embedder protocol for dependency injection."""
from typing import Protocol, runtime_checkable


@runtime_checkable
class EmbedderProtocol(Protocol):
    """Protocol for embedding service."""

    async def embed(self, text: str) -> list[float]:
        """Embed a single text.

        Args:
            text: Text to embed.

        Returns:
            Fixed-length embedding vector.

        Raises:
            EmbeddingError: If the provider is unavailable.
        """
        ...

    async def embed_many(self, texts: list[str]) -> list[list[float]]:
        """Embed texts in order.

        Args:
            texts: Texts to embed.

        Returns:
            One vector per input text.
        """
        ...

    def warmup(self) -> None:
        """Pre-load the model for faster inference."""
        ...
