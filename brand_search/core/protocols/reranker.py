"""Relevance provider protocol for dependency injection."""
from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class RelevanceProviderProtocol(Protocol):
    """Protocol for cross-encoder relevance scoring."""

    async def score(
        self,
        query: str,
        documents: list[str],
        model: Optional[str] = None,
    ) -> list[float]:
        """Score each document against the query.

        Args:
            query: User query.
            documents: Document texts, in candidate order.
            model: Model identifier; provider default when None.

        Returns:
            One relevance score per document, in input order.
        """
        ...
