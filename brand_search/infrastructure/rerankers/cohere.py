import logging
from typing import Optional

import httpx

from brand_search.core.errors import RerankError

logger = logging.getLogger(__name__)

COHERE_RERANK_URL = "https://api.cohere.ai/v1/rerank"


class CohereReranker:
    """Relevance provider backed by the Cohere rerank endpoint."""

    def __init__(
        self,
        api_key: str,
        model: str = "rerank-v3.5",
        url: str = COHERE_RERANK_URL,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize Cohere reranker.

        Args:
            api_key: Cohere API key.
            model: Default rerank model.
            url: Rerank endpoint URL.
            timeout: Request timeout in seconds.
            client: Shared HTTP client; one is created if omitted.
        """
        self._api_key = api_key
        self._model = model
        self._url = url
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def score(
        self,
        query: str,
        documents: list[str],
        model: Optional[str] = None,
    ) -> list[float]:
        """Score documents against the query.

        Returns:
            One score per document, in input order. Documents the API
            leaves out score 0.
        """
        if not documents:
            return []

        data = await self._post(
            {
                "query": query,
                "documents": documents,
                "top_n": len(documents),
                "model": model or self._model,
                "return_documents": False,
            }
        )

        scores = [0.0] * len(documents)
        for item in data.get("results", []):
            index = item.get("index")
            if not isinstance(index, int) or not 0 <= index < len(documents):
                raise RerankError(f"Cohere returned invalid result index: {index!r}")
            scores[index] = float(item["relevance_score"])
        return scores

    async def health_check(self) -> bool:
        """Send a one-document request to validate the key and endpoint."""
        try:
            await self._post(
                {"query": "test", "documents": ["test document"], "top_n": 1, "model": self._model}
            )
        except RerankError as e:
            logger.warning(f"Cohere rerank unavailable: {e}")
            return False
        return True

    async def _post(self, payload: dict) -> dict:
        try:
            resp = await self._client.post(
                self._url,
                json=payload,
                headers={
                    "Authorization": f"Bearer {self._api_key}",
                    "Content-Type": "application/json",
                },
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise RerankError(
                f"Cohere API error {e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise RerankError(f"Cohere API request failed: {e}") from e
        return resp.json()

    async def aclose(self) -> None:
        await self._client.aclose()
