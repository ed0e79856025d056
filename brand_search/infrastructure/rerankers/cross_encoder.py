import asyncio
import logging
from typing import Optional

from sentence_transformers import CrossEncoder

from brand_search.core.errors import RerankError

logger = logging.getLogger(__name__)


class CrossEncoderReranker:
    """Relevance provider using local CrossEncoder models."""

    def __init__(self, model_name: str = "BAAI/bge-reranker-v2-m3"):
        """Initialize reranker.

        Args:
            model_name: Default HuggingFace model name.
        """
        self._model_name = model_name
        self._models: dict[str, CrossEncoder] = {}

    def _load(self, model_name: str) -> CrossEncoder:
        if model_name not in self._models:
            logger.info(f"Loading reranker: {model_name}")
            self._models[model_name] = CrossEncoder(model_name)
            logger.info("Reranker loaded")
        return self._models[model_name]

    def warmup(self) -> None:
        self._load(self._model_name)

    def _predict(self, model_name: str, pairs: list[list[str]]) -> list[float]:
        return [float(s) for s in self._load(model_name).predict(pairs)]

    async def score(
        self,
        query: str,
        documents: list[str],
        model: Optional[str] = None,
    ) -> list[float]:
        """Score each document against the query.

        Args:
            query: User query.
            documents: Document texts.
            model: HuggingFace model name; defaults to the configured one.

        Returns:
            Raw cross-encoder scores in input order.
        """
        if not documents:
            return []

        pairs = [[query, d] for d in documents]
        try:
            scores = await asyncio.to_thread(self._predict, model or self._model_name, pairs)
        except Exception as e:
            raise RerankError(f"CrossEncoder failed: {e}") from e

        if logger.isEnabledFor(logging.DEBUG):
            top_scores = ", ".join(f"{s:.2f}" for s in sorted(scores, reverse=True)[:3])
            logger.debug(f"Reranker top-3 scores: [{top_scores}]")

        return scores
