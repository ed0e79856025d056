"""Maximal Marginal Relevance selection."""

import logging
import re
from abc import ABC, abstractmethod
from typing import Optional, Sequence

import numpy as np

from ..models.search import RankedResult

logger = logging.getLogger(__name__)

_WORD_RE = re.compile(r"\w+")


class TextSimilarity(ABC):
    """Symmetric similarity between candidate texts, in [0, 1]."""

    @abstractmethod
    def matrix(self, texts: Sequence[str]) -> np.ndarray:
        """Pairwise similarity matrix for texts."""
        ...


class TokenJaccardSimilarity(TextSimilarity):
    """Jaccard overlap of lower-cased word sets."""

    def matrix(self, texts: Sequence[str]) -> np.ndarray:
        token_sets = [frozenset(w.lower() for w in _WORD_RE.findall(t)) for t in texts]
        n = len(token_sets)
        sims = np.eye(n)
        for i in range(n):
            for j in range(i + 1, n):
                a, b = token_sets[i], token_sets[j]
                union = len(a | b)
                sim = len(a & b) / union if union else 1.0
                sims[i, j] = sims[j, i] = sim
        return sims


class EmbeddingSimilarity(TextSimilarity):
    """Cosine similarity over precomputed text embeddings, clipped to [0, 1]."""

    def __init__(self, embeddings: Sequence[Sequence[float]]):
        self._embeddings = np.asarray(embeddings, dtype=float)

    def matrix(self, texts: Sequence[str]) -> np.ndarray:
        if len(texts) != len(self._embeddings):
            raise ValueError(
                f"Got {len(texts)} texts for {len(self._embeddings)} embeddings"
            )
        norms = np.linalg.norm(self._embeddings, axis=1, keepdims=True)
        norms[norms == 0] = 1.0
        normalized = self._embeddings / norms
        return np.clip(normalized @ normalized.T, 0.0, 1.0)


def select_mmr(
    ids: Sequence[str],
    texts: Sequence[str],
    relevance: Sequence[float],
    top_k: int,
    diversity_lambda: float = 0.7,
    similarity: Optional[TextSimilarity] = None,
) -> list[RankedResult]:
    """Pick up to top_k items balancing relevance against redundancy.

    Each step scores unselected item i as
    ``lambda * relevance[i] - (1 - lambda) * max(sim(i, s) for s in selected)``
    and picks the maximum; ties go to the lower original index.

    Args:
        ids: Candidate IDs, in original candidate order.
        texts: Display text per candidate.
        relevance: Relevance score per text.
        top_k: Number of items to select.
        diversity_lambda: Relevance/diversity trade-off in [0, 1].
        similarity: Text similarity measure (token Jaccard by default).

    Returns:
        Ranked results in selection order, ``original_rank`` being the index
        into ``ids``.
    """
    n = len(ids)
    if not n == len(texts) == len(relevance):
        raise ValueError(
            f"Got {n} ids, {len(texts)} texts and {len(relevance)} relevance scores"
        )
    if n == 0 or top_k <= 0:
        return []

    sims = (similarity or TokenJaccardSimilarity()).matrix(texts)
    scores = np.asarray(relevance, dtype=float)

    selected: list[RankedResult] = []
    remaining = list(range(n))
    max_sim = np.zeros(n)

    while remaining and len(selected) < top_k:
        best_index = remaining[0]
        best_score = -np.inf
        for i in remaining:
            mmr = diversity_lambda * scores[i] - (1 - diversity_lambda) * max_sim[i]
            if mmr > best_score:
                best_score = mmr
                best_index = i

        selected.append(
            RankedResult(
                id=ids[best_index],
                relevance_score=float(scores[best_index]),
                original_rank=best_index,
                diversity_score=float(best_score),
            )
        )
        remaining.remove(best_index)
        max_sim = np.maximum(max_sim, sims[best_index])

    if logger.isEnabledFor(logging.DEBUG):
        order = ", ".join(str(r.original_rank) for r in selected)
        logger.debug(f"MMR selection order: [{order}]")

    return selected
