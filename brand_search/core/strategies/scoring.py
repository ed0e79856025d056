import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime, timezone

from ..models.search import SearchCandidate, SearchFilters, parse_datetime

logger = logging.getLogger(__name__)


def _utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class ScoringStrategy(ABC):
    """Base class for candidate filtering strategies."""

    @abstractmethod
    def apply(self, query: str, results: list[SearchCandidate]) -> list[SearchCandidate]:
        """Apply strategy to results."""
        ...


class ExcludeIdsStrategy(ScoringStrategy):
    """Drop candidates whose ID the caller excluded."""

    def __init__(self, exclude_ids: Iterable[str] | None):
        self._exclude_ids = frozenset(exclude_ids or ())

    def apply(self, query: str, results: list[SearchCandidate]) -> list[SearchCandidate]:
        if not self._exclude_ids or not results:
            return results

        filtered = [r for r in results if r.id not in self._exclude_ids]

        if len(filtered) < len(results):
            logger.debug(f"Excluded ids: {len(results)} → {len(filtered)}")

        return filtered


class ExcludeDocumentStrategy(ScoringStrategy):
    """Drop chunks that belong to a given parent document."""

    def __init__(self, document_id: str | None):
        self._document_id = document_id

    def apply(self, query: str, results: list[SearchCandidate]) -> list[SearchCandidate]:
        if not self._document_id:
            return results
        return [
            r for r in results if getattr(r, "document_id", None) != self._document_id
        ]


class MetadataFilterStrategy(ScoringStrategy):
    """Apply category, variant, document and date filters to candidates locally.

    Used where a store has no filtered procedure for a search mode. Dates are
    compared against ``updated_at``. Fields a candidate does not carry never
    exclude it.
    """

    def __init__(self, filters: SearchFilters | None):
        self._filters = filters or SearchFilters()

    def _accepts(self, candidate: SearchCandidate) -> bool:
        f = self._filters
        category = getattr(candidate, "category", None)
        if f.categories and category is not None and category not in f.categories:
            return False
        variant = getattr(candidate, "variant", None)
        if f.variants and hasattr(candidate, "variant") and variant not in f.variants:
            return False
        document_id = getattr(candidate, "document_id", None)
        if f.document_ids and document_id is not None and document_id not in f.document_ids:
            return False
        if f.date_from or f.date_to:
            updated_at = parse_datetime(getattr(candidate, "updated_at", None))
            if updated_at is not None:
                if f.date_from and _utc(updated_at) < _utc(f.date_from):
                    return False
                if f.date_to and _utc(updated_at) > _utc(f.date_to):
                    return False
        return True

    def apply(self, query: str, results: list[SearchCandidate]) -> list[SearchCandidate]:
        if self._filters.is_empty() or not results:
            return results

        filtered = [r for r in results if self._accepts(r)]

        if len(filtered) < len(results):
            logger.debug(f"Metadata filters: {len(results)} → {len(filtered)}")

        return filtered
