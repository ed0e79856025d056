"""Search domain models."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional, Union


class SourceType(str, Enum):
    """Knowledge source searched by the retriever."""
    CHATS = "chats"
    ASSETS = "assets"
    DOCUMENTS = "documents"


ALL_SOURCE_TYPES: tuple[SourceType, ...] = (
    SourceType.CHATS,
    SourceType.ASSETS,
    SourceType.DOCUMENTS,
)


class SearchMode(str, Enum):
    HYBRID = "hybrid"
    SEMANTIC = "semantic"
    KEYWORD = "keyword"


class MatchType(str, Enum):
    """Which ranking signal produced a hybrid row."""
    SEMANTIC = "semantic"
    KEYWORD = "keyword"
    BOTH = "both"


def _parse_id_set(value: Any) -> Optional[frozenset[str]]:
    if not isinstance(value, (list, tuple, set, frozenset)):
        return None
    items = frozenset(str(v) for v in value if isinstance(v, (str, int)) and str(v).strip())
    return items or None


def parse_datetime(value: Any) -> Optional[datetime]:
    """ISO-8601 datetime (a trailing Z is accepted), or None."""
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None


@dataclass(frozen=True)
class SearchFilters:
    """Metadata filters: AND across fields, OR within a multi-valued field."""
    categories: Optional[frozenset[str]] = None
    variants: Optional[frozenset[str]] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    exclude_ids: Optional[frozenset[str]] = None
    document_ids: Optional[frozenset[str]] = None

    def is_empty(self) -> bool:
        """True when no filter field carries a value."""
        return not any(
            (
                self.categories,
                self.variants,
                self.date_from,
                self.date_to,
                self.exclude_ids,
                self.document_ids,
            )
        )

    @classmethod
    def from_dict(cls, data: Any) -> "SearchFilters":
        """Build filters from a request payload.

        Malformed values (wrong types, unparsable dates, empty lists) are
        treated as absent rather than rejected.

        Args:
            data: Mapping with camelCase or snake_case keys.

        Returns:
            Parsed filters, possibly empty.
        """
        if not isinstance(data, dict):
            return cls()

        def pick(*keys: str) -> Any:
            for key in keys:
                if key in data:
                    return data[key]
            return None

        return cls(
            categories=_parse_id_set(pick("categories")),
            variants=_parse_id_set(pick("variants")),
            date_from=parse_datetime(pick("dateFrom", "date_from")),
            date_to=parse_datetime(pick("dateTo", "date_to")),
            exclude_ids=_parse_id_set(pick("excludeIds", "exclude_ids")),
            document_ids=_parse_id_set(pick("documentIds", "document_ids")),
        )


@dataclass(kw_only=True)
class SearchCandidate:
    """Retrieved item. Subclasses are discriminated by ``type``."""
    type: str = ""
    id: str
    similarity: float
    match_type: Optional[MatchType] = None
    # Full-text rank as the store reports it: a ts_rank score from Postgres,
    # a 1-based position from the in-memory store. Fractional, hence float.
    keyword_rank: Optional[float] = None
    rrf_score: Optional[float] = None
    # Set once the rerank pipeline has run; relevance supersedes similarity.
    relevance_score: Optional[float] = None
    diversity_score: Optional[float] = None
    original_rank: Optional[int] = None

    @property
    def display_text(self) -> str:
        return ""

    @property
    def score(self) -> float:
        """Primary score (relevance if reranked, else similarity)."""
        return self.relevance_score if self.relevance_score is not None else self.similarity

    def _fields(self) -> dict[str, Any]:
        return {}

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "type": self.type}
        data.update(self._fields())
        data["similarity"] = self.similarity
        if self.match_type is not None:
            data["matchType"] = self.match_type.value
        if self.keyword_rank is not None:
            data["keywordRank"] = self.keyword_rank
        if self.rrf_score is not None:
            data["rrfScore"] = self.rrf_score
        if self.relevance_score is not None:
            data["relevanceScore"] = self.relevance_score
            data["originalRank"] = self.original_rank
        if self.diversity_score is not None:
            data["diversityScore"] = self.diversity_score
        return data


@dataclass(kw_only=True)
class ChatCandidate(SearchCandidate):
    type: Literal["chat"] = "chat"
    chat_id: str = ""
    title: str = ""
    content: str = ""
    role: str = ""
    updated_at: Optional[str] = None

    @property
    def display_text(self) -> str:
        return self.content

    def _fields(self) -> dict[str, Any]:
        return {
            "chatId": self.chat_id,
            "title": self.title,
            "content": self.content,
            "role": self.role,
            "updatedAt": self.updated_at,
        }


@dataclass(kw_only=True)
class AssetCandidate(SearchCandidate):
    type: Literal["asset"] = "asset"
    name: str = ""
    filename: str = ""
    description: str = ""
    category: str = ""
    variant: Optional[str] = None
    storage_path: str = ""

    @property
    def display_text(self) -> str:
        return self.description or self.name

    def _fields(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "filename": self.filename,
            "description": self.description,
            "category": self.category,
            "variant": self.variant,
            "storagePath": self.storage_path,
        }


@dataclass(kw_only=True)
class DocumentCandidate(SearchCandidate):
    type: Literal["document"] = "document"
    document_id: str = ""
    title: str = ""
    category: str = ""
    slug: str = ""
    content: str = ""
    heading_hierarchy: list[str] = field(default_factory=list)

    @property
    def display_text(self) -> str:
        return self.content

    def _fields(self) -> dict[str, Any]:
        return {
            "documentId": self.document_id,
            "title": self.title,
            "category": self.category,
            "slug": self.slug,
            "content": self.content,
            "headingHierarchy": list(self.heading_hierarchy),
        }


AnyCandidate = Union[ChatCandidate, AssetCandidate, DocumentCandidate]


@dataclass
class RankedResult:
    """Output of the rerank pipeline for a single candidate."""
    id: str
    relevance_score: float
    original_rank: int
    diversity_score: Optional[float] = None


@dataclass
class Facet:
    """Count of items sharing one metadata value."""
    type: str
    value: str
    count: int

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "value": self.value, "count": self.count}


@dataclass
class SearchTiming:
    """Stage durations in milliseconds."""
    embedding: float = 0.0
    search: float = 0.0
    total: float = 0.0
    rerank: Optional[float] = None

    def to_dict(self) -> dict[str, int]:
        data = {
            "embedding": round(self.embedding),
            "search": round(self.search),
            "total": round(self.total),
        }
        if self.rerank is not None:
            data["rerank"] = round(self.rerank)
        return data


@dataclass
class SearchMeta:
    reranked: bool = False
    diversity_applied: bool = False
    candidates_retrieved: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "reranked": self.reranked,
            "diversityApplied": self.diversity_applied,
            "candidatesRetrieved": self.candidates_retrieved,
        }


def _parse_float(value: Any, default: float, low: float = 0.0, high: float = 1.0) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if not low <= float(value) <= high:
        return default
    return float(value)


@dataclass
class SearchRequest:
    """Search request. ``None`` defaults are resolved by the orchestrator."""
    query: str = ""
    types: tuple[SourceType, ...] = ALL_SOURCE_TYPES
    limit: int = 10
    threshold: float = 0.3
    search_mode: SearchMode = SearchMode.HYBRID
    semantic_weight: float = 0.7
    rerank: Optional[bool] = None
    rerank_model: Optional[str] = None
    diversity: Optional[bool] = None
    diversity_lambda: float = 0.7
    filters: SearchFilters = field(default_factory=SearchFilters)
    similar_to: Optional[str] = None
    exclude_same_document: bool = True
    include_facets: bool = False
    expand_query: bool = False

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "SearchRequest":
        """Parse a camelCase JSON request body, defaulting invalid fields."""
        defaults = cls()

        types: list[SourceType] = []
        raw_types = payload.get("types")
        if isinstance(raw_types, (list, tuple)):
            for value in raw_types:
                try:
                    source_type = SourceType(value)
                except ValueError:
                    continue
                if source_type not in types:
                    types.append(source_type)

        try:
            search_mode = SearchMode(payload.get("searchMode", defaults.search_mode))
        except ValueError:
            search_mode = defaults.search_mode

        limit = payload.get("limit")
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            limit = defaults.limit

        def optional_bool(key: str) -> Optional[bool]:
            value = payload.get(key)
            return value if isinstance(value, bool) else None

        query = payload.get("query")
        similar_to = payload.get("similarTo")
        rerank_model = payload.get("rerankModel")

        return cls(
            query=query if isinstance(query, str) else "",
            types=tuple(types) or defaults.types,
            limit=limit,
            threshold=_parse_float(payload.get("threshold"), defaults.threshold),
            search_mode=search_mode,
            semantic_weight=_parse_float(payload.get("semanticWeight"), defaults.semantic_weight),
            rerank=optional_bool("rerank"),
            rerank_model=rerank_model if isinstance(rerank_model, str) and rerank_model else None,
            diversity=optional_bool("diversity"),
            diversity_lambda=_parse_float(payload.get("diversityLambda"), defaults.diversity_lambda),
            filters=SearchFilters.from_dict(payload.get("filters")),
            similar_to=similar_to if isinstance(similar_to, str) and similar_to.strip() else None,
            exclude_same_document=payload.get("excludeSameDocument", True) is not False,
            include_facets=payload.get("includeFacets") is True,
            expand_query=payload.get("expandQuery") is True,
        )


@dataclass
class SearchResponse:
    """Search response for the presentation layer."""
    results: list[SearchCandidate]
    query: str
    timing: SearchTiming = field(default_factory=SearchTiming)
    meta: SearchMeta = field(default_factory=SearchMeta)
    facets: Optional[dict[SourceType, list[Facet]]] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "results": [r.to_dict() for r in self.results],
            "query": self.query,
            "timing": self.timing.to_dict(),
            "meta": self.meta.to_dict(),
        }
        if self.facets is not None:
            data["facets"] = {
                source_type.value: [f.to_dict() for f in facets]
                for source_type, facets in self.facets.items()
            }
        return data


@dataclass
class SimilarChunks:
    """Nearest neighbours of a stored chunk."""
    source_document_id: Optional[str]
    results: list[DocumentCandidate] = field(default_factory=list)
