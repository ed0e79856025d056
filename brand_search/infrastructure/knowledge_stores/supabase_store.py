import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

import httpx

from brand_search.core.chunking import content_hash
from brand_search.core.errors import StoreError
from brand_search.core.models.chunk import MarkdownChunk
from brand_search.core.models.search import (
    AssetCandidate,
    ChatCandidate,
    DocumentCandidate,
    Facet,
    MatchType,
    SearchCandidate,
    SearchFilters,
    SimilarChunks,
    SourceType,
)
from brand_search.core.protocols.knowledge_store import RRF_K
from brand_search.core.strategies.scoring import MetadataFilterStrategy

logger = logging.getLogger(__name__)

DOCUMENTS_TABLE = "brand_documents"
CHUNKS_TABLE = "brand_document_chunks"


@dataclass(frozen=True)
class _Procedures:
    """Stored procedure names for one source type; None when unsupported."""
    hybrid: Optional[str]
    hybrid_filtered: Optional[str]
    semantic: Optional[str]
    keyword: Optional[str]
    facets: Optional[str]
    brand_scoped: bool = True


PROCEDURES: dict[SourceType, _Procedures] = {
    SourceType.CHATS: _Procedures(
        hybrid=None,
        hybrid_filtered=None,
        semantic="match_messages",
        keyword=None,
        facets=None,
        brand_scoped=False,
    ),
    SourceType.ASSETS: _Procedures(
        hybrid="hybrid_search_assets",
        hybrid_filtered="hybrid_search_assets_filtered",
        semantic="match_assets",
        keyword=None,
        facets="get_asset_search_facets",
    ),
    SourceType.DOCUMENTS: _Procedures(
        hybrid="hybrid_search_chunks",
        hybrid_filtered="hybrid_search_chunks_filtered",
        semantic="match_document_chunks",
        keyword="keyword_search_chunks",
        facets="get_document_search_facets",
    ),
}


def _match_type(value: Any) -> Optional[MatchType]:
    try:
        return MatchType(value) if value else None
    except ValueError:
        return None


def _similarity(row: dict) -> float:
    """Vector similarity when present, else the fused or keyword score."""
    for key in ("semantic_similarity", "similarity", "rrf_score", "keyword_rank"):
        value = row.get(key)
        if value:
            return float(value)
    return 0.0


def _common(row: dict) -> dict[str, Any]:
    keyword_rank = row.get("keyword_rank")
    rrf_score = row.get("rrf_score")
    return {
        "id": str(row["id"]),
        "similarity": _similarity(row),
        "match_type": _match_type(row.get("match_type")),
        "keyword_rank": float(keyword_rank) if keyword_rank is not None else None,
        "rrf_score": float(rrf_score) if rrf_score is not None else None,
    }


def chat_from_row(row: dict) -> ChatCandidate:
    return ChatCandidate(
        **_common(row),
        chat_id=str(row.get("chat_id") or ""),
        title=row.get("chat_title") or row.get("title") or "",
        content=row.get("content") or "",
        role=row.get("role") or "",
        updated_at=row.get("chat_updated_at") or row.get("updated_at"),
    )


def asset_from_row(row: dict) -> AssetCandidate:
    return AssetCandidate(
        **_common(row),
        name=row.get("name") or "",
        filename=row.get("filename") or "",
        description=row.get("description") or "",
        category=row.get("category") or "",
        variant=row.get("variant"),
        storage_path=row.get("storage_path") or "",
    )


def document_from_row(row: dict) -> DocumentCandidate:
    return DocumentCandidate(
        **_common(row),
        document_id=str(row.get("document_id") or ""),
        title=row.get("document_title") or "",
        category=row.get("document_category") or "",
        slug=row.get("document_slug") or "",
        content=row.get("content") or "",
        heading_hierarchy=list(row.get("heading_hierarchy") or []),
    )


ROW_MAPPERS: dict[SourceType, Callable[[dict], SearchCandidate]] = {
    SourceType.CHATS: chat_from_row,
    SourceType.ASSETS: asset_from_row,
    SourceType.DOCUMENTS: document_from_row,
}


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _listed(values: Optional[frozenset[str]]) -> Optional[list[str]]:
    return sorted(values) if values else None


def filter_params(source_type: SourceType, filters: SearchFilters) -> dict[str, Any]:
    """Parameters of the filtered hybrid procedure for a source type."""
    params: dict[str, Any] = {
        "p_categories": _listed(filters.categories),
        "p_date_from": _iso(filters.date_from),
        "p_date_to": _iso(filters.date_to),
        "p_exclude_ids": _listed(filters.exclude_ids),
    }
    if source_type is SourceType.ASSETS:
        params["p_variants"] = _listed(filters.variants)
    else:
        params["p_document_ids"] = _listed(filters.document_ids)
    return params


class SupabaseKnowledgeStore:
    """Knowledge store over Supabase PostgREST stored procedures."""

    def __init__(
        self,
        url: str,
        service_key: str,
        brand_id: str,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize Supabase store.

        Args:
            url: Supabase project URL.
            service_key: Service role key.
            brand_id: Brand every query is scoped to.
            timeout: Request timeout in seconds.
            client: Shared HTTP client; one is created if omitted.
        """
        self._base_url = f"{url.rstrip('/')}/rest/v1"
        self._brand_id = brand_id
        self._headers = {
            "apikey": service_key,
            "Authorization": f"Bearer {service_key}",
            "Content-Type": "application/json",
        }
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def _request(
        self,
        procedure: str,
        method: str,
        path: str,
        *,
        params: Optional[dict] = None,
        json: Any = None,
        headers: Optional[dict] = None,
    ) -> Any:
        try:
            resp = await self._client.request(
                method,
                f"{self._base_url}/{path}",
                params=params,
                json=json,
                headers={**self._headers, **(headers or {})},
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise StoreError(
                procedure, f"HTTP {e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise StoreError(procedure, str(e)) from e

        if not resp.content:
            return None
        return resp.json()

    async def _rpc(self, procedure: str, payload: dict[str, Any]) -> list[dict]:
        data = await self._request(procedure, "POST", f"rpc/{procedure}", json=payload)
        return data or []

    def _procedure(self, source_type: SourceType, kind: str) -> str:
        name = getattr(PROCEDURES[source_type], kind)
        if name is None:
            raise StoreError(f"{source_type.value}.{kind}", "not supported by this store")
        return name

    def _scoped(self, source_type: SourceType, payload: dict[str, Any]) -> dict[str, Any]:
        if PROCEDURES[source_type].brand_scoped:
            payload["p_brand_id"] = self._brand_id
        return payload

    def _map(self, source_type: SourceType, rows: list[dict]) -> list[SearchCandidate]:
        mapper = ROW_MAPPERS[source_type]
        return [mapper(row) for row in rows]

    async def hybrid_search(
        self,
        source_type: SourceType,
        query: str,
        query_embedding: list[float],
        *,
        limit: int,
        threshold: float,
        semantic_weight: float,
        rrf_k: int = RRF_K,
        filters: Optional[SearchFilters] = None,
    ) -> list[SearchCandidate]:
        kind = "hybrid" if filters is None else "hybrid_filtered"
        procedure = self._procedure(source_type, kind)

        payload = self._scoped(
            source_type,
            {
                "p_query": query,
                "query_embedding": query_embedding,
                "match_threshold": threshold,
                "match_count": limit,
                "semantic_weight": semantic_weight,
                "rrf_k": rrf_k,
            },
        )
        if filters is not None:
            payload.update(filter_params(source_type, filters))

        rows = await self._rpc(procedure, payload)
        logger.debug(f"{procedure}: {len(rows)} rows")
        return self._map(source_type, rows)

    async def semantic_search(
        self,
        source_type: SourceType,
        query_embedding: list[float],
        *,
        limit: int,
        threshold: float,
        filters: Optional[SearchFilters] = None,
    ) -> list[SearchCandidate]:
        procedure = self._procedure(source_type, "semantic")

        payload = self._scoped(
            source_type,
            {
                "query_embedding": query_embedding,
                "match_threshold": threshold,
                "match_count": limit,
            },
        )
        if source_type is SourceType.ASSETS:
            single = filters.categories if filters and filters.categories else None
            payload["p_category"] = next(iter(single)) if single and len(single) == 1 else None

        rows = await self._rpc(procedure, payload)
        results = self._map(source_type, rows)
        return MetadataFilterStrategy(filters).apply("", results)

    async def keyword_search(
        self,
        source_type: SourceType,
        query: str,
        *,
        limit: int,
        filters: Optional[SearchFilters] = None,
    ) -> list[SearchCandidate]:
        procedure = self._procedure(source_type, "keyword")

        rows = await self._rpc(
            procedure,
            self._scoped(source_type, {"p_query": query, "match_count": limit}),
        )
        results = self._map(source_type, rows)
        for candidate in results:
            candidate.match_type = candidate.match_type or MatchType.KEYWORD
        return MetadataFilterStrategy(filters).apply(query, results)

    async def find_similar(
        self,
        chunk_id: str,
        *,
        limit: int,
        exclude_same_document: bool = True,
    ) -> SimilarChunks:
        procedure = "find_similar_chunks"
        rows = await self._rpc(
            procedure,
            {
                "p_chunk_id": chunk_id,
                "p_brand_id": self._brand_id,
                "match_count": limit,
                "p_exclude_same_document": exclude_same_document,
            },
        )

        source = await self._request(
            procedure,
            "GET",
            CHUNKS_TABLE,
            params={"select": "document_id", "id": f"eq.{chunk_id}", "limit": "1"},
        )
        source_document_id = str(source[0]["document_id"]) if source else None

        return SimilarChunks(
            source_document_id=source_document_id,
            results=[document_from_row(row) for row in rows],
        )

    async def facets(self, source_type: SourceType) -> list[Facet]:
        procedure = self._procedure(source_type, "facets")
        rows = await self._rpc(procedure, {"p_brand_id": self._brand_id})
        return [
            Facet(type=row["facet_type"], value=row["facet_value"], count=int(row["count"]))
            for row in rows
        ]

    async def document_hashes(self) -> dict[str, str]:
        rows = await self._request(
            "document_hashes",
            "GET",
            DOCUMENTS_TABLE,
            params={
                "select": "category,slug,content",
                "brand_id": f"eq.{self._brand_id}",
                "is_deleted": "eq.false",
            },
        )
        return {
            f"{row['category']}/{row['slug']}": content_hash(row.get("content") or "")
            for row in rows or []
        }

    async def add_document_chunks(
        self,
        document_id: str,
        title: str,
        category: str,
        slug: str,
        chunks: list[MarkdownChunk],
        embeddings: list[list[float]],
        markdown: str = "",
    ) -> None:
        """Upsert the parent document, then replace its chunks.

        ``document_id`` is the local ``category/slug`` key; the stored row ID
        is resolved from the upsert.
        """
        if len(chunks) != len(embeddings):
            raise StoreError(
                "add_document_chunks",
                f"{len(chunks)} chunks but {len(embeddings)} embeddings",
            )

        documents = await self._request(
            "add_document_chunks",
            "POST",
            DOCUMENTS_TABLE,
            params={"on_conflict": "category,slug"},
            json={
                "brand_id": self._brand_id,
                "category": category,
                "slug": slug,
                "title": title,
                "content": markdown,
            },
            headers={"Prefer": "resolution=merge-duplicates,return=representation"},
        )
        if not documents:
            raise StoreError("add_document_chunks", f"upsert returned no row for {document_id}")
        row_id = str(documents[0]["id"])

        await self._request(
            "add_document_chunks",
            "DELETE",
            CHUNKS_TABLE,
            params={"document_id": f"eq.{row_id}"},
        )

        records = [
            {
                "document_id": row_id,
                "brand_id": self._brand_id,
                "heading_hierarchy": chunk.heading_hierarchy,
                "chunk_index": index,
                "content": chunk.content,
                "embedding": embedding,
                "token_count": chunk.token_count,
            }
            for index, (chunk, embedding) in enumerate(zip(chunks, embeddings))
        ]
        if records:
            await self._request(
                "add_document_chunks",
                "POST",
                CHUNKS_TABLE,
                json=records,
                headers={"Prefer": "return=minimal"},
            )

        logger.info(f"Stored {len(records)} chunks for {document_id}")

    async def aclose(self) -> None:
        await self._client.aclose()

