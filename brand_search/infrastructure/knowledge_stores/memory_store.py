import dataclasses
import json
import logging
import re
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import numpy as np

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

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"\w+")

CANDIDATE_TYPES: dict[SourceType, type[SearchCandidate]] = {
    SourceType.CHATS: ChatCandidate,
    SourceType.ASSETS: AssetCandidate,
    SourceType.DOCUMENTS: DocumentCandidate,
}


def _tokens(text: str) -> list[str]:
    return _TOKEN_RE.findall(text.lower())


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def rrf_score(
    semantic_rank: Optional[int],
    keyword_rank: Optional[int],
    semantic_weight: float,
    rrf_k: int = RRF_K,
) -> float:
    """Weighted Reciprocal Rank Fusion over 1-based ranks; None means unranked."""
    score = 0.0
    if semantic_rank is not None:
        score += semantic_weight / (rrf_k + semantic_rank)
    if keyword_rank is not None:
        score += (1 - semantic_weight) / (rrf_k + keyword_rank)
    return score


@dataclass
class _Entry:
    candidate: SearchCandidate
    vector: np.ndarray
    text: str
    updated_at: datetime


class InMemoryKnowledgeStore:
    """Knowledge store holding vectors in memory, optionally persisted to JSON.

    Hybrid search fuses a cosine ranking and a term-overlap ranking with
    weighted RRF locally, the way the database procedures do server-side.
    """

    def __init__(self, path: Optional[str] = None):
        self._path = Path(path) if path else None
        self._entries: dict[SourceType, list[_Entry]] = {s: [] for s in SourceType}
        self._hashes: dict[str, str] = {}
        if self._path is not None and self._path.exists():
            self._load()

    def add(
        self,
        candidate: SearchCandidate,
        embedding: list[float],
        updated_at: Optional[datetime] = None,
    ) -> None:
        """Index a candidate template under its source type."""
        source_type = next(s for s, cls in CANDIDATE_TYPES.items() if isinstance(candidate, cls))
        template = dataclasses.replace(
            candidate,
            similarity=0.0,
            match_type=None,
            keyword_rank=None,
            rrf_score=None,
            relevance_score=None,
            diversity_score=None,
            original_rank=None,
        )
        self._entries[source_type].append(
            _Entry(
                candidate=template,
                vector=self._normalize(embedding),
                text=self._searchable_text(template),
                updated_at=_aware(updated_at or datetime.now(timezone.utc)),
            )
        )

    @staticmethod
    def _normalize(embedding: list[float]) -> np.ndarray:
        vector = np.asarray(embedding, dtype=np.float32)
        norm = np.linalg.norm(vector)
        return vector / norm if norm else vector

    @staticmethod
    def _searchable_text(candidate: SearchCandidate) -> str:
        parts = [candidate.display_text]
        for attr in ("title", "name", "filename", "category"):
            value = getattr(candidate, attr, None)
            if value:
                parts.append(value)
        parts.extend(getattr(candidate, "heading_hierarchy", None) or [])
        return " ".join(parts)

    def _filtered(
        self, source_type: SourceType, filters: Optional[SearchFilters]
    ) -> list[_Entry]:
        entries = self._entries[source_type]
        if filters is None or filters.is_empty():
            return entries

        def accepts(entry: _Entry) -> bool:
            c = entry.candidate
            if filters.exclude_ids and c.id in filters.exclude_ids:
                return False
            if filters.categories and getattr(c, "category", None) not in filters.categories:
                return False
            if filters.variants and getattr(c, "variant", None) not in filters.variants:
                return False
            if filters.document_ids and getattr(c, "document_id", None) not in filters.document_ids:
                return False
            if filters.date_from and entry.updated_at < _aware(filters.date_from):
                return False
            if filters.date_to and entry.updated_at > _aware(filters.date_to):
                return False
            return True

        return [e for e in entries if accepts(e)]

    def _semantic_ranking(
        self, entries: list[_Entry], query_embedding: list[float], threshold: float
    ) -> list[tuple[_Entry, float]]:
        if not entries:
            return []
        matrix = np.vstack([e.vector for e in entries])
        similarities = matrix @ self._normalize(query_embedding)
        ranked = [
            (entries[i], float(similarities[i]))
            for i in np.argsort(-similarities, kind="stable")
            if similarities[i] >= threshold
        ]
        return ranked

    def _keyword_ranking(self, entries: list[_Entry], query: str) -> list[tuple[_Entry, float]]:
        terms = set(_tokens(query))
        if not terms:
            return []
        scored = []
        for entry in entries:
            counts = Counter(_tokens(entry.text))
            matched = [t for t in terms if counts[t]]
            if not matched:
                continue
            # Coverage of query terms first, term frequency as tie-breaker.
            coverage = len(matched) / len(terms)
            frequency = sum(counts[t] for t in matched) / (1 + sum(counts.values()))
            scored.append((entry, coverage + frequency))
        scored.sort(key=lambda pair: pair[1], reverse=True)
        return scored

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
        entries = self._filtered(source_type, filters)
        semantic = self._semantic_ranking(entries, query_embedding, threshold)
        keyword = self._keyword_ranking(entries, query)

        semantic_ranks = {id(e): (rank, sim) for rank, (e, sim) in enumerate(semantic, start=1)}
        keyword_ranks = {id(e): rank for rank, (e, _) in enumerate(keyword, start=1)}

        fused = []
        for entry in entries:
            sem = semantic_ranks.get(id(entry))
            kw = keyword_ranks.get(id(entry))
            if sem is None and kw is None:
                continue
            score = rrf_score(sem[0] if sem else None, kw, semantic_weight, rrf_k)
            if sem and kw:
                match_type = MatchType.BOTH
            elif sem:
                match_type = MatchType.SEMANTIC
            else:
                match_type = MatchType.KEYWORD
            fused.append(
                dataclasses.replace(
                    entry.candidate,
                    similarity=sem[1] if sem else score,
                    match_type=match_type,
                    keyword_rank=float(kw) if kw else None,
                    rrf_score=score,
                )
            )

        fused.sort(key=lambda c: c.rrf_score, reverse=True)
        return fused[:limit]

    async def semantic_search(
        self,
        source_type: SourceType,
        query_embedding: list[float],
        *,
        limit: int,
        threshold: float,
        filters: Optional[SearchFilters] = None,
    ) -> list[SearchCandidate]:
        ranked = self._semantic_ranking(
            self._filtered(source_type, filters), query_embedding, threshold
        )
        return [
            dataclasses.replace(e.candidate, similarity=sim, match_type=MatchType.SEMANTIC)
            for e, sim in ranked[:limit]
        ]

    async def keyword_search(
        self,
        source_type: SourceType,
        query: str,
        *,
        limit: int,
        filters: Optional[SearchFilters] = None,
    ) -> list[SearchCandidate]:
        ranked = self._keyword_ranking(self._filtered(source_type, filters), query)
        return [
            dataclasses.replace(
                e.candidate,
                similarity=score,
                match_type=MatchType.KEYWORD,
                keyword_rank=float(rank),
            )
            for rank, (e, score) in enumerate(ranked[:limit], start=1)
        ]

    async def find_similar(
        self,
        chunk_id: str,
        *,
        limit: int,
        exclude_same_document: bool = True,
    ) -> SimilarChunks:
        entries = self._entries[SourceType.DOCUMENTS]
        source = next((e for e in entries if e.candidate.id == chunk_id), None)
        if source is None:
            raise StoreError("find_similar_chunks", f"chunk not found: {chunk_id}")

        source_document_id = source.candidate.document_id
        others = [
            e
            for e in entries
            if e.candidate.id != chunk_id
            and not (exclude_same_document and e.candidate.document_id == source_document_id)
        ]
        ranked = self._semantic_ranking(others, source.vector.tolist(), threshold=-1.0)
        return SimilarChunks(
            source_document_id=source_document_id,
            results=[
                dataclasses.replace(e.candidate, similarity=sim, match_type=MatchType.SEMANTIC)
                for e, sim in ranked[:limit]
            ],
        )

    async def facets(self, source_type: SourceType) -> list[Facet]:
        candidates = [e.candidate for e in self._entries[source_type]]
        if source_type is SourceType.CHATS:
            return []

        counts: Counter[tuple[str, str]] = Counter()
        for c in candidates:
            if c.category:
                counts[("category", c.category)] += 1
            if source_type is SourceType.ASSETS and c.variant:
                counts[("variant", c.variant)] += 1

        return [
            Facet(type=facet_type, value=value, count=count)
            for (facet_type, value), count in sorted(
                counts.items(), key=lambda item: (item[0][0], -item[1], item[0][1])
            )
        ]

    async def document_hashes(self) -> dict[str, str]:
        return dict(self._hashes)

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
        if len(chunks) != len(embeddings):
            raise StoreError(
                "add_document_chunks",
                f"{len(chunks)} chunks but {len(embeddings)} embeddings",
            )

        self._entries[SourceType.DOCUMENTS] = [
            e
            for e in self._entries[SourceType.DOCUMENTS]
            if e.candidate.document_id != document_id
        ]
        for index, (chunk, embedding) in enumerate(zip(chunks, embeddings)):
            self.add(
                DocumentCandidate(
                    id=f"{document_id}#{index}",
                    similarity=0.0,
                    document_id=document_id,
                    title=title,
                    category=category,
                    slug=slug,
                    content=chunk.content,
                    heading_hierarchy=list(chunk.heading_hierarchy),
                ),
                embedding,
            )
        self._hashes[document_id] = content_hash(markdown)

        if self._path is not None:
            self._save()

    def _save(self) -> None:
        payload = {
            "hashes": self._hashes,
            "entries": [
                {
                    "source": source_type.value,
                    "candidate": dataclasses.asdict(e.candidate),
                    "embedding": e.vector.tolist(),
                    "updated_at": e.updated_at.isoformat(),
                }
                for source_type, entries in self._entries.items()
                for e in entries
            ],
        }
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(payload), encoding="utf-8")
        logger.debug(f"Saved {len(payload['entries'])} entries to {self._path}")

    def _load(self) -> None:
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise StoreError("load", f"{self._path}: {e}") from e

        self._hashes = dict(payload.get("hashes", {}))
        for item in payload.get("entries", []):
            cls = CANDIDATE_TYPES[SourceType(item["source"])]
            self.add(
                cls(**item["candidate"]),
                item["embedding"],
                updated_at=datetime.fromisoformat(item["updated_at"]),
            )
        logger.info(f"Loaded {len(payload.get('entries', []))} entries from {self._path}")
