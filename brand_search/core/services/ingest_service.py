"""Ingest service - markdown document chunking and indexing."""

import logging
from pathlib import Path
from typing import Optional

from ..chunking.markdown_chunker import chunk_markdown, content_hash, summarize_chunks
from ..models.chunk import ChunkOptions, IngestResult
from ..protocols.embedder import EmbedderProtocol
from ..protocols.knowledge_store import ChunkSinkProtocol

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY = "brand-identity"


class IngestService:
    """Service for chunking, embedding and storing brand documents."""

    def __init__(
        self,
        embedder: EmbedderProtocol,
        sink: ChunkSinkProtocol,
        docs_path: str = "./docs",
        chunk_options: Optional[ChunkOptions] = None,
        batch_size: int = 50,
    ):
        """Initialize ingest service.

        Args:
            embedder: Embedding service.
            sink: Chunk storage.
            docs_path: Path to markdown documents folder.
            chunk_options: Markdown chunking options.
            batch_size: Batch size for embedding.
        """
        self._embedder = embedder
        self._sink = sink
        self._docs_path = Path(docs_path)
        self._chunk_options = chunk_options or ChunkOptions()
        self._batch_size = batch_size

        self._loader = None

    @property
    def loader(self):
        """Lazy load document loader."""
        if self._loader is None:
            from brand_search.infrastructure.document_loaders import MarkdownLoader

            self._loader = MarkdownLoader()
        return self._loader

    async def _embed_batched(self, texts: list[str]) -> list[list[float]]:
        embeddings: list[list[float]] = []
        for i in range(0, len(texts), self._batch_size):
            batch = texts[i : i + self._batch_size]
            embeddings.extend(await self._embedder.embed_many(batch))
        return embeddings

    async def ingest_markdown(
        self,
        document_id: str,
        title: str,
        category: str,
        slug: str,
        markdown: str,
    ) -> IngestResult:
        """Chunk, embed and store one markdown document.

        Args:
            document_id: Document ID.
            title: Document title.
            category: Document category.
            slug: Document slug.
            markdown: Raw markdown content.

        Returns:
            Ingest result with chunk and token counts.
        """
        chunks = chunk_markdown(markdown, self._chunk_options)
        if not chunks:
            logger.info(f"No chunks produced for {slug}")
            return IngestResult(document_id=document_id, chunks_created=0, total_tokens=0)

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"Chunks for {slug}:\n{summarize_chunks(chunks)}")

        embeddings = await self._embed_batched([c.content for c in chunks])

        await self._sink.add_document_chunks(
            document_id=document_id,
            title=title,
            category=category,
            slug=slug,
            chunks=chunks,
            embeddings=embeddings,
            markdown=markdown,
        )

        total_tokens = sum(c.token_count for c in chunks)
        logger.info(f"Ingested {slug}: {len(chunks)} chunks, {total_tokens} tokens")
        return IngestResult(
            document_id=document_id,
            chunks_created=len(chunks),
            total_tokens=total_tokens,
        )

    async def run(self, force: bool = False) -> int:
        """Index markdown documents under the docs path.

        Args:
            force: Force re-indexing of all documents.

        Returns:
            Number of new chunks indexed.
        """
        if not self._docs_path.exists():
            logger.error(f"Docs path not found: {self._docs_path}")
            return 0

        existing_hashes: dict[str, str] = {}
        if not force:
            existing_hashes = await self._sink.document_hashes()

        total_chunks = 0
        documents = 0

        for file_path in sorted(self._docs_path.rglob("*")):
            if not file_path.is_file() or not self.loader.supports(file_path):
                continue

            content = self.loader.load(file_path)
            if not content.strip():
                continue

            slug = self.loader.slug_of(file_path)
            category = self.loader.category_of(file_path, self._docs_path) or DEFAULT_CATEGORY
            document_id = f"{category}/{slug}"
            if existing_hashes.get(document_id) == content_hash(content):
                logger.debug(f"Skip unchanged: {file_path.name}")
                continue

            result = await self.ingest_markdown(
                document_id=document_id,
                title=self.loader.title_of(content, fallback=file_path.stem),
                category=category,
                slug=slug,
                markdown=content,
            )
            total_chunks += result.chunks_created
            documents += 1

        if not documents:
            logger.info("No new documents to index")
            return 0

        logger.info(f"Indexing complete: {total_chunks} chunks from {documents} files")
        return total_chunks
