"""Document chunking."""
from .markdown_chunker import (
    chunk_markdown,
    content_hash,
    estimate_tokens,
    summarize_chunks,
)

__all__ = [
    "chunk_markdown",
    "content_hash",
    "estimate_tokens",
    "summarize_chunks",
]
