"""Markdown chunker.

Splits markdown by headings while preserving the heading hierarchy, producing
token-bounded chunks suitable for embedding and retrieval.
"""

import hashlib
import logging
import math
import re
from typing import Optional

from ..models.chunk import ChunkOptions, MarkdownChunk

logger = logging.getLogger(__name__)

MAX_HEADING_LEVEL = 6

_HEADING_RE = re.compile(r"^(#{1,6})\s+(.*)$")
_FENCE_RE = re.compile(r"^\s*(```|~~~)")
_PARAGRAPH_RE = re.compile(r"\n\n+")
_SENTENCE_RE = re.compile(r"(?<=[.!?])\s+")


def content_hash(markdown: str) -> str:
    """Short fingerprint of a source document."""
    return hashlib.md5(markdown.encode()).hexdigest()[:12]


def estimate_tokens(text: str) -> int:
    """Approximate token count (1 token ~ 4 characters)."""
    return math.ceil(len(text) / 4)


def _parse_heading(line: str) -> Optional[tuple[int, str]]:
    match = _HEADING_RE.match(line)
    if not match:
        return None
    return len(match.group(1)), match.group(2).strip()


def _pack(units: list[str], separator: str, max_tokens: int) -> list[str]:
    """Greedily join units while the joined text stays within max_tokens.

    A unit that alone exceeds the budget becomes its own piece.
    """
    pieces: list[str] = []
    current = ""
    for unit in units:
        candidate = f"{current}{separator}{unit}" if current else unit
        if estimate_tokens(candidate) <= max_tokens:
            current = candidate
            continue
        if current:
            pieces.append(current)
        current = unit
    if current:
        pieces.append(current)
    return pieces


def split_large_content(content: str, max_tokens: int) -> list[str]:
    """Split text exceeding max_tokens on paragraphs, then sentences.

    Args:
        content: Text to split.
        max_tokens: Token budget per piece.

    Returns:
        Pieces in order. A single sentence over budget is kept whole.
    """
    if estimate_tokens(content) <= max_tokens:
        return [content]

    pieces: list[str] = []
    current = ""

    for para in _PARAGRAPH_RE.split(content):
        candidate = f"{current}\n\n{para}" if current else para
        if estimate_tokens(candidate) <= max_tokens:
            current = candidate
            continue

        if current:
            pieces.append(current.strip())
            current = ""

        if estimate_tokens(para) <= max_tokens:
            current = para
            continue

        sentence_pieces = _pack(_SENTENCE_RE.split(para), " ", max_tokens)
        # The trailing sentence group stays open so following paragraphs can join it.
        pieces.extend(p.strip() for p in sentence_pieces[:-1])
        current = sentence_pieces[-1] if sentence_pieces else ""

    if current.strip():
        pieces.append(current.strip())

    return [p for p in pieces if p]


def chunk_markdown(
    content: str, options: Optional[ChunkOptions] = None
) -> list[MarkdownChunk]:
    """Chunk markdown content by headings while preserving hierarchy.

    Example::

        # Brand Core
        Introduction text...
        ## Mission Statement
        Our mission is...

    yields chunks with hierarchies ``["Brand Core"]`` and
    ``["Brand Core", "Mission Statement"]``.

    Args:
        content: Raw markdown.
        options: Chunking options.

    Returns:
        Chunks in document order.
    """
    opts = options or ChunkOptions()
    chunks: list[MarkdownChunk] = []

    heading_stack: list[Optional[str]] = [None] * MAX_HEADING_LEVEL
    current_heading = ""
    current_level = 0
    current_lines: list[str] = []

    def flush() -> None:
        raw = "\n".join(current_lines).strip()
        if not raw:
            return

        hierarchy = [h for h in heading_stack[:current_level] if h is not None]

        prefix = ""
        if opts.include_heading_in_content and current_heading:
            prefix = f"{'#' * current_level} {current_heading}\n\n"

        if estimate_tokens(prefix + raw) <= opts.max_tokens:
            parts = [prefix + raw]
        else:
            # Budget reserves room for the heading line, which leads the first kept part.
            budget = max(opts.max_tokens - estimate_tokens(prefix), 1)
            pieces = split_large_content(raw, budget)
            kept = []
            for i, piece in enumerate(pieces):
                if i < len(pieces) - 1 and estimate_tokens(piece) < opts.min_tokens:
                    logger.debug(
                        f"Dropping {estimate_tokens(piece)}-token part of "
                        f"'{current_heading or '(intro)'}'"
                    )
                    continue
                kept.append(piece)
            parts = [prefix + kept[0], *kept[1:]]

        for i, part in enumerate(parts):
            heading = current_heading
            if len(parts) > 1 and current_heading:
                heading = f"{current_heading} (part {i + 1})"

            chunks.append(
                MarkdownChunk(
                    heading=heading,
                    heading_hierarchy=list(hierarchy),
                    content=part,
                    token_count=estimate_tokens(part),
                    heading_level=len(hierarchy),
                )
            )

    in_fence = False
    for line in content.split("\n"):
        if _FENCE_RE.match(line):
            in_fence = not in_fence
            current_lines.append(line)
            continue

        heading = None if in_fence else _parse_heading(line)
        if heading is None:
            current_lines.append(line)
            continue

        flush()

        level, text = heading
        heading_stack[level - 1] = text
        for i in range(level, MAX_HEADING_LEVEL):
            heading_stack[i] = None

        current_heading = text
        current_level = level
        current_lines = []

    flush()

    return chunks


def summarize_chunks(chunks: list[MarkdownChunk]) -> str:
    """Summary of chunks for logging."""
    lines = [
        f"{i}. [{chunk.token_count} tokens] {chunk.breadcrumb or '(intro)'}"
        for i, chunk in enumerate(chunks, 1)
    ]
    total_tokens = sum(c.token_count for c in chunks)

    return "\n".join(
        [f"Total chunks: {len(chunks)}", f"Total tokens: {total_tokens}", "", *lines]
    )
