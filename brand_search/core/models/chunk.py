"""Chunk domain models."""
from dataclasses import dataclass, field


@dataclass
class ChunkOptions:
    """Markdown chunking options."""
    max_tokens: int = 500
    min_tokens: int = 20
    include_heading_in_content: bool = True


@dataclass
class MarkdownChunk:
    """Heading-scoped piece of a markdown document."""
    heading: str
    heading_hierarchy: list[str] = field(default_factory=list)
    content: str = ""
    token_count: int = 0
    heading_level: int = 0  # 0 for intro content, else depth in the hierarchy

    @property
    def breadcrumb(self) -> str:
        return " > ".join(self.heading_hierarchy)


@dataclass
class IngestResult:
    """Outcome of ingesting one document."""
    document_id: str
    chunks_created: int
    total_tokens: int
