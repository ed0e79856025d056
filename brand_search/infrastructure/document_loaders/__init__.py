"""Document loader implementations."""
from .markdown_loader import MarkdownLoader

__all__ = ["MarkdownLoader"]
