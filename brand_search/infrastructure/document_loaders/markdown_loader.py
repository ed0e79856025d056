import re
from pathlib import Path
from typing import Optional

_H1_RE = re.compile(r"^#\s+(.+)$", re.MULTILINE)


class MarkdownLoader:

    EXTENSIONS = {".md", ".markdown"}

    def supports(self, file_path: Path) -> bool:
        return file_path.suffix.lower() in self.EXTENSIONS

    def load(self, file_path: Path) -> str:
        return file_path.read_text(encoding="utf-8")

    @staticmethod
    def title_of(content: str, fallback: str) -> str:
        """First H1 heading, or the fallback."""
        match = _H1_RE.search(content)
        return match.group(1).strip() if match else fallback

    @staticmethod
    def slug_of(file_path: Path) -> str:
        return re.sub(r"[^a-z0-9]+", "-", file_path.stem.lower()).strip("-")

    @staticmethod
    def category_of(file_path: Path, root: Path) -> Optional[str]:
        """Top-level folder under the docs root, if any."""
        relative = file_path.relative_to(root)
        return relative.parts[0] if len(relative.parts) > 1 else None
