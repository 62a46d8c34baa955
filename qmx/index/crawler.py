import os
from dataclasses import dataclass
from pathlib import Path
from typing import List

from ..utils import normalize_rel_path


@dataclass
class SourceFile:
    content: str
    mtime_ms: int
    size_bytes: int


def _names_hidden(path: str) -> bool:
    return any(part.startswith(".") and part not in (".", "..") for part in path.split("/"))


class Crawler:
    def __init__(self, root_path: str, glob_pattern: str = "**/*.md"):
        self.root_path = Path(root_path)
        self.glob_pattern = glob_pattern or "**/*.md"

    def exists(self) -> bool:
        return self.root_path.is_dir()

    def scan(self) -> List[str]:
        """
        Scans the directory for files matching the glob pattern.
        Returns sorted relative paths using '/' separators.

        Paths with a dot-prefixed component (``.trash/``, ``.obsidian/``,
        ``.draft.md``) are skipped unless the pattern names one itself.
        """
        if not self.exists():
            return []

        include_hidden = _names_hidden(self.glob_pattern)
        rel_paths = set()
        for file_path in self.root_path.glob(self.glob_pattern):
            if not file_path.is_file():
                continue
            rel = normalize_rel_path(os.path.relpath(file_path, self.root_path))
            if not include_hidden and _names_hidden(rel):
                continue
            rel_paths.add(rel)
        return sorted(rel_paths)

    def read(self, rel_path: str) -> SourceFile:
        """Read one file. Raises OSError / UnicodeDecodeError on unreadable input."""
        file_path = self.root_path / rel_path
        st = file_path.stat()
        content = file_path.read_text(encoding="utf-8")
        return SourceFile(
            content=content,
            mtime_ms=int(st.st_mtime * 1000),
            size_bytes=st.st_size,
        )


def scan_collection(root_path: str, mask: str = "**/*.md") -> List[str]:
    return Crawler(root_path, mask).scan()
