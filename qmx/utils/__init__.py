"""
Small text and vector helpers shared by the indexer and the searchers.
"""

import hashlib
import os
import re
from pathlib import PurePath
from typing import List, Optional, Sequence

import numpy as np

_HEADING_RE = re.compile(r"^#\s+(.+)$", re.MULTILINE)


def sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def extract_title(content: str, fallback_path: str) -> str:
    """Return the first Markdown H1 heading, else the file name without extension."""
    match = _HEADING_RE.search(content)
    if match and match.group(1).strip():
        return match.group(1).strip()
    return PurePath(fallback_path).stem


def normalize_rel_path(rel_path: str) -> str:
    return "/".join(rel_path.split(os.sep))


def safe_search_query(query: str) -> str:
    """
    Quote every whitespace-delimited term for FTS5 MATCH.

    Quoting each term on its own keeps punctuation (``-``, ``:``, ``*``,
    parentheses) from being parsed as query syntax. Embedded double
    quotes are escaped by doubling them.
    """
    q = query.strip()
    if not q:
        return q
    return " ".join('"' + term.replace('"', '""') + '"' for term in q.split())


def with_lines(
    content: str, from_line: int = 1, max_lines: int = 0, line_numbers: bool = False
) -> str:
    lines = content.split("\n")
    start = max(1, from_line)
    end = start + max_lines - 1 if max_lines > 0 else len(lines)
    sliced = lines[start - 1 : end]
    if not line_numbers:
        return "\n".join(sliced)
    return "\n".join(f"{start + i:>4} | {line}" for i, line in enumerate(sliced))


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of two vectors; 0 for empty, mismatched or zero-norm input."""
    if len(a) == 0 or len(b) == 0 or len(a) != len(b):
        return 0.0
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    na = float(np.dot(va, va))
    nb = float(np.dot(vb, vb))
    if na == 0.0 or nb == 0.0:
        return 0.0
    return float(np.dot(va, vb) / (np.sqrt(na) * np.sqrt(nb)))


def average_vectors(vectors: List[List[float]]) -> Optional[List[float]]:
    """Element-wise mean of equally sized vectors, or None when there is nothing to average."""
    nonempty = [v for v in vectors if len(v) > 0]
    if not nonempty:
        return None
    dim = len(nonempty[0])
    usable = [v for v in nonempty if len(v) == dim]
    return np.mean(np.asarray(usable, dtype=np.float64), axis=0).tolist()
