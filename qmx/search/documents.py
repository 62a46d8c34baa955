"""
Retrieval of whole documents by reference.

A reference is ``#<docid>``, a display path (``notes/a.md``), or a path
relative to a collection root (``a.md``). ``multi_get_documents`` also
accepts comma-separated lists and glob patterns over display paths.
"""

import re
from typing import List, Optional

from ..database.manager import DatabaseManager
from ..models.document import DocumentRecord, DocumentView
from ..utils import with_lines

_GLOB_CHARS = re.compile(r"[*?\[\]]")


def _view(
    record: DocumentRecord, from_line: int, max_lines: int, line_numbers: bool
) -> DocumentView:
    return DocumentView(
        docid=record.docid,
        display_path=record.display_path,
        title=record.title,
        content=with_lines(record.content, from_line, max_lines, line_numbers),
    )


def get_document(
    db: DatabaseManager,
    ref: str,
    from_line: int = 1,
    max_lines: int = 0,
    line_numbers: bool = False,
) -> Optional[DocumentView]:
    """Resolve one reference; None when nothing matches."""
    ref = ref.strip()
    if ref.startswith("#"):
        record = db.find_by_docid(ref[1:])
    else:
        record = db.find_by_display_path(ref) or db.find_by_rel_path(ref)
    if record is None:
        return None
    return _view(record, from_line, max_lines, line_numbers)


def multi_get_documents(
    db: DatabaseManager,
    refs: str,
    from_line: int = 1,
    max_lines: int = 0,
    line_numbers: bool = False,
) -> List[DocumentView]:
    """Resolve comma-separated references and globs, deduplicated and sorted by display path."""
    seen = set()
    out: List[DocumentView] = []

    def add(view: Optional[DocumentView]) -> None:
        if view is not None and view.display_path not in seen:
            seen.add(view.display_path)
            out.append(view)

    for token in (t.strip() for t in refs.split(",")):
        if not token:
            continue
        if not token.startswith("#") and _GLOB_CHARS.search(token):
            for record in db.glob_documents(token):
                add(_view(record, from_line, max_lines, line_numbers))
            continue
        add(get_document(db, token, from_line, max_lines, line_numbers))

    return sorted(out, key=lambda v: v.display_path)


def ls_collection(db: DatabaseManager, target: Optional[str] = None) -> List[str]:
    """List collections, or the display paths under ``collection[/prefix]``."""
    if not target:
        return [f"collection {c.name} -> {c.root_path}" for c in db.list_collections()]

    name, _, prefix = target.partition("/")
    collection = db.get_collection(name)
    if collection is None:
        return []
    return db.list_display_paths(collection.id, prefix)
