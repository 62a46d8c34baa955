from typing import Dict, List, Optional

from ..database.manager import DatabaseManager

# Well-known collections created by `setup`, with their path context
SETUP_COLLECTIONS = (
    ("notes", "Personal notes and ideas"),
    ("meetings", "Meeting transcripts and notes"),
    ("docs", "Work documentation"),
)


def bootstrap_collections(
    db: DatabaseManager,
    notes: Optional[str] = None,
    meetings: Optional[str] = None,
    docs: Optional[str] = None,
    mask: str = "**/*.md",
) -> List[Dict[str, str]]:
    """
    Register the notes/meetings/docs collections that were given a path,
    each with a ``qmx://<name>`` context.

    Raises:
        ValueError: if no path was given at all
    """
    paths = {"notes": notes, "meetings": meetings, "docs": docs}
    entries = []
    for name, context in SETUP_COLLECTIONS:
        root_path = paths[name]
        if not root_path:
            continue
        db.upsert_collection(name, root_path, mask)
        db.add_context(f"qmx://{name}", context)
        entries.append({"name": name, "rootPath": root_path})

    if not entries:
        raise ValueError("At least one path is required: notes, meetings, or docs.")
    return entries
