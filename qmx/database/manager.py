import sqlite3
import os
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Tuple

import sqlite_vec

from .schema import SCHEMA, FTS_SCHEMA, TRIGGERS, EMBEDDING_COLUMNS
from ..models.document import (
    Collection,
    CollectionSummary,
    DocumentRecord,
    StatusInfo,
)

logger = logging.getLogger(__name__)

_DOCUMENT_COLUMNS = (
    "id, collection_id, rel_path, display_path, title, content, content_sha, docid, "
    "mtime_ms, size_bytes, embedding, embedding_model, embedded_at, updated_at"
)


def _row_to_record(row: sqlite3.Row) -> DocumentRecord:
    return DocumentRecord(**{key: row[key] for key in row.keys()})


def _row_to_collection(row: sqlite3.Row) -> Collection:
    return Collection(
        id=row["id"], name=row["name"], root_path=row["root_path"], mask=row["mask"]
    )


class DatabaseManager:
    """SQLite document store with an FTS5 mirror kept in sync by triggers."""

    def __init__(self, db_path: str = "index.sqlite"):
        self.db_path = db_path
        self._init_db()
        self._vec_state = self._probe_sqlite_vec()

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row

        # WAL keeps readers (search, mcp) unblocked during an index run
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute("PRAGMA foreign_keys=ON")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self):
        db_dir = os.path.dirname(os.path.abspath(self.db_path))
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        with self._get_connection() as conn:
            conn.executescript(SCHEMA)
            conn.executescript(FTS_SCHEMA)

            # Databases created before embeddings were stored per document
            columns = {row["name"] for row in conn.execute("PRAGMA table_info(documents)")}
            for column in EMBEDDING_COLUMNS:
                if column not in columns:
                    conn.execute(f"ALTER TABLE documents ADD COLUMN {column} TEXT")

            conn.executescript(TRIGGERS)

    def _probe_sqlite_vec(self) -> Dict[str, Any]:
        """Check whether the sqlite-vec extension can be loaded into this Python's sqlite3."""
        conn = sqlite3.connect(":memory:")
        try:
            conn.enable_load_extension(True)
            sqlite_vec.load(conn)
            conn.enable_load_extension(False)
            version = conn.execute("SELECT vec_version()").fetchone()[0]
            return {"enabled": True, "message": f"loaded ({version or 'unknown'})"}
        except (AttributeError, sqlite3.Error) as e:
            logger.debug("sqlite-vec unavailable: %s", e)
            return {"enabled": False, "message": f"failed to load: {e}"}
        finally:
            conn.close()

    def sqlite_vec_state(self) -> Dict[str, Any]:
        return dict(self._vec_state)

    # Collection operations
    def upsert_collection(self, name: str, root_path: str, mask: Optional[str] = None) -> None:
        mask = (mask or "").strip() or "**/*.md"
        if os.path.isabs(mask) or ".." in mask.replace("\\", "/").split("/"):
            raise ValueError(f"Mask must be relative to the collection root: {mask}")
        abs_path = os.path.abspath(os.path.expanduser(root_path))
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO collections (name, root_path, mask) VALUES (?, ?, ?)
                ON CONFLICT(name) DO UPDATE SET
                    root_path = excluded.root_path,
                    mask = excluded.mask
                """,
                (name.strip(), abs_path, mask),
            )

    def list_collections(self) -> List[Collection]:
        with self._get_connection() as conn:
            cursor = conn.execute(
                "SELECT id, name, root_path, mask FROM collections ORDER BY name"
            )
            return [_row_to_collection(row) for row in cursor.fetchall()]

    def get_collection(self, name: str) -> Optional[Collection]:
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT id, name, root_path, mask FROM collections WHERE name = ?",
                (name,),
            ).fetchone()
            return _row_to_collection(row) if row else None

    def list_collection_summaries(self) -> List[CollectionSummary]:
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                SELECT c.name, c.root_path, c.mask,
                       COUNT(d.id) AS file_count,
                       MAX(d.updated_at) AS updated_at
                FROM collections c
                LEFT JOIN documents d ON d.collection_id = c.id
                GROUP BY c.id
                ORDER BY c.name
                """
            )
            return [
                CollectionSummary(
                    name=row["name"],
                    root_path=row["root_path"],
                    mask=row["mask"],
                    file_count=row["file_count"],
                    updated_at=row["updated_at"],
                )
                for row in cursor.fetchall()
            ]

    def remove_collection(self, name: str) -> None:
        with self._get_connection() as conn:
            row = conn.execute("SELECT id FROM collections WHERE name = ?", (name,)).fetchone()
            if not row:
                raise ValueError(f"Collection '{name}' not found")
            conn.execute("DELETE FROM documents WHERE collection_id = ?", (row["id"],))
            conn.execute("DELETE FROM collections WHERE id = ?", (row["id"],))

    def rename_collection(self, old_name: str, new_name: str) -> None:
        with self._get_connection() as conn:
            exists = conn.execute(
                "SELECT 1 FROM collections WHERE name = ?", (new_name,)
            ).fetchone()
            if exists:
                raise ValueError(f"Collection '{new_name}' already exists")

            cursor = conn.execute(
                "UPDATE collections SET name = ? WHERE name = ?", (new_name, old_name)
            )
            if cursor.rowcount == 0:
                raise ValueError(f"Collection '{old_name}' not found")
            conn.execute(
                """
                UPDATE documents
                SET display_path = (
                    SELECT c.name || '/' || documents.rel_path
                    FROM collections c
                    WHERE c.id = documents.collection_id
                )
                """
            )

    # Path context operations
    def add_context(self, target: str, value: str) -> None:
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO path_contexts (target, value) VALUES (?, ?)
                ON CONFLICT(target) DO UPDATE SET
                    value = excluded.value,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (target.strip(), value.strip()),
            )

    def remove_context(self, target: str) -> bool:
        with self._get_connection() as conn:
            cursor = conn.execute("DELETE FROM path_contexts WHERE target = ?", (target,))
            return cursor.rowcount > 0

    def list_contexts(self) -> List[Tuple[str, str]]:
        with self._get_connection() as conn:
            cursor = conn.execute("SELECT target, value FROM path_contexts ORDER BY target")
            return [(row["target"], row["value"]) for row in cursor.fetchall()]

    # Document operations
    def find_document(self, collection_id: int, rel_path: str) -> Optional[DocumentRecord]:
        with self._get_connection() as conn:
            row = conn.execute(
                f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE collection_id = ? AND rel_path = ?",
                (collection_id, rel_path),
            ).fetchone()
            return _row_to_record(row) if row else None

    def list_documents(self, collection_id: int) -> List[DocumentRecord]:
        with self._get_connection() as conn:
            cursor = conn.execute(
                f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE collection_id = ? ORDER BY rel_path",
                (collection_id,),
            )
            return [_row_to_record(row) for row in cursor.fetchall()]

    def upsert_document(self, record: DocumentRecord) -> int:
        """
        Insert ``record`` (when ``record.id`` is None) or overwrite the stored row.

        Each call is its own transaction; the FTS mirror is updated by
        triggers inside it.

        Returns:
            The document's numeric id.
        """
        values = (
            record.display_path,
            record.title,
            record.content,
            record.content_sha,
            record.docid,
            record.mtime_ms,
            record.size_bytes,
            record.embedding,
            record.embedding_model,
            record.embedded_at,
        )
        with self._get_connection() as conn:
            if record.id is None:
                cursor = conn.execute(
                    """
                    INSERT INTO documents (
                        display_path, title, content, content_sha, docid, mtime_ms, size_bytes,
                        embedding, embedding_model, embedded_at, collection_id, rel_path
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    values + (record.collection_id, record.rel_path),
                )
                return cursor.lastrowid

            conn.execute(
                """
                UPDATE documents
                SET display_path = ?, title = ?, content = ?, content_sha = ?, docid = ?,
                    mtime_ms = ?, size_bytes = ?, embedding = ?, embedding_model = ?,
                    embedded_at = ?, updated_at = CURRENT_TIMESTAMP
                WHERE id = ?
                """,
                values + (record.id,),
            )
            return record.id

    def delete_document(self, doc_id: int) -> None:
        with self._get_connection() as conn:
            conn.execute("DELETE FROM documents WHERE id = ?", (doc_id,))

    # Search services
    def full_text_search(
        self, fts_query: str, collection: Optional[str] = None, limit: int = 5
    ) -> List[Dict[str, Any]]:
        """
        Ranked FTS5 match.

        Rows carry ``bm25`` (lower = more relevant, usually negative) and a
        ``snippet`` of the content column with matches wrapped in brackets.
        """
        collection = collection or ""
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                SELECT d.docid,
                       d.display_path,
                       d.title,
                       snippet(documents_fts, 1, '[', ']', ' ... ', 14) AS snippet,
                       bm25(documents_fts) AS bm25
                FROM documents_fts
                JOIN documents d ON d.id = documents_fts.rowid
                JOIN collections c ON c.id = d.collection_id
                WHERE documents_fts MATCH ?
                  AND (? = '' OR c.name = ?)
                ORDER BY bm25 ASC, d.display_path ASC
                LIMIT ?
                """,
                (fts_query, collection, collection, limit),
            )
            return [dict(row) for row in cursor.fetchall()]

    def embedded_candidates(
        self, collection: Optional[str] = None, limit: int = 5000
    ) -> List[Dict[str, Any]]:
        collection = collection or ""
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                SELECT d.docid, d.display_path, d.title, d.content, d.embedding
                FROM documents d
                JOIN collections c ON c.id = d.collection_id
                WHERE d.embedding IS NOT NULL
                  AND (? = '' OR c.name = ?)
                LIMIT ?
                """,
                (collection, collection, limit),
            )
            return [dict(row) for row in cursor.fetchall()]

    # Lookup by user-facing reference
    def find_by_docid(self, docid: str) -> Optional[DocumentRecord]:
        """docids are short and may collide; the smallest display path wins."""
        return self._find_one(
            "WHERE docid = ? ORDER BY display_path LIMIT 1", (docid,)
        )

    def find_by_display_path(self, display_path: str) -> Optional[DocumentRecord]:
        return self._find_one("WHERE display_path = ? LIMIT 1", (display_path,))

    def find_by_rel_path(self, rel_path: str) -> Optional[DocumentRecord]:
        return self._find_one(
            "WHERE rel_path = ? ORDER BY display_path LIMIT 1", (rel_path,)
        )

    def _find_one(self, where: str, params: tuple) -> Optional[DocumentRecord]:
        with self._get_connection() as conn:
            row = conn.execute(
                f"SELECT {_DOCUMENT_COLUMNS} FROM documents {where}", params
            ).fetchone()
            return _row_to_record(row) if row else None

    def glob_documents(self, pattern: str) -> List[DocumentRecord]:
        with self._get_connection() as conn:
            cursor = conn.execute(
                f"SELECT {_DOCUMENT_COLUMNS} FROM documents WHERE display_path GLOB ? ORDER BY display_path",
                (pattern,),
            )
            return [_row_to_record(row) for row in cursor.fetchall()]

    def list_display_paths(
        self, collection_id: int, prefix: str = "", limit: int = 500
    ) -> List[str]:
        with self._get_connection() as conn:
            cursor = conn.execute(
                """
                SELECT display_path FROM documents
                WHERE collection_id = ? AND (? = '' OR rel_path LIKE ?)
                ORDER BY rel_path
                LIMIT ?
                """,
                (collection_id, prefix, f"{prefix}%", limit),
            )
            return [row["display_path"] for row in cursor.fetchall()]

    # Maintenance
    def rebuild_fts(self) -> None:
        with self._get_connection() as conn:
            conn.execute("DELETE FROM documents_fts")
            conn.execute(
                "INSERT INTO documents_fts(rowid, title, content) SELECT id, title, content FROM documents"
            )

    def cleanup(self) -> int:
        """Remove FTS rows whose document no longer exists. Returns the number removed."""
        with self._get_connection() as conn:
            before = conn.execute("SELECT COUNT(*) FROM documents_fts").fetchone()[0]
            conn.execute(
                "DELETE FROM documents_fts WHERE rowid NOT IN (SELECT id FROM documents)"
            )
            after = conn.execute("SELECT COUNT(*) FROM documents_fts").fetchone()[0]
            return max(0, before - after)

    def clear_embeddings(self) -> int:
        with self._get_connection() as conn:
            before = conn.execute(
                "SELECT COUNT(*) FROM documents WHERE embedding IS NOT NULL"
            ).fetchone()[0]
            conn.execute(
                "UPDATE documents SET embedding = NULL, embedding_model = NULL, embedded_at = NULL"
            )
            return before

    def status_info(self) -> StatusInfo:
        with self._get_connection() as conn:
            return StatusInfo(
                collections=conn.execute("SELECT COUNT(*) FROM collections").fetchone()[0],
                documents=conn.execute("SELECT COUNT(*) FROM documents").fetchone()[0],
                contexts=conn.execute("SELECT COUNT(*) FROM path_contexts").fetchone()[0],
                embedded=conn.execute(
                    "SELECT COUNT(*) FROM documents WHERE embedding IS NOT NULL"
                ).fetchone()[0],
            )

    def doctor_checks(self) -> List[Dict[str, Any]]:
        checks = []
        try:
            with self._get_connection() as conn:
                conn.execute("SELECT 1").fetchone()
            checks.append({"check": "sqlite", "ok": True, "message": "SQLite ready"})
        except sqlite3.Error as e:
            checks.append({"check": "sqlite", "ok": False, "message": f"SQLite error: {e}"})

        try:
            with self._get_connection() as conn:
                conn.execute("SELECT COUNT(*) FROM documents_fts").fetchone()
            checks.append({"check": "fts5", "ok": True, "message": "FTS5 ready"})
        except sqlite3.Error as e:
            checks.append({"check": "fts5", "ok": False, "message": f"FTS5 error: {e}"})

        vec = self.sqlite_vec_state()
        checks.append({"check": "sqlite-vec", "ok": vec["enabled"], "message": vec["message"]})
        return checks
