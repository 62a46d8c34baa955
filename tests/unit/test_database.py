import os
import sqlite3

import pytest

from qmx.database.manager import DatabaseManager
from qmx.models.document import DocumentRecord


def make_record(collection_id, rel_path, content, collection_name="notes", docid=None, **kwargs):
    return DocumentRecord(
        collection_id=collection_id,
        rel_path=rel_path,
        display_path=f"{collection_name}/{rel_path}",
        title=kwargs.pop("title", rel_path),
        content=content,
        content_sha=kwargs.pop("content_sha", "sha-" + rel_path),
        docid=docid or "abc123",
        mtime_ms=0,
        size_bytes=len(content),
        **kwargs,
    )


def fts_rows(db):
    with db._get_connection() as conn:
        return {
            row["rowid"]: (row["title"], row["content"])
            for row in conn.execute("SELECT rowid, title, content FROM documents_fts")
        }


@pytest.fixture
def notes(db, tmp_path):
    db.upsert_collection("notes", str(tmp_path))
    return db.get_collection("notes")


class TestCollections:
    def test_upsert_normalizes_path_and_mask(self, db, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        db.upsert_collection(" notes ", "sub", "  ")
        col = db.get_collection("notes")

        assert col.root_path == os.path.join(str(tmp_path), "sub")
        assert col.mask == "**/*.md"

    def test_upsert_updates_existing(self, db, tmp_path):
        db.upsert_collection("notes", str(tmp_path), "*.md")
        db.upsert_collection("notes", str(tmp_path), "**/*.txt")

        cols = db.list_collections()
        assert len(cols) == 1
        assert cols[0].mask == "**/*.txt"

    @pytest.mark.parametrize("mask", ["/abs/notes/*.md", "../outside/*.md", "docs/../../*.md"])
    def test_mask_outside_root_is_rejected(self, db, tmp_path, mask):
        with pytest.raises(ValueError, match="relative to the collection root"):
            db.upsert_collection("notes", str(tmp_path), mask)
        assert db.get_collection("notes") is None

    def test_summaries_count_files(self, db, notes):
        db.upsert_document(make_record(notes.id, "a.md", "alpha"))
        db.upsert_document(make_record(notes.id, "b.md", "beta"))

        [summary] = db.list_collection_summaries()
        assert summary.file_count == 2
        assert summary.updated_at is not None
        assert summary.to_dict()["fileCount"] == 2

    def test_remove_cascades_to_documents_and_mirror(self, db, notes):
        db.upsert_document(make_record(notes.id, "a.md", "alpha"))
        db.remove_collection("notes")

        assert db.list_collections() == []
        assert db.status_info().documents == 0
        assert fts_rows(db) == {}

    def test_remove_unknown_collection_raises(self, db):
        with pytest.raises(ValueError):
            db.remove_collection("ghost")

    def test_rename_recomputes_display_paths(self, db, notes):
        db.upsert_document(make_record(notes.id, "dir/a.md", "alpha"))
        db.rename_collection("notes", "journal")

        doc = db.find_document(notes.id, "dir/a.md")
        assert doc.display_path == "journal/dir/a.md"
        assert db.get_collection("notes") is None

    def test_rename_onto_existing_name_raises(self, db, notes, tmp_path):
        db.upsert_collection("docs", str(tmp_path))
        with pytest.raises(ValueError):
            db.rename_collection("notes", "docs")

    def test_rename_missing_raises(self, db):
        with pytest.raises(ValueError):
            db.rename_collection("ghost", "other")


class TestContexts:
    def test_add_list_remove(self, db):
        db.add_context("qmx://notes", "Personal notes")
        db.add_context("qmx://notes", "Updated")
        db.add_context("qmx://docs", "Docs")

        assert db.list_contexts() == [("qmx://docs", "Docs"), ("qmx://notes", "Updated")]
        assert db.remove_context("qmx://docs") is True
        assert db.remove_context("qmx://docs") is False


class TestDocumentsAndMirror:
    def test_insert_creates_mirror_row(self, db, notes):
        doc_id = db.upsert_document(make_record(notes.id, "a.md", "alpha body", title="Alpha"))
        assert fts_rows(db) == {doc_id: ("Alpha", "alpha body")}

    def test_update_refreshes_mirror(self, db, notes):
        doc_id = db.upsert_document(make_record(notes.id, "a.md", "old body"))
        record = db.find_document(notes.id, "a.md")
        record.content = "new body"
        db.upsert_document(record)

        assert fts_rows(db)[doc_id][1] == "new body"
        assert len(fts_rows(db)) == 1

    def test_delete_removes_mirror(self, db, notes):
        doc_id = db.upsert_document(make_record(notes.id, "a.md", "alpha"))
        db.delete_document(doc_id)
        assert fts_rows(db) == {}

    def test_unique_collection_and_rel_path(self, db, notes):
        db.upsert_document(make_record(notes.id, "a.md", "alpha"))
        with pytest.raises(sqlite3.IntegrityError):
            db.upsert_document(make_record(notes.id, "a.md", "again"))

    def test_full_text_search_orders_and_filters(self, db, notes, tmp_path):
        db.upsert_collection("other", str(tmp_path))
        other = db.get_collection("other")
        db.upsert_document(make_record(notes.id, "a.md", "python python python"))
        db.upsert_document(make_record(notes.id, "b.md", "python and many other words here"))
        db.upsert_document(make_record(other.id, "c.md", "python", collection_name="other"))

        rows = db.full_text_search('"python"', "notes", 10)
        assert [r["display_path"] for r in rows] == ["notes/a.md", "notes/b.md"]
        assert rows[0]["bm25"] <= rows[1]["bm25"]
        assert "[python]" in rows[0]["snippet"]

    def test_embedded_candidates_only_with_embedding(self, db, notes):
        db.upsert_document(make_record(notes.id, "a.md", "alpha", embedding="[1.0, 0.0]"))
        db.upsert_document(make_record(notes.id, "b.md", "beta"))

        rows = db.embedded_candidates()
        assert [r["display_path"] for r in rows] == ["notes/a.md"]

    def test_docid_collision_resolves_to_smallest_display_path(self, db, notes):
        db.upsert_document(make_record(notes.id, "z.md", "zed", docid="ffffff"))
        db.upsert_document(make_record(notes.id, "m.md", "em", docid="ffffff"))

        assert db.find_by_docid("ffffff").display_path == "notes/m.md"

    def test_lookups(self, db, notes):
        db.upsert_document(make_record(notes.id, "dir/a.md", "alpha"))
        db.upsert_document(make_record(notes.id, "dir/b.md", "beta"))
        db.upsert_document(make_record(notes.id, "top.md", "top"))

        assert db.find_by_display_path("notes/dir/a.md").rel_path == "dir/a.md"
        assert db.find_by_rel_path("top.md").display_path == "notes/top.md"
        assert [r.rel_path for r in db.glob_documents("notes/dir/*")] == ["dir/a.md", "dir/b.md"]
        assert db.list_display_paths(notes.id, "dir/") == ["notes/dir/a.md", "notes/dir/b.md"]
        assert len(db.list_display_paths(notes.id)) == 3


class TestMaintenance:
    def test_cleanup_removes_orphans(self, db, notes):
        db.upsert_document(make_record(notes.id, "a.md", "alpha"))
        with db._get_connection() as conn:
            conn.execute("INSERT INTO documents_fts(rowid, title, content) VALUES (999, 'x', 'y')")

        assert db.cleanup() == 1
        assert db.cleanup() == 0
        assert len(fts_rows(db)) == 1

    def test_rebuild_fts(self, db, notes):
        db.upsert_document(make_record(notes.id, "a.md", "alpha"))
        with db._get_connection() as conn:
            conn.execute("DELETE FROM documents_fts")
        db.rebuild_fts()
        assert len(fts_rows(db)) == 1

    def test_clear_embeddings(self, db, notes):
        db.upsert_document(make_record(notes.id, "a.md", "alpha", embedding="[1]", embedding_model="m"))
        db.upsert_document(make_record(notes.id, "b.md", "beta"))

        assert db.clear_embeddings() == 1
        assert db.status_info().embedded == 0

    def test_status_info(self, db, notes):
        db.upsert_document(make_record(notes.id, "a.md", "alpha", embedding="[1]"))
        db.add_context("qmx://notes", "n")

        info = db.status_info()
        assert (info.collections, info.documents, info.contexts, info.embedded) == (1, 1, 1, 1)

    def test_doctor_checks(self, db):
        checks = {c["check"]: c for c in db.doctor_checks()}
        assert checks["sqlite"]["ok"] is True
        assert checks["fts5"]["ok"] is True
        assert "sqlite-vec" in checks


def test_legacy_database_gets_embedding_columns(tmp_path):
    path = str(tmp_path / "legacy.sqlite")
    conn = sqlite3.connect(path)
    conn.executescript(
        """
        CREATE TABLE documents (
            id INTEGER PRIMARY KEY,
            collection_id INTEGER NOT NULL,
            rel_path TEXT NOT NULL,
            display_path TEXT NOT NULL,
            title TEXT NOT NULL,
            content TEXT NOT NULL,
            content_sha TEXT NOT NULL,
            docid TEXT NOT NULL,
            mtime_ms INTEGER NOT NULL,
            size_bytes INTEGER NOT NULL,
            updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
            UNIQUE(collection_id, rel_path)
        );
        """
    )
    conn.close()

    db = DatabaseManager(path)
    with db._get_connection() as conn:
        columns = {row["name"] for row in conn.execute("PRAGMA table_info(documents)")}
    assert {"embedding", "embedding_model", "embedded_at"} <= columns
