import json

import httpx
import pytest

from qmx.index.crawler import Crawler, scan_collection
from qmx.index.indexer import IndexingEngine
from qmx.index.progress import CancelToken, DocEvent, DoneEvent, PlanEvent
from qmx.llm.ollama import OllamaClient


@pytest.fixture
def engine(db, client, settings, vault):
    db.upsert_collection("notes", str(vault))
    return IndexingEngine(db, client, settings)


def docs_by_path(db):
    col = db.get_collection("notes")
    return {d.rel_path: d for d in db.list_documents(col.id)}


class TestCrawler:
    def test_scan_matches_mask_recursively(self, vault):
        assert scan_collection(str(vault), "**/*.md") == ["garden.md", "projects/budget.md", "python.md"]

    def test_scan_top_level_mask(self, vault):
        assert scan_collection(str(vault), "*.md") == ["garden.md", "python.md"]

    def test_scan_skips_hidden_paths(self, vault):
        (vault / ".trash").mkdir()
        (vault / ".trash" / "old.md").write_text("old", encoding="utf-8")
        (vault / ".obsidian" / "plugins").mkdir(parents=True)
        (vault / ".obsidian" / "plugins" / "readme.md").write_text("plugin", encoding="utf-8")
        (vault / ".draft.md").write_text("draft", encoding="utf-8")

        assert scan_collection(str(vault), "**/*.md") == ["garden.md", "projects/budget.md", "python.md"]

    def test_scan_includes_hidden_paths_named_by_mask(self, vault):
        (vault / ".trash").mkdir()
        (vault / ".trash" / "old.md").write_text("old", encoding="utf-8")

        assert scan_collection(str(vault), ".trash/*.md") == [".trash/old.md"]

    def test_missing_root(self, tmp_path):
        crawler = Crawler(str(tmp_path / "gone"))
        assert crawler.exists() is False
        assert crawler.scan() == []

    def test_read(self, vault):
        source = Crawler(str(vault)).read("garden.md")
        assert source.content.startswith("# Garden")
        assert source.size_bytes == len(source.content.encode("utf-8"))
        assert source.mtime_ms > 0


class TestIndexRun:
    def test_first_run_adds_everything(self, engine, db):
        stats = engine.run(embed=False)

        assert (stats.scanned, stats.added, stats.updated, stats.removed) == (3, 3, 0, 0)
        assert stats.cancelled is False
        doc = docs_by_path(db)["python.md"]
        assert doc.title == "Python Notes"
        assert doc.display_path == "notes/python.md"
        assert doc.docid == doc.content_sha[:6]
        assert doc.embedding is None

    def test_title_falls_back_to_filename(self, engine, db):
        engine.run(embed=False)
        assert docs_by_path(db)["projects/budget.md"].title == "budget"

    def test_second_run_is_a_no_op(self, engine):
        engine.run(embed=True)
        stats = engine.run(embed=True)

        assert (stats.added, stats.updated, stats.removed) == (0, 0, 0)
        assert stats.scanned == 3
        assert stats.embedded_docs == 0

    def test_changed_file_is_updated(self, engine, db, vault):
        engine.run(embed=False)
        before = docs_by_path(db)["garden.md"]
        (vault / "garden.md").write_text("# Garden\n\nTomato garden plans for summer.\n", encoding="utf-8")

        stats = engine.run(embed=False)

        assert (stats.added, stats.updated, stats.removed) == (0, 1, 0)
        after = docs_by_path(db)["garden.md"]
        assert after.id == before.id
        assert after.content_sha != before.content_sha

    def test_deleted_file_is_removed(self, engine, db, vault):
        engine.run(embed=False)
        (vault / "python.md").unlink()

        stats = engine.run(embed=False)

        assert stats.removed == 1
        assert "python.md" not in docs_by_path(db)

    def test_missing_root_is_skipped(self, engine, db, tmp_path):
        db.upsert_collection("gone", str(tmp_path / "does-not-exist"))
        stats = engine.run(embed=False)
        assert stats.scanned == 3
        assert stats.cancelled is False

    def test_mirror_follows_content(self, engine, db, vault):
        engine.run(embed=False)
        (vault / "garden.md").write_text("# Garden\n\nzucchini only\n", encoding="utf-8")
        engine.run(embed=False)

        assert [r["display_path"] for r in db.full_text_search('"zucchini"')] == ["notes/garden.md"]
        assert db.full_text_search('"tomato"') == []


class TestEmbedding:
    def test_embeds_title_and_content_mean_vector(self, engine, db, client, settings):
        stats = engine.run(embed=True)

        assert stats.embedded_docs == 3
        assert stats.embedded_chunks == 3
        assert stats.split_documents == 0
        doc = docs_by_path(db)["python.md"]
        vector = json.loads(doc.embedding)
        # "Python Notes\n\n# Python Notes\n\nPython tips and python tricks."
        assert vector[0] == pytest.approx(4.0)
        assert doc.embedding_model == settings.embed_model
        assert doc.embedded_at is not None
        assert any(text.startswith("Python Notes\n\n# Python Notes") for text in client.embed_calls)

    def test_missing_embedding_is_filled_in_later(self, engine, db):
        engine.run(embed=False)
        stats = engine.run(embed=True)

        assert stats.updated == 3
        assert stats.embedded_docs == 3
        assert all(d.embedding for d in docs_by_path(db).values())

    def test_failed_embedding_keeps_previous(self, db, settings, vault, make_client):
        db.upsert_collection("notes", str(vault))
        IndexingEngine(db, make_client(), settings).run(embed=True)
        previous = docs_by_path(db)["garden.md"]

        (vault / "garden.md").write_text("# Garden\n\nnew garden text\n", encoding="utf-8")
        failing = make_client(fail_embed=lambda text: True)
        stats = IndexingEngine(db, failing, settings).run(embed=True)

        assert stats.updated == 1
        assert stats.embedded_docs == 0
        assert stats.embedded_chunks == 1
        current = docs_by_path(db)["garden.md"]
        assert current.content.endswith("new garden text\n")
        assert current.embedding == previous.embedding
        assert current.embedded_at == previous.embedded_at

    def test_partial_chunk_failure_averages_the_rest(self, db, settings, tmp_path, make_client):
        root = tmp_path / "long"
        root.mkdir()
        body = " ".join(["python"] * 300 + ["java"] * 300)
        (root / "long.md").write_text(body, encoding="utf-8")
        db.upsert_collection("long", str(root))

        client = make_client(fail_embed=lambda text: "java" in text)
        stats = IndexingEngine(db, client, settings).run(embed=True)

        assert stats.split_documents == 1
        assert stats.embedded_docs == 1
        assert stats.embedded_chunks > 1
        doc = db.list_documents(db.get_collection("long").id)[0]
        assert json.loads(doc.embedding)[1] == 0.0

    def test_malformed_backend_payload_does_not_abort_the_run(self, db, settings, vault):
        def handler(request):
            return httpx.Response(200, json=[1, 2, 3])

        client = OllamaClient(
            settings, http_client=httpx.Client(transport=httpx.MockTransport(handler))
        )
        db.upsert_collection("notes", str(vault))
        stats = IndexingEngine(db, client, settings).run(embed=True)

        assert stats.added == 3
        assert stats.embedded_docs == 0
        assert stats.cancelled is False
        assert all(d.embedding is None for d in docs_by_path(db).values())

    def test_long_chunks_are_truncated(self, db, settings, tmp_path, make_client):
        root = tmp_path / "wide"
        root.mkdir()
        (root / "wide.md").write_text("x" * 20000, encoding="utf-8")
        db.upsert_collection("wide", str(root))
        client = make_client()

        IndexingEngine(db, client, settings).run(embed=True)
        assert max(len(t) for t in client.embed_calls) == 8000


class TestProgress:
    def test_event_order_in_embed_mode(self, engine):
        events = []
        stats = engine.run(embed=True, on_progress=events.append)

        assert isinstance(events[0], PlanEvent)
        assert isinstance(events[-1], DoneEvent)
        assert events[-1].stats is stats
        docs = [e for e in events if isinstance(e, DocEvent)]
        assert [e.index for e in docs] == [1, 2, 3]
        assert all(e.total == 3 for e in docs)
        assert [e.stage for e in (events[0], docs[0], events[-1])] == ["plan", "doc", "done"]

    def test_plan_totals(self, engine, settings, vault):
        events = []
        engine.run(embed=True, on_progress=events.append)
        plan = events[0]

        total_bytes = sum(len(p.read_bytes()) for p in vault.rglob("*.md"))
        assert (plan.documents, plan.chunks, plan.bytes) == (3, 3, total_bytes)
        assert plan.split_documents == 0
        assert plan.model == settings.embed_model

    def test_no_plan_without_embedding(self, engine):
        events = []
        engine.run(embed=False, on_progress=events.append)
        assert [e.stage for e in events] == ["done"]


class TestCancellation:
    def test_cancel_before_start(self, engine, db):
        token = CancelToken()
        token.cancel()

        stats = engine.run(embed=False, cancel=token)

        assert stats.cancelled is True
        assert stats.scanned == 0
        assert db.status_info().documents == 0

    def test_cancel_mid_run_skips_removal_and_converges(self, engine, db, vault):
        engine.run(embed=False)
        (vault / "python.md").unlink()
        (vault / "new.md").write_text("# New\n\nfresh\n", encoding="utf-8")

        polls = []

        def stop_after_two_files():
            polls.append(1)
            # poll 1: collection, polls 2-3: files, poll 4: stop
            return len(polls) > 3

        stats = engine.run(embed=False, cancel=CancelToken(stop_after_two_files))

        assert stats.cancelled is True
        assert stats.scanned == 2
        assert stats.removed == 0
        assert "python.md" in docs_by_path(db)

        stats = engine.run(embed=False)
        assert stats.cancelled is False
        assert stats.removed == 1
        assert set(docs_by_path(db)) == {"garden.md", "new.md", "projects/budget.md"}
