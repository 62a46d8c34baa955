"""
Incremental indexing of every registered collection.

A run has two phases:

1. Plan (embed mode only): read every file under every existing
   collection root, chunk it, and report totals through a ``plan`` event.
2. Apply: re-scan each collection, insert new files, update changed ones
   (or ones still missing an embedding), and, when the run was not
   cancelled, delete documents whose file has disappeared.

Every document write is its own transaction, so a cancelled run leaves
the store consistent and the next run converges.
"""

import json
import logging
from datetime import datetime, timezone
from typing import List, Optional, Set

import httpx

from ..database.manager import DatabaseManager
from ..llm.ollama import EmbeddingError, OllamaClient
from ..models.config import LLMSettings
from ..models.document import Collection, DocumentRecord, IndexStats
from ..utils import average_vectors, extract_title, sha256
from ..utils.chunker import chunk_by_token_count
from .crawler import Crawler, SourceFile
from .progress import CancelToken, DocEvent, DoneEvent, PlanEvent, ProgressSink

logger = logging.getLogger(__name__)

# Chunks longer than this are truncated before being sent to the backend
MAX_EMBED_CHARS = 8000


def _embed_source(title: str, content: str) -> str:
    return f"{title}\n\n{content}"


class IndexingEngine:
    """
    Brings the store in line with the filesystem.

    Args:
        db: Document store.
        client: Embedding backend; only used when ``run(embed=True)``.
        settings: Supplies the embedding model name recorded on documents.
    """

    def __init__(
        self,
        db: DatabaseManager,
        client: Optional[OllamaClient],
        settings: LLMSettings,
    ):
        self.db = db
        self.client = client
        self.settings = settings

    def run(
        self,
        embed: bool = True,
        on_progress: Optional[ProgressSink] = None,
        cancel: Optional[CancelToken] = None,
    ) -> IndexStats:
        collections = self.db.list_collections()
        stats = IndexStats()
        cancel = cancel or CancelToken()

        def emit(event) -> None:
            if on_progress is not None:
                on_progress(event)

        plan_total = 0
        if embed:
            plan = self._plan(collections)
            plan_total = plan.documents
            emit(plan)

        attempted = 0
        stopped = False
        for collection in collections:
            if cancel.stop_requested():
                stopped = True
                break

            crawler = Crawler(collection.root_path, collection.mask)
            if not crawler.exists():
                logger.warning(
                    "Skipping collection '%s': root %s does not exist",
                    collection.name,
                    collection.root_path,
                )
                continue

            alive: Set[str] = set()
            for rel_path in crawler.scan():
                if cancel.stop_requested():
                    stopped = True
                    break
                alive.add(rel_path)

                try:
                    source = crawler.read(rel_path)
                except (OSError, UnicodeDecodeError) as e:
                    logger.warning("Skipping unreadable file %s/%s: %s", collection.name, rel_path, e)
                    continue

                stats.scanned += 1
                attempted = self._apply_file(
                    collection, rel_path, source, embed, stats, emit, attempted, plan_total
                )

            if stopped:
                break

            for doc in self.db.list_documents(collection.id):
                if doc.rel_path not in alive:
                    self.db.delete_document(doc.id)
                    stats.removed += 1

        stats.cancelled = stopped
        if stopped:
            logger.info("Index run cancelled after %d files", stats.scanned)
        emit(DoneEvent(stats=stats))
        return stats

    def _plan(self, collections: List[Collection]) -> PlanEvent:
        documents = 0
        chunks = 0
        total_bytes = 0
        split = 0
        for collection in collections:
            crawler = Crawler(collection.root_path, collection.mask)
            if not crawler.exists():
                continue
            for rel_path in crawler.scan():
                try:
                    source = crawler.read(rel_path)
                except (OSError, UnicodeDecodeError):
                    continue
                title = extract_title(source.content, rel_path)
                n = len(chunk_by_token_count(_embed_source(title, source.content)))
                documents += 1
                chunks += n
                total_bytes += len(source.content.encode("utf-8"))
                if n > 1:
                    split += 1
        return PlanEvent(
            documents=documents,
            chunks=chunks,
            bytes=total_bytes,
            split_documents=split,
            model=self.settings.embed_model,
        )

    def _apply_file(
        self,
        collection: Collection,
        rel_path: str,
        source: SourceFile,
        embed: bool,
        stats: IndexStats,
        emit,
        attempted: int,
        plan_total: int,
    ) -> int:
        """Insert, update or skip one observed file. Returns the running embed count."""
        content = source.content
        content_sha = sha256(content)
        title = extract_title(content, rel_path)
        display_path = f"{collection.name}/{rel_path}"
        existing = self.db.find_document(collection.id, rel_path)

        embedding = existing.embedding if existing else None
        embedding_model = existing.embedding_model if existing else None
        embedded_at = existing.embedded_at if existing else None

        should_embed = embed and (
            existing is None
            or existing.content_sha != content_sha
            or not existing.embedding
        )
        if should_embed:
            attempted += 1
            chunks = chunk_by_token_count(_embed_source(title, content))
            vector = self._embed_chunks(chunks, display_path)
            if vector is not None:
                embedding = json.dumps(vector)
                embedding_model = self.settings.embed_model
                embedded_at = datetime.now(timezone.utc).isoformat()
                stats.embedded_docs += 1
            stats.embedded_chunks += len(chunks)
            stats.embedded_bytes += len(content.encode("utf-8"))
            if len(chunks) > 1:
                stats.split_documents += 1
            emit(
                DocEvent(
                    index=attempted,
                    total=plan_total,
                    display_path=display_path,
                    chunks=len(chunks),
                )
            )

        if existing is not None and existing.content_sha == content_sha:
            if not embed or existing.embedding:
                return attempted

        record = DocumentRecord(
            collection_id=collection.id,
            rel_path=rel_path,
            display_path=display_path,
            title=title,
            content=content,
            content_sha=content_sha,
            docid=content_sha[:6],
            mtime_ms=source.mtime_ms,
            size_bytes=source.size_bytes,
            embedding=embedding,
            embedding_model=embedding_model,
            embedded_at=embedded_at,
            id=existing.id if existing else None,
        )
        self.db.upsert_document(record)
        if existing is None:
            stats.added += 1
        else:
            stats.updated += 1
        return attempted

    def _embed_chunks(self, chunks: List[str], display_path: str) -> Optional[List[float]]:
        """Embed each chunk and average the vectors; chunks that fail are skipped."""
        vectors: List[List[float]] = []
        for chunk in chunks:
            try:
                vectors.append(self.client.embed(chunk[:MAX_EMBED_CHARS], self.settings.embed_model))
            except (EmbeddingError, httpx.HTTPError) as e:
                logger.warning("Embedding failed for a chunk of %s: %s", display_path, e)
        return average_vectors(vectors)
