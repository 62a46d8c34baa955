import logging
from typing import Any, Dict, List, Optional

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError

from qmx import __version__
from qmx.database.manager import DatabaseManager
from qmx.index.indexer import IndexingEngine
from qmx.index.setup import bootstrap_collections
from qmx.llm.ollama import EmbeddingError, OllamaClient
from qmx.models.config import LLMSettings
from qmx.search.documents import get_document, multi_get_documents
from qmx.search.fts import FTSSearcher
from qmx.search.hybrid import HybridSearcher
from qmx.search.vector import VectorSearcher

logger = logging.getLogger(__name__)

SEARCH_MODES = ("keyword", "vector", "hybrid")
TOOL_NAMES = ("collections", "multi_get", "embed", "setup", "search", "get", "status")


def rows_to_text(rows: List[Any]) -> str:
    if not rows:
        return "No results."
    return "\n".join(
        f"{row.display_path} #{row.docid} score={row.score:.3f}\n  {row.title}\n  {row.snippet}"
        for row in rows
    )


class QmxTools:
    """Tool implementations; each returns a ``text`` summary plus structured fields."""

    def __init__(
        self,
        db: DatabaseManager,
        settings: LLMSettings,
        client: Optional[OllamaClient] = None,
    ):
        self.db = db
        self.settings = settings
        self.client = client or OllamaClient(settings)

    def collections(self) -> Dict[str, Any]:
        """List indexed collections with root path, file count, and update info."""
        rows = self.db.list_collection_summaries()
        text = (
            "\n\n".join(
                f"{r.name} (qmx://{r.name}/)\nroot={r.root_path}\npattern={r.mask}\nfiles={r.file_count}"
                for r in rows
            )
            if rows
            else "No collections."
        )
        return {"text": text, "collections": [r.to_dict() for r in rows]}

    def multi_get(
        self,
        pattern: str,
        max_lines: int = 0,
        max_bytes: int = 10240,
        line_numbers: bool = False,
    ) -> Dict[str, Any]:
        """Get multiple documents by glob pattern, comma-separated list, or #docids."""
        docs = [
            d
            for d in multi_get_documents(
                self.db, pattern, max_lines=max_lines, line_numbers=line_numbers
            )
            if len(d.content.encode("utf-8")) <= max_bytes
        ]
        text = (
            "\n".join(f"{d.display_path} #{d.docid}" for d in docs)
            if docs
            else "No matching documents."
        )
        return {"text": text, "documents": [d.to_dict() for d in docs]}

    def embed(self, force: bool = False) -> Dict[str, Any]:
        """Run embedding update for indexed documents."""
        if force:
            self.db.clear_embeddings()
        stats = IndexingEngine(self.db, self.client, self.settings).run(embed=True)
        text = (
            f"Embed done scanned={stats.scanned} added={stats.added} updated={stats.updated} "
            f"removed={stats.removed} embedded_docs={stats.embedded_docs}"
        )
        return {"text": text, "stats": stats.to_dict()}

    def setup(
        self,
        notes: Optional[str] = None,
        meetings: Optional[str] = None,
        docs: Optional[str] = None,
        mask: str = "**/*.md",
        no_embed: bool = False,
    ) -> Dict[str, Any]:
        """Bootstrap the notes/meetings/docs collections and contexts, then index or embed."""
        try:
            entries = bootstrap_collections(self.db, notes, meetings, docs, mask)
        except ValueError as e:
            raise ToolError(str(e))
        stats = IndexingEngine(self.db, self.client, self.settings).run(embed=not no_embed)
        return {
            "text": f"Setup complete collections={len(entries)} scanned={stats.scanned}",
            "entries": entries,
            "stats": stats.to_dict(),
        }

    def search(
        self,
        query: str,
        mode: str = "hybrid",
        limit: int = 5,
        collection: Optional[str] = None,
        min_score: float = 0.0,
    ) -> Dict[str, Any]:
        """Search documents using keyword, vector, or hybrid mode."""
        if mode not in SEARCH_MODES:
            raise ToolError(f"Unknown mode '{mode}', expected one of: {', '.join(SEARCH_MODES)}")
        if not query.strip():
            raise ToolError("Query must not be empty")
        limit = max(1, min(100, limit))

        try:
            if mode == "keyword":
                rows = FTSSearcher(self.db).search(query, limit, collection, min_score)
            elif mode == "vector":
                rows = VectorSearcher(self.db, self.client, self.settings.embed_model).search(
                    query, limit, collection, min_score
                )
            else:
                rows = HybridSearcher(self.db, self.client, self.settings).search(
                    query, limit, collection, min_score
                )
        except EmbeddingError as e:
            raise ToolError(f"Could not reach embedding backend at {e.host}: {e}")

        return {
            "text": rows_to_text(rows),
            "mode": mode,
            "results": [r.to_dict() for r in rows],
        }

    def get(
        self,
        ref: str,
        from_line: int = 1,
        max_lines: int = 0,
        line_numbers: bool = False,
    ) -> Dict[str, Any]:
        """Get a document by path or #docid."""
        doc = get_document(self.db, ref, from_line, max_lines, line_numbers)
        if doc is None:
            raise ToolError(f"Document not found: {ref}")
        return {
            "text": f"--- {doc.display_path} #{doc.docid} ---\n{doc.content}",
            "document": doc.to_dict(),
        }

    def status(self) -> Dict[str, Any]:
        """Get index and runtime status."""
        status = self.db.status_info()
        vec = self.db.sqlite_vec_state()
        text = (
            f"collections={status.collections} documents={status.documents} "
            f"embedded={status.embedded} sqlite-vec={'enabled' if vec.get('enabled') else 'disabled'}"
        )
        return {"text": text, **status.to_dict(), "sqliteVec": vec}


def build_mcp_server(
    db: DatabaseManager,
    settings: LLMSettings,
    client: Optional[OllamaClient] = None,
) -> FastMCP:
    """Create the ``qmx-mcp`` server with every tool registered."""
    tools = QmxTools(db, settings, client)
    mcp = FastMCP(name="qmx-mcp", version=__version__)
    for name in TOOL_NAMES:
        mcp.tool(getattr(tools, name), name=name)
    logger.debug("Registered %d MCP tools (backend %s)", len(TOOL_NAMES), settings.host)
    return mcp
