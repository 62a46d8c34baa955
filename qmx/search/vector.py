import json
import logging
from typing import List, Optional

from ..database.manager import DatabaseManager
from ..llm.ollama import OllamaClient
from ..models.document import SearchRow
from ..utils import cosine_similarity

logger = logging.getLogger(__name__)

CANDIDATE_LIMIT = 5000
SNIPPET_CHARS = 180


def make_snippet(content: str) -> str:
    return " ".join(content[:SNIPPET_CHARS].split())


def _parse_vector(raw: str) -> List[float]:
    """Stored JSON vector; unparsable values become an empty vector (similarity 0)."""
    try:
        value = json.loads(raw)
    except (TypeError, ValueError):
        return []
    return value if isinstance(value, list) else []


class VectorSearcher:
    """
    Brute-force cosine search over the stored per-document embeddings.

    Args:
        db: Database manager
        client: Embedding backend used for the query vector
        model: Embedding model; should match the one documents were embedded with
    """

    def __init__(self, db: DatabaseManager, client: OllamaClient, model: Optional[str] = None):
        self.db = db
        self.client = client
        self.model = model

    def search(
        self,
        query: str,
        limit: int = 5,
        collection: Optional[str] = None,
        min_score: float = 0.0,
    ) -> List[SearchRow]:
        """
        Rank embedded documents by similarity to ``query``.

        Scores are ``(cosine + 1) / 2``. Raises ``EmbeddingError`` when the
        query itself cannot be embedded.
        """
        if not query.strip():
            return []

        query_vec = self.client.embed(query, self.model)
        candidates = self.db.embedded_candidates(collection, CANDIDATE_LIMIT)
        logger.debug("Scoring %d embedded candidates", len(candidates))

        results = []
        for row in candidates:
            doc_vec = _parse_vector(row["embedding"])
            score = (cosine_similarity(query_vec, doc_vec) + 1.0) / 2.0
            if score < min_score:
                continue
            results.append(
                SearchRow(
                    docid=row["docid"],
                    display_path=row["display_path"],
                    title=row["title"],
                    snippet=make_snippet(row["content"]),
                    score=score,
                )
            )

        results.sort(key=lambda r: (-r.score, r.display_path))
        return results[: max(1, limit)]
