import logging
import sqlite3
from typing import List, Optional

from ..database.manager import DatabaseManager
from ..models.document import SearchRow
from ..utils import safe_search_query

logger = logging.getLogger(__name__)

# Result cap used when the caller asks for "all" matches
ALL_RESULTS_LIMIT = 1000


class FTSSearcher:
    def __init__(self, db: DatabaseManager):
        self.db = db

    def search(
        self,
        query: str,
        limit: int = 5,
        collection: Optional[str] = None,
        min_score: float = 0.0,
        all_results: bool = False,
    ) -> List[SearchRow]:
        """
        BM25 keyword search.

        Every term is quoted on its own, so punctuation in the query is
        matched literally. Scores are ``1 / (1 + |bm25|)``, which maps the
        engine's unbounded relevance into (0, 1].

        Args:
            query: Search text; empty or whitespace-only returns no rows
            limit: Maximum number of results
            collection: Optional collection name filter
            min_score: Rows scoring below this are dropped
            all_results: Raise the cap to ``ALL_RESULTS_LIMIT``

        Returns:
            Rows ordered by relevance, display path breaking ties
        """
        fts_query = safe_search_query(query)
        if not fts_query:
            return []

        cap = ALL_RESULTS_LIMIT if all_results else max(1, limit)
        try:
            rows = self.db.full_text_search(fts_query, collection, cap)
        except sqlite3.OperationalError as e:
            logger.warning("FTS search failed for %r: %s", query, e)
            return []

        results = []
        for row in rows:
            bm25_raw = row["bm25"]
            score = 1.0 / (1.0 + abs(bm25_raw or 0.0))
            if score < min_score:
                continue
            results.append(
                SearchRow(
                    docid=row["docid"],
                    display_path=row["display_path"],
                    title=row["title"],
                    snippet=row["snippet"] or "",
                    score=score,
                )
            )
        return results
