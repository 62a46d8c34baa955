import logging
from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Tuple

from ..database.manager import DatabaseManager
from ..llm.ollama import OllamaClient
from ..models.config import LLMSettings
from ..models.document import HybridRow, SearchRow
from .fts import FTSSearcher
from .vector import VectorSearcher

logger = logging.getLogger(__name__)

RRF_K = 60
# Minimum per-channel candidate count for each query variant
CANDIDATE_FLOOR = 30
MAX_QUERIES = 3
RERANK_TOP = 30


def fuse_rrf(
    channel_a: Sequence[Tuple[str, float]],
    channel_b: Sequence[Tuple[str, float]],
    k: int = RRF_K,
) -> List[Tuple[str, float]]:
    """
    Reciprocal Rank Fusion of two descending ``(key, score)`` lists.

    Each item contributes ``1 / (k + rank + 1) + score * 1e-3`` (rank is
    0-indexed); the raw-score term only separates near ties.

    Returns:
        ``(key, fused_score)`` pairs, best first, key ascending on ties
    """
    totals: Dict[str, float] = defaultdict(float)
    for channel in (channel_a, channel_b):
        for rank, (key, score) in enumerate(channel):
            totals[key] += 1.0 / (k + rank + 1) + score * 1e-3
    return sorted(totals.items(), key=lambda item: (-item[1], item[0]))


def _retrieval_weight(rank: int) -> float:
    """Share of the blended score kept from retrieval, by 0-indexed rank."""
    if rank < 3:
        return 0.75
    if rank < 10:
        return 0.6
    return 0.4


def _merge_max(merged: Dict[str, SearchRow], rows: List[SearchRow]) -> None:
    for row in rows:
        current = merged.get(row.docid)
        if current is None or row.score > current.score:
            merged[row.docid] = row


class HybridSearcher:
    """
    Hybrid search: query expansion, keyword + vector retrieval, RRF, LLM rerank.

    Args:
        db: Database manager
        client: Backend for embedding, expansion and reranking
        settings: Model names used for each capability
    """

    def __init__(self, db: DatabaseManager, client: OllamaClient, settings: LLMSettings):
        self.db = db
        self.client = client
        self.settings = settings
        self.fts = FTSSearcher(db)
        self.vector = VectorSearcher(db, client, settings.embed_model)

    def search(
        self,
        query: str,
        limit: int = 5,
        collection: Optional[str] = None,
        min_score: float = 0.0,
        all_results: bool = False,
        no_expand: bool = False,
        no_rerank: bool = False,
    ) -> List[HybridRow]:
        """
        Run the full hybrid pipeline.

        Expansion and rerank failures degrade silently; an embedding failure
        for the query raises ``EmbeddingError``.
        """
        base_limit = max(limit, CANDIDATE_FLOOR)
        variations = [] if no_expand else self.client.expand(query, self.settings.expander_model)
        queries = ([query] + variations)[:MAX_QUERIES]
        logger.debug("Hybrid query variants: %s", queries)

        keyword_merged: Dict[str, SearchRow] = {}
        vector_merged: Dict[str, SearchRow] = {}
        for q in queries:
            _merge_max(
                keyword_merged,
                self.fts.search(q, limit=base_limit, collection=collection, min_score=min_score),
            )
            _merge_max(
                vector_merged,
                self.vector.search(q, limit=base_limit, collection=collection, min_score=min_score),
            )

        keyword = sorted(keyword_merged.values(), key=lambda r: -r.score)
        vector = sorted(vector_merged.values(), key=lambda r: -r.score)
        fused = fuse_rrf(
            [(r.docid, r.score) for r in keyword],
            [(r.docid, r.score) for r in vector],
        )

        results: List[HybridRow] = []
        for docid, fused_score in fused:
            krow = keyword_merged.get(docid)
            vrow = vector_merged.get(docid)
            base = krow or vrow
            results.append(
                HybridRow(
                    docid=base.docid,
                    display_path=base.display_path,
                    title=base.title,
                    snippet=(krow.snippet if krow else "") or (vrow.snippet if vrow else ""),
                    score=fused_score,
                    keyword_score=krow.score if krow else None,
                    vector_score=vrow.score if vrow else None,
                )
            )

        results = [r for r in results if r.score >= min_score]

        if not no_rerank and results:
            results = self._rerank(query, results)

        cap = len(results) if all_results else max(1, limit)
        return results[:cap]

    def _rerank(self, query: str, rows: List[HybridRow]) -> List[HybridRow]:
        scores = self.client.rerank(
            query,
            [
                {"docid": r.docid, "title": r.title, "snippet": r.snippet}
                for r in rows[:RERANK_TOP]
            ],
            self.settings.reranker_model,
        )
        for rank, row in enumerate(rows):
            rerank_score = scores.get(row.docid)
            if rerank_score is None:
                continue
            weight = _retrieval_weight(rank)
            row.score = row.score * weight + rerank_score * (1.0 - weight)
        return sorted(rows, key=lambda r: (-r.score, r.display_path))
