"""
HTTP client for an Ollama-compatible language-model backend.

Three capabilities are used by qmx:

- embed:  text -> vector (``/api/embeddings``, falling back to ``/api/embed``)
- expand: query -> up to 2 alternate phrasings (``/api/generate``)
- rerank: query + candidates -> relevance in [0, 1] (``/api/generate``)

Every call is sequential and bounded by the configured request timeout.
Only ``embed`` raises; expansion and reranking degrade to empty results.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

import httpx

from qmx.models.config import LLMSettings

logger = logging.getLogger(__name__)

_NUMBER_RE = re.compile(r"-?\d+(\.\d+)?")
_BULLET_RE = re.compile(r"^[\-\d\.\)\s]+")


class EmbeddingError(RuntimeError):
    """Neither embedding endpoint produced a vector."""

    def __init__(self, message: str, host: str):
        super().__init__(message)
        self.host = host


class OllamaClient:
    """
    Client for the embedding, expansion and reranking backend.

    Args:
        settings: Effective host/model/timeout settings.
        http_client: Optional pre-built ``httpx.Client`` (tests inject one
                     backed by ``httpx.MockTransport``).
    """

    def __init__(self, settings: LLMSettings, http_client: Optional[httpx.Client] = None):
        self.settings = settings
        self.base_url = settings.host
        self._client = http_client

    def _get_client(self) -> httpx.Client:
        """Lazy initialization of HTTP client."""
        if self._client is None:
            self._client = httpx.Client(timeout=self.settings.timeout_ms / 1000.0)
        return self._client

    def _post(self, path: str, body: Dict[str, Any]) -> httpx.Response:
        return self._get_client().post(f"{self.base_url}{path}", json=body)

    def embed(self, text: str, model: Optional[str] = None) -> List[float]:
        """
        Embed ``text``.

        Tries the legacy ``/api/embeddings`` form first and the batch
        ``/api/embed`` form second.

        Raises:
            EmbeddingError: when both forms fail.
        """
        model = model or self.settings.embed_model

        try:
            response = self._post("/api/embeddings", {"model": model, "prompt": text})
            if response.is_success:
                data = response.json()
                vector = _as_vector(data.get("embedding") if isinstance(data, dict) else None)
                if vector:
                    return vector
        except (httpx.HTTPError, ValueError) as e:
            logger.debug("Primary embed request failed: %s", e)

        try:
            response = self._post("/api/embed", {"model": model, "input": text})
        except httpx.HTTPError as e:
            raise EmbeddingError(f"Ollama embed failed: {e}", self.base_url) from e
        if not response.is_success:
            raise EmbeddingError(
                f"Ollama embed failed: {response.status_code} {response.text}",
                self.base_url,
            )
        try:
            data = response.json()
        except ValueError as e:
            raise EmbeddingError(f"Ollama embed returned invalid JSON: {e}", self.base_url) from e
        embeddings = data.get("embeddings") if isinstance(data, dict) else None
        vector = _as_vector(embeddings[0]) if isinstance(embeddings, list) and embeddings else None
        if not vector:
            raise EmbeddingError("Ollama embed response missing vector", self.base_url)
        return vector

    def _generate(self, prompt: str, model: str) -> Optional[str]:
        """Non-streaming generate call; None on any transport or payload failure."""
        try:
            response = self._post(
                "/api/generate", {"model": model, "prompt": prompt, "stream": False}
            )
            if not response.is_success:
                logger.debug("Generate returned HTTP %s", response.status_code)
                return None
            data = response.json()
            if not isinstance(data, dict):
                logger.debug("Generate returned a non-object payload")
                return None
            return str(data.get("response") or "").strip()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Generate request to %s failed: %s", self.base_url, e)
            return None

    def expand(self, query: str, model: Optional[str] = None) -> List[str]:
        """Ask for 2 alternate phrasings of ``query``. Empty list on failure."""
        prompt = (
            "You generate concise search query variations.\n"
            "Return ONLY a JSON array of 2 strings.\n"
            f"Original query: {query}"
        )
        raw = self._generate(prompt, model or self.settings.expander_model)
        if not raw:
            return []
        return parse_expansions(raw)

    def rerank(
        self,
        query: str,
        candidates: List[Dict[str, str]],
        model: Optional[str] = None,
    ) -> Dict[str, float]:
        """
        Score each candidate (``docid``/``title``/``snippet``) for relevance.

        Returns:
            Map of docid -> score in [0, 1]. Candidates the backend could
            not score are left out.
        """
        model = model or self.settings.reranker_model
        scores: Dict[str, float] = {}
        for doc in candidates:
            prompt = "\n".join(
                [
                    "Rate relevance from 0 to 10.",
                    "Return ONLY one number.",
                    f"Query: {query}",
                    f"Title: {doc.get('title', '')}",
                    f"Snippet: {doc.get('snippet', '')}",
                ]
            )
            text = self._generate(prompt, model)
            if text is None:
                continue
            score = parse_rerank_score(text)
            if score is not None:
                scores[doc["docid"]] = score
        return scores

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None


def _as_vector(value: Any) -> Optional[List[float]]:
    """A non-empty list of numbers as floats, else None."""
    if not isinstance(value, list) or not value:
        return None
    try:
        return [float(v) for v in value]
    except (TypeError, ValueError):
        return None


def parse_expansions(raw: str) -> List[str]:
    """Parse a JSON array of strings, else numbered/bulleted lines; keep at most 2."""
    try:
        parsed = json.loads(raw)
    except ValueError:
        parsed = None
    if isinstance(parsed, list):
        return [str(v).strip() for v in parsed if str(v).strip()][:2]

    lines = [_BULLET_RE.sub("", line).strip() for line in raw.split("\n")]
    return [line for line in lines if line][:2]


def parse_rerank_score(text: str) -> Optional[float]:
    """First number in ``text`` clamped to [0, 10] and scaled to [0, 1]."""
    match = _NUMBER_RE.search(text)
    if not match:
        return None
    value = float(match.group(0))
    return max(0.0, min(10.0, value)) / 10.0
