import re
from pathlib import Path

import pytest

from qmx.database.manager import DatabaseManager
from qmx.models.config import LLMSettings

# Words the fake embedder knows; a text's vector counts their occurrences
VOCAB = ["python", "java", "garden", "tomato", "meeting", "budget", "rust", "soup"]


def fake_vector(text: str):
    words = re.findall(r"[a-z]+", text.lower())
    return [float(words.count(w)) for w in VOCAB]


class FakeClient:
    """In-process stand-in for OllamaClient with scripted responses."""

    def __init__(self, expansions=None, rerank_scores=None, fail_embed=None):
        self.expansions = expansions or []
        self.rerank_scores = rerank_scores or {}
        self.fail_embed = fail_embed
        self.embed_calls = []
        self.expand_calls = []
        self.rerank_calls = []

    def embed(self, text, model=None):
        from qmx.llm.ollama import EmbeddingError

        self.embed_calls.append(text)
        if self.fail_embed is not None and self.fail_embed(text):
            raise EmbeddingError("embedding backend unavailable", "http://fake:11434")
        return fake_vector(text)

    def expand(self, query, model=None):
        self.expand_calls.append(query)
        return list(self.expansions)

    def rerank(self, query, candidates, model=None):
        self.rerank_calls.append((query, [c["docid"] for c in candidates]))
        return {
            c["docid"]: self.rerank_scores[c["docid"]]
            for c in candidates
            if c["docid"] in self.rerank_scores
        }

    def close(self):
        pass


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Keep config, cache and OLLAMA_HOST out of the developer's environment."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.delenv("OLLAMA_HOST", raising=False)


@pytest.fixture
def db(tmp_path):
    return DatabaseManager(str(tmp_path / "test_qmx.sqlite"))


@pytest.fixture
def settings():
    return LLMSettings(host="http://fake:11434", embed_model="fake-embed")


@pytest.fixture
def client():
    return FakeClient()


@pytest.fixture
def vault(tmp_path) -> Path:
    """A small notes directory with three Markdown files and one non-Markdown file."""
    root = tmp_path / "vault"
    (root / "projects").mkdir(parents=True)
    (root / "python.md").write_text("# Python Notes\n\nPython tips and python tricks.\n", encoding="utf-8")
    (root / "garden.md").write_text("# Garden\n\nTomato garden plans for spring.\n", encoding="utf-8")
    (root / "projects" / "budget.md").write_text("Budget meeting notes.\n", encoding="utf-8")
    (root / "readme.txt").write_text("not indexed", encoding="utf-8")
    return root


@pytest.fixture
def make_client():
    """Factory for FakeClient instances with custom behaviour."""
    return FakeClient
