"""
Token-window chunking used to drive document embedding.

Tokens are whitespace-delimited words; chunks overlap so that text near a
window boundary contributes to two neighbouring embeddings.
"""

from typing import List

CHUNK_SIZE_TOKENS = 220
CHUNK_OVERLAP_TOKENS = 40


def chunk_by_token_count(
    text: str,
    max_tokens: int = CHUNK_SIZE_TOKENS,
    overlap_tokens: int = CHUNK_OVERLAP_TOKENS,
) -> List[str]:
    """
    Split ``text`` into overlapping windows of at most ``max_tokens`` tokens.

    Always returns at least one chunk: empty input yields ``[""]`` and text
    that fits in one window comes back whole. Otherwise windows advance by
    ``max(1, max_tokens - overlap_tokens)`` and the last window always ends
    on the last token.
    """
    tokens = text.split()
    if not tokens:
        return [""]
    if len(tokens) <= max_tokens:
        return [text]

    chunks = []
    step = max(1, max_tokens - overlap_tokens)
    for start in range(0, len(tokens), step):
        window = tokens[start : start + max_tokens]
        if not window:
            continue
        chunks.append(" ".join(window))
        if start + max_tokens >= len(tokens):
            break
    return chunks


def format_kb(num_bytes: int) -> str:
    return f"{num_bytes / 1024:.1f} KB"


def build_embed_intro(
    documents: int, chunks: int, num_bytes: int, split_documents: int, model: str
) -> List[str]:
    """Summary lines printed before an embedding run."""
    return [
        f"Chunking {documents} documents by token count...",
        f"Embedding {documents} documents ({chunks} chunks, {format_kb(num_bytes)})",
        f"{split_documents} documents split into multiple chunks",
        f"Model: {model}",
    ]
