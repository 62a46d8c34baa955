from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional


@dataclass
class Collection:
    id: int
    name: str
    root_path: str
    mask: str = "**/*.md"


@dataclass
class CollectionSummary:
    name: str
    root_path: str
    mask: str
    file_count: int = 0
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "rootPath": self.root_path,
            "mask": self.mask,
            "fileCount": self.file_count,
            "updatedAt": self.updated_at,
        }


@dataclass
class DocumentRecord:
    """One indexed file, unique per (collection_id, rel_path).

    ``embedding`` holds the JSON-encoded mean vector exactly as stored.
    """

    collection_id: int
    rel_path: str
    display_path: str
    title: str
    content: str
    content_sha: str
    docid: str
    mtime_ms: int
    size_bytes: int
    embedding: Optional[str] = None
    embedding_model: Optional[str] = None
    embedded_at: Optional[str] = None
    updated_at: Optional[str] = None
    id: Optional[int] = None


@dataclass
class SearchRow:
    docid: str
    display_path: str
    title: str
    snippet: str
    score: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "docid": self.docid,
            "displayPath": self.display_path,
            "title": self.title,
            "snippet": self.snippet,
            "score": self.score,
        }


@dataclass
class HybridRow(SearchRow):
    keyword_score: Optional[float] = None
    vector_score: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        out = super().to_dict()
        if self.keyword_score is not None:
            out["keywordScore"] = self.keyword_score
        if self.vector_score is not None:
            out["vectorScore"] = self.vector_score
        return out


@dataclass
class DocumentView:
    docid: str
    display_path: str
    title: str
    content: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "docid": self.docid,
            "displayPath": self.display_path,
            "title": self.title,
            "content": self.content,
        }


@dataclass
class IndexStats:
    added: int = 0
    updated: int = 0
    removed: int = 0
    scanned: int = 0
    embedded_docs: int = 0
    embedded_chunks: int = 0
    embedded_bytes: int = 0
    split_documents: int = 0
    cancelled: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "added": self.added,
            "updated": self.updated,
            "removed": self.removed,
            "scanned": self.scanned,
            "embeddedDocs": self.embedded_docs,
            "embeddedChunks": self.embedded_chunks,
            "embeddedBytes": self.embedded_bytes,
            "splitDocuments": self.split_documents,
            "cancelled": self.cancelled,
        }


@dataclass
class StatusInfo:
    collections: int = 0
    documents: int = 0
    contexts: int = 0
    embedded: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
