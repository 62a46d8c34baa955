SCHEMA = """
-- Collections: named root directory + glob mask
CREATE TABLE IF NOT EXISTS collections (
    id INTEGER PRIMARY KEY,
    name TEXT NOT NULL UNIQUE,
    root_path TEXT NOT NULL,
    mask TEXT NOT NULL DEFAULT '**/*.md',
    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);

-- Documents: one row per indexed file
CREATE TABLE IF NOT EXISTS documents (
    id INTEGER PRIMARY KEY,
    collection_id INTEGER NOT NULL REFERENCES collections(id) ON DELETE CASCADE,
    rel_path TEXT NOT NULL,
    display_path TEXT NOT NULL,
    title TEXT NOT NULL,
    content TEXT NOT NULL,
    content_sha TEXT NOT NULL,
    docid TEXT NOT NULL,
    mtime_ms INTEGER NOT NULL,
    size_bytes INTEGER NOT NULL,
    embedding TEXT,
    embedding_model TEXT,
    embedded_at TEXT,
    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    UNIQUE(collection_id, rel_path)
);

-- Path contexts (qmx://collection/prefix -> description)
CREATE TABLE IF NOT EXISTS path_contexts (
    id INTEGER PRIMARY KEY,
    target TEXT NOT NULL UNIQUE,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_documents_docid ON documents(docid);
CREATE INDEX IF NOT EXISTS idx_documents_collection ON documents(collection_id, rel_path);
CREATE INDEX IF NOT EXISTS idx_documents_display_path ON documents(display_path);
"""

# FTS5 mirror of (title, content); rowid = documents.id
FTS_SCHEMA = """
CREATE VIRTUAL TABLE IF NOT EXISTS documents_fts USING fts5(
    title,
    content,
    tokenize='unicode61'
);
"""

# Columns added after the first release; applied with ALTER TABLE when missing
EMBEDDING_COLUMNS = ("embedding", "embedding_model", "embedded_at")

# Triggers keep the FTS mirror byte-identical to documents(title, content).
# Always DROP before CREATE so the latest definition wins.
TRIGGERS = """
DROP TRIGGER IF EXISTS documents_ai;
DROP TRIGGER IF EXISTS documents_ad;
DROP TRIGGER IF EXISTS documents_au;

CREATE TRIGGER documents_ai AFTER INSERT ON documents
BEGIN
  INSERT INTO documents_fts(rowid, title, content)
  VALUES (new.id, new.title, new.content);
END;

-- Mirror row is removed in the same statement as the document row
CREATE TRIGGER documents_ad AFTER DELETE ON documents
BEGIN
  DELETE FROM documents_fts WHERE rowid = old.id;
END;

-- FTS5 does not reliably support INSERT OR REPLACE on an existing rowid;
-- DELETE + INSERT is the safe pattern.
CREATE TRIGGER documents_au AFTER UPDATE OF title, content ON documents
BEGIN
  DELETE FROM documents_fts WHERE rowid = old.id;
  INSERT INTO documents_fts(rowid, title, content)
  VALUES (new.id, new.title, new.content);
END;
"""
