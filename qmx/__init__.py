"""qmx - local Markdown index with keyword, vector and hybrid retrieval."""

__version__ = "1.0.0"
