"""CLI module - contains all CLI command implementations.

This module exports:
- Context: CLI context class
- console: Rich console for output
- echo: plain (markup-free) output for machine-readable formats
- common option decorators shared by the backend-facing commands
"""

from datetime import datetime, timezone
from typing import Optional

import click
from rich.console import Console

from qmx.database.manager import DatabaseManager
from qmx.models.config import AppConfig, LLMSettings, get_db_path

console = Console()


class Context:
    """CLI context that holds config and database manager."""

    def __init__(self, index_name: str = "index"):
        self.index_name = index_name or "index"
        self.config = AppConfig.load()
        self.db_path = str(get_db_path(self.index_name))
        self.db = DatabaseManager(self.db_path)

    def settings(
        self,
        host: Optional[str] = None,
        model: Optional[str] = None,
        expander_model: Optional[str] = None,
        reranker_model: Optional[str] = None,
    ) -> LLMSettings:
        return self.config.settings(host, model, expander_model, reranker_model)


def echo(text: str = "") -> None:
    """Print ``text`` verbatim: no Rich markup, highlighting or wrapping."""
    console.print(text, markup=False, highlight=False, soft_wrap=True)


def host_option(f):
    return click.option("--host", help="Ollama host URL (overrides config and $OLLAMA_HOST)")(f)


def model_option(f):
    return click.option("--model", help="Embedding model name")(f)


def format_duration_ms(ms: int) -> str:
    if ms < 1000:
        return f"{ms}ms"
    return f"{ms / 1000:.2f}s"


def format_updated_ago(timestamp: Optional[str], now: Optional[datetime] = None) -> str:
    """Relative age of an SQLite ``CURRENT_TIMESTAMP`` value (UTC), e.g. ``5m ago``."""
    if not timestamp:
        return "-"
    try:
        then = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    except ValueError:
        return timestamp
    if then.tzinfo is None:
        then = then.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    seconds = (now - then).total_seconds()
    if seconds < 60:
        return "just now"
    minutes = int(seconds // 60)
    if minutes < 60:
        return f"{minutes}m ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"
    return f"{hours // 24}d ago"
