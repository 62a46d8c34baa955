"""Index, update and setup commands."""

import click

from qmx.cli import console, echo, host_option, model_option
from qmx.index.indexer import IndexingEngine
from qmx.index.setup import bootstrap_collections
from qmx.llm.ollama import OllamaClient


def _run_index(ctx_obj, embed: bool, host, model):
    settings = ctx_obj.settings(host, model)
    client = OllamaClient(settings)
    try:
        return IndexingEngine(ctx_obj.db, client, settings).run(embed=embed)
    finally:
        client.close()


@click.command()
@click.option("--no-embed", is_flag=True, help="Only sync text, skip embeddings")
@host_option
@model_option
@click.pass_obj
def update(ctx_obj, no_embed, host, model):
    """Re-scan every collection and sync the index"""
    stats = _run_index(ctx_obj, not no_embed, host, model)
    echo(
        f"Index updated | scanned={stats.scanned} added={stats.added} "
        f"updated={stats.updated} removed={stats.removed}"
    )


@click.command()
@click.option("--notes", help="Path to personal notes")
@click.option("--meetings", help="Path to meeting transcripts")
@click.option("--docs", help="Path to work documentation")
@click.option("--mask", default="**/*.md", help="Glob pattern (default: **/*.md)")
@click.option("--no-embed", is_flag=True, help="Only sync text, skip embeddings")
@host_option
@model_option
@click.pass_obj
def setup(ctx_obj, notes, meetings, docs, mask, no_embed, host, model):
    """Register notes/meetings/docs collections with contexts, then index"""
    try:
        entries = bootstrap_collections(ctx_obj.db, notes, meetings, docs, mask)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)

    for entry in entries:
        console.print(
            f"Collection [cyan]{entry['name']}[/cyan] + context qmx://{entry['name']} ready."
        )

    stats = _run_index(ctx_obj, not no_embed, host, model)
    echo(
        f"Setup done | scanned={stats.scanned} added={stats.added} updated={stats.updated} "
        f"removed={stats.removed} embed={'off' if no_embed else 'on'}"
    )
