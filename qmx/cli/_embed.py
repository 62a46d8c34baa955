"""Embed command."""

import signal
import time

import click

from qmx.cli import console, echo, format_duration_ms, host_option, model_option
from qmx.index.indexer import IndexingEngine
from qmx.index.progress import CancelToken, DocEvent, PlanEvent
from qmx.llm.ollama import OllamaClient
from qmx.utils.chunker import build_embed_intro


@click.command()
@host_option
@model_option
@click.option("-f", "--force", is_flag=True, help="Clear all existing embeddings and re-embed")
@click.option("--compact", is_flag=True, help="One line per event, no progress bar")
@click.option("--no-summary", is_flag=True, help="Omit the duration line")
@click.pass_obj
def embed(ctx_obj, host, model, force, compact, no_summary):
    """Sync the index and embed new or changed documents.

    Ctrl+C stops after the current document; everything embedded so far is
    kept and the next run picks up the rest.
    """
    from rich.progress import (
        BarColumn,
        Progress,
        TaskProgressColumn,
        TextColumn,
        TimeElapsedColumn,
    )

    started = time.monotonic()
    settings = ctx_obj.settings(host, model)

    if force:
        cleared = ctx_obj.db.clear_embeddings()
        console.print(f"[yellow]Embedding cache cleared:[/yellow] {cleared} documents.")

    cancel = CancelToken()
    previous_handler = signal.signal(signal.SIGINT, lambda signum, frame: cancel.cancel())
    client = OllamaClient(settings)
    printed_plan = False

    progress = Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        TimeElapsedColumn(),
        console=console,
        disable=compact,
    )
    task = progress.add_task("[cyan]Embedding…[/cyan]", total=None)

    def on_progress(event) -> None:
        nonlocal printed_plan
        if isinstance(event, PlanEvent):
            printed_plan = True
            if compact:
                echo(f"Embed plan | docs={event.documents} chunks={event.chunks} model={event.model}")
                return
            console.print("[cyan]Embed Plan[/cyan]")
            for line in build_embed_intro(
                event.documents, event.chunks, event.bytes, event.split_documents, event.model
            ):
                echo(f"  {line}")
            progress.update(task, total=event.documents or None)
        elif isinstance(event, DocEvent):
            if compact:
                echo(f"[{event.index}/{event.total}] {event.display_path} ({event.chunks} chunks)")
                return
            progress.update(
                task,
                completed=event.index,
                description=f"[cyan]{event.display_path}[/cyan] ({event.chunks} chunks)",
            )

    try:
        with progress:
            stats = IndexingEngine(ctx_obj.db, client, settings).run(
                embed=True, on_progress=on_progress, cancel=cancel
            )
    finally:
        signal.signal(signal.SIGINT, previous_handler)
        client.close()

    if not printed_plan:
        for line in build_embed_intro(
            stats.embedded_docs,
            stats.embedded_chunks,
            stats.embedded_bytes,
            stats.split_documents,
            settings.embed_model,
        ):
            echo(line)

    if stats.cancelled:
        console.print("[yellow]Cancelled; run 'qmx embed' again to resume.[/yellow]")
    console.print(
        f"Embed done | scanned={stats.scanned} added={stats.added} updated={stats.updated} "
        f"removed={stats.removed} embedded_docs={stats.embedded_docs} "
        f"embedded_chunks={stats.embedded_chunks}",
        style="green",
        markup=False,
        highlight=False,
        soft_wrap=True,
    )
    if not no_summary:
        elapsed_ms = int((time.monotonic() - started) * 1000)
        console.print(f"Duration: {format_duration_ms(elapsed_ms)}", style="dim", markup=False)
