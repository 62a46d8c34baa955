"""Search commands (keyword, vector, hybrid, rerank)."""

import csv
import io
import json
from xml.sax.saxutils import escape, quoteattr

import click

from qmx.cli import console, echo, host_option, model_option
from qmx.llm.ollama import EmbeddingError, OllamaClient
from qmx.search.fts import ALL_RESULTS_LIMIT, FTSSearcher
from qmx.search.hybrid import HybridSearcher
from qmx.search.vector import VectorSearcher

OUTPUT_FORMATS = ["cli", "json", "files", "csv", "md", "xml"]


def search_options(f):
    """Options shared by every search command."""
    decorators = [
        click.argument("query"),
        click.option("--limit", "-n", default=5, type=click.IntRange(min=1), help="Number of results"),
        click.option("--collection", "-c", help="Filter by collection"),
        click.option("--all", "all_results", is_flag=True, help="Return every match"),
        click.option(
            "--min-score", type=float, default=0.0, help="Minimum score threshold (0-1)"
        ),
        click.option(
            "--format",
            "output_format",
            type=click.Choice(OUTPUT_FORMATS),
            default="cli",
            help="Output format (default: cli)",
        ),
        click.option(
            "--json",
            "as_json",
            is_flag=True,
            help="Output results as JSON (alias for --format=json)",
        ),
    ]
    for decorator in reversed(decorators):
        f = decorator(f)
    return f


def llm_options(f):
    f = click.option("--reranker-model", help="Reranking model")(f)
    f = click.option("--expander-model", help="Query expansion model")(f)
    f = model_option(f)
    return host_option(f)


def output_rows(rows, output_format: str) -> None:
    if output_format == "json":
        echo(json.dumps([r.to_dict() for r in rows], ensure_ascii=False, indent=2))
    elif output_format == "files":
        for r in rows:
            echo(f"{r.docid},{r.score:.4f},{r.display_path},{r.title}")
    elif output_format == "csv":
        buf = io.StringIO()
        writer = csv.writer(buf, lineterminator="\n")
        writer.writerow(["docid", "score", "path", "title", "snippet"])
        for r in rows:
            writer.writerow([r.docid, f"{r.score:.4f}", r.display_path, r.title, r.snippet])
        echo(buf.getvalue().rstrip("\n"))
    elif output_format == "md":
        for r in rows:
            echo(f"- **{r.display_path}** (#{r.docid}) score={r.score:.4f}")
            echo(f"  - {r.title}")
            echo(f"  - {r.snippet}")
    elif output_format == "xml":
        echo("<results>")
        for r in rows:
            echo(f"  <result docid={quoteattr(r.docid)} score=\"{r.score:.4f}\">")
            echo(f"    <path>{escape(r.display_path)}</path>")
            echo(f"    <title>{escape(r.title)}</title>")
            echo(f"    <snippet>{escape(r.snippet)}</snippet>")
            echo("  </result>")
        echo("</results>")
    else:  # cli (default)
        if not rows:
            console.print("[yellow]No results found.[/yellow]")
            return
        for r in rows:
            echo(f"{r.display_path} #{r.docid} score={r.score:.3f}")
            echo(f"  {r.title}")
            echo(f"  {r.snippet}")


def _fail_backend(command: str, host: str, error: Exception) -> None:
    console.print(
        f"[red]{command} could not reach the embedding backend at {host}:[/red] {error}",
        highlight=False,
    )
    raise SystemExit(1)


@click.command()
@search_options
@click.pass_obj
def search(ctx_obj, query, limit, collection, all_results, min_score, output_format, as_json):
    """BM25 keyword search.

    Scores are 1/(1+|bm25|), in (0,1]. Each query term is matched literally.
    """
    rows = FTSSearcher(ctx_obj.db).search(
        query,
        limit=limit,
        collection=collection,
        min_score=min_score,
        all_results=all_results,
    )
    output_rows(rows, "json" if as_json else output_format)


@click.command()
@search_options
@host_option
@model_option
@click.pass_obj
def vsearch(
    ctx_obj, query, limit, collection, all_results, min_score, output_format, as_json, host, model
):
    """Semantic search over document embeddings"""
    settings = ctx_obj.settings(host, model)
    client = OllamaClient(settings)
    try:
        rows = VectorSearcher(ctx_obj.db, client, settings.embed_model).search(
            query,
            limit=ALL_RESULTS_LIMIT if all_results else limit,
            collection=collection,
            min_score=min_score,
        )
    except EmbeddingError as e:
        _fail_backend("vsearch", e.host, e)
    finally:
        client.close()
    output_rows(rows, "json" if as_json else output_format)


def _run_hybrid(ctx_obj, command, query, limit, collection, all_results, min_score,
                host, model, expander_model, reranker_model, no_expand, no_rerank):
    settings = ctx_obj.settings(host, model, expander_model, reranker_model)
    client = OllamaClient(settings)
    try:
        return HybridSearcher(ctx_obj.db, client, settings).search(
            query,
            limit=limit,
            collection=collection,
            min_score=min_score,
            all_results=all_results,
            no_expand=no_expand,
            no_rerank=no_rerank,
        )
    except EmbeddingError as e:
        _fail_backend(command, e.host, e)
    finally:
        client.close()


@click.command()
@search_options
@llm_options
@click.option("--no-expand", is_flag=True, help="Skip LLM query expansion")
@click.option("--no-rerank", is_flag=True, help="Skip LLM reranking")
@click.pass_obj
def query(
    ctx_obj, query, limit, collection, all_results, min_score, output_format, as_json,
    host, model, expander_model, reranker_model, no_expand, no_rerank,
):
    """Hybrid search: expansion, keyword + vector, RRF fusion, LLM rerank"""
    rows = _run_hybrid(
        ctx_obj, "query", query, limit, collection, all_results, min_score,
        host, model, expander_model, reranker_model, no_expand, no_rerank,
    )
    output_rows(rows, "json" if as_json else output_format)


@click.command()
@search_options
@llm_options
@click.pass_obj
def rerank(
    ctx_obj, query, limit, collection, all_results, min_score, output_format, as_json,
    host, model, expander_model, reranker_model,
):
    """Hybrid search without expansion, always reranked"""
    rows = _run_hybrid(
        ctx_obj, "rerank", query, limit, collection, all_results, min_score,
        host, model, expander_model, reranker_model, True, False,
    )
    output_rows(rows, "json" if as_json else output_format)
