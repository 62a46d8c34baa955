"""Document retrieval commands (ls, get, multi-get)."""

import json
import re

import click

from qmx.cli import console, echo
from qmx.search.documents import get_document, ls_collection, multi_get_documents

_LINE_SUFFIX = re.compile(r"^(.*):(\d+)$")


def parse_ref_with_line(raw: str):
    """Split ``path:LINE`` into ``(path, LINE)``; docid refs never carry a line."""
    if raw.startswith("#"):
        return raw, 1
    match = _LINE_SUFFIX.match(raw)
    if not match:
        return raw, 1
    return match.group(1), int(match.group(2))


@click.command()
@click.argument("target", required=False)
@click.pass_obj
def ls(ctx_obj, target):
    """List collections, or files in a collection.

    Usage:
    qmx ls
    qmx ls notes
    qmx ls notes/projects
    """
    rows = ls_collection(ctx_obj.db, target)
    if not rows:
        console.print("[yellow]No files found.[/yellow]")
        return
    for row in rows:
        echo(row)


@click.command()
@click.argument("target")
@click.option("-l", "--lines", "max_lines", type=int, default=0, help="Line limit")
@click.option("--from", "from_line", type=int, help="First line to show (1-based)")
@click.option("--line-numbers", is_flag=True, help="Show line numbers")
@click.pass_obj
def get(ctx_obj, target, max_lines, from_line, line_numbers):
    """Get document content by path or #docid (path:LINE starts at LINE)"""
    ref, parsed_line = parse_ref_with_line(target)
    doc = get_document(
        ctx_obj.db,
        ref,
        from_line=from_line or parsed_line,
        max_lines=max(0, max_lines),
        line_numbers=line_numbers,
    )
    if doc is None:
        console.print(f"[red]Document not found:[/red] {ref}", highlight=False)
        raise SystemExit(1)

    echo(f"--- {doc.display_path} #{doc.docid} ---")
    echo(doc.content)


@click.command(name="multi-get")
@click.argument("pattern")
@click.option("-l", "--lines", "max_lines", type=int, default=0, help="Line limit per document")
@click.option("--max-bytes", type=int, default=10240, help="Skip documents larger than this")
@click.option("--line-numbers", is_flag=True, help="Show line numbers")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_obj
def multi_get(ctx_obj, pattern, max_lines, max_bytes, line_numbers, output_json):
    """Get multiple documents by glob, comma-separated list, or #docids"""
    docs = [
        d
        for d in multi_get_documents(
            ctx_obj.db, pattern, max_lines=max(0, max_lines), line_numbers=line_numbers
        )
        if len(d.content.encode("utf-8")) <= max_bytes
    ]

    if output_json:
        echo(json.dumps([d.to_dict() for d in docs], ensure_ascii=False, indent=2))
        return
    if not docs:
        console.print("[yellow]No matching documents.[/yellow]")
        return

    for doc in docs:
        echo()
        echo(f"--- {doc.display_path} #{doc.docid} ---")
        echo(doc.content)
