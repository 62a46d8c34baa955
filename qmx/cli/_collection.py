"""Collection command group."""

import click

from qmx.cli import console, echo, format_updated_ago


@click.group()
def collection():
    """Manage document collections"""
    pass


@collection.command(name="add")
@click.argument("path")
@click.option("--name", "-n", required=True, help="Collection name")
@click.option("--mask", default="**/*.md", help="Glob pattern (default: **/*.md)")
@click.pass_obj
def collection_add(ctx_obj, path, name, mask):
    """Register a directory as a collection (run 'qmx update' to index it)"""
    try:
        ctx_obj.db.upsert_collection(name, path, mask)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)
    console.print(f"[green]Collection '{name}' saved.[/green]")


def _pad(value: str, width: int) -> str:
    return value[:width] if len(value) >= width else value.ljust(width)


@collection.command(name="list")
@click.option("--plain", is_flag=True, help="Disable colors")
@click.option("--compact", is_flag=True, help="One line per collection")
@click.option("--no-summary", is_flag=True, help="Omit the summary line")
@click.pass_obj
def collection_list(ctx_obj, plain, compact, no_summary):
    """List collections with file counts"""
    rows = ctx_obj.db.list_collection_summaries()
    if not rows:
        echo("Collections: none.")
        return

    def styled(text: str, style: str) -> None:
        if plain:
            echo(text)
        else:
            console.print(text, style=style, markup=False, highlight=False, soft_wrap=True)

    styled(f"Collections ({len(rows)}):", "cyan")
    if compact:
        for row in rows:
            echo(
                f"{row.name} | qmx://{row.name}/ | files={row.file_count} | "
                f"updated={format_updated_ago(row.updated_at)}"
            )
    else:
        echo(f"{_pad('NAME', 16)} {_pad('URI', 24)} {_pad('FILES', 7)} UPDATED")
        echo(f"{'-' * 16} {'-' * 24} {'-' * 7} {'-' * 10}")
        for row in rows:
            echo(
                f"{_pad(row.name, 16)} {_pad(f'qmx://{row.name}/', 24)} "
                f"{_pad(str(row.file_count), 7)} {format_updated_ago(row.updated_at)}"
            )
            styled(f"  root={row.root_path}  pattern={row.mask}", "dim")

    if not no_summary:
        total_files = sum(row.file_count for row in rows)
        styled(f"Summary: collections={len(rows)} files={total_files}", "green")


collection.add_command(collection_list, name="ls")


@collection.command(name="remove")
@click.argument("name")
@click.pass_obj
def collection_remove(ctx_obj, name):
    """Remove a collection and its documents"""
    try:
        ctx_obj.db.remove_collection(name)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)
    console.print(f"[yellow]Removed collection:[/yellow] {name}")


collection.add_command(collection_remove, name="rm")


@collection.command(name="rename")
@click.argument("old")
@click.argument("new")
@click.pass_obj
def collection_rename(ctx_obj, old, new):
    """Rename a collection"""
    try:
        ctx_obj.db.rename_collection(old, new)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)
    console.print(f"[green]Renamed collection '{old}' to '{new}'[/green]")
