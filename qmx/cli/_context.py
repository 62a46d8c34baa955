"""Context command group."""

import click

from qmx.cli import console, echo


@click.group()
def context():
    """Manage path contexts (qmx://collection/prefix -> description)"""
    pass


@context.command(name="add")
@click.argument("target")
@click.argument("text")
@click.pass_obj
def context_add(ctx_obj, target, text):
    """Add/Update context for a target"""
    ctx_obj.db.add_context(target, text)
    console.print(f"[green]Added context for:[/green] {target}")


@context.command(name="list")
@click.pass_obj
def context_list(ctx_obj):
    """List all path contexts"""
    rows = ctx_obj.db.list_contexts()
    if not rows:
        echo("No contexts found.")
        return
    for target, value in rows:
        echo(f"{target}\t{value}")


@context.command(name="rm")
@click.argument("target")
@click.pass_obj
def context_remove(ctx_obj, target):
    """Remove a path context"""
    if ctx_obj.db.remove_context(target):
        console.print(f"[yellow]Removed context:[/yellow] {target}")
    else:
        console.print(f"[yellow]No context for:[/yellow] {target}")


context.add_command(context_remove, name="remove")
