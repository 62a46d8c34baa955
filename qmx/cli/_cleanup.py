"""Cleanup command."""

import click

from qmx.cli import echo


@click.command()
@click.pass_obj
def cleanup(ctx_obj):
    """Drop orphaned full-text rows and rebuild the full-text index"""
    removed = ctx_obj.db.cleanup()
    ctx_obj.db.rebuild_fts()
    echo(f"Cleanup done | removed_fts_orphans={removed}")
