"""System commands (status, doctor)."""

import platform

import click

from qmx import __version__
from qmx.cli import console, echo, host_option
from qmx.models.config import get_default_config_path


@click.command()
@host_option
@click.pass_obj
def status(ctx_obj, host):
    """Show index status and effective backend settings"""
    info = ctx_obj.db.status_info()
    vec = ctx_obj.db.sqlite_vec_state()
    settings = ctx_obj.settings(host)

    console.print("[bold green]QMX status: active[/bold green]")
    echo(f"Version: qmx {__version__} (Python {platform.python_version()})")
    echo(f"DB: {ctx_obj.db_path}")
    echo(f"Collections: {info.collections}")
    echo(f"Documents: {info.documents}")
    echo(f"Embedded docs: {info.embedded}")
    echo(f"Contexts: {info.contexts}")
    echo(f"Config file: {get_default_config_path()}")
    echo(f"Ollama host: {settings.host}")
    echo(f"Embed model: {settings.embed_model}")
    echo(f"Expander model: {settings.expander_model}")
    echo(f"Reranker model: {settings.reranker_model}")
    echo(f"sqlite-vec: {'enabled' if vec['enabled'] else 'disabled'} ({vec['message']})")


@click.command()
@host_option
@click.pass_obj
def doctor(ctx_obj, host):
    """Check SQLite, FTS5 and sqlite-vec availability"""
    for check in ctx_obj.db.doctor_checks():
        echo(f"{'OK' if check['ok'] else 'WARN'}\t{check['check']}\t{check['message']}")
    echo(f"INFO\tollama\thost={ctx_obj.settings(host).host}")
