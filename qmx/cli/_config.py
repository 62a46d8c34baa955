"""Config command group."""

import click

from qmx.cli import console, echo
from qmx.models.config import get_default_config_path


@click.group(name="config")
def config_group():
    """Manage configuration"""
    pass


def _set(ctx_obj, key: str, value: str, label: str) -> None:
    ctx_obj.config.set_value(key, value)
    ctx_obj.config.save()
    stored = getattr(ctx_obj.config, key)
    console.print(f"[green]{label} saved:[/green] {stored}")
    echo(f"Config: {get_default_config_path()}")


@config_group.command(name="set-host")
@click.argument("url")
@click.pass_obj
def config_set_host(ctx_obj, url):
    """Set the Ollama host URL"""
    _set(ctx_obj, "ollama_host", url, "Ollama host")


@config_group.command(name="set-model")
@click.argument("name")
@click.pass_obj
def config_set_model(ctx_obj, name):
    """Set the embedding model"""
    _set(ctx_obj, "embed_model", name, "Embedding model")


@config_group.command(name="set-expander")
@click.argument("name")
@click.pass_obj
def config_set_expander(ctx_obj, name):
    """Set the query expansion model"""
    _set(ctx_obj, "expander_model", name, "Expander model")


@config_group.command(name="set-reranker")
@click.argument("name")
@click.pass_obj
def config_set_reranker(ctx_obj, name):
    """Set the reranking model"""
    _set(ctx_obj, "reranker_model", name, "Reranker model")


@config_group.command(name="get")
@click.pass_obj
def config_get(ctx_obj):
    """Show stored and effective configuration"""
    cfg = ctx_obj.config
    effective = ctx_obj.settings()
    echo(f"Config file: {get_default_config_path()}")
    echo(f"ollama_host: {cfg.ollama_host or '(default)'}")
    echo(f"embed_model: {cfg.embed_model or '(default)'}")
    echo(f"expander_model: {cfg.expander_model or '(default)'}")
    echo(f"reranker_model: {cfg.reranker_model or '(default)'}")
    echo(f"effective_host: {effective.host}")
    echo(f"effective_model: {effective.embed_model}")
    echo(f"effective_expander_model: {effective.expander_model}")
    echo(f"effective_reranker_model: {effective.reranker_model}")


config_group.add_command(config_get, name="show")
