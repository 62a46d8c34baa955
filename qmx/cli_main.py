"""QMX CLI - Entry point for command line interface.

This module provides the main CLI entry point and imports all command groups
from the modular cli subpackage.
"""

import logging

import click

from qmx import __version__
from qmx.cli import Context
from qmx.cli._cleanup import cleanup
from qmx.cli._collection import collection
from qmx.cli._config import config_group
from qmx.cli._context import context
from qmx.cli._doc import get, ls, multi_get
from qmx.cli._embed import embed
from qmx.cli._index import setup, update
from qmx.cli._mcp import mcp
from qmx.cli._search import query, rerank, search, vsearch
from qmx.cli._system import doctor, status


@click.group()
@click.option("--index", "index_name", default="index", help="Named index (default: index)")
@click.option(
    "--log-level",
    default="warning",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    help="Log level",
)
@click.version_option(__version__, prog_name="qmx")
@click.pass_context
def cli(ctx, index_name, log_level):
    """QMX - Query Markup Experience"""
    logging.basicConfig(level=getattr(logging, log_level.upper()))
    ctx.obj = Context(index_name)


# Register command groups
cli.add_command(config_group)
cli.add_command(collection)
cli.add_command(context)
cli.add_command(setup)
cli.add_command(update)
cli.add_command(update, name="index")
cli.add_command(embed)
cli.add_command(embed, name="vector")
cli.add_command(cleanup)
cli.add_command(ls)
cli.add_command(search)
cli.add_command(vsearch)
cli.add_command(query)
cli.add_command(rerank)
cli.add_command(get)
cli.add_command(multi_get)
cli.add_command(status)
cli.add_command(doctor)
cli.add_command(mcp)


if __name__ == "__main__":
    cli()
