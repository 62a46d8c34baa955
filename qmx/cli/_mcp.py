"""MCP server command."""

import click

from qmx.cli import host_option, model_option


@click.command()
@host_option
@model_option
@click.pass_obj
def mcp(ctx_obj, host, model):
    """Serve qmx tools over MCP (stdio)"""
    from qmx.server import build_mcp_server

    server = build_mcp_server(ctx_obj.db, ctx_obj.settings(host, model))
    server.run()
