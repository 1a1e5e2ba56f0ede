"""
Main CLI interface for mcp-server-grok-chat

Starts the MCP stdio server, plus a couple of inspection commands. stdout
belongs to the JSON-RPC transport while serving, so logs and errors go to
stderr.
"""

import asyncio
import os
import sys
from pathlib import Path
from typing import Optional

import click
import structlog
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table
from rich.text import Text

from . import __version__
from .core.api import XaiClient
from .core.config import Config, ConfigError, config_path, load_config
from .server import serve as serve_stdio
from .tools import build_registry
from .utils.logging import setup_logging

LOG_LEVEL_ENV = "GROK_CHAT_LOG_LEVEL"

console = Console()
err_console = Console(stderr=True)
logger = structlog.get_logger(__name__)


def load_config_or_exit(path: Optional[Path]) -> Config:
    """Load configuration, exiting non-zero on failure"""
    try:
        return load_config(path)
    except ConfigError as e:
        logger.error("Configuration error", error=str(e))
        err_console.print(Text(f"Configuration error: {e}", style="red"))
        sys.exit(1)


@click.group(invoke_without_command=True)
@click.option('--config', '-c', type=click.Path(dir_okay=False, path_type=Path),
              help='Configuration file path')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--debug', is_flag=True, help='Enable debug logging')
@click.version_option(__version__, prog_name="grok-chat-mcp")
@click.pass_context
def main(ctx, config: Optional[Path], verbose: bool, debug: bool):
    """xAI Grok MCP server

    Exposes Grok chat, vision, search, embeddings and model listing as MCP
    tools over stdio. Runs the server when no command is given.
    """
    load_dotenv()

    log_level = "DEBUG" if debug else ("INFO" if verbose else os.getenv(LOG_LEVEL_ENV, "WARNING"))
    setup_logging(log_level)

    ctx.ensure_object(dict)
    ctx.obj['config_path'] = config

    if ctx.invoked_subcommand is None:
        ctx.invoke(serve)


@main.command()
@click.pass_context
def serve(ctx):
    """Run the MCP server on stdio (default)"""
    app_config = load_config_or_exit(ctx.obj.get('config_path'))

    logger.info("loaded config", path=str(app_config.path))
    try:
        asyncio.run(serve_stdio(app_config))
    except KeyboardInterrupt:
        logger.info("interrupted, shutting down")


@main.command()
def tools():
    """List the tools this server exposes"""
    definitions = asyncio.run(_tool_definitions())

    table = Table(title="Grok MCP Tools")
    table.add_column("Tool", style="cyan", no_wrap=True)
    table.add_column("Category", style="magenta")
    table.add_column("Parameters", style="green")
    table.add_column("Description")

    for definition in definitions:
        required = set(definition.parameters.get("required", []))
        params = ", ".join(
            f"{name}*" if name in required else name
            for name in definition.parameters.get("properties", {})
        )
        table.add_row(
            definition.name, definition.category.value, params or "-", definition.description
        )

    console.print(table)
    console.print("[dim]* required[/dim]")


async def _tool_definitions():
    # Definitions never touch the network; the client is only a constructor argument
    async with XaiClient(api_key="") as client:
        return build_registry(client).get_tool_definitions()


@main.command("config-path")
@click.pass_context
def show_config_path(ctx):
    """Print the config file location"""
    click.echo(str(ctx.obj.get('config_path') or config_path()))


if __name__ == "__main__":
    main()
