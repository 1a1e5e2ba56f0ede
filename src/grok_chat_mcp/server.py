"""
MCP server for mcp-server-grok-chat

Serves the tool registry over stdio JSON-RPC. ``tools/list`` iterates the
registry; ``tools/call`` dispatches by name and reports failed tool results
as MCP error results.
"""

from typing import Any, Dict, List, Optional

import mcp.types as types
import structlog
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server

from . import __version__
from .core.api import XaiClient
from .core.config import Config
from .tools import build_registry
from .tools.base import ToolRegistry

logger = structlog.get_logger(__name__)

SERVER_NAME = "grok-chat"
INSTRUCTIONS = (
    "xAI Grok MCP server. Tools: chat, chat_with_vision, chat_with_search, "
    "embedding, list_models."
)


class ToolCallError(Exception):
    """Failed tool call, returned to the client with isError set"""
    pass


def create_server(registry: ToolRegistry) -> Server:
    """Build the MCP server around a populated registry"""
    server = Server(SERVER_NAME, version=__version__, instructions=INSTRUCTIONS)

    @server.list_tools()
    async def list_tools() -> List[types.Tool]:
        return [
            types.Tool(
                name=definition.name,
                description=definition.description,
                inputSchema=definition.parameters,
            )
            for definition in registry.get_tool_definitions()
        ]

    @server.call_tool()
    async def call_tool(name: str, arguments: Optional[Dict[str, Any]]) -> List[types.TextContent]:
        logger.debug("tools/call", tool=name)

        result = await registry.execute_tool(name, **(arguments or {}))
        logger.debug(
            "tools/call finished",
            tool=name,
            success=result.success,
            execution_time=result.execution_time,
            **result.metadata,
        )
        if not result.success:
            # The low-level server turns raised exceptions into isError results
            raise ToolCallError(result.error)

        return [types.TextContent(type="text", text=result.result or "")]

    return server


async def serve(config: Config):
    """Run the server on stdin/stdout until the client disconnects"""
    async with XaiClient(config.api_key) as client:
        registry = build_registry(client)
        server = create_server(registry)

        logger.info("starting MCP server via stdio", tools=len(registry.tools))
        async with stdio_server() as (read_stream, write_stream):
            await server.run(
                read_stream,
                write_stream,
                server.create_initialization_options(),
            )

        logger.info("MCP server stopped", **registry.get_registry_stats())
