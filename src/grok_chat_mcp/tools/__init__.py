"""
Tools module for mcp-server-grok-chat

Contains the tool implementations exposed over MCP: chat, vision,
search-grounded chat, embeddings and model listing.
"""

from .base import BaseTool, ToolRegistry, ToolResult
from .chat_tools import ChatTool, VisionChatTool, SearchChatTool
from .embedding_tools import EmbeddingTool
from .model_tools import ListModelsTool
from ..core.api import XaiClient


def build_registry(client: XaiClient) -> ToolRegistry:
    """Register every tool against a shared client"""
    registry = ToolRegistry()
    for tool_class in (ChatTool, VisionChatTool, SearchChatTool, EmbeddingTool, ListModelsTool):
        registry.register_tool(tool_class(client))
    return registry


__all__ = [
    "BaseTool",
    "ToolRegistry",
    "ToolResult",
    "ChatTool",
    "VisionChatTool",
    "SearchChatTool",
    "EmbeddingTool",
    "ListModelsTool",
    "build_registry",
]
