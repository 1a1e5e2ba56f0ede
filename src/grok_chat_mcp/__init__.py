"""
mcp-server-grok-chat - xAI Grok over MCP

Exposes the xAI Grok API (chat, vision, search-grounded chat, embeddings
and model listing) as tools callable over the Model Context Protocol.
"""

__version__ = "0.1.0"

from .core.api import XaiClient
from .core.config import Config, load_config

__all__ = [
    "XaiClient",
    "Config",
    "load_config",
]
