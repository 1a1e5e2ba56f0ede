"""
Core module for mcp-server-grok-chat

Contains the xAI API client and configuration loading.
"""

from .api import XaiClient, XaiError, ApiError, NetworkError
from .config import Config, ConfigError, load_config

__all__ = [
    "XaiClient",
    "XaiError",
    "ApiError",
    "NetworkError",
    "Config",
    "ConfigError",
    "load_config",
]
