"""
Utils module for mcp-server-grok-chat

Contains input validation and logging helpers.
"""

from .security import ValidationError, validate_temperature

__all__ = [
    "ValidationError",
    "validate_temperature",
]
