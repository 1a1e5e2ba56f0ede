"""
Model listing tool for mcp-server-grok-chat
"""

from typing import List

import structlog

from .base import BaseTool, ToolCategory, ToolResult
from ..core.api import ModelInfo

logger = structlog.get_logger(__name__)

DEFAULT_OWNER = "xai"


def format_models(models: List[ModelInfo]) -> str:
    if not models:
        return "No models available"
    return "\n".join(f"- {m.id} ({m.owned_by or DEFAULT_OWNER})" for m in models)


class ListModelsTool(BaseTool):
    """List available Grok models (cached for five minutes by the client)"""

    @property
    def name(self) -> str:
        return "list_models"

    @property
    def description(self) -> str:
        return "List all available Grok models and their IDs."

    @property
    def category(self) -> ToolCategory:
        return ToolCategory.MODELS

    async def execute(self) -> ToolResult:
        logger.debug("list_models tool called")
        models = await self.client.list_models()
        return ToolResult(
            success=True,
            result=format_models(models),
            metadata={"count": len(models)},
        )
