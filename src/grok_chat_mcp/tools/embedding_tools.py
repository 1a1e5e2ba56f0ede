"""
Embedding tool for mcp-server-grok-chat
"""

from typing import List, Optional

import structlog

from .base import BaseTool, ToolCategory, ToolParameter, ToolResult
from ..core.api import EmbeddingRequest, EmbeddingResponse
from ..utils.security import parse_embedding_input

logger = structlog.get_logger(__name__)

DEFAULT_EMBEDDING_MODEL = "grok-2-text-embedding"
PREVIEW_VALUES = 5


def format_embeddings(response: EmbeddingResponse) -> str:
    """One line per vector: index, dimension and the leading values"""
    lines = []
    for item in response.data:
        preview = ", ".join(f"{v:.6f}" for v in item.embedding[:PREVIEW_VALUES])
        if len(item.embedding) > PREVIEW_VALUES:
            preview += ", ..."
        lines.append(f"[{item.index}] dim={len(item.embedding)} [{preview}]")

    usage = response.usage
    if usage:
        lines.append(
            f"[tokens: {usage.get('prompt_tokens', 0)} prompt, "
            f"{usage.get('total_tokens', 0)} total]"
        )

    return "\n".join(lines)


class EmbeddingTool(BaseTool):
    """Generate text embeddings"""

    @property
    def name(self) -> str:
        return "embedding"

    @property
    def description(self) -> str:
        return "Generate text embeddings using Grok's embedding model."

    @property
    def category(self) -> ToolCategory:
        return ToolCategory.EMBEDDINGS

    def get_parameters(self) -> List[ToolParameter]:
        return [
            ToolParameter(
                name="input",
                type="string",
                description="Text to embed as JSON: a single string or array of strings.",
            ),
            ToolParameter(
                name="model",
                type="string",
                description=f"Embedding model to use (default: {DEFAULT_EMBEDDING_MODEL})",
                required=False,
            ),
        ]

    async def execute(self, input: str, model: Optional[str] = None) -> ToolResult:
        logger.debug("embedding tool called", model=model)

        request = EmbeddingRequest(
            model=model or DEFAULT_EMBEDDING_MODEL,
            input=parse_embedding_input(input),
        )
        response = await self.client.embeddings(request)

        return ToolResult(
            success=True,
            result=format_embeddings(response),
            metadata={"model": response.model, "vectors": len(response.data)},
        )
