"""
Chat tools for mcp-server-grok-chat

Plain chat, image analysis, and search-grounded chat. All three build a
ChatRequest, send it through ``ChatTool.do_chat`` and return the first
completion's text.
"""

from typing import Any, Dict, List, Optional

import structlog

from .base import BaseTool, ToolCategory, ToolParameter, ToolResult
from ..core.api import ChatMessage, ChatRequest, ChatResponse, XaiError
from ..utils.security import (
    TEMPERATURE_MAX,
    TEMPERATURE_MIN,
    parse_json_schema,
    parse_messages,
    validate_image_url,
    validate_temperature,
)

logger = structlog.get_logger(__name__)

DEFAULT_MODEL = "grok-4-1-fast-non-reasoning"

IMAGE_DETAILS = ["low", "high"]
DEFAULT_IMAGE_DETAIL = "high"

SEARCH_TYPES = ["web", "x", "both"]
DEFAULT_SEARCH_TYPE = "both"


def build_messages(
    system_prompt: Optional[str],
    history_json: Optional[str],
    prompt: str,
) -> List[ChatMessage]:
    """
    Assemble the conversation: system prompt (if any), then the prior turns
    from ``history_json`` (if any), then ``prompt`` as the final user message.
    """
    messages = []

    if system_prompt is not None:
        messages.append(ChatMessage.system(system_prompt))

    if history_json is not None:
        for entry in parse_messages(history_json):
            messages.append(ChatMessage(
                role=entry["role"],
                content=entry["content"],
                tool_calls=entry.get("tool_calls"),
                tool_call_id=entry.get("tool_call_id"),
            ))

    messages.append(ChatMessage.user(prompt))
    return messages


def build_chat_request(
    model: Optional[str],
    messages: List[ChatMessage],
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
    response_schema: Optional[str] = None,
    tools: Optional[List[Dict[str, Any]]] = None,
) -> ChatRequest:
    """Build a ChatRequest with the shared optional fields applied"""
    request = ChatRequest(
        model=model or DEFAULT_MODEL,
        messages=messages,
        temperature=temperature,
        max_tokens=max_tokens,
        tools=tools,
    )

    if response_schema is not None:
        request.response_format = {
            "type": "json_schema",
            "json_schema": {
                "name": "structured_output",
                "strict": True,
                "schema": parse_json_schema(response_schema),
            },
        }

    return request


def search_tools(search_type: str) -> List[Dict[str, Any]]:
    """Map a search type onto the provider's search tool activations"""
    tools = []
    if search_type in ("web", "both"):
        tools.append({"type": "web_search"})
    if search_type in ("x", "both"):
        tools.append({"type": "x_search"})
    return tools


def _model_param(description: str) -> ToolParameter:
    return ToolParameter(
        name="model",
        type="string",
        description=description,
        required=False,
    )


def _temperature_param() -> ToolParameter:
    return ToolParameter(
        name="temperature",
        type="number",
        description=f"Sampling temperature ({TEMPERATURE_MIN} - {TEMPERATURE_MAX})",
        required=False,
        min_value=TEMPERATURE_MIN,
        max_value=TEMPERATURE_MAX,
    )


def _max_tokens_param() -> ToolParameter:
    return ToolParameter(
        name="max_tokens",
        type="integer",
        description="Maximum tokens to generate",
        required=False,
        min_value=1,
    )


class ChatTool(BaseTool):
    """Send a chat completion request to Grok"""

    @property
    def name(self) -> str:
        return "chat"

    @property
    def description(self) -> str:
        return (
            "Send a chat completion request to Grok. Supports multi-turn conversations, "
            "structured output via JSON schema, and model selection."
        )

    @property
    def category(self) -> ToolCategory:
        return ToolCategory.CHAT

    def get_parameters(self) -> List[ToolParameter]:
        return [
            ToolParameter(
                name="prompt",
                type="string",
                description="The user message / prompt to send to Grok",
            ),
            ToolParameter(
                name="system_prompt",
                type="string",
                description="Optional system prompt to set context/behaviour",
                required=False,
            ),
            ToolParameter(
                name="messages",
                type="string",
                description=(
                    "Full conversation history as JSON array of {role, content} objects. "
                    "When provided, 'prompt' is appended as the final user message."
                ),
                required=False,
            ),
            _model_param(
                f"Model to use. Defaults to {DEFAULT_MODEL}. "
                "Options: grok-4-1-fast-reasoning, grok-4-1-fast-non-reasoning, "
                "grok-4-fast-reasoning, grok-4-0709, grok-3, grok-3-mini, grok-code-fast-1"
            ),
            _temperature_param(),
            _max_tokens_param(),
            ToolParameter(
                name="response_schema",
                type="string",
                description=(
                    "Optional JSON schema string to enforce structured output. "
                    "The model response will conform to this schema."
                ),
                required=False,
            ),
        ]

    async def send(self, request: ChatRequest) -> ChatResponse:
        return await self.client.chat_completion(request)

    async def do_chat(self, request: ChatRequest) -> str:
        """Send the request and return the first completion's text"""
        response = await self.send(request)

        text = response.text
        if text is None:
            raise XaiError("xAI API returned no completion text")

        if response.citations:
            sources = "\n".join(f"- {url}" for url in response.citations)
            text = f"{text}\n\nSources:\n{sources}"

        return text

    async def execute(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        messages: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        response_schema: Optional[str] = None,
    ) -> ToolResult:
        logger.debug("chat tool called", model=model)

        validate_temperature(temperature)
        history = build_messages(system_prompt, messages, prompt)
        request = build_chat_request(
            model, history, temperature, max_tokens, response_schema
        )

        text = await self.do_chat(request)
        return ToolResult(success=True, result=text, metadata={"model": request.model})


class VisionChatTool(ChatTool):
    """Analyse an image with Grok's vision capabilities"""

    @property
    def name(self) -> str:
        return "chat_with_vision"

    @property
    def description(self) -> str:
        return (
            "Analyse an image with Grok's vision capabilities. "
            "Provide an image URL and a text prompt."
        )

    def get_parameters(self) -> List[ToolParameter]:
        return [
            ToolParameter(
                name="prompt",
                type="string",
                description="Text prompt describing what to analyse in the image",
            ),
            ToolParameter(
                name="image_url",
                type="string",
                description="URL of the image to analyse (must be http:// or https://)",
            ),
            ToolParameter(
                name="detail",
                type="string",
                description='Image detail level: "low" or "high" (default: "high")',
                required=False,
                default=DEFAULT_IMAGE_DETAIL,
                enum=IMAGE_DETAILS,
            ),
            _model_param(
                f"Model to use. Defaults to {DEFAULT_MODEL}. Must be a vision-capable model."
            ),
            _temperature_param(),
            _max_tokens_param(),
        ]

    async def execute(
        self,
        prompt: str,
        image_url: str,
        detail: str = DEFAULT_IMAGE_DETAIL,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> ToolResult:
        logger.debug("chat_with_vision tool called", model=model, detail=detail)

        validate_image_url(image_url)
        validate_temperature(temperature)

        messages = [ChatMessage.user_with_image(prompt, image_url, detail)]
        request = build_chat_request(model, messages, temperature, max_tokens)

        text = await self.do_chat(request)
        return ToolResult(success=True, result=text, metadata={"model": request.model})


class SearchChatTool(ChatTool):
    """Chat grounded by live web and/or X search"""

    @property
    def name(self) -> str:
        return "chat_with_search"

    @property
    def description(self) -> str:
        return (
            "Chat with Grok using live web search and/or X (Twitter) search. "
            "The model will automatically search the internet to ground its response."
        )

    def get_parameters(self) -> List[ToolParameter]:
        return [
            ToolParameter(
                name="prompt",
                type="string",
                description="The user message / prompt",
            ),
            ToolParameter(
                name="system_prompt",
                type="string",
                description="Optional system prompt",
                required=False,
            ),
            ToolParameter(
                name="search_type",
                type="string",
                description=(
                    'Search type to enable: "web", "x" (X/Twitter), or "both" (default: "both")'
                ),
                required=False,
                default=DEFAULT_SEARCH_TYPE,
                enum=SEARCH_TYPES,
            ),
            _model_param(f"Model to use. Defaults to {DEFAULT_MODEL}."),
            _temperature_param(),
            _max_tokens_param(),
        ]

    async def send(self, request: ChatRequest) -> ChatResponse:
        return await self.client.search_completion(request)

    async def execute(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        search_type: str = DEFAULT_SEARCH_TYPE,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> ToolResult:
        logger.debug("chat_with_search tool called", model=model, search_type=search_type)

        validate_temperature(temperature)
        messages = build_messages(system_prompt, None, prompt)
        request = build_chat_request(
            model, messages, temperature, max_tokens, tools=search_tools(search_type)
        )

        text = await self.do_chat(request)
        return ToolResult(
            success=True,
            result=text,
            metadata={"model": request.model, "search_type": search_type},
        )
