"""
xAI API Client for mcp-server-grok-chat

Handles all interactions with the xAI API including authentication, chat
completions, search-grounded responses, embeddings and the cached model
listing. Failures are surfaced immediately; there is no retry logic.
"""

import asyncio
import json
import time
from typing import Dict, List, Optional, Any, Callable, Union
from dataclasses import dataclass, field

import httpx
import structlog
from cachetools import TTLCache

logger = structlog.get_logger(__name__)

DEFAULT_BASE_URL = "https://api.x.ai/v1"
DEFAULT_TIMEOUT = 30.0
MODELS_CACHE_TTL = 300  # seconds
MODELS_CACHE_KEY = "models"


@dataclass
class ChatMessage:
    """Chat message structure"""
    role: str  # "system", "user", "assistant", "tool"
    content: Union[str, List[Dict[str, Any]], None]
    tool_calls: Optional[List[Dict[str, Any]]] = None
    tool_call_id: Optional[str] = None

    @classmethod
    def system(cls, text: str) -> "ChatMessage":
        return cls(role="system", content=text)

    @classmethod
    def user(cls, text: str) -> "ChatMessage":
        return cls(role="user", content=text)

    @classmethod
    def user_with_image(cls, text: str, image_url: str, detail: str) -> "ChatMessage":
        """User message carrying both a text part and an image reference"""
        return cls(
            role="user",
            content=[
                {"type": "text", "text": text},
                {"type": "image_url", "image_url": {"url": image_url, "detail": detail}},
            ],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "role": self.role,
            "content": self.content,
            **({"tool_calls": self.tool_calls} if self.tool_calls else {}),
            **({"tool_call_id": self.tool_call_id} if self.tool_call_id else {}),
        }


@dataclass
class ChatRequest:
    """Chat completion request"""
    model: str
    messages: List[ChatMessage]
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    response_format: Optional[Dict[str, Any]] = None
    tools: Optional[List[Dict[str, Any]]] = None

    def to_payload(self) -> Dict[str, Any]:
        """Body for /chat/completions"""
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [msg.to_dict() for msg in self.messages],
        }

        if self.temperature is not None:
            payload["temperature"] = self.temperature
        if self.max_tokens is not None:
            payload["max_tokens"] = self.max_tokens
        if self.response_format is not None:
            payload["response_format"] = self.response_format
        if self.tools:
            payload["tools"] = self.tools

        return payload

    def to_responses_payload(self) -> Dict[str, Any]:
        """Body for /responses, where server-side search tools run"""
        payload: Dict[str, Any] = {
            "model": self.model,
            "input": [msg.to_dict() for msg in self.messages],
        }

        if self.temperature is not None:
            payload["temperature"] = self.temperature
        if self.max_tokens is not None:
            payload["max_output_tokens"] = self.max_tokens
        if self.tools:
            payload["tools"] = self.tools

        return payload


@dataclass
class ChatResponse:
    """Response from chat completion"""
    id: str
    model: str
    choices: List[Dict[str, Any]]
    usage: Dict[str, int] = field(default_factory=dict)
    citations: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], model: str) -> "ChatResponse":
        choices = data.get("choices") or []
        if not isinstance(choices, list) or not all(isinstance(c, dict) for c in choices):
            raise TypeError("choices must be an array of objects")
        _completion_text(choices)

        return cls(
            id=data.get("id", "unknown"),
            model=data.get("model", model),
            choices=choices,
            usage=data.get("usage") or {},
            citations=_normalize_citations(data.get("citations")),
        )

    @classmethod
    def from_responses_dict(cls, data: Dict[str, Any], model: str) -> "ChatResponse":
        """Fold a /responses body into the chat completion shape"""
        texts = []
        annotated = []

        for item in data.get("output") or []:
            if item.get("type") != "message":
                continue
            parts = []
            for part in item.get("content") or []:
                if part.get("type") != "output_text":
                    continue
                parts.append(part.get("text", ""))
                annotated.extend(part.get("annotations") or [])
            if parts:
                texts.append("".join(parts))

        choices = []
        if texts:
            choices.append({
                "index": 0,
                "message": {"role": "assistant", "content": "\n\n".join(texts)},
                "finish_reason": data.get("status"),
            })

        usage = data.get("usage") or {}
        citations = _normalize_citations(data.get("citations"))
        if not citations:
            citations = _normalize_citations(
                [a for a in annotated if a.get("type") == "url_citation"]
            )

        return cls(
            id=data.get("id", "unknown"),
            model=data.get("model", model),
            choices=choices,
            usage={
                "prompt_tokens": usage.get("input_tokens", 0),
                "completion_tokens": usage.get("output_tokens", 0),
                "total_tokens": usage.get("total_tokens", 0),
            } if usage else {},
            citations=citations,
        )

    @property
    def text(self) -> Optional[str]:
        """Text of the first completion"""
        return _completion_text(self.choices)


def _completion_text(choices: List[Dict[str, Any]]) -> Optional[str]:
    if not choices:
        return None
    message = choices[0].get("message") or {}
    content = message.get("content")
    if content is not None and not isinstance(content, str):
        raise TypeError(f"completion content must be a string, got {type(content).__name__}")
    return content


def _normalize_citations(raw: Any) -> List[str]:
    """Citations arrive as bare URLs or as {"url": ...} objects"""
    urls: List[str] = []
    for item in raw or []:
        url = item.get("url") if isinstance(item, dict) else item
        if isinstance(url, str) and url and url not in urls:
            urls.append(url)
    return urls


@dataclass
class EmbeddingRequest:
    """Embedding request"""
    model: str
    input: Union[str, List[str]]

    def to_payload(self) -> Dict[str, Any]:
        return {"model": self.model, "input": self.input}


@dataclass
class EmbeddingData:
    """A single embedding vector"""
    index: int
    embedding: List[float]


@dataclass
class EmbeddingResponse:
    """Response from an embedding request, vectors ordered by input index"""
    model: str
    data: List[EmbeddingData]
    usage: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], model: str) -> "EmbeddingResponse":
        items = [
            EmbeddingData(
                index=item.get("index", position),
                embedding=[float(v) for v in item.get("embedding", [])],
            )
            for position, item in enumerate(data.get("data") or [])
        ]
        items.sort(key=lambda item: item.index)

        return cls(
            model=data.get("model", model),
            data=items,
            usage=data.get("usage") or {},
        )


@dataclass
class ModelInfo:
    """Information about a model"""
    id: str
    owned_by: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModelInfo":
        model_id = data["id"]
        if not isinstance(model_id, str):
            raise TypeError(f"model id must be a string, got {type(model_id).__name__}")
        return cls(id=model_id, owned_by=data.get("owned_by"))


class XaiError(Exception):
    """Base exception for xAI API failures"""
    pass


class ApiError(XaiError):
    """Upstream returned a non-success response"""

    def __init__(self, status: int, message: str, body: str = ""):
        self.status = status
        self.message = message
        self.body = body
        super().__init__(f"xAI API error ({status}): {message}")


class NetworkError(XaiError):
    """Timeout or connection failure"""
    pass


def parse_error_message(body: str) -> str:
    """
    Pull the human readable message out of the provider's error envelope.

    Handles ``{"error": "..."}``, ``{"error": {"message": "..."}}`` and
    ``{"message": "..."}``; anything else is returned as the raw body.
    """
    try:
        data = json.loads(body)
    except ValueError:
        return body.strip() or "<empty response body>"

    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, str) and error:
            return error
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
        if isinstance(data.get("message"), str):
            return data["message"]

    return body.strip()


class XaiClient:
    """
    xAI API client. One pooled HTTP connection per process, bearer auth,
    fixed timeout, and a single TTL cache slot for the model listing.
    """

    BASE_URL = DEFAULT_BASE_URL

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        cache_ttl: float = MODELS_CACHE_TTL,
        timer: Callable[[], float] = time.monotonic,
    ):
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.timeout = timeout

        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

        # Model listing cache; best effort, replaced wholesale on expiry
        self._models_cache: TTLCache = TTLCache(maxsize=1, ttl=cache_ttl, timer=timer)
        self._models_lock = asyncio.Lock()

        logger.info("xAI client initialized", base_url=self.base_url, timeout=timeout)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Close the HTTP client"""
        await self.client.aclose()

    async def request(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
        parse: Optional[Callable[[Dict[str, Any]], Any]] = None,
    ) -> Any:
        """
        Send a request to ``base_url + path`` and return the decoded JSON body,
        or ``parse(body)`` when a parser is given.

        Raises ApiError on a non-2xx status, an undecodable body or a body
        of the wrong shape, and NetworkError on timeouts and connection
        failures.
        """
        method = method.upper()
        logger.debug("xAI request", method=method, path=path)

        try:
            if method == "GET":
                response = await self.client.get(path)
            elif method == "POST":
                response = await self.client.post(path, json=body)
            else:
                raise ValueError(f"Unsupported HTTP method: {method}")
        except httpx.TimeoutException as e:
            logger.warning("xAI request timed out", path=path, timeout=self.timeout)
            raise NetworkError(f"Request to {path} timed out after {self.timeout:g}s") from e
        except httpx.TransportError as e:
            logger.warning("xAI request failed", path=path, error=str(e))
            raise NetworkError(f"HTTP request failed: {e}") from e

        if not response.is_success:
            message = parse_error_message(response.text)
            logger.warning("API request failed", status=response.status_code, path=path)
            raise ApiError(response.status_code, message, response.text)

        try:
            data = response.json()
        except ValueError as e:
            logger.warning("Malformed JSON response", status=response.status_code, path=path)
            raise ApiError(
                response.status_code, f"malformed JSON in response body: {e}", response.text
            ) from e

        if not isinstance(data, dict):
            raise ApiError(
                response.status_code,
                f"unexpected response shape: expected a JSON object, got {type(data).__name__}",
                response.text,
            )

        if parse is None:
            return data

        try:
            return parse(data)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning("Unexpected response shape", status=response.status_code, path=path)
            raise ApiError(
                response.status_code, f"unexpected response shape: {e!r}", response.text
            ) from e

    async def chat_completion(self, request: ChatRequest) -> ChatResponse:
        """Create a chat completion"""
        if not request.messages:
            raise ValueError("Messages cannot be empty")

        response = await self.request(
            "POST",
            "/chat/completions",
            request.to_payload(),
            parse=lambda data: ChatResponse.from_dict(data, request.model),
        )

        logger.debug("Chat completion received", model=response.model, usage=response.usage)
        return response

    async def search_completion(self, request: ChatRequest) -> ChatResponse:
        """Create a response with server-side search tools enabled"""
        if not request.messages:
            raise ValueError("Messages cannot be empty")

        response = await self.request(
            "POST",
            "/responses",
            request.to_responses_payload(),
            parse=lambda data: ChatResponse.from_responses_dict(data, request.model),
        )

        logger.debug(
            "Search response received",
            model=response.model,
            citations=len(response.citations),
        )
        return response

    async def embeddings(self, request: EmbeddingRequest) -> EmbeddingResponse:
        """Create embeddings for one or more input strings"""
        response = await self.request(
            "POST",
            "/embeddings",
            request.to_payload(),
            parse=lambda data: EmbeddingResponse.from_dict(data, request.model),
        )

        logger.debug("Embeddings received", model=response.model, count=len(response.data))
        return response

    async def list_models(self) -> List[ModelInfo]:
        """Get list of available models, served from cache while fresh"""
        async with self._models_lock:
            cached = self._models_cache.get(MODELS_CACHE_KEY)
            if cached is not None:
                logger.debug("list_models: returning cached result")
                return list(cached)

            logger.debug("list_models: fetching from API")
            models = await self.request(
                "GET",
                "/models",
                parse=lambda data: tuple(
                    ModelInfo.from_dict(item) for item in data.get("data") or []
                ),
            )

            self._models_cache[MODELS_CACHE_KEY] = models
            logger.info("Retrieved models", count=len(models))
            return list(models)

    def invalidate_models_cache(self):
        """Drop the cached model listing"""
        self._models_cache.clear()
