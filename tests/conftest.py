"""
Shared fixtures: a scripted xAI endpoint behind httpx.MockTransport and a
controllable clock for the model cache.
"""

import json
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest

from grok_chat_mcp.core.api import XaiClient
from grok_chat_mcp.tools import build_registry

API_PREFIX = "/v1"


class FakeClock:
    """Monotonic clock the tests advance by hand"""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class MockXai:
    """Records every request and answers from a route table"""

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Any] = {}
        self.requests: List[httpx.Request] = []

    def add(
        self,
        method: str,
        path: str,
        status: int = 200,
        json_body: Any = None,
        text: Optional[str] = None,
        error: Optional[Exception] = None,
    ):
        self.routes[(method, API_PREFIX + path)] = (status, json_body, text, error)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"error": f"no route for {request.url.path}"})

        status, json_body, text, error = route
        if error is not None:
            raise error
        if text is not None:
            return httpx.Response(status, text=text)
        return httpx.Response(status, json=json_body)

    def calls(self, method: str, path: str) -> int:
        return sum(
            1 for r in self.requests
            if r.method == method and r.url.path == API_PREFIX + path
        )

    def last_json(self) -> Dict[str, Any]:
        return json.loads(self.requests[-1].content)


def chat_body(content: Optional[str] = "Hello back!", **extra) -> Dict[str, Any]:
    body = {
        "id": "cmpl-1",
        "model": "grok-test",
        "choices": [{
            "index": 0,
            "message": {"role": "assistant", "content": content},
            "finish_reason": "stop",
        }],
        "usage": {"prompt_tokens": 5, "completion_tokens": 3, "total_tokens": 8},
    }
    body.update(extra)
    return body


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def xai():
    return MockXai()


@pytest.fixture
def client(xai, clock):
    return XaiClient("test-key", transport=httpx.MockTransport(xai.handler), timer=clock)


@pytest.fixture
def registry(client):
    return build_registry(client)
