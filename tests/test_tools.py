import pytest

from conftest import chat_body
from grok_chat_mcp.tools.chat_tools import (
    DEFAULT_MODEL,
    build_chat_request,
    build_messages,
    search_tools,
)
from grok_chat_mcp.tools.embedding_tools import DEFAULT_EMBEDDING_MODEL
from grok_chat_mcp.core.api import ChatMessage
from grok_chat_mcp.utils.security import ValidationError


# -- build_messages ---------------------------------------------------------

def test_build_messages_prompt_only():
    messages = build_messages(None, None, "hello")

    assert [(m.role, m.content) for m in messages] == [("user", "hello")]


def test_build_messages_order():
    messages = build_messages(
        "be terse", '[{"role": "user", "content": "hi"}]', "bye"
    )

    assert [(m.role, m.content) for m in messages] == [
        ("system", "be terse"),
        ("user", "hi"),
        ("user", "bye"),
    ]


def test_build_messages_keeps_history_order():
    history = (
        '[{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hey"},'
        ' {"role": "tool", "content": "42", "tool_call_id": "call_1"}]'
    )

    messages = build_messages(None, history, "next")

    assert [m.role for m in messages] == ["user", "assistant", "tool", "user"]
    assert messages[2].tool_call_id == "call_1"


def test_build_messages_invalid_json():
    with pytest.raises(ValidationError, match="Invalid messages JSON"):
        build_messages(None, "{not valid", "hello")


# -- build_chat_request -----------------------------------------------------

def test_build_chat_request_defaults():
    request = build_chat_request(None, [ChatMessage.user("hello")])

    assert request.model == DEFAULT_MODEL
    assert request.temperature is None
    assert request.response_format is None
    assert request.tools is None


def test_build_chat_request_with_schema():
    schema = '{"type": "object", "properties": {"name": {"type": "string"}}}'

    request = build_chat_request("grok-3", [ChatMessage.user("hello")], response_schema=schema)

    assert request.model == "grok-3"
    assert request.response_format == {
        "type": "json_schema",
        "json_schema": {
            "name": "structured_output",
            "strict": True,
            "schema": {"type": "object", "properties": {"name": {"type": "string"}}},
        },
    }


def test_build_chat_request_invalid_schema():
    with pytest.raises(ValidationError):
        build_chat_request(None, [ChatMessage.user("hello")], response_schema="not json")


# -- search_tools -----------------------------------------------------------

def test_search_tools_web_only():
    assert search_tools("web") == [{"type": "web_search"}]


def test_search_tools_x_only():
    assert search_tools("x") == [{"type": "x_search"}]


def test_search_tools_both():
    assert search_tools("both") == [{"type": "web_search"}, {"type": "x_search"}]


# -- chat -------------------------------------------------------------------

@pytest.mark.asyncio
async def test_chat_returns_first_completion_text(registry, xai):
    body = chat_body("first")
    body["choices"].append({"index": 1, "message": {"role": "assistant", "content": "second"}})
    xai.add("POST", "/chat/completions", json_body=body)

    result = await registry.execute_tool(
        "chat",
        prompt="bye",
        system_prompt="be terse",
        messages='[{"role": "user", "content": "hi"}]',
        temperature=0.5,
        max_tokens=100,
    )

    assert result.success, result.error
    assert result.result == "first"

    payload = xai.last_json()
    assert payload["model"] == DEFAULT_MODEL
    assert payload["messages"] == [
        {"role": "system", "content": "be terse"},
        {"role": "user", "content": "hi"},
        {"role": "user", "content": "bye"},
    ]
    assert payload["temperature"] == 0.5
    assert payload["max_tokens"] == 100


@pytest.mark.asyncio
async def test_chat_structured_output(registry, xai):
    xai.add("POST", "/chat/completions", json_body=chat_body('{"name": "Ada"}'))

    result = await registry.execute_tool(
        "chat", prompt="who?", response_schema='{"type": "object"}', model="grok-3"
    )

    assert result.result == '{"name": "Ada"}'
    payload = xai.last_json()
    assert payload["model"] == "grok-3"
    assert payload["response_format"]["json_schema"]["schema"] == {"type": "object"}


@pytest.mark.asyncio
async def test_chat_malformed_messages_never_hits_network(registry, xai):
    result = await registry.execute_tool("chat", prompt="hello", messages="{not valid")

    assert not result.success
    assert "Invalid messages JSON" in result.error
    assert xai.requests == []


@pytest.mark.asyncio
@pytest.mark.parametrize("temperature", [2.5, -1.0])
async def test_chat_temperature_out_of_range(registry, xai, temperature):
    result = await registry.execute_tool("chat", prompt="hello", temperature=temperature)

    assert not result.success
    assert "temperature" in result.error
    assert xai.requests == []


@pytest.mark.asyncio
async def test_chat_unauthorized_is_failure_result(registry, xai):
    xai.add(
        "POST",
        "/chat/completions",
        status=401,
        json_body={"error": {"message": "Incorrect API key provided"}},
    )

    result = await registry.execute_tool("chat", prompt="hello")

    assert not result.success
    assert result.error == "xAI API error (401): Incorrect API key provided"


@pytest.mark.asyncio
async def test_chat_without_choices_is_failure(registry, xai):
    xai.add("POST", "/chat/completions", json_body={"choices": []})

    result = await registry.execute_tool("chat", prompt="hello")

    assert not result.success
    assert "no completion" in result.error


# -- chat_with_vision -------------------------------------------------------

@pytest.mark.asyncio
async def test_vision_builds_image_message(registry, xai):
    xai.add("POST", "/chat/completions", json_body=chat_body("A cat."))

    result = await registry.execute_tool(
        "chat_with_vision", prompt="What is this?", image_url="https://example.com/cat.png"
    )

    assert result.result == "A cat."
    assert xai.last_json()["messages"] == [{
        "role": "user",
        "content": [
            {"type": "text", "text": "What is this?"},
            {"type": "image_url", "image_url": {"url": "https://example.com/cat.png", "detail": "high"}},
        ],
    }]


@pytest.mark.asyncio
async def test_vision_low_detail(registry, xai):
    xai.add("POST", "/chat/completions", json_body=chat_body("ok"))

    await registry.execute_tool(
        "chat_with_vision", prompt="p", image_url="http://example.com/a.jpg", detail="low"
    )

    content = xai.last_json()["messages"][0]["content"]
    assert content[1]["image_url"]["detail"] == "low"


@pytest.mark.asyncio
async def test_vision_rejects_ftp_before_request(registry, xai):
    result = await registry.execute_tool(
        "chat_with_vision", prompt="p", image_url="ftp://x.com/a.png"
    )

    assert not result.success
    assert "http:// or https://" in result.error
    assert xai.requests == []


@pytest.mark.asyncio
async def test_vision_rejects_unknown_detail(registry, xai):
    result = await registry.execute_tool(
        "chat_with_vision", prompt="p", image_url="https://x.com/a.png", detail="auto"
    )

    assert not result.success
    assert "detail" in result.error
    assert xai.requests == []


# -- chat_with_search -------------------------------------------------------

def responses_body(text="Grounded answer", citations=None):
    body = {
        "id": "resp-1",
        "status": "completed",
        "output": [{
            "type": "message",
            "role": "assistant",
            "content": [{"type": "output_text", "text": text}],
        }],
    }
    if citations is not None:
        body["citations"] = citations
    return body


@pytest.mark.asyncio
async def test_search_x_only(registry, xai):
    xai.add("POST", "/responses", json_body=responses_body())

    result = await registry.execute_tool("chat_with_search", prompt="news?", search_type="x")

    assert result.success, result.error
    assert xai.last_json()["tools"] == [{"type": "x_search"}]


@pytest.mark.asyncio
async def test_search_defaults_to_both(registry, xai):
    xai.add("POST", "/responses", json_body=responses_body())

    await registry.execute_tool("chat_with_search", prompt="news?", system_prompt="cite")

    payload = xai.last_json()
    assert payload["tools"] == [{"type": "web_search"}, {"type": "x_search"}]
    assert payload["input"] == [
        {"role": "system", "content": "cite"},
        {"role": "user", "content": "news?"},
    ]
    assert xai.calls("POST", "/chat/completions") == 0


@pytest.mark.asyncio
async def test_search_appends_sources(registry, xai):
    xai.add("POST", "/responses", json_body=responses_body(
        "Answer", citations=["https://a.example", "https://b.example"]
    ))

    result = await registry.execute_tool("chat_with_search", prompt="q", search_type="web")

    assert result.result == "Answer\n\nSources:\n- https://a.example\n- https://b.example"


@pytest.mark.asyncio
async def test_search_rejects_unknown_type(registry, xai):
    result = await registry.execute_tool("chat_with_search", prompt="q", search_type="news")

    assert not result.success
    assert "search_type" in result.error
    assert xai.requests == []


# -- embedding --------------------------------------------------------------

@pytest.mark.asyncio
async def test_embedding_two_inputs_two_vectors(registry, xai):
    xai.add("POST", "/embeddings", json_body={
        "data": [
            {"index": 0, "embedding": [0.1, 0.2, 0.3, 0.4, 0.5, 0.6]},
            {"index": 1, "embedding": [0.9, 0.8]},
        ],
        "usage": {"prompt_tokens": 2, "total_tokens": 2},
    })

    result = await registry.execute_tool("embedding", input='["a", "b"]')

    assert result.success, result.error
    assert result.result.splitlines() == [
        "[0] dim=6 [0.100000, 0.200000, 0.300000, 0.400000, 0.500000, ...]",
        "[1] dim=2 [0.900000, 0.800000]",
        "[tokens: 2 prompt, 2 total]",
    ]
    assert xai.last_json() == {"model": DEFAULT_EMBEDDING_MODEL, "input": ["a", "b"]}


@pytest.mark.asyncio
async def test_embedding_single_string(registry, xai):
    xai.add("POST", "/embeddings", json_body={"data": [{"index": 0, "embedding": [1.0]}]})

    result = await registry.execute_tool("embedding", input='"hello"', model="custom-emb")

    assert result.result == "[0] dim=1 [1.000000]"
    assert xai.last_json() == {"model": "custom-emb", "input": "hello"}


@pytest.mark.asyncio
async def test_embedding_malformed_input(registry, xai):
    result = await registry.execute_tool("embedding", input="[not json")

    assert not result.success
    assert "Invalid input JSON" in result.error
    assert xai.requests == []


# -- list_models ------------------------------------------------------------

@pytest.mark.asyncio
async def test_list_models_formatting_and_cache(registry, xai):
    xai.add("GET", "/models", json_body={
        "data": [{"id": "grok-3", "owned_by": "xai"}, {"id": "grok-2-vision", "owned_by": "x-corp"}, {"id": "grok-3-mini"}],
    })

    first = await registry.execute_tool("list_models")
    second = await registry.execute_tool("list_models")

    assert first.result == "- grok-3 (xai)\n- grok-2-vision (x-corp)\n- grok-3-mini (xai)"
    assert second.result == first.result
    assert xai.calls("GET", "/models") == 1


@pytest.mark.asyncio
async def test_list_models_network_failure(registry, xai):
    xai.add("GET", "/models", status=503, text="upstream down")

    result = await registry.execute_tool("list_models")

    assert not result.success
    assert result.error == "xAI API error (503): upstream down"


# -- registry ---------------------------------------------------------------

def test_registry_order_and_schemas(registry):
    definitions = registry.get_tool_definitions()

    assert [d.name for d in definitions] == [
        "chat", "chat_with_vision", "chat_with_search", "embedding", "list_models",
    ]
    vision = definitions[1].parameters
    assert vision["required"] == ["prompt", "image_url"]
    assert vision["properties"]["detail"]["enum"] == ["low", "high"]
    assert definitions[4].parameters["properties"] == {}


@pytest.mark.asyncio
async def test_unknown_tool(registry, xai):
    result = await registry.execute_tool("summarize", prompt="hi")

    assert not result.success
    assert result.error == "Tool 'summarize' not found"


@pytest.mark.asyncio
async def test_disabled_tool(registry, xai):
    registry.get_tool("embedding").enabled = False

    result = await registry.execute_tool("embedding", input='"x"')

    assert result.error == "Tool 'embedding' is disabled"
    assert "embedding" not in [d.name for d in registry.get_tool_definitions()]


@pytest.mark.asyncio
async def test_missing_required_parameter(registry, xai):
    result = await registry.execute_tool("chat")

    assert result.error == "Missing required parameter: prompt"
    assert xai.requests == []


@pytest.mark.asyncio
async def test_wrong_parameter_type(registry, xai):
    result = await registry.execute_tool("chat", prompt="hi", max_tokens="100")

    assert not result.success
    assert "max_tokens" in result.error
    assert xai.requests == []


@pytest.mark.asyncio
async def test_unknown_parameter_ignored(registry, xai):
    xai.add("POST", "/chat/completions", json_body=chat_body("ok"))

    result = await registry.execute_tool("chat", prompt="hi", top_p=0.3, model=None)

    assert result.success, result.error
    assert "top_p" not in xai.last_json()
    assert xai.last_json()["model"] == DEFAULT_MODEL


@pytest.mark.asyncio
async def test_registry_stats(registry, xai):
    xai.add("POST", "/chat/completions", json_body=chat_body("ok"))

    await registry.execute_tool("chat", prompt="hi")
    await registry.execute_tool("chat")

    stats = registry.get_registry_stats()
    chat_stats = next(s for s in stats["tools"] if s["name"] == "chat")
    assert stats["total_tools"] == 5
    assert chat_stats["execution_count"] == 2
    assert chat_stats["error_count"] == 1
    assert chat_stats["success_rate"] == 0.5


# -- empty and malformed inputs ---------------------------------------------

@pytest.mark.asyncio
@pytest.mark.parametrize("field, match", [
    ("messages", "Invalid messages JSON"),
    ("response_schema", "Invalid response_schema JSON"),
])
async def test_chat_empty_json_parameter_rejected(registry, xai, field, match):
    result = await registry.execute_tool("chat", prompt="hi", **{field: ""})

    assert not result.success
    assert match in result.error
    assert xai.requests == []


@pytest.mark.asyncio
async def test_chat_empty_system_prompt_still_sent(registry, xai):
    xai.add("POST", "/chat/completions", json_body=chat_body("ok"))

    await registry.execute_tool("chat", prompt="hi", system_prompt="")

    assert xai.last_json()["messages"] == [
        {"role": "system", "content": ""},
        {"role": "user", "content": "hi"},
    ]


@pytest.mark.asyncio
async def test_vision_rejects_leading_whitespace_url(registry, xai):
    result = await registry.execute_tool(
        "chat_with_vision", prompt="p", image_url=" https://example.com/cat.png"
    )

    assert not result.success
    assert "http:// or https://" in result.error
    assert xai.requests == []


@pytest.mark.asyncio
async def test_list_models_bad_shape_is_failure(registry, xai):
    xai.add("GET", "/models", json_body={"data": [{"name": "grok-3"}]})

    result = await registry.execute_tool("list_models")

    assert not result.success
    assert "unexpected response shape" in result.error
    assert registry.get_tool("list_models").get_stats()["error_count"] == 1


@pytest.mark.asyncio
async def test_chat_list_body_is_failure(registry, xai):
    xai.add("POST", "/chat/completions", json_body=[{"choices": []}])

    result = await registry.execute_tool("chat", prompt="hi")

    assert not result.success
    assert "expected a JSON object" in result.error


@pytest.mark.asyncio
async def test_embedding_non_numeric_vector_is_failure(registry, xai):
    xai.add("POST", "/embeddings", json_body={"data": [{"index": 0, "embedding": ["x"]}]})

    result = await registry.execute_tool("embedding", input='"a"')

    assert not result.success
    assert "unexpected response shape" in result.error


@pytest.mark.asyncio
async def test_unexpected_exception_becomes_failed_result(registry, monkeypatch):
    tool = registry.get_tool("list_models")

    async def broken():
        raise RuntimeError("boom")

    monkeypatch.setattr(tool, "execute", broken)

    result = await registry.execute_tool("list_models")

    assert not result.success
    assert result.error == "Tool execution failed: boom"
    assert tool.get_stats()["execution_count"] == 1
