"""
Input validation for mcp-server-grok-chat

Every check here runs before a request is built, so a rejected parameter
never reaches the network.
"""

import json
import math
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urlparse

import structlog

logger = structlog.get_logger(__name__)

TEMPERATURE_MIN = 0.0
TEMPERATURE_MAX = 2.0

VALID_ROLES = ("system", "user", "assistant", "tool")
ALLOWED_URL_SCHEMES = ("http", "https")


class ValidationError(ValueError):
    """Tool parameter rejected"""
    pass


def validate_temperature(temperature: Optional[float]) -> None:
    """Temperature must be a finite number between 0.0 and 2.0"""
    if temperature is None:
        return

    if (
        isinstance(temperature, bool)
        or not isinstance(temperature, (int, float))
        or not math.isfinite(temperature)
        or not TEMPERATURE_MIN <= temperature <= TEMPERATURE_MAX
    ):
        raise ValidationError(
            f"temperature must be a finite number between {TEMPERATURE_MIN} and "
            f"{TEMPERATURE_MAX}, got {temperature}"
        )


def validate_image_url(url: str) -> None:
    """Image URLs must be absolute http(s) URLs"""
    parsed = urlparse(url)

    if parsed.scheme.lower() not in ALLOWED_URL_SCHEMES:
        logger.warning("Invalid URL scheme", scheme=parsed.scheme)
        raise ValidationError("image_url must start with http:// or https://")

    if not parsed.netloc:
        raise ValidationError(f"image_url has no host: {url}")


def _load_json(raw: str, what: str, hint: str = "") -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid {what} JSON{hint}: {e}")


def parse_messages(raw: str) -> List[Dict[str, Any]]:
    """
    Parse conversation history: a JSON array of ``{role, content}`` objects.

    Roles must be one of system, user, assistant or tool. Optional
    ``tool_calls`` / ``tool_call_id`` keys are carried through.
    """
    messages = _load_json(raw, "messages")

    if not isinstance(messages, list):
        raise ValidationError("messages must be a JSON array of {role, content} objects")

    for i, message in enumerate(messages):
        if not isinstance(message, dict):
            raise ValidationError(f"messages[{i}] must be an object")

        if "role" not in message or "content" not in message:
            raise ValidationError(f"messages[{i}] must have 'role' and 'content' fields")

        role = message["role"]
        if role not in VALID_ROLES:
            raise ValidationError(
                f"Invalid role '{role}' in messages, must be one of: {', '.join(VALID_ROLES)}"
            )

        content = message["content"]
        if content is not None and not isinstance(content, (str, list)):
            raise ValidationError(f"messages[{i}].content must be a string or an array")

    return messages


def parse_json_schema(raw: str) -> Union[Dict[str, Any], bool]:
    """Structured output schema: any well-formed JSON Schema document"""
    schema = _load_json(raw, "response_schema")

    if not isinstance(schema, (dict, bool)):
        raise ValidationError("response_schema must be a JSON object or boolean")

    return schema


def parse_embedding_input(raw: str) -> Union[str, List[str]]:
    """Embedding input: a JSON string or a non-empty JSON array of strings"""
    value = _load_json(
        raw, "input", hint=" (must be a quoted string or array of strings)"
    )

    if isinstance(value, str):
        return value

    if isinstance(value, list):
        if not value:
            raise ValidationError("input array must not be empty")
        if not all(isinstance(item, str) for item in value):
            raise ValidationError("input array must contain only strings")
        return value

    raise ValidationError("input must be a JSON string or an array of strings")
