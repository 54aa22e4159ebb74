"""Anthropic <-> OpenAI Messages translation.

This module translates between Anthropic Messages API format and OpenAI Chat
Completions API format, enabling the proxy to serve Anthropic-format clients
from an OpenAI-compatible backend.

Key mappings:
- Anthropic system (top-level) -> OpenAI system messages
- Anthropic content blocks -> OpenAI content string / tool_calls / tool messages
- Anthropic tools -> OpenAI functions/tools (with sanitized schemas)
- OpenAI finish_reason -> Anthropic stop_reason

Inbound payloads are loosely shaped JSON. Nothing in the request direction
raises on an unexpected shape: odd content degrades to an empty string and
empty messages are dropped.
"""

from __future__ import annotations

import json
import logging
import secrets
import string
from typing import TYPE_CHECKING, Any, Mapping

from ..core.exceptions import BackendPayloadError, describe_backend_error
from .schema import strip_uri_format
from .types import AnthropicResponse, ChatCompletionRequest, ChatMessage, ChatTool, ToolUsePart

if TYPE_CHECKING:
    from ..config_loader import ProxySettings

logger = logging.getLogger("anthropic-proxy")

# Tools the backend cannot execute; they are never forwarded.
DENIED_TOOL_NAMES = frozenset({"BatchTool"})

MESSAGE_ID_PREFIX = "msg_"
BACKEND_ID_PREFIXES = ("chatcmpl-", "chatcmpl")

_ID_ALPHABET = string.ascii_lowercase + string.digits


def new_message_id() -> str:
    """Generate a random Anthropic-style message id."""
    return MESSAGE_ID_PREFIX + "".join(secrets.choice(_ID_ALPHABET) for _ in range(24))


def normalize_content(content: Any) -> str:
    """Flatten message content into a single string.

    - str: returned verbatim
    - list: the ``text`` of every part joined with a single space; parts
      without usable text contribute an empty string
    - anything else (None, numbers, mappings): empty string
    """
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return " ".join(_part_text(part) for part in content)
    return ""


def _part_text(part: Any) -> str:
    text = part.get("text") if isinstance(part, Mapping) else None
    return str(text) if text else ""


def count_words(text: str) -> int:
    """Whitespace word count, used as a token estimate when usage is missing."""
    return len(text.split())


def _select_model(payload: Mapping[str, Any], settings: "ProxySettings") -> str:
    thinking = payload.get("thinking")
    if isinstance(thinking, Mapping) and thinking.get("type") == "disabled":
        thinking = None
    return settings.reasoning_model if thinking else settings.completion_model


def _convert_system_to_openai(system: Any) -> list[ChatMessage]:
    """Convert Anthropic top-level system to OpenAI system messages.

    Anthropic allows system as a string or an array of entries; each entry
    becomes its own system message.
    """
    if isinstance(system, str):
        return [{"role": "system", "content": system}] if system else []
    if not isinstance(system, list):
        return []

    messages: list[ChatMessage] = []
    for entry in system:
        if not isinstance(entry, Mapping):
            continue
        normalized = normalize_content(entry.get("text") or entry.get("content"))
        if normalized:
            messages.append({"role": "system", "content": normalized})
    return messages


def _convert_tool_use(part: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "function": {
            "type": "function",
            "id": part.get("id"),
            "function": {
                "name": part.get("name"),
                "parameters": part.get("input"),
            },
        }
    }


def _convert_message(msg: Mapping[str, Any]) -> list[ChatMessage]:
    """Convert one Anthropic message into zero or more OpenAI messages.

    Tool results are not merged into the message; each one becomes a sibling
    ``tool`` message placed right after it.
    """
    content = msg.get("content")
    parts = [part for part in content if isinstance(part, Mapping)] if isinstance(content, list) else []

    converted: list[ChatMessage] = []

    new_msg: ChatMessage = {"role": msg.get("role")}
    normalized = normalize_content(content)
    if normalized:
        new_msg["content"] = normalized
    tool_calls = [_convert_tool_use(part) for part in parts if part.get("type") == "tool_use"]
    if tool_calls:
        new_msg["tool_calls"] = tool_calls
    if "content" in new_msg or "tool_calls" in new_msg:
        converted.append(new_msg)

    for tool_result in parts:
        if tool_result.get("type") != "tool_result":
            continue
        converted.append({
            "role": "tool",
            "content": tool_result.get("text") or tool_result.get("content") or "",
            "tool_call_id": tool_result.get("tool_use_id"),
        })

    return converted


def _convert_tools(tools: Any) -> list[ChatTool]:
    """Convert Anthropic tools to OpenAI format.

    Anthropic: {"name": "...", "description": "...", "input_schema": {...}}
    OpenAI: {"type": "function", "function": {"name": "...", "description": "...", "parameters": {...}}}
    """
    if not isinstance(tools, list):
        return []

    openai_tools = []
    for tool in tools:
        if not isinstance(tool, Mapping):
            continue
        if tool.get("name") in DENIED_TOOL_NAMES:
            logger.debug(f"Dropping unsupported tool {tool.get('name')}")
            continue
        openai_tools.append({
            "type": "function",
            "function": {
                "name": tool.get("name"),
                "description": tool.get("description"),
                "parameters": strip_uri_format(tool.get("input_schema")),
            },
        })
    return openai_tools


def messages_to_chat_completions(
    payload: Mapping[str, Any],
    settings: "ProxySettings",
) -> ChatCompletionRequest:
    """Translate an Anthropic Messages request to OpenAI Chat Completions.

    Args:
        payload: Anthropic Messages API request body
        settings: Proxy settings, used to pick the backend model

    Returns:
        OpenAI Chat Completions API request body
    """
    openai_messages = _convert_system_to_openai(payload.get("system"))

    anthropic_messages = payload.get("messages")
    if isinstance(anthropic_messages, list):
        for msg in anthropic_messages:
            if isinstance(msg, Mapping):
                openai_messages.extend(_convert_message(msg))

    temperature = payload.get("temperature")
    result: ChatCompletionRequest = {
        "model": _select_model(payload, settings),
        "messages": openai_messages,
        "temperature": 1 if temperature is None else temperature,
        "stream": payload.get("stream") is True,
    }
    if payload.get("max_tokens") is not None:
        result["max_tokens"] = payload["max_tokens"]

    tools = _convert_tools(payload.get("tools"))
    if tools:
        result["tools"] = tools

    return result


def convert_stop_reason(finish_reason: str | None) -> str:
    """Convert OpenAI finish_reason to Anthropic stop_reason."""
    mapping = {
        "tool_calls": "tool_use",
        "stop": "end_turn",
        "length": "max_tokens",
    }
    return mapping.get(finish_reason, "end_turn") if isinstance(finish_reason, str) else "end_turn"


def _message_id_from(openai_id: Any) -> str:
    if not openai_id:
        return new_message_id()
    openai_id = str(openai_id)
    for prefix in BACKEND_ID_PREFIXES:
        if openai_id.startswith(prefix):
            return MESSAGE_ID_PREFIX + openai_id[len(prefix):]
    return MESSAGE_ID_PREFIX + openai_id


def _parse_tool_arguments(arguments: Any) -> Any:
    if isinstance(arguments, Mapping):
        return dict(arguments)
    if not arguments:
        return {}
    try:
        return json.loads(arguments)
    except (TypeError, json.JSONDecodeError):
        logger.warning(f"Tool call arguments are not valid JSON: {str(arguments)[:100]}")
        return {"raw": arguments}


def _convert_tool_calls_to_blocks(tool_calls: Any) -> list[ToolUsePart]:
    if not isinstance(tool_calls, list):
        return []
    blocks: list[ToolUsePart] = []
    for call in tool_calls:
        if not isinstance(call, Mapping):
            continue
        function = call.get("function")
        if not isinstance(function, Mapping):
            function = {}
        blocks.append({
            "type": "tool_use",
            "id": call.get("id"),
            "name": function.get("name"),
            "input": _parse_tool_arguments(function.get("arguments")),
        })
    return blocks


def _estimate_usage(request: Mapping[str, Any], text: str) -> dict[str, int]:
    input_words = sum(
        count_words(normalize_content(msg.get("content")))
        for msg in request.get("messages") or []
        if isinstance(msg, Mapping)
    )
    return {"input_tokens": input_words, "output_tokens": count_words(text)}


def chat_completion_to_messages(
    payload: Mapping[str, Any],
    request: Mapping[str, Any],
) -> AnthropicResponse:
    """Translate an OpenAI Chat Completions response to Anthropic Messages.

    Args:
        payload: OpenAI Chat Completions API response body
        request: The OpenAI request that produced it (model name and usage
            estimation fallback)

    Returns:
        Anthropic Messages API response body

    Raises:
        BackendPayloadError: If the backend returned an ``error`` object.
    """
    if payload.get("error"):
        raise BackendPayloadError(describe_backend_error(payload["error"]), payload["error"])

    choices = payload.get("choices")
    choice = choices[0] if isinstance(choices, list) and choices and isinstance(choices[0], Mapping) else {}
    message = choice.get("message")
    if not isinstance(message, Mapping):
        message = {}

    text = message.get("content")
    if not isinstance(text, str):
        text = normalize_content(text)

    content_blocks = [{"type": "text", "text": text}]
    content_blocks.extend(_convert_tool_calls_to_blocks(message.get("tool_calls")))

    usage = payload.get("usage")
    if isinstance(usage, Mapping):
        anthropic_usage = {
            "input_tokens": usage.get("prompt_tokens") or 0,
            "output_tokens": usage.get("completion_tokens") or 0,
        }
    else:
        anthropic_usage = _estimate_usage(request, text)

    return {
        "id": _message_id_from(payload.get("id")),
        "type": "message",
        "role": message.get("role") or "assistant",
        "content": content_blocks,
        "model": request.get("model"),
        "stop_reason": convert_stop_reason(choice.get("finish_reason")),
        "stop_sequence": None,
        "usage": anthropic_usage,
    }
