"""Types for the two wire protocols handled by the translator.

Types are separated into:
- Anthropic types: the Messages API shapes accepted from and returned to callers
- OpenAI-compatible types: the Chat Completions shapes sent to the backend

All of them are ``total=False``: inbound payloads are loosely shaped JSON and
the translator treats every field as optional.
"""

from typing import Any, Union

from typing_extensions import TypedDict


# =============================================================================
# Anthropic Types
# =============================================================================


class TextPart(TypedDict, total=False):
    type: str
    text: str | None


class ToolUsePart(TypedDict, total=False):
    """An assistant tool invocation inside a message's content list."""
    type: str
    id: str
    name: str
    input: dict[str, Any]


class ToolResultPart(TypedDict, total=False):
    """The result of a tool invocation, sent back by the caller.

    Attributes:
        tool_use_id: Id of the ``tool_use`` part this result answers.
        text: Plain text result, preferred when present.
        content: Result content, either a string or a list of text parts.
    """
    type: str
    tool_use_id: str
    text: str
    content: Any


ContentPart = Union[TextPart, ToolUsePart, ToolResultPart]

# A message's content is either a string or an ordered list of parts. Any
# other runtime shape is treated as empty content.
MessageContent = Union[str, list[ContentPart]]


class AnthropicMessage(TypedDict, total=False):
    role: str
    content: MessageContent


class SystemEntry(TypedDict, total=False):
    role: str
    type: str
    text: str
    content: MessageContent


class AnthropicTool(TypedDict, total=False):
    name: str
    description: str
    input_schema: dict[str, Any]


class AnthropicRequest(TypedDict, total=False):
    """A Messages API request body.

    Attributes:
        thinking: Any truthy value (other than ``{"type": "disabled"}``)
            selects the reasoning model.
    """
    model: str
    system: str | list[SystemEntry]
    messages: list[AnthropicMessage]
    tools: list[AnthropicTool]
    max_tokens: int
    temperature: float
    stream: bool
    thinking: Any


class AnthropicUsage(TypedDict):
    input_tokens: int
    output_tokens: int


class AnthropicResponse(TypedDict, total=False):
    id: str
    type: str
    role: str
    model: str
    content: list[dict[str, Any]]
    stop_reason: str
    stop_sequence: str | None
    usage: AnthropicUsage


# =============================================================================
# OpenAI-Compatible Types
# =============================================================================


class FunctionCall(TypedDict, total=False):
    """A function call within a tool call.

    Attributes:
        name: Name of the function. May be None for streamed follow-up chunks.
        arguments: JSON string with the arguments. In streams this grows
            chunk by chunk.
    """
    name: str | None
    arguments: str | None


class ToolCall(TypedDict, total=False):
    id: str
    type: str
    function: FunctionCall
    index: int


class ChatMessage(TypedDict, total=False):
    role: str
    content: Any
    tool_calls: list[dict[str, Any]]
    tool_call_id: str


class ChatTool(TypedDict):
    type: str
    function: dict[str, Any]


class ChatCompletionRequest(TypedDict, total=False):
    model: str
    messages: list[ChatMessage]
    max_tokens: int
    temperature: float
    stream: bool
    tools: list[ChatTool]


class ChatUsage(TypedDict, total=False):
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int
