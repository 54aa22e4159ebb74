"""Stream adapter for converting OpenAI Chat Completions SSE to Anthropic Messages SSE.

Converts the OpenAI chat completion streaming format to Anthropic Messages
streaming format with proper event types and lifecycle events.

OpenAI Chat Completion Events:
    data: {"choices":[{"delta":{"content":"Hello"},"index":0}]}
    data: {"choices":[{"delta":{"reasoning":"Thinking"},"index":0}]}
    data: {"choices":[{"delta":{"tool_calls":[...]},"index":0}]}
    data: [DONE]

Anthropic Messages Events:
    event: message_start
    data: {"type":"message_start","message":{...}}

    event: ping
    data: {"type":"ping"}

    event: content_block_start
    data: {"type":"content_block_start","index":0,"content_block":{"type":"text","text":""}}

    event: content_block_delta
    data: {"type":"content_block_delta","index":0,"delta":{"type":"text_delta","text":"Hello"}}

    event: content_block_stop
    data: {"type":"content_block_stop","index":0}

    event: message_delta
    data: {"type":"message_delta","delta":{"stop_reason":"end_turn","stop_sequence":null},"usage":{"output_tokens":10}}

    event: message_stop
    data: {"type":"message_stop"}

Block indices: the text block always uses index 0 and each tool call uses
its backend tool-call ``index``, shifted by one when text was streamed first.
The first tool call closes an open text block; later text is dropped. At the
end of the stream either the tool blocks or the text block are closed.
"""

import json
import logging
from typing import Any, AsyncIterator, Optional

from ..core.exceptions import BackendStreamError, describe_backend_error
from ..core.sse import DONE_SENTINEL, SSELineDecoder, format_sse_event
from .translator import count_words

logger = logging.getLogger("anthropic-proxy")

TEXT_BLOCK_INDEX = 0


class ChatToMessagesStreamAdapter:
    """Converts an OpenAI chat completion SSE stream to Anthropic Messages SSE events.

    One adapter serves exactly one response. It owns the stream state:
    - whether the text block is open
    - accumulated arguments per tool-call index
    - accumulated text/reasoning for the usage fallback
    - the last usage object reported by the backend
    """

    def __init__(
        self,
        message_id: str,
        model: str,
        *,
        finalize_on_eof: bool = True,
    ):
        """Initialize the stream adapter.

        Args:
            message_id: The message ID to use (e.g., "msg_xxx")
            model: Model name for the response
            finalize_on_eof: Emit the closing events when the backend stream
                ends without a [DONE] sentinel
        """
        self.message_id = message_id
        self.model = model
        self.finalize_on_eof = finalize_on_eof

        self.text_block_open = False
        # Keyed by output block index (backend index + tool_index_offset)
        self.tool_call_arguments: dict[int, str] = {}
        self.saw_tool_call = False
        # Set to 1 when text occupied block 0 before the first tool call
        self.tool_index_offset = 0

        self.accumulated_text = ""
        self.accumulated_reasoning = ""
        self.usage: Optional[dict[str, Any]] = None

        self.saw_done = False
        self._decoder = SSELineDecoder()

    async def adapt_stream(
        self,
        chat_stream: AsyncIterator[bytes],
    ) -> AsyncIterator[bytes]:
        """Transform OpenAI chat completion stream to Anthropic Messages SSE events.

        Args:
            chat_stream: The incoming OpenAI chat completion SSE stream

        Yields:
            Anthropic Messages API SSE events as bytes

        Raises:
            BackendStreamError: If the backend sends an error frame.
        """
        yield self._emit_message_start()
        yield self._emit_ping()

        async for chunk in chat_stream:
            for data_str in self._decoder.feed(chunk):
                for event in self._process_data(data_str):
                    yield event
                if self.saw_done:
                    return

        for data_str in self._decoder.flush():
            for event in self._process_data(data_str):
                yield event
            if self.saw_done:
                return

        if not self.finalize_on_eof:
            logger.warning(
                f"Backend stream for {self.message_id} ended without [DONE]; "
                "closing without terminal events"
            )
            return

        logger.warning(
            f"Backend stream for {self.message_id} ended without [DONE]; "
            "emitting terminal events"
        )
        for event in self._emit_terminal_events():
            yield event

    def _process_data(self, data_str: str) -> list[bytes]:
        """Process one ``data:`` payload from the backend stream."""
        if data_str == DONE_SENTINEL:
            self.saw_done = True
            return self._emit_terminal_events()

        try:
            data = json.loads(data_str)
        except json.JSONDecodeError:
            logger.debug(f"MessagesStreamAdapter: Failed to parse: {data_str[:100]}")
            return []

        if not isinstance(data, dict):
            return []

        if data.get("error"):
            raise BackendStreamError(describe_backend_error(data["error"]), data["error"])

        if isinstance(data.get("usage"), dict):
            self.usage = data["usage"]

        choices = data.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            return []
        delta = choices[0].get("delta")
        if not isinstance(delta, dict):
            return []

        tool_calls = delta.get("tool_calls")
        if tool_calls:
            events: list[bytes] = []
            for tc in tool_calls:
                if isinstance(tc, dict):
                    events.extend(self._process_tool_call_delta(tc))
            return events

        content = delta.get("content")
        if isinstance(content, str) and content:
            self.accumulated_text += content
            return self._process_text_delta({"type": "text_delta", "text": content})

        reasoning = delta.get("reasoning") or delta.get("reasoning_content")
        if isinstance(reasoning, str) and reasoning:
            self.accumulated_reasoning += reasoning
            return self._process_text_delta({"type": "thinking_delta", "thinking": reasoning})

        return []

    def _process_text_delta(self, delta: dict[str, Any]) -> list[bytes]:
        events: list[bytes] = []
        if not self.text_block_open:
            if self.saw_tool_call:
                # Block 0 is a tool block or an already closed text block
                logger.debug(
                    "MessagesStreamAdapter: dropping text delta that arrived after a tool call"
                )
                return events
            self.text_block_open = True
            events.append(self._emit_content_block_start(
                TEXT_BLOCK_INDEX,
                {"type": "text", "text": ""},
            ))
        events.append(self._emit_content_block_delta(TEXT_BLOCK_INDEX, delta))
        return events

    def _process_tool_call_delta(self, tc: dict[str, Any]) -> list[bytes]:
        """Process an OpenAI tool call delta.

        Backends send ``arguments`` as a growing prefix; only the part beyond
        what was already forwarded is emitted. An open text block is closed
        before the first tool block starts, and tool blocks are then shifted
        by one so they never reuse index 0.
        """
        events: list[bytes] = []
        if not self.saw_tool_call and self.text_block_open:
            events.append(self._emit_content_block_stop(TEXT_BLOCK_INDEX))
            self.text_block_open = False
            self.tool_index_offset = 1
        self.saw_tool_call = True

        try:
            tc_index = int(tc.get("index") or 0)
        except (TypeError, ValueError):
            tc_index = 0
        block_index = tc_index + self.tool_index_offset

        function = tc.get("function")
        if not isinstance(function, dict):
            logger.debug(f"MessagesStreamAdapter: ignoring malformed function {function!r:.100}")
            function = {}

        if block_index not in self.tool_call_arguments:
            self.tool_call_arguments[block_index] = ""
            events.append(self._emit_content_block_start(
                block_index,
                {
                    "type": "tool_use",
                    "id": tc.get("id"),
                    "name": function.get("name"),
                    "input": {},
                },
            ))

        new_args = function.get("arguments")
        if not isinstance(new_args, str):
            new_args = ""
        old_args = self.tool_call_arguments[block_index]
        if len(new_args) > len(old_args):
            events.append(self._emit_content_block_delta(
                block_index,
                {"type": "input_json_delta", "partial_json": new_args[len(old_args):]},
            ))
            self.tool_call_arguments[block_index] = new_args

        return events

    def _emit_terminal_events(self) -> list[bytes]:
        """Close the open blocks and finish the message."""
        events: list[bytes] = []
        if self.saw_tool_call:
            for tc_index in sorted(self.tool_call_arguments):
                events.append(self._emit_content_block_stop(tc_index))
        elif self.text_block_open:
            events.append(self._emit_content_block_stop(TEXT_BLOCK_INDEX))

        stop_reason = "tool_use" if self.saw_tool_call else "end_turn"
        events.append(self._emit_message_delta(stop_reason))
        events.append(self._emit_message_stop())
        return events

    def _output_tokens(self) -> int:
        if self.usage is not None:
            return self.usage.get("completion_tokens") or 0
        return count_words(self.accumulated_text) + count_words(self.accumulated_reasoning)

    def _emit_message_start(self) -> bytes:
        message = {
            "id": self.message_id,
            "type": "message",
            "role": "assistant",
            "model": self.model,
            "content": [],
            "stop_reason": None,
            "stop_sequence": None,
            "usage": {"input_tokens": 0, "output_tokens": 0},
        }
        return format_sse_event("message_start", {"type": "message_start", "message": message})

    def _emit_ping(self) -> bytes:
        return format_sse_event("ping", {"type": "ping"})

    def _emit_content_block_start(self, index: int, content_block: dict[str, Any]) -> bytes:
        event_data = {
            "type": "content_block_start",
            "index": index,
            "content_block": content_block,
        }
        return format_sse_event("content_block_start", event_data)

    def _emit_content_block_delta(self, index: int, delta: dict[str, Any]) -> bytes:
        event_data = {
            "type": "content_block_delta",
            "index": index,
            "delta": delta,
        }
        return format_sse_event("content_block_delta", event_data)

    def _emit_content_block_stop(self, index: int) -> bytes:
        return format_sse_event("content_block_stop", {"type": "content_block_stop", "index": index})

    def _emit_message_delta(self, stop_reason: str) -> bytes:
        event_data = {
            "type": "message_delta",
            "delta": {"stop_reason": stop_reason, "stop_sequence": None},
            "usage": {"output_tokens": self._output_tokens()},
        }
        return format_sse_event("message_delta", event_data)

    def _emit_message_stop(self) -> bytes:
        return format_sse_event("message_stop", {"type": "message_stop"})


async def adapt_chat_stream_to_messages(
    message_id: str,
    model: str,
    chat_stream: AsyncIterator[bytes],
    *,
    finalize_on_eof: bool = True,
) -> AsyncIterator[bytes]:
    """Convenience function to adapt an OpenAI chat stream to Anthropic Messages.

    Args:
        message_id: Message ID for the response
        model: Model name
        chat_stream: Input OpenAI chat completion stream
        finalize_on_eof: See ChatToMessagesStreamAdapter

    Yields:
        Anthropic Messages API SSE events
    """
    adapter = ChatToMessagesStreamAdapter(message_id, model, finalize_on_eof=finalize_on_eof)
    async for event in adapter.adapt_stream(chat_stream):
        yield event
