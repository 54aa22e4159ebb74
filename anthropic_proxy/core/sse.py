"""SSE (Server-Sent Events) framing utilities."""

import codecs
import json
from typing import Any, Optional

DONE_SENTINEL = "[DONE]"


def format_sse_event(event_type: str, data: dict[str, Any]) -> bytes:
    """Format one SSE event as ``event: <name>\\ndata: <json>\\n\\n``."""
    json_str = json.dumps(data, ensure_ascii=False)
    return f"event: {event_type}\ndata: {json_str}\n\n".encode("utf-8")


class SSELineDecoder:
    """Incrementally splits a byte stream into complete ``data:`` payloads.

    Chunks may end in the middle of a line or in the middle of a multi-byte
    UTF-8 character; the incomplete tail is kept until more bytes arrive.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def feed(self, chunk: bytes) -> list[str]:
        if not chunk:
            return []
        self._buffer += self._decoder.decode(chunk)
        *lines, self._buffer = self._buffer.split("\n")
        return [payload for payload in map(_data_payload, lines) if payload is not None]

    def flush(self) -> list[str]:
        """Return whatever complete payload is left once the stream ended."""
        tail = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        payload = _data_payload(tail)
        return [payload] if payload is not None else []


def _data_payload(line: str) -> Optional[str]:
    line = line.strip()
    if not line.startswith("data:"):
        return None
    return line[5:].strip()
