"""
Server-Sent Events

The assistant's reply travels as an SSE stream:

    event: text
    data: "Hello"

    event: chat_output
    data: {"complete": true}

Each data line is JSON. The parser accepts the stream in arbitrary chunks,
so an event, a line, or a multi-byte character may be split across reads.
"""

import codecs
import json
from typing import Any, Optional, Union

import structlog

from money_manager.models.chat import StreamEvent, StreamEventType


logger = structlog.get_logger()


def encode_event(event: Union[StreamEventType, str], data: Any) -> str:
    name = event.value if isinstance(event, StreamEventType) else event
    return f"event: {name}\ndata: {json.dumps(data, ensure_ascii=False)}\n\n"


class SSEParser:
    """Incremental parser; call feed() with each chunk as it arrives."""

    def __init__(self):
        self._buffer = ""
        self._event: Optional[str] = None
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def feed(self, chunk: Union[bytes, str]) -> list[StreamEvent]:
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)
        self._buffer += chunk

        events = []
        *lines, self._buffer = self._buffer.split("\n")
        for line in lines:
            event = self._handle_line(line.rstrip("\r"))
            if event is not None:
                events.append(event)
        return events

    def _handle_line(self, line: str) -> Optional[StreamEvent]:
        if not line:
            self._event = None
            return None
        if line.startswith("event:"):
            self._event = line[len("event:"):].strip()
            return None
        if not line.startswith("data:"):
            return None

        payload = line[len("data:"):].strip()
        if not payload or self._event is None:
            return None
        try:
            data = json.loads(payload)
        except json.JSONDecodeError:
            logger.warning("sse_invalid_json", event=self._event, payload=payload[:200])
            return None
        try:
            event_type = StreamEventType(self._event)
        except ValueError:
            logger.warning("sse_unknown_event", event=self._event)
            return None
        return StreamEvent(event=event_type, data=data)
