"""
Event-stream (SSE) framing.

Events are separated by a blank line. Within an event only `data:` lines
matter; each carries one JSON payload. `[DONE]` markers, comment lines and
`event:` lines produce nothing, and malformed JSON is skipped.
"""

import json
import logging
from typing import Any, AsyncIterable, AsyncIterator, Callable, List, Optional

from ..models.events import StreamEvent, TextEvent, ErrorEvent

logger = logging.getLogger(__name__)

DONE_MARKER = "[DONE]"

DeltaExtractor = Callable[[Any], Optional[str]]


def chat_completion_delta(payload: Any) -> Optional[str]:
    """Text of a chat-completions chunk: choices[0].delta.content."""
    if not isinstance(payload, dict):
        return None
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    delta = choices[0].get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    return content if isinstance(content, str) else None


def anthropic_text_delta(payload: Any) -> Optional[str]:
    """Text of an Anthropic messages event, only for text_delta blocks."""
    if not isinstance(payload, dict) or payload.get("type") != "content_block_delta":
        return None
    delta = payload.get("delta")
    if not isinstance(delta, dict) or delta.get("type") != "text_delta":
        return None
    text = delta.get("text")
    return text if isinstance(text, str) else None


def payload_error(payload: Any) -> Optional[str]:
    """Error message carried by a payload, if it is an error payload."""
    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    if not error and payload.get("type") != "error":
        return None
    if isinstance(error, dict):
        message = error.get("message")
        return message if isinstance(message, str) and message else json.dumps(error)
    if isinstance(error, str) and error:
        return error
    return "Backend reported an error"


def _data_lines(event_block: str) -> List[str]:
    payloads = []
    for line in event_block.split("\n"):
        trimmed = line.strip()
        if not trimmed.startswith("data:"):
            continue
        payload = trimmed[5:].lstrip()
        if not payload or payload == DONE_MARKER:
            continue
        payloads.append(payload)
    return payloads


async def iter_sse_data(chunks: AsyncIterable[str]) -> AsyncIterator[str]:
    """
    Yield raw `data:` payload strings from a chunked event stream.

    Chunk boundaries may fall anywhere, including inside an event.
    """
    buffer = ""
    async for chunk in chunks:
        buffer = (buffer + chunk).replace("\r\n", "\n")
        while True:
            event_end = buffer.find("\n\n")
            if event_end == -1:
                break
            event_block = buffer[:event_end]
            buffer = buffer[event_end + 2:]
            for payload in _data_lines(event_block):
                yield payload

    # Final event without a trailing blank line
    for payload in _data_lines(buffer):
        yield payload


async def parse_event_stream(
    chunks: AsyncIterable[str],
    extract: DeltaExtractor = chat_completion_delta,
) -> AsyncIterator[StreamEvent]:
    """
    Translate an event stream into normalized events.

    Args:
        chunks: Text chunks of the response body
        extract: Pulls the delta text out of one decoded payload

    Yields:
        TextEvent per non-empty delta; a single ErrorEvent (then stops) for an
        explicit error payload
    """
    async for raw in iter_sse_data(chunks):
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError:
            logger.debug(f"Skipping malformed event payload: {raw[:200]}")
            continue

        error = payload_error(payload)
        if error:
            yield ErrorEvent(error=error)
            return

        text = extract(payload)
        if text:
            yield TextEvent(content=text)
