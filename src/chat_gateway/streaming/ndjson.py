"""
Newline-delimited JSON framing, as spoken by Ollama's /api/chat.
"""

import json
import logging
from typing import Any, AsyncIterable, AsyncIterator, Optional

from ..models.events import StreamEvent, TextEvent, ErrorEvent

logger = logging.getLogger(__name__)


async def iter_lines(chunks: AsyncIterable[str]) -> AsyncIterator[str]:
    """Re-split arbitrary text chunks into stripped, non-empty lines."""
    buffer = ""
    async for chunk in chunks:
        buffer += chunk
        lines = buffer.split("\n")
        buffer = lines.pop()
        for line in lines:
            line = line.strip()
            if line:
                yield line
    if buffer.strip():
        yield buffer.strip()


def message_content(payload: Any) -> Optional[str]:
    """Text of an Ollama chunk: message.content."""
    if not isinstance(payload, dict):
        return None
    message = payload.get("message")
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    return content if isinstance(content, str) else None


def _error_message(error: Any) -> str:
    if isinstance(error, dict):
        return str(error.get("message") or json.dumps(error))
    return str(error)


async def parse_ndjson_stream(chunks: AsyncIterable[str]) -> AsyncIterator[StreamEvent]:
    """
    Translate a newline-delimited JSON stream into normalized events.

    Yields:
        TextEvent per non-empty message; a single ErrorEvent (then stops) when
        an object carries an `error` field
    """
    async for line in iter_lines(chunks):
        try:
            payload = json.loads(line)
        except json.JSONDecodeError:
            logger.debug(f"Skipping malformed line: {line[:200]}")
            continue

        if isinstance(payload, dict) and payload.get("error"):
            yield ErrorEvent(error=_error_message(payload["error"]))
            return

        text = message_content(payload)
        if text:
            yield TextEvent(content=text)
