"""
Raw JSON stream framing, as returned by Gemini's streamGenerateContent.

The body is either one JSON array whose elements arrive over time
(possibly pretty-printed across many lines), or one JSON object per line,
optionally with a `data:` prefix. Both are reduced to a sequence of
decoded objects, from which candidate text parts are extracted.
"""

import json
import logging
import re
from typing import Any, AsyncIterable, AsyncIterator, List, Optional

from ..models.events import StreamEvent, TextEvent, ErrorEvent
from .ndjson import iter_lines
from .sse import payload_error

logger = logging.getLogger(__name__)

_IGNORED_LINES = frozenset({"[DONE]", "])", "]", "[", ","})
_ARRAY_SEPARATORS = "[],)"

_ELEMENT_BOUNDARY = re.compile(r",\s*\{|\n\s*\{")
# Raw newlines never occur inside a JSON string.
_LINE_BOUNDARY = re.compile(r"\n\s*\{")


def _resync_offset(buffer: str, error: json.JSONDecodeError) -> Optional[int]:
    """
    Offset of the next array element after a decode failure.

    Returns None when the failure may just be an element that has not fully
    arrived yet, i.e. no element boundary follows the failure point.
    """
    if error.msg.startswith("Unterminated string"):
        pattern = _LINE_BOUNDARY
    else:
        pattern = _ELEMENT_BOUNDARY
    match = pattern.search(buffer, max(error.pos, 1))
    if match is None:
        return None
    return match.end() - 1


def _strip_data_prefix(line: str) -> str:
    if line[:5].lower() == "data:":
        return line[5:].strip()
    return line


async def _iter_array_values(first: str, chunks: AsyncIterator[str]) -> AsyncIterator[Any]:
    decoder = json.JSONDecoder()
    buffer = first
    exhausted = False
    while True:
        while True:
            buffer = buffer.lstrip().lstrip(_ARRAY_SEPARATORS).lstrip()
            if not buffer:
                break
            try:
                value, index = decoder.raw_decode(buffer)
            except json.JSONDecodeError as e:
                resume = _resync_offset(buffer, e)
                if resume is None:
                    break
                logger.debug(f"Skipping malformed array element: {buffer[:resume][:200]}")
                buffer = buffer[resume:]
                continue
            buffer = buffer[index:]
            yield value

        if exhausted:
            break
        try:
            buffer += await chunks.__anext__()
        except StopAsyncIteration:
            exhausted = True

    if buffer.strip():
        logger.debug(f"Discarding incomplete trailing JSON: {buffer[:200]}")


async def _iter_line_values(first: str, chunks: AsyncIterator[str]) -> AsyncIterator[Any]:
    async def replay():
        yield first
        async for chunk in chunks:
            yield chunk

    async for line in iter_lines(replay()):
        cleaned = _strip_data_prefix(line)
        if not cleaned or cleaned in _IGNORED_LINES:
            continue
        cleaned = cleaned.lstrip("[,").rstrip(",")
        try:
            yield json.loads(cleaned)
        except json.JSONDecodeError:
            logger.debug(f"Skipping malformed line: {cleaned[:200]}")


async def iter_json_values(chunks: AsyncIterable[str]) -> AsyncIterator[Any]:
    """
    Decode JSON values from a raw stream.

    The framing is fixed by the first non-whitespace character: `[` means a
    streamed JSON array, anything else means one value per line.
    """
    iterator = chunks.__aiter__()
    first = ""
    async for chunk in iterator:
        first += chunk
        if first.strip():
            break
    first = first.lstrip()
    if not first:
        return

    if first.startswith("["):
        values = _iter_array_values(first, iterator)
    else:
        values = _iter_line_values(first, iterator)
    async for value in values:
        yield value


def candidate_texts(value: Any) -> List[str]:
    """Text parts of every candidate, in order. Thought parts are skipped."""
    if isinstance(value, list):
        return [text for item in value for text in candidate_texts(item)]
    if not isinstance(value, dict):
        return []

    texts = []
    for candidate in value.get("candidates") or []:
        if not isinstance(candidate, dict):
            continue
        content = candidate.get("content")
        parts = content.get("parts") if isinstance(content, dict) else None
        for part in parts or []:
            if not isinstance(part, dict) or part.get("thought"):
                continue
            text = part.get("text")
            if isinstance(text, str) and text:
                texts.append(text)
    return texts


async def parse_candidate_stream(chunks: AsyncIterable[str]) -> AsyncIterator[StreamEvent]:
    """
    Translate a raw candidate JSON stream into normalized events.

    Yields:
        TextEvent per candidate text part; a single ErrorEvent (then stops)
        for an `error` object
    """
    async for value in iter_json_values(chunks):
        error = payload_error(value)
        if error:
            yield ErrorEvent(error=error)
            return
        for text in candidate_texts(value):
            yield TextEvent(content=text)
