"""
Integration tests for wire-framing parsers.

Tests:
- Event-stream (SSE) chat completions and Anthropic deltas
- Newline-delimited JSON (Ollama)
- Raw JSON candidate streams (Gemini), array and line framing
"""

import json

import pytest

from chat_gateway.models.events import TextEvent, ErrorEvent
from chat_gateway.streaming.sse import parse_event_stream, anthropic_text_delta, iter_sse_data
from chat_gateway.streaming.ndjson import parse_ndjson_stream
from chat_gateway.streaming.raw_json import parse_candidate_stream, candidate_texts


async def chunks(*parts):
    for part in parts:
        yield part


async def collect(events):
    return [event async for event in events]


def sse(payload):
    return f"data: {json.dumps(payload)}\n\n"


def delta(text):
    return {"choices": [{"delta": {"content": text}}]}


def candidate(*texts):
    return {"candidates": [{"content": {"parts": [{"text": t} for t in texts]}}]}


class TestEventStream:
    """Test chat-completions event streams."""

    @pytest.mark.asyncio
    async def test_text_deltas_in_order(self):
        """Two deltas and a done marker yield exactly two text events."""
        events = await collect(parse_event_stream(chunks(
            'data: {"choices":[{"delta":{"content":"Hel"}}]}\n\n',
            'data: {"choices":[{"delta":{"content":"lo"}}]}\n\ndata: [DONE]\n\n',
        )))
        assert events == [TextEvent(content="Hel"), TextEvent(content="lo")]

    @pytest.mark.asyncio
    async def test_event_split_across_chunks(self):
        """Chunk boundaries can fall inside an event."""
        record = sse(delta("split"))
        events = await collect(parse_event_stream(chunks(record[:7], record[7:20], record[20:])))
        assert events == [TextEvent(content="split")]

    @pytest.mark.asyncio
    async def test_crlf_separators(self):
        """CRLF framed streams parse the same."""
        events = await collect(parse_event_stream(chunks(
            'data: {"choices":[{"delta":{"content":"a"}}]}\r\n\r\n',
        )))
        assert events == [TextEvent(content="a")]

    @pytest.mark.asyncio
    async def test_malformed_and_empty_skipped(self):
        """Bad JSON, empty deltas and comments produce nothing."""
        events = await collect(parse_event_stream(chunks(
            ": keep-alive\n\n",
            "data: {not json}\n\n",
            sse(delta("")),
            sse({"choices": []}),
            sse(delta("ok")),
        )))
        assert events == [TextEvent(content="ok")]

    @pytest.mark.asyncio
    async def test_trailing_event_without_blank_line(self):
        """The final event is flushed at end of stream."""
        events = await collect(parse_event_stream(chunks('data: {"choices":[{"delta":{"content":"end"}}]}')))
        assert events == [TextEvent(content="end")]

    @pytest.mark.asyncio
    async def test_error_payload_halts(self):
        """An error payload ends the stream with one error event."""
        events = await collect(parse_event_stream(chunks(
            sse(delta("partial")),
            sse({"error": {"message": "Rate limit exceeded", "code": 429}}),
            sse(delta("never")),
        )))
        assert events == [TextEvent(content="partial"), ErrorEvent(error="Rate limit exceeded")]

    @pytest.mark.asyncio
    async def test_anthropic_deltas(self):
        """Only text_delta content blocks produce text."""
        events = await collect(parse_event_stream(chunks(
            "event: message_start\n" + sse({"type": "message_start", "message": {}}),
            "event: content_block_delta\n" + sse({
                "type": "content_block_delta",
                "delta": {"type": "text_delta", "text": "Hi"},
            }),
            sse({"type": "content_block_delta", "delta": {"type": "input_json_delta", "partial_json": "{}"}}),
            sse({"type": "message_stop"}),
        ), anthropic_text_delta))
        assert events == [TextEvent(content="Hi")]

    @pytest.mark.asyncio
    async def test_anthropic_error_event(self):
        """Anthropic error events become error events."""
        events = await collect(parse_event_stream(chunks(
            sse({"type": "error", "error": {"type": "overloaded_error", "message": "Overloaded"}}),
        ), anthropic_text_delta))
        assert events == [ErrorEvent(error="Overloaded")]

    @pytest.mark.asyncio
    async def test_done_marker_not_yielded(self):
        """The [DONE] marker is never a payload."""
        payloads = [p async for p in iter_sse_data(chunks("data: [DONE]\n\n"))]
        assert payloads == []


class TestNdjsonStream:
    """Test newline-delimited JSON streams."""

    @pytest.mark.asyncio
    async def test_message_content(self):
        """Each line's message content becomes text."""
        events = await collect(parse_ndjson_stream(chunks(
            '{"message":{"role":"assistant","content":"Hel"}}\n{"message":',
            '{"role":"assistant","content":"lo"}}\n',
            '{"done":true}\n',
        )))
        assert events == [TextEvent(content="Hel"), TextEvent(content="lo")]

    @pytest.mark.asyncio
    async def test_error_field_halts(self):
        """An error field ends the stream."""
        events = await collect(parse_ndjson_stream(chunks(
            '{"message":{"content":"a"}}\n',
            '{"error":"model not found"}\n',
            '{"message":{"content":"b"}}\n',
        )))
        assert events == [TextEvent(content="a"), ErrorEvent(error="model not found")]

    @pytest.mark.asyncio
    async def test_malformed_lines_skipped(self):
        """Unparseable lines are skipped."""
        events = await collect(parse_ndjson_stream(chunks('garbage\n\n{"message":{"content":"x"}}')))
        assert events == [TextEvent(content="x")]


class TestCandidateStream:
    """Test raw JSON candidate streams."""

    @pytest.mark.asyncio
    async def test_array_framing(self):
        """A streamed JSON array yields each element's text."""
        body = json.dumps([candidate("Hel"), candidate("lo")], indent=2)
        events = await collect(parse_candidate_stream(chunks(body[:10], body[10:45], body[45:])))
        assert events == [TextEvent(content="Hel"), TextEvent(content="lo")]

    @pytest.mark.asyncio
    async def test_array_skips_malformed_element(self):
        """A broken array element is skipped and later elements still stream."""
        events = await collect(parse_candidate_stream(chunks(
            "[" + json.dumps(candidate("A")) + ",\n",
            "{not json},\n",
            json.dumps(candidate("B")) + ",\n",
            json.dumps(candidate("C")) + "]",
        )))
        assert [event.content for event in events] == ["A", "B", "C"]

    @pytest.mark.asyncio
    async def test_array_skips_element_with_open_string(self):
        """An element whose string never closes is dropped at the next line."""
        events = await collect(parse_candidate_stream(chunks(
            '[{"candidates": "unterminated,\n',
            json.dumps(candidate("B")) + "]",
        )))
        assert events == [TextEvent(content="B")]

    @pytest.mark.asyncio
    async def test_array_element_split_inside_parts(self):
        """An element cut between nested objects waits for the rest."""
        body = "[" + json.dumps(candidate("x", "y")) + "]"
        cut = body.index('{"text": "y"') + 3
        events = await collect(parse_candidate_stream(chunks(body[:cut], body[cut:])))
        assert events == [TextEvent(content="x"), TextEvent(content="y")]

    @pytest.mark.asyncio
    async def test_line_framing_with_data_prefix(self):
        """Line framing tolerates data: prefixes and artifacts."""
        events = await collect(parse_candidate_stream(chunks(
            f"data: {json.dumps(candidate('a'))}\n",
            f"{json.dumps(candidate('b'))}\n",
            "data: [DONE]\n",
            "])\n",
        )))
        assert events == [TextEvent(content="a"), TextEvent(content="b")]

    @pytest.mark.asyncio
    async def test_every_part_in_order(self):
        """Multiple text parts become separate events."""
        events = await collect(parse_candidate_stream(chunks(json.dumps(candidate("x", "y")) + "\n")))
        assert events == [TextEvent(content="x"), TextEvent(content="y")]

    @pytest.mark.asyncio
    async def test_error_object(self):
        """An error object ends the stream."""
        body = json.dumps([{"error": {"code": 400, "message": "API key not valid"}}])
        events = await collect(parse_candidate_stream(chunks(body)))
        assert events == [ErrorEvent(error="API key not valid")]

    @pytest.mark.asyncio
    async def test_empty_body(self):
        """An empty body yields nothing."""
        assert await collect(parse_candidate_stream(chunks("", "  \n"))) == []

    def test_thought_parts_skipped(self):
        """Parts flagged as thoughts carry no visible text."""
        value = {"candidates": [{"content": {"parts": [
            {"text": "thinking...", "thought": True},
            {"text": "answer"},
        ]}}]}
        assert candidate_texts(value) == ["answer"]
