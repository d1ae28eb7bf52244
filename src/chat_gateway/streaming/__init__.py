"""
Wire-framing parsers. Each turns a backend's text stream into StreamEvents.
"""

from .sse import parse_event_stream, chat_completion_delta, anthropic_text_delta
from .ndjson import parse_ndjson_stream
from .raw_json import parse_candidate_stream

__all__ = [
    "parse_event_stream",
    "chat_completion_delta",
    "anthropic_text_delta",
    "parse_ndjson_stream",
    "parse_candidate_stream",
]
