"""
Anthropic messages API backend.
"""

from typing import Dict, Any, AsyncIterator, Set

from ..core.cancellation import CancellationToken
from ..core.interface import GatewayCapability
from ..models.backend import BackendName
from ..models.events import StreamEvent
from ..models.request import PromptInput
from ..streaming.sse import parse_event_stream, anthropic_text_delta
from .base import HTTPStreamingAdapter
from .payloads import build_anthropic_messages

ANTHROPIC_VERSION = "2023-06-01"
MAX_TOKENS = 8192


class AnthropicAdapter(HTTPStreamingAdapter):
    """Claude models over `/v1/messages` with server-sent events."""

    display_name = "Claude"

    @property
    def backend(self) -> BackendName:
        return BackendName.CLAUDE

    @property
    def capabilities(self) -> Set[GatewayCapability]:
        return {GatewayCapability.STREAMING, GatewayCapability.VISION}

    def _auth_headers(self) -> Dict[str, str]:
        headers = {"anthropic-version": ANTHROPIC_VERSION}
        if self._settings.api_key:
            headers["x-api-key"] = self._settings.api_key
        return headers

    def build_payload(self, model_id: str, prompt: PromptInput) -> Dict[str, Any]:
        built = build_anthropic_messages(prompt)
        payload: Dict[str, Any] = {
            "model": model_id,
            "max_tokens": MAX_TOKENS,
            "messages": built["messages"],
            "stream": True,
        }
        if built["system"]:
            payload["system"] = built["system"]
        return payload

    async def send_and_stream(
        self,
        model_id: str,
        prompt: PromptInput,
        token: CancellationToken,
    ) -> AsyncIterator[StreamEvent]:
        payload = self.build_payload(model_id, self.prepare_prompt(prompt))

        async with self._open_stream(f"{self.base_url}/messages", payload, token) as response:
            async for event in parse_event_stream(self._text_chunks(response, token), anthropic_text_delta):
                yield event
