"""
Google Gemini `streamGenerateContent` backend.
"""

from typing import Dict, Any, AsyncIterator, Set

from ..core.cancellation import CancellationToken
from ..core.interface import GatewayCapability
from ..models.backend import BackendName
from ..models.events import StreamEvent
from ..models.request import PromptInput
from ..streaming.raw_json import parse_candidate_stream
from .base import HTTPStreamingAdapter
from .payloads import build_gemini_contents

DEFAULT_API_VERSION = "v1beta"


class GeminiAdapter(HTTPStreamingAdapter):
    """Gemini models. The response is a raw JSON candidate stream."""

    display_name = "Gemini"

    @property
    def backend(self) -> BackendName:
        return BackendName.GEMINI

    @property
    def capabilities(self) -> Set[GatewayCapability]:
        return {GatewayCapability.STREAMING}

    @property
    def api_version(self) -> str:
        version = str(self._settings.extra.get("api_version") or DEFAULT_API_VERSION)
        return version.strip().strip("/") or DEFAULT_API_VERSION

    def stream_url(self, model_id: str) -> str:
        return f"{self.base_url}/{self.api_version}/models/{model_id}:streamGenerateContent"

    def _auth_headers(self) -> Dict[str, str]:
        if self._settings.api_key:
            return {"x-goog-api-key": self._settings.api_key}
        return {}

    def build_payload(self, model_id: str, prompt: PromptInput) -> Dict[str, Any]:
        return {"contents": build_gemini_contents(prompt)}

    async def send_and_stream(
        self,
        model_id: str,
        prompt: PromptInput,
        token: CancellationToken,
    ) -> AsyncIterator[StreamEvent]:
        payload = self.build_payload(model_id, self.prepare_prompt(prompt))

        async with self._open_stream(self.stream_url(model_id), payload, token) as response:
            async for event in parse_candidate_stream(self._text_chunks(response, token)):
                yield event
