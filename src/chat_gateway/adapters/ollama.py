"""
Ollama `/api/chat` backend (local or tunnelled).
"""

import re
from typing import Dict, Any, AsyncIterator, Set
from urllib.parse import urlparse

from ..core.cancellation import CancellationToken
from ..core.errors import GatewayError, BackendRequestError
from ..core.interface import GatewayCapability
from ..models.backend import BackendName
from ..models.events import StreamEvent
from ..models.request import PromptInput
from ..streaming.ndjson import parse_ndjson_stream
from .base import HTTPStreamingAdapter
from .payloads import build_ollama_messages

_FORBIDDEN = re.compile(r"\b403\b|forbidden|access denied", re.IGNORECASE)


def is_ngrok_host(base_url: str) -> bool:
    host = (urlparse(base_url).hostname or "").lower()
    return host.endswith(".ngrok-free.app") or host.endswith(".ngrok.app") or host.endswith(".ngrok.io")


class OllamaAdapter(HTTPStreamingAdapter):
    """
    Ollama chat over newline-delimited JSON.

    The credential is optional. Cloudflare Access and custom headers from
    configuration are sent on every request.
    """

    display_name = "Ollama"

    @property
    def backend(self) -> BackendName:
        return BackendName.OLLAMA

    @property
    def capabilities(self) -> Set[GatewayCapability]:
        return {GatewayCapability.STREAMING, GatewayCapability.VISION}

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "ngrok-skip-browser-warning": "true",
            **self._auth_headers(),
            **self._settings.headers,
        }

    def build_payload(self, model_id: str, prompt: PromptInput) -> Dict[str, Any]:
        return {
            "model": model_id,
            "messages": build_ollama_messages(prompt),
            "stream": True,
        }

    async def send_and_stream(
        self,
        model_id: str,
        prompt: PromptInput,
        token: CancellationToken,
    ) -> AsyncIterator[StreamEvent]:
        payload = self.build_payload(model_id, self.prepare_prompt(prompt))

        async with self._open_stream(f"{self.base_url}/api/chat", payload, token) as response:
            async for event in parse_ndjson_stream(self._text_chunks(response, token)):
                yield event

    def format_error(self, error: GatewayError) -> str:
        status = error.status_code if isinstance(error, BackendRequestError) else None
        if status != 403 and not _FORBIDDEN.search(error.message):
            return error.message

        if is_ngrok_host(self.base_url):
            return (
                "Tunnel rejected the request (HTTP 403). If ngrok auth is enabled, "
                "disable it or set OLLAMA_CUSTOM_HEADERS with the required headers."
            )
        return (
            "Ollama returned HTTP 403. Check tunnel auth or Cloudflare Access headers "
            "(OLLAMA_CF_ACCESS_CLIENT_ID/SECRET) or set OLLAMA_CUSTOM_HEADERS."
        )
