"""
OpenAI-compatible chat completions backends.

OpenAI, Fireworks, Z.ai, Groq, OpenRouter and caller-supplied custom
providers all speak the same `/chat/completions` event-stream protocol and
differ only in base URL, headers and a few capabilities.
"""

import re
import logging
from typing import List, Dict, Any, AsyncIterator, Set, Optional

from ..core.cancellation import CancellationToken
from ..core.errors import GatewayError, BackendRequestError
from ..core.interface import GatewayCapability
from ..core.ratelimit import extract_rate_limit
from ..models.backend import BackendName
from ..models.events import StreamEvent, RateLimitEvent
from ..models.request import CustomProviderConfig, PromptInput
from ..streaming.sse import parse_event_stream, chat_completion_delta
from .base import HTTPStreamingAdapter
from .payloads import build_openai_messages

logger = logging.getLogger(__name__)


class OpenAICompatibleAdapter(HTTPStreamingAdapter):
    """Adapter for any backend exposing OpenAI chat completions streaming."""

    backend_name: BackendName = BackendName.OPENAI
    display_name = "OpenAI"

    @property
    def backend(self) -> BackendName:
        return self.backend_name

    @property
    def capabilities(self) -> Set[GatewayCapability]:
        return {GatewayCapability.STREAMING, GatewayCapability.VISION}

    @property
    def completions_url(self) -> str:
        return f"{self.base_url}/chat/completions"

    def build_payload(self, model_id: str, prompt: PromptInput) -> Dict[str, Any]:
        return {
            "model": model_id,
            "messages": build_openai_messages(prompt),
            "stream": True,
        }

    async def send_and_stream(
        self,
        model_id: str,
        prompt: PromptInput,
        token: CancellationToken,
    ) -> AsyncIterator[StreamEvent]:
        payload = self.build_payload(model_id, self.prepare_prompt(prompt))

        async with self._open_stream(self.completions_url, payload, token) as response:
            if self.supports(GatewayCapability.RATE_LIMIT_HEADERS):
                snapshot = extract_rate_limit(response.headers, f"{self.name}:headers")
                if snapshot.disclosed:
                    yield RateLimitEvent(provider=self.backend, rate_limit=snapshot)

            async for event in parse_event_stream(self._text_chunks(response, token), chat_completion_delta):
                yield event


class OpenAIAdapter(OpenAICompatibleAdapter):
    backend_name = BackendName.OPENAI
    display_name = "OpenAI"

    @property
    def capabilities(self) -> Set[GatewayCapability]:
        return {
            GatewayCapability.STREAMING,
            GatewayCapability.VISION,
            GatewayCapability.RATE_LIMIT_HEADERS,
        }


class FireworksAdapter(OpenAICompatibleAdapter):
    backend_name = BackendName.FIREWORKS
    display_name = "Fireworks"


class ZaiAdapter(OpenAICompatibleAdapter):
    backend_name = BackendName.ZAI
    display_name = "Z.ai"


class GroqAdapter(OpenAICompatibleAdapter):
    """Groq: text only, discloses rate limits in response headers."""

    backend_name = BackendName.GROQ
    display_name = "Groq"

    @property
    def capabilities(self) -> Set[GatewayCapability]:
        return {GatewayCapability.STREAMING, GatewayCapability.RATE_LIMIT_HEADERS}


# Tried in order after a qualifying failure on a ":free" model.
FREE_FALLBACK_MODELS = [
    "meta-llama/llama-3.3-70b-instruct:free",
    "mistralai/devstral-2512:free",
    "deepseek/deepseek-r1-0528:free",
    "tngtech/deepseek-r1t-chimera:free",
    "google/gemma-3-27b-it:free",
    "qwen/qwen3-coder:free",
    "xiaomi/mimo-v2-flash:free",
    "allenai/molmo-2-8b:free",
]

_PRIVACY_BLOCK = re.compile(r"free model publication|openrouter\.ai/settings/privacy", re.IGNORECASE)
_RATE_LIMITED = re.compile(r"\b429\b|rate-?limited|too many requests", re.IGNORECASE)


class OpenRouterAdapter(OpenAICompatibleAdapter):
    """
    OpenRouter, including the free-tier fallback list.

    Free models (ids ending in ":free") are tried against a fixed list of
    other free models when the first choice is rate-limited or unavailable.
    """

    backend_name = BackendName.OPENROUTER
    display_name = "OpenRouter"

    @property
    def capabilities(self) -> Set[GatewayCapability]:
        return {
            GatewayCapability.STREAMING,
            GatewayCapability.VISION,
            GatewayCapability.FREE_TIER_FALLBACK,
        }

    def _headers(self) -> Dict[str, str]:
        return {
            **super()._headers(),
            "HTTP-Referer": self._config.app_url,
            "X-Title": self._config.app_title,
        }

    def fallback_candidates(self, model_id: str) -> List[str]:
        if not model_id.endswith(":free"):
            return [model_id]
        # dict preserves first-seen order
        return list(dict.fromkeys([model_id, *FREE_FALLBACK_MODELS]))

    def format_error(self, error: GatewayError) -> str:
        message = error.message
        status = error.status_code if isinstance(error, BackendRequestError) else None

        if _PRIVACY_BLOCK.search(message):
            return (
                "OpenRouter free models are blocked by your privacy settings. "
                "Enable “Free model publication” at https://openrouter.ai/settings/privacy and try again."
            )
        if status == 429 or _RATE_LIMITED.search(message):
            return "OpenRouter free models are temporarily rate-limited. Try again in a minute or switch models."
        return message


class CustomProviderAdapter(OpenAICompatibleAdapter):
    """
    Caller-configured OpenAI-compatible endpoint.

    Base URL and credential come from the request, not from gateway
    configuration. The credential is optional.
    """

    backend_name = BackendName.CUSTOM
    display_name = "Custom provider"

    def __init__(self, config, client, custom_config: Optional[CustomProviderConfig] = None, **kwargs):
        super().__init__(config, client, **kwargs)
        self._custom = custom_config

    @property
    def base_url(self) -> str:
        if self._custom and self._custom.base_url:
            return self._custom.base_url.strip().rstrip("/")
        return super().base_url

    def _auth_headers(self) -> Dict[str, str]:
        api_key = (self._custom.api_key or "").strip() if self._custom else ""
        if api_key:
            return {"Authorization": f"Bearer {api_key}"}
        return super()._auth_headers()
