"""
OpenCode Zen backend.

Zen fronts several upstream protocols. The stream format is chosen per
model, and for gemini-3 models it is only known after the first request:

    UNATTEMPTED -> TRIED_PRIMARY -> RESOLVED
                        |
                        +-> FELL_BACK_TO_SECONDARY -> RESOLVED

Once an attempt is RESOLVED its format never changes.
"""

import re
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Dict, Any, AsyncIterator, Set

import httpx

from ..core.cancellation import CancellationToken
from ..core.errors import BackendRequestError
from ..core.interface import GatewayCapability
from ..models.backend import BackendName
from ..models.events import StreamEvent
from ..models.request import PromptInput
from ..streaming.raw_json import parse_candidate_stream
from ..streaming.sse import parse_event_stream, chat_completion_delta, anthropic_text_delta
from .base import HTTPStreamingAdapter
from .payloads import build_openai_messages, build_anthropic_messages, build_gemini_contents

logger = logging.getLogger(__name__)

ZEN_MAX_TOKENS = 4096
FALLBACK_STATUSES = frozenset({401, 403, 404, 405})
_MISSING_API_KEY = re.compile(r"missing api key", re.IGNORECASE)


class StreamFormat(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"


class AttemptState(str, Enum):
    UNATTEMPTED = "unattempted"
    TRIED_PRIMARY = "tried_primary"
    FELL_BACK_TO_SECONDARY = "fell_back_to_secondary"
    RESOLVED = "resolved"


@dataclass(frozen=True)
class ZenRoute:
    """One endpoint Zen can be asked on, with the format it answers in."""
    url: str
    payload: Dict[str, Any]
    stream_format: StreamFormat


class ZenAttempt:
    """Format negotiation for a single Zen request."""

    def __init__(self, primary: ZenRoute, secondary: Optional[ZenRoute] = None):
        self.primary = primary
        self.secondary = secondary
        self.state = AttemptState.UNATTEMPTED
        self._route: Optional[ZenRoute] = None

    @property
    def route(self) -> Optional[ZenRoute]:
        return self._route

    @property
    def stream_format(self) -> Optional[StreamFormat]:
        return self._route.stream_format if self._route else None

    @property
    def can_fall_back(self) -> bool:
        return self.state is AttemptState.TRIED_PRIMARY and self.secondary is not None

    def start(self) -> ZenRoute:
        self._transition({AttemptState.UNATTEMPTED}, AttemptState.TRIED_PRIMARY)
        self._route = self.primary
        return self.primary

    def fall_back(self) -> ZenRoute:
        if not self.can_fall_back:
            raise RuntimeError(f"Cannot fall back from state {self.state.value}")
        self.state = AttemptState.FELL_BACK_TO_SECONDARY
        self._route = self.secondary
        return self.secondary

    def resolve(self) -> StreamFormat:
        self._transition(
            {AttemptState.TRIED_PRIMARY, AttemptState.FELL_BACK_TO_SECONDARY},
            AttemptState.RESOLVED,
        )
        return self._route.stream_format

    def _transition(self, allowed, target: AttemptState) -> None:
        if self.state not in allowed:
            raise RuntimeError(f"Invalid transition {self.state.value} -> {target.value}")
        self.state = target


def should_fall_back(error: BackendRequestError) -> bool:
    """Whether a failed chat-completions request should be retried natively."""
    return error.status_code in FALLBACK_STATUSES or bool(_MISSING_API_KEY.search(error.message))


class OpenCodeZenAdapter(HTTPStreamingAdapter):
    """
    OpenCode Zen models.

    - minimax models: Anthropic messages
    - gemini-3 models: chat completions, falling back to Gemini
      streamGenerateContent when Zen refuses the OpenAI route
    - everything else: chat completions
    """

    display_name = "OpenCode Zen"

    @property
    def backend(self) -> BackendName:
        return BackendName.OPENCODEZEN

    @property
    def capabilities(self) -> Set[GatewayCapability]:
        return {GatewayCapability.STREAMING, GatewayCapability.VISION}

    def _auth_headers(self) -> Dict[str, str]:
        api_key = self._settings.api_key
        if not api_key:
            return {}
        return {"Authorization": f"Bearer {api_key}", "x-api-key": api_key}

    def plan_attempt(self, model_id: str, prompt: PromptInput) -> ZenAttempt:
        """Routes for a model, primary first."""
        if "minimax" in model_id:
            built = build_anthropic_messages(prompt)
            payload = {
                "model": model_id,
                "messages": built["messages"],
                "max_tokens": ZEN_MAX_TOKENS,
                "stream": True,
            }
            if built["system"]:
                payload["system"] = built["system"]
            return ZenAttempt(ZenRoute(f"{self.base_url}/messages", payload, StreamFormat.ANTHROPIC))

        chat_payload = {
            "model": model_id,
            "messages": build_openai_messages(prompt),
            "stream": True,
        }
        primary = ZenRoute(f"{self.base_url}/chat/completions", chat_payload, StreamFormat.OPENAI)

        if model_id.startswith("gemini-3"):
            chat_payload["max_tokens"] = ZEN_MAX_TOKENS
            secondary = ZenRoute(
                f"{self.base_url}/models/{model_id}:streamGenerateContent",
                {"contents": build_gemini_contents(prompt)},
                StreamFormat.GOOGLE,
            )
            return ZenAttempt(primary, secondary)

        return ZenAttempt(primary)

    def build_payload(self, model_id: str, prompt: PromptInput) -> Dict[str, Any]:
        return self.plan_attempt(model_id, prompt).primary.payload

    def _parse(self, stream_format: StreamFormat, response: httpx.Response, token: CancellationToken):
        chunks = self._text_chunks(response, token)
        if stream_format is StreamFormat.ANTHROPIC:
            return parse_event_stream(chunks, anthropic_text_delta)
        if stream_format is StreamFormat.GOOGLE:
            return parse_candidate_stream(chunks)
        return parse_event_stream(chunks, chat_completion_delta)

    async def send_and_stream(
        self,
        model_id: str,
        prompt: PromptInput,
        token: CancellationToken,
    ) -> AsyncIterator[StreamEvent]:
        attempt = self.plan_attempt(model_id, self.prepare_prompt(prompt))
        attempt.start()

        try:
            async with self._open_stream(attempt.route.url, attempt.route.payload, token) as response:
                attempt.resolve()
                async for event in self._parse(attempt.stream_format, response, token):
                    yield event
                return
        except BackendRequestError as e:
            if not attempt.can_fall_back or not should_fall_back(e):
                raise
            logger.warning(
                f"OpenCode Zen refused chat completions for {model_id} "
                f"(HTTP {e.status_code}), retrying with streamGenerateContent"
            )

        attempt.fall_back()
        async with self._open_stream(attempt.route.url, attempt.route.payload, token) as response:
            attempt.resolve()
            async for event in self._parse(attempt.stream_format, response, token):
                yield event
