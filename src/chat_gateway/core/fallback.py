"""
Sequential model fallback for a single backend.

Every request runs through the cascade. Only adapters with the
FREE_TIER_FALLBACK capability get more than one candidate; OpenRouter
free-tier models offer a list of free alternatives to try when
the first choice is rate-limited or unavailable.
"""

import re
import logging
from typing import Optional, AsyncIterator

from opentelemetry import trace

from ..models.events import StreamEvent, TextEvent, ErrorEvent
from ..models.request import PromptInput
from .cancellation import CancellationToken
from .errors import GatewayError, GatewayCancelledError, BackendRequestError
from .interface import BackendAdapter, GatewayCapability

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

QUALIFYING_STATUSES = frozenset({404, 429})
_QUALIFYING_MESSAGE = re.compile(
    r"\b429\b|rate-?limited|too many requests|no endpoints found",
    re.IGNORECASE,
)


def is_qualifying_failure(status_code: Optional[int], message: str) -> bool:
    """Whether a failure means "try the next candidate" rather than "give up"."""
    if status_code in QUALIFYING_STATUSES:
        return True
    return bool(_QUALIFYING_MESSAGE.search(message or ""))


class FallbackCascade:
    """
    Runs an adapter over its fallback candidates, strictly one at a time.

    Fallback is only possible before any text reaches the caller. After the
    first text event, a failure ends the stream with an error event.
    The cascade never emits DoneEvent; the caller adds it.
    """

    def __init__(self, adapter: BackendAdapter):
        self._adapter = adapter

    async def run(
        self,
        model_id: str,
        prompt: PromptInput,
        token: CancellationToken,
    ) -> AsyncIterator[StreamEvent]:
        adapter = self._adapter
        if adapter.supports(GatewayCapability.FREE_TIER_FALLBACK):
            candidates = adapter.fallback_candidates(model_id) or [model_id]
        else:
            candidates = [model_id]
        emitted_text = False
        last_error: Optional[GatewayError] = None

        for index, candidate in enumerate(candidates):
            token.raise_if_cancelled()
            has_next = index < len(candidates) - 1
            last_error = None

            with tracer.start_span("backend_attempt") as span:
                span.set_attribute("backend", adapter.name)
                span.set_attribute("model", candidate)
                span.set_attribute("attempt", index + 1)

                stream = adapter.send_and_stream(candidate, prompt, token)
                try:
                    async for event in stream:
                        if isinstance(event, ErrorEvent):
                            last_error = GatewayError(event.error, backend=adapter.name)
                            break
                        if isinstance(event, TextEvent):
                            emitted_text = True
                        yield event
                except GatewayCancelledError:
                    raise
                except GatewayError as e:
                    last_error = e
                finally:
                    await stream.aclose()

                if last_error is None:
                    return

                span.set_attribute("error", last_error.message)

            status = last_error.status_code if isinstance(last_error, BackendRequestError) else None
            if emitted_text or not has_next or not is_qualifying_failure(status, last_error.message):
                break

            logger.warning(
                f"{adapter.name} model {candidate} unavailable ({last_error.message[:200]}), "
                f"trying {candidates[index + 1]}"
            )

        if last_error is not None:
            yield ErrorEvent(error=adapter.format_error(last_error))
