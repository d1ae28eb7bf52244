"""
Chat gateway orchestrator.

Turns one chat request into exactly one normalized event stream: resolve the
model, check credentials, normalize attachments, then run the backend
adapter through the fallback cascade.
"""

import logging
from dataclasses import dataclass
from typing import Optional, AsyncIterator

import httpx
from opentelemetry import trace

from ..models.attachments import normalize_attachments
from ..models.backend import BackendName, ResolvedModel
from ..models.events import StreamEvent, ErrorEvent, DoneEvent
from ..models.request import ChatRequest, PromptInput
from .cancellation import CancellationToken
from .catalog import resolve_model
from .config import GatewayConfig, CREDENTIAL_OPTIONAL, credential_hint, load_config
from .errors import (
    GatewayError,
    GatewayCancelledError,
    GatewayConfigurationError,
    GatewayUnavailableError,
    UnresolvableModelError,
)
from .fallback import FallbackCascade
from .interface import BackendAdapter
from .registry import BackendRegistry, get_registry
from .prompts import build_system_prompt

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass(frozen=True)
class PreparedChat:
    """A request that passed every pre-stream check."""
    resolved: ResolvedModel
    prompt: PromptInput
    adapter: BackendAdapter


class ChatGateway:
    """
    Entry point for streaming chat.

    Holds the configuration, the backend registry and one pooled HTTP
    client shared by all requests. Requests are otherwise independent.
    """

    def __init__(
        self,
        config: Optional[GatewayConfig] = None,
        registry: Optional[BackendRegistry] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config or load_config()
        self.registry = registry or get_registry()
        self._client = client
        self._owns_client = client is None

    @property
    def is_connected(self) -> bool:
        return self._client is not None and not self._client.is_closed

    async def connect(self) -> None:
        """Create the shared HTTP client. No read timeout: streams may be long."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(None, connect=30.0))
            self._owns_client = True
            logger.info("Chat gateway HTTP client ready")

    async def disconnect(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            logger.info("Chat gateway HTTP client closed")
        self._client = None

    def build_system_prompt(self, request: Optional[ChatRequest] = None) -> str:
        return build_system_prompt(self.config.system_prompt, request)

    def prepare(self, request: ChatRequest) -> PreparedChat:
        """
        Run every check that must pass before a stream is opened.

        Args:
            request: Incoming chat request

        Returns:
            Resolved model, normalized prompt and the adapter to use

        Raises:
            UnresolvableModelError: Empty message list or incomplete custom provider
            GatewayConfigurationError: The resolved backend has no credential
            BackendNotFoundError: No adapter registered for the backend
            GatewayUnavailableError: connect() has not been called
        """
        if not self.is_connected:
            raise GatewayUnavailableError("Chat gateway is not connected")

        if not request.messages:
            raise UnresolvableModelError("Messages are required")

        resolved = resolve_model(request.model, request.provider, request.custom_config)
        backend = resolved.backend

        if backend not in CREDENTIAL_OPTIONAL and self.config.credential_for(backend) is None:
            hint = credential_hint(backend)
            message = f"{backend.value.upper()} API key is not configured."
            raise GatewayConfigurationError(f"{message} {hint}" if hint else message, backend=backend.value)

        kwargs = {}
        if backend is BackendName.CUSTOM:
            kwargs["custom_config"] = request.custom_config
        adapter = self.registry.create_adapter(backend, self.config, self._client, **kwargs)

        prompt = PromptInput(
            system_prompt=self.build_system_prompt(request),
            messages=request.messages,
            attachments=normalize_attachments(request.attachments),
        )

        logger.info(
            f"Routing model {request.model or '<default>'!r} to {resolved} "
            f"({len(request.messages)} messages, {len(prompt.attachments)} attachments)"
        )
        return PreparedChat(resolved=resolved, prompt=prompt, adapter=adapter)

    async def stream(
        self,
        prepared: PreparedChat,
        token: Optional[CancellationToken] = None,
    ) -> AsyncIterator[StreamEvent]:
        """
        Stream normalized events for a prepared request.

        Ends with exactly one ErrorEvent or DoneEvent. After cancellation
        nothing more is yielded, not even a terminal event.
        """
        token = token or CancellationToken()
        resolved = prepared.resolved

        with tracer.start_span("chat_stream") as span:
            span.set_attribute("backend", resolved.backend.value)
            span.set_attribute("model", resolved.backend_model_id)

            cascade = FallbackCascade(prepared.adapter)
            events = cascade.run(resolved.backend_model_id, prepared.prompt, token)
            terminal: StreamEvent = DoneEvent()
            try:
                async for event in events:
                    if token.cancelled:
                        return
                    if isinstance(event, ErrorEvent):
                        terminal = event
                        break
                    yield event
            except GatewayCancelledError:
                logger.info(f"Chat stream for {resolved} cancelled by caller")
                span.set_attribute("cancelled", True)
                return
            except GatewayError as e:
                terminal = ErrorEvent(error=prepared.adapter.format_error(e))
            except Exception as e:
                logger.exception(f"Unexpected failure streaming from {resolved}")
                terminal = ErrorEvent(error=str(e) or "Internal server error")
            finally:
                await events.aclose()

            if token.cancelled:
                return
            if isinstance(terminal, ErrorEvent):
                span.set_attribute("error", terminal.error)
                logger.warning(f"Chat stream for {resolved} ended with error: {terminal.error[:200]}")
            yield terminal

    async def stream_chat(
        self,
        request: ChatRequest,
        token: Optional[CancellationToken] = None,
    ) -> AsyncIterator[StreamEvent]:
        """Prepare and stream in one call. Pre-stream checks raise before the first event."""
        prepared = self.prepare(request)
        async for event in self.stream(prepared, token):
            yield event
