"""
Backend adapter interface definition.

Defines the contract that every backend adapter implements: build a
backend-shaped payload and stream normalized events back.
"""

from abc import ABC, abstractmethod
from typing import List, Dict, Any, AsyncIterator, Set
from enum import Enum

import httpx

from ..models.backend import BackendName
from ..models.events import StreamEvent
from ..models.request import PromptInput
from .cancellation import CancellationToken
from .config import GatewayConfig
from .errors import GatewayError


class GatewayCapability(str, Enum):
    """Capabilities that a backend adapter may support."""
    STREAMING = "streaming"
    VISION = "vision"
    RATE_LIMIT_HEADERS = "rate_limit_headers"
    FREE_TIER_FALLBACK = "free_tier_fallback"


class BackendAdapter(ABC):
    """
    Abstract base class for backend adapters.

    One adapter instance serves one request. It shares the process-wide
    HTTP client and configuration, both of which it treats as read-only.
    """

    def __init__(self, config: GatewayConfig, client: httpx.AsyncClient, **kwargs):
        self._config = config
        self._client = client
        self._settings = config.settings_for(self.backend)

    @property
    @abstractmethod
    def backend(self) -> BackendName:
        """
        Backend served by this adapter.

        Returns:
            BackendName member
        """
        pass

    @property
    @abstractmethod
    def capabilities(self) -> Set[GatewayCapability]:
        """
        Set of capabilities this backend supports.

        Returns:
            Set of GatewayCapability values
        """
        pass

    @property
    def name(self) -> str:
        return self.backend.value

    @abstractmethod
    def build_payload(self, model_id: str, prompt: PromptInput) -> Dict[str, Any]:
        """
        Build the request body for one attempt.

        Args:
            model_id: Backend model id
            prompt: Normalized prompt

        Returns:
            JSON-serializable request body
        """
        pass

    @abstractmethod
    def send_and_stream(
        self,
        model_id: str,
        prompt: PromptInput,
        token: CancellationToken,
    ) -> AsyncIterator[StreamEvent]:
        """
        Send one request and stream normalized events.

        Implementations yield TextEvent and RateLimitEvent, and at most one
        trailing ErrorEvent for an error reported inside the stream. Failures
        before or during the stream are raised as GatewayError.

        Args:
            model_id: Backend model id
            prompt: Normalized prompt
            token: Cancellation token checked at every network read

        Yields:
            Normalized stream events
        """
        pass

    def prepare_prompt(self, prompt: PromptInput) -> PromptInput:
        """Drop what this backend cannot accept."""
        if not self.supports(GatewayCapability.VISION):
            return prompt.without_images()
        return prompt

    def fallback_candidates(self, model_id: str) -> List[str]:
        """Ordered model ids to try for this request. Default: just the one."""
        return [model_id]

    def format_error(self, error: GatewayError) -> str:
        """Caller-facing message for a failed attempt."""
        return error.message

    def supports(self, capability: GatewayCapability) -> bool:
        return capability in self.capabilities

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(backend={self.name!r})"
