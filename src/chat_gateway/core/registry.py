"""
Backend registry: maps each backend to its adapter class.
"""

import logging
from typing import Dict, List, Optional, Type, Any

import httpx

from ..models.backend import BackendName
from .config import GatewayConfig
from .errors import BackendNotFoundError
from .interface import BackendAdapter, GatewayCapability

logger = logging.getLogger(__name__)


class BackendRegistry:
    """
    Registry for backend adapters.

    Adapter classes are registered once per backend; an adapter instance is
    created per request for the backend the model resolved to.
    """

    def __init__(self):
        self._adapters: Dict[BackendName, Type[BackendAdapter]] = {}

    def register_adapter(
        self,
        backend: BackendName,
        adapter_class: Type[BackendAdapter]
    ) -> None:
        """
        Register a backend adapter class.

        Args:
            backend: Backend served by the adapter
            adapter_class: Adapter class to register
        """
        self._adapters[backend] = adapter_class
        logger.debug(f"Registered backend adapter: {backend.value} -> {adapter_class.__name__}")

    def create_adapter(
        self,
        backend: BackendName,
        config: GatewayConfig,
        client: httpx.AsyncClient,
        **kwargs: Any
    ) -> BackendAdapter:
        """
        Create an adapter for one request.

        Args:
            backend: Resolved backend
            config: Gateway configuration
            client: Shared HTTP client
            **kwargs: Adapter-specific options (e.g. custom_config)

        Returns:
            Adapter instance

        Raises:
            BackendNotFoundError: If no adapter is registered for the backend
        """
        adapter_class = self._adapters.get(backend)
        if adapter_class is None:
            raise BackendNotFoundError(f"Unknown backend: {backend.value}", backend=backend.value)
        return adapter_class(config, client, **kwargs)

    def is_registered(self, backend: BackendName) -> bool:
        return backend in self._adapters

    def list_backends(self) -> List[Dict[str, Any]]:
        """
        List registered backends and what they support.

        Returns:
            List of backend info dicts
        """
        config = GatewayConfig()
        info = []
        for backend, adapter_class in self._adapters.items():
            adapter = adapter_class(config, None)
            info.append({
                "name": backend.value,
                "adapter": adapter_class.__name__,
                "capabilities": sorted(c.value for c in adapter.capabilities),
            })
        return info

    def find_backends_with_capability(self, capability: GatewayCapability) -> List[BackendName]:
        """Backends whose adapter supports a capability."""
        config = GatewayConfig()
        return [
            backend for backend, adapter_class in self._adapters.items()
            if adapter_class(config, None).supports(capability)
        ]


def register_builtin_adapters(registry: BackendRegistry) -> None:
    """Register the adapters shipped with the gateway."""
    from ..adapters import (
        AnthropicAdapter,
        OpenAIAdapter,
        OpenRouterAdapter,
        OllamaAdapter,
        GroqAdapter,
        GeminiAdapter,
        OpenCodeZenAdapter,
        FireworksAdapter,
        ZaiAdapter,
        CustomProviderAdapter,
    )

    registry.register_adapter(BackendName.CLAUDE, AnthropicAdapter)
    registry.register_adapter(BackendName.OPENAI, OpenAIAdapter)
    registry.register_adapter(BackendName.OPENROUTER, OpenRouterAdapter)
    registry.register_adapter(BackendName.OLLAMA, OllamaAdapter)
    registry.register_adapter(BackendName.GROQ, GroqAdapter)
    registry.register_adapter(BackendName.GEMINI, GeminiAdapter)
    registry.register_adapter(BackendName.OPENCODEZEN, OpenCodeZenAdapter)
    registry.register_adapter(BackendName.FIREWORKS, FireworksAdapter)
    registry.register_adapter(BackendName.ZAI, ZaiAdapter)
    registry.register_adapter(BackendName.CUSTOM, CustomProviderAdapter)


# Global registry instance
_registry: Optional[BackendRegistry] = None


def get_registry() -> BackendRegistry:
    """Get the global backend registry, populated with the built-in adapters."""
    global _registry
    if _registry is None:
        _registry = BackendRegistry()
        register_builtin_adapters(_registry)
    return _registry
