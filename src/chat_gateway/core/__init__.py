"""
Core chat gateway components.
"""

from .interface import BackendAdapter, GatewayCapability
from .registry import BackendRegistry, get_registry
from .config import GatewayConfig, BackendSettings, load_config
from .cancellation import CancellationToken
from .catalog import MODEL_CATALOG, DEFAULT_MODEL, resolve_model, parse_model_prefix
from .fallback import FallbackCascade, is_qualifying_failure
from .gateway import ChatGateway, PreparedChat
from .prompts import build_system_prompt
from .errors import (
    GatewayError,
    GatewayConfigurationError,
    UnresolvableModelError,
    BackendNotFoundError,
    BackendConnectionError,
    BackendRequestError,
    GatewayCancelledError,
    GatewayUnavailableError,
)

__all__ = [
    "BackendAdapter",
    "GatewayCapability",
    "BackendRegistry",
    "get_registry",
    "GatewayConfig",
    "BackendSettings",
    "load_config",
    "CancellationToken",
    "MODEL_CATALOG",
    "DEFAULT_MODEL",
    "resolve_model",
    "parse_model_prefix",
    "FallbackCascade",
    "is_qualifying_failure",
    "ChatGateway",
    "PreparedChat",
    "build_system_prompt",
    "GatewayError",
    "GatewayConfigurationError",
    "UnresolvableModelError",
    "BackendNotFoundError",
    "BackendConnectionError",
    "BackendRequestError",
    "GatewayCancelledError",
    "GatewayUnavailableError",
]
