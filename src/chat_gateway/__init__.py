"""
Chat Gateway

A streaming chat front end for many LLM backends:
- Resolve a client model reference to one backend
- Normalize attachments and build backend-shaped payloads
- Translate every backend's stream into one event format
- Fall back across free-tier models on rate limits
"""

from .core.gateway import ChatGateway
from .core.interface import BackendAdapter, GatewayCapability
from .core.registry import BackendRegistry, get_registry
from .core.config import GatewayConfig, load_config
from .core.cancellation import CancellationToken
from .models.request import ChatRequest, Message, CustomProviderConfig
from .models.events import StreamEvent, TextEvent, RateLimitEvent, ErrorEvent, DoneEvent

__all__ = [
    "ChatGateway",
    "BackendAdapter",
    "GatewayCapability",
    "BackendRegistry",
    "get_registry",
    "GatewayConfig",
    "load_config",
    "CancellationToken",
    "ChatRequest",
    "Message",
    "CustomProviderConfig",
    "StreamEvent",
    "TextEvent",
    "RateLimitEvent",
    "ErrorEvent",
    "DoneEvent",
]
