"""
Backend adapters, one per supported backend.
"""

from .base import HTTPStreamingAdapter
from .openai_compatible import (
    OpenAICompatibleAdapter,
    OpenAIAdapter,
    FireworksAdapter,
    ZaiAdapter,
    GroqAdapter,
    OpenRouterAdapter,
    CustomProviderAdapter,
    FREE_FALLBACK_MODELS,
)
from .anthropic import AnthropicAdapter
from .ollama import OllamaAdapter
from .gemini import GeminiAdapter
from .opencode_zen import OpenCodeZenAdapter, ZenAttempt, AttemptState, StreamFormat

__all__ = [
    "HTTPStreamingAdapter",
    "OpenAICompatibleAdapter",
    "OpenAIAdapter",
    "FireworksAdapter",
    "ZaiAdapter",
    "GroqAdapter",
    "OpenRouterAdapter",
    "CustomProviderAdapter",
    "FREE_FALLBACK_MODELS",
    "AnthropicAdapter",
    "OllamaAdapter",
    "GeminiAdapter",
    "OpenCodeZenAdapter",
    "ZenAttempt",
    "AttemptState",
    "StreamFormat",
]
