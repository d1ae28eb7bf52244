"""
Static model catalog and model resolution.

The catalog maps client-facing model names to a backend and the model id
that backend expects. It is built once at import and never mutated.
"""

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Optional, Dict, List, Any, Mapping

from ..models.backend import BackendName, ResolvedModel, PREFIXABLE_BACKENDS
from ..models.request import CustomProviderConfig
from .errors import UnresolvableModelError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CatalogEntry:
    """Backend and upstream model id for one catalog name."""
    backend: BackendName
    api_model: str


def _entries(backend: BackendName, models: Dict[str, str]) -> Dict[str, CatalogEntry]:
    return {name: CatalogEntry(backend, api_model) for name, api_model in models.items()}


_CATALOG: Dict[str, CatalogEntry] = {}

_CATALOG.update(_entries(BackendName.CLAUDE, {
    "claude-opus-4.5": "claude-3-opus-20240229",
    "claude-sonnet-4.5": "claude-3-5-sonnet-latest",
    "claude-3.5-sonnet": "claude-3-5-sonnet-latest",
    "claude-3.5-haiku": "claude-3-5-haiku-latest",
    "claude-3-7-sonnet": "claude-3-7-sonnet-20250219",
}))

_CATALOG.update(_entries(BackendName.OPENAI, {
    "gpt-4o": "gpt-4o",
    "gpt-4o-mini": "gpt-4o-mini",
    "o1": "o1",
    "o1-mini": "o1-mini",
    "o3-mini": "o3-mini",
}))

_CATALOG.update(_entries(BackendName.GEMINI, {
    "gemini-3-flash-preview": "gemini-3-flash-preview",
    "gemini-3-pro-preview": "gemini-3-pro-preview",
    "gemini-2.5-flash": "gemini-2.5-flash",
    "gemini-2.5-pro": "gemini-2.5-pro",
    "gemini-2.0-flash": "gemini-2.0-flash",
    "gemini-2.0-flash-lite": "gemini-2.0-flash-lite",
    "gemini-flash-latest": "gemini-flash-latest",
    "gemini-pro-latest": "gemini-pro-latest",
    # Backwards-compatible aliases
    "gemini-1.5-pro": "gemini-pro-latest",
    "gemini-1.5-flash": "gemini-flash-latest",
    "gemini-2.0-pro": "gemini-2.5-pro",
}))

_CATALOG.update(_entries(BackendName.OPENROUTER, {
    "anthropic/claude-3.5-sonnet": "anthropic/claude-3.5-sonnet",
    "openai/gpt-4o": "openai/gpt-4o",
    "deepseek/deepseek-r1": "deepseek/deepseek-r1",
    "deepseek/deepseek-chat": "deepseek/deepseek-chat",
    "deepseek/deepseek-r1:free": "deepseek/deepseek-r1:free",
    "deepseek/deepseek-chat:free": "deepseek/deepseek-chat:free",
    # Free tier
    "deepseek-chat-free": "meta-llama/llama-3.3-70b-instruct:free",
    "deepseek-r1-free": "deepseek/deepseek-r1-0528:free",
    "qwen-coder-free": "qwen/qwen3-coder:free",
    "qwen-72b-free": "meta-llama/llama-3.3-70b-instruct:free",
    "llama-3.3-70b-free": "meta-llama/llama-3.3-70b-instruct:free",
    "gemma-2-27b-free": "google/gemma-3-27b-it:free",
    "mistral-nemo-free": "mistralai/devstral-2:24b",
    # Paid
    "deepseek-coder-v2-or": "deepseek/deepseek-coder",
    "claude-3.5-sonnet-or": "anthropic/claude-3.5-sonnet",
    "gpt-4o-or": "openai/gpt-4o",
    "codellama-70b": "meta-llama/codellama-70b-instruct",
    "gemini-2.0-flash-or": "google/gemini-2.0-flash-001",
    "gemini-2.0-pro-or": "google/gemini-2.0-pro-exp-02-05:free",
    "gemini-1.5-pro-or": "google/gemini-pro-1.5",
    "gemini-1.5-flash-or": "google/gemini-flash-1.5",
}))

_CATALOG.update(_entries(BackendName.GROQ, {
    "deepseek-r1-distill-llama-70b": "deepseek-r1-distill-llama-70b",
    "llama-3.3-70b-versatile": "llama-3.3-70b-versatile",
    "groq-llama-3.1-70b": "llama-3.1-70b-versatile",
    "groq-llama-3.1-8b": "llama-3.1-8b-instant",
    "groq-gemma2-9b-it": "gemma2-9b-it",
    "groq-mixtral-8x7b": "mixtral-8x7b",
}))

_CATALOG.update(_entries(BackendName.OPENCODEZEN, {
    "big-pickle": "big-pickle",
    "minimax-m2.1-free": "minimax-m2.1-free",
    "grok-code": "grok-code",
    "grok-code-fast-1": "grok-code",
    "gpt-5-nano": "gpt-5-nano",
    "glm-4.6": "glm-4.6",
    "gpt-5": "gpt-5",
    "gpt-5-codex": "gpt-5-codex",
    "gpt-5.1": "gpt-5.1",
    "gpt-5.1-codex": "gpt-5.1-codex",
    "gpt-5.1-codex-max": "gpt-5.1-codex-max",
    "gpt-5.1-codex-mini": "gpt-5.1-codex-mini",
    "gpt-5.2": "gpt-5.2",
    "gpt-5.2-codex": "gpt-5.2-codex",
    "gemini-3-flash": "gemini-3-flash",
    "gemini-3-pro": "gemini-3-pro",
}))

_CATALOG.update(_entries(BackendName.ZAI, {
    "glm-4.7:zai": "glm-4.7",
    "glm-4.7:cloud": "glm-4.7",
    "glm-4.6:zai": "glm-4.6",
    "glm-4-flash:zai": "glm-4-flash",
    "glm-4-flashx:zai": "glm-4-flashx",
}))

_CATALOG.update(_entries(BackendName.OLLAMA, {
    name: name for name in (
        # Local
        "llama3", "llama3:8b", "llama3.1", "llama3.2", "mistral", "gemma",
        "gemma2", "qwen2.5-coder", "deepseek-r1", "deepseek-r1:7b",
        "deepseek-coder-v2", "codellama", "dolphin-mixtral", "phi3",
        # Ollama cloud
        "cogito-2.1:671b-cloud", "deepseek-v3.2:cloud",
        "gemini-3-flash-preview:cloud", "gemma3:4b-cloud", "gpt-oss:20b-cloud",
        "gpt-oss:120b-cloud", "kimi-k2-thinking:cloud", "minimax-m2:cloud",
        "minimax-m2.1:cloud", "qwen3-coder:480b-cloud", "qwen3-next:80b-cloud",
        "qwen3-vl:235b-cloud", "rnj-1:8b-cloud",
    )
}))

MODEL_CATALOG: Mapping[str, CatalogEntry] = MappingProxyType(_CATALOG)

DEFAULT_MODEL = "claude-sonnet-4.5"


def list_catalog() -> List[Dict[str, Any]]:
    """Catalog as plain dicts, for the models endpoint."""
    return [
        {"id": name, "provider": entry.backend.value, "apiModel": entry.api_model}
        for name, entry in MODEL_CATALOG.items()
    ]


def parse_model_prefix(value: Any) -> Optional[ResolvedModel]:
    """
    Parse "<backend>:<model>" references.

    Only the first colon splits; the rest belongs to the model id, so
    "ollama:llama3:8b" is ("ollama", "llama3:8b").
    """
    if not isinstance(value, str):
        return None
    prefix, sep, rest = value.partition(":")
    if not sep:
        return None
    backend = BackendName.parse(prefix)
    if backend is None or backend not in PREFIXABLE_BACKENDS:
        return None
    model = rest.strip()
    if not model:
        return None
    return ResolvedModel(backend=backend, backend_model_id=model)


def _canonical(backend: BackendName, model: str) -> ResolvedModel:
    entry = MODEL_CATALOG.get(model)
    if entry is not None and entry.backend is backend:
        return ResolvedModel(backend=backend, backend_model_id=entry.api_model)
    return ResolvedModel(backend=backend, backend_model_id=model)


def resolve_model(
    raw_model: Any,
    explicit_provider: Optional[str] = None,
    custom_config: Optional[CustomProviderConfig] = None,
) -> ResolvedModel:
    """
    Resolve a client model reference into a backend and model id.

    Precedence, first match wins:
        1. "<backend>:<model>" prefix
        2. explicit provider plus a non-empty model name
        3. direct catalog lookup
        4. DEFAULT_MODEL

    A catalog entry only supplies the canonical id when it belongs to the
    backend chosen by rules 1 or 2.

    Args:
        raw_model: Model reference as sent by the caller
        explicit_provider: Optional backend hint
        custom_config: Endpoint details when explicit_provider is "custom"

    Returns:
        Resolved backend and model id

    Raises:
        UnresolvableModelError: For an incomplete custom provider configuration
    """
    model_name = raw_model.strip() if isinstance(raw_model, str) else ""

    if BackendName.parse(explicit_provider) is BackendName.CUSTOM and custom_config is not None:
        return _resolve_custom(model_name, custom_config)

    parsed = parse_model_prefix(model_name)
    if parsed is not None:
        return _canonical(parsed.backend, parsed.backend_model_id)

    provider = BackendName.parse(explicit_provider)
    if provider is not None and provider in PREFIXABLE_BACKENDS and model_name:
        return _canonical(provider, model_name)

    entry = MODEL_CATALOG.get(model_name)
    if entry is None:
        if model_name:
            logger.info(f"Unknown model {model_name!r}, using default {DEFAULT_MODEL}")
        entry = MODEL_CATALOG[DEFAULT_MODEL]
    return ResolvedModel(backend=entry.backend, backend_model_id=entry.api_model)


def _resolve_custom(model_name: str, custom_config: CustomProviderConfig) -> ResolvedModel:
    if not (custom_config.base_url or "").strip():
        raise UnresolvableModelError(
            "Custom provider requires a base URL",
            backend=BackendName.CUSTOM.value,
        )
    model = (custom_config.model or "").strip() or model_name
    if not model:
        raise UnresolvableModelError(
            "Custom provider requires a model id",
            backend=BackendName.CUSTOM.value,
        )
    return ResolvedModel(backend=BackendName.CUSTOM, backend_model_id=model)
