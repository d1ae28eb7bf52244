"""
Configuration loading for the chat gateway.

Configuration is read once at startup (YAML file and/or environment) and
treated as immutable for the lifetime of the process.
"""

import os
import json
import logging
from typing import Dict, List, Any, Optional, Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path

import yaml

from ..models.backend import BackendName

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = (
    "You are an expert software engineer. Answer clearly and include complete, "
    "working code when code is requested."
)

DEFAULT_BASE_URLS: Dict[BackendName, str] = {
    BackendName.CLAUDE: "https://api.anthropic.com/v1",
    BackendName.OPENAI: "https://api.openai.com/v1",
    BackendName.OPENROUTER: "https://openrouter.ai/api/v1",
    BackendName.GROQ: "https://api.groq.com/openai/v1",
    BackendName.FIREWORKS: "https://api.fireworks.ai/inference/v1",
    BackendName.ZAI: "https://api.z.ai/api/paas/v4",
    BackendName.OLLAMA: "http://localhost:11434",
    BackendName.GEMINI: "https://generativelanguage.googleapis.com",
    BackendName.OPENCODEZEN: "https://opencode.ai/zen/v1",
}

# First non-empty variable wins.
CREDENTIAL_ENV_VARS: Dict[BackendName, List[str]] = {
    BackendName.CLAUDE: ["CLAUDE_API_KEY", "ANTHROPIC_API_KEY"],
    BackendName.OPENAI: ["OPENAI_API_KEY"],
    BackendName.GEMINI: ["GEMINI_API_KEY"],
    BackendName.OPENROUTER: ["OPENROUTER_API_KEY"],
    BackendName.OLLAMA: ["OLLAMA_API_KEY"],
    BackendName.GROQ: ["GROQ_API_KEY"],
    BackendName.OPENCODEZEN: ["OPENCODE_API_KEY", "OPENCODE_ZEN_API_KEY", "OPENCODEZEN_API_KEY"],
    BackendName.FIREWORKS: ["FIREWORKS_API_KEY", "FIREWORKS_IMAGE_API_KEY"],
    BackendName.ZAI: ["ZAI_API_KEY"],
}

# Backends that can be called without a credential.
CREDENTIAL_OPTIONAL = frozenset({BackendName.OLLAMA, BackendName.CUSTOM})


@dataclass
class BackendSettings:
    """Connection settings for one backend."""
    base_url: Optional[str] = None
    api_key: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class GatewayConfig:
    """Complete gateway configuration."""
    backends: Dict[BackendName, BackendSettings] = field(default_factory=dict)
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    app_url: str = "http://localhost:1998"
    app_title: str = "chat-gateway"

    def settings_for(self, backend: BackendName) -> BackendSettings:
        settings = self.backends.get(backend) or BackendSettings()
        if not settings.base_url and backend in DEFAULT_BASE_URLS:
            settings = replace(settings, base_url=DEFAULT_BASE_URLS[backend])
        return settings

    def credential_for(self, backend: BackendName) -> Optional[str]:
        """Non-empty credential for a backend, or None if not configured."""
        api_key = self.settings_for(backend).api_key
        if isinstance(api_key, str) and api_key.strip():
            return api_key.strip()
        return None


def credential_hint(backend: BackendName) -> str:
    """Human guidance naming the variables that configure a backend."""
    names = CREDENTIAL_ENV_VARS.get(backend, [])
    if not names:
        return ""
    if len(names) == 1:
        return f"Set {names[0]}."
    return f"Set {names[0]} (or {' / '.join(names[1:])})."


def load_config(
    config_path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> GatewayConfig:
    """
    Load gateway configuration.

    Environment variables provide the baseline; a YAML file, when found,
    overrides it per backend.

    Args:
        config_path: Path to config file. If None, uses default locations.
        environ: Environment mapping. Defaults to os.environ.

    Returns:
        Loaded configuration
    """
    environ = os.environ if environ is None else environ
    config = config_from_env(environ)

    if config_path is None:
        paths = [
            Path("config/chat-gateway/gateway.yaml"),
            Path("/etc/chat-gateway/gateway.yaml"),
            Path.home() / ".config/chat-gateway/gateway.yaml",
        ]
        for p in paths:
            if p.exists():
                config_path = str(p)
                break

    if config_path is None or not Path(config_path).exists():
        logger.info("No gateway config file found, using environment only")
        return config

    try:
        with open(config_path, 'r') as f:
            data = yaml.safe_load(f) or {}

        return _apply_yaml(config, data, environ)

    except Exception as e:
        logger.error(f"Failed to load config from {config_path}: {e}")
        return config


def config_from_env(environ: Mapping[str, str]) -> GatewayConfig:
    """Build configuration from environment variables only."""
    backends: Dict[BackendName, BackendSettings] = {}

    for backend, names in CREDENTIAL_ENV_VARS.items():
        api_key = next((environ[n].strip() for n in names if environ.get(n, "").strip()), None)
        backends[backend] = BackendSettings(
            base_url=DEFAULT_BASE_URLS.get(backend),
            api_key=api_key,
        )

    fireworks_url = (environ.get("FIREWORKS_CHAT_BASE_URL") or environ.get("FIREWORKS_BASE_URL") or "").strip()
    if fireworks_url:
        backends[BackendName.FIREWORKS].base_url = fireworks_url

    gemini = backends[BackendName.GEMINI]
    gemini_url = (environ.get("GEMINI_API_BASE_URL") or "").strip()
    if gemini_url:
        gemini.base_url = gemini_url
    gemini.extra["api_version"] = (environ.get("GEMINI_API_VERSION") or "v1beta").strip().strip("/")

    ollama = backends[BackendName.OLLAMA]
    ollama_url = (environ.get("OLLAMA_BASE_URL") or "").strip()
    if ollama_url:
        ollama.base_url = ollama_url
    ollama.headers.update(_ollama_headers(environ))

    return GatewayConfig(
        backends=backends,
        system_prompt=environ.get("CHAT_GATEWAY_SYSTEM_PROMPT") or DEFAULT_SYSTEM_PROMPT,
        app_url=(environ.get("APP_URL") or "").strip() or "http://localhost:1998",
        app_title=(environ.get("APP_TITLE") or "").strip() or "chat-gateway",
    )


def _ollama_headers(environ: Mapping[str, str]) -> Dict[str, str]:
    headers: Dict[str, str] = {}

    client_id = environ.get("OLLAMA_CF_ACCESS_CLIENT_ID")
    client_secret = environ.get("OLLAMA_CF_ACCESS_CLIENT_SECRET")
    if client_id and client_secret:
        headers["CF-Access-Client-Id"] = client_id
        headers["CF-Access-Client-Secret"] = client_secret

    raw = environ.get("OLLAMA_CUSTOM_HEADERS")
    if raw:
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("OLLAMA_CUSTOM_HEADERS is not valid JSON, ignoring")
            parsed = None
        headers.update(_string_headers(parsed))

    return headers


def _string_headers(value: Any) -> Dict[str, str]:
    """Keep only string keys with scalar values."""
    if not isinstance(value, dict):
        return {}
    headers = {}
    for key, item in value.items():
        name = key.strip() if isinstance(key, str) else ""
        if not name or item is None:
            continue
        if isinstance(item, bool):
            headers[name] = str(item).lower()
        elif isinstance(item, (str, int, float)):
            headers[name] = str(item)
    return headers


def _expand(value: Any, environ: Mapping[str, str]) -> Any:
    # Expand "${VAR}" references
    if isinstance(value, str) and value.startswith("${") and value.endswith("}"):
        return environ.get(value[2:-1], "")
    return value


def _apply_yaml(config: GatewayConfig, data: Dict[str, Any], environ: Mapping[str, str]) -> GatewayConfig:
    """Overlay parsed YAML onto an environment-derived configuration."""
    backends = dict(config.backends)

    for name, bk_data in (data.get("backends") or {}).items():
        backend = BackendName.parse(name)
        if backend is None:
            logger.warning(f"Ignoring unknown backend in config: {name}")
            continue
        bk_data = bk_data or {}
        current = backends.get(backend) or BackendSettings(base_url=DEFAULT_BASE_URLS.get(backend))

        api_key = _expand(bk_data.get("api_key"), environ)
        backends[backend] = BackendSettings(
            base_url=_expand(bk_data.get("base_url"), environ) or current.base_url,
            api_key=api_key or current.api_key,
            headers={**current.headers, **_string_headers(bk_data.get("headers"))},
            extra={**current.extra, **(bk_data.get("extra") or {})},
        )

    return GatewayConfig(
        backends=backends,
        system_prompt=data.get("system_prompt") or config.system_prompt,
        app_url=data.get("app_url") or config.app_url,
        app_title=data.get("app_title") or config.app_title,
    )
