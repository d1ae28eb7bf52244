"""
Service settings for the chat gateway HTTP server.
"""

import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class Settings:
    """Server settings. Backend configuration lives in core.config."""

    # Gateway config file (YAML); default locations are searched when unset
    config_path: Optional[str] = os.getenv("CHAT_GATEWAY_CONFIG")

    # OpenTelemetry; spans are only exported when an endpoint is set
    otel_endpoint: Optional[str] = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    service_name: str = os.getenv("OTEL_SERVICE_NAME", "chat-gateway")

    # CORS
    cors_origins: str = os.getenv("CORS_ORIGINS", "*")

    # Server
    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "1998"))


settings = Settings()
