"""
Chat Gateway Service

A FastAPI service that streams chat completions from many LLM backends
through one normalized event stream.

Features:
- Model resolution across Claude, OpenAI, OpenRouter, Groq, Gemini,
  Ollama, OpenCode Zen, Fireworks, Z.ai and custom endpoints
- Attachment normalization (images, text files, binaries)
- Free-tier fallback across OpenRouter models
- Rate limit snapshots forwarded from backend headers
"""

import logging
from typing import Optional
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from opentelemetry import trace
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.sdk.resources import Resource

from .api.routes import router, set_dependencies
from .core.config import load_config
from .core.gateway import ChatGateway
from .settings import settings

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# Global resources
gateway: Optional[ChatGateway] = None


def setup_tracing() -> None:
    """Install the OTLP span exporter when an endpoint is configured."""
    if not settings.otel_endpoint:
        logger.info("OTEL_EXPORTER_OTLP_ENDPOINT not set, spans are not exported")
        return

    resource = Resource.create({"service.name": settings.service_name})
    provider = TracerProvider(resource=resource)
    processor = BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otel_endpoint))
    provider.add_span_processor(processor)
    trace.set_tracer_provider(provider)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    global gateway

    setup_tracing()

    gateway = ChatGateway(config=load_config(settings.config_path))
    await gateway.connect()
    set_dependencies(gateway)

    configured = [
        backend.value for backend in gateway.config.backends
        if gateway.config.credential_for(backend)
    ]
    logger.info(f"Chat gateway started (credentials for: {', '.join(configured) or 'none'})")
    yield

    # Cleanup
    set_dependencies(None)
    await gateway.disconnect()
    gateway = None

    logger.info("Chat gateway stopped")


app = FastAPI(
    title="Chat Gateway",
    description="Streaming chat across many LLM backends",
    version="1.0.0",
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Instrument with OpenTelemetry
FastAPIInstrumentor.instrument_app(app)

# Include API routes
app.include_router(router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.host, port=settings.port)
