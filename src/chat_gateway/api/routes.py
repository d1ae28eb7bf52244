"""
HTTP routes for the chat gateway.
"""

import asyncio
import json
import logging
from typing import Optional, AsyncIterator

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError

from ..core.cancellation import CancellationToken
from ..core.catalog import list_catalog, DEFAULT_MODEL
from ..core.errors import GatewayError, GatewayUnavailableError
from ..core.gateway import ChatGateway, PreparedChat
from ..models.request import ChatRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])

DISCONNECT_POLL_SECONDS = 0.5


# Set by the main app
_gateway: Optional[ChatGateway] = None


def set_dependencies(gateway: Optional[ChatGateway]):
    """Set dependencies from main app."""
    global _gateway
    _gateway = gateway


def _error_response(message: str, status_code: int = 400) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def _watch_disconnect(request: Request, token: CancellationToken) -> None:
    while not token.cancelled:
        if await request.is_disconnected():
            logger.info("Client disconnected, cancelling chat stream")
            token.cancel()
            return
        await asyncio.sleep(DISCONNECT_POLL_SECONDS)


async def _event_records(
    gateway: ChatGateway,
    prepared: PreparedChat,
    request: Request,
    token: CancellationToken,
) -> AsyncIterator[str]:
    watcher = asyncio.create_task(_watch_disconnect(request, token))
    try:
        async for event in gateway.stream(prepared, token):
            yield event.to_record()
    finally:
        watcher.cancel()
        token.cancel()


@router.post("/chat")
async def chat(request: Request):
    """
    Stream a chat completion.

    Returns `text/event-stream` of `data: <json>` records ending with one
    `done` or `error` record. Failures detected before streaming return
    HTTP 400 with `{"error": ...}` and open no stream.
    """
    if not _gateway:
        raise HTTPException(status_code=503, detail="Service not ready")

    try:
        chat_request = ChatRequest.model_validate(await request.json())
    except (json.JSONDecodeError, ValidationError) as e:
        logger.warning(f"Rejected malformed chat request: {e}")
        return _error_response("Invalid request body")

    try:
        prepared = _gateway.prepare(chat_request)
    except GatewayUnavailableError as e:
        logger.error(f"Chat request arrived before the gateway was ready: {e.message}")
        raise HTTPException(status_code=503, detail="Service not ready")
    except GatewayError as e:
        logger.warning(f"Rejected chat request: {e.message}")
        return _error_response(e.message)

    token = CancellationToken()
    return StreamingResponse(
        _event_records(_gateway, prepared, request, token),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )


@router.get("/models")
async def list_models():
    """List the static model catalog."""
    return {"default": DEFAULT_MODEL, "models": list_catalog()}
