"""
Shared HTTP plumbing for streaming backend adapters.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional, Dict, Any, AsyncIterator

import httpx

from ..core.cancellation import CancellationToken, run_until_cancelled, iterate_until_cancelled
from ..core.errors import BackendConnectionError, BackendRequestError
from ..core.interface import BackendAdapter

logger = logging.getLogger(__name__)


class HTTPStreamingAdapter(BackendAdapter):
    """
    Backend adapter that POSTs JSON and reads a streamed text body.

    Subclasses provide the payload, URL, headers and a parser for the
    response framing.
    """

    display_name = "Backend"

    @property
    def base_url(self) -> str:
        return (self._settings.base_url or "").rstrip("/")

    def _auth_headers(self) -> Dict[str, str]:
        """Credential headers. Default: bearer token when configured."""
        if self._settings.api_key:
            return {"Authorization": f"Bearer {self._settings.api_key}"}
        return {}

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            **self._auth_headers(),
            **self._settings.headers,
        }

    async def _request_error(self, response: httpx.Response) -> BackendRequestError:
        """Build the error for a non-success response, keeping the body verbatim."""
        body = ""
        try:
            body = (await response.aread()).decode("utf-8", errors="replace").strip()
        except httpx.HTTPError as e:
            logger.warning(f"Could not read {self.name} error body: {e}")

        return BackendRequestError(
            body or f"{self.display_name} request failed (HTTP {response.status_code})",
            backend=self.name,
            status_code=response.status_code,
        )

    @asynccontextmanager
    async def _open_stream(
        self,
        url: str,
        payload: Dict[str, Any],
        token: CancellationToken,
        headers: Optional[Dict[str, str]] = None,
    ) -> AsyncIterator[httpx.Response]:
        """
        POST `payload` and yield the streaming response.

        Raises:
            BackendRequestError: Non-2xx status
            BackendConnectionError: Transport failure, before or during the body
        """
        request = self._client.build_request(
            "POST",
            url,
            json=payload,
            headers=headers if headers is not None else self._headers(),
        )
        try:
            response = await run_until_cancelled(self._client.send(request, stream=True), token)
        except httpx.RequestError as e:
            raise BackendConnectionError(str(e) or e.__class__.__name__, backend=self.name)

        try:
            if not response.is_success:
                raise await self._request_error(response)
            yield response
        except httpx.RequestError as e:
            raise BackendConnectionError(str(e) or e.__class__.__name__, backend=self.name)
        finally:
            await response.aclose()

    def _text_chunks(self, response: httpx.Response, token: CancellationToken) -> AsyncIterator[str]:
        """Decoded body chunks, abandoned as soon as the token fires."""
        return iterate_until_cancelled(response.aiter_text(), token)
