"""
Cooperative cancellation for in-flight chat requests.
"""

import asyncio
from typing import Any, AsyncIterable, AsyncIterator, Awaitable, TypeVar

from .errors import GatewayCancelledError

T = TypeVar("T")


class CancellationToken:
    """
    Signals that the caller has gone away.

    One token is created per request and threaded through the backend call
    and stream parsing. Every network wait is raced against it.
    """

    def __init__(self):
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise GatewayCancelledError()


async def run_until_cancelled(awaitable: Awaitable[T], token: CancellationToken) -> T:
    """
    Await `awaitable` unless the token fires first.

    Raises:
        GatewayCancelledError: The token fired; the pending work was cancelled
    """
    if token.cancelled:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise GatewayCancelledError()
    work = asyncio.ensure_future(awaitable)
    cancel_wait = asyncio.ensure_future(token.wait())
    try:
        await asyncio.wait({work, cancel_wait}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        work.cancel()
        raise
    finally:
        cancel_wait.cancel()

    if not work.done():
        work.cancel()
        await asyncio.wait({work})
        raise GatewayCancelledError()
    return work.result()


async def _next(iterator: AsyncIterator[Any]) -> Any:
    return await iterator.__anext__()


async def iterate_until_cancelled(
    source: AsyncIterable[T],
    token: CancellationToken,
) -> AsyncIterator[T]:
    """Re-yield items from `source`, aborting the pending read when the token fires."""
    iterator = source.__aiter__()
    while True:
        try:
            item = await run_until_cancelled(_next(iterator), token)
        except StopAsyncIteration:
            return
        yield item
