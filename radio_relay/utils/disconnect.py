import logging
from typing import Awaitable, Callable, Optional, TypeVar

import anyio
from fastapi import Request

logger = logging.getLogger("uvicorn.error")

T = TypeVar("T")


async def wait_for_disconnect(request: Request) -> None:
    """Return once the ASGI server reports that the caller hung up."""
    while True:
        message = await request.receive()
        if message["type"] == "http.disconnect":
            return


async def unless_disconnected(
    request: Request, opener: Callable[[], Awaitable[T]]
) -> Optional[T]:
    """
    Await ``opener()`` while watching the caller's connection.

    If the caller disconnects first, the opener is cancelled and ``None`` is
    returned. Exceptions raised by the opener propagate unchanged.
    """
    result: Optional[T] = None
    error: Optional[Exception] = None

    async with anyio.create_task_group() as tg:

        async def run_opener() -> None:
            nonlocal result, error
            try:
                result = await opener()
            except Exception as e:
                error = e
            finally:
                tg.cancel_scope.cancel()

        async def watch() -> None:
            await wait_for_disconnect(request)
            logger.debug("Caller disconnected, cancelling pending upstream request")
            tg.cancel_scope.cancel()

        tg.start_soon(run_opener)
        tg.start_soon(watch)

    if error is not None:
        raise error
    return result
