import asyncio
from typing import Iterable, List, Optional

import httpx
import pytest


class TrackingStream(httpx.AsyncByteStream):
    """Upstream body that records whether the relay closed it."""

    def __init__(
        self,
        chunks: Iterable[bytes],
        error: Optional[Exception] = None,
        hang: bool = False,
    ):
        self.chunks = list(chunks)
        self.error = error
        self.hang = hang
        self.closed = False

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error
        if self.hang:
            # A live station never ends on its own
            await asyncio.Event().wait()

    async def aclose(self):
        self.closed = True


@pytest.fixture
def upstream(monkeypatch):
    """
    Route the relays' outbound requests to an in-process handler.

    Usage: ``calls = upstream(handler)``; ``calls`` collects every request sent.
    """

    def _install(handler, module: str = "radio_relay.relay.route", follow_redirects=False):
        calls: List[httpx.Request] = []

        def _recording(request: httpx.Request):
            calls.append(request)
            return handler(request)

        def _factory():
            return httpx.AsyncClient(
                transport=httpx.MockTransport(_recording),
                follow_redirects=follow_redirects,
            )

        monkeypatch.setattr(f"{module}.create_upstream_client", _factory)
        return calls

    return _install
