import asyncio
import logging
from typing import AsyncIterator
from urllib.parse import urljoin

import anyio
import httpx
from fastapi import APIRouter, Request
from fastapi.responses import Response, StreamingResponse
from opentelemetry import trace

from radio_relay.errors import (
    MissingStreamUrl,
    RedirectLimitExceeded,
    RelayError,
    SourceStationError,
)
from radio_relay.headers import CORS_HEADERS, STREAM_HEADERS, UPSTREAM_HEADERS
from radio_relay.relay.metrics import active_streams, relay_requests, relayed_bytes
from radio_relay.relay.state import RelaySession
from radio_relay.utils import first_query_param, mask_credentials
from radio_relay.utils.disconnect import unless_disconnected
from radio_relay.utils.traced_requests import traced_relay
from radio_relay.vars import MAX_REDIRECTS, RELAY_CONNECT_TIMEOUT

router = APIRouter()
tracer = trace.get_tracer(__name__)
logger = logging.getLogger("uvicorn.error")

MODE = "relay"
# Nginx's status for a request the caller abandoned; nobody is left to read it
CLIENT_CLOSED_REQUEST = 499


def create_upstream_client() -> httpx.AsyncClient:
    """One client per relay request; the body pump closes it."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(None, connect=RELAY_CONNECT_TIMEOUT),
        follow_redirects=False,  # Redirects are chased by open_upstream
    )


def is_redirect(response: httpx.Response) -> bool:
    return 300 <= response.status_code < 400 and "location" in response.headers


async def open_upstream(
    client: httpx.AsyncClient,
    session: RelaySession,
    max_redirects: int = MAX_REDIRECTS,
) -> httpx.Response:
    """
    Issue the session's current attempt and chase redirects until a terminal response.

    Depths 0..max_redirects are allowed, so with the default of 5 the sixth
    redirect in a row is rejected. The returned response is opened in
    streaming mode and has not been read yet.
    """
    attempt = session.attempt
    if attempt.depth > max_redirects:
        session.close("too many redirects")
        raise RedirectLimitExceeded(attempt.depth)

    logger.info(
        f"[Relay] Upstream request (depth {attempt.depth}): {mask_credentials(attempt.url)}"
    )
    try:
        request = client.build_request("GET", attempt.url, headers=UPSTREAM_HEADERS)
        session.sent()
        response = await client.send(request, stream=True)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.error(f"[Relay] Source failed: {e}")
        session.close("connection error")
        raise SourceStationError(e) from e

    if is_redirect(response):
        location = urljoin(attempt.url, response.headers["location"])
        logger.info(f"[Redirect] -> {mask_credentials(location)}")
        await response.aclose()
        session.redirected(location)
        return await open_upstream(client, session, max_redirects)

    session.streaming()
    return response


async def stream_body(
    session: RelaySession,
    upstream: httpx.Response,
    client: httpx.AsyncClient,
) -> AsyncIterator[bytes]:
    """
    Forward the terminal response body chunk by chunk, in upstream order.

    Headers are already on the wire when this runs, so a source error can
    only end the response. When the caller goes away the generator is closed
    or cancelled and the upstream connection is torn down.
    """
    active_streams.labels(MODE).inc()
    try:
        async for chunk in upstream.aiter_bytes():
            session.bytes_relayed += len(chunk)
            relayed_bytes.labels(MODE).inc(len(chunk))
            yield chunk
        logger.info("[Relay] Source stream ended.")
        session.close("source ended")
    except httpx.HTTPError as e:
        logger.error(f"[Relay] Stream error from source: {e}")
        session.close("source error")
    except (asyncio.CancelledError, GeneratorExit):
        logger.info("[Relay] Client disconnected.")
        session.close("client disconnected")
        raise
    finally:
        active_streams.labels(MODE).dec()
        # Shielded: inside a cancelled scope every await would be cancelled too
        with anyio.CancelScope(shield=True):
            await upstream.aclose()
            await client.aclose()


@router.api_route("/{path:path}", methods=["GET", "OPTIONS"])
async def relay_stream(request: Request, path: str):
    """Relay the stream named by ``?url=`` on any path."""
    if request.method == "OPTIONS":
        return Response(status_code=200, headers=dict(CORS_HEADERS))

    target_url = first_query_param(request, "url")
    if not target_url:
        relay_requests.labels(MODE, MissingStreamUrl.outcome).inc()
        raise MissingStreamUrl()

    session = RelaySession(target_url)
    client = create_upstream_client()
    upstream = None
    try:
        with traced_relay(
            tracer,
            operation="relay_request",
            target_url=target_url,
            start_message=f"[Relay] Proxy request: {target_url}",
            extra_attrs={"relay.mode": MODE},
        ) as span:
            try:
                upstream = await unless_disconnected(
                    request, lambda: open_upstream(client, session)
                )
            except RelayError as e:
                span.set_attribute("relay.error", e.message)
                span.set_attribute("relay.redirect_depth", session.depth)
                relay_requests.labels(MODE, e.outcome).inc()
                raise

            span.set_attribute("relay.redirect_depth", session.depth)
            if upstream is None:
                logger.info("[Relay] Client disconnected before the source answered.")
                session.close("client disconnected")
                span.set_attribute("relay.error", "client disconnected")
                relay_requests.labels(MODE, "client_disconnected").inc()
                return Response(status_code=CLIENT_CLOSED_REQUEST)

            span.set_attribute("relay.status_code", upstream.status_code)
    finally:
        # The body pump owns the client once an upstream response exists
        if upstream is None:
            with anyio.CancelScope(shield=True):
                await client.aclose()

    logger.info(
        f"[Relay] Upstream response status: {upstream.status_code} {upstream.reason_phrase}"
    )
    relay_requests.labels(MODE, "streamed").inc()

    headers = {**CORS_HEADERS, **STREAM_HEADERS}
    content_type = upstream.headers.get("content-type")
    if content_type:
        headers["Content-Type"] = content_type

    return StreamingResponse(
        stream_body(session, upstream, client),
        status_code=upstream.status_code,
        headers=headers,
    )
