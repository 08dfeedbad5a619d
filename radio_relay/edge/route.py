"""
One-shot stream relay for hosted-function deployments.

Unlike the host relay this performs a single fetch and lets the HTTP client
follow redirects on its own, the way a browser ``fetch`` would. Any failure
before the body starts is answered with a generic JSON error.
"""

import logging
from typing import AsyncIterator

import anyio
import httpx
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse
from opentelemetry import trace

from radio_relay.errors import MissingStreamUrl, RelayError
from radio_relay.headers import BROWSER_HEADERS, CORS_HEADERS, EDGE_STREAM_HEADERS
from radio_relay.relay.metrics import active_streams, relay_requests, relayed_bytes
from radio_relay.utils import first_query_param
from radio_relay.utils.disconnect import unless_disconnected
from radio_relay.utils.traced_requests import traced_relay
from radio_relay.vars import EDGE_PROXY_PATH, RELAY_CONNECT_TIMEOUT

router = APIRouter()
tracer = trace.get_tracer(__name__)
logger = logging.getLogger("uvicorn.error")

MODE = "edge"
FALLBACK_CONTENT_TYPE = "audio/mpeg"
NO_BODY_STATUSES = {204, 205, 304}
CLIENT_CLOSED_REQUEST = 499


def create_upstream_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(None, connect=RELAY_CONNECT_TIMEOUT),
        follow_redirects=True,
    )


def resolve_content_type(upstream: httpx.Response) -> str:
    """Landing pages and missing types are reported as MP3 so players still try."""
    content_type = upstream.headers.get("content-type")
    if not content_type or "text/html" in content_type:
        return FALLBACK_CONTENT_TYPE
    return content_type


def has_body(upstream: httpx.Response) -> bool:
    if upstream.status_code in NO_BODY_STATUSES:
        return False
    return upstream.headers.get("content-length") != "0"


async def pipe_body(
    upstream: httpx.Response, client: httpx.AsyncClient
) -> AsyncIterator[bytes]:
    active_streams.labels(MODE).inc()
    try:
        async for chunk in upstream.aiter_bytes():
            relayed_bytes.labels(MODE).inc(len(chunk))
            yield chunk
    except httpx.HTTPError as e:
        logger.error(f"[Edge] Error during stream proxying: {e}")
    finally:
        active_streams.labels(MODE).dec()
        with anyio.CancelScope(shield=True):
            await upstream.aclose()
            await client.aclose()


def _error(message: str, status_code: int) -> JSONResponse:
    return RelayError(message, status_code).to_response()


@router.api_route(EDGE_PROXY_PATH, methods=["GET", "OPTIONS"])
async def proxy_once(request: Request):
    if request.method == "OPTIONS":
        return Response(status_code=200, headers=dict(CORS_HEADERS))

    url = first_query_param(request, "url")
    if not url:
        relay_requests.labels(MODE, MissingStreamUrl.outcome).inc()
        raise MissingStreamUrl()

    client = create_upstream_client()
    with traced_relay(
        tracer,
        operation="edge_relay_request",
        target_url=url,
        start_message=f"[Edge] Proxying URL: {url}",
        extra_attrs={"relay.mode": MODE},
    ) as span:
        try:
            upstream = await unless_disconnected(
                request,
                lambda: client.send(
                    client.build_request("GET", url, headers=BROWSER_HEADERS),
                    stream=True,
                ),
            )
        except Exception as e:
            logger.error(f"[Edge] Proxy error: {e}", exc_info=True)
            span.set_attribute("relay.error", str(e))
            relay_requests.labels(MODE, "source_unreachable").inc()
            await client.aclose()
            return _error("Failed to proxy stream", 500)

        if upstream is None:
            logger.info("[Edge] Client disconnected before the source answered.")
            relay_requests.labels(MODE, "client_disconnected").inc()
            with anyio.CancelScope(shield=True):
                await client.aclose()
            return Response(status_code=CLIENT_CLOSED_REQUEST)

        span.set_attribute("relay.status_code", upstream.status_code)

        if not upstream.is_success:
            logger.error(
                f"[Edge] Proxy fetch failed: {upstream.status_code} {upstream.reason_phrase} for {url}"
            )
            relay_requests.labels(MODE, "upstream_status").inc()
            await upstream.aclose()
            await client.aclose()
            return _error(
                f"Failed to fetch stream: {upstream.reason_phrase}", upstream.status_code
            )

        if not has_body(upstream):
            relay_requests.labels(MODE, "no_body").inc()
            await upstream.aclose()
            await client.aclose()
            return _error("No stream body available", 500)

    relay_requests.labels(MODE, "streamed").inc()
    headers = dict(EDGE_STREAM_HEADERS)
    headers["Content-Type"] = resolve_content_type(upstream)
    return StreamingResponse(
        pipe_body(upstream, client),
        status_code=upstream.status_code,
        headers=headers,
    )
