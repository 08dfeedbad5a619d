"""Tests for the one-shot relay used by hosted-function deployments."""

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from radio_relay.conftest import TrackingStream
from radio_relay.edge.route import has_body, resolve_content_type, router as edge_router
from radio_relay.errors import install_error_handlers

MODULE = "radio_relay.edge.route"
STATION = "http://station.example:8000/live"

test_app = FastAPI()
install_error_handlers(test_app)
test_app.include_router(edge_router)


@pytest.fixture
def client():
    return TestClient(test_app)


def audio_response(chunks, status_code=200, headers=None, **kwargs):
    if headers is None:
        headers = {"content-type": "audio/mpeg"}
    return httpx.Response(status_code, headers=headers, stream=TrackingStream(chunks, **kwargs))


class TestProxyOnce:
    def test_missing_url(self, client, upstream):
        calls = upstream(lambda request: audio_response([b"x"]), module=MODULE)

        r = client.get("/api/proxy")

        assert r.status_code == 400
        assert r.json() == {"error": "Missing stream URL"}
        assert calls == []

    def test_repeated_url_uses_first(self, client, upstream):
        calls = upstream(lambda request: audio_response([b"x"]), module=MODULE)

        r = client.get(
            "/api/proxy?url=http://first.example/live&url=http://second.example/live"
        )

        assert r.status_code == 200
        assert [str(c.url) for c in calls] == ["http://first.example/live"]

    def test_options(self, client, upstream):
        calls = upstream(lambda request: audio_response([b"x"]), module=MODULE)

        r = client.options("/api/proxy")

        assert r.status_code == 200
        assert r.content == b""
        assert r.headers["access-control-allow-origin"] == "*"
        assert calls == []

    def test_streams_body_with_headers(self, client, upstream):
        upstream(lambda request: audio_response([b"one", b"two"]), module=MODULE)

        r = client.get("/api/proxy", params={"url": STATION})

        assert r.status_code == 200
        assert r.content == b"onetwo"
        assert r.headers["content-type"] == "audio/mpeg"
        assert r.headers["access-control-allow-origin"] == "*"
        assert r.headers["access-control-allow-methods"] == "GET, OPTIONS"
        assert r.headers["access-control-expose-headers"] == "*"
        assert r.headers["cache-control"] == "no-cache, no-store, must-revalidate"
        assert r.headers["pragma"] == "no-cache"
        assert r.headers["expires"] == "0"

    def test_browser_headers_without_range(self, client, upstream):
        calls = upstream(lambda request: audio_response([b"x"]), module=MODULE)

        client.get("/api/proxy", params={"url": STATION})

        sent = calls[0]
        assert sent.headers["referer"] == "https://www.internet-radio.com/"
        assert sent.headers["accept"] == "audio/mpeg, audio/*;q=0.9, */*;q=0.8"
        assert "range" not in sent.headers

    def test_follows_redirects_itself(self, client, upstream):
        def handler(request):
            if request.url.path == "/start":
                return httpx.Response(302, headers={"location": "/live"})
            return audio_response([b"live"])

        calls = upstream(handler, module=MODULE, follow_redirects=True)

        r = client.get("/api/proxy", params={"url": "http://station.example/start"})

        assert r.status_code == 200
        assert r.content == b"live"
        assert len(calls) == 2

    def test_html_content_type_replaced(self, client, upstream):
        upstream(
            lambda request: audio_response(
                [b"x"], headers={"content-type": "text/html; charset=utf-8"}
            ),
            module=MODULE,
        )

        r = client.get("/api/proxy", params={"url": STATION})

        assert r.headers["content-type"] == "audio/mpeg"

    def test_upstream_error_status(self, client, upstream):
        upstream(lambda request: audio_response([b"nope"], status_code=403), module=MODULE)

        r = client.get("/api/proxy", params={"url": STATION})

        assert r.status_code == 403
        assert r.json() == {"error": "Failed to fetch stream: Forbidden"}

    def test_no_body(self, client, upstream):
        upstream(lambda request: httpx.Response(204), module=MODULE)

        r = client.get("/api/proxy", params={"url": STATION})

        assert r.status_code == 500
        assert r.json() == {"error": "No stream body available"}

    def test_connection_failure(self, client, upstream):
        def handler(request):
            raise httpx.ConnectError("Connection refused", request=request)

        upstream(handler, module=MODULE)

        r = client.get("/api/proxy", params={"url": STATION})

        assert r.status_code == 500
        assert r.json() == {"error": "Failed to proxy stream"}

    def test_mid_stream_error_ends_response(self, client, upstream):
        upstream(
            lambda request: audio_response([b"part"], error=httpx.ReadError("reset")),
            module=MODULE,
        )

        r = client.get("/api/proxy", params={"url": STATION})

        assert r.status_code == 200
        assert r.content == b"part"


class TestHelpers:
    @pytest.mark.parametrize(
        "headers,expected",
        [
            ({"content-type": "audio/aacp"}, "audio/aacp"),
            ({"content-type": "text/html"}, "audio/mpeg"),
            ({}, "audio/mpeg"),
        ],
    )
    def test_resolve_content_type(self, headers, expected):
        assert resolve_content_type(httpx.Response(200, headers=headers)) == expected

    @pytest.mark.parametrize(
        "status,headers,expected",
        [
            (200, {}, True),
            (204, {}, False),
            (304, {}, False),
            (200, {"content-length": "0"}, False),
            (200, {"content-length": "10"}, True),
        ],
    )
    def test_has_body(self, status, headers, expected):
        assert has_body(httpx.Response(status, headers=headers)) is expected
