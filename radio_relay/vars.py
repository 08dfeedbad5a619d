import os

SERVICE_NAME = os.getenv("SERVICE_NAME", "radio-relay")
HOST = os.environ.get("HOST", "0.0.0.0")
PORT = int(os.environ.get("PORT", "3000"))

# "relay" serves the redirect-following relay on every path,
# "edge" serves the one-shot relay on EDGE_PROXY_PATH only.
RELAY_MODE = os.environ.get("RELAY_MODE", "relay").lower()
EDGE_PROXY_PATH = os.environ.get("EDGE_PROXY_PATH", "/api/proxy")
METRICS_PATH = os.environ.get("METRICS_PATH", "/metrics")

MAX_REDIRECTS = int(os.getenv("MAX_REDIRECTS", "5"))
_connect_timeout = os.getenv("RELAY_CONNECT_TIMEOUT", "15")
RELAY_CONNECT_TIMEOUT = float(_connect_timeout) if _connect_timeout else None

UPSTREAM_USER_AGENT = os.getenv(
    "UPSTREAM_USER_AGENT",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
)
UPSTREAM_ACCEPT = "audio/mpeg, audio/*;q=0.9, */*;q=0.8"
UPSTREAM_REFERER = os.getenv("UPSTREAM_REFERER", "https://www.internet-radio.com/")

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")


def _parse_otlp_headers(raw: str) -> dict:
    headers: dict = {}
    for entry in raw.split(","):
        entry = entry.strip()
        if "=" not in entry:
            continue
        key, val = entry.split("=", 1)
        if key.strip():
            headers[key.strip()] = val.strip()
    return headers


OTLP_HEADER_MAP = _parse_otlp_headers(OTLP_HEADERS)
