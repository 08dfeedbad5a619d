"""Fixed header sets used by the relays."""

from radio_relay.vars import UPSTREAM_ACCEPT, UPSTREAM_REFERER, UPSTREAM_USER_AGENT

# Sent on every relay response, errors and preflights included.
CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "*",
}

# Outbound headers that make the request look like a browser media element.
# Some Shoutcast/Icecast hosts serve an HTML landing page otherwise.
BROWSER_HEADERS = {
    "User-Agent": UPSTREAM_USER_AGENT,
    "Accept": UPSTREAM_ACCEPT,
    "Referer": UPSTREAM_REFERER,
}

UPSTREAM_HEADERS = {**BROWSER_HEADERS, "Range": "bytes=0-"}

# Live streams have no length, so Content-Length is never sent.
STREAM_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Access-Control-Allow-Origin": "*",
    "Connection": "keep-alive",
    "Transfer-Encoding": "chunked",
}

EDGE_STREAM_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Expose-Headers": "*",
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
    "Connection": "keep-alive",
}
