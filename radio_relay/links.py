"""
Browser-facing stream links.

Station directories hand out URLs that a browser cannot always play as-is:
internet-radio.com proxies answer with an HTML page unless ``mp=/stream`` is
requested, and ``http://`` streams are blocked as mixed content on an
``https://`` page. ``sanitize_stream_url`` fixes the former and routes the
latter through the relay.
"""

import logging
import time
from typing import Optional
from urllib.parse import quote

from radio_relay.vars import EDGE_PROXY_PATH

logger = logging.getLogger("uvicorn.error")

INTERNET_RADIO_PROXY = "internet-radio.com/proxy"
STREAM_MOUNT = "mp=/stream"


def fix_internet_radio_url(url: str) -> str:
    if INTERNET_RADIO_PROXY not in url:
        return url
    if f"?{STREAM_MOUNT}" not in url and f"&{STREAM_MOUNT}" not in url:
        separator = "&" if "?" in url else "?"
        url = f"{url}{separator}{STREAM_MOUNT}"
    # A trailing Shoutcast ";" is obsolete once mp=/stream is present
    return url[:-1] if url.endswith(";") else url


def relay_link(url: str, proxy_path: str = EDGE_PROXY_PATH, now_ms: Optional[int] = None) -> str:
    """Build ``<proxy_path>?url=...&_t=...``; ``_t`` keeps browsers from reusing a failed response."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{proxy_path}?url={quote(url, safe='')}&_t={now_ms}"


def sanitize_stream_url(
    url: str,
    force_proxy: bool = False,
    page_is_https: bool = False,
    proxy_path: str = EDGE_PROXY_PATH,
    now_ms: Optional[int] = None,
) -> str:
    if not url:
        return url

    sanitized = fix_internet_radio_url(url.strip())

    should_proxy = force_proxy or (page_is_https and sanitized.startswith("http://"))
    if should_proxy and not sanitized.startswith(proxy_path):
        logger.info(f"[Links] Routing stream through relay: {sanitized}")
        return relay_link(sanitized, proxy_path, now_ms)

    return sanitized
