from typing import Optional
from urllib.parse import urlsplit, urlunsplit


def mask_credentials(url: Optional[str]) -> str:
    """Hide the password of ``user:password@host`` URLs before they reach logs."""
    if not url:
        return "<empty>"
    try:
        parts = urlsplit(url)
    except ValueError:
        return url
    if not parts.password:
        return url
    netloc = parts.netloc.replace(f":{parts.password}@", ":****@", 1)
    return urlunsplit(parts._replace(netloc=netloc))


def mask_url(text: str, url: Optional[str]) -> str:
    return text.replace(url, mask_credentials(url)) if url else text


def first_query_param(request, name: str) -> Optional[str]:
    """First value of a possibly repeated query parameter, or None."""
    values = request.query_params.getlist(name)
    return values[0] if values else None
