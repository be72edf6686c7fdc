"""FastAPI dependencies."""

from urllib.parse import urlsplit

from fastapi import Request

from mediagate.errors import InvalidRequest
from mediagate.gateway import Gateway


def get_gateway(request: Request) -> Gateway:
    return request.app.state.gateway


def require_http_url(url: str | None) -> str:
    """Validate a ``url`` query parameter; raises ``InvalidRequest``."""
    if not url:
        raise InvalidRequest("Missing url")
    try:
        parts = urlsplit(url)
        parts.port  # raises on a malformed port
    except ValueError:
        raise InvalidRequest("Invalid url")
    if parts.scheme not in ("http", "https") or not parts.hostname:
        raise InvalidRequest("Invalid url")
    return url
