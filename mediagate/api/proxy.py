"""Stream proxy — HLS playlists, segments, keys and subtitles.

``GET /api/proxy?url=<target>&referer=<page>`` fetches the target under the
header policy, fixes subtitle content types, and rewrites playlists so every
segment, key and sub-playlist comes back through this endpoint with the same
referer context.
"""

import logging

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import Response

from mediagate.api.deps import get_gateway, require_http_url
from mediagate.errors import TransportError
from mediagate.gateway import Gateway
from mediagate.hls.content_type import correct_content_type, is_manifest
from mediagate.hls.playlist import rewrite_playlist
from mediagate.upstream.models import ProxyRequest

logger = logging.getLogger("proxy")

router = APIRouter(prefix="/api")

# Upstream headers passed through for byte-range playback.
_FORWARD_HEADERS = ("content-range", "accept-ranges", "last-modified", "etag")


def _proxy_base(request: Request, gateway: Gateway) -> str:
    public = gateway.settings.public_base_url.rstrip("/")
    if public:
        return f"{public}/api/proxy"
    return str(request.url_for("proxy_resource"))


@router.get("/proxy")
async def proxy_resource(
    request: Request,
    url: str | None = None,
    referer: str | None = None,
    range_header: str | None = Header(default=None, alias="range"),
    gateway: Gateway = Depends(get_gateway),
):
    target = require_http_url(url)
    # Playlists are always fetched whole so they can be rewritten.
    byte_range = None if is_manifest(target, None) else range_header
    proxy_request = ProxyRequest(target_url=target, forward_referer=referer or None, byte_range=byte_range)

    attempt = await gateway.header_policy.fetch(gateway.fetcher, proxy_request)
    if attempt.transport_failed:
        logger.warning("Stream proxy transport error for %s", target)
        raise TransportError("Stream proxy error")
    upstream = attempt.raise_for_outcome()

    content_type = correct_content_type(target, upstream.headers.get("content-type"))
    resp_headers = {
        "Content-Type": content_type,
        "Cache-Control": gateway.settings.proxy_cache_control,
    }

    if is_manifest(target, content_type) and upstream.status != 206:
        body = rewrite_playlist(
            upstream.text(),
            base_url=upstream.url,
            proxy_base=_proxy_base(request, gateway),
            referer=proxy_request.forward_referer,
        )
        return Response(content=body, status_code=200, headers=resp_headers)

    for key in _FORWARD_HEADERS:
        if key in upstream.headers:
            resp_headers[key] = upstream.headers[key]
    return Response(content=upstream.body, status_code=upstream.status, headers=resp_headers)
