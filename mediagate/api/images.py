"""Image proxies.

``/api/image-proxy`` serves the gallery CDN with host-pool failover.
``/api/manga-img`` serves manga page images that need a fixed Referer.
"""

import logging
from urllib.parse import urlsplit

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from mediagate.api.deps import get_gateway, require_http_url
from mediagate.errors import AllAttemptsFailedError, ForbiddenTarget
from mediagate.gateway import Gateway
from mediagate.upstream.failover import fetch_from_pool
from mediagate.upstream.models import HeaderSet

logger = logging.getLogger("images")

router = APIRouter(prefix="/api")

_BROWSER_IMAGE_HEADERS = {
    "Accept": "image/avif,image/webp,image/apng,image/*,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Sec-Fetch-Dest": "image",
    "Sec-Fetch-Mode": "no-cors",
    "Sec-Fetch-Site": "same-site",
}


def _image_response(body: bytes, content_type: str | None, cache_control: str) -> Response:
    return Response(
        content=body,
        headers={
            "Content-Type": content_type or "image/jpeg",
            "Cache-Control": cache_control,
        },
    )


@router.get("/image-proxy")
async def image_proxy(url: str | None = None, gateway: Gateway = Depends(get_gateway)):
    target = require_http_url(url)
    if not gateway.host_pool.owns(urlsplit(target).hostname):
        raise ForbiddenTarget(f"Only {gateway.host_pool.domain} CDN URLs allowed")

    headers = HeaderSet(
        user_agent=gateway.settings.user_agent,
        referer=gateway.settings.image_pool_referer,
        extra=_BROWSER_IMAGE_HEADERS,
    )
    attempt = await fetch_from_pool(
        gateway.fetcher,
        gateway.host_pool.candidates(target),
        headers,
        budget_s=gateway.settings.request_budget_s,
    )
    upstream = attempt.raise_for_outcome()
    return _image_response(upstream.body, upstream.headers.get("content-type"), gateway.settings.image_cache_control)


@router.get("/manga-img")
async def manga_image(url: str | None = None, gateway: Gateway = Depends(get_gateway)):
    target = require_http_url(url)
    headers = HeaderSet(user_agent=gateway.settings.user_agent, referer=gateway.settings.manga_image_referer)
    attempt = await gateway.fetcher.fetch(target, headers)
    if not attempt.ok:
        logger.info("Manga image fetch failed for %s (status=%s)", target, attempt.status)
        raise AllAttemptsFailedError(attempts=1, detail="Image proxy error")
    upstream = attempt.raise_for_outcome()
    return _image_response(upstream.body, upstream.headers.get("content-type"), gateway.settings.image_cache_control)
