"""Gallery JSON API passthrough.

    /api/gallery?action=home&page=1
    /api/gallery?action=search&query=xxx&page=1[&sort=popular]
    /api/gallery?action=book&id=123
    /api/gallery?action=related&id=123
    /api/gallery?action=tagged&tagId=1&page=1[&sort=popular]
"""

import logging
from urllib.parse import quote, urlencode

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from mediagate.api.deps import get_gateway
from mediagate.errors import InvalidRequest
from mediagate.gateway import Gateway
from mediagate.upstream.models import HeaderSet
from mediagate.upstream.retry import fetch_with_backoff

logger = logging.getLogger("gallery")

router = APIRouter(prefix="/api")

_API_HEADERS = {
    "Accept": "application/json, text/plain, */*",
    "Accept-Language": "en-US,en;q=0.9",
    "Sec-Fetch-Dest": "empty",
    "Sec-Fetch-Mode": "cors",
    "Sec-Fetch-Site": "same-origin",
}


def _require(value: str | None, name: str) -> str:
    if not value:
        raise InvalidRequest(f"Missing {name} parameter")
    return value


def build_gallery_url(
    root: str,
    action: str | None,
    page: int = 1,
    query: str | None = None,
    gallery_id: str | None = None,
    tag_id: str | None = None,
    sort: str | None = None,
) -> str:
    """Map a gallery ``action`` to its upstream API URL."""
    root = root.rstrip("/")
    if not action:
        raise InvalidRequest("Missing action parameter")

    if action == "home":
        return f"{root}/api/galleries/all?page={page}"
    if action == "search":
        params = {"query": _require(query, "query"), "page": page}
        if sort:
            params["sort"] = sort
        return f"{root}/api/galleries/search?{urlencode(params, quote_via=quote)}"
    if action == "book":
        return f"{root}/api/gallery/{quote(_require(gallery_id, 'id'), safe='')}"
    if action == "related":
        return f"{root}/api/gallery/{quote(_require(gallery_id, 'id'), safe='')}/related"
    if action == "tagged":
        params = {"tag_id": _require(tag_id, "tagId"), "page": page}
        if sort == "popular":
            params["sort"] = "popular"
        return f"{root}/api/galleries/tagged?{urlencode(params, quote_via=quote)}"
    raise InvalidRequest(f"Unknown action: {action}")


@router.get("/gallery")
async def gallery(
    action: str | None = None,
    page: int = Query(default=1, ge=1),
    query: str | None = None,
    gallery_id: str | None = Query(default=None, alias="id"),
    tag_id: str | None = Query(default=None, alias="tagId"),
    sort: str | None = None,
    gateway: Gateway = Depends(get_gateway),
):
    settings = gateway.settings
    url = build_gallery_url(settings.gallery_api_root, action, page, query, gallery_id, tag_id, sort)
    headers = HeaderSet(
        user_agent=settings.user_agent,
        referer=settings.gallery_api_root.rstrip("/") + "/",
        extra=_API_HEADERS,
    )

    attempt = await fetch_with_backoff(
        gateway.fetcher,
        url,
        headers,
        attempts=settings.gallery_max_attempts,
        backoff_s=settings.gallery_backoff_s,
        budget_s=settings.request_budget_s,
    )
    upstream = attempt.raise_for_outcome()
    return Response(
        content=upstream.body,
        media_type="application/json",
        headers={"Cache-Control": settings.proxy_cache_control},
    )
