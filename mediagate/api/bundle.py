"""Home bundle endpoints: anime, movies and manga homepages."""

import logging
from collections.abc import Awaitable, Callable

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from mediagate.api.deps import get_gateway
from mediagate.bundle import get_home_bundle, get_manga_bundle, get_movies_bundle
from mediagate.gateway import Gateway
from mediagate.providers.manga import normalize_lang

logger = logging.getLogger("api.bundle")

router = APIRouter(prefix="/api")


async def _bundle_response(gateway: Gateway, load: Callable[[], Awaitable[dict]], error_message: str):
    try:
        bundle = await load()
    except Exception:
        logger.exception("Bundle build failed")
        return JSONResponse({"message": error_message}, status_code=500)
    return JSONResponse(bundle, headers={"Cache-Control": gateway.settings.bundle_cache_control})


@router.get("/home-bundle")
async def home_bundle(gateway: Gateway = Depends(get_gateway)):
    """All homepage sections in one response, cached in the external store."""
    return await _bundle_response(
        gateway,
        lambda: get_home_bundle(gateway.aggregator, gateway.catalog, gateway.settings.bundle_ttl_s),
        "Failed to fetch home bundle. Please try again.",
    )


@router.get("/movies/home-bundle")
async def movies_home_bundle(gateway: Gateway = Depends(get_gateway)):
    return await _bundle_response(
        gateway,
        lambda: get_movies_bundle(gateway.aggregator, gateway.movie_catalog, gateway.settings.bundle_ttl_s),
        "Failed to fetch movie home bundle.",
    )


@router.get("/manga/home-bundle")
async def manga_home_bundle(lang: str | None = None, gateway: Gateway = Depends(get_gateway)):
    """Manga homepage for ``lang`` (``en`` or ``id``); unknown codes get ``en``."""
    catalog = gateway.manga_catalogs[normalize_lang(lang)]
    return await _bundle_response(
        gateway,
        lambda: get_manga_bundle(gateway.aggregator, catalog, gateway.settings.bundle_ttl_s),
        "Failed to fetch manga home bundle.",
    )
