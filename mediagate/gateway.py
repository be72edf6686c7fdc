"""Explicitly constructed collaborators shared by request handlers.

Built once in the application lifespan and stored on ``app.state.gateway``;
handlers receive it through ``mediagate.api.deps.get_gateway``.
"""

import logging
from dataclasses import dataclass
from urllib.parse import urlsplit

import httpx

from mediagate.cache.aggregator import CacheAsideAggregator
from mediagate.cache.store import create_cache_store
from mediagate.config import Settings
from mediagate.providers.anime import AnimeCatalog, build_anime_catalog
from mediagate.providers.manga import POPULAR_QUERIES, MangaCatalog, build_manga_catalog
from mediagate.providers.movies import MovieCatalog, build_movie_catalog
from mediagate.upstream.failover import HostPool
from mediagate.upstream.fetcher import UpstreamFetcher, build_timeout
from mediagate.upstream.header_policy import HeaderPolicy

logger = logging.getLogger("gateway")


@dataclass
class Gateway:
    settings: Settings
    http: httpx.AsyncClient
    tunnel_http: httpx.AsyncClient | None
    fetcher: UpstreamFetcher
    header_policy: HeaderPolicy
    host_pool: HostPool
    cache_store: object
    aggregator: CacheAsideAggregator
    catalog: AnimeCatalog
    movie_catalog: MovieCatalog
    manga_catalogs: dict[str, MangaCatalog]

    async def aclose(self):
        await self.cache_store.close()
        if self.tunnel_http is not None:
            await self.tunnel_http.aclose()
        await self.http.aclose()


def create_gateway(settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> Gateway:
    """Wire up the gateway.  ``transport`` replaces the network in tests."""
    timeout = build_timeout(settings)
    limits = httpx.Limits(max_connections=settings.upstream_max_connections)
    http = httpx.AsyncClient(timeout=timeout, limits=limits, transport=transport)

    tunnel_http = None
    if settings.tunnel_proxy_url:
        tunnel_http = httpx.AsyncClient(timeout=timeout, limits=limits, proxy=settings.tunnel_proxy_url)
        logger.info(
            "Tunnel proxy enabled for %d domain patterns via %s",
            len(settings.tunnel_domain_list),
            urlsplit(settings.tunnel_proxy_url).hostname,
        )

    provider_timeout = settings.provider_timeout_s
    cache_store = create_cache_store(settings.redis_url, socket_timeout=settings.redis_socket_timeout_s)
    logger.info("Cache backend: %s", cache_store.backend)

    return Gateway(
        settings=settings,
        http=http,
        tunnel_http=tunnel_http,
        fetcher=UpstreamFetcher(http, tunnel_http, settings.tunnel_domain_list),
        header_policy=HeaderPolicy(
            settings.user_agent,
            settings.cdn_families,
            settings.key_markers,
            budget_s=settings.request_budget_s,
        ),
        host_pool=HostPool(
            settings.image_pool_domain,
            settings.pool_suffixes,
            settings.image_pool_max_candidates,
        ),
        cache_store=cache_store,
        aggregator=CacheAsideAggregator(cache_store, single_flight=settings.cache_single_flight),
        catalog=build_anime_catalog(http, settings.provider_api_base, timeout=provider_timeout),
        movie_catalog=build_movie_catalog(http, settings.provider_api_base, timeout=provider_timeout),
        manga_catalogs={
            lang: build_manga_catalog(http, settings.provider_api_base, lang, timeout=provider_timeout)
            for lang in POPULAR_QUERIES
        },
    )
