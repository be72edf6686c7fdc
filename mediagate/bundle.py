"""Home bundles — every homepage section in one cached JSON document.

Anime, movies and manga each fan out to their providers concurrently,
degrade failed sections to empty lists, and cache the shaped document
under a versioned key.
"""

import logging

from mediagate.cache.aggregator import CacheAsideAggregator, gather_sections
from mediagate.providers.anime import AnimeCatalog
from mediagate.providers.manga import MangaCatalog
from mediagate.providers.movies import MovieCatalog

logger = logging.getLogger("bundle")

BUNDLE_CACHE_KEY = "anime:home-bundle:v2"
MOVIES_CACHE_KEY = "movies:home-bundle:v1"
MANGA_CACHE_KEY = "manga:home-bundle:{lang}:v2"
SPOTLIGHT_LIMIT = 12
SECTION_LIMIT = 24
HERO_LIMIT = 6
HERO_SECTION = "Trending"

_CORE_SECTIONS = {
    "spotlight": SPOTLIGHT_LIMIT,
    "recentEpisodes": SECTION_LIMIT,
    "mostPopular": SECTION_LIMIT,
    "topAiring": SECTION_LIMIT,
}


def _timestamp_ms(built_at: float) -> int:
    return int(built_at * 1000)


async def build_home_bundle(catalog: AnimeCatalog) -> dict:
    calls = {
        "spotlight": catalog.spotlight.fetch_section,
        "recentEpisodes": catalog.recent_episodes.fetch_section,
        "mostPopular": catalog.most_popular.fetch_section,
        "topAiring": catalog.top_airing.fetch_section,
    }
    for genre, provider in catalog.genres.items():
        calls[f"genre:{genre}"] = provider.fetch_section

    result = await gather_sections(calls)

    bundle = {name: result.sections[name][:limit] for name, limit in _CORE_SECTIONS.items()}
    # Empty genres are left out entirely rather than sent as [].
    bundle["genres"] = {
        genre: result.sections[f"genre:{genre}"][:SECTION_LIMIT]
        for genre in catalog.genres
        if result.sections[f"genre:{genre}"]
    }
    bundle["_ts"] = _timestamp_ms(result.built_at)
    logger.info("Built home bundle: %d/%d sections populated", len(result.populated()), len(calls))
    return bundle


async def get_home_bundle(aggregator: CacheAsideAggregator, catalog: AnimeCatalog, ttl_seconds: int) -> dict:
    return await aggregator.fetch_or_compute(BUNDLE_CACHE_KEY, ttl_seconds, lambda: build_home_bundle(catalog))


async def build_movies_bundle(catalog: MovieCatalog) -> dict:
    calls = {
        "trendingMovies": catalog.trending_movies.fetch_section,
        "trendingTV": catalog.trending_tv.fetch_section,
        "recentMovies": catalog.recent_movies.fetch_section,
        "recentTV": catalog.recent_tv.fetch_section,
    }
    result = await gather_sections(calls)

    bundle = {name: result.sections[name][:SECTION_LIMIT] for name in calls}
    bundle["_ts"] = _timestamp_ms(result.built_at)
    logger.info("Built movies bundle: %d/%d sections populated", len(result.populated()), len(calls))
    return bundle


async def get_movies_bundle(aggregator: CacheAsideAggregator, catalog: MovieCatalog, ttl_seconds: int) -> dict:
    return await aggregator.fetch_or_compute(MOVIES_CACHE_KEY, ttl_seconds, lambda: build_movies_bundle(catalog))


def _is_novel(item: dict) -> bool:
    item_id = str(item.get("id") or "").lower()
    title = item.get("title")
    title = title.lower() if isinstance(title, str) else ""
    return "novel" in item_id or "novel" in title


async def build_manga_bundle(catalog: MangaCatalog) -> dict:
    """Merge every title search into labelled sections.

    All searches run at once.  A title already placed in an earlier section
    (or earlier in the same one) is skipped, so each id appears once in the
    whole bundle; items without an id cannot be matched and are kept.
    """
    calls = {f"{index}:{search.query}": search.provider.fetch_section for index, search in enumerate(catalog.searches)}
    result = await gather_sections(calls)

    sections: dict[str, list[dict]] = {label: [] for label in catalog.labels}
    seen: set = set()
    for name, search in zip(calls, catalog.searches):
        for item in result.sections[name]:
            item_id = item.get("id")
            if item_id is not None:
                if item_id in seen:
                    continue
                seen.add(item_id)
            if catalog.provider_name == "komiku":
                item = {**item, "provider": "komiku"}
            sections[search.label].append(item)

    hero = [item for item in sections.get(HERO_SECTION, []) if not _is_novel(item)][:HERO_LIMIT]
    logger.info(
        "Built manga bundle (%s): %d/%d searches answered",
        catalog.lang,
        len(result.populated()),
        len(calls),
    )
    return {
        "sections": {label: items[:SECTION_LIMIT] for label, items in sections.items()},
        "heroItems": hero,
        "_ts": _timestamp_ms(result.built_at),
    }


async def get_manga_bundle(aggregator: CacheAsideAggregator, catalog: MangaCatalog, ttl_seconds: int) -> dict:
    key = MANGA_CACHE_KEY.format(lang=catalog.lang)
    return await aggregator.fetch_or_compute(key, ttl_seconds, lambda: build_manga_bundle(catalog))
