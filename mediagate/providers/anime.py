"""Anime catalogue wiring for the home bundle.

Spotlight and recent episodes prefer AnimeKai and fall back to HiAnime;
the remaining sections and every genre come from HiAnime.
"""

from dataclasses import dataclass, field

import httpx

from mediagate.providers.base import FallbackProvider, JsonSectionProvider, SectionProvider

GENRE_KEYS = (
    "action",
    "romance",
    "slice-of-life",
    "fantasy",
    "comedy",
    "adventure",
    "sci-fi",
    "drama",
    "mystery",
    "horror",
    "sports",
    "music",
)


@dataclass
class AnimeCatalog:
    spotlight: SectionProvider
    recent_episodes: SectionProvider
    most_popular: SectionProvider
    top_airing: SectionProvider
    genres: dict[str, SectionProvider] = field(default_factory=dict)


def build_anime_catalog(client: httpx.AsyncClient, api_base: str, timeout: float | None = None) -> AnimeCatalog:
    base = api_base.rstrip("/")

    def provider(path: str) -> JsonSectionProvider:
        return JsonSectionProvider(client, f"{base}/anime/{path}", name=path, timeout=timeout)

    return AnimeCatalog(
        spotlight=FallbackProvider(provider("animekai/spotlight"), provider("hianime/spotlight")),
        recent_episodes=FallbackProvider(
            provider("animekai/recent-episodes"), provider("hianime/recently-updated")
        ),
        most_popular=provider("hianime/most-popular"),
        top_airing=provider("hianime/top-airing"),
        genres={genre: provider(f"hianime/genre/{genre}") for genre in GENRE_KEYS},
    )
