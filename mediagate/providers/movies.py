"""Movie catalogue wiring: four Goku sections, no fallbacks."""

from dataclasses import dataclass

import httpx

from mediagate.providers.base import JsonSectionProvider, SectionProvider


@dataclass
class MovieCatalog:
    trending_movies: SectionProvider
    trending_tv: SectionProvider
    recent_movies: SectionProvider
    recent_tv: SectionProvider


def build_movie_catalog(client: httpx.AsyncClient, api_base: str, timeout: float | None = None) -> MovieCatalog:
    base = f"{api_base.rstrip('/')}/movies/goku"

    def provider(path: str, **params) -> JsonSectionProvider:
        return JsonSectionProvider(client, f"{base}/{path}", name=f"goku/{path}", params=params, timeout=timeout)

    return MovieCatalog(
        trending_movies=provider("trending", type="movie"),
        trending_tv=provider("trending", type="tv"),
        recent_movies=provider("recent-movies"),
        recent_tv=provider("recent-shows"),
    )
