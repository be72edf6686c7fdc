"""Manga catalogue wiring.

The manga homepage has no section endpoints upstream; each section is a
handful of popular title searches whose results are merged.  Indonesian
readers get Komiku, everyone else MangaPill.
"""

from dataclasses import dataclass, field
from urllib.parse import quote

import httpx

from mediagate.providers.base import JsonSectionProvider, SectionProvider

DEFAULT_LANG = "en"

POPULAR_QUERIES: dict[str, dict[str, tuple[str, ...]]] = {
    "en": {
        "Trending": ("solo leveling", "one piece", "jujutsu kaisen"),
        "Action": ("demon slayer", "attack on titan", "chainsaw man"),
        "Romance": ("horimiya", "kaguya sama", "my dress up darling"),
        "Fantasy": ("mushoku tensei", "shield hero", "overlord"),
    },
    "id": {
        "Trending": ("solo leveling", "one piece", "jujutsu kaisen"),
        "Action": ("demon slayer", "naruto", "chainsaw man"),
        "Romance": ("horimiya", "kaguya sama", "spy x family"),
        "Fantasy": ("mushoku tensei", "overlord", "shield hero"),
    },
}

_LANG_PROVIDERS = {"en": "mangapill", "id": "komiku"}


@dataclass
class MangaSearch:
    label: str
    query: str
    provider: SectionProvider


@dataclass
class MangaCatalog:
    lang: str
    provider_name: str
    # Label order is section order in the bundle.
    searches: list[MangaSearch] = field(default_factory=list)

    @property
    def labels(self) -> list[str]:
        return list(dict.fromkeys(search.label for search in self.searches))


def normalize_lang(lang: str | None) -> str:
    """Known language code, or the default for anything else."""
    lang = (lang or "").strip().lower()
    return lang if lang in POPULAR_QUERIES else DEFAULT_LANG


def build_manga_catalog(
    client: httpx.AsyncClient,
    api_base: str,
    lang: str | None = None,
    timeout: float | None = None,
) -> MangaCatalog:
    lang = normalize_lang(lang)
    provider_name = _LANG_PROVIDERS[lang]
    base = f"{api_base.rstrip('/')}/manga/{provider_name}"

    searches = [
        MangaSearch(
            label=label,
            query=query,
            provider=JsonSectionProvider(
                client,
                f"{base}/{quote(query, safe='')}",
                name=f"{provider_name}:{query}",
                timeout=timeout,
            ),
        )
        for label, queries in POPULAR_QUERIES[lang].items()
        for query in queries
    ]
    return MangaCatalog(lang=lang, provider_name=provider_name, searches=searches)
