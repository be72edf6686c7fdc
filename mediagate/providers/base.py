"""Provider clients for homepage sections.

Upstream catalogue APIs answer in several shapes (``{"results": [...]}``,
``{"data": [...]}``, a bare list).  ``normalize_items`` collapses them into
one list of dicts at this boundary so the aggregator only ever sees lists.
"""

import logging
from functools import partial
from typing import Any, Protocol

import httpx

from mediagate.upstream.chain import first_success

logger = logging.getLogger("providers")

_LIST_KEYS = ("results", "data", "items")


class SectionProvider(Protocol):
    name: str

    async def fetch_section(self, page: int = 1) -> list[dict]: ...


def normalize_items(payload: Any) -> list[dict]:
    if isinstance(payload, dict):
        for key in _LIST_KEYS:
            if isinstance(payload.get(key), list):
                payload = payload[key]
                break
        else:
            return []
    if not isinstance(payload, list):
        return []
    return [item for item in payload if isinstance(item, dict)]


class JsonSectionProvider:
    """GET ``url?page=N`` on a JSON API and normalise the body."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str,
        name: str | None = None,
        params: dict | None = None,
        timeout: float | None = None,
    ):
        self._client = client
        self.url = url
        self.name = name or url
        self.params = params or {}
        self.timeout = timeout

    async def fetch_section(self, page: int = 1) -> list[dict]:
        kwargs = {"timeout": self.timeout} if self.timeout is not None else {}
        resp = await self._client.get(self.url, params={**self.params, "page": page}, **kwargs)
        resp.raise_for_status()
        return normalize_items(resp.json())


class FallbackProvider:
    """Primary first; on error or zero items the secondary answers instead."""

    def __init__(self, primary: SectionProvider, secondary: SectionProvider):
        self.primary = primary
        self.secondary = secondary
        self.name = f"{primary.name}|{secondary.name}"

    async def fetch_section(self, page: int = 1) -> list[dict]:
        result = await first_success(
            [
                (self.primary.name, partial(self.primary.fetch_section, page)),
                (self.secondary.name, partial(self.secondary.fetch_section, page)),
            ],
            accept=lambda items: len(items) > 0,
        )
        if result.succeeded:
            if result.source != self.primary.name:
                logger.info("Section served by fallback provider %s", result.source)
            return result.value
        last = result.last_failure
        if isinstance(last, Exception):
            raise last
        return last or []
