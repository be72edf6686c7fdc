"""Single-request upstream fetcher.

Wraps a shared ``httpx.AsyncClient``.  One call is one network request:
redirects are followed, non-2xx statuses and transport errors come back as
a ``Failure`` outcome instead of an exception, and nothing is retried here.
Retry and fallback belong to the callers (header policy, host failover,
gallery backoff).

Hosts that match a configured tunnel domain go through a second client
with an outbound proxy, for CDNs that block datacenter IP ranges.
"""

import logging
from urllib.parse import urlsplit

import httpx

from mediagate.config import Settings
from mediagate.upstream.models import Failure, FetchAttempt, HeaderSet, Success

logger = logging.getLogger("fetcher")


def build_timeout(settings: Settings) -> httpx.Timeout:
    return httpx.Timeout(
        connect=settings.upstream_connect_timeout_s,
        read=settings.upstream_read_timeout_s,
        write=settings.upstream_write_timeout_s,
        pool=settings.upstream_pool_timeout_s,
    )


class UpstreamFetcher:
    def __init__(
        self,
        client: httpx.AsyncClient,
        tunnel_client: httpx.AsyncClient | None = None,
        tunnel_domains: tuple[str, ...] = (),
    ):
        self._client = client
        self._tunnel_client = tunnel_client
        self._tunnel_domains = tunnel_domains

    def uses_tunnel(self, url: str) -> bool:
        if self._tunnel_client is None:
            return False
        host = (urlsplit(url).hostname or "").lower()
        return any(domain in host for domain in self._tunnel_domains)

    async def fetch(self, url: str, headers: HeaderSet, follow_redirects: bool = True) -> FetchAttempt:
        client = self._tunnel_client if self.uses_tunnel(url) else self._client
        try:
            resp = await client.get(url, headers=headers.as_headers(), follow_redirects=follow_redirects)
        except httpx.RequestError as exc:
            # Timeouts, DNS, connect/reset and redirect loops all land here.
            logger.info("Transport failure for %s: %s", url, exc.__class__.__name__)
            return FetchAttempt(url=url, headers=headers, outcome=Failure(error=exc))

        if not resp.is_success:
            logger.debug("Upstream %s returned %d", url, resp.status_code)
            return FetchAttempt(url=url, headers=headers, outcome=Failure(status=resp.status_code))

        return FetchAttempt(
            url=url,
            headers=headers,
            outcome=Success(
                status=resp.status_code,
                headers=dict(resp.headers),
                body=resp.content,
                url=str(resp.url),
            ),
        )
