"""Failover across a pool of numbered, interchangeable CDN hosts.

Image CDNs such as ``i7.nhentai.net`` / ``i5.nhentai.net`` / ``i.nhentai.net``
serve identical paths.  When the requested host fails, the same path and
query are tried on the other members, in a fixed priority order, keeping the
role prefix (``i`` images, ``t`` thumbnails) and scheme of the request.
"""

import logging
import re
from functools import partial
from urllib.parse import urlsplit, urlunsplit

from mediagate.errors import AllHostsFailedError
from mediagate.upstream.chain import first_success
from mediagate.upstream.fetcher import UpstreamFetcher
from mediagate.upstream.models import FetchAttempt, HeaderSet

logger = logging.getLogger("failover")

# Pool member label: single role letter plus optional number, e.g. "i7", "t".
_MEMBER_LABEL = re.compile(r"^([a-z])(\d*)$")


class HostPool:
    def __init__(
        self,
        domain: str = "nhentai.net",
        suffixes: tuple[str, ...] = ("7", "5", "3", "2", "1", ""),
        max_candidates: int = 6,
    ):
        self.domain = domain.lower()
        self.suffixes = suffixes
        self.max_candidates = max_candidates

    def owns(self, host: str | None) -> bool:
        """True if ``host`` is the pool domain or one of its subdomains."""
        host = (host or "").lower()
        return host == self.domain or host.endswith("." + self.domain)

    def role_prefix(self, host: str) -> str | None:
        host = host.lower()
        if not host.endswith("." + self.domain):
            return None
        match = _MEMBER_LABEL.match(host[: -len(self.domain) - 1])
        return match.group(1) if match else None

    def candidates(self, url: str) -> list[str]:
        """Ordered URLs to try: ``url`` itself, then its pool siblings.

        Hosts that are not numbered pool members get no alternates.
        """
        parts = urlsplit(url)
        host = (parts.hostname or "").lower()
        prefix = self.role_prefix(host)
        if prefix is None:
            return [url]

        port = f":{parts.port}" if parts.port else ""
        urls = [url]
        for suffix in self.suffixes:
            alt_host = f"{prefix}{suffix}.{self.domain}"
            if alt_host == host:
                continue
            urls.append(urlunsplit((parts.scheme, alt_host + port, parts.path, parts.query, "")))
        return urls[: self.max_candidates]


async def fetch_from_pool(
    fetcher: UpstreamFetcher,
    candidates: list[str],
    headers: HeaderSet,
    budget_s: float | None = None,
) -> FetchAttempt:
    """Fetch the first candidate that answers 2xx, else raise ``AllHostsFailedError``.

    All candidates share ``budget_s``; once it is spent no further host is tried.
    """
    result = await first_success(
        [(url, partial(fetcher.fetch, url, headers)) for url in candidates],
        accept=lambda attempt: attempt.ok,
        budget_s=budget_s,
    )
    if result.timed_out:
        logger.warning("Request budget of %ss spent after %d CDN hosts", budget_s, len(result.failures))
    if not result.succeeded:
        logger.warning("All %d CDN hosts failed for %s", len(candidates), candidates[0] if candidates else "?")
        raise AllHostsFailedError(tried=len(result.failures))
    if result.failures:
        logger.info("Served %s from fallback host after %d failures", result.source, len(result.failures))
    return result.value
