"""Referer/Origin policy for proxied stream requests.

CDNs disagree about Referer: some reject requests without it, others reject
requests that carry a foreign one.  The policy sends the cheaper variant
first and escalates once:

1. No referer supplied → never send Referer/Origin.
2. Send them up front only for same-host targets, known CDN families that
   demand them, or encryption keys.
3. Otherwise go header-less, and on a 403 retry exactly once with them.
"""

import logging
from dataclasses import dataclass
from functools import partial
from urllib.parse import urlsplit

from mediagate.upstream.chain import first_success
from mediagate.upstream.fetcher import UpstreamFetcher
from mediagate.upstream.models import Failure, FetchAttempt, HeaderSet, ProxyRequest

logger = logging.getLogger("header_policy")

DEFAULT_CDN_FAMILIES = (
    "uwucdn",
    "owocdn",
    "megacloud",
    "megafiles",
    "vizcloud",
    "rapid-cloud",
    "rabbitstream",
)
DEFAULT_KEY_MARKERS = (".key",)


def referer_origin(referer: str | None) -> str:
    """``scheme://host[:port]`` of ``referer``, or "" when it cannot be parsed."""
    if not referer:
        return ""
    parts = urlsplit(referer)
    if not parts.scheme or not parts.netloc:
        return ""
    return f"{parts.scheme}://{parts.netloc}"


@dataclass(frozen=True)
class HeaderDecision:
    attach_first: bool
    escalate_on_403: bool
    referer: str | None = None
    origin: str | None = None


class HeaderPolicy:
    def __init__(
        self,
        user_agent: str,
        cdn_families: tuple[str, ...] = DEFAULT_CDN_FAMILIES,
        key_markers: tuple[str, ...] = DEFAULT_KEY_MARKERS,
        budget_s: float | None = None,
    ):
        self.user_agent = user_agent
        self.cdn_families = cdn_families
        self.key_markers = key_markers
        self.budget_s = budget_s

    def decide(self, request: ProxyRequest) -> HeaderDecision:
        referer = request.forward_referer
        if not referer:
            return HeaderDecision(attach_first=False, escalate_on_403=False)

        origin = referer_origin(referer)
        referer_host = (urlsplit(origin).hostname or "").lower() if origin else ""
        target_host = request.target_host

        attach = (
            (bool(referer_host) and target_host == referer_host)
            or any(family in target_host for family in self.cdn_families)
            or any(marker in request.target_url for marker in self.key_markers)
        )
        return HeaderDecision(
            attach_first=attach,
            escalate_on_403=not attach,
            referer=referer,
            origin=origin or None,
        )

    def header_set(self, request: ProxyRequest, decision: HeaderDecision, with_referer: bool) -> HeaderSet:
        if not with_referer:
            return HeaderSet(user_agent=self.user_agent, byte_range=request.byte_range)
        return HeaderSet(
            user_agent=self.user_agent,
            referer=decision.referer,
            origin=decision.origin,
            byte_range=request.byte_range,
        )

    async def fetch(self, fetcher: UpstreamFetcher, request: ProxyRequest) -> FetchAttempt:
        """Fetch ``request`` under the policy; returns the winning or last attempt."""
        decision = self.decide(request)
        url = request.target_url

        plan = [("with-referer" if decision.attach_first else "bare", decision.attach_first)]
        if decision.escalate_on_403:
            plan.append(("escalated", True))
        header_sets = {source: self.header_set(request, decision, with_referer) for source, with_referer in plan}
        strategies = [(source, partial(fetcher.fetch, url, header_sets[source])) for source, _ in plan]

        result = await first_success(
            strategies,
            accept=lambda attempt: attempt.ok,
            proceed=lambda attempt: isinstance(attempt, FetchAttempt) and attempt.status == 403,
            budget_s=self.budget_s,
        )
        if result.succeeded:
            if result.source == "escalated":
                logger.info("Header escalation succeeded for %s", url)
            return result.value
        failure = result.last_failure
        if result.timed_out:
            logger.warning("Request budget of %ss spent on %s", self.budget_s, url)
            return FetchAttempt(url=url, headers=header_sets[result.failures[-1][0]], outcome=Failure(error=failure))
        if isinstance(failure, Exception):
            raise failure
        return failure
