"""Bounded retry with linear backoff for JSON API calls behind Cloudflare.

A 403 is usually a transient challenge, so it is retried; a transport error
is retried too.  Any other status is final on the first answer.
"""

import asyncio
import logging
from functools import partial

from mediagate.errors import AllAttemptsFailedError
from mediagate.upstream.chain import first_success
from mediagate.upstream.fetcher import UpstreamFetcher
from mediagate.upstream.models import FetchAttempt, HeaderSet

logger = logging.getLogger("retry")


def _retryable(attempt) -> bool:
    return isinstance(attempt, FetchAttempt) and (attempt.status == 403 or attempt.transport_failed)


async def fetch_with_backoff(
    fetcher: UpstreamFetcher,
    url: str,
    headers: HeaderSet,
    attempts: int = 3,
    backoff_s: float = 0.6,
    sleep=asyncio.sleep,
    budget_s: float | None = None,
) -> FetchAttempt:
    """Fetch ``url`` up to ``attempts`` times, sleeping ``backoff_s * n`` before try n.

    Returns the successful attempt, or the final non-retryable/last HTTP
    failure for the caller to surface.  Raises ``AllAttemptsFailedError``
    when the last attempt died in transport or ``budget_s`` ran out; the
    backoff sleeps count against the budget.
    """

    async def _attempt(n: int) -> FetchAttempt:
        if n:
            await sleep(backoff_s * n)
        return await fetcher.fetch(url, headers)

    result = await first_success(
        [(f"attempt-{n + 1}", partial(_attempt, n)) for n in range(attempts)],
        accept=lambda attempt: attempt.ok,
        proceed=_retryable,
        budget_s=budget_s,
    )
    if result.succeeded:
        return result.value

    last = result.last_failure
    if isinstance(last, FetchAttempt) and not last.transport_failed:
        return last
    if result.timed_out:
        logger.warning("Request budget of %ss spent on %s", budget_s, url)
    logger.warning("Giving up on %s after %d attempts", url, len(result.failures))
    raise AllAttemptsFailedError(attempts=len(result.failures))
