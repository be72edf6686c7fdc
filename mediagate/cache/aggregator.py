"""Cache-aside aggregation of parallel upstream calls.

``settle_all`` is the join primitive: it waits for *every* call and tags
each one ``Fulfilled`` or ``Rejected``; one failure never cancels its
siblings.  ``gather_sections`` builds an ``AggregateResult`` from named
calls, degrading rejected sections to empty lists.

``CacheAsideAggregator.fetch_or_compute`` puts any such computation behind
the external store.  The store is written once, after the computation has
finished, so a half-built result is never cached.  When the store is down
the value is computed fresh every time.

Concurrent misses for the same key in one worker share a single in-flight
computation (single-flight).  Misses across workers may still recompute;
the last write wins.
"""

import asyncio
import json
import logging
import time
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from mediagate.errors import CacheStoreUnavailable

logger = logging.getLogger("aggregator")


@dataclass(frozen=True)
class Fulfilled:
    value: Any


@dataclass(frozen=True)
class Rejected:
    reason: BaseException


Outcome = Fulfilled | Rejected


async def settle_all(calls: Sequence[Callable[[], Awaitable[Any]]]) -> list[Outcome]:
    """Run ``calls`` concurrently and return one outcome per call, in order."""
    results = await asyncio.gather(*(call() for call in calls), return_exceptions=True)
    return [Rejected(r) if isinstance(r, BaseException) else Fulfilled(r) for r in results]


@dataclass(frozen=True)
class AggregateResult:
    sections: Mapping[str, list] = field(default_factory=dict)
    built_at: float = 0.0

    def populated(self) -> list[str]:
        return [name for name, items in self.sections.items() if items]


async def gather_sections(calls: Mapping[str, Callable[[], Awaitable[list]]]) -> AggregateResult:
    names = list(calls)
    outcomes = await settle_all([calls[name] for name in names])
    sections = {}
    for name, outcome in zip(names, outcomes):
        if isinstance(outcome, Rejected):
            logger.warning("Section %s unavailable: %r", name, outcome.reason)
            sections[name] = []
        else:
            sections[name] = list(outcome.value or [])
    return AggregateResult(sections=sections, built_at=time.time())


class CacheAsideAggregator:
    def __init__(self, store, single_flight: bool = True):
        self.store = store
        self.single_flight = single_flight
        self._inflight: dict[str, asyncio.Future] = {}

    async def fetch_or_compute(self, key: str, ttl_seconds: int, compute: Callable[[], Awaitable[Any]]) -> Any:
        """Return the cached value for ``key`` or compute, store and return it.

        ``compute`` must produce a JSON-serialisable value.
        """
        cached = await self._read(key)
        if cached is not None:
            return cached

        if not self.single_flight:
            return await self._compute_and_store(key, ttl_seconds, compute)

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._compute_and_store(key, ttl_seconds, compute))
            self._inflight[key] = task
            task.add_done_callback(lambda done: self._forget(key, done))
        # shield: one caller going away must not cancel the shared computation
        return await asyncio.shield(task)

    def _forget(self, key: str, task: asyncio.Future):
        if self._inflight.get(key) is task:
            del self._inflight[key]

    async def _read(self, key: str) -> Any:
        try:
            raw = await self.store.get(key)
        except CacheStoreUnavailable:
            logger.warning("Cache read failed for %s, computing directly", key, exc_info=True)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Discarding undecodable cache entry %s", key)
            return None

    async def _compute_and_store(self, key: str, ttl_seconds: int, compute: Callable[[], Awaitable[Any]]) -> Any:
        value = await compute()
        try:
            await self.store.set(key, json.dumps(value, separators=(",", ":")), ttl_seconds)
        except CacheStoreUnavailable:
            logger.warning("Cache write failed for %s", key, exc_info=True)
        return value
