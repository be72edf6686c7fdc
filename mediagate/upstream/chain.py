"""Ordered "first success wins" combinator.

Every fallback chain in the gateway (header-less → headered, CDN host 1 → N,
primary → secondary provider, gallery retry) is a list of named strategies
run through ``first_success``.  Strategies run strictly one after another,
never concurrently.  The result is tagged with the winning source or carries
every failure, so callers decide what to surface.
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

Strategy = tuple[str, Callable[[], Awaitable[Any]]]


@dataclass
class ChainResult:
    value: Any = None
    source: str | None = None
    # (source, result-or-exception) for every strategy that did not win
    failures: list[tuple[str, Any]] = field(default_factory=list)
    timed_out: bool = False

    @property
    def succeeded(self) -> bool:
        return self.source is not None

    @property
    def last_failure(self) -> Any:
        return self.failures[-1][1] if self.failures else None


def _always(_result) -> bool:
    return True


async def first_success(
    strategies: Sequence[Strategy],
    accept: Callable[[Any], bool],
    proceed: Callable[[Any], bool] = _always,
    budget_s: float | None = None,
) -> ChainResult:
    """Run ``strategies`` in order until one returns a value ``accept`` likes.

    A strategy that raises is recorded as a failure.  After each failure
    ``proceed`` decides whether the next strategy is worth trying; when it
    returns False the chain stops early.

    ``budget_s`` bounds the whole chain.  The strategy running when it runs
    out is cancelled and recorded as an ``asyncio.TimeoutError`` failure, no
    further strategy is started, and ``timed_out`` is set on the result.
    """
    result = ChainResult()
    loop = asyncio.get_running_loop()
    deadline = loop.time() + budget_s if budget_s is not None else None
    for source, strategy in strategies:
        try:
            if deadline is None:
                value = await strategy()
            else:
                value = await asyncio.wait_for(strategy(), max(deadline - loop.time(), 0))
        except asyncio.TimeoutError as exc:
            if deadline is None:
                failed = exc
            else:
                result.failures.append((source, exc))
                result.timed_out = True
                break
        except Exception as exc:
            failed = exc
        else:
            if accept(value):
                result.value = value
                result.source = source
                return result
            failed = value
        result.failures.append((source, failed))
        if not proceed(failed):
            break
    return result
