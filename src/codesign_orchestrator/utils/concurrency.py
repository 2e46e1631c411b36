"""Async bounded-concurrency primitives used by the pipeline stages."""

from __future__ import annotations

import asyncio
import itertools
from contextlib import suppress
from typing import TYPE_CHECKING, TypeVar, cast

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

T = TypeVar("T")
R = TypeVar("R")


async def run_bounded(
    items: Sequence[T],
    limit: int,
    operation: Callable[[T, int], Awaitable[R]],
) -> list[R]:
    """Apply ``operation`` to every item with at most ``limit`` calls in flight.

    ``min(limit, len(items))`` workers race over a shared claim cursor; each
    worker takes the next unclaimed index until the cursor runs past the end.
    Results are stored positionally, so the returned list always follows the
    order of ``items`` whatever order the calls finish in.

    If ``operation`` raises, no further items are claimed. Calls already in
    flight run to completion and the first error is then re-raised. Callers
    that need every item attempted should return failures as values instead
    of raising them. Cancelling the caller cancels every worker.
    """

    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise ValueError(f"limit must be a positive integer, got {limit!r}")

    total = len(items)
    results: list[R | None] = [None] * total
    failures: list[Exception] = []
    # next() on a shared counter is an atomic claim on the event loop thread.
    cursor = itertools.count()

    async def worker() -> None:
        for index in cursor:
            if index >= total or failures:
                return
            try:
                results[index] = await operation(items[index], index)
            except Exception as exc:
                failures.append(exc)
                return

    workers = [asyncio.create_task(worker()) for _ in range(min(limit, total))]
    try:
        await asyncio.gather(*workers)
    except BaseException:
        await _cancel_all(workers)
        raise

    if failures:
        raise failures[0]
    return cast("list[R]", results)


def resolve_concurrency(requested: int, item_count: int) -> int:
    """Return ``requested`` when positive, else one worker per item."""

    if requested > 0:
        return requested
    return max(item_count, 1)


async def _cancel_all(tasks: Sequence[asyncio.Task[None]]) -> None:
    for task in tasks:
        task.cancel()
    if tasks:
        with suppress(Exception):
            await asyncio.gather(*tasks, return_exceptions=True)


__all__ = [
    "resolve_concurrency",
    "run_bounded",
]
