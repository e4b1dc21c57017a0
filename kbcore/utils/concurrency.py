"""Bounded-concurrency helper for fan-out over independent async jobs."""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

from kbcore.utils.errors import ValidationError

_T = TypeVar("_T")


async def throttled_gather(
    coros: list[Awaitable[_T]],
    max_concurrency: int,
    return_exceptions: bool = False,
) -> list[_T | BaseException]:
    """Run awaitables concurrently, at most ``max_concurrency`` at a time.

    Parameters
    ----------
    coros:
        Awaitable objects to execute.
    max_concurrency:
        Size of the semaphore guarding execution.  Must be at least 1.
    return_exceptions:
        Mirrors ``asyncio.gather``: when ``True`` exceptions are returned in
        place of results instead of being raised.

    Returns
    -------
    list
        Results in the same order as the input awaitables.
    """
    if max_concurrency < 1:
        raise ValidationError("max_concurrency must be at least 1")

    semaphore = asyncio.Semaphore(max_concurrency)

    async def _wrapped(coro: Awaitable[_T]) -> _T:
        async with semaphore:
            return await coro

    tasks = [_wrapped(c) for c in coros]
    return await asyncio.gather(*tasks, return_exceptions=return_exceptions)
