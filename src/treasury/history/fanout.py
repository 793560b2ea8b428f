"""Concurrent fan-out that joins every task before surfacing a failure."""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

T = TypeVar("T")


async def gather_all(*aws: Awaitable[T]) -> list[T]:
    """Run ``aws`` concurrently and wait for all of them.

    Unlike a bare ``asyncio.gather`` no sibling is left running when one
    fails: every result is collected first, then the first exception (in
    argument order) is raised.
    """
    results = await asyncio.gather(*aws, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return list(results)
