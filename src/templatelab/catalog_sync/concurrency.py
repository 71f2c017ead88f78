from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, List, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def bounded_map(
    items: Sequence[T],
    limit: int,
    handler: Callable[[T], Awaitable[R]],
) -> List[R]:
    """Run ``handler`` over ``items`` with at most ``limit`` calls in flight.

    A fixed pool of workers pulls the next pending item as soon as its
    previous call finishes. Results come back in input order.
    """

    if not items:
        return []
    results: List[R] = [None] * len(items)  # type: ignore[list-item]
    pending = iter(enumerate(items))

    async def worker() -> None:
        # Single event loop: advancing the shared iterator cannot race.
        for index, item in pending:
            results[index] = await handler(item)

    workers = max(1, min(limit, len(items)))
    await asyncio.gather(*(worker() for _ in range(workers)))
    return results
