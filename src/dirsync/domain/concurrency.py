"""Bounded fan-out over async streams."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, Awaitable, Callable

MAX_CONCURRENCY: Final[int] = 4


async def for_each_bounded[T](
    items: AsyncIterable[T],
    action: Callable[[T], Awaitable[None]],
    *,
    limit: int = MAX_CONCURRENCY,
) -> None:
    """Run ``action`` for every item with at most ``limit`` calls in flight.

    Items are pulled from the stream only once a slot is free. ``action`` is
    expected to handle its own failures; an escaping exception cancels the
    remaining work.
    """

    if limit < 1:
        raise ValueError("Concurrency limit must be at least 1")

    slots = asyncio.Semaphore(limit)

    async def run(item: T) -> None:
        try:
            await action(item)
        finally:
            slots.release()

    async with asyncio.TaskGroup() as group:
        async for item in items:
            await slots.acquire()
            group.create_task(run(item))
