"""
Bounded-concurrency runner for async tasks.

Keeps the number of in-flight Notion requests under control while still
overlapping network waits across documents.
"""

import asyncio
from typing import Awaitable, Callable, Sequence, TypeVar

T = TypeVar("T")


async def run_with_concurrency(
    task_fns: Sequence[Callable[[], Awaitable[T]]],
    concurrency: int,
) -> list[T]:
    """
    Run task factories with at most ``concurrency`` of them in flight.

    A fixed pool of ``min(concurrency, len(task_fns))`` workers each claim
    the next unstarted task until none are left. The first failure cancels
    the remaining workers and is re-raised.

    Args:
        task_fns: Zero-argument callables returning awaitables.
        concurrency: Maximum number of tasks running at once (>= 1).

    Returns:
        One result per task, at the task's original index.

    Raises:
        ValueError: If concurrency is less than 1.
    """
    if concurrency < 1:
        raise ValueError(f"concurrency must be at least 1, got {concurrency}")

    results: list = [None] * len(task_fns)
    next_index = 0

    async def worker() -> None:
        nonlocal next_index
        while next_index < len(task_fns):
            i = next_index
            next_index += 1
            results[i] = await task_fns[i]()

    workers = [
        asyncio.create_task(worker())
        for _ in range(min(concurrency, len(task_fns)))
    ]

    try:
        await asyncio.gather(*workers)
    except BaseException:
        for w in workers:
            w.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        raise

    return results
