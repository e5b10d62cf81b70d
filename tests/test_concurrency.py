"""Unit tests for docs_to_notion.concurrency."""

import asyncio

import pytest

from docs_to_notion.concurrency import run_with_concurrency

pytestmark = pytest.mark.asyncio


class TestRunWithConcurrency:

    async def test_results_keep_task_order_and_respect_bound(self):
        """10 tasks, bound 3: ordered results, never more than 3 in flight."""
        in_flight = 0
        peak = 0

        def make_task(i):
            async def task():
                nonlocal in_flight, peak
                in_flight += 1
                peak = max(peak, in_flight)
                # Later tasks finish first
                await asyncio.sleep(0.001 * (10 - i))
                in_flight -= 1
                return i * i
            return task

        results = await run_with_concurrency([make_task(i) for i in range(10)], 3)

        assert results == [i * i for i in range(10)]
        assert peak == 3

    async def test_fewer_tasks_than_bound(self):
        started = []

        def make_task(i):
            async def task():
                started.append(i)
                return i
            return task

        assert await run_with_concurrency([make_task(i) for i in range(2)], 5) == [0, 1]
        assert started == [0, 1]

    async def test_empty_task_list(self):
        assert await run_with_concurrency([], 3) == []

    async def test_first_failure_propagates_and_stops_remaining_work(self):
        started = []

        def make_task(i):
            async def task():
                started.append(i)
                if i == 1:
                    raise RuntimeError("task 1 failed")
                await asyncio.sleep(0.01)
                return i
            return task

        with pytest.raises(RuntimeError, match="task 1 failed"):
            await run_with_concurrency([make_task(i) for i in range(10)], 2)

        # Task 1 fails immediately; its sibling is cancelled before finishing
        assert len(started) < 10

    async def test_bound_of_one_runs_sequentially(self):
        order = []

        def make_task(i):
            async def task():
                order.append(("start", i))
                await asyncio.sleep(0)
                order.append(("end", i))
            return task

        await run_with_concurrency([make_task(i) for i in range(3)], 1)

        assert order == [
            ("start", 0), ("end", 0),
            ("start", 1), ("end", 1),
            ("start", 2), ("end", 2),
        ]

    async def test_rejects_non_positive_bound(self):
        with pytest.raises(ValueError):
            await run_with_concurrency([], 0)
