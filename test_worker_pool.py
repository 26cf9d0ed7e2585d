"""
WorkerPool: concurrency bound, input-order results, failure isolation, batching.
"""

import asyncio

import pytest

from harvester.news.worker_pool import WorkerPool


class InFlightCounter:
    """Instrumented async handler: records the peak number of concurrent calls."""

    def __init__(self, delay=0.01, fail_on=()):
        self.delay = delay
        self.fail_on = set(fail_on)
        self.in_flight = 0
        self.peak = 0
        self.calls = []

    async def __call__(self, item):
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        self.calls.append(item)
        try:
            # Later items finish sooner, so completion order differs from input order
            await asyncio.sleep(self.delay / (item + 1))
            if item in self.fail_on:
                raise RuntimeError(f"boom {item}")
            return item * 10
        finally:
            self.in_flight -= 1


def test_concurrency_never_exceeds_pool_size():
    handler = InFlightCounter()
    pool = WorkerPool(concurrency=3, per_item_delay=0)
    results = asyncio.run(pool.run(list(range(12)), handler))
    assert handler.peak <= 3
    assert handler.peak == 3
    assert len(results) == 12


def test_results_keep_input_order():
    pool = WorkerPool(concurrency=4, per_item_delay=0)
    results = asyncio.run(pool.run(list(range(8)), InFlightCounter()))
    assert results == [i * 10 for i in range(8)]


def test_one_failure_does_not_cancel_siblings():
    handler = InFlightCounter(fail_on={2, 5})
    pool = WorkerPool(concurrency=2, per_item_delay=0)
    results = asyncio.run(pool.run(list(range(7)), handler))
    assert results == [0, 10, 30, 40, 60]
    assert sorted(handler.calls) == list(range(7))


def test_none_results_are_dropped():
    async def only_even(item):
        return item if item % 2 == 0 else None

    results = asyncio.run(WorkerPool(concurrency=2, per_item_delay=0).run(range(6), only_even))
    assert results == [0, 2, 4]


def test_batches_bound_concurrency_and_cover_all_items():
    handler = InFlightCounter()
    pool = WorkerPool(concurrency=4, per_item_delay=0, batch_size=2, batch_delay=0)
    results = asyncio.run(pool.run(list(range(5)), handler))
    assert handler.peak <= 2
    assert results == [0, 10, 20, 30, 40]


def test_empty_input():
    assert asyncio.run(WorkerPool().run([], InFlightCounter())) == []


def test_invalid_concurrency():
    with pytest.raises(ValueError):
        WorkerPool(concurrency=0)
