"""
Race condition tests for event deduplication.

Exactly one caller may win the right to fulfill a given event id.
"""
import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from license_bridge.core.dedup import InMemoryEventStore


@pytest.mark.unit
def test_should_process_true_then_false() -> None:
    store = InMemoryEventStore()

    assert store.should_process("stripe:evt_1") is True
    assert store.should_process("stripe:evt_1") is False
    assert store.has("stripe:evt_1")


@pytest.mark.unit
def test_distinct_ids_are_independent() -> None:
    store = InMemoryEventStore()

    assert store.should_process("stripe:evt_1")
    assert store.should_process("stripe:evt_2")
    assert store.should_process("paypal:evt_1")
    assert len(store) == 3


@pytest.mark.unit
def test_mark_then_should_process() -> None:
    store = InMemoryEventStore()
    assert not store.has("paypal:ORDER-1")

    store.mark("paypal:ORDER-1")

    assert store.should_process("paypal:ORDER-1") is False


@pytest.mark.race
def test_concurrent_threads_same_id_single_winner() -> None:
    store = InMemoryEventStore()
    workers = 32
    barrier = threading.Barrier(workers)

    def attempt(_: int) -> bool:
        barrier.wait()
        return store.should_process("stripe:evt_retry_storm")

    with ThreadPoolExecutor(max_workers=workers) as pool:
        results = list(pool.map(attempt, range(workers)))

    assert results.count(True) == 1
    assert results.count(False) == workers - 1


@pytest.mark.race
@pytest.mark.asyncio
async def test_concurrent_tasks_same_id_single_winner() -> None:
    store = InMemoryEventStore()

    async def attempt() -> bool:
        await asyncio.sleep(0)
        return store.should_process("paypal:5O190127TN364715T")

    results = await asyncio.gather(*(attempt() for _ in range(50)))

    assert sum(results) == 1
