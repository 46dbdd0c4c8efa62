"""Tests for concurrency control."""
from __future__ import annotations

import asyncio

import pytest

from tts_cache.core.errors import QueueFullError, TimeoutError
from tts_cache.tts.concurrency import ConcurrencyController, get_controller, reset_controller


class TestConcurrencyController:
    """Test ConcurrencyController basic functionality."""

    def test_controller_creation(self):
        """Controller can be created with custom limits."""
        controller = ConcurrencyController(max_concurrent=3, max_queue=5)
        assert controller.max_concurrent == 3
        assert controller.max_queue == 5

    def test_try_acquire_success(self):
        controller = ConcurrencyController(max_concurrent=2)
        assert controller.try_acquire() is True
        assert controller.active_count == 1
        controller.release()
        assert controller.active_count == 0

    def test_try_acquire_fail_when_full(self):
        controller = ConcurrencyController(max_concurrent=1)
        assert controller.try_acquire() is True
        assert controller.try_acquire() is False
        controller.release()

    def test_check_capacity_rejects_when_saturated(self):
        controller = ConcurrencyController(max_concurrent=1, max_queue=0)
        controller.check_capacity()
        assert controller.try_acquire()
        with pytest.raises(QueueFullError):
            controller.check_capacity()
        assert controller.stats().total_rejected == 1
        controller.release()
        controller.check_capacity()

    def test_stats(self):
        controller = ConcurrencyController(max_concurrent=2, max_queue=5)
        stats = controller.stats()
        assert stats.max_concurrent == 2
        assert stats.current_active == 0
        assert stats.current_waiting == 0
        assert stats.to_dict()["max_queue"] == 5


class TestAsyncAcquire:
    def test_acquire_and_release(self):
        controller = ConcurrencyController(max_concurrent=2)

        async def main():
            async with controller.acquire_async(timeout=1.0):
                assert controller.active_count == 1
            assert controller.active_count == 0

        asyncio.run(main())
        assert controller.stats().total_processed == 1

    def test_bounded_parallelism(self):
        """Never more than max_concurrent blocks run at once."""
        controller = ConcurrencyController(max_concurrent=2, max_queue=10)
        peak = 0
        running = 0

        async def work():
            nonlocal peak, running
            async with controller.acquire_async(timeout=5.0):
                running += 1
                peak = max(peak, running)
                await asyncio.sleep(0.02)
                running -= 1

        async def main():
            await asyncio.gather(*(work() for _ in range(6)))

        asyncio.run(main())
        assert peak == 2
        assert controller.stats().total_processed == 6

    def test_timeout(self):
        controller = ConcurrencyController(max_concurrent=1)

        async def main():
            assert controller.try_acquire()
            with pytest.raises(TimeoutError):
                async with controller.acquire_async(timeout=0.05):
                    pass
            controller.release()

        asyncio.run(main())
        assert controller.queue_depth == 0
        assert controller.stats().total_rejected == 1

    def test_queue_full(self):
        controller = ConcurrencyController(max_concurrent=1, max_queue=0)

        async def main():
            assert controller.try_acquire()
            with pytest.raises(QueueFullError):
                async with controller.acquire_async(timeout=1.0):
                    pass
            controller.release()

        asyncio.run(main())

    def test_free_slot_taken_without_queue(self):
        """max_queue bounds waiters only; a free slot is still granted."""
        controller = ConcurrencyController(max_concurrent=1, max_queue=0)

        async def main():
            async with controller.acquire_async(timeout=1.0):
                assert controller.active_count == 1

        asyncio.run(main())
        assert controller.stats().total_rejected == 0

    def test_cancelled_waiter_leaves_queue(self):
        """A waiter cancelled while queued does not leak a queue slot."""
        controller = ConcurrencyController(max_concurrent=1, max_queue=5)

        async def waiter():
            async with controller.acquire_async(timeout=5.0):
                pass

        async def main():
            assert controller.try_acquire()
            task = asyncio.ensure_future(waiter())
            await asyncio.sleep(0.03)
            assert controller.queue_depth == 1
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            controller.release()

        asyncio.run(main())
        assert controller.queue_depth == 0
        assert controller.active_count == 0

    def test_unlimited_queue_waits_instead_of_rejecting(self):
        """queue_limit=False queues past max_queue and gets the slot later."""
        controller = ConcurrencyController(max_concurrent=1, max_queue=0)

        async def holder():
            async with controller.acquire_async(timeout=1.0):
                await asyncio.sleep(0.05)

        async def follower():
            await asyncio.sleep(0.01)
            async with controller.acquire_async(timeout=2.0, queue_limit=False):
                assert controller.active_count == 1

        async def main():
            await asyncio.gather(holder(), follower(), follower())

        asyncio.run(main())
        assert controller.stats().total_rejected == 0
        assert controller.stats().total_processed == 3

    def test_release_on_error(self):
        controller = ConcurrencyController(max_concurrent=1)

        async def main():
            with pytest.raises(RuntimeError):
                async with controller.acquire_async(timeout=1.0):
                    raise RuntimeError("boom")

        asyncio.run(main())
        assert controller.active_count == 0


class TestGlobalController:
    def test_singleton(self):
        reset_controller()
        first = get_controller(max_concurrent=3)
        assert get_controller(max_concurrent=9) is first
        assert first.max_concurrent == 3
        reset_controller()
        assert get_controller() is not first
