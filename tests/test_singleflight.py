"""Tests for per-content single-flight generation."""
import asyncio

import pytest

from tts_cache.tts.singleflight import SingleFlight


def test_same_token_runs_once():
    flights = SingleFlight()
    calls = []

    async def work():
        calls.append(1)
        await asyncio.sleep(0.02)
        return "audio"

    async def main():
        return await asyncio.gather(
            flights.run("42", "aaaa", work),
            flights.run("42", "aaaa", work),
        )

    first, second = asyncio.run(main())

    assert calls == [1]
    assert first == ("audio", False)
    assert second == ("audio", True)
    assert flights.stats() == {"in_flight": 0, "shared_total": 1}


def test_different_token_waits_then_runs():
    """An edited text runs after the running generation, never beside it."""
    flights = SingleFlight()
    order = []

    def work(name):
        async def _run():
            order.append(f"start-{name}")
            await asyncio.sleep(0.02)
            order.append(f"end-{name}")
            return name
        return _run

    async def main():
        first = asyncio.ensure_future(flights.run("42", "old", work("old")))
        await asyncio.sleep(0)
        second = asyncio.ensure_future(flights.run("42", "new", work("new")))
        return await first, await second

    first, second = asyncio.run(main())

    assert first == ("old", False)
    assert second == ("new", False)
    assert order == ["start-old", "end-old", "start-new", "end-new"]


def test_different_keys_run_in_parallel():
    flights = SingleFlight()
    running = 0
    peak = 0

    async def work():
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(0.02)
        running -= 1

    async def main():
        await asyncio.gather(flights.run("1", "t", work), flights.run("2", "t", work))

    asyncio.run(main())
    assert peak == 2


def test_exception_shared_with_joiners():
    flights = SingleFlight()

    async def work():
        await asyncio.sleep(0.01)
        raise RuntimeError("provider down")

    async def main():
        return await asyncio.gather(
            flights.run("42", "t", work),
            flights.run("42", "t", work),
            return_exceptions=True,
        )

    results = asyncio.run(main())

    assert all(isinstance(r, RuntimeError) for r in results)
    assert not flights.in_flight("42")


def test_key_released_after_completion():
    flights = SingleFlight()

    async def work():
        return 1

    async def main():
        await flights.run("42", "t", work)
        return flights.in_flight("42")

    assert asyncio.run(main()) is False


def test_cancelled_caller_does_not_cancel_work():
    flights = SingleFlight()
    finished = []

    async def work():
        await asyncio.sleep(0.03)
        finished.append(True)
        return "done"

    async def main():
        leaver = asyncio.ensure_future(flights.run("42", "t", work))
        await asyncio.sleep(0.005)
        stayer = asyncio.ensure_future(flights.run("42", "t", work))
        leaver.cancel()
        with pytest.raises(asyncio.CancelledError):
            await leaver
        return await stayer

    assert asyncio.run(main()) == ("done", True)
    assert finished == [True]
