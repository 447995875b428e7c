import asyncio

import pytest

from app.core.async_utils import SingleFlight


@pytest.mark.asyncio
async def test_concurrent_calls_share_one_computation():
    flight: SingleFlight[int] = SingleFlight()
    started = 0
    release = asyncio.Event()

    async def compute() -> int:
        nonlocal started
        started += 1
        await release.wait()
        return 42

    waiters = [asyncio.create_task(flight.run("k", compute)) for _ in range(3)]
    await asyncio.sleep(0)
    assert flight.in_flight() == 1

    release.set()
    assert await asyncio.gather(*waiters) == [42, 42, 42]
    assert started == 1
    assert flight.in_flight() == 0


@pytest.mark.asyncio
async def test_different_keys_run_independently():
    flight: SingleFlight[str] = SingleFlight()

    async def compute(value: str) -> str:
        await asyncio.sleep(0)
        return value

    results = await asyncio.gather(
        flight.run("a", lambda: compute("a")), flight.run("b", lambda: compute("b"))
    )

    assert results == ["a", "b"]


@pytest.mark.asyncio
async def test_errors_reach_every_waiter_and_are_not_cached():
    flight: SingleFlight[int] = SingleFlight()
    attempts = 0

    async def failing() -> int:
        nonlocal attempts
        attempts += 1
        await asyncio.sleep(0)
        raise RuntimeError("boom")

    results = await asyncio.gather(
        flight.run("k", failing), flight.run("k", failing), return_exceptions=True
    )
    assert [type(r) for r in results] == [RuntimeError, RuntimeError]
    assert attempts == 1

    with pytest.raises(RuntimeError):
        await flight.run("k", failing)
    assert attempts == 2


@pytest.mark.asyncio
async def test_cancelling_one_waiter_keeps_the_computation_for_others():
    flight: SingleFlight[int] = SingleFlight()
    release = asyncio.Event()

    async def compute() -> int:
        await release.wait()
        return 7

    first = asyncio.create_task(flight.run("k", compute))
    second = asyncio.create_task(flight.run("k", compute))
    await asyncio.sleep(0)

    first.cancel()
    await asyncio.sleep(0)
    release.set()

    assert await second == 7
    with pytest.raises(asyncio.CancelledError):
        await first


@pytest.mark.asyncio
async def test_last_waiter_cancelling_cancels_the_computation():
    flight: SingleFlight[int] = SingleFlight()
    finished = False

    async def compute() -> int:
        nonlocal finished
        await asyncio.sleep(10)
        finished = True
        return 1

    waiter = asyncio.create_task(flight.run("k", compute))
    await asyncio.sleep(0)
    waiter.cancel()

    with pytest.raises(asyncio.CancelledError):
        await waiter
    assert flight.in_flight() == 0
    assert finished is False
