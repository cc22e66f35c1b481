"""Tests for src/cancellation.py."""

import asyncio
import time

import pytest

from src.cancellation import CancellationToken, OperationCancelled


async def test_run_returns_result_when_not_cancelled():
    token = CancellationToken()

    async def work():
        return 42

    assert await token.run(work()) == 42


async def test_run_raises_immediately_when_already_cancelled():
    token = CancellationToken()
    token.cancel()
    started = False

    async def work():
        nonlocal started
        started = True
        return 1

    with pytest.raises(OperationCancelled):
        await token.run(work())
    assert started is False


async def test_cancel_interrupts_in_flight_call():
    token = CancellationToken()
    cancelled_inside = asyncio.Event()

    async def slow():
        try:
            await asyncio.sleep(60)
        except asyncio.CancelledError:
            cancelled_inside.set()
            raise

    async def cancel_soon():
        await asyncio.sleep(0.01)
        token.cancel()

    canceller = asyncio.create_task(cancel_soon())
    with pytest.raises(OperationCancelled):
        await token.run(slow())
    await canceller
    assert cancelled_inside.is_set()


async def test_run_propagates_call_exceptions():
    token = CancellationToken()

    async def boom():
        raise ValueError("bad")

    with pytest.raises(ValueError, match="bad"):
        await token.run(boom())


async def test_sleep_wakes_early_on_cancel():
    token = CancellationToken()

    async def cancel_soon():
        await asyncio.sleep(0.01)
        token.cancel()

    canceller = asyncio.create_task(cancel_soon())
    start = time.monotonic()
    await token.sleep(30)
    await canceller
    assert time.monotonic() - start < 5
    assert token.cancelled


async def test_sleep_zero_returns_immediately():
    token = CancellationToken()
    await token.sleep(0)
    assert not token.cancelled
