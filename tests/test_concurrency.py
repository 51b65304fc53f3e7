"""
Tests for the first-success helper
"""

import asyncio

import pytest

from aggregator.core.concurrency import AllFailedError, first_success


async def _value(value, delay=0.0):
    await asyncio.sleep(delay)
    return value


async def _fail(message, delay=0.0):
    await asyncio.sleep(delay)
    raise ValueError(message)


@pytest.mark.asyncio
async def test_returns_fastest_success():
    result = await first_success([
        lambda: _value("slow", 0.2),
        lambda: _value("fast", 0.01),
    ])
    assert result == "fast"


@pytest.mark.asyncio
async def test_waits_past_early_failures():
    result = await first_success([
        lambda: _fail("boom"),
        lambda: _value("late", 0.05),
    ])
    assert result == "late"


@pytest.mark.asyncio
async def test_all_failures_raised_together_in_order():
    with pytest.raises(AllFailedError) as exc_info:
        await first_success([
            lambda: _fail("first", 0.03),
            lambda: _fail("second"),
        ])

    messages = [str(e) for e in exc_info.value.errors]
    assert messages == ["first", "second"]


@pytest.mark.asyncio
async def test_empty_factories_fail():
    with pytest.raises(AllFailedError) as exc_info:
        await first_success([])
    assert exc_info.value.errors == []


@pytest.mark.asyncio
async def test_losers_are_cancelled():
    cancelled = asyncio.Event()

    async def straggler():
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled.set()
            raise

    result = await first_success([straggler, lambda: _value("winner")])
    await asyncio.sleep(0)

    assert result == "winner"
    assert cancelled.is_set()


@pytest.mark.asyncio
async def test_factory_error_cancels_already_started():
    cancelled = asyncio.Event()

    async def long_running():
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled.set()
            raise

    def broken():
        raise RuntimeError("cannot build")

    with pytest.raises(RuntimeError):
        await first_success([long_running, broken])

    await asyncio.wait_for(cancelled.wait(), timeout=1)
