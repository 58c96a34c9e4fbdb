"""
Tests for async_utils module.

Covers run_sync and gather_bounded.
"""

import asyncio

import pytest

from vault_sync.core.async_utils import gather_bounded, run_sync


def _sync_add(a: int, b: int) -> int:
    """Simple sync function for testing."""
    return a + b


async def test_run_sync_calls_function():
    """run_sync delegates to asyncio.to_thread with correct args."""
    result = await run_sync(_sync_add, 3, 4)
    assert result == 7


async def test_run_sync_passes_kwargs():
    """run_sync forwards keyword arguments."""

    def _kw_func(*, name: str) -> str:
        return f"hello {name}"

    result = await run_sync(_kw_func, name="world")
    assert result == "hello world"


async def test_run_sync_propagates_exceptions():
    def _boom():
        raise OSError("disk on fire")

    with pytest.raises(OSError, match="disk on fire"):
        await run_sync(_boom)


def _job(value, *, fail: bool = False, delay: float = 0.0, log=None):
    async def _run():
        if log is not None:
            log.append(value)
        await asyncio.sleep(delay)
        if fail:
            raise ValueError(f"job {value} failed")
        return value

    return _run


async def test_gather_bounded_collects_results():
    outcome = await gather_bounded([_job(i) for i in range(5)], max_parallel=2)
    assert sorted(outcome.results) == [0, 1, 2, 3, 4]
    assert outcome.errors == []
    assert outcome.stopped is False


async def test_gather_bounded_respects_limit():
    """Never more than max_parallel jobs in flight."""
    in_flight = 0
    peak = 0

    def _tracked():
        async def _run():
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1

        return _run

    await gather_bounded([_tracked() for _ in range(10)], max_parallel=3)
    assert peak == 3


async def test_gather_bounded_failure_does_not_cancel_others():
    jobs = [_job(0), _job(1, fail=True), _job(2)]
    outcome = await gather_bounded(jobs, max_parallel=3)
    assert sorted(outcome.results) == [0, 2]
    assert len(outcome.errors) == 1
    assert outcome.stopped is False


async def test_gather_bounded_stops_after_max_errors():
    log: list[int] = []
    jobs = [_job(i, fail=True, log=log) for i in range(5)]
    outcome = await gather_bounded(jobs, max_parallel=1, max_errors=2)
    assert outcome.stopped is True
    assert len(outcome.errors) == 2
    assert outcome.not_started == 3
    assert log == [0, 1]


async def test_gather_bounded_in_flight_jobs_finish():
    """Jobs already running complete even after the threshold trips."""
    jobs = [
        _job(0, fail=True),
        _job(1, fail=True),
        _job(2, delay=0.05),
    ]
    outcome = await gather_bounded(jobs, max_parallel=3, max_errors=2)
    assert outcome.stopped is True
    assert outcome.results == [2]


async def test_gather_bounded_empty():
    outcome = await gather_bounded([], max_parallel=1)
    assert outcome.results == []


async def test_gather_bounded_invalid_limit():
    with pytest.raises(ValueError):
        await gather_bounded([], max_parallel=0)
