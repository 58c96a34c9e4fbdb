"""Async utilities for running blocking collaborator calls concurrently."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, Sequence, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a synchronous function in a thread pool without blocking the event loop.

    Used to wrap the blocking local-tree, remote and history calls made by
    the execution driver.

    Args:
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)
    """
    return await asyncio.to_thread(func, *args, **kwargs)


@dataclass
class BoundedOutcome(Generic[T]):
    """What happened to a batch of jobs run by ``gather_bounded``.

    Attributes:
        results: Return values of the jobs that succeeded, in completion order.
        errors: Exceptions raised by the jobs that failed, in completion order.
        stopped: True if the error threshold was reached.
        not_started: Number of jobs dropped after the threshold was reached.
    """

    results: list[T] = field(default_factory=list)
    errors: list[Exception] = field(default_factory=list)
    stopped: bool = False
    not_started: int = 0


async def gather_bounded(
    jobs: Sequence[Callable[[], Awaitable[T]]],
    max_parallel: int,
    max_errors: int | None = None,
) -> BoundedOutcome[T]:
    """Run *jobs* with at most *max_parallel* in flight.

    A failing job does not cancel the others.  Once *max_errors* failures
    have been captured, jobs that have not started yet are dropped while
    jobs already in flight run to completion.

    Args:
        jobs: Zero-argument coroutine functions.
        max_parallel: Concurrency bound (at least 1).
        max_errors: Failure threshold, or ``None`` for no threshold.

    Returns:
        A ``BoundedOutcome`` once every job has finished or been dropped.
    """
    if max_parallel < 1:
        raise ValueError(f"max_parallel must be >= 1, got {max_parallel}")

    semaphore = asyncio.Semaphore(max_parallel)
    outcome: BoundedOutcome[T] = BoundedOutcome()

    async def _worker(job: Callable[[], Awaitable[T]]) -> None:
        async with semaphore:
            if outcome.stopped:
                outcome.not_started += 1
                return
            try:
                outcome.results.append(await job())
            except Exception as exc:
                outcome.errors.append(exc)
                if max_errors is not None and len(outcome.errors) >= max_errors:
                    if not outcome.stopped:
                        logger.warning(
                            "Reached %d errors, not starting remaining jobs",
                            len(outcome.errors),
                        )
                    outcome.stopped = True

    await asyncio.gather(*(_worker(job) for job in jobs))
    return outcome
