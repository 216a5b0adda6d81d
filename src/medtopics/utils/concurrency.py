"""Bounded fan-out for I/O-bound pipeline steps.

Workers run concurrently under a semaphore and never raise: each item
yields an ``Outcome`` holding either a value or the captured exception.
Mutations happen afterwards, one outcome at a time, in the caller.
"""

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from medtopics.logging import get_logger

__all__ = [
    "FanOut",
    "Outcome",
    "fan_out",
]

logger = get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class Outcome(Generic[T, R]):
    """Result of running the worker on one item."""

    item: T
    value: R | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class FanOut(Generic[T, R]):
    """Outcomes of a fan-out, in input order.

    When ``cancelled`` is True the run was interrupted and ``outcomes``
    holds only the items that finished before the interruption. The
    caller must persist them and then re-raise ``CancelledError``.
    """

    outcomes: list[Outcome[T, R]] = field(default_factory=list)
    cancelled: bool = False

    def __iter__(self):
        return iter(self.outcomes)

    def __len__(self) -> int:
        return len(self.outcomes)


async def fan_out(
    items: Iterable[T],
    worker: Callable[[T], Awaitable[R]],
    *,
    limit: int,
) -> FanOut[T, R]:
    """Run ``worker`` over ``items`` with at most ``limit`` in flight.

    Args:
        items: Inputs to process
        worker: Async callable producing a value per input, free of store mutations
        limit: Concurrency cap

    Returns:
        FanOut with one Outcome per completed item
    """
    if limit < 1:
        raise ValueError("limit must be at least 1")

    semaphore = asyncio.Semaphore(limit)

    async def run(item: T) -> Outcome[T, R]:
        async with semaphore:
            try:
                value = await worker(item)
            except Exception as e:
                return Outcome(item, error=e)
            return Outcome(item, value=value)

    tasks = [asyncio.create_task(run(item)) for item in items]
    if not tasks:
        return FanOut()

    try:
        outcomes = await asyncio.gather(*tasks)
    except asyncio.CancelledError:
        for task in tasks:
            task.cancel()
        await asyncio.wait(tasks)
        completed = [task.result() for task in tasks if not task.cancelled()]
        logger.warning(
            "fan_out_cancelled",
            completed=len(completed),
            abandoned=len(tasks) - len(completed),
        )
        return FanOut(completed, cancelled=True)

    return FanOut(list(outcomes))
