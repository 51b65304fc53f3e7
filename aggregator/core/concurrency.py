"""
Concurrency Helpers

"First success wins" over a set of concurrently launched operations.
"""

import asyncio
from typing import Awaitable, Callable, List, Sequence, TypeVar

T = TypeVar("T")


class AllFailedError(Exception):
    """Raised when every raced operation failed."""

    def __init__(self, errors: List[BaseException]):
        self.errors = errors
        super().__init__(f"All {len(errors)} operations failed")


async def first_success(factories: Sequence[Callable[[], Awaitable[T]]]) -> T:
    """
    Launch every operation at once and return the first successful result.

    Operations still in flight when a winner arrives are abandoned (their
    local tasks are cancelled). If every operation raises, the failures are
    raised together as AllFailedError, in the order the factories were given.

    Args:
        factories: Zero-argument callables returning awaitables

    Returns:
        Result of the first operation to complete without raising
    """
    if not factories:
        raise AllFailedError([])

    tasks: List[asyncio.Future] = []
    errors: List[BaseException] = [None] * len(factories)  # type: ignore[list-item]

    try:
        for factory in factories:
            tasks.append(asyncio.ensure_future(factory()))
        position = {task: i for i, task in enumerate(tasks)}
        pending = set(tasks)
        while pending:
            done, pending = await asyncio.wait(
                pending, return_when=asyncio.FIRST_COMPLETED
            )

            winners = []
            for task in done:
                exc = task.exception()
                if exc is None:
                    winners.append(task)
                else:
                    errors[position[task]] = exc

            if winners:
                # Several may land in the same wakeup; none is preferred.
                return winners[0].result()

        raise AllFailedError(errors)
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
