"""Batching and settle-all helpers for the migration loop."""

import asyncio
from typing import Any, Awaitable, Iterable, Iterator, List, NamedTuple, Optional, Sequence, TypeVar

T = TypeVar("T")


class Settled(NamedTuple):
    """Outcome of one awaitable: a value, or the exception it raised."""
    value: Any = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def settle_all(awaitables: Iterable[Awaitable[Any]]) -> List[Settled]:
    """
    Run awaitables concurrently and wait for every one of them.

    Unlike a plain gather, one failure never cancels or hides the others.
    Outcomes are returned in input order. Exceptions that are not
    ``Exception`` subclasses (cancellation, KeyboardInterrupt) propagate.

    Args:
        awaitables: Coroutines or futures to run together

    Returns:
        One Settled per awaitable
    """
    outcomes = await asyncio.gather(*awaitables, return_exceptions=True)

    settled = []
    for outcome in outcomes:
        if isinstance(outcome, Exception):
            settled.append(Settled(error=outcome))
        elif isinstance(outcome, BaseException):
            raise outcome
        else:
            settled.append(Settled(value=outcome))
    return settled


def batched(items: Sequence[T], size: int) -> Iterator[Sequence[T]]:
    """
    Yield consecutive slices of items of at most size elements.

    Batch i covers items[i*size : min((i+1)*size, len(items))].
    """
    if size < 1:
        raise ValueError(f"batch size must be at least 1, got {size}")
    for start in range(0, len(items), size):
        yield items[start:start + size]
