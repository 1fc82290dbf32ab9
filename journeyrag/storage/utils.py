"""
Storage helpers: timestamps and store-call timeouts.
"""

import asyncio
from datetime import datetime, timezone
from typing import Awaitable, Optional, TypeVar

from journeyrag.errors import RetrievalTimeout

T = TypeVar("T")


def utcnow() -> datetime:
    """Naive UTC timestamp, the form in which the store persists datetimes."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Converts an aware datetime to naive UTC; naive values are assumed UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


async def with_timeout(
    awaitable: Awaitable[T],
    timeout: Optional[float],
    operation: str,
) -> T:
    """
    Await a store call, converting a timeout into RetrievalTimeout.

    Args:
        awaitable: Store coroutine
        timeout: Seconds allowed (None = unbounded)
        operation: Operation name for the error message
    """
    if timeout is None:
        return await awaitable
    if timeout <= 0:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise RetrievalTimeout(operation, 0.0)
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)
    except asyncio.TimeoutError:
        raise RetrievalTimeout(operation, timeout) from None


class Deadline:
    """Remaining-time budget shared by the store calls of one operation."""

    def __init__(self, timeout: Optional[float]):
        self.timeout = timeout
        loop = asyncio.get_running_loop()
        self._expires_at = None if timeout is None else loop.time() + timeout

    def remaining(self) -> Optional[float]:
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - asyncio.get_running_loop().time())
