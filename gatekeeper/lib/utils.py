"""Utility functions for Gatekeeper."""

import asyncio
import time
from typing import Any, Awaitable, TypeVar

T = TypeVar("T")


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    """Clamp a value into [low, high]."""
    return min(max(value, low), high)


def elapsed_ms(start: float) -> float:
    """Milliseconds since a time.perf_counter() reading."""
    return (time.perf_counter() - start) * 1000.0


async def bounded_wait(awaitable: Awaitable[T], timeout: float | None) -> T:
    """
    Await with an upper bound on the wait.

    The underlying task is cancelled when the bound expires, so an abandoned
    remote call does not keep running in the background.

    Raises:
        asyncio.TimeoutError: If the timeout expires
    """
    if timeout is None or timeout <= 0:
        return await awaitable
    return await asyncio.wait_for(awaitable, timeout=timeout)


def safe_get(obj: Any, *keys: str, default: Any = None) -> Any:
    """
    Safely get nested values from dicts or objects.

    Examples:
        >>> safe_get(payload, "attributeScores", "TOXICITY", "summaryScore", "value")
        >>> safe_get(response, "choices", default=[])
    """
    for key in keys:
        if obj is None:
            return default
        if isinstance(obj, dict):
            obj = obj.get(key)
        else:
            obj = getattr(obj, key, None)
    return obj if obj is not None else default


def truncate(text: str, limit: int = 80) -> str:
    """Shorten text for log lines."""
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."
