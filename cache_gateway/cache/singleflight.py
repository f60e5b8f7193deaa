"""Single-flight coordination for concurrent cache misses.

When several requests miss the cache for the same key at the same time,
only the first one runs the fetch; the others await its outcome.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Tuple

import structlog

logger = structlog.get_logger(__name__)


class SingleFlight:
    """
    Coalesce concurrent calls sharing a key into one in-flight task.

    The shared work runs as its own task, so cancelling one waiter never
    cancels the fetch the other waiters depend on. The key is released as
    soon as the task finishes; the next miss starts a new flight.

    Example:
        >>> flights = SingleFlight()
        >>> payload, shared = await flights.do("character", fetch_characters)
    """

    def __init__(self) -> None:
        self._flights: Dict[str, "asyncio.Task[Any]"] = {}

    def in_flight(self, key: str) -> bool:
        """Return True if a call for key is currently running."""
        return key in self._flights

    async def do(self, key: str, func: Callable[[], Awaitable[Any]]) -> Tuple[Any, bool]:
        """
        Run func for key, or join the call already running for key.

        Args:
            key: Coalescing key
            func: Zero-argument coroutine function doing the work

        Returns:
            Tuple of (result, shared) where shared is True when this caller
            joined a flight started by another caller

        Raises:
            Whatever func raises, delivered to every waiter
        """
        task = self._flights.get(key)
        shared = task is not None

        if task is None:
            task = asyncio.ensure_future(func())
            self._flights[key] = task
            task.add_done_callback(lambda t: self._release(key, t))
            logger.debug("singleflight_started", key=key)
        else:
            logger.debug("singleflight_joined", key=key)

        result = await asyncio.shield(task)
        return result, shared

    def _release(self, key: str, task: "asyncio.Task[Any]") -> None:
        if self._flights.get(key) is task:
            del self._flights[key]
