"""
PendingRequestRegistry - one shared task per identical in-flight request.
"""

import asyncio
from dataclasses import asdict, dataclass
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

from apiflow.services.errors import RequestAbortedError

T = TypeVar("T")


@dataclass
class RegistryStats:
    started: int = 0  # tasks actually created
    joined: int = 0  # callers that awaited an existing task
    in_flight: int = 0

    @property
    def join_rate(self) -> float:
        calls = self.started + self.joined
        return self.joined / calls if calls else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {**asdict(self), "join_rate": round(self.join_rate, 4)}


class PendingRequestRegistry:
    """
    Map of ``METHOD:endpoint`` keys to the task currently serving them.

    A second caller for a key that is already pending awaits the same task
    instead of starting its own. The key is dropped when the task settles,
    on success, failure or cancellation alike, so the next call after that
    goes to the network again.

    Usage:
        registry = PendingRequestRegistry()
        key = registry.make_key("GET", "/api/items")
        result = await registry.dedupe(key, lambda: execute(...))
    """

    def __init__(self, debug: bool = False):
        self._pending: dict[str, asyncio.Task[Any]] = {}
        self._lock = asyncio.Lock()
        self._debug = debug
        self._stats = RegistryStats()

    @staticmethod
    def make_key(method: str, endpoint: str) -> str:
        return f"{method.upper()}:{endpoint}"

    async def dedupe(self, key: str, request_fn: Callable[[], Awaitable[T]]) -> T:
        """
        Run ``request_fn`` under ``key``, or join the run already pending.

        Every caller receives the same value (or the same exception).
        Cancelling one caller leaves the shared task running for the rest.
        If the shared task itself is cancelled (``cancel_all``), waiters get
        ``RequestAbortedError``.
        """
        async with self._lock:
            task = self._pending.get(key)
            if task is None:
                task = asyncio.create_task(self._run(key, request_fn))
                self._pending[key] = task
                self._stats.started += 1
                self._log(f"start {key}")
            else:
                self._stats.joined += 1
                self._log(f"join {key}")

        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                raise RequestAbortedError(key) from None
            raise

    async def _run(self, key: str, request_fn: Callable[[], Awaitable[T]]) -> T:
        try:
            return await request_fn()
        finally:
            # After cancel_all() the key may already belong to a newer task
            if self._pending.get(key) is asyncio.current_task():
                del self._pending[key]
            self._log(f"settled {key}")

    def in_flight(self, key: str) -> bool:
        return key in self._pending

    async def cancel_all(self) -> int:
        """Cancel every pending task; returns how many were cancelled."""
        async with self._lock:
            tasks = list(self._pending.values())
            self._pending.clear()

        for task in tasks:
            task.cancel()
        if tasks:
            logger.debug(f"Cancelled {len(tasks)} pending requests")
        return len(tasks)

    def get_in_flight_count(self) -> int:
        return len(self._pending)

    def get_in_flight_keys(self) -> list[str]:
        return list(self._pending)

    def get_stats(self) -> RegistryStats:
        self._stats.in_flight = len(self._pending)
        return self._stats

    def _log(self, message: str) -> None:
        if self._debug:
            logger.debug(f"[PendingRequestRegistry] {message}")
