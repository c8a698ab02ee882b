"""
PollingQuery - a Query refreshed on a fixed interval.
"""

import asyncio
from dataclasses import dataclass
from typing import TypeVar

from loguru import logger

from apiflow.bindings.base import BindingOptions
from apiflow.bindings.query import Query
from apiflow.services.client import ApiClient, Sleeper

T = TypeVar("T")


@dataclass
class PollingOptions(BindingOptions):
    interval: float = 5.0  # seconds
    enabled: bool = True


class PollingQuery(Query[T]):
    """
    Fetches immediately on activation, then once per ``interval`` while
    ``enabled``. The timer is an explicit task owned by the binding:
    disabling, teardown and reconfiguration cancel it. A tick never aborts
    a fetch started by an earlier tick.

    Usage:
        poll = PollingQuery(client, "/api/status", PollingOptions(interval=10))
        await poll.activate()
        await poll.update(enabled=False)
    """

    def __init__(
        self,
        client: ApiClient,
        endpoint: str,
        options: PollingOptions | None = None,
        *,
        sleep: Sleeper | None = None,
    ):
        options = options or PollingOptions()
        super().__init__(client, endpoint, options, sleep=sleep)
        self.interval = options.interval
        self.enabled = options.enabled
        self._timer: asyncio.Task[None] | None = None

    @property
    def is_polling(self) -> bool:
        return self._timer is not None and not self._timer.done()

    async def _on_activate(self) -> None:
        if self.enabled:
            self._arm()
            await self.refetch()

    async def update(
        self,
        *,
        endpoint: str | None = None,
        interval: float | None = None,
        enabled: bool | None = None,
    ) -> None:
        """Change endpoint, interval or enabled; the timer is torn down and rearmed."""
        changed = (
            (endpoint is not None and endpoint != self.endpoint)
            or (interval is not None and interval != self.interval)
            or (enabled is not None and enabled != self.enabled)
        )
        if not changed:
            return

        self._disarm()
        if endpoint is not None:
            self.endpoint = endpoint
        if interval is not None:
            self.interval = interval
        if enabled is not None:
            self.enabled = enabled

        if self.enabled and self._alive:
            self._arm()
            await self.refetch()

    def _arm(self) -> None:
        self._disarm()
        self._timer = asyncio.create_task(self._run_timer(self.interval))
        logger.debug(f"Polling {self.endpoint} every {self.interval}s")

    def _disarm(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
            logger.debug(f"Polling stopped for {self.endpoint}")

    def _release_timers(self) -> None:
        self._disarm()

    async def _run_timer(self, interval: float) -> None:
        while True:
            await self._sleep(interval)
            if not self._alive or not self.enabled:
                return
            self._spawn(self.refetch())
