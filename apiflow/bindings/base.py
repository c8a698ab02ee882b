"""
Binding lifecycle shared by every adapter.

A binding wraps an ``ApiClient`` call with state (data, error, loading)
for UI code. It is alive from construction until ``teardown()``; every
state write is dropped once it is torn down, so a response that lands
after teardown is ignored. Teardown never aborts a network call, it only
stops timers the binding owns.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Coroutine

from loguru import logger

from apiflow.services.client import ApiClient, Sleeper
from apiflow.services.types import (
    ApiError,
    ApiResult,
    CacheConfig,
    ErrorCode,
    RequestConfig,
    ResponseMetadata,
    RetryConfig,
)

Listener = Callable[["Binding"], None]


@dataclass
class BindingOptions:
    """Options common to all bindings."""

    cache: CacheConfig | None = None
    retry: RetryConfig | None = None
    auto_fetch: bool = True
    on_success: Callable[[Any], None] | None = None
    on_error: Callable[[ApiError], None] | None = None


class Binding:
    """
    Base class for stateful adapters over ``ApiClient``.

    Subclasses implement ``_on_activate`` for their initial load and
    ``_release_timers`` for any timer they own.
    """

    def __init__(
        self,
        client: ApiClient,
        endpoint: str,
        options: BindingOptions | None = None,
        *,
        sleep: Sleeper | None = None,
    ):
        self.client = client
        self.endpoint = endpoint
        self.options = options or BindingOptions()
        self.loading = False
        self.error: ApiError | None = None

        self._alive = True
        self._sleep = sleep or asyncio.sleep
        self._tasks: set[asyncio.Task[Any]] = set()
        self._listeners: list[Listener] = []

    @property
    def is_alive(self) -> bool:
        return self._alive

    async def activate(self) -> None:
        """Mount the binding and run its initial load."""
        self._alive = True
        await self._on_activate()

    async def _on_activate(self) -> None:
        pass

    def teardown(self) -> None:
        """Unmount: stop timers and ignore every later state write."""
        if not self._alive:
            return
        self._alive = False
        self._release_timers()
        logger.debug(f"{type(self).__name__} torn down: {self.endpoint}")

    def _release_timers(self) -> None:
        pass

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener(binding)`` after every state change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def wait_idle(self) -> None:
        """Wait for fetches started by timers to settle."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _set_state(self, **changes: Any) -> bool:
        """Apply ``changes`` if the binding is still alive."""
        if not self._alive:
            return False

        for name, value in changes.items():
            setattr(self, name, value)

        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception(f"State listener failed for {self.endpoint}")
        return True

    def _request_config(self, **changes: Any) -> RequestConfig:
        config = RequestConfig(cache=self.options.cache)
        if self.options.retry is not None:
            config.retry = self.options.retry
        for name, value in changes.items():
            setattr(config, name, value)
        return config

    async def _get(self, endpoint: str) -> ApiResult[Any]:
        try:
            return await self.client.get(endpoint, self._request_config())
        except Exception as e:
            logger.exception(f"Error fetching {endpoint}")
            return ApiResult.fail(
                ApiError.from_exception(e, ErrorCode.NETWORK_ERROR),
                ResponseMetadata(request_id="unsent"),
            )

    def _handle_success(self, data: Any) -> None:
        if self._alive and self.options.on_success is not None:
            try:
                self.options.on_success(data)
            except Exception:
                logger.exception(f"on_success callback failed for {self.endpoint}")

    def _handle_error(self, error: ApiError) -> None:
        if self._alive and self.options.on_error is not None:
            try:
                self.options.on_error(error)
            except Exception:
                logger.exception(f"on_error callback failed for {self.endpoint}")

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task
