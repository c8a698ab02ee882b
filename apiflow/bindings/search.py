"""
SearchQuery - debounced search over ``endpoint?q=<query>``.
"""

import asyncio
from dataclasses import dataclass
from typing import Generic, TypeVar

from loguru import logger

from apiflow.bindings.base import Binding, BindingOptions
from apiflow.services.client import ApiClient, Sleeper
from apiflow.utils import with_query

T = TypeVar("T")


@dataclass
class SearchOptions(BindingOptions):
    debounce: float = 0.3  # seconds of quiet before searching
    min_length: int = 2


class SearchQuery(Binding, Generic[T]):
    """
    Only the last ``search()`` call inside the debounce window hits the
    network. Queries shorter than ``min_length`` clear results at once.

    Cancelling here only cancels the pending debounce timer. A request that
    already started runs to completion, but its results are applied only
    if its query is still the current one.
    """

    def __init__(
        self,
        client: ApiClient,
        endpoint: str,
        options: SearchOptions | None = None,
        *,
        sleep: Sleeper | None = None,
    ):
        options = options or SearchOptions()
        super().__init__(client, endpoint, options, sleep=sleep)
        self.query = ""
        self.results: T | None = None
        self._timer: asyncio.Task[None] | None = None

    @property
    def pending(self) -> bool:
        """True while a debounce timer is waiting to fire."""
        return self._timer is not None and not self._timer.done()

    def search(self, query: str) -> None:
        """Set the query and (re)start the debounce timer."""
        if not self._alive:
            return

        self._set_state(query=query)
        self._cancel_timer()

        if len(query) < self.options.min_length:
            self._set_state(results=None, loading=False)
            return

        self._timer = asyncio.create_task(self._debounced(query))

    def clear(self) -> None:
        """Reset query, results and error."""
        self._cancel_timer()
        self._set_state(query="", results=None, error=None, loading=False)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _release_timers(self) -> None:
        self._cancel_timer()

    async def _debounced(self, query: str) -> None:
        await self._sleep(self.options.debounce)
        # From here on the search is a tracked fetch, out of reach of _cancel_timer
        self._timer = None
        self._spawn(self._perform(query))

    async def _perform(self, query: str) -> None:
        self._set_state(loading=True, error=None)
        result = await self._get(with_query(self.endpoint, {"q": query}))

        if not self._alive or query != self.query:
            return

        if result.success:
            self._set_state(results=result.data, loading=False)
            self._handle_success(result.data)
        else:
            self._set_state(error=result.error, loading=False)
            self._handle_error(result.error)
            logger.error(
                f"Search failed for '{query}': {result.error.code} {result.error.message}"
            )
