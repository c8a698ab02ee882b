"""
Page-based and cumulative (infinite scroll) listing bindings.

Both issue ``endpoint?page=N&pageSize=M`` and expect a body shaped like
``PaginatedPage``: ``{"items": [...], "total": 42, "hasMore": true}``.
"""

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from loguru import logger
from pydantic import ValidationError

from apiflow.bindings.base import Binding, BindingOptions
from apiflow.services.client import ApiClient, Sleeper
from apiflow.services.types import ApiError, ApiResult, ErrorCode, PaginatedPage
from apiflow.utils import with_query

T = TypeVar("T")


@dataclass
class PaginationOptions(BindingOptions):
    page_size: int = 20
    initial_page: int = 1


class _PagedBinding(Binding):
    def __init__(
        self,
        client: ApiClient,
        endpoint: str,
        options: PaginationOptions | None = None,
        *,
        sleep: Sleeper | None = None,
    ):
        options = options or PaginationOptions()
        super().__init__(client, endpoint, options, sleep=sleep)
        self.page_size = max(1, options.page_size)

    def _page_url(self, page: int) -> str:
        return with_query(self.endpoint, {"page": page, "pageSize": self.page_size})

    def _read_page(self, result: ApiResult[Any]) -> PaginatedPage | None:
        """Validate a page body; on failure record the error and return None."""
        if result.success:
            try:
                return PaginatedPage.model_validate(result.data)
            except ValidationError as e:
                error = ApiError(
                    code=ErrorCode.PARSE_ERROR.value,
                    message=f"Invalid page payload from {self.endpoint}",
                    details={"errors": e.errors(include_url=False)},
                )
        else:
            error = result.error

        self._set_state(error=error, loading=False)
        self._handle_error(error)
        logger.error(f"Failed to load page of {self.endpoint}: {error.code} {error.message}")
        return None


class PaginatedQuery(_PagedBinding, Generic[T]):
    """
    Shows one page at a time.

    ``has_more`` is derived from ``total``; when the server omits ``total``
    its ``hasMore`` flag is used instead.
    """

    def __init__(
        self,
        client: ApiClient,
        endpoint: str,
        options: PaginationOptions | None = None,
    ):
        super().__init__(client, endpoint, options)
        self.page = max(1, self.options.initial_page)
        self.items: list[T] = []
        self.total: int | None = None
        self._server_has_more = False

    @property
    def has_more(self) -> bool:
        if self.total is None:
            return self._server_has_more
        return self.page * self.page_size < self.total

    async def _on_activate(self) -> None:
        if self.options.auto_fetch:
            await self.refetch()

    async def refetch(self) -> None:
        """Load the current page."""
        if not self.endpoint:
            return

        page = self.page
        self._set_state(loading=True, error=None)
        result = await self._get(self._page_url(page))

        # Dropped if torn down, or if another page was selected meanwhile
        if not self._alive or page != self.page:
            return

        parsed = self._read_page(result)
        if parsed is None:
            return

        self._set_state(
            items=list(parsed.items),
            total=parsed.total,
            _server_has_more=parsed.has_more,
            loading=False,
        )
        self._handle_success(parsed)

    async def set_page(self, page: int) -> None:
        """Jump to ``page`` (clamped to 1) and load it."""
        if self._set_state(page=max(1, page)):
            await self.refetch()

    async def next_page(self) -> None:
        if self.has_more:
            await self.set_page(self.page + 1)

    async def prev_page(self) -> None:
        if self.page > 1:
            await self.set_page(self.page - 1)


class InfiniteQuery(_PagedBinding, Generic[T]):
    """
    Accumulates successive pages into ``items``.

    Continuation follows the server's ``hasMore`` only. A load already in
    flight blocks ``load_more()``; deduplication alone cannot do this since
    consecutive pages have different URLs.
    """

    def __init__(
        self,
        client: ApiClient,
        endpoint: str,
        options: PaginationOptions | None = None,
    ):
        super().__init__(client, endpoint, options)
        self.items: list[T] = []
        self.has_more = True
        self._next_page = 1
        self._in_flight = False
        self._generation = 0

    async def _on_activate(self) -> None:
        if self.options.auto_fetch:
            await self.load_more()

    async def load_more(self) -> None:
        """Fetch and append the next page."""
        if not self.endpoint or self._in_flight or not self.has_more:
            return

        self._in_flight = True
        generation = self._generation
        page = self._next_page
        self._set_state(loading=True, error=None)

        try:
            result = await self._get(self._page_url(page))
        finally:
            if generation == self._generation:
                self._in_flight = False

        # A reset() while loading discards this page
        if not self._alive or generation != self._generation:
            return

        parsed = self._read_page(result)
        if parsed is None:
            return

        self._set_state(
            items=self.items + list(parsed.items),
            has_more=parsed.has_more,
            _next_page=page + 1,
            loading=False,
        )
        self._handle_success(parsed)

    def reset(self) -> None:
        """Clear accumulated items; the next ``load_more()`` starts at page 1."""
        self._generation += 1
        self._in_flight = False
        self._set_state(items=[], has_more=True, _next_page=1, error=None, loading=False)
