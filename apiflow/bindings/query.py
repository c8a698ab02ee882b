"""
Query - fetch-on-activate binding for a single GET endpoint.
"""

from typing import Generic, TypeVar

from loguru import logger

from apiflow.bindings.base import Binding

T = TypeVar("T")


class Query(Binding, Generic[T]):
    """
    Exposes ``data``/``error``/``loading`` for one endpoint.

    Usage:
        query = Query(client, "/api/profile")
        await query.activate()       # fetches unless auto_fetch=False
        await query.refetch()        # same call again
        query.mutate({"name": "x"})  # local overwrite, no request
        query.teardown()
    """

    data: T | None = None

    async def _on_activate(self) -> None:
        if self.options.auto_fetch:
            await self.refetch()

    async def refetch(self) -> None:
        """Reissue the GET and apply its outcome."""
        if not self.endpoint:
            return

        self._set_state(loading=True, error=None)
        result = await self._get(self.endpoint)

        if not self._alive:
            return

        if result.success:
            self._set_state(data=result.data, loading=False)
            self._handle_success(result.data)
        else:
            self._set_state(error=result.error, loading=False)
            self._handle_error(result.error)
            logger.error(
                f"Failed to fetch {self.endpoint}: "
                f"{result.error.code} {result.error.message}"
            )

    def mutate(self, new_data: T) -> None:
        """Optimistic local update."""
        self._set_state(data=new_data)
