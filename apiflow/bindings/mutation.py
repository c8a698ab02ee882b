"""
Mutation - explicitly triggered POST/PUT/PATCH/DELETE binding.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Generic, TypeVar

from loguru import logger

from apiflow.bindings.base import Binding, BindingOptions
from apiflow.services.client import ApiClient
from apiflow.services.types import ApiError, ApiResult, ErrorCode, ResponseMetadata

T = TypeVar("T")

MUTATION_METHODS = ("POST", "PUT", "PATCH", "DELETE")


@dataclass
class MutationOptions(BindingOptions):
    method: str = "POST"
    invalidate: list[str] = field(default_factory=list)  # cache keys cleared on success


class Mutation(Binding, Generic[T]):
    """
    Runs only when ``mutate()`` is called. On success the cache keys in
    ``options.invalidate`` are cleared so later reads go to the network.
    """

    data: T | None = None

    def __init__(
        self,
        client: ApiClient,
        endpoint: str,
        options: MutationOptions | None = None,
    ):
        options = options or MutationOptions()
        method = options.method.upper()
        if method not in MUTATION_METHODS:
            raise ValueError(f"Unsupported mutation method: {options.method}")
        options = replace(options, method=method)
        super().__init__(client, endpoint, options)

    @property
    def method(self) -> str:
        return self.options.method

    async def mutate(self, payload: Any = None) -> ApiResult[T]:
        """Send ``payload`` and return the client's result."""
        self._set_state(loading=True, error=None)

        try:
            config = self._request_config(
                method=self.method,
                body=None if self.method == "DELETE" else payload,
                cache=None,
            )
            result = await self.client.request(self.endpoint, config)
        except Exception as e:
            logger.exception(f"Mutation error: {self.endpoint}")
            error = ApiError(
                code=ErrorCode.MUTATION_ERROR.value,
                message="Mutation failed",
                details={"exception": type(e).__name__, "reason": str(e)},
            )
            self._set_state(error=error, loading=False)
            self._handle_error(error)
            return ApiResult.fail(error, ResponseMetadata(request_id="unsent"))

        if result.success:
            for key in self.options.invalidate:
                self.client.clear_cache(key)
            self._set_state(data=result.data, loading=False)
            self._handle_success(result.data)
        else:
            self._set_state(error=result.error, loading=False)
            self._handle_error(result.error)
            logger.error(
                f"Mutation failed: {self.method} {self.endpoint}: "
                f"{result.error.code} {result.error.message}"
            )

        return result

    def reset(self) -> None:
        """Back to the initial state."""
        self._set_state(data=None, error=None, loading=False)
