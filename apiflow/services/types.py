"""
Shared request/response types for the API client and its bindings.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")

DEFAULT_CACHE_TTL = timedelta(minutes=5)


class ErrorCode(str, Enum):
    """Stable error codes produced by the client itself."""

    NETWORK_ERROR = "NETWORK_ERROR"
    PARSE_ERROR = "PARSE_ERROR"
    MUTATION_ERROR = "MUTATION_ERROR"
    IO_ERROR = "IO_ERROR"  # local file read/write for upload and download


@dataclass
class ApiError:
    """Error value returned in place of data. Never carries an exception object."""

    code: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)
    status: int | None = None

    @property
    def is_client_error(self) -> bool:
        return self.status is not None and 400 <= self.status < 500

    @classmethod
    def from_exception(cls, exc: BaseException, code: str) -> "ApiError":
        return cls(
            code=str(code.value if isinstance(code, ErrorCode) else code),
            message=str(exc) or type(exc).__name__,
            details={"exception": type(exc).__name__},
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "status": self.status,
        }


@dataclass
class ResponseMetadata:
    """Metadata attached to every result."""

    request_id: str
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    version: str | None = None


@dataclass
class ApiResult(Generic[T]):
    """
    Uniform result of a client call.

    Exactly one of ``data``/``error`` is meaningful, selected by ``success``.
    Build instances with :meth:`ok` and :meth:`fail`.
    """

    success: bool
    metadata: ResponseMetadata
    data: T | None = None
    error: ApiError | None = None
    from_cache: bool = False

    @classmethod
    def ok(
        cls, data: T, metadata: ResponseMetadata, from_cache: bool = False
    ) -> "ApiResult[T]":
        return cls(success=True, metadata=metadata, data=data, from_cache=from_cache)

    @classmethod
    def fail(cls, error: ApiError, metadata: ResponseMetadata) -> "ApiResult[T]":
        return cls(success=False, metadata=metadata, error=error)


@dataclass
class RetryConfig:
    """Retry policy for a single call. Delays are in seconds."""

    attempts: int = 3
    delay: float = 1.0
    backoff: bool = False

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after the given (1-based) failed attempt."""
        if self.backoff:
            return self.delay * (2 ** (attempt - 1))
        return self.delay


@dataclass
class CacheConfig:
    """Opt-in response caching for GET calls."""

    ttl: timedelta | None = None
    key: str | None = None


@dataclass
class RequestConfig:
    """Per-call configuration."""

    method: str = "GET"
    headers: dict[str, str] | None = None
    body: Any = None
    files: list[tuple[str, Any]] | None = None
    retry: RetryConfig = field(default_factory=RetryConfig)
    timeout: float | None = None
    cache: CacheConfig | None = None


class PaginatedPage(BaseModel, Generic[T]):
    """One page of a listing endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    items: list[T] = Field(default_factory=list)
    total: int | None = None
    page: int | None = None
    page_size: int | None = Field(default=None, alias="pageSize")
    has_more: bool = Field(default=False, alias="hasMore")
