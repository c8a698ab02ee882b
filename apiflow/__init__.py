"""
apiflow - resilient backend API access for stateful client applications.
"""

from apiflow.services import (
    ApiClient,
    ApiError,
    ApiResult,
    CacheConfig,
    CacheStore,
    ErrorCode,
    PaginatedPage,
    PendingRequestRegistry,
    RequestConfig,
    RetryConfig,
    create_api_client,
)
from apiflow.bindings import (
    BindingOptions,
    InfiniteQuery,
    Mutation,
    MutationOptions,
    PaginatedQuery,
    PaginationOptions,
    PollingOptions,
    PollingQuery,
    Query,
    SearchOptions,
    SearchQuery,
)
from apiflow.settings import Settings, load_settings
from apiflow.telemetry import MetricsRecorder

__all__ = [
    "ApiClient",
    "ApiError",
    "ApiResult",
    "CacheConfig",
    "CacheStore",
    "ErrorCode",
    "PaginatedPage",
    "PendingRequestRegistry",
    "RequestConfig",
    "RetryConfig",
    "create_api_client",
    "BindingOptions",
    "InfiniteQuery",
    "Mutation",
    "MutationOptions",
    "PaginatedQuery",
    "PaginationOptions",
    "PollingOptions",
    "PollingQuery",
    "Query",
    "SearchOptions",
    "SearchQuery",
    "Settings",
    "load_settings",
    "MetricsRecorder",
]
