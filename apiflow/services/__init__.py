"""
Service layer - resilient access to the backend API.

Provides:
- CacheStore: TTL response cache with periodic sweep
- PendingRequestRegistry: collapses duplicate concurrent requests
- ApiClient: request executor combining cache, dedup, retry and timeout
"""

from apiflow.services.errors import (
    ServiceError,
    TransportError,
    RequestTimeoutError,
    ServerError,
    ResponseParseError,
)
from apiflow.services.types import (
    ApiError,
    ApiResult,
    CacheConfig,
    ErrorCode,
    PaginatedPage,
    RequestConfig,
    ResponseMetadata,
    RetryConfig,
)
from apiflow.services.cache import CacheStore, CacheEntry, CacheStats
from apiflow.services.deduplicator import PendingRequestRegistry
from apiflow.services.client import ApiClient, create_api_client

__all__ = [
    # Errors
    "ServiceError",
    "TransportError",
    "RequestTimeoutError",
    "ServerError",
    "ResponseParseError",
    # Types
    "ApiError",
    "ApiResult",
    "CacheConfig",
    "ErrorCode",
    "PaginatedPage",
    "RequestConfig",
    "ResponseMetadata",
    "RetryConfig",
    # Cache
    "CacheStore",
    "CacheEntry",
    "CacheStats",
    # Deduplication
    "PendingRequestRegistry",
    # Client
    "ApiClient",
    "create_api_client",
]
