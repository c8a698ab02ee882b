"""
ApiClient - Async request executor with caching, deduplication and retries.

Combines:
- CacheStore for GET response caching
- PendingRequestRegistry for concurrent request collapsing
- Retry with fixed or exponential backoff, per-attempt timeout
- Per-attempt duration metrics

Every public call resolves to an ``ApiResult``; nothing raises past the
client boundary.
"""

import asyncio
import mimetypes
import time
from dataclasses import replace
from datetime import timedelta
from pathlib import Path
from typing import Any, Awaitable, Callable, Union

import httpx
from loguru import logger

from apiflow.services.cache import CacheStore
from apiflow.services.deduplicator import PendingRequestRegistry
from apiflow.services.errors import (
    RequestAbortedError,
    RequestTimeoutError,
    ResponseParseError,
    ServerError,
    ServiceError,
    TransportError,
)
from apiflow.services.types import (
    ApiError,
    ApiResult,
    ErrorCode,
    RequestConfig,
    ResponseMetadata,
)
from apiflow.settings import Settings, load_settings
from apiflow.telemetry import MetricsRecorder
from apiflow.utils import filename_from_disposition, join_url

FileInput = Union[Path, tuple[str, bytes], tuple[str, bytes, str]]
Sleeper = Callable[[float], Awaitable[Any]]
ResponseParser = Callable[[httpx.Response], Any]

DURATION_METRIC = "api.request.duration"


class ApiClient:
    """
    HTTP request executor shared by every binding of an application.

    Usage:
        async with ApiClient(base_url="https://api.example.com") as client:
            result = await client.get(
                "/items",
                RequestConfig(cache=CacheConfig(ttl=timedelta(minutes=1))),
            )
            if result.success:
                print(result.data)
            else:
                print(result.error.code, result.error.message)
    """

    def __init__(
        self,
        base_url: str = "",
        *,
        http_client: httpx.AsyncClient | None = None,
        cache: CacheStore | None = None,
        registry: PendingRequestRegistry | None = None,
        metrics: MetricsRecorder | None = None,
        sleep: Sleeper = asyncio.sleep,
        default_timeout: float = 30.0,
        sweep_interval: float = 60.0,
        debug: bool = False,
    ):
        self._base_url = base_url
        self._default_timeout = default_timeout
        self._sweep_interval = sweep_interval
        self._sleep = sleep
        self._debug = debug

        self._cache = cache if cache is not None else CacheStore(debug=debug)
        self._registry = (
            registry if registry is not None else PendingRequestRegistry(debug=debug)
        )
        self._metrics = metrics if metrics is not None else MetricsRecorder()

        # HTTP client (lazy initialization unless injected)
        self._http_client = http_client
        self._owns_http_client = http_client is None
        self._request_counter = 0

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def cache(self) -> CacheStore:
        return self._cache

    @property
    def registry(self) -> PendingRequestRegistry:
        return self._registry

    @property
    def metrics(self) -> MetricsRecorder:
        return self._metrics

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            # Timeouts are enforced per attempt by the executor.
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(None),
                follow_redirects=True,
            )
        return self._http_client

    def build_url(self, endpoint: str) -> str:
        return join_url(self._base_url, endpoint)

    # Verbs

    async def get(
        self, endpoint: str, config: RequestConfig | None = None
    ) -> ApiResult[Any]:
        return await self.request(endpoint, self._with(config, method="GET"))

    async def post(
        self, endpoint: str, data: Any = None, config: RequestConfig | None = None
    ) -> ApiResult[Any]:
        return await self.request(endpoint, self._with(config, method="POST", body=data))

    async def put(
        self, endpoint: str, data: Any = None, config: RequestConfig | None = None
    ) -> ApiResult[Any]:
        return await self.request(endpoint, self._with(config, method="PUT", body=data))

    async def patch(
        self, endpoint: str, data: Any = None, config: RequestConfig | None = None
    ) -> ApiResult[Any]:
        return await self.request(
            endpoint, self._with(config, method="PATCH", body=data)
        )

    async def delete(
        self, endpoint: str, config: RequestConfig | None = None
    ) -> ApiResult[Any]:
        return await self.request(endpoint, self._with(config, method="DELETE"))

    async def request(
        self, endpoint: str, config: RequestConfig | None = None
    ) -> ApiResult[Any]:
        """
        Make a request with caching, deduplication and retries.

        Args:
            endpoint: Absolute URL or path relative to the base URL
            config: Per-call configuration (method, body, retry, timeout, cache)

        Returns:
            ApiResult with either data or an ApiError
        """
        config = config or RequestConfig()
        method = config.method.upper()
        request_id = self._next_request_id()

        # Check cache first (GET with cache config only)
        cache_key: str | None = None
        if method == "GET" and config.cache is not None:
            cache_key = config.cache.key or endpoint
            cached = self._cache.get(cache_key)
            if cached is not None:
                logger.debug(f"Cache hit for: {endpoint} ({request_id})")
                return ApiResult.ok(
                    cached, ResponseMetadata(request_id=request_id), from_cache=True
                )

        url = self.build_url(endpoint)

        async def do_request() -> ApiResult[Any]:
            result = await self._execute(method, endpoint, url, config, request_id)
            if cache_key is not None and result.success:
                self._cache.set(cache_key, result.data, config.cache.ttl)
            return result

        return await self._dedupe(
            self._registry.make_key(method, endpoint), do_request, request_id
        )

    async def upload(
        self,
        endpoint: str,
        files: FileInput | list[FileInput],
        config: RequestConfig | None = None,
    ) -> ApiResult[Any]:
        """
        Upload one file (field ``file``) or several (``file_0``, ``file_1``...)
        as a multipart POST.
        """
        try:
            fields = self._build_file_fields(files)
        except OSError as e:
            logger.error(f"Upload to {endpoint} failed reading files: {e}")
            return ApiResult.fail(
                ApiError.from_exception(e, ErrorCode.IO_ERROR),
                ResponseMetadata(request_id=self._next_request_id()),
            )

        return await self.request(
            endpoint, self._with(config, method="POST", files=fields, cache=None)
        )

    async def download(
        self,
        endpoint: str,
        filename: str | None = None,
        directory: str | Path = ".",
        config: RequestConfig | None = None,
    ) -> ApiResult[Path]:
        """
        Download a response body to disk.

        The target name is ``filename``, else the Content-Disposition
        filename, else ``"download"``.

        Returns:
            ApiResult carrying the written path
        """
        config = self._with(config, method="GET", cache=None)
        request_id = self._next_request_id()
        url = self.build_url(endpoint)

        def read_body(response: httpx.Response) -> tuple[bytes, str | None]:
            disposition = response.headers.get("content-disposition")
            return response.content, filename_from_disposition(disposition)

        result = await self._dedupe(
            self._registry.make_key("DOWNLOAD", endpoint),
            lambda: self._execute(
                "GET", endpoint, url, config, request_id, parse=read_body
            ),
            request_id,
        )
        if not result.success:
            return result

        content, suggested = result.data
        target = Path(directory) / (filename or suggested or "download")
        try:
            await asyncio.to_thread(target.write_bytes, content)
        except OSError as e:
            logger.error(f"Failed to save download {endpoint} to {target}: {e}")
            return ApiResult.fail(
                ApiError.from_exception(e, ErrorCode.IO_ERROR), result.metadata
            )

        logger.info(f"Downloaded {endpoint} to {target} ({len(content)} bytes)")
        return ApiResult.ok(target, result.metadata)

    def clear_cache(self, endpoint: str | None = None) -> int:
        """Clear the cache entry for ``endpoint``, or the whole cache."""
        return self._cache.clear(endpoint)

    async def _dedupe(
        self,
        key: str,
        request_fn: Callable[[], Awaitable[ApiResult[Any]]],
        request_id: str,
    ) -> ApiResult[Any]:
        try:
            return await self._registry.dedupe(key, request_fn)
        except RequestAbortedError as e:
            logger.warning(f"Request aborted: {key} ({request_id})")
            return ApiResult.fail(
                ApiError.from_exception(e, ErrorCode.NETWORK_ERROR),
                ResponseMetadata(request_id=request_id),
            )
        except Exception as e:
            logger.exception(f"Unexpected error executing {key} ({request_id})")
            return ApiResult.fail(
                ApiError.from_exception(e, ErrorCode.NETWORK_ERROR),
                ResponseMetadata(request_id=request_id),
            )

    async def _execute(
        self,
        method: str,
        endpoint: str,
        url: str,
        config: RequestConfig,
        request_id: str,
        parse: ResponseParser | None = None,
    ) -> ApiResult[Any]:
        """Run the attempt loop for one logical request."""
        parse = parse or self._parse_response
        retry = config.retry
        attempts = max(1, retry.attempts)
        timeout = config.timeout if config.timeout is not None else self._default_timeout
        headers = self._build_headers(config, request_id)
        started = time.perf_counter()

        last_error: ServiceError | None = None
        last_status: int | None = None

        for attempt in range(1, attempts + 1):
            logger.debug(
                f"API Request: {method} {url} (attempt {attempt}/{attempts}, {request_id})"
            )
            attempt_started = time.perf_counter()

            try:
                response = await self._send(method, url, headers, config, timeout)
            except TransportError as e:
                self._record_duration(endpoint, method, "error", attempt_started)
                logger.error(
                    f"API Request Failed: {url} (attempt {attempt}, {request_id}): {e}"
                )
                last_error = e
            else:
                status = response.status_code
                self._record_duration(endpoint, method, str(status), attempt_started)
                metadata = self._metadata(request_id, response)

                if 200 <= status < 400:
                    try:
                        data = parse(response)
                    except ResponseParseError as e:
                        logger.error(f"API Parse Error: {url} ({status}, {request_id}): {e}")
                        return ApiResult.fail(
                            ApiError(
                                code=ErrorCode.PARSE_ERROR.value,
                                message=str(e),
                                details={"status": status},
                                status=status,
                            ),
                            metadata,
                        )

                    logger.info(
                        f"API Success: {url} ({status}, "
                        f"{self._elapsed_ms(started):.0f}ms, {request_id})"
                    )
                    return ApiResult.ok(data, metadata)

                error = self._parse_error_response(response)

                # Client errors are terminal
                if 400 <= status < 500:
                    logger.warning(
                        f"API Client Error: {url} ({status} {error.code}, {request_id})"
                    )
                    return ApiResult.fail(error, metadata)

                logger.warning(
                    f"API Server Error: {url} ({status} {error.code}, "
                    f"attempt {attempt}, {request_id})"
                )
                last_error = ServerError(error.message, status=status, url=url)
                last_status = status

            if attempt < attempts:
                delay = retry.delay_for(attempt)
                logger.debug(f"Retrying request in {delay}s... ({request_id})")
                await self._sleep(delay)

        duration = self._elapsed_ms(started)
        logger.error(
            f"API Request Failed After Retries: {url} "
            f"({attempts} attempts, {duration:.0f}ms, {request_id}): {last_error}"
        )
        return ApiResult.fail(
            ApiError(
                code=ErrorCode.NETWORK_ERROR.value,
                message=str(last_error) if last_error else "Request failed",
                details={
                    "url": url,
                    "attempts": attempts,
                    "duration": duration,
                    "last_status": last_status,
                },
                status=last_status,
            ),
            ResponseMetadata(request_id=request_id),
        )

    async def _send(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        config: RequestConfig,
        timeout: float,
    ) -> httpx.Response:
        """Perform one HTTP exchange, cancelled after ``timeout`` seconds."""
        client = await self._get_http_client()

        try:
            return await asyncio.wait_for(
                client.request(
                    method=method,
                    url=url,
                    headers=headers,
                    **self._body_kwargs(config),
                ),
                timeout=timeout,
            )

        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise RequestTimeoutError(url, timeout) from e

        except httpx.RequestError as e:
            raise TransportError(str(e) or type(e).__name__, url=url) from e

    @staticmethod
    def _body_kwargs(config: RequestConfig) -> dict[str, Any]:
        if config.files is not None:
            data = config.body if isinstance(config.body, dict) else None
            return {"files": config.files, "data": data}

        body = config.body
        if body is None:
            return {}
        if isinstance(body, (bytes, str)):
            return {"content": body}
        return {"json": body}

    @staticmethod
    def _build_headers(config: RequestConfig, request_id: str) -> dict[str, str]:
        headers: dict[str, str] = {}
        # Multipart bodies get their Content-Type (with boundary) from httpx
        if config.files is None:
            headers["Content-Type"] = "application/json"
        headers["X-Request-Id"] = request_id
        if config.headers:
            headers.update(config.headers)
        return headers

    @staticmethod
    def _parse_response(response: httpx.Response) -> Any:
        """Decode a success body by content type: JSON, text, else bytes."""
        content_type = response.headers.get("content-type", "")

        try:
            if "application/json" in content_type or "+json" in content_type:
                return response.json() if response.content else None
            if "text/" in content_type:
                return response.text
        except (ValueError, UnicodeDecodeError) as e:
            raise ResponseParseError(
                f"Failed to parse {content_type} response: {e}",
                status=response.status_code,
            ) from e

        return response.content

    @staticmethod
    def _parse_error_response(response: httpx.Response) -> ApiError:
        """Map an error response to an ApiError."""
        status = response.status_code
        reason = response.reason_phrase or str(status)
        content_type = response.headers.get("content-type", "")

        try:
            if "application/json" in content_type or "+json" in content_type:
                payload = response.json()
                if not isinstance(payload, dict):
                    payload = {}
                return ApiError(
                    code=str(payload.get("code") or reason),
                    message=str(payload.get("message") or payload.get("error") or reason),
                    details=payload.get("details") or {},
                    status=status,
                )

            return ApiError(
                code=reason,
                message=response.text or reason,
                details={},
                status=status,
            )

        except (ValueError, UnicodeDecodeError):
            return ApiError(
                code=ErrorCode.PARSE_ERROR.value,
                message="Failed to parse error response",
                details={"status": status},
                status=status,
            )

    @staticmethod
    def _build_file_fields(
        files: FileInput | list[FileInput],
    ) -> list[tuple[str, tuple[str, bytes, str]]]:
        def to_part(item: FileInput) -> tuple[str, bytes, str]:
            if isinstance(item, Path):
                name, content = item.name, item.read_bytes()
            elif len(item) == 3:
                return item
            else:
                name, content = item
            content_type = mimetypes.guess_type(name)[0] or "application/octet-stream"
            return name, content, content_type

        if isinstance(files, list):
            return [(f"file_{i}", to_part(f)) for i, f in enumerate(files)]
        return [("file", to_part(files))]

    @staticmethod
    def _metadata(request_id: str, response: httpx.Response) -> ResponseMetadata:
        return ResponseMetadata(
            request_id=request_id,
            version=response.headers.get("x-api-version"),
        )

    def _record_duration(
        self, endpoint: str, method: str, status: str, attempt_started: float
    ) -> None:
        try:
            self._metrics.metric(
                DURATION_METRIC,
                self._elapsed_ms(attempt_started),
                "ms",
                {"endpoint": endpoint, "method": method, "status": status},
            )
        except Exception as e:
            logger.warning(f"Failed to record metric for {endpoint}: {e}")

    @staticmethod
    def _elapsed_ms(started: float) -> float:
        return (time.perf_counter() - started) * 1000

    def _next_request_id(self) -> str:
        self._request_counter += 1
        return f"req_{self._request_counter}"

    @staticmethod
    def _with(config: RequestConfig | None, **changes: Any) -> RequestConfig:
        return replace(config or RequestConfig(), **changes)

    # Lifecycle

    def start(self) -> None:
        """Start background maintenance (the cache sweep)."""
        self._cache.start_sweeper(self._sweep_interval)

    async def close(self) -> None:
        """Stop the sweep, cancel pending requests and close the HTTP client."""
        self._cache.stop_sweeper()
        await self._registry.cancel_all()

        if self._http_client and self._owns_http_client:
            await self._http_client.aclose()
            self._http_client = None

        logger.debug("ApiClient closed")

    async def __aenter__(self) -> "ApiClient":
        """Async context manager entry."""
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    def get_health_status(self) -> dict[str, Any]:
        """Get status of the cache, the pending registry and metrics."""
        return {
            "cache": self._cache.get_stats().to_dict(),
            "pending": self._registry.get_stats().to_dict(),
            "in_flight_keys": self._registry.get_in_flight_keys(),
            "metrics": self._metrics.get_stats(),
            "sweeper_running": self._cache.sweeper_running,
        }


def create_api_client(settings: Settings | None = None, **kwargs: Any) -> ApiClient:
    """
    Build the client for an application's composition root.

    The returned instance is meant to be created once and passed to every
    binding, so that they share one cache and one pending-request registry.
    """
    settings = settings or load_settings()
    cache = CacheStore(
        default_ttl=timedelta(seconds=settings.cache_ttl_seconds),
        max_size=settings.cache_max_size,
        debug=settings.debug,
    )
    return ApiClient(
        base_url=settings.api_base_url,
        cache=cache,
        default_timeout=settings.request_timeout,
        sweep_interval=settings.cache_sweep_interval,
        debug=settings.debug,
        **kwargs,
    )
