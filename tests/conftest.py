"""Shared pytest fixtures."""

import asyncio
import heapq
import itertools
from datetime import datetime, timedelta
from typing import Callable

import httpx
import pytest

from apiflow import ApiClient, CacheStore

BASE_URL = "https://api.test.dev"


class ManualClock:
    """
    Deterministic stand-in for ``asyncio.sleep`` and ``datetime.now``.

    Sleepers park until ``advance()`` moves time past their deadline.
    """

    def __init__(self) -> None:
        self.now = 0.0
        self._epoch = datetime(2024, 1, 1)
        self._sleepers: list[tuple[float, int, asyncio.Future]] = []
        self._seq = itertools.count()
        self.sleeps: list[float] = []

    async def sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        future = asyncio.get_running_loop().create_future()
        heapq.heappush(self._sleepers, (self.now + delay, next(self._seq), future))
        await future

    def datetime(self) -> datetime:
        return self._epoch + timedelta(seconds=self.now)

    async def settle(self) -> None:
        await settle()

    async def advance(self, seconds: float) -> None:
        target = self.now + seconds
        await self.settle()
        while self._sleepers and self._sleepers[0][0] <= target:
            deadline, _, future = heapq.heappop(self._sleepers)
            self.now = deadline
            if not future.done():
                future.set_result(None)
            await self.settle()
        self.now = target
        await self.settle()


class Gate:
    """Async transport handler that holds responses until released."""

    def __init__(self, responder: Callable[[httpx.Request], httpx.Response]):
        self.responder = responder
        self.requests: list[httpx.Request] = []
        self._event = asyncio.Event()

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        await self._event.wait()
        return self.responder(request)

    def release(self) -> None:
        self._event.set()

    @property
    def urls(self) -> list[str]:
        return [str(r.url) for r in self.requests]


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
async def client():
    """ApiClient against BASE_URL, for use with respx routes."""
    api = ApiClient(base_url=BASE_URL, http_client=httpx.AsyncClient())
    yield api
    await api.close()


def make_client(handler, **kwargs) -> ApiClient:
    """ApiClient whose transport is ``handler`` (sync or async)."""
    return ApiClient(
        base_url=BASE_URL,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        **kwargs,
    )


def make_cache(clock: ManualClock, **kwargs) -> CacheStore:
    return CacheStore(clock=clock.datetime, **kwargs)


async def settle(rounds: int = 50) -> None:
    """Run the event loop until ready callbacks are drained."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class SleepRecorder:
    """Records requested delays without waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def page_responder(collection: list, request: httpx.Request) -> httpx.Response:
    """Serve ``collection`` as a PaginatedPage using page/pageSize params."""
    page = int(request.url.params.get("page", 1))
    size = int(request.url.params.get("pageSize", 20))
    start = (page - 1) * size
    items = collection[start : start + size]
    return httpx.Response(
        200,
        json={
            "items": items,
            "total": len(collection),
            "page": page,
            "pageSize": size,
            "hasMore": start + size < len(collection),
        },
    )
