"""Tests for the pending-request registry."""

import asyncio

import pytest

from apiflow import PendingRequestRegistry
from apiflow.services.errors import RequestAbortedError


async def test_concurrent_callers_share_one_call() -> None:
    registry = PendingRequestRegistry()
    calls = 0
    release = asyncio.Event()

    async def fetch() -> dict:
        nonlocal calls
        calls += 1
        await release.wait()
        return {"id": 1}

    tasks = [asyncio.create_task(registry.dedupe("GET:/a", fetch)) for _ in range(5)]
    await asyncio.sleep(0)
    assert registry.in_flight("GET:/a")

    release.set()
    results = await asyncio.gather(*tasks)

    assert calls == 1
    assert all(r is results[0] for r in results)
    assert registry.get_stats().joined == 4


async def test_entry_removed_after_success() -> None:
    registry = PendingRequestRegistry()

    async def fetch() -> int:
        return 1

    await registry.dedupe("GET:/a", fetch)
    assert registry.get_in_flight_count() == 0


async def test_entry_removed_after_failure() -> None:
    registry = PendingRequestRegistry()

    async def fail() -> int:
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        await registry.dedupe("GET:/a", fail)

    assert not registry.in_flight("GET:/a")


async def test_different_keys_run_separately() -> None:
    registry = PendingRequestRegistry()
    calls: list[str] = []

    async def fetch(key: str) -> str:
        calls.append(key)
        await asyncio.sleep(0)
        return key

    results = await asyncio.gather(
        registry.dedupe("GET:/a", lambda: fetch("a")),
        registry.dedupe("POST:/a", lambda: fetch("b")),
    )
    assert results == ["a", "b"]
    assert calls == ["a", "b"]


async def test_cancelled_waiter_does_not_cancel_shared_call() -> None:
    registry = PendingRequestRegistry()
    release = asyncio.Event()

    async def fetch() -> str:
        await release.wait()
        return "done"

    first = asyncio.create_task(registry.dedupe("GET:/a", fetch))
    second = asyncio.create_task(registry.dedupe("GET:/a", fetch))
    await asyncio.sleep(0)

    first.cancel()
    release.set()

    assert await second == "done"
    with pytest.raises(asyncio.CancelledError):
        await first


def test_make_key_uppercases_method() -> None:
    assert PendingRequestRegistry.make_key("get", "/api/x") == "GET:/api/x"


async def test_cancel_all_clears_pending_keys() -> None:
    registry = PendingRequestRegistry()
    never = asyncio.Event()

    async def hang() -> None:
        await never.wait()

    waiter = asyncio.create_task(registry.dedupe("GET:/slow", hang))
    await asyncio.sleep(0)

    assert await registry.cancel_all() == 1
    assert registry.get_in_flight_count() == 0
    with pytest.raises(RequestAbortedError):
        await waiter

    # The key is free again for a fresh call
    async def quick() -> str:
        return "ok"

    assert await registry.dedupe("GET:/slow", quick) == "ok"
