"""Tests for the mutation binding."""

import json
from datetime import timedelta

import httpx
import pytest

from apiflow import CacheConfig, Mutation, MutationOptions, RequestConfig, RetryConfig
from conftest import make_client


def recording_client(status: int = 200, body=None):
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if request.method == "GET":
            return httpx.Response(200, json={"items": len(calls)})
        return httpx.Response(status, json=body if body is not None else {"ok": True})

    return make_client(handler), calls


async def test_post_is_default() -> None:
    client, calls = recording_client(body={"id": 1, "created": True})
    mutation = Mutation(client, "/api/create")

    assert not mutation.loading
    response = await mutation.mutate({"name": "New Item"})

    assert response.success
    assert mutation.data == {"id": 1, "created": True}
    assert calls[0].method == "POST"
    assert json.loads(calls[0].content) == {"name": "New Item"}
    await client.close()


@pytest.mark.parametrize("method", ["PUT", "PATCH", "DELETE"])
async def test_other_methods(method: str) -> None:
    client, calls = recording_client()
    mutation = Mutation(client, "/api/items/1", MutationOptions(method=method.lower()))

    await mutation.mutate({"name": "x"})

    assert calls[0].method == method
    if method == "DELETE":
        assert calls[0].content == b""
    await client.close()


def test_options_are_not_modified() -> None:
    client, _ = recording_client()
    options = MutationOptions(method="patch")

    mutation = Mutation(client, "/api/items/1", options)

    assert mutation.method == "PATCH"
    assert options.method == "patch"


def test_rejects_read_methods() -> None:
    client, _ = recording_client()
    with pytest.raises(ValueError):
        Mutation(client, "/api/items", MutationOptions(method="GET"))


async def test_success_invalidates_cache_keys() -> None:
    client, calls = recording_client()
    cached = RequestConfig(cache=CacheConfig(ttl=timedelta(minutes=5)))

    await client.get("/api/items", cached)
    assert (await client.get("/api/items", cached)).from_cache

    mutation = Mutation(client, "/api/items", MutationOptions(invalidate=["/api/items"]))
    await mutation.mutate({"name": "x"})

    fresh = await client.get("/api/items", cached)
    assert not fresh.from_cache
    assert [c.method for c in calls] == ["GET", "POST", "GET"]
    await client.close()


async def test_failure_keeps_cache_and_sets_error() -> None:
    client, _ = recording_client(status=409, body={"code": "CONFLICT", "message": "taken"})
    client.cache.set("/api/items", {"items": 1})
    errors = []
    mutation = Mutation(
        client,
        "/api/items",
        MutationOptions(invalidate=["/api/items"], on_error=errors.append),
    )

    result = await mutation.mutate({})

    assert not result.success
    assert mutation.error.code == "CONFLICT"
    assert client.cache.has("/api/items")
    assert [e.message for e in errors] == ["taken"]
    await client.close()


async def test_unexpected_exception_becomes_mutation_error() -> None:
    class ExplodingClient:
        async def request(self, endpoint, config):
            raise RuntimeError("boom")

    mutation = Mutation(ExplodingClient(), "/api/items")
    result = await mutation.mutate({"a": 1})

    assert not result.success
    assert result.error.code == "MUTATION_ERROR"
    assert result.error.details["reason"] == "boom"
    assert mutation.error is result.error
    assert not mutation.loading


async def test_reset() -> None:
    client, _ = recording_client(status=500)
    mutation = Mutation(client, "/api/items", MutationOptions(retry=RetryConfig(attempts=1)))
    await mutation.mutate({})
    assert mutation.error is not None

    mutation.reset()

    assert mutation.data is None
    assert mutation.error is None
    assert not mutation.loading
    await client.close()
