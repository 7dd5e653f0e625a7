from __future__ import annotations

import asyncio

import httpx

from dirsync.adapters.http_resilience import (
    RateLimit,
    ResilienceConfig,
    ResilientClient,
    RetryPolicy,
)


def test_retry_policy_never_retries_post() -> None:
    retry = RetryPolicy().build()

    assert retry.is_retryable_method("GET")
    assert retry.is_retryable_method("DELETE")
    assert not retry.is_retryable_method("POST")


def test_client_retries_transient_failures() -> None:
    attempts: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request.method)
        if len(attempts) < 3:
            return httpx.Response(503)
        return httpx.Response(200, json={"ok": True})

    config = ResilienceConfig(
        name="test",
        base_url="https://api.example.invalid",
        retry=RetryPolicy(backoff_factor=0.0, backoff_jitter=0.0),
        ratelimit=RateLimit(max_calls=100, per_seconds=1.0),
        default_headers={"Authorization": "Bearer token"},
    )

    async def scenario() -> httpx.Response:
        async with ResilientClient(config, transport=httpx.MockTransport(handler)) as client:
            return await client.get("/users")

    response = asyncio.run(scenario())

    assert response.status_code == 200
    assert attempts == ["GET", "GET", "GET"]


def test_client_sends_default_headers_and_verbs() -> None:
    seen: list[tuple[str, str, str | None]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.url.path, request.headers.get("Authorization")))
        return httpx.Response(200)

    config = ResilienceConfig(
        name="test",
        base_url="https://api.example.invalid",
        default_headers={"Authorization": "Bearer token"},
    )

    async def scenario() -> None:
        async with ResilientClient(config, transport=httpx.MockTransport(handler)) as client:
            await client.post("/a", json={})
            await client.put("/b", json={})
            await client.delete("/c")

    asyncio.run(scenario())

    assert seen == [
        ("POST", "/a", "Bearer token"),
        ("PUT", "/b", "Bearer token"),
        ("DELETE", "/c", "Bearer token"),
    ]
