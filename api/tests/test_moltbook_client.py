from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any

import httpx

from app.services.moltbook import MoltbookClient, MoltbookProfile, parse_profile

BASE_URL = "https://moltbook.example/api/v1"


def _fetch(handler: Any, api_key: str = "moltbook_abc") -> MoltbookProfile | None:
    async def run() -> MoltbookProfile | None:
        transport = httpx.MockTransport(handler)
        async with httpx.AsyncClient(transport=transport) as client:
            return await MoltbookClient(BASE_URL, client=client).fetch_profile(api_key)

    return asyncio.run(run())


def test_fetch_profile_sends_bearer_token_and_normalizes_payload() -> None:
    captured: dict[str, Any] = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["authorization"] = request.headers.get("Authorization")
        return httpx.Response(
            status_code=200,
            json={
                "name": "bot1",
                "description": "Scrapes things",
                "karma": 5,
                "follower_count": 2,
                "is_claimed": True,
                "is_active": True,
                "created_at": "2024-01-01T00:00:00Z",
                "owner": {"x_handle": "owner1", "x_name": "Owner One", "x_avatar": None},
            },
            request=request,
        )

    profile = _fetch(handler)

    assert captured["url"] == f"{BASE_URL}/agents/me"
    assert captured["authorization"] == "Bearer moltbook_abc"
    assert profile is not None
    assert profile.name == "bot1"
    assert profile.description == "Scrapes things"
    assert profile.karma == 5
    assert profile.follower_count == 2
    assert profile.is_claimed is True
    assert profile.created_at == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert profile.owner is not None
    assert profile.owner.x_handle == "owner1"
    assert profile.owner.x_avatar is None
    assert profile.owner.x_bio is None


def test_fetch_profile_defaults_missing_fields() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code=200, json={"name": "sparse"}, request=request)

    profile = _fetch(handler)

    assert profile == MoltbookProfile(name="sparse")
    assert profile.karma == 0
    assert profile.follower_count == 0
    assert profile.is_claimed is False
    assert profile.is_active is True
    assert profile.owner is None
    assert profile.created_at is None


def test_fetch_profile_returns_none_for_rejected_key() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code=401, json={"error": "invalid api key"}, request=request)

    assert _fetch(handler) is None


def test_fetch_profile_returns_none_for_upstream_error() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code=503, request=request)

    assert _fetch(handler) is None


def test_fetch_profile_returns_none_on_transport_failure() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    assert _fetch(handler) is None


def test_fetch_profile_returns_none_for_non_ascii_key_without_sending() -> None:
    calls: list[httpx.Request] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(status_code=401, request=request)

    assert _fetch(handler, api_key="moltbook_é") is None
    assert calls == []


def test_fetch_profile_returns_none_for_invalid_base_url() -> None:
    async def run() -> MoltbookProfile | None:
        return await MoltbookClient("http://moltbook.example:notaport/api/v1").fetch_profile("moltbook_abc")

    assert asyncio.run(run()) is None


def test_fetch_profile_returns_none_for_non_json_body() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code=200, text="<html>maintenance</html>", request=request)

    assert _fetch(handler) is None


def test_parse_profile_rejects_payload_without_name() -> None:
    assert parse_profile({"karma": 3}) is None
    assert parse_profile(["not", "an", "object"]) is None
    assert parse_profile({"name": "   "}) is None


def test_parse_profile_ignores_wrongly_typed_fields() -> None:
    profile = parse_profile(
        {
            "name": "bot2",
            "karma": "12",
            "follower_count": None,
            "is_claimed": "yes",
            "is_active": None,
            "created_at": "not-a-date",
        }
    )

    assert profile is not None
    assert profile.karma == 12
    assert profile.follower_count == 0
    assert profile.is_claimed is False
    assert profile.is_active is True
    assert profile.created_at is None
