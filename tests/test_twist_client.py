from __future__ import annotations

import json
from datetime import datetime, timezone
from functools import partial

import anyio
import httpx
import pytest

from twist_cli.client import (
    Comment,
    Conversation,
    Thread,
    TwistApiError,
    TwistClient,
    _request_with_client,
    gather,
)


def _patch_transport(monkeypatch, handler) -> None:
    real_async_client = httpx.AsyncClient
    transport = httpx.MockTransport(handler)
    monkeypatch.setattr(
        "twist_cli.client.httpx.AsyncClient",
        partial(real_async_client, transport=transport),
    )


@pytest.mark.anyio
async def test_request_with_client_rate_limit(monkeypatch) -> None:
    calls: list[int] = []

    async def _sleep(delay: float) -> None:
        calls.append(int(delay))

    monkeypatch.setattr("twist_cli.client.anyio.sleep", _sleep)

    request = httpx.Request("GET", "https://example.com")
    responses = [
        httpx.Response(429, request=request, headers={"Retry-After": "2"}),
        httpx.Response(200, request=request, json={"value": 1}),
    ]

    def handler(_request: httpx.Request) -> httpx.Response:
        return responses.pop(0)

    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(transport=transport, base_url="https://example.com") as client:
        payload = await _request_with_client(client, "GET", "/test")

    assert payload == {"value": 1}
    assert calls == [2]


@pytest.mark.anyio
async def test_request_with_client_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            400,
            request=request,
            json={"error_code": 200, "error_string": "Invalid token"},
        )

    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(transport=transport, base_url="https://example.com") as client:
        with pytest.raises(TwistApiError) as exc:
            await _request_with_client(client, "GET", "/test")

    assert exc.value.status_code == 400
    assert exc.value.error == "200"
    assert "Invalid token" in str(exc.value)


@pytest.mark.anyio
async def test_request_with_client_bad_json_and_empty_body() -> None:
    bodies = [b"nope", b""]

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, request=request, content=bodies.pop(0))

    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(transport=transport, base_url="https://example.com") as client:
        with pytest.raises(TwistApiError):
            await _request_with_client(client, "GET", "/test")
        assert await _request_with_client(client, "POST", "/test") is None


@pytest.mark.anyio
async def test_request_with_client_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("boom", request=request)

    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(transport=transport, base_url="https://example.com") as client:
        with pytest.raises(TwistApiError, match="request failed"):
            await _request_with_client(client, "GET", "/test")


@pytest.mark.anyio
async def test_client_sends_auth_and_parses_channels(monkeypatch) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json=[
                {"id": 1, "name": "general", "workspace_id": 9, "public": True},
                {"id": 2, "name": "secret", "workspace_id": 9, "public": False},
            ],
        )

    _patch_transport(monkeypatch, handler)
    client = TwistClient("tok", base_url="https://api.example.com/api/v3")
    try:
        channels = await client.get_channels(9)
    finally:
        await client.close()

    assert [(c.id, c.public) for c in channels] == [(1, True), (2, False)]
    assert seen[0].url.path == "/api/v3/channels/get"
    assert seen[0].url.params["workspace_id"] == "9"
    assert seen[0].headers["Authorization"] == "Bearer tok"


@pytest.mark.anyio
async def test_client_add_comment_posts_recipients(monkeypatch) -> None:
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(
            200, json={"id": 5, "content": "hi", "creator": 1, "thread_id": 3}
        )

    _patch_transport(monkeypatch, handler)
    client = TwistClient("tok")
    try:
        comment = await client.add_comment(thread_id=3, content="hi", recipients=[1, 2])
    finally:
        await client.close()

    assert comment.id == 5
    assert seen == [{"thread_id": 3, "content": "hi", "recipients": [1, 2]}]


@pytest.mark.anyio
async def test_client_search_params(monkeypatch) -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "items": [
                    {"type": "thread", "snippet": "hello", "thread_id": 3, "channel_id": 4},
                    "junk",
                ],
                "has_more": True,
                "next_cursor_mark": "abc",
            },
        )

    _patch_transport(monkeypatch, handler)
    client = TwistClient("tok")
    try:
        page = await client.search(
            workspace_id=1,
            query="hello",
            channel_ids=[4, 5],
            author_ids=[7],
            since=datetime(2024, 1, 1, tzinfo=timezone.utc),
            cursor="prev",
        )
    finally:
        await client.close()

    params = seen[0].url.params
    assert params["query"] == "hello"
    assert params["channel_ids"] == "[4, 5]"
    assert params["from_user_id"] == "7"
    assert params["after_ts"] == "1704067200"
    assert params["cursor_mark"] == "prev"
    assert len(page.items) == 1
    assert page.items[0].thread_id == 3
    assert page.has_more is True
    assert page.next_cursor == "abc"


def test_from_api_parsing() -> None:
    thread = Thread.from_api(
        {
            "id": 1,
            "title": "T",
            "content": "c",
            "channel_id": 2,
            "workspace_id": 3,
            "creator": 4,
            "posted_ts": 0,
        }
    )
    assert thread.posted == datetime(1970, 1, 1, tzinfo=timezone.utc)
    assert thread.raw["title"] == "T"

    comment = Comment.from_api(
        {"id": 1, "content": "x", "creator": 2, "posted": "2024-01-01T00:00:00Z"}
    )
    assert comment.posted == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert comment.obj_index == 0

    conversation = Conversation.from_api({"id": 1, "workspace_id": 2, "user_ids": [3, 4]})
    assert conversation.user_ids == (3, 4)
    assert conversation.title is None


def test_gather_keeps_call_order() -> None:
    async def _value(value: int, delay: float) -> int:
        await anyio.sleep(delay)
        return value

    async def _main() -> list[int]:
        return await gather(_value(1, 0.02), _value(2, 0), _value(3, 0.01))

    assert anyio.run(_main) == [1, 2, 3]


def test_gather_reraises_child_error_unwrapped() -> None:
    async def _ok() -> int:
        await anyio.sleep(0.05)
        return 1

    async def _fail() -> int:
        raise TwistApiError("Twist API error: Thread not found", status_code=404)

    async def _main() -> list[int]:
        return await gather(_ok(), _fail())

    with pytest.raises(TwistApiError) as exc:
        anyio.run(_main)
    assert exc.value.status_code == 404
