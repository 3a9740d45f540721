from __future__ import annotations

import json as jsonlib
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

import anyio
import httpx

from .logging import get_logger

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://api.twist.com/api/v3"

Recipients = Literal["EVERYONE", "EVERYONE_IN_THREAD"] | list[int]
SearchType = Literal["threads", "messages", "all"]
ReactionTarget = Literal["thread", "comment", "message"]


class TwistApiError(RuntimeError):
    def __init__(
        self,
        message: str,
        *,
        error: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.error = error
        self.status_code = status_code


def _parse_timestamp(payload: dict[str, Any], key: str) -> datetime | None:
    ts = payload.get(f"{key}_ts")
    if isinstance(ts, (int, float)) and not isinstance(ts, bool):
        return datetime.fromtimestamp(ts, tz=timezone.utc)
    value = payload.get(key)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return None


def _opt_int(value: object) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    return None


def _opt_str(value: object) -> str | None:
    return value if isinstance(value, str) else None


@dataclass(frozen=True, slots=True)
class Workspace:
    id: int
    name: str
    creator: int | None = None
    plan: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "Workspace":
        return cls(
            id=int(payload["id"]),
            name=str(payload.get("name") or ""),
            creator=_opt_int(payload.get("creator")),
            plan=_opt_str(payload.get("plan")),
            raw=payload,
        )


@dataclass(frozen=True, slots=True)
class User:
    id: int
    name: str
    email: str | None = None
    timezone: str | None = None
    default_workspace: int | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "User":
        return cls(
            id=int(payload["id"]),
            name=str(payload.get("name") or ""),
            email=_opt_str(payload.get("email")),
            timezone=_opt_str(payload.get("timezone")),
            default_workspace=_opt_int(payload.get("default_workspace")),
            raw=payload,
        )


@dataclass(frozen=True, slots=True)
class WorkspaceUser:
    id: int
    name: str
    email: str | None = None
    user_type: str | None = None
    bot: bool = False
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "WorkspaceUser":
        return cls(
            id=int(payload["id"]),
            name=str(payload.get("name") or ""),
            email=_opt_str(payload.get("email")),
            user_type=_opt_str(payload.get("user_type")),
            bot=payload.get("bot") is True,
            raw=payload,
        )


@dataclass(frozen=True, slots=True)
class Channel:
    id: int
    name: str
    workspace_id: int | None = None
    public: bool = False
    archived: bool = False
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "Channel":
        return cls(
            id=int(payload["id"]),
            name=str(payload.get("name") or ""),
            workspace_id=_opt_int(payload.get("workspace_id")),
            public=payload.get("public") is True,
            archived=payload.get("archived") is True,
            raw=payload,
        )


@dataclass(frozen=True, slots=True)
class Thread:
    id: int
    title: str
    content: str
    channel_id: int
    workspace_id: int
    creator: int
    posted: datetime | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "Thread":
        return cls(
            id=int(payload["id"]),
            title=str(payload.get("title") or ""),
            content=str(payload.get("content") or ""),
            channel_id=int(payload["channel_id"]),
            workspace_id=int(payload["workspace_id"]),
            creator=int(payload.get("creator") or 0),
            posted=_parse_timestamp(payload, "posted"),
            raw=payload,
        )


@dataclass(frozen=True, slots=True)
class Comment:
    id: int
    content: str
    creator: int
    thread_id: int | None = None
    posted: datetime | None = None
    obj_index: int = 0
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "Comment":
        return cls(
            id=int(payload["id"]),
            content=str(payload.get("content") or ""),
            creator=int(payload.get("creator") or 0),
            thread_id=_opt_int(payload.get("thread_id")),
            posted=_parse_timestamp(payload, "posted"),
            obj_index=_opt_int(payload.get("obj_index")) or 0,
            raw=payload,
        )


@dataclass(frozen=True, slots=True)
class UnreadThread:
    thread_id: int
    channel_id: int | None = None
    obj_index: int = 0

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "UnreadThread":
        return cls(
            thread_id=int(payload["thread_id"]),
            channel_id=_opt_int(payload.get("channel_id")),
            obj_index=_opt_int(payload.get("obj_index")) or 0,
        )


@dataclass(frozen=True, slots=True)
class Conversation:
    id: int
    workspace_id: int
    user_ids: tuple[int, ...] = ()
    title: str | None = None
    archived: bool = False
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "Conversation":
        user_ids = payload.get("user_ids")
        return cls(
            id=int(payload["id"]),
            workspace_id=int(payload["workspace_id"]),
            user_ids=tuple(int(uid) for uid in user_ids)
            if isinstance(user_ids, list)
            else (),
            title=_opt_str(payload.get("title")) or None,
            archived=payload.get("archived") is True,
            raw=payload,
        )


@dataclass(frozen=True, slots=True)
class UnreadConversation:
    conversation_id: int
    obj_index: int = 0

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "UnreadConversation":
        return cls(
            conversation_id=int(payload["conversation_id"]),
            obj_index=_opt_int(payload.get("obj_index")) or 0,
        )


@dataclass(frozen=True, slots=True)
class ConversationMessage:
    id: int
    content: str
    creator: int
    conversation_id: int | None = None
    posted: datetime | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "ConversationMessage":
        return cls(
            id=int(payload["id"]),
            content=str(payload.get("content") or ""),
            creator=int(payload.get("creator") or 0),
            conversation_id=_opt_int(payload.get("conversation_id")),
            posted=_parse_timestamp(payload, "posted"),
            raw=payload,
        )


@dataclass(frozen=True, slots=True)
class SearchResult:
    type: str
    snippet: str
    title: str | None = None
    snippet_last_updated: datetime | None = None
    channel_id: int | None = None
    thread_id: int | None = None
    comment_id: int | None = None
    conversation_id: int | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> "SearchResult":
        return cls(
            type=str(payload.get("type") or ""),
            snippet=str(payload.get("snippet") or ""),
            title=_opt_str(payload.get("title")) or None,
            snippet_last_updated=_parse_timestamp(payload, "snippet_last_updated"),
            channel_id=_opt_int(payload.get("channel_id")),
            thread_id=_opt_int(payload.get("thread_id")),
            comment_id=_opt_int(payload.get("comment_id")),
            conversation_id=_opt_int(payload.get("conversation_id")),
            raw=payload,
        )


@dataclass(frozen=True, slots=True)
class SearchPage:
    items: list[SearchResult]
    next_cursor: str | None = None
    has_more: bool = False
    is_plan_restricted: bool = False


async def gather(*calls: Awaitable[Any]) -> list[Any]:
    """Await ``calls`` concurrently; results keep the order of ``calls``."""
    results: list[Any] = [None] * len(calls)

    async def _run(index: int, call: Awaitable[Any]) -> None:
        results[index] = await call

    try:
        async with anyio.create_task_group() as tg:
            for index, call in enumerate(calls):
                tg.start_soon(_run, index, call)
    except BaseExceptionGroup as group:
        # Re-raise the first leaf failure unwrapped.
        first = group.exceptions[0]
        while isinstance(first, BaseExceptionGroup):
            first = first.exceptions[0]
        raise first from group
    return results


def _as_list(payload: Any, *, endpoint: str) -> list[dict[str, Any]]:
    if not isinstance(payload, list):
        raise TwistApiError(f"Twist {endpoint} returned an unexpected payload")
    return [item for item in payload if isinstance(item, dict)]


def _as_dict(payload: Any, *, endpoint: str) -> dict[str, Any]:
    if not isinstance(payload, dict):
        raise TwistApiError(f"Twist {endpoint} returned an unexpected payload")
    return payload


class TwistClient:
    def __init__(
        self,
        token: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout_s: float = 30.0,
    ) -> None:
        self._token = token
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout_s,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        endpoint: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        return await _request_with_client(
            self._client,
            method,
            endpoint,
            params=params,
            json=json,
        )

    async def get_workspaces(self) -> list[Workspace]:
        payload = await self._request("GET", "/workspaces/get")
        items = _as_list(payload, endpoint="workspaces/get")
        return [Workspace.from_api(item) for item in items]

    async def get_session_user(self) -> User:
        payload = await self._request("GET", "/users/get_session_user")
        return User.from_api(_as_dict(payload, endpoint="users/get_session_user"))

    async def get_workspace_users(self, workspace_id: int) -> list[WorkspaceUser]:
        payload = await self._request(
            "GET", "/workspace_users/get", params={"id": workspace_id}
        )
        items = _as_list(payload, endpoint="workspace_users/get")
        return [WorkspaceUser.from_api(item) for item in items]

    async def get_workspace_user(
        self, *, workspace_id: int, user_id: int
    ) -> WorkspaceUser:
        payload = await self._request(
            "GET",
            "/workspace_users/getone",
            params={"id": workspace_id, "user_id": user_id},
        )
        return WorkspaceUser.from_api(
            _as_dict(payload, endpoint="workspace_users/getone")
        )

    async def get_channels(self, workspace_id: int) -> list[Channel]:
        payload = await self._request(
            "GET", "/channels/get", params={"workspace_id": workspace_id}
        )
        items = _as_list(payload, endpoint="channels/get")
        return [Channel.from_api(item) for item in items]

    async def get_channel(self, channel_id: int) -> Channel:
        payload = await self._request(
            "GET", "/channels/getone", params={"id": channel_id}
        )
        return Channel.from_api(_as_dict(payload, endpoint="channels/getone"))

    async def get_thread(self, thread_id: int) -> Thread:
        payload = await self._request(
            "GET", "/threads/getone", params={"id": thread_id}
        )
        return Thread.from_api(_as_dict(payload, endpoint="threads/getone"))

    async def get_unread_threads(self, workspace_id: int) -> list[UnreadThread]:
        payload = await self._request(
            "GET", "/threads/get_unread", params={"workspace_id": workspace_id}
        )
        items = _as_list(payload, endpoint="threads/get_unread")
        return [UnreadThread.from_api(item) for item in items]

    async def get_comments(
        self,
        *,
        thread_id: int,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int | None = None,
    ) -> list[Comment]:
        params: dict[str, Any] = {"thread_id": thread_id}
        if since is not None:
            params["from"] = int(since.timestamp())
        if until is not None:
            params["to"] = int(until.timestamp())
        if limit is not None:
            params["limit"] = limit
        payload = await self._request("GET", "/comments/get", params=params)
        items = _as_list(payload, endpoint="comments/get")
        return [Comment.from_api(item) for item in items]

    async def get_comment(self, comment_id: int) -> Comment:
        payload = await self._request(
            "GET", "/comments/getone", params={"id": comment_id}
        )
        return Comment.from_api(_as_dict(payload, endpoint="comments/getone"))

    async def add_comment(
        self,
        *,
        thread_id: int,
        content: str,
        recipients: Recipients | None = None,
    ) -> Comment:
        data: dict[str, Any] = {"thread_id": thread_id, "content": content}
        if recipients is not None:
            data["recipients"] = recipients
        payload = await self._request("POST", "/comments/add", json=data)
        return Comment.from_api(_as_dict(payload, endpoint="comments/add"))

    async def get_inbox(
        self,
        *,
        workspace_id: int,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int | None = None,
    ) -> list[Thread]:
        params: dict[str, Any] = {"workspace_id": workspace_id}
        if since is not None:
            params["newer_than_ts"] = int(since.timestamp())
        if until is not None:
            params["older_than_ts"] = int(until.timestamp())
        if limit is not None:
            params["limit"] = limit
        payload = await self._request("GET", "/inbox/get", params=params)
        items = _as_list(payload, endpoint="inbox/get")
        return [Thread.from_api(item) for item in items]

    async def archive_thread(self, thread_id: int) -> None:
        await self._request("POST", "/inbox/archive", json={"id": thread_id})

    async def get_unread_conversations(
        self, workspace_id: int
    ) -> list[UnreadConversation]:
        payload = await self._request(
            "GET",
            "/conversations/get_unread",
            params={"workspace_id": workspace_id},
        )
        items = _as_list(payload, endpoint="conversations/get_unread")
        return [UnreadConversation.from_api(item) for item in items]

    async def get_conversation(self, conversation_id: int) -> Conversation:
        payload = await self._request(
            "GET", "/conversations/getone", params={"id": conversation_id}
        )
        return Conversation.from_api(
            _as_dict(payload, endpoint="conversations/getone")
        )

    async def archive_conversation(self, conversation_id: int) -> None:
        await self._request(
            "POST", "/conversations/archive", json={"id": conversation_id}
        )

    async def get_conversation_messages(
        self,
        *,
        conversation_id: int,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int | None = None,
    ) -> list[ConversationMessage]:
        params: dict[str, Any] = {"conversation_id": conversation_id}
        if since is not None:
            params["newer_than_ts"] = int(since.timestamp())
        if until is not None:
            params["older_than_ts"] = int(until.timestamp())
        if limit is not None:
            params["limit"] = limit
        payload = await self._request(
            "GET", "/conversation_messages/get", params=params
        )
        items = _as_list(payload, endpoint="conversation_messages/get")
        return [ConversationMessage.from_api(item) for item in items]

    async def add_conversation_message(
        self, *, conversation_id: int, content: str
    ) -> ConversationMessage:
        payload = await self._request(
            "POST",
            "/conversation_messages/add",
            json={"conversation_id": conversation_id, "content": content},
        )
        return ConversationMessage.from_api(
            _as_dict(payload, endpoint="conversation_messages/add")
        )

    async def add_reaction(
        self, *, target: ReactionTarget, target_id: int, reaction: str
    ) -> None:
        data = {f"{target}_id": target_id, "reaction": reaction}
        await self._request("POST", "/reactions/add", json=data)

    async def remove_reaction(
        self, *, target: ReactionTarget, target_id: int, reaction: str
    ) -> None:
        data = {f"{target}_id": target_id, "reaction": reaction}
        await self._request("POST", "/reactions/remove", json=data)

    async def search(
        self,
        *,
        workspace_id: int,
        query: str | None = None,
        title: str | None = None,
        search_type: SearchType | None = None,
        channel_ids: Sequence[int] | None = None,
        conversation_ids: Sequence[int] | None = None,
        author_ids: Sequence[int] | None = None,
        to_user_ids: Sequence[int] | None = None,
        mention_self: bool = False,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int | None = None,
        cursor: str | None = None,
    ) -> SearchPage:
        params: dict[str, Any] = {"workspace_id": workspace_id}
        if query:
            params["query"] = query
        if title:
            params["title"] = title
            params.setdefault("query", title)
        if search_type:
            params["type"] = search_type
        if channel_ids:
            params["channel_ids"] = jsonlib.dumps(list(channel_ids))
        if conversation_ids:
            params["conversation_ids"] = jsonlib.dumps(list(conversation_ids))
        # The endpoint filters on a single author / recipient.
        if author_ids:
            params["from_user_id"] = author_ids[0]
        if to_user_ids:
            params["to_user_id"] = to_user_ids[0]
        if mention_self:
            params["mention_self"] = "true"
        if since is not None:
            params["after_ts"] = int(since.timestamp())
        if until is not None:
            params["before_ts"] = int(until.timestamp())
        if limit is not None:
            params["limit"] = limit
        if cursor:
            params["cursor_mark"] = cursor
        payload = _as_dict(
            await self._request("GET", "/search", params=params), endpoint="search"
        )
        items = payload.get("items")
        return SearchPage(
            items=[
                SearchResult.from_api(item)
                for item in (items if isinstance(items, list) else [])
                if isinstance(item, dict)
            ],
            next_cursor=_opt_str(payload.get("next_cursor_mark")) or None,
            has_more=payload.get("has_more") is True,
            is_plan_restricted=payload.get("is_plan_restricted") is True,
        )


def _error_message(response: httpx.Response) -> tuple[str, str | None]:
    try:
        body = response.json()
    except ValueError:
        return f"Twist HTTP {response.status_code}", None
    if not isinstance(body, dict):
        return f"Twist HTTP {response.status_code}", None
    error = body.get("error_string") or body.get("error")
    code = body.get("error_code")
    if not isinstance(error, str) or not error:
        return f"Twist HTTP {response.status_code}", None
    return f"Twist API error: {error}", str(code) if code is not None else error


async def _request_with_client(
    client: httpx.AsyncClient,
    method: str,
    endpoint: str,
    *,
    params: dict[str, Any] | None = None,
    json: dict[str, Any] | None = None,
) -> Any:
    while True:
        try:
            response = await client.request(
                method, endpoint, params=params, json=json
            )
        except httpx.HTTPError as exc:
            logger.warning("twist.network_error", endpoint=endpoint, error=str(exc))
            raise TwistApiError("Twist request failed") from exc

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            try:
                delay = int(retry_after) if retry_after is not None else 1
            except ValueError:
                delay = 1
            logger.info("twist.rate_limited", endpoint=endpoint, retry_after=delay)
            await anyio.sleep(delay)
            continue

        if response.status_code >= 400:
            message, error = _error_message(response)
            raise TwistApiError(
                message,
                error=error,
                status_code=response.status_code,
            )

        logger.debug("twist.request", method=method, endpoint=endpoint)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise TwistApiError("Twist response was not JSON") from exc
