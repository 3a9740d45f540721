"""Parsing and resolution of user-supplied references.

A reference is whatever the user typed to point at something: ``id:123``,
a bare ``123``, a link copied from the Twist web app, or a free-text name.
Only workspaces (and users) can be looked up by name; threads, comments,
conversations and messages must be given by ID or URL.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass, fields
from typing import TYPE_CHECKING, Protocol, TypeVar
from urllib.parse import urlsplit

from .errors import AmbiguousReference, InvalidReference, NotFound, UnsupportedReferenceKind

if TYPE_CHECKING:
    from .client import Workspace, WorkspaceUser

ID_PREFIX = "id:"
TWIST_DOMAIN = "twist.com"
TWIST_WEB_URL = "https://twist.com"
MAX_CANDIDATES = 5

_URL_PATTERNS = {
    "workspace_id": re.compile(r"/a/(\d+)"),
    "channel_id": re.compile(r"/ch/(\d+)"),
    "thread_id": re.compile(r"/t/(\d+)"),
    "comment_id": re.compile(r"/c/(\d+)"),
    "conversation_id": re.compile(r"/msg/(\d+)"),
    "message_id": re.compile(r"/m/(\d+)"),
}


@dataclass(frozen=True, slots=True)
class ParsedUrl:
    workspace_id: int | None = None
    channel_id: int | None = None
    thread_id: int | None = None
    comment_id: int | None = None
    conversation_id: int | None = None
    message_id: int | None = None

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))


@dataclass(frozen=True, slots=True)
class IdRef:
    id: int


@dataclass(frozen=True, slots=True)
class UrlRef:
    parsed: ParsedUrl


@dataclass(frozen=True, slots=True)
class NameRef:
    name: str


Reference = IdRef | UrlRef | NameRef


class Named(Protocol):
    @property
    def id(self) -> int: ...

    @property
    def name(self) -> str: ...


NamedT = TypeVar("NamedT", bound=Named)


class WorkspaceSource(Protocol):
    async def fetch_workspaces(self) -> list[Workspace]: ...


class WorkspaceUserSource(Protocol):
    async def get_workspace_users(self, workspace_id: int) -> list[WorkspaceUser]: ...


def is_id_ref(value: str) -> bool:
    return value.startswith(ID_PREFIX)


def _parse_int(value: str) -> int | None:
    # str(int(x)) == x rejects "+12", " 12", "12.5" and "007".
    try:
        number = int(value, 10)
    except ValueError:
        return None
    if str(number) != value:
        return None
    return number


def extract_id(value: str) -> int:
    """Accept ``id:N`` or a bare ``N`` and nothing else."""
    raw = value[len(ID_PREFIX) :] if is_id_ref(value) else value
    number = _parse_int(raw)
    if number is None:
        raise InvalidReference(f"Invalid ID: {value}")
    return number


def parse_twist_url(url: str) -> ParsedUrl | None:
    try:
        parts = urlsplit(url)
        hostname = parts.hostname
    except ValueError:
        return None
    if not parts.scheme or not hostname:
        return None
    if TWIST_DOMAIN not in hostname.lower():
        return None

    values: dict[str, int] = {}
    for name, pattern in _URL_PATTERNS.items():
        match = pattern.search(parts.path)
        if match is not None:
            values[name] = int(match.group(1))
    parsed = ParsedUrl(**values)
    return None if parsed.is_empty() else parsed


def parse_ref(value: str) -> Reference:
    if is_id_ref(value):
        return IdRef(extract_id(value))

    if value.startswith(("http://", "https://")):
        parsed = parse_twist_url(value)
        if parsed is not None:
            return UrlRef(parsed)

    number = _parse_int(value)
    if number is not None:
        return IdRef(number)

    return NameRef(value)


def build_twist_url(
    workspace_id: int,
    *,
    channel_id: int | None = None,
    thread_id: int | None = None,
    comment_id: int | None = None,
    conversation_id: int | None = None,
    message_id: int | None = None,
) -> str:
    url = f"{TWIST_WEB_URL}/a/{workspace_id}"
    if conversation_id is not None:
        url += f"/msg/{conversation_id}"
        if message_id is not None:
            url += f"/m/{message_id}"
        return url
    if channel_id is not None:
        url += f"/ch/{channel_id}"
        if thread_id is not None:
            url += f"/t/{thread_id}"
            if comment_id is not None:
                url += f"/c/{comment_id}"
    return url


def _resolve_numeric(ref: str, *, kind: str, url_field: str) -> int:
    parsed = parse_ref(ref)
    if isinstance(parsed, IdRef):
        return parsed.id
    if isinstance(parsed, UrlRef):
        value = getattr(parsed.parsed, url_field)
        if value is not None:
            return value
    raise UnsupportedReferenceKind(kind, ref)


def resolve_thread_id(ref: str) -> int:
    return _resolve_numeric(ref, kind="thread", url_field="thread_id")


def resolve_comment_id(ref: str) -> int:
    return _resolve_numeric(ref, kind="comment", url_field="comment_id")


def resolve_conversation_id(ref: str) -> int:
    return _resolve_numeric(ref, kind="conversation", url_field="conversation_id")


def resolve_message_id(ref: str) -> int:
    return _resolve_numeric(ref, kind="message", url_field="message_id")


def _match_by_name(items: Sequence[NamedT], name: str) -> list[NamedT]:
    """Exact case-insensitive match wins; otherwise every substring match."""
    lower = name.lower()
    for item in items:
        if item.name.lower() == lower:
            return [item]
    return [item for item in items if lower in item.name.lower()]


def _format_candidates(items: Sequence[Named]) -> str:
    return ", ".join(
        f'"{item.name}" (id:{item.id})' for item in items[:MAX_CANDIDATES]
    )


async def resolve_workspace_ref(source: WorkspaceSource, ref: str) -> Workspace:
    workspaces = await source.fetch_workspaces()
    parsed = parse_ref(ref)

    workspace_id: int | None = None
    if isinstance(parsed, IdRef):
        workspace_id = parsed.id
    elif isinstance(parsed, UrlRef):
        workspace_id = parsed.parsed.workspace_id

    if workspace_id is not None:
        for workspace in workspaces:
            if workspace.id == workspace_id:
                return workspace
        raise NotFound(f"Workspace with ID {workspace_id} not found")

    if isinstance(parsed, NameRef):
        matches = _match_by_name(workspaces, parsed.name)
        if len(matches) == 1:
            return matches[0]
        if len(matches) > 1:
            raise AmbiguousReference(
                f'Multiple workspaces match "{ref}": {_format_candidates(matches)}',
                candidates=matches[:MAX_CANDIDATES],
            )

    raise NotFound(f'Workspace "{ref}" not found')


async def resolve_user_refs(
    source: WorkspaceUserSource, refs: str, workspace_id: int
) -> list[int]:
    """Resolve a comma-separated list of user IDs or names to user IDs."""
    tokens = [token.strip() for token in refs.split(",") if token.strip()]
    if not tokens:
        raise InvalidReference(f"Invalid user reference: {refs!r}")

    users: list[WorkspaceUser] | None = None
    resolved: list[int] = []
    for token in tokens:
        parsed = parse_ref(token)
        if isinstance(parsed, IdRef):
            resolved.append(parsed.id)
            continue
        if not isinstance(parsed, NameRef):
            raise UnsupportedReferenceKind("user", token)
        if users is None:
            users = await source.get_workspace_users(workspace_id)
        matches = _match_by_name(users, parsed.name)
        if not matches:
            raise NotFound(f'User "{token}" not found')
        if len(matches) > 1:
            raise AmbiguousReference(
                f'Multiple users match "{token}": {_format_candidates(matches)}',
                candidates=matches[:MAX_CANDIDATES],
            )
        resolved.append(matches[0].id)
    return resolved
