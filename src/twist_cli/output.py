from __future__ import annotations

import json
import re
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from typing import Any, Literal

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape

console = Console(highlight=False, soft_wrap=True)
err_console = Console(stderr=True, highlight=False, soft_wrap=True)

AUTHOR = "cyan"
TIMESTAMP = "dim"
CHANNEL = "blue"
UNREAD = "bold"
URL = "dim"
ERROR = "red"

EntityType = Literal[
    "thread", "comment", "conversation", "message", "workspace", "user", "channel"
]

ESSENTIAL_FIELDS: dict[str, tuple[str, ...]] = {
    "thread": (
        "id",
        "title",
        "channelId",
        "workspaceId",
        "creator",
        "posted",
        "commentCount",
        "isArchived",
    ),
    "comment": ("id", "content", "creator", "threadId", "posted"),
    "conversation": (
        "id",
        "workspaceId",
        "userIds",
        "title",
        "messageCount",
        "lastActive",
        "archived",
    ),
    "message": ("id", "content", "creator", "conversationId", "posted"),
    "workspace": ("id", "name", "creator", "plan"),
    "user": ("id", "name", "email", "timezone", "userType"),
    "channel": ("id", "name", "workspaceId"),
}

_SNAKE_RE = re.compile(r"_([a-z0-9])")


def to_camel(key: str) -> str:
    return _SNAKE_RE.sub(lambda m: m.group(1).upper(), key)


def camelize(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {to_camel(str(k)): camelize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [camelize(item) for item in value]
    return value


def to_output(item: Any, **extra: Any) -> dict[str, Any]:
    """Camel-cased API payload of ``item`` merged with computed fields."""
    raw = getattr(item, "raw", item)
    data = camelize(dict(raw))
    data.update(extra)
    return data


def _pick(item: Mapping[str, Any], names: Sequence[str]) -> dict[str, Any]:
    return {name: item[name] for name in names if name in item}


def _project(
    items: Iterable[Mapping[str, Any]], entity: EntityType | None, full: bool
) -> list[dict[str, Any]]:
    if full or entity is None:
        return [dict(item) for item in items]
    names = ESSENTIAL_FIELDS[entity]
    return [_pick(item, names) for item in items]


def _default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (set, tuple)):
        return list(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def dumps(value: Any, *, indent: int | None = None) -> str:
    return json.dumps(value, indent=indent, ensure_ascii=False, default=_default)


def format_json(
    data: Mapping[str, Any] | Sequence[Mapping[str, Any]],
    entity: EntityType | None = None,
    full: bool = False,
) -> str:
    if isinstance(data, Mapping):
        return dumps(_project([data], entity, full)[0], indent=2)
    return dumps(_project(data, entity, full), indent=2)


def format_ndjson(
    items: Sequence[Mapping[str, Any]],
    entity: EntityType | None = None,
    full: bool = False,
) -> str:
    return "\n".join(dumps(item) for item in _project(items, entity, full))


def format_paginated_json(
    results: Sequence[Mapping[str, Any]],
    next_cursor: str | None,
    entity: EntityType | None = None,
    full: bool = False,
) -> str:
    return dumps(
        {"results": _project(results, entity, full), "nextCursor": next_cursor},
        indent=2,
    )


def format_paginated_ndjson(
    results: Sequence[Mapping[str, Any]],
    next_cursor: str | None,
    entity: EntityType | None = None,
    full: bool = False,
) -> str:
    lines = [dumps(item) for item in _project(results, entity, full)]
    if next_cursor:
        lines.append(dumps({"_meta": True, "nextCursor": next_cursor}))
    return "\n".join(lines)


def styled(text: object, style: str) -> str:
    return f"[{style}]{escape(str(text))}[/{style}]"


def echo(line: str = "") -> None:
    console.print(line)


def echo_plain(text: str) -> None:
    """Write machine-readable output without markup or wrapping."""
    console.out(text, highlight=False)


def print_error(message: str) -> None:
    err_console.print(styled(message, ERROR))


def print_content(content: str, *, raw: bool) -> None:
    if raw:
        console.out(content, highlight=False)
    else:
        console.print(Markdown(content))


def print_separator(label: str, *, width: int = 60) -> None:
    padded = f" {label} "
    remaining = max(width - len(padded), 0)
    left = remaining // 2
    echo()
    echo(styled("─" * left + padded + "─" * (remaining - left), TIMESTAMP))
    echo()


def pluralize(count: int, singular: str) -> str:
    return singular if count == 1 else f"{singular}s"
