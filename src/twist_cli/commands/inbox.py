from __future__ import annotations

from typing import Annotated, Optional

import typer

from ..client import Thread, gather
from ..dates import format_relative_date
from ..output import (
    CHANNEL,
    TIMESTAMP,
    URL,
    echo,
    echo_plain,
    escape,
    format_json,
    format_ndjson,
    styled,
    to_output,
)
from ..refs import build_twist_url
from ..session import Session
from ..visibility import include_private_channels
from .common import (
    FullFlag,
    JsonFlag,
    LimitOption,
    NdjsonFlag,
    SinceOption,
    UntilOption,
    WorkspaceArg,
    WorkspaceOption,
    parse_date_option,
    run_command,
)


def _thread_url(thread: Thread) -> str:
    return build_twist_url(
        thread.workspace_id, channel_id=thread.channel_id, thread_id=thread.id
    )


def group_by_channel(
    threads: list[Thread], unread_ids: set[int]
) -> list[Thread]:
    """Keep channel order of first appearance; unread first, newest first."""
    groups: dict[int, list[Thread]] = {}
    for thread in threads:
        groups.setdefault(thread.channel_id, []).append(thread)

    def _newest_first(items: list[Thread]) -> list[Thread]:
        return sorted(items, key=lambda t: t.posted.timestamp() if t.posted else 0.0, reverse=True)

    ordered: list[Thread] = []
    for group in groups.values():
        ordered.extend(_newest_first([t for t in group if t.id in unread_ids]))
        ordered.extend(_newest_first([t for t in group if t.id not in unread_ids]))
    return ordered


async def show_inbox(
    session: Session,
    workspace_ref: str | None,
    *,
    workspace: str | None,
    channel: str | None,
    unread: bool,
    since: str | None,
    until: str | None,
    limit: int,
    as_json: bool,
    as_ndjson: bool,
    full: bool,
) -> None:
    workspace_id = await session.resolve_workspace_id(workspace_ref, workspace)
    client = session.client

    threads, unread_threads = await gather(
        client.get_inbox(
            workspace_id=workspace_id,
            since=parse_date_option(since, option="--since"),
            until=parse_date_option(until, option="--until"),
            limit=limit,
        ),
        client.get_unread_threads(workspace_id),
    )
    unread_ids = {u.thread_id for u in unread_threads}
    if unread:
        threads = [t for t in threads if t.id in unread_ids]

    if not threads:
        echo("No threads in inbox.")
        return

    channel_ids = list(dict.fromkeys(t.channel_id for t in threads))
    channels = await gather(*(client.get_channel(cid) for cid in channel_ids))
    channel_names = {ch.id: ch.name for ch in channels}

    if not include_private_channels():
        public_ids = await session.public_channels.get_public_channel_ids(workspace_id)
        threads = [t for t in threads if t.channel_id in public_ids]
        if not threads:
            echo("No threads in public channels.")
            return

    if channel:
        needle = channel.lower()
        matching = {cid for cid, name in channel_names.items() if needle in name.lower()}
        threads = [t for t in threads if t.channel_id in matching]
        if not threads:
            echo(f'No threads in channels matching "{escape(channel)}".')
            return

    ordered = group_by_channel(threads, unread_ids)

    if as_json or as_ndjson:
        output = [
            to_output(
                t,
                isUnread=t.id in unread_ids,
                channelName=channel_names.get(t.channel_id),
                url=_thread_url(t),
            )
            for t in ordered
        ]
        if as_json:
            echo_plain(format_json(output, "thread", full))
        else:
            echo_plain(format_ndjson(output, "thread", full))
        return

    current_channel: int | None = None
    for thread in ordered:
        if thread.channel_id != current_channel:
            name = channel_names.get(thread.channel_id) or f"ch:{thread.channel_id}"
            if current_channel is not None:
                echo()
            echo(styled(f"[{name}]", f"bold {CHANNEL}"))
            echo()
            current_channel = thread.channel_id

        is_unread = thread.id in unread_ids
        title = styled(thread.title, "bold") if is_unread else escape(thread.title)
        badge = styled(" *", CHANNEL) if is_unread else ""
        echo(f"  {title}{badge}")
        echo(
            f"    {styled(format_relative_date(thread.posted), TIMESTAMP)}  "
            f"{styled(f'id:{thread.id}', TIMESTAMP)}"
        )
        echo(f"    {styled(_thread_url(thread), URL)}")
        echo()


def inbox(
    ctx: typer.Context,
    workspace_ref: WorkspaceArg = None,
    workspace: WorkspaceOption = None,
    channel: Annotated[
        Optional[str],
        typer.Option("--channel", help="Filter by channel name (fuzzy match)."),
    ] = None,
    unread: Annotated[
        bool, typer.Option("--unread", help="Only show unread threads.")
    ] = False,
    since: SinceOption = None,
    until: UntilOption = None,
    limit: LimitOption = 50,
    as_json: JsonFlag = False,
    as_ndjson: NdjsonFlag = False,
    full: FullFlag = False,
) -> None:
    """Show inbox threads."""
    run_command(
        ctx,
        show_inbox,
        workspace_ref,
        workspace=workspace,
        channel=channel,
        unread=unread,
        since=since,
        until=until,
        limit=limit,
        as_json=as_json,
        as_ndjson=as_ndjson,
        full=full,
    )


def register(root: typer.Typer) -> None:
    root.command("inbox")(inbox)
