from __future__ import annotations

from typing import Annotated, Optional

import typer

from ..client import SearchResult, SearchType
from ..dates import format_relative_date
from ..output import (
    CHANNEL,
    TIMESTAMP,
    URL,
    echo,
    echo_plain,
    escape,
    format_paginated_json,
    format_paginated_ndjson,
    styled,
    to_output,
)
from ..refs import build_twist_url, resolve_user_refs
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
    parse_id_list,
    run_command,
)


def search_result_url(workspace_id: int, result: SearchResult) -> str:
    if result.type == "thread" and result.thread_id and result.channel_id:
        return build_twist_url(
            workspace_id, channel_id=result.channel_id, thread_id=result.thread_id
        )
    if (
        result.type == "comment"
        and result.thread_id
        and result.channel_id
        and result.comment_id
    ):
        return build_twist_url(
            workspace_id,
            channel_id=result.channel_id,
            thread_id=result.thread_id,
            comment_id=result.comment_id,
        )
    if result.type == "message" and result.conversation_id:
        return build_twist_url(workspace_id, conversation_id=result.conversation_id)
    return build_twist_url(workspace_id)


async def run_search(
    session: Session,
    query: str,
    workspace_ref: str | None,
    *,
    workspace: str | None,
    channel: str | None,
    author: str | None,
    to: str | None,
    search_type: SearchType | None,
    title_only: bool,
    conversation: str | None,
    mention_me: bool,
    since: str | None,
    until: str | None,
    limit: int,
    cursor: str | None,
    as_json: bool,
    as_ndjson: bool,
    full: bool,
) -> None:
    workspace_id = await session.resolve_workspace_id(workspace_ref, workspace)
    author_ids = await resolve_user_refs(session, author, workspace_id) if author else None
    to_user_ids = await resolve_user_refs(session, to, workspace_id) if to else None

    page = await session.client.search(
        workspace_id=workspace_id,
        query=None if title_only else query,
        title=query if title_only else None,
        search_type=search_type,
        channel_ids=parse_id_list(channel),
        conversation_ids=parse_id_list(conversation),
        author_ids=author_ids,
        to_user_ids=to_user_ids,
        mention_self=mention_me,
        since=parse_date_option(since, option="--since"),
        until=parse_date_option(until, option="--until"),
        limit=limit,
        cursor=cursor,
    )

    items = page.items
    if not include_private_channels():
        public_ids = await session.public_channels.get_public_channel_ids(workspace_id)
        items = [r for r in items if not r.channel_id or r.channel_id in public_ids]

    if not items:
        if page.has_more and page.next_cursor:
            echo("No public results on this page.")
            echo(styled(f"More results available. Use --cursor {page.next_cursor}", TIMESTAMP))
        else:
            echo("No results found.")
        return

    if as_json or as_ndjson:
        output = [to_output(r, url=search_result_url(workspace_id, r)) for r in items]
        formatter = format_paginated_json if as_json else format_paginated_ndjson
        echo_plain(formatter(output, page.next_cursor, None, full))
        return

    for result in items:
        title = result.title or result.snippet[:50]
        echo(f"{styled(f'[{result.type}]', CHANNEL)} {escape(title)}")
        echo(f"  {styled(result.snippet[:100], TIMESTAMP)}")
        echo(
            f"  {styled(format_relative_date(result.snippet_last_updated), TIMESTAMP)}  "
            f"{styled(search_result_url(workspace_id, result), URL)}"
        )
        echo()

    if page.has_more:
        echo(styled(f"More results available. Use --cursor {page.next_cursor}", TIMESTAMP))


def search(
    ctx: typer.Context,
    query: Annotated[str, typer.Argument(help="Text to search for.")],
    workspace_ref: WorkspaceArg = None,
    workspace: WorkspaceOption = None,
    channel: Annotated[
        Optional[str],
        typer.Option("--channel", help="Filter by channels (comma-separated IDs)."),
    ] = None,
    author: Annotated[
        Optional[str],
        typer.Option("--author", help="Filter by author (comma-separated IDs or names)."),
    ] = None,
    to: Annotated[
        Optional[str],
        typer.Option("--to", help="Messages sent to user (comma-separated IDs or names)."),
    ] = None,
    search_type: Annotated[
        Optional[str],
        typer.Option("--type", help="Filter: threads, messages, or all."),
    ] = None,
    title_only: Annotated[
        bool, typer.Option("--title-only", help="Search in thread titles only.")
    ] = False,
    conversation: Annotated[
        Optional[str],
        typer.Option(
            "--conversation", help="Limit to conversations (comma-separated IDs)."
        ),
    ] = None,
    mention_me: Annotated[
        bool,
        typer.Option("--mention-me", help="Only results mentioning the current user."),
    ] = False,
    since: SinceOption = None,
    until: UntilOption = None,
    limit: LimitOption = 50,
    cursor: Annotated[
        Optional[str], typer.Option("--cursor", help="Pagination cursor.")
    ] = None,
    as_json: JsonFlag = False,
    as_ndjson: NdjsonFlag = False,
    full: FullFlag = False,
) -> None:
    """Search content across a workspace."""
    if search_type is not None and search_type not in {"threads", "messages", "all"}:
        raise typer.BadParameter(
            "expected threads, messages or all", param_hint="--type"
        )
    run_command(
        ctx,
        run_search,
        query,
        workspace_ref,
        workspace=workspace,
        channel=channel,
        author=author,
        to=to,
        search_type=search_type,
        title_only=title_only,
        conversation=conversation,
        mention_me=mention_me,
        since=since,
        until=until,
        limit=limit,
        cursor=cursor,
        as_json=as_json,
        as_ndjson=as_ndjson,
        full=full,
    )


def register(root: typer.Typer) -> None:
    root.command("search")(search)
