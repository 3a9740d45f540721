from __future__ import annotations

from typing import Annotated, Optional

import typer

from ..client import Comment, Recipients, Thread, gather
from ..dates import format_relative_date
from ..errors import TwistCliError
from ..output import (
    AUTHOR,
    CHANNEL,
    TIMESTAMP,
    dumps,
    echo,
    echo_plain,
    format_json,
    pluralize,
    print_content,
    print_separator,
    styled,
    to_output,
)
from ..input import read_content
from ..refs import UrlRef, build_twist_url, extract_id, parse_ref, resolve_thread_id
from ..session import Session
from .common import (
    DryRunFlag,
    FullFlag,
    JsonFlag,
    NdjsonFlag,
    RawFlag,
    SinceOption,
    UntilOption,
    parse_date_option,
    run_command,
)

app = typer.Typer(help="Thread operations.", no_args_is_help=True)

NOTIFY_KEYWORDS = ("EVERYONE", "EVERYONE_IN_THREAD")

ThreadRefArg = Annotated[str, typer.Argument(help="Thread ID or Twist URL.")]


def _author(user_names: dict[int, str], user_id: int) -> str:
    return user_names.get(user_id) or f"user:{user_id}"


def _comment_url(thread: Thread, comment_id: int) -> str:
    return build_twist_url(
        thread.workspace_id,
        channel_id=thread.channel_id,
        thread_id=thread.id,
        comment_id=comment_id,
    )


def _print_comment(comment: Comment, user_names: dict[int, str], *, raw: bool) -> None:
    echo(
        f"{styled(_author(user_names, comment.creator), AUTHOR)}  "
        f"{styled(format_relative_date(comment.posted), TIMESTAMP)}  "
        f"{styled(f'id:{comment.id}', TIMESTAMP)}"
    )
    print_content(comment.content, raw=raw)
    echo()


async def _view_single_comment(
    session: Session,
    thread_id: int,
    comment_id: int,
    *,
    raw: bool,
    as_json: bool,
    as_ndjson: bool,
    full: bool,
) -> None:
    client = session.client
    thread, comment = await gather(
        client.get_thread(thread_id), client.get_comment(comment_id)
    )
    await session.public_channels.assert_channel_is_public(
        thread.channel_id, thread.workspace_id
    )
    channel, user_names = await gather(
        client.get_channel(thread.channel_id),
        session.get_user_names(thread.workspace_id, {thread.creator, comment.creator}),
    )
    url = _comment_url(thread, comment.id)

    if as_json:
        output = to_output(
            comment,
            creatorName=user_names.get(comment.creator),
            channelName=channel.name,
            threadTitle=thread.title,
            url=url,
        )
        echo_plain(format_json(output, None, full))
        return
    if as_ndjson:
        echo_plain(
            dumps(
                {
                    "type": "comment",
                    **to_output(comment),
                    "creatorName": user_names.get(comment.creator),
                    "url": url,
                }
            )
        )
        return

    echo(styled(thread.title, "bold"))
    echo(styled(f"[{channel.name}]", CHANNEL))
    echo()
    _print_comment(comment, user_names, raw=raw)


async def view_thread(
    session: Session,
    ref: str,
    *,
    comment: str | None,
    unread: bool,
    context: int,
    limit: int,
    since: str | None,
    until: str | None,
    raw: bool,
    as_json: bool,
    as_ndjson: bool,
    full: bool,
) -> None:
    parsed = parse_ref(ref)
    thread_id = resolve_thread_id(ref)
    if comment is not None:
        comment_id: int | None = extract_id(comment)
    elif isinstance(parsed, UrlRef):
        comment_id = parsed.parsed.comment_id
    else:
        comment_id = None

    if comment_id is not None:
        await _view_single_comment(
            session,
            thread_id,
            comment_id,
            raw=raw,
            as_json=as_json,
            as_ndjson=as_ndjson,
            full=full,
        )
        return

    client = session.client
    thread, comments = await gather(
        client.get_thread(thread_id),
        client.get_comments(
            thread_id=thread_id,
            since=parse_date_option(since, option="--since"),
            until=parse_date_option(until, option="--until"),
            limit=limit,
        ),
    )
    await session.public_channels.assert_channel_is_public(
        thread.channel_id, thread.workspace_id
    )

    last_read: int | None = None
    if unread:
        unread_threads = await client.get_unread_threads(thread.workspace_id)
        entry = next((u for u in unread_threads if u.thread_id == thread_id), None)
        if entry is None:
            echo("No unread comments in this thread.")
            return
        last_read = entry.obj_index

    channel, user_names = await gather(
        client.get_channel(thread.channel_id),
        session.get_user_names(
            thread.workspace_id, {thread.creator, *(c.creator for c in comments)}
        ),
    )

    if as_json:
        output = {
            "thread": to_output(
                thread,
                channelName=channel.name,
                creatorName=user_names.get(thread.creator),
                url=build_twist_url(
                    thread.workspace_id,
                    channel_id=thread.channel_id,
                    thread_id=thread.id,
                ),
            ),
            "comments": [
                to_output(
                    c,
                    creatorName=user_names.get(c.creator),
                    url=_comment_url(thread, c.id),
                )
                for c in comments
            ],
        }
        echo_plain(format_json(output, None, full))
        return
    if as_ndjson:
        lines = [
            dumps(
                {
                    "type": "thread",
                    **to_output(thread),
                    "channelName": channel.name,
                    "creatorName": user_names.get(thread.creator),
                }
            )
        ]
        lines.extend(
            dumps(
                {
                    "type": "comment",
                    **to_output(c),
                    "creatorName": user_names.get(c.creator),
                }
            )
            for c in comments
        )
        echo_plain("\n".join(lines))
        return

    echo(styled(thread.title, "bold"))
    echo(styled(f"[{channel.name}]", CHANNEL))
    echo()

    creator = styled(_author(user_names, thread.creator), AUTHOR)
    posted = styled(format_relative_date(thread.posted), TIMESTAMP)

    if last_read is None:
        echo(f"{creator}  {posted}")
        echo()
        print_content(thread.content, raw=raw)
        echo()
        if comments:
            echo(styled(f"--- {len(comments)} {pluralize(len(comments), 'comment')} ---", TIMESTAMP))
            echo()
            for c in comments:
                _print_comment(c, user_names, raw=raw)
        return

    unread_comments = [c for c in comments if c.obj_index > last_read]
    read_comments = sorted(
        (c for c in comments if c.obj_index <= last_read),
        key=lambda c: c.obj_index,
    )
    context_comments = read_comments[-context:] if context > 0 else []

    if not unread_comments:
        echo("No unread comments.")
        return

    echo(f"{creator}  {posted}  {styled('(original post)', TIMESTAMP)}")
    echo()
    print_content(thread.content, raw=raw)

    if context_comments:
        skipped = context_comments[0].obj_index - 1
        if skipped > 0:
            print_separator(f"{skipped} {pluralize(skipped, 'comment')} skipped")
        else:
            echo()
        for c in context_comments:
            _print_comment(c, user_names, raw=raw)
    elif last_read > 0:
        print_separator(f"{last_read} {pluralize(last_read, 'comment')} skipped")

    print_separator(f"UNREAD ({len(unread_comments)} new)")
    for c in unread_comments:
        _print_comment(c, user_names, raw=raw)


def parse_recipients(value: str) -> Recipients:
    if value in NOTIFY_KEYWORDS:
        return value  # type: ignore[return-value]
    recipients: list[int] = []
    for token in value.split(","):
        token = token.strip()
        if not token.isdigit():
            raise TwistCliError(f"Invalid user ID: {token}")
        recipients.append(int(token))
    return recipients


async def reply_to_thread(
    session: Session,
    ref: str,
    content: str | None,
    *,
    notify: str,
    dry_run: bool,
) -> None:
    thread_id = resolve_thread_id(ref)
    recipients = parse_recipients(notify)
    body = read_content(content)
    if body is None:
        raise TwistCliError("No content provided.")

    if dry_run:
        echo(f"Dry run: would post comment to thread {thread_id}")
        shown = ", ".join(str(r) for r in recipients) if isinstance(recipients, list) else recipients
        echo(f"Notify: {shown}")
        echo()
        echo_plain(body)
        return

    client = session.client
    thread = await client.get_thread(thread_id)
    await session.public_channels.assert_channel_is_public(
        thread.channel_id, thread.workspace_id
    )
    comment = await client.add_comment(
        thread_id=thread_id, content=body, recipients=recipients
    )
    echo_plain(f"Comment posted: {_comment_url(thread, comment.id)}")


async def mark_thread_done(session: Session, ref: str, *, dry_run: bool) -> None:
    thread_id = resolve_thread_id(ref)
    if dry_run:
        echo(f"Dry run: would archive thread {thread_id}")
        return
    await session.client.archive_thread(thread_id)
    echo(f"Thread {thread_id} archived.")


@app.command("view")
def view(
    ctx: typer.Context,
    thread_ref: ThreadRefArg,
    comment: Annotated[
        Optional[str], typer.Option("--comment", help="Show only a specific comment.")
    ] = None,
    unread: Annotated[
        bool,
        typer.Option(
            "--unread", help="Show only unread comments (with the original post)."
        ),
    ] = False,
    context: Annotated[
        int,
        typer.Option(
            "--context", min=0, help="Include N read comments before unread ones."
        ),
    ] = 0,
    limit: Annotated[
        int, typer.Option("--limit", min=1, help="Max comments to show.")
    ] = 50,
    since: SinceOption = None,
    until: UntilOption = None,
    raw: RawFlag = False,
    as_json: JsonFlag = False,
    as_ndjson: NdjsonFlag = False,
    full: FullFlag = False,
) -> None:
    """Display a thread with its comments."""
    run_command(
        ctx,
        view_thread,
        thread_ref,
        comment=comment,
        unread=unread,
        context=context,
        limit=limit,
        since=since,
        until=until,
        raw=raw,
        as_json=as_json,
        as_ndjson=as_ndjson,
        full=full,
    )


@app.command("reply")
def reply(
    ctx: typer.Context,
    thread_ref: ThreadRefArg,
    content: Annotated[
        Optional[str], typer.Argument(help="Comment text; stdin or $EDITOR otherwise.")
    ] = None,
    notify: Annotated[
        str,
        typer.Option(
            "--notify",
            help="EVERYONE, EVERYONE_IN_THREAD, or comma-separated user IDs.",
        ),
    ] = "EVERYONE_IN_THREAD",
    dry_run: DryRunFlag = False,
) -> None:
    """Post a comment to a thread."""
    run_command(ctx, reply_to_thread, thread_ref, content, notify=notify, dry_run=dry_run)


@app.command("done")
def done(ctx: typer.Context, thread_ref: ThreadRefArg, dry_run: DryRunFlag = False) -> None:
    """Archive a thread (mark as done)."""
    run_command(ctx, mark_thread_done, thread_ref, dry_run=dry_run)


def register(root: typer.Typer) -> None:
    root.add_typer(app, name="thread")
