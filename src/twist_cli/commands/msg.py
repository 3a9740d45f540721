from __future__ import annotations

from typing import Annotated, Optional

import typer

from ..client import Conversation, gather
from ..dates import format_relative_date
from ..errors import TwistCliError
from ..output import (
    AUTHOR,
    TIMESTAMP,
    URL,
    dumps,
    echo,
    echo_plain,
    format_json,
    format_ndjson,
    print_content,
    styled,
    to_output,
)
from ..input import read_content
from ..refs import build_twist_url, resolve_conversation_id
from ..session import Session
from .common import (
    DryRunFlag,
    FullFlag,
    JsonFlag,
    LimitOption,
    NdjsonFlag,
    RawFlag,
    SinceOption,
    UntilOption,
    WorkspaceArg,
    WorkspaceOption,
    parse_date_option,
    run_command,
)

app = typer.Typer(help="Conversation (DM/group) operations.", no_args_is_help=True)

ConversationRefArg = Annotated[str, typer.Argument(help="Conversation ID or Twist URL.")]


def _participants(conversation: Conversation, user_names: dict[int, str]) -> str:
    return ", ".join(
        user_names.get(uid) or f"user:{uid}" for uid in conversation.user_ids
    )


def _title(conversation: Conversation, user_names: dict[int, str]) -> str:
    return conversation.title or f"Conversation with {_participants(conversation, user_names)}"


async def show_unread(
    session: Session,
    workspace_ref: str | None,
    *,
    workspace: str | None,
    as_json: bool,
    as_ndjson: bool,
    full: bool,
) -> None:
    workspace_id = await session.resolve_workspace_id(workspace_ref, workspace)
    client = session.client
    unread = await client.get_unread_conversations(workspace_id)
    if not unread:
        echo("No unread conversations.")
        return

    conversations: list[Conversation] = await gather(
        *(client.get_conversation(u.conversation_id) for u in unread)
    )
    user_ids = {uid for conv in conversations for uid in conv.user_ids}
    user_names = await session.get_user_names(workspace_id, user_ids)

    if as_json or as_ndjson:
        output = [
            to_output(
                conv,
                participantNames=[user_names.get(uid) for uid in conv.user_ids],
                url=build_twist_url(conv.workspace_id, conversation_id=conv.id),
            )
            for conv in conversations
        ]
        if as_json:
            echo_plain(format_json(output, "conversation", full))
        else:
            echo_plain(format_ndjson(output, "conversation", full))
        return

    for conv in conversations:
        echo(styled(_title(conv, user_names), "bold"))
        echo(
            f"  {styled(f'id:{conv.id}', TIMESTAMP)}  "
            f"{styled(_participants(conv, user_names), AUTHOR)}"
        )
        echo(f"  {styled(build_twist_url(conv.workspace_id, conversation_id=conv.id), URL)}")
        echo()


async def view_conversation(
    session: Session,
    ref: str,
    *,
    limit: int,
    since: str | None,
    until: str | None,
    raw: bool,
    as_json: bool,
    as_ndjson: bool,
    full: bool,
) -> None:
    conversation_id = resolve_conversation_id(ref)
    client = session.client
    conversation, messages = await gather(
        client.get_conversation(conversation_id),
        client.get_conversation_messages(
            conversation_id=conversation_id,
            since=parse_date_option(since, option="--since"),
            until=parse_date_option(until, option="--until"),
            limit=limit,
        ),
    )
    user_names = await session.get_user_names(
        conversation.workspace_id,
        {*conversation.user_ids, *(m.creator for m in messages)},
    )
    participant_names = [user_names.get(uid) for uid in conversation.user_ids]

    if as_json:
        output = {
            "conversation": to_output(conversation, participantNames=participant_names),
            "messages": [
                to_output(m, creatorName=user_names.get(m.creator)) for m in messages
            ],
        }
        echo_plain(format_json(output, None, full))
        return
    if as_ndjson:
        lines = [
            dumps(
                {
                    "type": "conversation",
                    **to_output(conversation),
                    "participantNames": participant_names,
                }
            )
        ]
        lines.extend(
            dumps(
                {
                    "type": "message",
                    **to_output(m),
                    "creatorName": user_names.get(m.creator),
                }
            )
            for m in messages
        )
        echo_plain("\n".join(lines))
        return

    echo(styled(_title(conversation, user_names), "bold"))
    echo(styled(f"id:{conversation.id}", TIMESTAMP))
    echo()

    if not messages:
        echo("No messages.")
        return

    for message in messages:
        author = user_names.get(message.creator) or f"user:{message.creator}"
        echo(
            f"{styled(author, AUTHOR)}  "
            f"{styled(format_relative_date(message.posted), TIMESTAMP)}  "
            f"{styled(f'id:{message.id}', TIMESTAMP)}"
        )
        print_content(message.content, raw=raw)
        echo()


async def reply_to_conversation(
    session: Session, ref: str, content: str | None, *, dry_run: bool
) -> None:
    conversation_id = resolve_conversation_id(ref)
    body = read_content(content)
    if body is None:
        raise TwistCliError("No content provided.")

    if dry_run:
        echo(f"Dry run: would send message to conversation {conversation_id}")
        echo()
        echo_plain(body)
        return

    client = session.client
    message = await client.add_conversation_message(
        conversation_id=conversation_id, content=body
    )
    conversation = await client.get_conversation(conversation_id)
    url = build_twist_url(
        conversation.workspace_id,
        conversation_id=conversation_id,
        message_id=message.id,
    )
    echo_plain(f"Message sent: {url}")


async def mark_conversation_done(session: Session, ref: str, *, dry_run: bool) -> None:
    conversation_id = resolve_conversation_id(ref)
    if dry_run:
        echo(f"Dry run: would archive conversation {conversation_id}")
        return
    await session.client.archive_conversation(conversation_id)
    echo(f"Conversation {conversation_id} archived.")


@app.command("unread")
def unread(
    ctx: typer.Context,
    workspace_ref: WorkspaceArg = None,
    workspace: WorkspaceOption = None,
    as_json: JsonFlag = False,
    as_ndjson: NdjsonFlag = False,
    full: FullFlag = False,
) -> None:
    """List unread conversations."""
    run_command(
        ctx,
        show_unread,
        workspace_ref,
        workspace=workspace,
        as_json=as_json,
        as_ndjson=as_ndjson,
        full=full,
    )


@app.command("view")
def view(
    ctx: typer.Context,
    conversation_ref: ConversationRefArg,
    limit: LimitOption = 50,
    since: SinceOption = None,
    until: UntilOption = None,
    raw: RawFlag = False,
    as_json: JsonFlag = False,
    as_ndjson: NdjsonFlag = False,
    full: FullFlag = False,
) -> None:
    """Display a conversation with its messages."""
    run_command(
        ctx,
        view_conversation,
        conversation_ref,
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
    conversation_ref: ConversationRefArg,
    content: Annotated[
        Optional[str], typer.Argument(help="Message text; stdin or $EDITOR otherwise.")
    ] = None,
    dry_run: DryRunFlag = False,
) -> None:
    """Send a message in a conversation."""
    run_command(ctx, reply_to_conversation, conversation_ref, content, dry_run=dry_run)


@app.command("done")
def done(
    ctx: typer.Context, conversation_ref: ConversationRefArg, dry_run: DryRunFlag = False
) -> None:
    """Archive a conversation."""
    run_command(ctx, mark_conversation_done, conversation_ref, dry_run=dry_run)


def register(root: typer.Typer) -> None:
    root.add_typer(app, name="msg")
