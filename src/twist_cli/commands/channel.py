from __future__ import annotations

import typer

from ..output import (
    CHANNEL,
    TIMESTAMP,
    echo,
    echo_plain,
    format_json,
    format_ndjson,
    styled,
    to_output,
)
from ..session import Session
from ..visibility import include_private_channels
from .common import (
    FullFlag,
    JsonFlag,
    NdjsonFlag,
    WorkspaceArg,
    WorkspaceOption,
    run_command,
)


async def list_channels(
    session: Session,
    workspace_ref: str | None,
    *,
    workspace: str | None,
    as_json: bool,
    as_ndjson: bool,
    full: bool,
) -> None:
    workspace_id = await session.resolve_workspace_id(workspace_ref, workspace)
    channels = await session.client.get_channels(workspace_id)

    if not include_private_channels():
        channels = [channel for channel in channels if channel.public]

    if not channels:
        echo("No channels found.")
        return

    if as_json:
        echo_plain(format_json([to_output(ch) for ch in channels], "channel", full))
        return
    if as_ndjson:
        echo_plain(format_ndjson([to_output(ch) for ch in channels], "channel", full))
        return

    for channel in channels:
        visibility = "" if channel.public else styled(" [private]", TIMESTAMP)
        archived = styled(" (archived)", TIMESTAMP) if channel.archived else ""
        echo(
            f"{styled(f'id:{channel.id}', TIMESTAMP)}  "
            f"{styled(channel.name, CHANNEL)}{visibility}{archived}"
        )


def channels(
    ctx: typer.Context,
    workspace_ref: WorkspaceArg = None,
    workspace: WorkspaceOption = None,
    as_json: JsonFlag = False,
    as_ndjson: NdjsonFlag = False,
    full: FullFlag = False,
) -> None:
    """List channels in a workspace."""
    run_command(
        ctx,
        list_channels,
        workspace_ref,
        workspace=workspace,
        as_json=as_json,
        as_ndjson=as_ndjson,
        full=full,
    )


def register(root: typer.Typer) -> None:
    root.command("channels")(channels)
