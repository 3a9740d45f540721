from __future__ import annotations

from typing import Annotated, Optional

import typer

from ..output import (
    CHANNEL,
    TIMESTAMP,
    echo,
    escape,
    echo_plain,
    format_json,
    format_ndjson,
    styled,
    to_output,
)
from ..session import Session
from .common import (
    FullFlag,
    JsonFlag,
    NdjsonFlag,
    WorkspaceArg,
    WorkspaceOption,
    run_command,
)


async def show_current_user(session: Session, *, as_json: bool) -> None:
    user = await session.get_session_user()
    if as_json:
        echo_plain(format_json(to_output(user), "user"))
        return

    echo(styled(user.name, "bold"))
    echo()
    echo(f"ID:        {user.id}")
    echo(f"Email:     {escape(user.email or '')}")
    echo(f"Timezone:  {escape(user.timezone or '')}")
    if user.default_workspace:
        echo(f"Default:   workspace id:{user.default_workspace}")


async def list_users(
    session: Session,
    workspace_ref: str | None,
    *,
    workspace: str | None,
    search: str | None,
    as_json: bool,
    as_ndjson: bool,
    full: bool,
) -> None:
    workspace_id = await session.resolve_workspace_id(workspace_ref, workspace)
    users = await session.get_workspace_users(workspace_id)

    if search:
        needle = search.lower()
        users = [
            u
            for u in users
            if needle in u.name.lower() or (u.email and needle in u.email.lower())
        ]

    if not users:
        echo("No users found.")
        return

    if as_json:
        echo_plain(format_json([to_output(u) for u in users], "user", full))
        return
    if as_ndjson:
        echo_plain(format_ndjson([to_output(u) for u in users], "user", full))
        return

    for u in users:
        email = styled(f"<{u.email}>", TIMESTAMP) if u.email else ""
        user_type = styled(f"[{u.user_type}]", CHANNEL) if u.user_type else ""
        bot = styled(" [bot]", "yellow") if u.bot else ""
        echo(
            f"{styled(f'id:{u.id}', TIMESTAMP)}  "
            f"{escape(u.name)} {email} {user_type}{bot}"
        )


def user(ctx: typer.Context, as_json: JsonFlag = False) -> None:
    """Show current user info."""
    run_command(ctx, show_current_user, as_json=as_json)


def users(
    ctx: typer.Context,
    workspace_ref: WorkspaceArg = None,
    workspace: WorkspaceOption = None,
    search: Annotated[
        Optional[str], typer.Option("--search", help="Filter by name or email.")
    ] = None,
    as_json: JsonFlag = False,
    as_ndjson: NdjsonFlag = False,
    full: FullFlag = False,
) -> None:
    """List users in a workspace."""
    run_command(
        ctx,
        list_users,
        workspace_ref,
        workspace=workspace,
        search=search,
        as_json=as_json,
        as_ndjson=as_ndjson,
        full=full,
    )


def register(root: typer.Typer) -> None:
    root.command("user")(user)
    root.command("users")(users)
