from __future__ import annotations

from typing import Annotated

import typer

from ..client import TwistApiError
from ..config import update_config
from ..errors import TwistCliError
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
from ..refs import resolve_workspace_ref
from ..session import Session
from .common import FullFlag, JsonFlag, NdjsonFlag, run_command

app = typer.Typer(help="Manage the current workspace.", no_args_is_help=True)


async def list_workspaces(
    session: Session, *, as_json: bool, as_ndjson: bool, full: bool
) -> None:
    workspaces = await session.fetch_workspaces()
    if not workspaces:
        echo("No workspaces found.")
        return

    if as_json:
        echo_plain(format_json([to_output(w) for w in workspaces], "workspace", full))
        return
    if as_ndjson:
        echo_plain(format_ndjson([to_output(w) for w in workspaces], "workspace", full))
        return

    try:
        current_id: int | None = await session.get_current_workspace_id()
    except (TwistCliError, TwistApiError):
        current_id = None

    for workspace in workspaces:
        is_current = workspace.id == current_id
        name = styled(workspace.name, "bold") if is_current else escape(workspace.name)
        current = styled(" (current)", "green") if is_current else ""
        plan = styled(f"[{workspace.plan}]", CHANNEL) if workspace.plan else ""
        echo(f"{styled(f'id:{workspace.id}', TIMESTAMP)}  {name}{current} {plan}".rstrip())


async def use_workspace(session: Session, ref: str) -> None:
    workspace = await resolve_workspace_ref(session, ref)
    update_config(session.config_path, current_workspace=workspace.id)
    echo(f"Switched to workspace: {escape(workspace.name)}")


def workspaces(
    ctx: typer.Context,
    as_json: JsonFlag = False,
    as_ndjson: NdjsonFlag = False,
    full: FullFlag = False,
) -> None:
    """List all workspaces."""
    run_command(ctx, list_workspaces, as_json=as_json, as_ndjson=as_ndjson, full=full)


@app.command("use")
def use(
    ctx: typer.Context,
    workspace_ref: Annotated[str, typer.Argument(help="Workspace ID, URL or name.")],
) -> None:
    """Set the current workspace."""
    run_command(ctx, use_workspace, workspace_ref)


def register(root: typer.Typer) -> None:
    root.command("workspaces")(workspaces)
    root.add_typer(app, name="workspace")
