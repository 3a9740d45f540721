from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Annotated, Any, Optional

import anyio
import typer

from ..client import TwistApiError
from ..config import ConfigError
from ..dates import parse_date
from ..errors import TwistCliError
from ..logging import get_logger
from ..output import print_error
from ..refs import extract_id
from ..session import Session

logger = get_logger(__name__)

JsonFlag = Annotated[bool, typer.Option("--json", help="Output as JSON.")]
NdjsonFlag = Annotated[
    bool, typer.Option("--ndjson", help="Output as newline-delimited JSON.")
]
FullFlag = Annotated[
    bool, typer.Option("--full", help="Include all fields in JSON output.")
]
DryRunFlag = Annotated[
    bool, typer.Option("--dry-run", help="Show what would happen without executing.")
]
RawFlag = Annotated[
    bool, typer.Option("--raw", help="Show raw markdown instead of rendered.")
]
WorkspaceOption = Annotated[
    Optional[str], typer.Option("--workspace", help="Workspace ID, URL or name.")
]
WorkspaceArg = Annotated[
    Optional[str], typer.Argument(help="Workspace ID, URL or name.")
]
LimitOption = Annotated[int, typer.Option("--limit", min=1, help="Max items.")]
SinceOption = Annotated[
    Optional[str], typer.Option("--since", help="Only items newer than this date.")
]
UntilOption = Annotated[
    Optional[str], typer.Option("--until", help="Only items older than this date.")
]


def _session_factory(ctx: typer.Context) -> Callable[[], Session]:
    obj = ctx.obj if isinstance(ctx.obj, dict) else {}
    return obj.get("session_factory", Session)


def run_command(
    ctx: typer.Context,
    func: Callable[..., Awaitable[None]],
    /,
    *args: Any,
    **kwargs: Any,
) -> None:
    factory = _session_factory(ctx)

    async def _main() -> None:
        session = factory()
        try:
            await func(session, *args, **kwargs)
        finally:
            await session.aclose()

    try:
        anyio.run(_main)
    except (TwistCliError, TwistApiError, ConfigError) as exc:
        logger.debug(
            "command.failed",
            command=ctx.command_path,
            error=str(exc),
            error_type=exc.__class__.__name__,
        )
        print_error(f"error: {exc}")
        raise typer.Exit(1) from exc


def parse_date_option(value: str | None, *, option: str) -> datetime | None:
    if value is None:
        return None
    parsed = parse_date(value)
    if parsed is None:
        raise TwistCliError(f"Invalid date for {option}: {value}")
    return parsed


def parse_id_list(value: str | None) -> list[int] | None:
    if not value:
        return None
    return [extract_id(token.strip()) for token in value.split(",") if token.strip()]
