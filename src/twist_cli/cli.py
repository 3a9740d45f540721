from __future__ import annotations

import os
import sys
from collections.abc import Sequence
from typing import Annotated, Optional

import typer

from . import __version__
from .commands import channel, inbox, login, msg, react, search, thread, user, workspace
from .errors import PRIVATE_CHANNELS_ENV, PRIVATE_CHANNELS_FLAG
from .logging import setup_logging

EPILOG = (
    "Note for AI/LLM agents: use --json or --ndjson for unambiguous, "
    "parseable output (default JSON shows essential fields; use --full for all)."
)

app = typer.Typer(
    name="tw",
    help="Twist CLI",
    epilog=EPILOG,
    no_args_is_help=True,
    add_completion=False,
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def root(
    ctx: typer.Context,
    include_private_channels: Annotated[
        bool,
        typer.Option(
            PRIVATE_CHANNELS_FLAG,
            help="Include private channels in output and allow access to them.",
        ),
    ] = False,
    debug: Annotated[
        bool, typer.Option("--debug", help="Log diagnostics to stderr.")
    ] = False,
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show the version and exit.",
        ),
    ] = None,
) -> None:
    if include_private_channels:
        os.environ[PRIVATE_CHANNELS_ENV] = "1"
    setup_logging(debug=debug)
    if ctx.obj is None:
        ctx.obj = {}


for module in (login, workspace, user, channel, inbox, thread, msg, search, react):
    module.register(app)


def main(argv: Sequence[str] | None = None) -> None:
    # The private-channel flag is accepted anywhere on the command line.
    args = list(sys.argv[1:] if argv is None else argv)
    if PRIVATE_CHANNELS_FLAG in args:
        os.environ[PRIVATE_CHANNELS_ENV] = "1"
        args = [arg for arg in args if arg != PRIVATE_CHANNELS_FLAG]
    app(args=args, prog_name="tw")


if __name__ == "__main__":
    main()
