from __future__ import annotations

from typing import Annotated, Optional

import questionary
import typer

from ..auth import save_api_token
from ..config import ConfigError, resolve_config_path
from ..output import TIMESTAMP, echo, print_error, styled

app = typer.Typer(help="Authenticate with Twist.", no_args_is_help=True)


@app.command("token")
def token(
    value: Annotated[
        Optional[str],
        typer.Argument(metavar="TOKEN", help="Twist API token; prompted when omitted."),
    ] = None,
) -> None:
    """Save an API token to the config file."""
    if value is None:
        value = questionary.password("Twist API token").ask()
    if not value or not value.strip():
        print_error("error: no token provided")
        raise typer.Exit(1)

    try:
        config_path = save_api_token(value, resolve_config_path())
    except ConfigError as exc:
        print_error(f"error: {exc}")
        raise typer.Exit(1) from exc
    echo(f"{styled('✓', 'green')} API token saved successfully!")
    echo(styled(f"Token saved to {config_path}", TIMESTAMP))


def register(root: typer.Typer) -> None:
    root.add_typer(app, name="login")
