from __future__ import annotations

from typing import Annotated

import typer

from ..client import ReactionTarget
from ..output import echo
from ..refs import extract_id
from ..session import Session
from .common import DryRunFlag, run_command

TARGET_TYPES = ("thread", "comment", "message")

SHORTCODES = {
    "+1": "👍",
    "-1": "👎",
    "heart": "❤️",
    "tada": "🎉",
    "smile": "😊",
    "laughing": "😂",
    "thinking": "🤔",
    "fire": "🔥",
    "check": "✅",
    "x": "❌",
    "eyes": "👀",
    "pray": "🙏",
    "clap": "👏",
    "rocket": "🚀",
    "wave": "👋",
}

TargetTypeArg = Annotated[
    str, typer.Argument(metavar="TARGET_TYPE", help="thread, comment, or message.")
]
TargetRefArg = Annotated[str, typer.Argument(help="Target ID (id:N or N).")]
EmojiArg = Annotated[str, typer.Argument(help="Emoji or shortcode such as +1, tada.")]


def normalize_emoji(emoji: str) -> str:
    return SHORTCODES.get(emoji.lower(), emoji)


def _check_target_type(target_type: str) -> ReactionTarget:
    if target_type not in TARGET_TYPES:
        raise typer.BadParameter(
            f"Invalid target type: {target_type}. Use: thread, comment, or message",
            param_hint="TARGET_TYPE",
        )
    return target_type  # type: ignore[return-value]


async def add_reaction(
    session: Session, target: ReactionTarget, ref: str, emoji: str, *, dry_run: bool
) -> None:
    target_id = extract_id(ref)
    reaction = normalize_emoji(emoji)
    if dry_run:
        echo(f"Dry run: would add {reaction} to {target} {target_id}")
        return
    await session.client.add_reaction(target=target, target_id=target_id, reaction=reaction)
    echo(f"Added {reaction} to {target} {target_id}")


async def remove_reaction(
    session: Session, target: ReactionTarget, ref: str, emoji: str, *, dry_run: bool
) -> None:
    target_id = extract_id(ref)
    reaction = normalize_emoji(emoji)
    if dry_run:
        echo(f"Dry run: would remove {reaction} from {target} {target_id}")
        return
    await session.client.remove_reaction(
        target=target, target_id=target_id, reaction=reaction
    )
    echo(f"Removed {reaction} from {target} {target_id}")


def react(
    ctx: typer.Context,
    target_type: TargetTypeArg,
    target_ref: TargetRefArg,
    emoji: EmojiArg,
    dry_run: DryRunFlag = False,
) -> None:
    """Add an emoji reaction to a thread, comment or message."""
    target = _check_target_type(target_type)
    run_command(ctx, add_reaction, target, target_ref, emoji, dry_run=dry_run)


def unreact(
    ctx: typer.Context,
    target_type: TargetTypeArg,
    target_ref: TargetRefArg,
    emoji: EmojiArg,
    dry_run: DryRunFlag = False,
) -> None:
    """Remove an emoji reaction from a thread, comment or message."""
    target = _check_target_type(target_type)
    run_command(ctx, remove_reaction, target, target_ref, emoji, dry_run=dry_run)


def register(root: typer.Typer) -> None:
    root.command("react")(react)
    root.command("unreact")(unreact)
